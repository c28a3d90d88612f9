from __future__ import annotations


class ConversionError(RuntimeError):
    """Base class for failures contained to a single item."""

    code = "CONVERSION"

    def __init__(self, message: str, *, code: str | None = None) -> None:
        super().__init__(message)
        if code is not None:
            self.code = code


class DecodeError(ConversionError):
    """Raised when the source is unreadable, truncated or not an image."""

    code = "DECODE"


class EncodeError(ConversionError):
    """Raised when the encoder rejects an image."""

    code = "ENCODE"


class WriteError(ConversionError):
    """Raised when the output file cannot be created or written."""

    code = "WRITE"


class DeleteError(ConversionError):
    """Raised when the source cannot be removed after a successful write."""

    code = "DELETE"


class ConfigError(ValueError):
    """Raised before dispatch when the run configuration is invalid."""


__all__ = [
    "ConversionError",
    "DecodeError",
    "EncodeError",
    "WriteError",
    "DeleteError",
    "ConfigError",
]
