"""Batch image-to-WebP optimization toolkit."""

from .config import AppConfig, build_request, load_config
from .core import ConversionService
from .errors import ConfigError, ConversionError, DecodeError, DeleteError, EncodeError, WriteError
from .models import BatchConversionResult, ConversionOutcome, ConversionRequest
from .naming import derive_output_path

__version__ = "0.1.0"

__all__ = [
    "AppConfig",
    "BatchConversionResult",
    "ConfigError",
    "ConversionError",
    "ConversionOutcome",
    "ConversionRequest",
    "ConversionService",
    "DecodeError",
    "DeleteError",
    "EncodeError",
    "WriteError",
    "build_request",
    "derive_output_path",
    "load_config",
]
