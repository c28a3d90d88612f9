from __future__ import annotations

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Protocol

from PIL import Image

from ..errors import DecodeError

# Single-band modes with no direct RGB conversion.
_WIDE_GREY_MODES = {"I", "I;16", "I;16B", "I;16L", "I;16N", "F"}


@dataclass(slots=True)
class DecodedImage:
    image: Image.Image
    source_format: str | None = None

    @property
    def width(self) -> int:
        return self.image.width

    @property
    def height(self) -> int:
        return self.image.height

    @property
    def mode(self) -> str:
        return self.image.mode

    @property
    def has_alpha(self) -> bool:
        return "A" in self.image.getbands() or "transparency" in self.image.info


@dataclass(slots=True)
class EncodedPayload:
    data: bytes
    format: str
    extension: str
    width: int
    height: int

    def __len__(self) -> int:
        return len(self.data)


class Codec(Protocol):
    extension: str

    def decode(self, source: Path | bytes) -> DecodedImage:  # pragma: no cover - interface
        ...

    def encode(self, image: DecodedImage, quality: float) -> EncodedPayload:  # pragma: no cover - interface
        ...


def decode_image(source: Path | bytes) -> DecodedImage:
    """Decode any format Pillow recognizes into a fully loaded image."""

    label = "<bytes>" if isinstance(source, bytes) else str(source)
    handle = BytesIO(source) if isinstance(source, bytes) else source
    try:
        with Image.open(handle) as img:
            img.load()
            source_format = img.format
            # Detach from the file handle; animated sources keep their first frame.
            loaded = img.copy()
    except Image.DecompressionBombError as exc:
        raise DecodeError(f"Image too large to decode safely: {label}") from exc
    except FileNotFoundError as exc:
        raise DecodeError(f"Source file does not exist: {label}") from exc
    except Exception as exc:  # noqa: BLE001 - Pillow plugins raise arbitrary types on corrupt data
        raise DecodeError(f"Cannot decode {label}: {exc}") from exc
    return DecodedImage(image=loaded, source_format=source_format)


def to_rgb8(image: Image.Image) -> Image.Image:
    """Normalize to 8-bit RGB. Alpha is discarded, not composited."""

    if image.mode == "RGB":
        return image
    if image.mode not in _WIDE_GREY_MODES:
        return image.convert("RGB")
    lo, hi = image.getextrema()
    scale = 255.0 / (hi - lo) if hi != lo else 0.0
    working = image if image.mode == "F" else image.convert("I")
    grey = working.point(lambda value: (value - lo) * scale).convert("L")
    return grey.convert("RGB")
