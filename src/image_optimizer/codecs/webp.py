from __future__ import annotations

from io import BytesIO
from pathlib import Path

from PIL import features

from .base import DecodedImage, EncodedPayload, decode_image, to_rgb8
from ..errors import EncodeError

# libwebp refuses dimensions above this.
WEBP_MAX_DIMENSION = 16383


class WebPCodec:
    extension = "webp"
    format = "WEBP"

    def __init__(self, method: int = 4) -> None:
        if not features.check("webp"):  # pragma: no cover - depends on the Pillow build
            raise RuntimeError("Pillow was built without WebP support")
        self._method = method

    def decode(self, source: Path | bytes) -> DecodedImage:
        return decode_image(source)

    def encode(self, image: DecodedImage, quality: float) -> EncodedPayload:
        if max(image.width, image.height) > WEBP_MAX_DIMENSION:
            raise EncodeError(
                f"Image {image.width}x{image.height} exceeds the WebP limit of {WEBP_MAX_DIMENSION}px"
            )
        if image.width == 0 or image.height == 0:
            raise EncodeError("Cannot encode an empty image")
        buffer = BytesIO()
        try:
            rgb = to_rgb8(image.image)
            rgb.save(buffer, format=self.format, quality=float(quality), method=self._method)
        except (OSError, ValueError) as exc:
            raise EncodeError(f"WebP encoder failed: {exc}") from exc
        data = buffer.getvalue()
        if not data:
            raise EncodeError("WebP encoder produced no data")
        return EncodedPayload(
            data=data,
            format=self.format,
            extension=self.extension,
            width=rgb.width,
            height=rgb.height,
        )
