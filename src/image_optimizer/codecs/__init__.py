from __future__ import annotations

from functools import lru_cache
from typing import Callable, Dict

from .base import Codec, DecodedImage, EncodedPayload, decode_image, to_rgb8
from .webp import WebPCodec

_CODEC_FACTORIES: Dict[str, Callable[..., Codec]] = {
    "webp": WebPCodec,
}

DEFAULT_TARGET = "webp"


@lru_cache(maxsize=16)
def get_codec(target: str = DEFAULT_TARGET, method: int = 4) -> Codec:
    factory = _CODEC_FACTORIES.get(target.lower())
    if not factory:
        raise KeyError(f"No codec registered for {target}")
    return factory(method=method)


__all__ = [
    "Codec",
    "DecodedImage",
    "EncodedPayload",
    "WebPCodec",
    "decode_image",
    "get_codec",
    "to_rgb8",
]
