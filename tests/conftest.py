from __future__ import annotations

from pathlib import Path

import pytest
from PIL import Image


def write_image(path: Path, mode: str = "RGB", size: tuple[int, int] = (64, 48), fmt: str | None = None) -> Path:
    color = {"RGB": (200, 40, 90), "RGBA": (200, 40, 90, 128), "L": 120, "LA": (120, 50), "P": 3}.get(mode, 0)
    image = Image.new(mode, size, color)
    image.save(path, format=fmt)
    return path


@pytest.fixture
def make_image(tmp_path: Path):
    def _make(name: str, mode: str = "RGB", size: tuple[int, int] = (64, 48), fmt: str | None = None) -> Path:
        return write_image(tmp_path / name, mode=mode, size=size, fmt=fmt)

    return _make


@pytest.fixture
def corrupt_file(tmp_path: Path) -> Path:
    path = tmp_path / "broken.jpg"
    path.write_bytes(b"this is not an image at all")
    return path
