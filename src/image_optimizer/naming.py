"""Output file naming for a batch."""

from __future__ import annotations

import uuid
from pathlib import Path

from .codecs import DEFAULT_TARGET


def random_token() -> str:
    return uuid.uuid4().hex


def derive_output_path(
    source_path: Path,
    output_base_name: str | None,
    index: int,
    batch_size: int,
    extension: str = DEFAULT_TARGET,
) -> Path:
    """Return the output path for the item at ``index`` of a batch.

    Without a base name a random 128-bit token is used. With one, a single
    item batch gets ``<base>.<ext>`` and larger batches get a 1-based suffix,
    ``<base><index+1>.<ext>``. Existing files on disk are not considered here;
    the converter refuses to overwrite them.
    """

    if output_base_name is None:
        stem = random_token()
    elif batch_size == 1:
        stem = output_base_name
    else:
        stem = f"{output_base_name}{index + 1}"
    return source_path.with_name(f"{stem}.{extension}")


__all__ = ["derive_output_path", "random_token"]
