from __future__ import annotations

import glob
import os
from collections.abc import Iterable
from pathlib import Path
from typing import Iterator

GLOB_CHARS = frozenset("*?[")


def is_glob_pattern(value: str) -> bool:
    return any(char in value for char in GLOB_CHARS)


def expand_inputs(values: Iterable[str | Path]) -> Iterator[tuple[str, list[Path]]]:
    """Yield each argument with the paths it stands for.

    Existing paths are taken literally; otherwise arguments containing glob
    characters are expanded (for shells that do not do it themselves).
    """

    for value in values:
        raw = str(value)
        path = Path(raw)
        if path.exists() or not is_glob_pattern(raw):
            yield raw, [path]
            continue
        matches = sorted(Path(match) for match in glob.glob(raw) if Path(match).is_file())
        yield raw, matches


def exclusive_write(path: Path, data: bytes) -> None:
    """Create ``path`` and write ``data``, refusing to replace an existing file.

    A partially written file is removed before the error propagates.
    """

    with path.open("xb") as handle:
        try:
            handle.write(data)
            handle.flush()
            os.fsync(handle.fileno())
        except BaseException:
            handle.close()
            path.unlink(missing_ok=True)
            raise


def file_size(path: Path) -> int:
    try:
        return path.stat().st_size
    except OSError:
        return 0


def format_bytes(size_bytes: int) -> str:
    value = float(size_bytes)
    for unit in ("B", "KB", "MB", "GB"):
        if abs(value) < 1024 or unit == "GB":
            return f"{value:.0f} {unit}" if unit == "B" else f"{value:.1f} {unit}"
        value /= 1024
    return f"{value:.1f} GB"
