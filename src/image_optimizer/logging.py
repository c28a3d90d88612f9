from __future__ import annotations

import json
import threading
import time
from dataclasses import asdict, dataclass, field
from pathlib import Path
from typing import Any


@dataclass(slots=True)
class StageTimings:
    decode_ms: float = 0.0
    encode_ms: float = 0.0
    write_ms: float = 0.0
    delete_ms: float = 0.0


@dataclass(slots=True)
class RunLogEntry:
    source: str
    status: str
    error_code: str | None
    error_message: str | None
    output_path: str | None
    quality: float
    source_bytes: int
    output_bytes: int
    timings: StageTimings
    timestamp: str = field(
        default_factory=lambda: time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
    )

    def to_dict(self) -> dict[str, Any]:
        payload = asdict(self)
        payload["timings"] = asdict(self.timings)
        return payload


class RunLogger:
    """Appends one JSON line per item; safe to share between workers."""

    def __init__(self, log_file: Path) -> None:
        self._log_file = log_file
        self._lock = threading.Lock()

    @property
    def path(self) -> Path:
        return self._log_file

    def append(self, entry: RunLogEntry) -> None:
        line = json.dumps(entry.to_dict(), ensure_ascii=False)
        with self._lock:
            self._log_file.parent.mkdir(parents=True, exist_ok=True)
            with self._log_file.open("a", encoding="utf-8") as handle:
                handle.write(line + "\n")


@dataclass(slots=True)
class BatchSummary:
    timestamp: float = field(default_factory=time.time)
    total: int = 0
    successes: int = 0
    partial: int = 0
    failures: int = 0
    source_bytes: int = 0
    output_bytes: int = 0
    errors: dict[str, int] = field(default_factory=dict)
    log_errors: list[str] = field(default_factory=list)

    def record(self, status: str, error_code: str | None, source_bytes: int, output_bytes: int) -> None:
        self.total += 1
        if status == "success":
            self.successes += 1
        elif status == "partial":
            self.partial += 1
        else:
            self.failures += 1
        if error_code:
            self.errors[error_code] = self.errors.get(error_code, 0) + 1
        if status != "failure":
            self.source_bytes += source_bytes
            self.output_bytes += output_bytes

    @property
    def saved_bytes(self) -> int:
        return max(0, self.source_bytes - self.output_bytes)
