"""Domain models for batch image conversion."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal

from .errors import ConversionError, DeleteError
from .logging import BatchSummary, StageTimings

OutcomeStatus = Literal["success", "partial", "failure"]


@dataclass(frozen=True, slots=True)
class ConversionRequest:
    """Validated, immutable description of one batch run."""

    sources: tuple[Path, ...]
    output_base_name: str | None = None
    keep_original: bool = False
    quality: float = 75.0
    parallelism: int = 1

    @property
    def batch_size(self) -> int:
        return len(self.sources)


@dataclass(frozen=True, slots=True)
class BatchItem:
    source_path: Path
    index: int


@dataclass(slots=True)
class ConversionOutcome:
    """Result of converting one item."""

    source_path: Path
    output_path: Path | None = None
    error: ConversionError | None = None
    index: int = 0
    source_bytes: int = 0
    output_bytes: int = 0
    timings: StageTimings = field(default_factory=StageTimings)

    @property
    def status(self) -> OutcomeStatus:
        if self.error is None:
            return "success"
        if isinstance(self.error, DeleteError) and self.output_path is not None:
            return "partial"
        return "failure"

    @property
    def ok(self) -> bool:
        return self.status != "failure"

    @property
    def error_code(self) -> str | None:
        return self.error.code if self.error is not None else None


@dataclass(slots=True)
class BatchConversionResult:
    """Aggregate results for a batch, ordered by item index."""

    outcomes: list[ConversionOutcome]
    summary: BatchSummary


__all__ = [
    "BatchConversionResult",
    "BatchItem",
    "ConversionOutcome",
    "ConversionRequest",
    "OutcomeStatus",
]
