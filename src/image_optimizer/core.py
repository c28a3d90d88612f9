from __future__ import annotations

import concurrent.futures
import time
from pathlib import Path
from typing import Callable, Sequence

from .codecs import Codec, get_codec
from .config import AppConfig
from .errors import ConversionError, DeleteError, WriteError
from .logging import BatchSummary, RunLogEntry, RunLogger
from .models import BatchConversionResult, BatchItem, ConversionOutcome, ConversionRequest
from .naming import derive_output_path
from .utils import exclusive_write, file_size

OutcomeCallback = Callable[[ConversionOutcome], None]


def _elapsed_ms(start: float) -> float:
    return (time.perf_counter() - start) * 1000


def _same_file(first: Path, second: Path) -> bool:
    return first.resolve() == second.resolve()


class ConversionService:
    def __init__(self, config: AppConfig | None = None, *, codec: Codec | None = None) -> None:
        self._config = config or AppConfig()
        self._codec = codec or get_codec(method=self._config.encoder.method)
        log_file = self._config.runtime.log_file
        self._logger = RunLogger(log_file) if log_file else None

    @property
    def codec(self) -> Codec:
        return self._codec

    def convert_file(
        self,
        source: Path,
        output_path: Path,
        *,
        keep_original: bool,
        quality: float,
        index: int = 0,
    ) -> ConversionOutcome:
        """Convert one file. Failures are returned on the outcome, not raised."""

        outcome = ConversionOutcome(source_path=source, index=index, source_bytes=file_size(source))
        try:
            self._convert_internal(source, output_path, keep_original, quality, outcome)
        except ConversionError as exc:
            outcome.error = exc
        return outcome

    def _convert_internal(
        self,
        source: Path,
        output_path: Path,
        keep_original: bool,
        quality: float,
        outcome: ConversionOutcome,
    ) -> None:
        if _same_file(source, output_path):
            raise WriteError(f"Output path would overwrite the source: {output_path}")

        start = time.perf_counter()
        decoded = self._codec.decode(source)
        outcome.timings.decode_ms = _elapsed_ms(start)

        start = time.perf_counter()
        payload = self._codec.encode(decoded, quality)
        outcome.timings.encode_ms = _elapsed_ms(start)
        del decoded

        start = time.perf_counter()
        self._write_output(output_path, payload.data)
        outcome.timings.write_ms = _elapsed_ms(start)
        outcome.output_path = output_path
        outcome.output_bytes = len(payload)

        if not keep_original:
            start = time.perf_counter()
            self._remove_source(source)
            outcome.timings.delete_ms = _elapsed_ms(start)

    def _write_output(self, output_path: Path, data: bytes) -> None:
        try:
            exclusive_write(output_path, data)
        except FileExistsError as exc:
            raise WriteError(f"Output file already exists: {output_path}") from exc
        except OSError as exc:
            raise WriteError(f"Cannot write {output_path}: {exc.strerror or exc}") from exc

    def _remove_source(self, source: Path) -> None:
        try:
            source.unlink()
        except OSError as exc:
            raise DeleteError(f"Converted, but could not remove {source}: {exc.strerror or exc}") from exc

    def run(
        self,
        request: ConversionRequest,
        *,
        on_outcome: OutcomeCallback | None = None,
    ) -> BatchConversionResult:
        items = [BatchItem(source_path=path, index=i) for i, path in enumerate(request.sources)]
        callback = on_outcome or (lambda _: None)
        summary = BatchSummary()
        outcomes: list[ConversionOutcome] = []

        for outcome in self._dispatch(items, request):
            outcomes.append(outcome)
            summary.record(outcome.status, outcome.error_code, outcome.source_bytes, outcome.output_bytes)
            self._append_log(outcome, request.quality, summary)
            callback(outcome)

        outcomes.sort(key=lambda outcome: outcome.index)
        return BatchConversionResult(outcomes=outcomes, summary=summary)

    def _dispatch(self, items: Sequence[BatchItem], request: ConversionRequest):
        if not items:
            return
        if request.parallelism == 1 or len(items) == 1:
            for item in items:
                yield self._process_item(item, request)
            return
        with concurrent.futures.ThreadPoolExecutor(max_workers=request.parallelism) as executor:
            futures = [executor.submit(self._process_item, item, request) for item in items]
            for future in concurrent.futures.as_completed(futures):
                yield future.result()

    def _process_item(self, item: BatchItem, request: ConversionRequest) -> ConversionOutcome:
        try:
            return self._convert_item(item, request)
        except Exception as exc:  # noqa: BLE001 - one item must not sink the batch
            error = ConversionError(f"Unexpected failure: {exc}", code="INTERNAL")
            return ConversionOutcome(
                source_path=item.source_path,
                index=item.index,
                error=error,
                source_bytes=file_size(item.source_path),
            )

    def _convert_item(self, item: BatchItem, request: ConversionRequest) -> ConversionOutcome:
        output_path = derive_output_path(
            item.source_path,
            request.output_base_name,
            item.index,
            request.batch_size,
            self._codec.extension,
        )
        return self.convert_file(
            item.source_path,
            output_path,
            keep_original=request.keep_original,
            quality=request.quality,
            index=item.index,
        )

    def _append_log(self, outcome: ConversionOutcome, quality: float, summary: BatchSummary) -> None:
        if self._logger is None:
            return
        entry = RunLogEntry(
            source=str(outcome.source_path),
            status=outcome.status,
            error_code=outcome.error_code,
            error_message=str(outcome.error) if outcome.error is not None else None,
            output_path=str(outcome.output_path) if outcome.output_path else None,
            quality=quality,
            source_bytes=outcome.source_bytes,
            output_bytes=outcome.output_bytes,
            timings=outcome.timings,
        )
        try:
            self._logger.append(entry)
        except OSError as exc:
            summary.log_errors.append(f"Could not log {outcome.source_path} to {self._logger.path}: {exc}")


__all__ = [
    "ConversionService",
    "OutcomeCallback",
]
