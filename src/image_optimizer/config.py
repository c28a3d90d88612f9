from __future__ import annotations

import json
import math
import os
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

from .errors import ConfigError
from .models import ConversionRequest
from .settings import get_settings
from .utils import expand_inputs

MIN_QUALITY = 1.0
MAX_QUALITY = 100.0
DEFAULT_QUALITY = 75.0


@dataclass(slots=True)
class EncoderConfig:
    method: int = 4


@dataclass(slots=True)
class RuntimeConfig:
    parallelism: int = 0
    default_quality: float = DEFAULT_QUALITY
    keep_original: bool = False
    log_file: Path | None = None

    @property
    def effective_parallelism(self) -> int:
        if self.parallelism > 0:
            return self.parallelism
        return os.cpu_count() or 1


@dataclass(slots=True)
class AppConfig:
    runtime: RuntimeConfig = field(default_factory=RuntimeConfig)
    encoder: EncoderConfig = field(default_factory=EncoderConfig)


def _read_toml(path: Path) -> Mapping[str, object]:
    if not path.exists():
        return {}
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except tomllib.TOMLDecodeError as exc:
        raise ConfigError(f"Invalid config file {path}: {exc}") from exc


def _build_runtime(data: Mapping[str, object] | None) -> RuntimeConfig:
    if not data:
        return RuntimeConfig()
    log_file = str(data.get("log_file", "") or "")
    try:
        return RuntimeConfig(
            parallelism=int(data.get("parallelism", 0)),
            default_quality=float(data.get("default_quality", DEFAULT_QUALITY)),
            keep_original=bool(data.get("keep_original", False)),
            log_file=Path(log_file) if log_file else None,
        )
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid [runtime] configuration: {exc}") from exc


def _build_encoder(data: Mapping[str, object] | None) -> EncoderConfig:
    if not data:
        return EncoderConfig()
    try:
        method = int(data.get("method", 4))
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid [encoder] configuration: {exc}") from exc
    if not 0 <= method <= 6:
        raise ConfigError(f"Encoder method must be between 0 and 6, got {method}")
    return EncoderConfig(method=method)


def load_config(path: Path | None = None) -> AppConfig:
    path = path or get_settings().config_path
    raw = _read_toml(path)
    runtime_data = raw.get("runtime")
    encoder_data = raw.get("encoder")
    runtime = _build_runtime(runtime_data if isinstance(runtime_data, Mapping) else None)
    encoder = _build_encoder(encoder_data if isinstance(encoder_data, Mapping) else None)
    return AppConfig(runtime=runtime, encoder=encoder)


def dump_config(config: AppConfig) -> str:
    payload = {
        "runtime": {
            "parallelism": config.runtime.parallelism,
            "effective_parallelism": config.runtime.effective_parallelism,
            "default_quality": config.runtime.default_quality,
            "keep_original": config.runtime.keep_original,
            "log_file": str(config.runtime.log_file) if config.runtime.log_file else "",
        },
        "encoder": {
            "method": config.encoder.method,
        },
    }
    return json.dumps(payload, indent=2)


def validate_quality(value: object) -> float:
    try:
        quality = float(value)  # type: ignore[arg-type]
    except (TypeError, ValueError) as exc:
        raise ConfigError(f"Invalid value for quality: {value!r}. It must be a number.") from exc
    if math.isnan(quality) or not MIN_QUALITY <= quality <= MAX_QUALITY:
        raise ConfigError("Quality must be a number between 1 and 100.")
    return quality


def validate_output_name(value: str | None) -> str | None:
    if value is None:
        return None
    name = value.strip()
    if not name:
        raise ConfigError("Output name must not be empty.")
    if any(sep in name for sep in ("/", "\\", os.sep)) or name in {".", ".."}:
        raise ConfigError(f"Output name must be a bare file name, got {value!r}.")
    return name


def resolve_sources(files: Iterable[str | Path]) -> tuple[Path, ...]:
    sources: list[Path] = []
    seen: dict[Path, str] = {}
    for raw, paths in expand_inputs(files):
        if not paths:
            raise ConfigError(f"No files match {raw!r}.")
        for path in paths:
            if not path.exists():
                raise ConfigError(f"Input file not found: {path}")
            if not path.is_file():
                raise ConfigError(f"Input is not a file: {path}")
            key = path.resolve()
            if key in seen:
                raise ConfigError(f"Input {path} is given more than once (via {seen[key]!r} and {raw!r}).")
            seen[key] = raw
            sources.append(path)
    if not sources:
        raise ConfigError("No input files given.")
    return tuple(sources)


def validate_log_file(path: Path | None) -> Path | None:
    if path is None:
        return None
    if path.exists():
        if not path.is_file():
            raise ConfigError(f"Log file is not a regular file: {path}")
        if not os.access(path, os.W_OK):
            raise ConfigError(f"Log file is not writable: {path}")
        return path
    parent = path.parent
    while not parent.exists():
        parent = parent.parent
    if not parent.is_dir() or not os.access(parent, os.W_OK | os.X_OK):
        raise ConfigError(f"Cannot create log file under {parent}")
    return path


def build_request(
    files: Iterable[str | Path] | None,
    *,
    output: str | None = None,
    keep_original: bool | None = None,
    quality: object | None = None,
    parallelism: int | None = None,
    config: AppConfig | None = None,
) -> ConversionRequest:
    """Validate everything up front and freeze it into a request.

    Unset options fall back to the config file. Raises ``ConfigError`` on
    the first problem found; nothing has been touched on disk at that point.
    """

    cfg = config or AppConfig()
    sources = resolve_sources(files or ())
    validate_log_file(cfg.runtime.log_file)
    resolved_quality = validate_quality(cfg.runtime.default_quality if quality is None else quality)
    workers = cfg.runtime.effective_parallelism if parallelism is None else parallelism
    if workers < 1:
        raise ConfigError(f"Parallelism must be at least 1, got {workers}.")
    return ConversionRequest(
        sources=sources,
        output_base_name=validate_output_name(output),
        keep_original=cfg.runtime.keep_original if keep_original is None else keep_original,
        quality=resolved_quality,
        parallelism=min(workers, len(sources)),
    )


__all__ = [
    "AppConfig",
    "EncoderConfig",
    "RuntimeConfig",
    "build_request",
    "dump_config",
    "load_config",
    "resolve_sources",
    "validate_log_file",
    "validate_output_name",
    "validate_quality",
]
