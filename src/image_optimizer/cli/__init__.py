from __future__ import annotations

from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .. import __version__
from ..config import AppConfig, build_request, dump_config, load_config
from ..core import ConversionService
from ..errors import ConfigError
from ..models import BatchConversionResult, ConversionOutcome
from ..utils import format_bytes

console = Console()
err_console = Console(stderr=True)

app = typer.Typer(
    help="Convert images to WebP in parallel.",
    context_settings={"help_option_names": ["-h", "--help"]},
    no_args_is_help=True,
)


def _load_config(path: Path | None) -> AppConfig:
    try:
        return load_config(path)
    except ConfigError as exc:
        err_console.print(f"[red]Error[/red]: {escape(str(exc))}")
        raise typer.Exit(1) from exc


def _version_callback(value: bool) -> None:
    if value:
        console.print(f"imgopt version {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit",
    ),
) -> None:
    """Batch image-to-WebP optimizer."""


def report_outcome(outcome: ConversionOutcome) -> None:
    source = escape(str(outcome.source_path))
    if outcome.status == "failure":
        console.print(f"[red]Error processing {source}[/red]: {escape(str(outcome.error))}", soft_wrap=True)
        return
    console.print(f"[green]Processed[/green]: {escape(str(outcome.output_path))}", soft_wrap=True)
    if outcome.status == "partial":
        console.print(f"[yellow]Warning[/yellow]: {escape(str(outcome.error))}", soft_wrap=True)


def report_summary(result: BatchConversionResult, *, table: bool) -> None:
    summary = result.summary
    for message in summary.log_errors:
        console.print(f"[yellow]Warning[/yellow]: {escape(message)}", soft_wrap=True)
    if table:
        grid = Table(title="Batch summary")
        grid.add_column("Source")
        grid.add_column("Output")
        grid.add_column("Before", justify="right")
        grid.add_column("After", justify="right")
        grid.add_column("Status")
        for outcome in result.outcomes:
            grid.add_row(
                str(outcome.source_path),
                str(outcome.output_path or "-"),
                format_bytes(outcome.source_bytes),
                format_bytes(outcome.output_bytes) if outcome.ok else "-",
                outcome.error_code or outcome.status,
            )
        console.print(grid)
    console.print(
        f"Processed {summary.total} files: {summary.successes} succeeded, "
        f"{summary.partial} with warnings, {summary.failures} failed. "
        f"Saved {format_bytes(summary.saved_bytes)}.",
        soft_wrap=True,
    )


@app.command()
def convert(
    files: list[Path] | None = typer.Argument(None, help="Images or glob patterns to convert"),
    output: str | None = typer.Option(None, "--output", "-o", help="Base name for the output file(s)"),
    keep_original: bool = typer.Option(False, "--keep-original", "-k", help="Keep the source files after conversion"),
    quality: float | None = typer.Option(None, "--quality", "-q", help="WebP quality (1-100), default 75"),
    parallel: int | None = typer.Option(None, "--parallel", "-j", help="Parallel workers"),
    summary: bool = typer.Option(False, "--summary", help="Print a per-file size table"),
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Convert FILES to WebP beside their sources."""

    cfg = _load_config(config)
    try:
        request = build_request(
            files,
            output=output,
            keep_original=True if keep_original else None,
            quality=quality,
            parallelism=parallel,
            config=cfg,
        )
    except ConfigError as exc:
        err_console.print(f"[red]Error[/red]: {escape(str(exc))}")
        raise typer.Exit(1) from exc

    service = ConversionService(cfg)
    result = service.run(request, on_outcome=report_outcome)
    report_summary(result, table=summary)


@app.command("show-config")
def show_config(
    config: Path | None = typer.Option(None, "--config", help="Path to config.toml"),
) -> None:
    """Print the effective configuration as JSON."""

    console.print_json(dump_config(_load_config(config)))


__all__ = ["app", "report_outcome", "report_summary"]
