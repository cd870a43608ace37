"""CLI entry point.

`version-updater run -c config.yaml -o versions.json` resolves every
configured service and writes the result map.
"""

from __future__ import annotations

import asyncio
import signal
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.markup import escape

from adapters.config_loader import load_config
from adapters.credentials import EnvCredentialResolver
from adapters.result_exporter import OutputFormat, export_result_map
from cli import doctor
from cli.ui_components import build_omitted_panel, build_results_table
from core import __version__
from core.config import AppSettings
from core.domain.models import ServiceSpec
from core.domain.results import ErrorResult, ResultMap
from core.errors import ConfigurationError
from core.logging_setup import configure_logging
from core.services.orchestrator import PipelineOrchestrator

EXIT_CONFIG_ERROR = 1
EXIT_INTERRUPTED = 130

app = typer.Typer(
    no_args_is_help=True,
    help="Resolve the latest release of each service and validate its container image tag.",
)
app.add_typer(doctor.app, name="doctor")

_console = Console(stderr=True)
logger = structlog.get_logger(__name__)


def _version_callback(value: bool) -> None:
    if value:
        typer.echo(__version__)
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        callback=_version_callback,
        is_eager=True,
        help="Show the version and exit.",
    ),
) -> None:
    """version-updater"""


async def _run_with_signals(orchestrator: PipelineOrchestrator, specs: Sequence[ServiceSpec]) -> ResultMap:
    loop = asyncio.get_running_loop()
    installed: list[signal.Signals] = []
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, orchestrator.cancel)
            installed.append(sig)
        except (NotImplementedError, RuntimeError, ValueError):
            # Not supported on this platform/thread; Ctrl+C then aborts without output.
            pass
    try:
        return await orchestrator.run(specs)
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def _report_unresolved(result_map: ResultMap) -> None:
    unresolved = result_map.unresolved()
    if not unresolved:
        return
    logger.warning("services_unresolved", count=len(unresolved))
    for name, result in unresolved.items():
        detail = result.message if isinstance(result, ErrorResult) else result.status
        logger.warning("service_unresolved", service=name, detail=detail)


@app.command("run")
def run_command(
    config: Path = typer.Option(Path("config.yaml"), "--config", "-c", help="Config file path."),
    output: Path = typer.Option(..., "--output", "-o", help="Output file path (`-` for stdout)."),
    fmt: OutputFormat = typer.Option(OutputFormat.JSON, "--format", "-f", case_sensitive=False, help="Output format."),
    concurrency: Optional[int] = typer.Option(None, "--concurrency", min=1, max=64, help="Pipelines in flight."),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING or ERROR."),
    log_json: Optional[bool] = typer.Option(None, "--log-json/--no-log-json", help="JSON log lines on stderr."),
    quiet: bool = typer.Option(False, "--quiet", "-q", help="Do not print the summary table."),
) -> None:
    """Resolve versions for every configured service and write the result map."""

    settings = AppSettings()
    configure_logging(
        log_level or settings.log_level,
        json_logs=settings.log_json if log_json is None else log_json,
    )

    try:
        config_model = load_config(config)
        specs = config_model.service_specs()
        orchestrator = PipelineOrchestrator(
            settings=settings,
            resolver=EnvCredentialResolver(settings),
            github_authenticate=config_model.github_authenticate,
            max_concurrency=concurrency,
        )
        result_map = asyncio.run(_run_with_signals(orchestrator, specs))
    except ConfigurationError as exc:
        _console.print(f"[red]Configuration error:[/red] {escape(str(exc))}")
        raise typer.Exit(code=EXIT_CONFIG_ERROR)
    except KeyboardInterrupt:
        _console.print("[yellow]Interrupted before any result was collected.[/yellow]")
        raise typer.Exit(code=EXIT_INTERRUPTED)

    export_result_map(result_map=result_map, output_path=output, fmt=fmt)
    logger.info("output_written", path=str(output), format=fmt.value)

    if not quiet:
        _console.print(build_results_table(result_map))
    _report_unresolved(result_map)

    if not result_map.complete:
        _console.print(build_omitted_panel(result_map))
        raise typer.Exit(code=EXIT_INTERRUPTED)


def run() -> None:
    # Windows terminals/CI default to cp1252.
    if sys.platform == "win32":
        sys.stdout.reconfigure(encoding="utf-8")
        sys.stderr.reconfigure(encoding="utf-8")
    app()


if __name__ == "__main__":
    run()
