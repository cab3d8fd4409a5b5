"""
fastcheck CLI utilities.

Shared helpers used across CLI commands: version information, logging setup,
option merging and result printing.
"""

import logging
import platform
import sys
from dataclasses import dataclass

import typer
from rich.console import Console

from fastcheck._version import get_version
from fastcheck.core.config import ToolSettings
from fastcheck.core.formatters import format_result, format_tool_error, render_human
from fastcheck.core.models import CheckResult, OutputFormat

console = Console(soft_wrap=True)
err_console = Console(stderr=True, soft_wrap=True)

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def version_callback(value: bool) -> None:
    """Display version and environment information."""
    if value:
        try:
            from importlib.metadata import version

            mypy_version = version("mypy")
        except Exception:
            mypy_version = "not installed"

        typer.echo(f"fastcheck version {get_version()}")
        typer.echo("")
        typer.echo("Environment:")
        typer.echo(f"  Python:        {platform.python_implementation()} {platform.python_version()}")
        typer.echo(f"  Platform:      {platform.system()} {platform.release()}")
        typer.echo(f"  mypy:          {mypy_version}")

        raise typer.Exit()


def setup_logging(verbose: bool) -> None:
    """Send log records to stderr; stdout is reserved for results."""
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=LOG_FORMAT,
        stream=sys.stderr,
    )
    logging.getLogger("fastcheck").setLevel(logging.DEBUG if verbose else logging.WARNING)


@dataclass(frozen=True)
class RunOptions:
    """CLI flags merged over [tool.fastcheck] settings."""

    output: OutputFormat
    quiet: bool
    metrics: bool
    no_cache: bool
    debounce_ms: int
    poll_interval: float


def merge_options(
    settings: ToolSettings,
    output: OutputFormat | None = None,
    quiet: bool = False,
    metrics: bool = False,
    no_cache: bool = False,
    debounce_ms: int | None = None,
    poll_interval: float | None = None,
) -> RunOptions:
    return RunOptions(
        output=output or settings.output,
        quiet=quiet or settings.quiet,
        metrics=metrics or settings.metrics,
        no_cache=no_cache or settings.no_cache,
        debounce_ms=debounce_ms if debounce_ms is not None else settings.debounce_ms,
        poll_interval=poll_interval if poll_interval is not None else settings.poll_interval,
    )


def print_result(result: CheckResult, output: OutputFormat, show_metrics: bool) -> None:
    if output == OutputFormat.HUMAN:
        console.print(render_human(result, show_metrics))
    else:
        typer.echo(format_result(result, output, show_metrics))


def print_tool_error(message: str, output: OutputFormat) -> None:
    typer.echo(format_tool_error(message, output), err=True)
