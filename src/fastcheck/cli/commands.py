"""
Check commands.

Commands for checking one file, the git changed set, the whole project, or
watching the project continuously.

Exit codes:
    0  no diagnostics
    1  diagnostics found
    2  tool failure (missing file, bad configuration, no git, ...)
"""

import logging
import threading
from collections.abc import Callable
from pathlib import Path
from typing import Any

import typer

from fastcheck.cli.utils import (
    RunOptions,
    err_console,
    merge_options,
    print_result,
    print_tool_error,
)
from fastcheck.core.checker import FastChecker
from fastcheck.core.config import load_project_config
from fastcheck.core.errors import FastcheckError
from fastcheck.core.formatters import format_watch_event
from fastcheck.core.host import SessionHost
from fastcheck.core.models import CheckResult, OutputFormat, WatchEvent
from fastcheck.core.watch import WatchSession

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_DIAGNOSTICS = 1
EXIT_TOOL_ERROR = 2

# Shared options
PROJECT_OPTION = typer.Option(
    Path("."), "--project", "-p", help="Project root (directory with the mypy configuration)"
)
OUTPUT_OPTION = typer.Option(
    None, "--output", "-o", help="Output format: json, human or markdown", case_sensitive=False
)
QUIET_OPTION = typer.Option(False, "--quiet", "-q", help="Only output when errors are found")
METRICS_OPTION = typer.Option(False, "--metrics", "-m", help="Include performance metrics")
NO_CACHE_OPTION = typer.Option(False, "--no-cache", help="Re-read every file and rebuild on every check")


def _open_checker(project: Path, **flags: Any) -> tuple[FastChecker, RunOptions]:
    config = load_project_config(project)
    opts = merge_options(config.settings, **flags)
    host = SessionHost(config.root, config=config, no_cache=opts.no_cache)
    return FastChecker(host=host, collect_metrics=opts.metrics), opts


def _run_query(
    project: Path,
    query: Callable[[FastChecker], CheckResult],
    output: OutputFormat | None,
    quiet: bool,
    metrics: bool,
    no_cache: bool,
) -> None:
    error_format = output or OutputFormat.HUMAN
    try:
        checker, opts = _open_checker(
            project, output=output, quiet=quiet, metrics=metrics, no_cache=no_cache
        )
        error_format = opts.output
        result = query(checker)
    except FastcheckError as e:
        print_tool_error(str(e), error_format)
        raise typer.Exit(code=EXIT_TOOL_ERROR)
    except Exception as e:
        logger.debug("Check failed", exc_info=True)
        print_tool_error(f"Check failed: {e}", error_format)
        raise typer.Exit(code=EXIT_TOOL_ERROR)

    if not opts.quiet or result.errors:
        print_result(result, opts.output, opts.metrics)

    raise typer.Exit(code=EXIT_DIAGNOSTICS if result.errors else EXIT_OK)


def check_command(
    file: Path = typer.Argument(..., help="File to check, relative to the project root"),
    project: Path = PROJECT_OPTION,
    output: OutputFormat | None = OUTPUT_OPTION,
    quiet: bool = QUIET_OPTION,
    metrics: bool = METRICS_OPTION,
    no_cache: bool = NO_CACHE_OPTION,
) -> None:
    """
    Check a single file.
    """
    _run_query(project, lambda checker: checker.check_file(file), output, quiet, metrics, no_cache)


def check_changed_command(
    project: Path = PROJECT_OPTION,
    output: OutputFormat | None = OUTPUT_OPTION,
    quiet: bool = QUIET_OPTION,
    metrics: bool = METRICS_OPTION,
    no_cache: bool = NO_CACHE_OPTION,
) -> None:
    """
    Check all changed files (according to git).
    """
    _run_query(project, lambda checker: checker.check_changed_files(), output, quiet, metrics, no_cache)


def check_all_command(
    project: Path = PROJECT_OPTION,
    output: OutputFormat | None = OUTPUT_OPTION,
    quiet: bool = QUIET_OPTION,
    metrics: bool = METRICS_OPTION,
    no_cache: bool = NO_CACHE_OPTION,
) -> None:
    """
    Check all files in the project.
    """
    _run_query(project, lambda checker: checker.check_all(), output, quiet, metrics, no_cache)


def watch_command(
    project: Path = PROJECT_OPTION,
    output: OutputFormat | None = OUTPUT_OPTION,
    quiet: bool = QUIET_OPTION,
    metrics: bool = METRICS_OPTION,
    no_cache: bool = NO_CACHE_OPTION,
    debounce: int | None = typer.Option(
        None, "--debounce", min=0, help="Milliseconds of quiet before a burst of changes is checked"
    ),
    poll_interval: float | None = typer.Option(
        None, "--poll-interval", min=0.01, help="Seconds between file system scans"
    ),
    initial: bool = typer.Option(
        True, "--initial/--no-initial", help="Check the whole project when watching starts"
    ),
) -> None:
    """
    Watch for file changes and check continuously.

    In json mode every settled burst of changes prints one line:
    {"event": "check", "timestamp": ..., "result": {...}}
    """
    error_format = output or OutputFormat.HUMAN
    try:
        checker, opts = _open_checker(
            project,
            output=output,
            quiet=quiet,
            metrics=metrics,
            no_cache=no_cache,
            debounce_ms=debounce,
            poll_interval=poll_interval,
        )
    except FastcheckError as e:
        print_tool_error(str(e), error_format)
        raise typer.Exit(code=EXIT_TOOL_ERROR)

    chatty = not opts.quiet and opts.output != OutputFormat.JSON
    if chatty:
        checker.host.on_status = lambda message: err_console.print(message, style="bright_black")

    def on_event(event: WatchEvent) -> None:
        if opts.quiet and not event.result.errors:
            return
        if opts.output == OutputFormat.JSON:
            typer.echo(format_watch_event(event, opts.metrics))
        else:
            print_result(event.result, opts.output, opts.metrics)

    def on_error(error: Exception) -> None:
        print_tool_error(str(error), opts.output)

    session = WatchSession(
        checker,
        on_event,
        on_error=on_error,
        debounce_ms=opts.debounce_ms,
        poll_interval=opts.poll_interval,
        patterns=[f"*{ext}" for ext in checker.host.config.settings.extensions],
    )

    if chatty:
        err_console.print("Starting watch mode...")

    stop = threading.Event()
    try:
        session.start(initial_check=initial)
        while not stop.wait(0.5):
            pass
    except KeyboardInterrupt:
        if chatty:
            err_console.print("\nWatch mode stopped.")
    finally:
        session.stop()
