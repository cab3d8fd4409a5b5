"""
fastcheck CLI.

Registers the check commands on one typer app:

- check FILE: one file
- check-changed: files git reports as changed
- check-all: the whole project
- watch: re-check on every settled burst of file changes
"""

import sys

import typer

from fastcheck.cli.utils import get_version, setup_logging, version_callback

app = typer.Typer(
    help="""fastcheck – incremental type checking on a warm mypy session

Every command operates on a project root (--project, default: current
directory) that must carry a mypy configuration.

Exit codes: 0 no type errors, 1 type errors found, 2 tool failure.
""",
    no_args_is_help=True,
)


@app.callback()
def main_callback(
    version: bool | None = typer.Option(
        None,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and environment information",
    ),
    verbose: bool = typer.Option(False, "--verbose", "-V", help="Debug logging on stderr"),
) -> None:
    """fastcheck CLI main callback for global options."""
    setup_logging(verbose)


# =============================================================================
# Check Commands (imported from cli.commands)
# =============================================================================
from fastcheck.cli.commands import (  # noqa: E402
    check_all_command,
    check_changed_command,
    check_command,
    watch_command,
)

app.command(name="check")(check_command)
app.command(name="check-changed")(check_changed_command)
app.command(name="check-all")(check_all_command)
app.command(name="watch")(watch_command)


def main(argv: list[str] | None = None) -> None:
    app(args=argv, standalone_mode=True)


__all__ = ["app", "main", "get_version", "version_callback"]


if __name__ == "__main__":
    main(sys.argv[1:])
