"""
Output formatters for check results.

- json: the stable machine contract
- human: rich-coloured terminal output
- markdown: for pasting into issues or agent transcripts
"""

import json
from collections.abc import Iterable

from rich.text import Text

from .models import CheckResult, DiagnosticRecord, OutputFormat, Severity, WatchEvent


def group_by_file(errors: Iterable[DiagnosticRecord]) -> dict[str, list[DiagnosticRecord]]:
    """Group records by file, keeping first-seen file order."""
    grouped: dict[str, list[DiagnosticRecord]] = {}
    for error in errors:
        grouped.setdefault(error.file, []).append(error)
    return grouped


def _plural(count: int) -> str:
    return "" if count == 1 else "s"


def format_json(result: CheckResult, show_metrics: bool = False) -> str:
    return json.dumps(result.to_dict(include_metrics=show_metrics), indent=2)


def format_markdown(result: CheckResult, show_metrics: bool = False) -> str:
    lines: list[str] = []

    if not result.errors:
        lines.append("## ✓ No type errors found")
    else:
        lines.append(f"## Type Errors ({len(result.errors)})")
        lines.append("")
        for file, errors in group_by_file(result.errors).items():
            lines.append(f"### {file}")
            lines.append("")
            for error in errors:
                lines.append(
                    f"- **Line {error.line}, Column {error.column}** ({error.code}): {error.message}"
                )
            lines.append("")

    if show_metrics and result.metrics:
        lines.append("")
        lines.append("---")
        lines.append(
            f"*Checked {result.metrics.files_checked} file(s) in {result.metrics.check_time_ms}ms*"
        )

    return "\n".join(lines).strip()


def render_human(result: CheckResult, show_metrics: bool = False) -> Text:
    """Build the coloured terminal rendering of a result."""
    text = Text()

    if not result.errors:
        text.append("✓ No type errors found", style="green")
    else:
        count = len(result.errors)
        text.append(f"Found {count} type error{_plural(count)}:\n\n", style="bold red")
        for file, errors in group_by_file(result.errors).items():
            text.append(file, style="underline")
            text.append("\n")
            for error in errors:
                style = "red" if error.severity == Severity.ERROR else "yellow"
                text.append(f"  {error.line}:{error.column} {error.code} {error.message}", style=style)
                text.append("\n")
            text.append("\n")

    if show_metrics and result.metrics:
        text.append(
            f"\nChecked {result.metrics.files_checked} file(s) in {result.metrics.check_time_ms}ms",
            style="bright_black",
        )

    text.rstrip()
    return text


def format_result(result: CheckResult, output: OutputFormat, show_metrics: bool = False) -> str:
    """Plain-text rendering in any format (human output without colour)."""
    if output == OutputFormat.JSON:
        return format_json(result, show_metrics)
    if output == OutputFormat.MARKDOWN:
        return format_markdown(result, show_metrics)
    return render_human(result, show_metrics).plain


def format_watch_event(event: WatchEvent, show_metrics: bool = False) -> str:
    """One compact JSON line per watch cycle."""
    return json.dumps(event.to_dict(include_metrics=show_metrics), separators=(",", ":"))


def format_tool_error(message: str, output: OutputFormat) -> str:
    if output == OutputFormat.JSON:
        return json.dumps({"error": message}, indent=2)
    return f"Error: {message}"
