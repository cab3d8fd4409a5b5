"""
Value objects shared by the session, query and watch layers.

- FileSnapshot: a file's text at a given version
- CheckRequest: SingleFile | ChangedSet | WholeProject
- DiagnosticRecord / CheckMetrics / CheckResult: the stable external result
- WatchEvent: one settled watch cycle
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


@dataclass(frozen=True)
class FileSnapshot:
    """Immutable text of one file at one version."""

    path: str
    version: int
    content: str


# =============================================================================
# Check Requests
# =============================================================================


@dataclass(frozen=True)
class SingleFile:
    """Check one file."""

    path: str


@dataclass(frozen=True)
class ChangedSet:
    """Check an explicit set of changed files."""

    paths: tuple[str, ...]


@dataclass(frozen=True)
class WholeProject:
    """Check every file in the program."""


CheckRequest = SingleFile | ChangedSet | WholeProject


# =============================================================================
# Results
# =============================================================================


class OutputFormat(StrEnum):
    """Presentation of a CheckResult."""

    JSON = "json"
    HUMAN = "human"
    MARKDOWN = "markdown"


class Severity(StrEnum):
    """Severity of a reported diagnostic."""

    ERROR = "error"
    WARNING = "warning"


class DiagnosticRecord(BaseModel):
    """A single diagnostic in the shape consumers rely on."""

    file: str = Field(..., description="Path relative to the project root")
    line: int = Field(..., ge=1, description="1-based line")
    column: int = Field(..., ge=1, description="1-based column")
    code: str = Field(..., min_length=1, description="Compiler-defined error code")
    message: str
    severity: Severity

    model_config = ConfigDict(frozen=True)


class CheckMetrics(BaseModel):
    """Timing and size of one query."""

    check_time_ms: int = Field(..., alias="checkTime")
    files_checked: int = Field(..., alias="filesChecked")
    total_errors: int = Field(..., alias="totalErrors")

    model_config = ConfigDict(frozen=True, populate_by_name=True)


class CheckResult(BaseModel):
    """Errors of one query, grouped by file in first-seen order."""

    errors: list[DiagnosticRecord] = Field(default_factory=list)
    metrics: CheckMetrics | None = None

    @property
    def has_errors(self) -> bool:
        return bool(self.errors)

    def to_dict(self, include_metrics: bool = True) -> dict[str, Any]:
        """Serialize to the JSON contract (metrics keys in camelCase)."""
        data = self.model_dump(mode="json", by_alias=True, exclude_none=True)
        if not include_metrics:
            data.pop("metrics", None)
        return data


class WatchEvent(BaseModel):
    """Externally observable output of one settled watch cycle."""

    kind: Literal["check"] = Field(default="check", alias="event")
    timestamp: int = Field(..., description="Epoch milliseconds")
    result: CheckResult

    model_config = ConfigDict(populate_by_name=True)

    def to_dict(self, include_metrics: bool = True) -> dict[str, Any]:
        return {
            "event": self.kind,
            "timestamp": self.timestamp,
            "result": self.result.to_dict(include_metrics=include_metrics),
        }
