"""
fastcheck - incremental type checking for Python projects.

Keeps one mypy session warm per project and answers check queries against
it: a single file, the git changed set, the whole project, or continuously
in watch mode.
"""

from __future__ import annotations

from ._version import get_version
from .core.checker import FastChecker
from .core.errors import (
    ConfigurationError,
    FastcheckError,
    NotAVersionControlledProjectError,
    OutOfProjectScope,
    SourceNotFoundError,
)
from .core.models import CheckMetrics, CheckResult, DiagnosticRecord, OutputFormat, Severity

__version__ = get_version()

__all__ = [
    "__version__",
    "FastChecker",
    "CheckResult",
    "CheckMetrics",
    "DiagnosticRecord",
    "OutputFormat",
    "Severity",
    # Errors
    "FastcheckError",
    "ConfigurationError",
    "SourceNotFoundError",
    "NotAVersionControlledProjectError",
    "OutOfProjectScope",
]
