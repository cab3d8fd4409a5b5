"""
Query engine.

Three check modes on top of one SessionHost:

- check_file: one file, refreshed from disk first
- check_changed_files / check_paths: the changed set, refreshed together
- check_all: every diagnostic of the program

Raw compiler diagnostics are normalized into DiagnosticRecords: relative
paths, 1-based positions, flattened messages. Order is the compiler's own,
grouped by file in first-seen order and never re-sorted.
"""

from __future__ import annotations

import logging
import os
import time
from collections.abc import Iterable
from pathlib import Path

from .changes import ChangeResolver, GitChangeResolver
from .errors import OutOfProjectScope, SourceNotFoundError
from .host import SessionHost, StatusCallback
from .models import (
    ChangedSet,
    CheckMetrics,
    CheckRequest,
    CheckResult,
    DiagnosticRecord,
    Severity,
    SingleFile,
    WholeProject,
)
from .toolchain import DiagnosticCategory, Program, RawDiagnostic, Toolchain

logger = logging.getLogger(__name__)

# Path fragments marking dependency, stub-distribution and stdlib files
LIBRARY_MARKERS = ("site-packages", "dist-packages", "typeshed", "node_modules")
DECLARATION_SUFFIX = ".pyi"


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


def to_records(diagnostics: Iterable[RawDiagnostic], project_root: Path) -> list[DiagnosticRecord]:
    """
    Normalize raw diagnostics.

    Diagnostics without a file are dropped, as are informational messages.
    Records are grouped by file in the order files are first encountered;
    within a file the compiler order is kept.
    """
    by_file: dict[str, list[DiagnosticRecord]] = {}
    for diagnostic in diagnostics:
        if diagnostic.file is None:
            continue
        if diagnostic.category is DiagnosticCategory.MESSAGE:
            continue
        relative = Path(os.path.relpath(diagnostic.file, project_root)).as_posix()
        by_file.setdefault(relative, []).append(
            DiagnosticRecord(
                file=relative,
                line=diagnostic.line + 1,
                column=diagnostic.column + 1,
                code=diagnostic.code,
                message=diagnostic.flatten_message("\n"),
                severity=(
                    Severity.WARNING
                    if diagnostic.category is DiagnosticCategory.WARNING
                    else Severity.ERROR
                ),
            )
        )
    return [record for records in by_file.values() for record in records]


def is_user_source(path: str, project_root: Path) -> bool:
    """True for project-owned source files, False for library and stub files."""
    if any(marker in path for marker in LIBRARY_MARKERS):
        return False
    if path.endswith(DECLARATION_SUFFIX):
        return False
    return path.startswith(str(project_root).rstrip(os.sep) + os.sep)


class FastChecker:
    """Runs check queries against one live session."""

    def __init__(
        self,
        project_root: Path | str = ".",
        *,
        host: SessionHost | None = None,
        resolver: ChangeResolver | None = None,
        toolchain: Toolchain | None = None,
        no_cache: bool = False,
        collect_metrics: bool = True,
        on_status: StatusCallback | None = None,
    ):
        self.host = host or SessionHost(
            project_root, toolchain=toolchain, no_cache=no_cache, on_status=on_status
        )
        self.project_root = self.host.project_root
        self.resolver = resolver or GitChangeResolver(
            self.project_root, extensions=self.host.config.settings.extensions
        )
        self.collect_metrics = collect_metrics

    def _result(self, errors: list[DiagnosticRecord], start: float, files_checked: int) -> CheckResult:
        metrics = None
        if self.collect_metrics:
            metrics = CheckMetrics(
                check_time_ms=_elapsed_ms(start),
                files_checked=files_checked,
                total_errors=len(errors),
            )
        return CheckResult(errors=errors, metrics=metrics)

    def _file_records(self, program: Program, path: str) -> list[DiagnosticRecord]:
        diagnostics = [
            *program.syntactic_diagnostics(path),
            *program.semantic_diagnostics(path),
        ]
        return to_records(diagnostics, self.project_root)

    def is_root_file(self, file_path: Path | str) -> bool:
        """True when the file is one of the program's root files."""
        return self.host.resolve(file_path) in self.host.script_file_names()

    def check_file(self, file_path: Path | str) -> CheckResult:
        """
        Check one file.

        Raises:
            SourceNotFoundError: the file does not exist
            OutOfProjectScope: the file is not part of the program
        """
        start = time.perf_counter()
        path = self.host.resolve(file_path)
        if not os.path.isfile(path):
            raise SourceNotFoundError("File not found", path)

        self.host.refresh_file(path)
        errors = self._file_records(self.host.get_program(), path)
        logger.debug("Checked %s: %d diagnostic(s)", path, len(errors))
        return self._result(errors, start, files_checked=1)

    def check_paths(self, paths: Iterable[Path | str]) -> CheckResult:
        """
        Check a set of changed files against one program build.

        Every file is refreshed before the program is built, so all of them
        are checked against the same state. Missing files and files outside
        the program are skipped; each path is checked at most once.
        """
        start = time.perf_counter()
        candidates = [
            path
            for path in dict.fromkeys(self.host.resolve(p) for p in paths)
            if os.path.isfile(path)
        ]
        for path in candidates:
            self.host.refresh_file(path)

        errors: list[DiagnosticRecord] = []
        checked = 0
        if not candidates:
            return self._result(errors, start, files_checked=0)

        program = self.host.get_program()
        for path in candidates:
            try:
                errors.extend(self._file_records(program, path))
            except OutOfProjectScope:
                logger.debug("Skipping %s (not part of the program)", path)
                continue
            checked += 1
        logger.debug("Checked %d changed file(s): %d diagnostic(s)", checked, len(errors))
        return self._result(errors, start, files_checked=checked)

    def check_changed_files(self) -> CheckResult:
        """
        Check every source file git reports as changed.

        Raises:
            NotAVersionControlledProjectError: git status unavailable
        """
        return self.check_paths(self.resolver.changed_files())

    def check_all(self) -> CheckResult:
        """Check the whole program as it currently stands in the session."""
        start = time.perf_counter()
        program = self.host.get_program()
        errors = to_records(program.pre_emit_diagnostics(), self.project_root)
        user_files = [f for f in program.source_files() if is_user_source(f, self.project_root)]
        logger.debug("Checked project: %d file(s), %d diagnostic(s)", len(user_files), len(errors))
        return self._result(errors, start, files_checked=len(user_files))

    def run(self, request: CheckRequest) -> CheckResult:
        """Execute a CheckRequest."""
        if isinstance(request, SingleFile):
            return self.check_file(request.path)
        if isinstance(request, ChangedSet):
            return self.check_paths(request.paths)
        if isinstance(request, WholeProject):
            return self.check_all()
        raise TypeError(f"Unknown check request: {request!r}")
