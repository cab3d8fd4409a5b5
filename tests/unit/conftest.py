"""
Fakes for unit tests.

FakeToolchain stands in for mypy: it treats every ``*.py`` file under the
project root (except ``build/``) as a root file, and derives diagnostics from
marker comments in the snapshot text it is handed:

    x = 1  # error: assignment Bad assignment
    y = 2  # warning: unused-ignore Needless ignore
    z = 3  # note: Attached to the previous diagnostic
    def f(:  # syntax
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Any

import pytest

from fastcheck.core.errors import OutOfProjectScope
from fastcheck.core.toolchain import DiagnosticCategory, RawDiagnostic

MARKER = re.compile(r"#\s*(?P<kind>error|warning|note|syntax)(?::\s*(?P<rest>.*))?$")


def diagnostics_from_markers(path: str, content: str) -> list[RawDiagnostic]:
    diagnostics: list[RawDiagnostic] = []
    for line_number, line in enumerate(content.splitlines()):
        match = MARKER.search(line)
        if match is None:
            continue
        kind = match["kind"]
        rest = (match["rest"] or "").strip()
        column = match.start()

        if kind == "syntax":
            diagnostics.append(
                RawDiagnostic(path, line_number, column, "syntax", ("invalid syntax",), syntactic=True)
            )
        elif kind == "note":
            previous = diagnostics.pop()
            diagnostics.append(
                RawDiagnostic(
                    previous.file,
                    previous.line,
                    previous.column,
                    previous.code,
                    previous.message_chain + (rest,),
                    previous.category,
                    previous.syntactic,
                )
            )
        else:
            code, _, message = rest.partition(" ")
            diagnostics.append(
                RawDiagnostic(
                    path,
                    line_number,
                    column,
                    code,
                    (message,),
                    DiagnosticCategory.ERROR if kind == "error" else DiagnosticCategory.WARNING,
                )
            )
    return diagnostics


class FakeProgram:
    def __init__(self, diagnostics: list[RawDiagnostic], files: list[str]):
        self.diagnostics = diagnostics
        self.files = files

    def contains(self, path: str) -> bool:
        return path in self.files

    def source_files(self) -> list[str]:
        return list(self.files)

    def _for(self, path: str) -> list[RawDiagnostic]:
        if path not in self.files:
            raise OutOfProjectScope("Could not find source file", path)
        return [d for d in self.diagnostics if d.file == path]

    def syntactic_diagnostics(self, path: str) -> list[RawDiagnostic]:
        return [d for d in self._for(path) if d.syntactic]

    def semantic_diagnostics(self, path: str) -> list[RawDiagnostic]:
        return [d for d in self._for(path) if not d.syntactic]

    def pre_emit_diagnostics(self) -> list[RawDiagnostic]:
        return list(self.diagnostics)


class FakeToolchain:
    name = "fake"

    def __init__(
        self,
        extra_files: list[str] | None = None,
        extra_diagnostics: list[RawDiagnostic] | None = None,
    ):
        self.extra_files = extra_files or []
        self.extra_diagnostics = extra_diagnostics or []
        self.builds = 0
        self.old_programs: list[Any] = []
        self.last_contents: dict[str, str] = {}

    def load_options(self, config: Any, *, no_cache: bool = False) -> dict[str, Any]:
        return {"no_cache": no_cache}

    def root_files(self, config: Any, options: Any) -> list[str]:
        root: Path = config.root
        return sorted(
            str(path)
            for path in root.rglob("*.py")
            if "build" not in path.relative_to(root).parts
        )

    def create_program(self, host: Any, old_program: Any = None) -> FakeProgram:
        self.builds += 1
        self.old_programs.append(old_program)

        diagnostics: list[RawDiagnostic] = list(self.extra_diagnostics)
        contents: dict[str, str] = {}
        roots = host.script_file_names()
        for path in roots:
            snapshot = host.script_snapshot(path)
            if snapshot is None:
                continue
            contents[path] = snapshot.content
            diagnostics.extend(diagnostics_from_markers(path, snapshot.content))
        self.last_contents = contents
        return FakeProgram(diagnostics, [*roots, *self.extra_files])


@pytest.fixture
def fake_toolchain() -> FakeToolchain:
    return FakeToolchain()


@pytest.fixture
def toolchain_factory() -> type[FakeToolchain]:
    """Return the FakeToolchain class, for tests needing custom extras."""
    return FakeToolchain
