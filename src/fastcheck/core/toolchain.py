"""
Contract between the session host and the external compiler front-end.

The front-end (parser, semantic analysis, type checker) is not part of
fastcheck. It is reached through two small protocols:

- Toolchain: parses compiler options once and builds programs from the
  host's root files and snapshots.
- Program: an immutable view of one build, answering per-file and
  program-wide diagnostic queries.

fastcheck.core.mypy_toolchain provides the mypy implementation.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from .config import ProjectConfig
    from .models import FileSnapshot


class DiagnosticCategory(StrEnum):
    """Category assigned by the compiler."""

    ERROR = "error"
    WARNING = "warning"
    MESSAGE = "message"


@dataclass(frozen=True)
class RawDiagnostic:
    """
    A diagnostic as produced by the compiler.

    Attributes:
        file: Absolute path of the source file, or None for global diagnostics
        line: 0-based line
        column: 0-based column
        code: Compiler-defined code (e.g. "assignment", "syntax")
        message_chain: Head message followed by attached notes
        category: Error, warning or informational message
        syntactic: True for parse errors
    """

    file: str | None
    line: int
    column: int
    code: str
    message_chain: tuple[str, ...]
    category: DiagnosticCategory = DiagnosticCategory.ERROR
    syntactic: bool = False

    def flatten_message(self, separator: str = "\n") -> str:
        return separator.join(self.message_chain)


class Program(Protocol):
    """One build of the project."""

    def contains(self, path: str) -> bool: ...

    def source_files(self) -> list[str]:
        """Every file the program loaded, library and stub files included."""
        ...

    def syntactic_diagnostics(self, path: str) -> list[RawDiagnostic]:
        """Parse errors of one file. Raises OutOfProjectScope for unknown files."""
        ...

    def semantic_diagnostics(self, path: str) -> list[RawDiagnostic]:
        """Type errors of one file. Raises OutOfProjectScope for unknown files."""
        ...

    def pre_emit_diagnostics(self) -> list[RawDiagnostic]:
        """Every diagnostic of the program, in compiler order."""
        ...


class ProgramHost(Protocol):
    """What a toolchain may ask the session host while building a program."""

    def script_file_names(self) -> list[str]: ...

    def script_version(self, path: str) -> int: ...

    def script_snapshot(self, path: str) -> FileSnapshot | None: ...

    def compilation_settings(self) -> Any: ...


class Toolchain(Protocol):
    """Factory for compiler options and programs."""

    name: str

    def load_options(self, config: ProjectConfig, *, no_cache: bool = False) -> Any:
        """Parse compiler options. Raises ConfigurationError."""
        ...

    def root_files(self, config: ProjectConfig, options: Any) -> list[str]:
        """Absolute paths of the program's root files."""
        ...

    def create_program(self, host: ProgramHost, old_program: Program | None = None) -> Program:
        """Build a program from the host's current roots and snapshots."""
        ...
