"""
mypy implementation of the toolchain contract.

mypy is driven in-process through its build API. Options are parsed once
from the project's mypy configuration; each program build hands mypy the
host's snapshots as in-memory source text, so files are never re-read behind
the session's back. mypy's incremental cache (.mypy_cache) keeps rebuilds of
unchanged modules cheap across builds and across processes.

Diagnostics come back as mypy's formatted message lines and are parsed into
RawDiagnostic values. Notes are attached to the diagnostic they follow, the
way a message chain continues its head message.
"""

from __future__ import annotations

import io
import logging
import os
import re
from collections.abc import Iterable
from typing import TYPE_CHECKING

from mypy import build
from mypy.errors import CompileError
from mypy.find_sources import InvalidSourceList, create_source_list
from mypy.fscache import FileSystemCache
from mypy.main import process_options
from mypy.modulefinder import BuildSource
from mypy.options import Options

from .errors import ConfigurationError, OutOfProjectScope
from .toolchain import DiagnosticCategory, ProgramHost, RawDiagnostic

if TYPE_CHECKING:
    from .config import ProjectConfig

logger = logging.getLogger(__name__)

# path:line:column: severity: message  [code]
MESSAGE_PATTERN = re.compile(
    r"^(?P<file>.+?)"
    r"(?::(?P<line>-?\d+))?"
    r"(?::(?P<column>\d+))?"
    r": (?P<severity>error|warning|note): "
    r"(?P<message>.*?)"
    r"(?:  \[(?P<code>[\w-]+)\])?$"
)

SYNTAX_CODE = "syntax"
DEFAULT_CODE = "misc"

_CATEGORIES = {
    "error": DiagnosticCategory.ERROR,
    "warning": DiagnosticCategory.WARNING,
    "note": DiagnosticCategory.MESSAGE,
}


def parse_messages(messages: Iterable[str]) -> list[RawDiagnostic]:
    """
    Parse mypy's formatted message lines into diagnostics.

    Lines without a source location become diagnostics with ``file=None``.
    A note directly following an error or warning on the same file and line
    is appended to that diagnostic's message chain; other notes (reveal_type
    output, notes about other lines) stay standalone messages.
    """
    diagnostics: list[RawDiagnostic] = []
    for raw in messages:
        line = raw.rstrip("\r\n")
        if not line.strip():
            continue

        match = MESSAGE_PATTERN.match(line)
        if match is None:
            diagnostics.append(
                RawDiagnostic(
                    file=None,
                    line=0,
                    column=0,
                    code=DEFAULT_CODE,
                    message_chain=(line.strip(),),
                )
            )
            continue

        category = _CATEGORIES[match["severity"]]
        message = match["message"]
        path = os.path.abspath(match["file"])
        line_index = max(int(match["line"] or 1) - 1, 0)

        if category is DiagnosticCategory.MESSAGE:
            previous = diagnostics[-1] if diagnostics else None
            if (
                previous is not None
                and previous.category is not DiagnosticCategory.MESSAGE
                and previous.file == path
                and previous.line == line_index
            ):
                diagnostics[-1] = RawDiagnostic(
                    file=previous.file,
                    line=previous.line,
                    column=previous.column,
                    code=previous.code,
                    message_chain=previous.message_chain + (message,),
                    category=previous.category,
                    syntactic=previous.syntactic,
                )
                continue

        code = match["code"] or DEFAULT_CODE
        diagnostics.append(
            RawDiagnostic(
                file=path,
                line=line_index,
                column=max(int(match["column"] or 1) - 1, 0),
                code=code,
                message_chain=(message,),
                category=category,
                syntactic=code == SYNTAX_CODE,
            )
        )
    return diagnostics


class MypyProgram:
    """One mypy build: its diagnostics and the files it loaded."""

    def __init__(self, diagnostics: list[RawDiagnostic], files: Iterable[str]):
        self._diagnostics = diagnostics
        self._files = list(dict.fromkeys(os.path.abspath(f) for f in files))
        self._file_set = set(self._files)

    @classmethod
    def from_messages(cls, messages: Iterable[str], files: Iterable[str]) -> MypyProgram:
        return cls(parse_messages(messages), files)

    def contains(self, path: str) -> bool:
        return os.path.abspath(path) in self._file_set

    def source_files(self) -> list[str]:
        return list(self._files)

    def _file_diagnostics(self, path: str) -> list[RawDiagnostic]:
        path = os.path.abspath(path)
        if path not in self._file_set:
            raise OutOfProjectScope("Could not find source file", path)
        return [d for d in self._diagnostics if d.file == path]

    def syntactic_diagnostics(self, path: str) -> list[RawDiagnostic]:
        return [d for d in self._file_diagnostics(path) if d.syntactic]

    def semantic_diagnostics(self, path: str) -> list[RawDiagnostic]:
        return [d for d in self._file_diagnostics(path) if not d.syntactic]

    def pre_emit_diagnostics(self) -> list[RawDiagnostic]:
        return list(self._diagnostics)


class MypyToolchain:
    """Builds MypyPrograms from a session host."""

    name = "mypy"

    def load_options(self, config: ProjectConfig, *, no_cache: bool = False) -> Options:
        """
        Parse the project's mypy configuration once.

        Anything mypy writes to stderr while reading the file (unknown
        options, bad values, a missing [mypy] section) is treated as fatal.
        """
        stdout = io.StringIO()
        stderr = io.StringIO()
        try:
            _, options = process_options(
                ["--config-file", str(config.compiler_config)],
                stdout=stdout,
                stderr=stderr,
                require_targets=False,
                fscache=FileSystemCache(),
            )
        except SystemExit as e:
            # argparse reports invalid option combinations by exiting
            detail = stderr.getvalue().strip().splitlines()
            reason = detail[-1] if detail else f"exit status {e.code}"
            raise ConfigurationError(f"mypy rejected the configuration ({reason})", config.compiler_config) from e

        complaints = stderr.getvalue().strip()
        if complaints:
            raise ConfigurationError(
                f"mypy rejected the configuration ({complaints.splitlines()[0]})",
                config.compiler_config,
            )

        # Output shape the parser relies on
        options.show_column_numbers = True
        options.show_error_end = False
        options.hide_error_codes = False
        options.show_error_context = False
        options.show_absolute_path = True
        options.pretty = False
        options.color_output = False
        options.error_summary = False
        options.output = None

        if no_cache:
            options.incremental = False
            options.cache_dir = os.devnull
        elif not os.path.isabs(options.cache_dir):
            options.cache_dir = str(config.root / options.cache_dir)

        logger.debug("mypy options loaded from %s (cache: %s)", config.compiler_config, options.cache_dir)
        return options

    def root_files(self, config: ProjectConfig, options: Options) -> list[str]:
        """Files named by the mypy ``files`` setting, else every module under the root."""
        if options.files:
            targets = [str(config.root / entry) for entry in options.files]
        else:
            targets = [str(config.root)]

        try:
            sources = create_source_list(targets, options, FileSystemCache(), allow_empty_dir=True)
        except InvalidSourceList as e:
            raise ConfigurationError(f"Cannot collect source files ({e})", config.root) from e
        return [os.path.abspath(source.path) for source in sources if source.path]

    def create_program(self, host: ProgramHost, old_program: MypyProgram | None = None) -> MypyProgram:
        """
        Build the project with mypy, feeding it the host's snapshots.

        ``old_program`` is not needed: mypy keeps its incremental state in
        its cache directory.
        """
        options: Options = host.compilation_settings()
        roots = host.script_file_names()
        fscache = FileSystemCache()

        try:
            found = create_source_list(roots, options, fscache)
        except InvalidSourceList as e:
            raise ConfigurationError(f"Cannot collect source files ({e})") from e

        sources: list[BuildSource] = []
        for source in found:
            snapshot = host.script_snapshot(os.path.abspath(source.path)) if source.path else None
            text = snapshot.content if snapshot is not None else None
            sources.append(BuildSource(source.path, source.module, text, source.base_dir))

        try:
            result = build.build(
                sources,
                options,
                fscache=fscache,
                stdout=io.StringIO(),
                stderr=io.StringIO(),
            )
        except CompileError as e:
            # Blocking errors (syntax errors, duplicate modules) stop the build
            logger.debug("mypy build stopped by blocking errors in %s", e.module_with_blocker)
            return MypyProgram.from_messages(e.messages, roots)

        loaded = [state.path for state in result.graph.values() if state.path]
        return MypyProgram.from_messages(result.errors, [*roots, *loaded])
