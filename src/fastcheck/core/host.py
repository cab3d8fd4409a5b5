"""
Compiler session host.

Keeps exactly one live program per session and supplies the toolchain with
what it needs to build it: the root files derived from the project
configuration, per-file versions and snapshots backed by the SnapshotStore,
and the compiler options parsed once at construction.

The host never decides what changed inside the program. It only keeps
version numbers consistent, and rebuilds when the versions (or the root set)
differ from the ones the current program was built against.
"""

import logging
import os
from collections.abc import Callable
from pathlib import Path
from typing import Any

from .config import ProjectConfig, load_project_config
from .models import FileSnapshot
from .mypy_toolchain import MypyToolchain
from .snapshots import SnapshotStore
from .toolchain import Program, Toolchain

logger = logging.getLogger(__name__)

StatusCallback = Callable[[str], None]


def _read_text(path: str) -> str | None:
    try:
        with open(path, encoding="utf-8") as f:
            return f.read()
    except (OSError, UnicodeDecodeError) as e:
        logger.debug("Cannot read %s: %s", path, e)
        return None


class SessionHost:
    """Owns the snapshot store and the live compiler program of one project."""

    def __init__(
        self,
        project_root: Path | str,
        *,
        toolchain: Toolchain | None = None,
        no_cache: bool = False,
        on_status: StatusCallback | None = None,
        config: ProjectConfig | None = None,
    ):
        """
        Initialize the host.

        Args:
            project_root: Directory holding the project's mypy configuration
            toolchain: Compiler front-end (defaults to mypy)
            no_cache: Re-read every snapshot and rebuild on every program request
            on_status: Observer notified when programs are rebuilt
            config: Pre-loaded configuration (loaded from project_root otherwise)

        Raises:
            ConfigurationError: configuration missing, unparsable or rejected
        """
        self.config = config or load_project_config(Path(project_root))
        self.project_root = self.config.root
        self.toolchain: Toolchain = toolchain or MypyToolchain()
        self.no_cache = no_cache
        self.on_status = on_status

        self._options = self.toolchain.load_options(self.config, no_cache=no_cache)
        self._store = SnapshotStore()
        self._program: Program | None = None
        self._program_versions: dict[str, int] = {}

    @property
    def snapshots(self) -> SnapshotStore:
        return self._store

    def resolve(self, path: Path | str) -> str:
        """Absolute, normalized form of a path given relative to the project root."""
        return str((self.project_root / path).resolve())

    # -------------------------------------------------------------------------
    # Snapshot updates
    # -------------------------------------------------------------------------

    def refresh_file(self, path: str, *, force: bool = False) -> int | None:
        """
        Re-read a file into the snapshot store.

        Returns the file's version, or None when the file cannot be read (the
        query layer reports missing files itself).
        """
        content = _read_text(path)
        if content is None:
            return None
        return self._store.update(path, content, force=force)

    # -------------------------------------------------------------------------
    # Lookups used by the toolchain
    # -------------------------------------------------------------------------

    def script_file_names(self) -> list[str]:
        return self.toolchain.root_files(self.config, self._options)

    def script_version(self, path: str) -> int:
        version = self._store.version(path)
        return version if version is not None else 0

    def script_snapshot(self, path: str) -> FileSnapshot | None:
        snapshot = self._store.get(path)
        if snapshot is not None:
            return snapshot
        if not os.path.isfile(path):
            return None
        if self.refresh_file(path) is None:
            return None
        return self._store.get(path)

    def compilation_settings(self) -> Any:
        return self._options

    # -------------------------------------------------------------------------
    # Program
    # -------------------------------------------------------------------------

    def get_program(self) -> Program:
        """
        Return the live program, rebuilding it when any root file's version
        changed since the last build.
        """
        roots = self.script_file_names()
        for path in roots:
            if self.no_cache:
                self.refresh_file(path, force=True)
            else:
                self.script_snapshot(path)

        versions = {path: self.script_version(path) for path in roots}
        if self._program is not None and versions == self._program_versions:
            return self._program

        root_set = set(roots)
        pruned = self._store.prune(lambda p: p in root_set or os.path.exists(p))
        if pruned:
            logger.debug("Pruned %d stale snapshot(s)", len(pruned))

        self._notify(f"Building program ({len(roots)} root files)")
        program = self.toolchain.create_program(self, self._program)
        self._program = program
        self._program_versions = versions
        self._notify(f"Program ready ({len(program.pre_emit_diagnostics())} diagnostics)")
        return program

    def _notify(self, message: str) -> None:
        logger.debug(message)
        if self.on_status is not None:
            self.on_status(message)
