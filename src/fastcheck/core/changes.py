"""
Change-set resolution from version control.

Lists the source files git reports as modified, added, renamed or untracked
under the project root.
"""

import logging
import subprocess
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Protocol

from .config import DEFAULT_EXTENSIONS
from .errors import NotAVersionControlledProjectError

logger = logging.getLogger(__name__)


class ChangeResolver(Protocol):
    """Source of candidate files for changed-set checks."""

    def changed_files(self) -> list[str]: ...


def parse_porcelain(output: str) -> list[str]:
    """
    Parse ``git status --porcelain -z`` output into paths.

    Each record is ``XY <path>``; renames and copies are followed by an extra
    record holding the original path, which is skipped. Paths are returned in
    status order, each at most once.
    """
    records = output.split("\0")
    paths: list[str] = []
    seen: set[str] = set()
    index = 0
    while index < len(records):
        record = records[index]
        index += 1
        if len(record) < 4:
            continue
        status, path = record[:2], record[3:]
        if "R" in status or "C" in status:
            index += 1
        if path not in seen:
            seen.add(path)
            paths.append(path)
    return paths


def filter_extensions(paths: Iterable[str], extensions: Sequence[str]) -> list[str]:
    return [p for p in paths if p.endswith(tuple(extensions))]


class GitChangeResolver:
    """Changed files according to ``git status``."""

    def __init__(
        self,
        project_root: Path,
        extensions: Sequence[str] = DEFAULT_EXTENSIONS,
        git: str = "git",
    ):
        self.project_root = project_root
        self.extensions = tuple(extensions)
        self.git = git

    def _run(self, *args: str) -> str:
        try:
            result = subprocess.run(
                [self.git, *args],
                cwd=self.project_root,
                check=True,
                capture_output=True,
                text=True,
            )
        except subprocess.CalledProcessError as e:
            logger.debug("git %s failed: %s", " ".join(args), (e.stderr or "").strip())
            raise NotAVersionControlledProjectError(
                "Not a git repository or git command failed", self.project_root
            ) from e
        except FileNotFoundError as e:
            raise NotAVersionControlledProjectError("git command not found") from e
        return result.stdout

    def changed_files(self) -> list[str]:
        """
        Absolute paths of changed source files, deduplicated.

        Raises:
            NotAVersionControlledProjectError: no git work tree at the project root
        """
        toplevel = Path(self._run("rev-parse", "--show-toplevel").strip()).resolve()
        output = self._run(
            "status",
            "--porcelain",
            "-z",
            "--untracked-files=all",
            "--",
            str(self.project_root),
        )
        paths = filter_extensions(parse_porcelain(output), self.extensions)
        changed = [str((toplevel / p).resolve()) for p in paths]
        logger.debug("git reports %d changed source file(s)", len(changed))
        return list(dict.fromkeys(changed))
