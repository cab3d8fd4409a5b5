"""
Versioned snapshot store.

Holds the last known text of every file the session has read, keyed by
absolute path, together with a version number that only ever grows.
"""

from collections.abc import Callable, Iterator

from .models import FileSnapshot


class SnapshotStore:
    """Per-path file snapshots with monotonically increasing versions."""

    def __init__(self) -> None:
        self._snapshots: dict[str, FileSnapshot] = {}

    def get(self, path: str) -> FileSnapshot | None:
        return self._snapshots.get(path)

    def update(self, path: str, content: str, *, force: bool = False) -> int:
        """
        Record new content for a path and return its version.

        The first update of a path creates version 0. Later updates bump the
        version when the content differs, or unconditionally with ``force``.
        """
        current = self._snapshots.get(path)
        if current is None:
            version = 0
        elif current.content == content and not force:
            return current.version
        else:
            version = current.version + 1
        self._snapshots[path] = FileSnapshot(path=path, version=version, content=content)
        return version

    def version(self, path: str) -> int | None:
        snapshot = self._snapshots.get(path)
        return snapshot.version if snapshot is not None else None

    def versions(self) -> dict[str, int]:
        return {path: snap.version for path, snap in self._snapshots.items()}

    def prune(self, keep: Callable[[str], bool]) -> list[str]:
        """Drop every snapshot whose path fails ``keep``; return dropped paths."""
        removed = [path for path in self._snapshots if not keep(path)]
        for path in removed:
            del self._snapshots[path]
        return removed

    def __contains__(self, path: object) -> bool:
        return path in self._snapshots

    def __len__(self) -> int:
        return len(self._snapshots)

    def __iter__(self) -> Iterator[str]:
        return iter(self._snapshots)
