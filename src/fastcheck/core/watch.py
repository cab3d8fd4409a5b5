"""
Watch mode.

File-change notifications arrive from a polling FileWatcher thread and are
collapsed by a debounce state machine:

    Idle --change--> Debouncing --change--> Debouncing (timer restarted)
    Debouncing --timer--> Checking --done--> Idle (or Debouncing if changes
    arrived while checking)

Notifications only ever schedule work. At most one check runs at a time,
always to completion; only the debounce timer can be cancelled.
"""

from __future__ import annotations

import fnmatch
import logging
import os
import threading
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Protocol

from .models import ChangedSet, CheckRequest, CheckResult, SingleFile, WatchEvent, WholeProject

if TYPE_CHECKING:
    from .checker import FastChecker

logger = logging.getLogger(__name__)

DEFAULT_PATTERNS = ["*.py", "*.pyi"]

# Directory names never descended into
SKIP_DIRS = {"__pycache__", "node_modules", "site-packages"}

EventCallback = Callable[[WatchEvent], None]
ErrorCallback = Callable[[Exception], None]


# =============================================================================
# Scheduling
# =============================================================================


class TimerHandle(Protocol):
    def cancel(self) -> None: ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle: ...


class ThreadingScheduler:
    """Runs callbacks on daemon timer threads."""

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        timer = threading.Timer(delay, callback)
        timer.daemon = True
        timer.start()
        return timer


# =============================================================================
# Reactor states
# =============================================================================


@dataclass(frozen=True)
class Idle:
    """Nothing pending."""


@dataclass(frozen=True)
class Debouncing:
    """Changes seen, waiting for the burst to settle."""

    pending_paths: tuple[str, ...]
    timer: TimerHandle
    generation: int


@dataclass(frozen=True)
class Checking:
    """A check is in flight; changes seen meanwhile are queued."""

    request: CheckRequest
    queued_paths: tuple[str, ...] = ()


ReactorState = Idle | Debouncing | Checking


def _append_unique(paths: tuple[str, ...], path: str) -> tuple[str, ...]:
    return paths if path in paths else (*paths, path)


class WatchReactor:
    """Debounces change notifications into check cycles."""

    def __init__(
        self,
        checker: FastChecker,
        on_event: EventCallback,
        *,
        debounce_ms: int = 50,
        scheduler: Scheduler | None = None,
        on_error: ErrorCallback | None = None,
        clock: Callable[[], float] = time.time,
    ):
        """
        Args:
            checker: Query engine the cycles run against
            on_event: Receives one WatchEvent per completed cycle
            debounce_ms: Quiet period that ends a burst
            scheduler: Timer source (daemon threads by default)
            on_error: Receives the exception of a failed cycle
            clock: Wall clock for event timestamps (seconds)
        """
        self.checker = checker
        self.on_event = on_event
        self.on_error = on_error
        self.debounce_ms = debounce_ms
        self.scheduler: Scheduler = scheduler or ThreadingScheduler()
        self.clock = clock

        self._lock = threading.Lock()
        self._state: ReactorState = Idle()
        self._generation = 0
        self._closed = False

    @property
    def state(self) -> ReactorState:
        return self._state

    @property
    def closed(self) -> bool:
        return self._closed

    def notify(self, path: str) -> None:
        """Record a file change."""
        with self._lock:
            if self._closed:
                return
            state = self._state
            if isinstance(state, Checking):
                self._state = Checking(state.request, _append_unique(state.queued_paths, path))
                return
            if isinstance(state, Debouncing):
                state.timer.cancel()
                pending = _append_unique(state.pending_paths, path)
            else:
                pending = (path,)
            self._state = self._debounce(pending)

    def trigger(self, request: CheckRequest) -> bool:
        """Run a check right away if the reactor is idle. Returns False otherwise."""
        with self._lock:
            if self._closed or not isinstance(self._state, Idle):
                return False
            self._state = Checking(request)
        self._run(request)
        return True

    def close(self) -> None:
        """Cancel any pending timer; no event is emitted afterwards."""
        with self._lock:
            self._closed = True
            state = self._state
            if isinstance(state, Debouncing):
                state.timer.cancel()
                self._state = Idle()

    # -------------------------------------------------------------------------

    def _debounce(self, pending: tuple[str, ...]) -> Debouncing:
        # Caller holds the lock
        self._generation += 1
        generation = self._generation
        timer = self.scheduler.call_later(
            self.debounce_ms / 1000, lambda: self._on_timer(generation)
        )
        return Debouncing(pending, timer, generation)

    def _on_timer(self, generation: int) -> None:
        with self._lock:
            state = self._state
            if self._closed or not isinstance(state, Debouncing):
                return
            if state.generation != generation:
                # Superseded by a later reset
                return
            request = self._request_for(state.pending_paths)
            self._state = Checking(request)
        self._run(request)

    def _request_for(self, paths: tuple[str, ...]) -> CheckRequest:
        # Excluded files go through ChangedSet, which skips them
        if len(paths) == 1 and os.path.isfile(paths[0]) and self.checker.is_root_file(paths[0]):
            return SingleFile(paths[0])
        return ChangedSet(paths)

    def _run(self, request: CheckRequest) -> None:
        logger.debug("Watch cycle: %r", request)
        result: CheckResult | None = None
        try:
            result = self.checker.run(request)
        except Exception as e:
            logger.debug("Watch cycle failed: %s", e)
            self._report(e)

        try:
            if result is not None and not self._closed:
                self.on_event(WatchEvent(timestamp=int(self.clock() * 1000), result=result))
        except Exception as e:
            self._report(e)
        finally:
            self._settle()

    def _settle(self) -> None:
        with self._lock:
            state = self._state
            queued = state.queued_paths if isinstance(state, Checking) else ()
            if queued and not self._closed:
                self._state = self._debounce(queued)
            else:
                self._state = Idle()

    def _report(self, error: Exception) -> None:
        if self.on_error is not None:
            self.on_error(error)
        else:
            logger.error("Watch cycle failed: %s", error)


# =============================================================================
# File watching
# =============================================================================


class FileWatcher:
    """
    Watches files for changes using polling (cross-platform compatible).

    Uses mtime-based change detection to avoid external dependencies.
    Reports created, modified and deleted files.
    """

    def __init__(
        self,
        paths: list[Path],
        on_change: Callable[[Path], None],
        patterns: Sequence[str] | None = None,
        poll_interval: float = 0.25,
    ):
        """
        Initialize the file watcher.

        Args:
            paths: Directories or files to watch
            on_change: Callback when a file changes
            patterns: Glob patterns to match (e.g., ["*.py", "*.pyi"])
            poll_interval: How often to check for changes (seconds)
        """
        self.paths = paths
        self.on_change = on_change
        self.patterns = list(patterns or DEFAULT_PATTERNS)
        self.poll_interval = poll_interval

        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._file_mtimes: dict[Path, float] = {}

    def start(self) -> None:
        """Start watching for file changes."""
        self._file_mtimes = self._scan_files()
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._watch_loop, name="fastcheck-watch", daemon=True)
        self._thread.start()

    def stop(self) -> None:
        """Stop watching for file changes."""
        self._stop_event.set()
        if self._thread:
            self._thread.join(timeout=2)
            self._thread = None

    def _matches(self, name: str) -> bool:
        return any(fnmatch.fnmatch(name, pattern) for pattern in self.patterns)

    def _scan_files(self) -> dict[Path, float]:
        """Scan all watched paths and return file mtimes."""
        mtimes: dict[Path, float] = {}

        for watch_path in self.paths:
            if watch_path.is_file():
                try:
                    mtimes[watch_path] = watch_path.stat().st_mtime
                except OSError:
                    pass
                continue

            for dirpath, dirnames, filenames in os.walk(watch_path):
                dirnames[:] = [d for d in dirnames if d not in SKIP_DIRS and not d.startswith(".")]
                for filename in filenames:
                    if not self._matches(filename):
                        continue
                    file_path = Path(dirpath) / filename
                    try:
                        mtimes[file_path] = file_path.stat().st_mtime
                    except OSError:
                        pass

        return mtimes

    def poll(self) -> list[Path]:
        """Compare against the previous scan, fire callbacks, return changed files."""
        current_mtimes = self._scan_files()

        changed_files: list[Path] = []
        for file_path, mtime in current_mtimes.items():
            previous = self._file_mtimes.get(file_path)
            if previous is None or mtime != previous:
                changed_files.append(file_path)
        for file_path in self._file_mtimes:
            if file_path not in current_mtimes:
                changed_files.append(file_path)

        self._file_mtimes = current_mtimes

        for file_path in changed_files:
            try:
                self.on_change(file_path)
            except Exception as e:
                logger.error("Error in change callback for %s: %s", file_path, e)

        return changed_files

    def _watch_loop(self) -> None:
        """Main watch loop that polls for file changes."""
        while not self._stop_event.wait(self.poll_interval):
            try:
                self.poll()
            except Exception as e:
                logger.error("File watcher error: %s", e)


# =============================================================================
# Session
# =============================================================================


class WatchSession:
    """A reactor fed by a file watcher over the project root."""

    def __init__(
        self,
        checker: FastChecker,
        on_event: EventCallback,
        *,
        on_error: ErrorCallback | None = None,
        debounce_ms: int = 50,
        poll_interval: float = 0.25,
        patterns: Sequence[str] | None = None,
        scheduler: Scheduler | None = None,
    ):
        self.reactor = WatchReactor(
            checker,
            on_event,
            debounce_ms=debounce_ms,
            scheduler=scheduler,
            on_error=on_error,
        )
        self.watcher = FileWatcher(
            [checker.project_root],
            on_change=lambda path: self.reactor.notify(str(path)),
            patterns=patterns,
            poll_interval=poll_interval,
        )

    def start(self, initial_check: bool = True) -> None:
        """Start watching; optionally check the whole project first."""
        self.watcher.start()
        if initial_check:
            self.reactor.trigger(WholeProject())

    def stop(self) -> None:
        """Stop the watcher thread and close the reactor."""
        self.watcher.stop()
        self.reactor.close()

    def __enter__(self) -> WatchSession:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
