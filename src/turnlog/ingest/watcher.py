"""Watch mode: surface changed transcripts under a directory tree.

A change source reports ``created`` / ``modified`` / ``moved`` notifications
for transcript files. Each notification only stamps the path in a
:class:`DebounceQueue`; a fixed tick drains the paths whose last touch is
older than the debounce window and hands them, one at a time, to the
ingestion callback. A burst of writes to one file therefore produces a
single ingestion once the writer pauses.
"""

from __future__ import annotations

import logging
import os
import threading
import time
import traceback
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from turnlog.core.logging import Diagnostics

logger = logging.getLogger(__name__)

DEFAULT_DEBOUNCE_SECONDS = 0.25
DEFAULT_TICK_SECONDS = 0.3

CREATED = "created"
MODIFIED = "modified"
MOVED = "moved"


@dataclass(frozen=True)
class ChangeEvent:
    """One filesystem notification."""

    kind: str
    path: Path


class ChangeSource(Protocol):
    """Yields notifications that happened since the previous call."""

    def poll(self) -> list[ChangeEvent]: ...


class PollingChangeSource:
    """Change notifications derived from successive stat snapshots.

    A path is ``created`` when it first appears, ``modified`` when its size
    or mtime changes, and ``moved`` when it appears carrying the inode of a
    path that vanished in the same interval. Files present when the source
    is constructed are not reported.
    """

    def __init__(self, root: str | Path, suffix: str = ".jsonl"):
        self.root = Path(root)
        self.suffix = suffix
        self._snapshot = self._scan()

    def _scan(self) -> dict[Path, tuple[int, int, int]]:
        snapshot: dict[Path, tuple[int, int, int]] = {}
        for dirpath, _dirnames, filenames in os.walk(self.root):
            for name in filenames:
                if not name.endswith(self.suffix):
                    continue
                path = Path(dirpath) / name
                try:
                    st = path.stat()
                except OSError:
                    # Deleted between listing and stat
                    continue
                snapshot[path] = (st.st_size, st.st_mtime_ns, st.st_ino)
        return snapshot

    def poll(self) -> list[ChangeEvent]:
        current = self._scan()
        vanished_inodes = {sig[2] for path, sig in self._snapshot.items() if path not in current}

        events: list[ChangeEvent] = []
        for path, sig in current.items():
            previous = self._snapshot.get(path)
            if previous is None:
                kind = MOVED if sig[2] in vanished_inodes else CREATED
                events.append(ChangeEvent(kind, path))
            elif previous[:2] != sig[:2]:
                events.append(ChangeEvent(MODIFIED, path))

        self._snapshot = current
        return events


class DebounceQueue:
    """Pending ``path -> last touched`` map, drained once writes settle.

    Paths drain in the order they were first touched.
    """

    def __init__(self, debounce: float = DEFAULT_DEBOUNCE_SECONDS, clock: Callable[[], float] = time.monotonic):
        self.debounce = debounce
        self._clock = clock
        self._lock = threading.Lock()
        self._pending: dict[Path, float] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._pending)

    def touch(self, path: Path) -> None:
        with self._lock:
            self._pending[path] = self._clock()

    def drain(self) -> list[Path]:
        """Remove and return every path idle for at least the debounce window."""
        now = self._clock()
        with self._lock:
            ready = [path for path, touched in self._pending.items() if now - touched >= self.debounce]
            for path in ready:
                del self._pending[path]
        return ready


class TranscriptWatcher:
    """Debounced, sequential driver from change notifications to ingestion."""

    def __init__(
        self,
        root: str | Path,
        on_change: Callable[[Path], object],
        *,
        change_source: ChangeSource | None = None,
        debounce: float = DEFAULT_DEBOUNCE_SECONDS,
        tick: float = DEFAULT_TICK_SECONDS,
        suffix: str = ".jsonl",
        diagnostics: Diagnostics | None = None,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.root = Path(root)
        self.on_change = on_change
        self.tick = tick
        self.suffix = suffix
        self.diagnostics = diagnostics
        self.change_source = change_source or PollingChangeSource(self.root, suffix=suffix)
        self.queue = DebounceQueue(debounce=debounce, clock=clock)

    def tick_once(self) -> list[Path]:
        """Collect notifications, then ingest every settled path in order."""
        for event in self.change_source.poll():
            if event.path.name.endswith(self.suffix):
                self.queue.touch(event.path)

        drained = self.queue.drain()
        for path in drained:
            self._process(path)
        return drained

    def _process(self, path: Path) -> None:
        try:
            self._report_debug(f"Processing: {path}")
            self.on_change(path)
        except Exception as e:  # noqa: BLE001
            message = f"Watcher process failed for {path}: {e}"
            if self.diagnostics is not None:
                self.diagnostics.error(message, path=str(path), detail=_traceback(e))
            else:
                logger.exception(message)

    def _report_debug(self, message: str) -> None:
        if self.diagnostics is not None:
            self.diagnostics.debug(message)
        else:
            logger.debug(message)

    def run(self, stop_event: threading.Event) -> None:
        """Tick until ``stop_event`` is set.

        The event is checked once per tick; a drain already under way is
        finished before returning.
        """
        while not stop_event.is_set():
            stop_event.wait(self.tick)
            self.tick_once()


def default_watch_root() -> Path | None:
    """First existing Codex transcript directory, or None."""
    home = Path.home()
    candidates = [
        os.environ.get("CODEX_TRANSCRIPT_PATH"),
        home / ".codex" / "sessions",
        home / ".codex",
        home / ".chatgpt" / "codex",
    ]
    for candidate in candidates:
        if candidate and Path(candidate).is_dir():
            return Path(candidate)
    return None


def _traceback(exc: BaseException) -> str:
    return "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
