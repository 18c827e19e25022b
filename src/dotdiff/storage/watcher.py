"""File watcher for the compared env files.

Uses watchdog to observe each file's parent directory, filters events down
to the watched files, and emits debounced ``FileChangeEvent`` values.
Editors that save by writing a temp file and renaming it over the original
show up as a move onto the watched path, which is reported as an update.

The callback runs on a watcher thread.  Consumers that own mutable state
must hand the event over to their own thread (the TUI uses
``App.call_from_thread``).
"""

import logging
import os
import threading
from collections.abc import Callable, Sequence

from watchdog.events import FileSystemEvent, FileSystemEventHandler
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver

from dotdiff.constants import FILE_WATCHER_DEBOUNCE_MS
from dotdiff.models import FileChangeEvent, FileChangeKind

logger = logging.getLogger(__name__)


def _normalize(path: str | bytes) -> str:
    if isinstance(path, bytes):
        path = os.fsdecode(path)
    return os.path.normcase(os.path.abspath(path))


class EnvFileHandler(FileSystemEventHandler):
    """Maps raw filesystem events on watched files to debounced change events.

    Each path has its own timer; a new event for the same path restarts it
    and the latest kind wins.
    """

    def __init__(
        self,
        paths: Sequence[str],
        callback: Callable[[FileChangeEvent], None],
        debounce_ms: int = FILE_WATCHER_DEBOUNCE_MS,
    ) -> None:
        super().__init__()
        self._paths = {_normalize(p): p for p in paths}
        self._callback = callback
        self._delay = max(debounce_ms, 0) / 1000.0
        self._timers: dict[str, threading.Timer] = {}
        self._lock = threading.Lock()

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._schedule(event.src_path, FileChangeKind.UPDATED)

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._schedule(event.src_path, FileChangeKind.UPDATED)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._schedule(event.src_path, FileChangeKind.REMOVED)

    def on_moved(self, event: FileSystemEvent) -> None:
        if event.is_directory:
            return
        self._schedule(event.src_path, FileChangeKind.REMOVED)
        self._schedule(event.dest_path, FileChangeKind.UPDATED)

    def _schedule(self, raw_path: str | bytes, kind: FileChangeKind) -> None:
        key = _normalize(raw_path)
        path = self._paths.get(key)
        if path is None:
            return
        logger.debug("Filesystem event %s on %s", kind.name, path)
        with self._lock:
            existing = self._timers.pop(key, None)
            if existing is not None:
                existing.cancel()
            timer = threading.Timer(self._delay, self._fire, args=(key, FileChangeEvent(path, kind)))
            timer.daemon = True
            self._timers[key] = timer
            timer.start()

    def _fire(self, key: str, event: FileChangeEvent) -> None:
        with self._lock:
            self._timers.pop(key, None)
        self._callback(event)

    def cancel_pending(self) -> None:
        with self._lock:
            for timer in self._timers.values():
                timer.cancel()
            self._timers.clear()


class FileWatcher:
    """Watches a fixed set of files and reports changes through a callback."""

    def __init__(
        self,
        paths: Sequence[str],
        on_event: Callable[[FileChangeEvent], None],
        debounce_ms: int = FILE_WATCHER_DEBOUNCE_MS,
    ) -> None:
        self.paths = list(paths)
        self.handler = EnvFileHandler(self.paths, on_event, debounce_ms)
        self._observer: BaseObserver | None = None

    @property
    def is_running(self) -> bool:
        return self._observer is not None

    def start(self) -> None:
        if self._observer is not None:
            logger.warning("File watcher already running")
            return
        observer = Observer()
        directories = {os.path.dirname(_normalize(p)) for p in self.paths}
        for directory in sorted(directories):
            observer.schedule(self.handler, directory, recursive=False)
        observer.start()
        self._observer = observer
        logger.info("Watching %d file(s) under %s", len(self.paths), ", ".join(sorted(directories)))

    def stop(self) -> None:
        """Stop the producer.  Pending debounced events are dropped."""
        if self._observer is None:
            return
        self.handler.cancel_pending()
        self._observer.stop()
        self._observer.join()
        self._observer = None
        logger.info("File watcher stopped")

    def __enter__(self) -> "FileWatcher":
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()
