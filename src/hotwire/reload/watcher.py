"""File change watching for hot-reload.

Watches source directories with the platform's native change
notifications (through watchdog) and reports normalized
FileChangeEvents to a callback.

Every directory under each root is registered individually when the
watcher starts. Directories created afterwards are not picked up until
the watcher is restarted.
"""

import logging
import os
import threading
from collections.abc import Callable, Iterable
from pathlib import Path
from typing import Any

from watchdog.events import FileSystemEvent, FileSystemEventHandler, FileSystemMovedEvent
from watchdog.observers import Observer
from watchdog.observers.api import BaseObserver, ObservedWatch

from hotwire.reload.models import ChangeKind, FileChangeEvent

logger = logging.getLogger(__name__)

ChangeCallback = Callable[[FileChangeEvent], Any]

DEFAULT_IGNORED_DIRS = frozenset(
    {
        "__pycache__",
        ".git",
        ".hg",
        ".venv",
        ".mypy_cache",
        ".pytest_cache",
        ".ruff_cache",
    }
)


class _ChangeHandler(FileSystemEventHandler):
    """Translates watchdog events into FileChangeEvents."""

    def __init__(self, callback: ChangeCallback, active: threading.Event):
        super().__init__()
        self._callback = callback
        self._active = active

    def on_created(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._dispatch(event.src_path, ChangeKind.CREATE)

    def on_modified(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._dispatch(event.src_path, ChangeKind.MODIFY)

    def on_deleted(self, event: FileSystemEvent) -> None:
        if not event.is_directory:
            self._dispatch(event.src_path, ChangeKind.DELETE)

    def on_moved(self, event: FileSystemMovedEvent) -> None:
        if event.is_directory:
            return
        # A rename is a delete of the old path and a create of the new one
        self._dispatch(event.src_path, ChangeKind.DELETE)
        self._dispatch(event.dest_path, ChangeKind.CREATE)

    def _dispatch(self, path: str | bytes, kind: ChangeKind) -> None:
        if not self._active.is_set():
            return

        change = FileChangeEvent(path=os.path.normpath(os.fsdecode(path)), kind=kind)
        logger.debug(f"File change: {change.path} ({change.kind.value})")

        try:
            self._callback(change)
        except Exception as e:
            logger.error(f"Watcher callback error for {change.path}: {e}")


class FileWatcher:
    """Watches directory trees for file changes.

    One watchdog observer runs per started watcher. The observer polls its
    event queue with a bounded timeout, so stop() returns within about one
    poll interval.
    """

    def __init__(
        self,
        poll_interval: float = 0.1,
        ignored_dirs: Iterable[str] | None = None,
        observer_factory: Callable[..., BaseObserver] = Observer,
        join_timeout: float = 5.0,
    ):
        """Initialize the watcher.

        Args:
            poll_interval: Seconds the worker waits for events before
                rechecking whether it should stop.
            ignored_dirs: Directory names never registered.
            observer_factory: Builds the watchdog observer.
            join_timeout: Seconds stop() waits for the worker to exit.
        """
        self.poll_interval = poll_interval
        self.ignored_dirs = frozenset(DEFAULT_IGNORED_DIRS if ignored_dirs is None else ignored_dirs)
        self.join_timeout = join_timeout
        self._observer_factory = observer_factory

        self._observer: BaseObserver | None = None
        self._watches: dict[str, ObservedWatch] = {}
        self._active = threading.Event()
        self._lock = threading.Lock()

    def watching(self) -> bool:
        """Check if the watcher is running."""
        return self._active.is_set()

    @property
    def watched_dirs(self) -> list[str]:
        """Directories currently registered with the observer."""
        with self._lock:
            return sorted(self._watches)

    def start(self, paths: Iterable[str | Path], callback: ChangeCallback) -> bool:
        """Start watching the given roots.

        Args:
            paths: Root directories, each watched recursively.
            callback: Called with a FileChangeEvent for every change.

        Returns:
            True if the watcher started, False if it was already running.
        """
        with self._lock:
            if self._observer is not None:
                logger.warning("FileWatcher is already running")
                return False

            observer = self._observer_factory(timeout=self.poll_interval)
            observer.name = "hotwire-watcher"
            handler = _ChangeHandler(callback, self._active)

            # Start first: scheduling on a live observer starts each emitter
            # in this thread, so registration errors surface here.
            observer.start()
            self._observer = observer
            self._active.set()

            for root in paths:
                self._register_recursive(observer, handler, Path(root))

            dir_count = len(self._watches)

        logger.info(f"FileWatcher started, {dir_count} directories registered")
        return True

    def _register_recursive(self, observer: BaseObserver, handler: _ChangeHandler, root: Path) -> None:
        """Register root and every readable subdirectory, skipping failures."""

        def on_walk_error(error: OSError) -> None:
            logger.warning(f"Could not register directory: {error.filename} - {error.strerror}")

        for dirpath, dirnames, _filenames in os.walk(root, onerror=on_walk_error):
            dirnames[:] = [d for d in dirnames if d not in self.ignored_dirs]

            directory = os.path.normpath(dirpath)
            if directory in self._watches:
                continue
            if not os.access(directory, os.R_OK | os.X_OK):
                logger.warning(f"Could not register directory: {directory} - permission denied")
                continue

            try:
                self._watches[directory] = observer.schedule(handler, directory, recursive=False)
            except OSError as e:
                logger.warning(f"Could not register directory: {directory} - {e}")

    def stop(self) -> bool:
        """Stop watching and release the OS watch handles.

        Returns:
            True if a running watcher was stopped, False if it was not running.
        """
        with self._lock:
            observer = self._observer
            if observer is None:
                return False

            self._active.clear()
            self._observer = None
            self._watches.clear()

        # Stopping the observer unschedules every watch, closing the native handles
        observer.stop()
        if observer is not threading.current_thread():
            observer.join(timeout=self.join_timeout)

        logger.info("FileWatcher stopped")
        return True
