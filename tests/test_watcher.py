"""Tests for the native file watcher."""

import logging
import os
import threading
import time
from pathlib import Path

import pytest
from conftest import wait_for
from watchdog.observers import Observer

from hotwire.reload.models import ChangeKind, FileChangeEvent
from hotwire.reload.watcher import FileWatcher


class Recorder:
    """Thread-safe callback collecting change events."""

    def __init__(self) -> None:
        self.events: list[FileChangeEvent] = []
        self._lock = threading.Lock()

    def __call__(self, event: FileChangeEvent) -> None:
        with self._lock:
            self.events.append(event)

    def kinds_for(self, path: Path) -> set[ChangeKind]:
        with self._lock:
            return {e.kind for e in self.events if e.path == str(path)}

    def paths(self) -> set[str]:
        with self._lock:
            return {e.path for e in self.events}


@pytest.fixture
def source_tree(tmp_path: Path) -> Path:
    """A small source tree with a nested package."""
    src = tmp_path / "src"
    (src / "pkg" / "sub").mkdir(parents=True)
    (src / "pkg" / "__init__.py").write_text("")
    (src / "pkg" / "sub" / "mod.py").write_text("VALUE = 1\n")
    (src / "pkg" / "__pycache__").mkdir()
    return src


@pytest.fixture
def watcher():
    w = FileWatcher(poll_interval=0.05)
    yield w
    w.stop()


class TestStart:
    """Tests for starting the watcher."""

    def test_start_registers_every_subdirectory(self, watcher, source_tree):
        """All nested directories are registered, ignored ones skipped."""
        assert watcher.start([source_tree], Recorder())

        assert watcher.watching()
        assert watcher.watched_dirs == sorted(
            [
                os.path.normpath(source_tree),
                os.path.normpath(source_tree / "pkg"),
                os.path.normpath(source_tree / "pkg" / "sub"),
            ]
        )

    def test_second_start_is_noop(self, source_tree, tmp_path):
        """Starting a running watcher creates no new observer or watches."""
        observers = []

        def counting_observer(**kwargs):
            observer = Observer(**kwargs)
            observers.append(observer)
            return observer

        other = tmp_path / "other"
        other.mkdir()
        w = FileWatcher(poll_interval=0.05, observer_factory=counting_observer)
        try:
            assert w.start([source_tree], Recorder()) is True
            registered = w.watched_dirs

            assert w.start([other], Recorder()) is False
            assert w.watching()
            assert len(observers) == 1
            assert w.watched_dirs == registered
        finally:
            w.stop()

    def test_missing_root_is_skipped(self, watcher, source_tree, tmp_path, caplog):
        """A missing root logs a warning and does not stop the others."""
        with caplog.at_level(logging.WARNING, logger="hotwire.reload.watcher"):
            assert watcher.start([tmp_path / "missing", source_tree], Recorder())

        assert "Could not register directory" in caplog.text
        assert os.path.normpath(source_tree) in watcher.watched_dirs

    def test_unreadable_directory_is_skipped(self, watcher, source_tree, monkeypatch, caplog):
        """Directories failing the permission check are skipped with a warning."""
        blocked = os.path.normpath(source_tree / "pkg" / "sub")
        real_access = os.access

        def fake_access(path, mode, *args, **kwargs):
            if os.path.normpath(path) == blocked:
                return False
            return real_access(path, mode, *args, **kwargs)

        monkeypatch.setattr("hotwire.reload.watcher.os.access", fake_access)

        with caplog.at_level(logging.WARNING, logger="hotwire.reload.watcher"):
            assert watcher.start([source_tree], Recorder())

        assert blocked not in watcher.watched_dirs
        assert os.path.normpath(source_tree / "pkg") in watcher.watched_dirs
        assert "permission denied" in caplog.text

    def test_new_subdirectories_are_not_registered(self, watcher, source_tree):
        """Directories created after start are not picked up."""
        watcher.start([source_tree], Recorder())

        (source_tree / "later").mkdir()
        time.sleep(0.1)

        assert os.path.normpath(source_tree / "later") not in watcher.watched_dirs


class TestEvents:
    """Tests for change detection."""

    def test_detects_modification_in_nested_directory(self, watcher, source_tree):
        """Modifying a nested file reports a modify event."""
        recorder = Recorder()
        watcher.start([source_tree], recorder)

        target = source_tree / "pkg" / "sub" / "mod.py"
        target.write_text("VALUE = 2\n")

        assert wait_for(lambda: ChangeKind.MODIFY in recorder.kinds_for(target))

    def test_detects_creation(self, watcher, source_tree):
        """Creating a file reports a create event."""
        recorder = Recorder()
        watcher.start([source_tree], recorder)

        target = source_tree / "pkg" / "new.py"
        target.write_text("NEW = True\n")

        assert wait_for(lambda: ChangeKind.CREATE in recorder.kinds_for(target))

    def test_detects_deletion(self, watcher, source_tree):
        """Deleting a file reports a delete event."""
        recorder = Recorder()
        watcher.start([source_tree], recorder)

        target = source_tree / "pkg" / "sub" / "mod.py"
        target.unlink()

        assert wait_for(lambda: ChangeKind.DELETE in recorder.kinds_for(target))

    def test_rename_is_delete_plus_create(self, watcher, source_tree):
        """A rename within a directory reports delete then create."""
        recorder = Recorder()
        watcher.start([source_tree], recorder)

        source = source_tree / "pkg" / "sub" / "mod.py"
        dest = source_tree / "pkg" / "sub" / "renamed.py"
        source.rename(dest)

        assert wait_for(lambda: ChangeKind.DELETE in recorder.kinds_for(source))
        assert wait_for(lambda: ChangeKind.CREATE in recorder.kinds_for(dest))

    def test_directory_events_are_ignored(self, watcher, source_tree):
        """Creating a directory reports nothing."""
        recorder = Recorder()
        watcher.start([source_tree], recorder)

        (source_tree / "pkg" / "newdir").mkdir()
        time.sleep(0.3)

        assert str(source_tree / "pkg" / "newdir") not in recorder.paths()

    def test_callback_errors_do_not_stop_worker(self, watcher, source_tree):
        """A raising callback is logged and later events still arrive."""
        seen: list[FileChangeEvent] = []

        def flaky(event: FileChangeEvent) -> None:
            seen.append(event)
            raise RuntimeError("callback failure")

        watcher.start([source_tree], flaky)

        (source_tree / "pkg" / "first.py").write_text("a = 1\n")
        assert wait_for(lambda: any(e.path.endswith("first.py") for e in seen))

        (source_tree / "pkg" / "second.py").write_text("b = 2\n")
        assert wait_for(lambda: any(e.path.endswith("second.py") for e in seen))
        assert watcher.watching()


class TestStop:
    """Tests for stopping the watcher."""

    def test_stop_clears_state(self, source_tree):
        """Stopping ends the worker and clears registrations."""
        w = FileWatcher(poll_interval=0.05)
        w.start([source_tree], Recorder())

        assert w.stop() is True
        assert not w.watching()
        assert w.watched_dirs == []

    def test_second_stop_is_noop(self, source_tree):
        """Stopping twice is harmless."""
        w = FileWatcher(poll_interval=0.05)
        w.start([source_tree], Recorder())

        assert w.stop() is True
        assert w.stop() is False

    def test_stop_without_start(self):
        """Stopping a watcher that never started is a no-op."""
        assert FileWatcher().stop() is False

    def test_no_callbacks_after_stop(self, source_tree):
        """Changes made after stop() returns are never delivered."""
        recorder = Recorder()
        w = FileWatcher(poll_interval=0.05)
        w.start([source_tree], recorder)
        w.stop()

        (source_tree / "pkg" / "after.py").write_text("late = True\n")
        time.sleep(0.3)

        assert not any(p.endswith("after.py") for p in recorder.paths())

    def test_stop_returns_promptly(self, source_tree):
        """stop() returns within a few poll intervals."""
        w = FileWatcher(poll_interval=0.05)
        w.start([source_tree], Recorder())

        started = time.monotonic()
        w.stop()

        assert time.monotonic() - started < 2.0

    def test_restart_after_stop(self, source_tree):
        """A stopped watcher can be started again."""
        recorder = Recorder()
        w = FileWatcher(poll_interval=0.05)
        try:
            w.start([source_tree], Recorder())
            w.stop()

            assert w.start([source_tree], recorder) is True
            target = source_tree / "pkg" / "again.py"
            target.write_text("x = 1\n")
            assert wait_for(lambda: str(target) in recorder.paths())
        finally:
            w.stop()
