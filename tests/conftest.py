"""Pytest configuration and fixtures."""

import time
from collections.abc import Callable

import pytest

from hotwire.events import Event, EventBus
from hotwire.reload import ReloadOptions, ReloadResult


class FakeReloader:
    """Reloader double that returns a scripted result and records calls."""

    def __init__(self, result: ReloadResult | None = None):
        self.result = result or ReloadResult()
        self.init_calls: list[dict] = []
        self.reload_calls: list[ReloadOptions] = []

    def init(self, dirs, no_reload=None, no_unload=None) -> None:
        self.init_calls.append({"dirs": list(dirs), "no_reload": no_reload, "no_unload": no_unload})

    def reload(self, options: ReloadOptions) -> ReloadResult:
        self.reload_calls.append(options)
        return self.result

    def find_namespaces(self, pattern) -> list[str]:
        return ["app.core", "app.server"]


@pytest.fixture
def fake_reloader() -> FakeReloader:
    """A reloader that reports nothing changed."""
    return FakeReloader()


@pytest.fixture
def event_bus() -> EventBus:
    """Create a fresh event bus for each test."""
    return EventBus()


@pytest.fixture
def published(event_bus: EventBus) -> list[Event]:
    """Every event published on the event_bus fixture."""
    events: list[Event] = []
    event_bus.add_callback(events.append)
    return events


def wait_for(condition: Callable[[], bool], timeout: float = 3.0, interval: float = 0.02) -> bool:
    """Poll until condition() is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(interval)
    return condition()
