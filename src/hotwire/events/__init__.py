"""Event system for hot-reload observability."""

from hotwire.events.bus import EventBus, EventSink
from hotwire.events.emit import (
    emit_file_changed,
    emit_reload_error,
    emit_reload_start,
    emit_reload_success,
)
from hotwire.events.types import Event, EventType

__all__ = [
    "Event",
    "EventBus",
    "EventSink",
    "EventType",
    "emit_file_changed",
    "emit_reload_error",
    "emit_reload_start",
    "emit_reload_success",
]
