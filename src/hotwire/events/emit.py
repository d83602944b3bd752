"""Helpers that publish hot-reload events to an event sink.

Event schemas:
- file/changed        {file, type, timestamp}
- hot/reload-start    {timestamp}
- hot/reload-success  {loaded, unloaded, ms, timestamp}
- hot/reload-error    {failed, error, timestamp}

Timestamps are the wall-clock milliseconds of Event.timestamp.
"""

from collections.abc import Iterable
from typing import Any

from hotwire.events.bus import EventSink
from hotwire.events.types import Event, EventType

FILE_CHANGE_TYPES = frozenset({"create", "modify", "delete"})


def emit(sink: EventSink, event_type: EventType, data: dict[str, Any] | None = None) -> Event:
    """Publish an event, stamping its data with the current time in ms."""
    event = Event(type=event_type, data=dict(data or {}))
    event.data["timestamp"] = event.epoch_ms
    sink.publish(event)
    return event


def emit_file_changed(sink: EventSink, file: str, change_type: str) -> Event:
    """Emit a file/changed event.

    Args:
        sink: Where to publish.
        file: Path of the changed file.
        change_type: One of create, modify, delete.

    Raises:
        ValueError: If change_type is not a known change kind.
    """
    if not isinstance(file, str):
        raise ValueError(f"file must be a string path, got {type(file).__name__}")
    kind = getattr(change_type, "value", change_type)
    if kind not in FILE_CHANGE_TYPES:
        raise ValueError(f"Unknown change type: {change_type!r}")
    return emit(sink, EventType.FILE_CHANGED, {"file": file, "type": kind})


def emit_reload_start(sink: EventSink) -> Event:
    """Emit a hot/reload-start event at the beginning of a reload."""
    return emit(sink, EventType.RELOAD_START)


def emit_reload_success(
    sink: EventSink,
    loaded: Iterable[str],
    unloaded: Iterable[str],
    ms: float,
) -> Event:
    """Emit a hot/reload-success event."""
    return emit(
        sink,
        EventType.RELOAD_SUCCESS,
        {"loaded": list(loaded), "unloaded": list(unloaded), "ms": ms},
    )


def emit_reload_error(sink: EventSink, failed: str | None, error: BaseException | str | None) -> Event:
    """Emit a hot/reload-error event.

    Exceptions are rendered to their message so the payload stays serializable.
    """
    message = str(error) if error is not None else None
    return emit(sink, EventType.RELOAD_ERROR, {"failed": failed, "error": message})
