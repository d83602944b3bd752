"""Event type definitions for the event bus."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, Field


class EventType(str, Enum):
    """Types of events published to the external event sink."""

    # Watcher events
    FILE_CHANGED = "file/changed"

    # Reload lifecycle events
    RELOAD_START = "hot/reload-start"
    RELOAD_SUCCESS = "hot/reload-success"
    RELOAD_ERROR = "hot/reload-error"


class Event(BaseModel):
    """A published hot-reload event.

    The payload schema depends on the type; see hotwire.events.emit.
    """

    id: str = Field(default_factory=lambda: uuid4().hex[:12])
    type: EventType
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))
    data: dict[str, Any] = Field(default_factory=dict)

    @property
    def epoch_ms(self) -> int:
        """Creation time as wall-clock milliseconds."""
        return int(self.timestamp.timestamp() * 1000)

    def to_json(self) -> dict:
        """Convert to JSON-serializable dict."""
        return {
            "id": self.id,
            "type": self.type.value,
            "timestamp": self.timestamp.isoformat(),
            "data": self.data,
        }
