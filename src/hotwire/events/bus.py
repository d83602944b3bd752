"""Event bus for broadcasting reload events to subscribers."""

import logging
import queue
import threading
from collections.abc import Callable
from typing import Any, Protocol

from hotwire.events.types import Event, EventType

logger = logging.getLogger(__name__)


class EventSink(Protocol):
    """Anything that accepts published events."""

    def publish(self, event: Event) -> None: ...


class EventBus:
    """Centralized event bus for broadcasting events to subscribers.

    Supports both:
    - Queues for consumers that drain events on their own thread
    - Callback-based subscriptions for in-process handlers

    Publishing happens on the watcher and debounce threads, so all
    subscriber bookkeeping is guarded by a lock.
    """

    def __init__(self) -> None:
        self._subscribers: dict[str, queue.Queue[Event]] = {}
        self._callbacks: list[Callable[[Event], Any]] = []
        self._lock = threading.Lock()

    def subscribe(self, subscriber_id: str) -> queue.Queue[Event]:
        """Subscribe to events and return a queue to receive them.

        Args:
            subscriber_id: Unique ID for this subscriber

        Returns:
            Queue that will receive events
        """
        with self._lock:
            events: queue.Queue[Event] = queue.Queue()
            self._subscribers[subscriber_id] = events
            logger.debug(f"Subscriber {subscriber_id} connected")
            return events

    def unsubscribe(self, subscriber_id: str) -> None:
        """Unsubscribe from events."""
        with self._lock:
            if subscriber_id in self._subscribers:
                del self._subscribers[subscriber_id]
                logger.debug(f"Subscriber {subscriber_id} disconnected")

    def add_callback(self, callback: Callable[[Event], Any]) -> None:
        """Add a callback to be called for every event."""
        with self._lock:
            self._callbacks.append(callback)

    def remove_callback(self, callback: Callable[[Event], Any]) -> None:
        """Remove a callback."""
        with self._lock:
            if callback in self._callbacks:
                self._callbacks.remove(callback)

    def publish(self, event: Event) -> None:
        """Publish an event to all subscribers."""
        logger.debug(f"Publishing event: {event.type.value}")

        with self._lock:
            subscribers = list(self._subscribers.items())
            callbacks = list(self._callbacks)

        for subscriber_id, events in subscribers:
            events.put(event)
            logger.debug(f"Queued {event.type.value} for {subscriber_id}")

        for callback in callbacks:
            try:
                callback(event)
            except Exception as e:
                logger.error(f"Callback error: {e}")

    def emit(self, event_type: EventType, data: dict[str, Any] | None = None) -> Event:
        """Convenience method to create and publish an event.

        Args:
            event_type: The type of event
            data: Event payload data

        Returns:
            The created event
        """
        event = Event(type=event_type, data=data or {})
        self.publish(event)
        return event

    @property
    def subscriber_count(self) -> int:
        """Get the number of active subscribers."""
        return len(self._subscribers)
