"""Event publisher - hands domain events to the notification layer."""

import logging
from threading import Lock
from typing import Any, Callable, Dict, List, Optional, Protocol, Sequence

logger = logging.getLogger(__name__)


class Event(Protocol):
    """Protocol for event types."""

    def to_dict(self) -> Dict[str, Any]:
        ...


EventListener = Callable[[Event], None]


class NotificationSink(Protocol):
    """Anything that accepts domain events. Delivery lives outside the core."""

    def publish(self, event: Event) -> None:
        ...


class EventPublisher:
    """Fans events out to in-process listeners.

    A failing listener is logged and skipped; it never undoes the transition
    that produced the event or starves the other listeners.
    """

    def __init__(self, listeners: Optional[Sequence[EventListener]] = None):
        self._lock = Lock()
        self._listeners: List[EventListener] = list(listeners or ())

    def subscribe(self, listener: EventListener) -> None:
        with self._lock:
            self._listeners.append(listener)

    def unsubscribe(self, listener: EventListener) -> None:
        with self._lock:
            self._listeners = [existing for existing in self._listeners if existing is not listener]

    @property
    def listeners(self) -> Sequence[EventListener]:
        with self._lock:
            return tuple(self._listeners)

    def publish(self, event: Event) -> None:
        event_type = type(event).__name__
        for listener in self.listeners:
            try:
                listener(event)
            except Exception:
                logger.exception("Event listener error for %s: %s", event_type, listener)
        logger.info("event=%s payload=%s", event_type, event.to_dict())
