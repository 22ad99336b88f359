"""
In-process event sink.

Notification and real-time collaborators subscribe to event types; the
scheduler publishes after its writes are committed. A failing handler is
logged and does not affect the write that produced the event or the other
handlers.
"""

from typing import Callable, Type, TypeVar

from vetscheduler.logging_context import get_request_logger
from vetscheduler.schemas.event_schema import SchedulerEvent

logger = get_request_logger(__name__)

E = TypeVar("E", bound=SchedulerEvent)
Handler = Callable[[SchedulerEvent], None]


class EventBus:
    """Synchronous publish/subscribe keyed by event class."""

    def __init__(self) -> None:
        self._handlers: dict[Type[SchedulerEvent], list[Handler]] = {}
        self._history: list[SchedulerEvent] = []

    def subscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        self._handlers.setdefault(event_type, []).append(handler)  # type: ignore[arg-type]
        logger.debug("Handler subscribed to %s", event_type.__name__)

    def unsubscribe(self, event_type: Type[E], handler: Callable[[E], None]) -> None:
        handlers = self._handlers.get(event_type, [])
        if handler in handlers:
            handlers.remove(handler)  # type: ignore[arg-type]

    def publish(self, event: SchedulerEvent) -> int:
        """Deliver ``event`` to every handler subscribed to its class or a base class.

        Returns:
            Number of handlers that completed without raising.
        """
        self._history.append(event)
        delivered = 0
        for event_type, handlers in list(self._handlers.items()):
            if not isinstance(event, event_type):
                continue
            for handler in list(handlers):
                try:
                    handler(event)
                    delivered += 1
                except Exception:
                    logger.exception(
                        "Event handler %r failed for %s", handler, type(event).__name__
                    )
        logger.debug("Published %s to %d handler(s)", type(event).__name__, delivered)
        return delivered

    def get_history(self) -> list[SchedulerEvent]:
        """Return every event published on this bus, oldest first."""
        return list(self._history)

    def clear_history(self) -> None:
        self._history.clear()
