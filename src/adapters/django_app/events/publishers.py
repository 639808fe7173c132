"""
Event publishers for domain events.

Implementations of the EventPublisher port:
- LoggingEventPublisher: logs only (development)
- CeleryEventPublisher: hands events to Celery workers (production)
- InMemoryEventPublisher: keeps events for assertions (tests)
- CompositeEventPublisher: fans out to several publishers

The Unit of Work calls ``publish_batch`` after a successful commit.
A publisher failure is logged and never reaches the caller.
"""

import json
import logging
from typing import Callable, Dict, List, Optional

from src.core.shared.events import DomainEvent
from src.core.shared.interfaces import EventPublisher

from .handlers import dispatch_domain_event

logger = logging.getLogger(__name__)

EventHandler = Callable[[DomainEvent], None]


class _LocalHandlers:
    """Synchronous in-process subscribers, keyed by event type."""

    def __init__(self):
        self._handlers: Dict[str, List[EventHandler]] = {}

    def register_handler(self, event_type: str, handler: EventHandler) -> None:
        self._handlers.setdefault(event_type, []).append(handler)

    def _dispatch_to_handlers(self, event: DomainEvent) -> None:
        for handler in self._handlers.get(event.event_type, []):
            try:
                handler(event)
            except Exception:
                logger.exception("Local handler for %s failed", event.event_type)


class LoggingEventPublisher(_LocalHandlers, EventPublisher):
    """
    Logs every event as one JSON line.

    Used in development, where no broker is running.
    """

    def __init__(self, log_level: int = logging.INFO):
        super().__init__()
        self._log_level = log_level

    def publish(self, event: DomainEvent) -> None:
        logger.log(
            self._log_level,
            "[EVENT] %s | aggregate=%s | data=%s",
            event.event_type,
            event.aggregate_id,
            json.dumps(event.to_dict()["data"], default=str),
        )
        self._dispatch_to_handlers(event)

    def publish_batch(self, events: List[DomainEvent]) -> None:
        for event in events:
            self.publish(event)


class CeleryEventPublisher(EventPublisher):
    """
    Sends events to the ``dispatch_domain_event`` task.

    The broker being down must not fail a request that already
    committed, so enqueue errors are logged and dropped.
    """

    def __init__(self, also_log: bool = True):
        self._also_log = also_log

    def publish(self, event: DomainEvent) -> None:
        if self._also_log:
            logger.info("[EVENT->CELERY] %s | aggregate=%s", event.event_type, event.aggregate_id)

        try:
            dispatch_domain_event.delay(event.event_type, event.to_dict())
        except Exception:
            logger.exception("Could not enqueue %s for %s", event.event_type, event.aggregate_id)

    def publish_batch(self, events: List[DomainEvent]) -> None:
        for event in events:
            self.publish(event)


class InMemoryEventPublisher(_LocalHandlers, EventPublisher):
    """
    Example:
        publisher = InMemoryEventPublisher()
        ...
        assert publisher.get_events_by_type("TicketCreatedEvent")
    """

    def __init__(self):
        super().__init__()
        self._published_events: List[DomainEvent] = []

    def publish(self, event: DomainEvent) -> None:
        self._published_events.append(event)
        self._dispatch_to_handlers(event)

    def publish_batch(self, events: List[DomainEvent]) -> None:
        for event in events:
            self.publish(event)

    @property
    def published_events(self) -> List[DomainEvent]:
        return self._published_events.copy()

    def clear(self) -> None:
        self._published_events.clear()

    def get_events_by_type(self, event_type: str) -> List[DomainEvent]:
        return [e for e in self._published_events if e.event_type == event_type]


class CompositeEventPublisher(EventPublisher):

    def __init__(self, publishers: Optional[List[EventPublisher]] = None):
        self._publishers = list(publishers or [])

    def publish(self, event: DomainEvent) -> None:
        for publisher in self._publishers:
            try:
                publisher.publish(event)
            except Exception:
                logger.exception("%s failed to publish %s", publisher.__class__.__name__, event.event_type)

    def publish_batch(self, events: List[DomainEvent]) -> None:
        for publisher in self._publishers:
            try:
                publisher.publish_batch(events)
            except Exception:
                logger.exception("%s failed to publish a batch", publisher.__class__.__name__)


PUBLISHER_MODES = ('logging', 'celery', 'both', 'memory')


def get_event_publisher(mode: str = 'logging') -> EventPublisher:
    """
    Build the publisher for EVENT_PUBLISHER_MODE.

    Modes:
        logging: log only
        celery: enqueue on Celery
        both: log and enqueue
        memory: keep in memory (tests)

    Raises:
        ValueError: If the mode is unknown
    """
    mode = (mode or 'logging').lower()
    if mode == 'celery':
        return CeleryEventPublisher()
    if mode == 'both':
        return CompositeEventPublisher([LoggingEventPublisher(), CeleryEventPublisher(also_log=False)])
    if mode == 'memory':
        return InMemoryEventPublisher()
    if mode == 'logging':
        return LoggingEventPublisher()
    raise ValueError(f"Unknown EVENT_PUBLISHER_MODE: {mode!r} (expected one of {PUBLISHER_MODES})")
