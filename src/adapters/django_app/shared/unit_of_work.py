"""
Unit of Work - Django implementation.

Wraps one use case in ``transaction.atomic`` and publishes the queued
domain events only after the block commits.

Lifecycle:
    with uow:                  # atomic block entered
        repo.save(entity)
        uow.publish_event(e)
    # commit → events handed to the publisher
    # exception → rollback, events dropped

When an outer atomic block is already open (a request wrapped in
ATOMIC_REQUESTS, or a test transaction) the unit of work becomes a
savepoint and the real commit belongs to the outer block.

An instance can be reused for several sequential ``with`` blocks; it
cannot be nested inside itself.
"""

import logging
from typing import List, Optional

from django.db import DEFAULT_DB_ALIAS, transaction

from src.core.shared.events import DomainEvent
from src.core.shared.interfaces import EventPublisher, UnitOfWork

logger = logging.getLogger(__name__)


class DjangoUnitOfWork(UnitOfWork):
    """
    Example:
        uow = DjangoUnitOfWork(event_publisher=CeleryEventPublisher())
        with uow:
            ticket_repo.save(ticket)
            uow.publish_event(TicketCreatedEvent(...))
    """

    def __init__(
        self,
        event_publisher: Optional[EventPublisher] = None,
        using: str = DEFAULT_DB_ALIAS,
    ):
        super().__init__()
        self._event_publisher = event_publisher
        self._using = using
        self._atomic = None
        self._committed = False
        self._rolled_back = False

    def _begin_transaction(self) -> None:
        if self._atomic is not None:
            raise RuntimeError("Unit of work is already active")
        self._committed = False
        self._rolled_back = False
        self.clear_events()
        self._atomic = transaction.atomic(using=self._using)
        self._atomic.__enter__()
        logger.debug("Transaction started")

    def commit(self) -> None:
        """
        Close the atomic block, then publish.

        Raises:
            DatabaseError: If the commit fails; queued events are dropped
        """
        atomic, self._atomic = self._atomic, None
        if atomic is None:
            logger.warning("Commit called outside of a transaction")
            return

        try:
            atomic.__exit__(None, None, None)
        except Exception:
            logger.error("Commit failed, dropping %d events", len(self._events))
            self._rolled_back = True
            self.clear_events()
            raise

        self._committed = True
        logger.debug("Transaction committed")
        self._publish_events()

    def rollback(self) -> None:
        atomic, self._atomic = self._atomic, None
        self._rolled_back = True
        self.clear_events()
        if atomic is None:
            return
        transaction.set_rollback(True, using=self._using)
        atomic.__exit__(None, None, None)
        logger.debug("Transaction rolled back")

    def _publish_events(self) -> None:
        events, self._events = self._events, []
        if not events:
            return
        if self._event_publisher is None:
            for event in events:
                logger.info("Event %s for %s (no publisher)", event.event_type, event.aggregate_id)
            return
        try:
            self._event_publisher.publish_batch(events)
        except Exception:
            # state is already committed
            logger.exception("Failed to publish %d events", len(events))

    @property
    def is_committed(self) -> bool:
        return self._committed

    @property
    def is_rolled_back(self) -> bool:
        return self._rolled_back


class InMemoryUnitOfWork(UnitOfWork):
    """
    Unit of Work for unit tests; nothing is persisted.

    Example:
        uow = InMemoryUnitOfWork()
        with uow:
            uow.publish_event(event)

        assert uow.committed
        assert len(uow.published_events) == 1
    """

    def __init__(self, event_publisher: Optional[EventPublisher] = None):
        super().__init__()
        self._event_publisher = event_publisher
        self._committed = False
        self._rolled_back = False
        self._published_events: List[DomainEvent] = []

    def _begin_transaction(self) -> None:
        self._committed = False
        self._rolled_back = False

    def commit(self) -> None:
        self._committed = True
        events = self.collect_events()
        self._published_events.extend(events)
        self.clear_events()
        if self._event_publisher is not None and events:
            self._event_publisher.publish_batch(events)

    def rollback(self) -> None:
        self._rolled_back = True
        self.clear_events()

    @property
    def committed(self) -> bool:
        return self._committed

    @property
    def rolled_back(self) -> bool:
        return self._rolled_back

    @property
    def published_events(self) -> List[DomainEvent]:
        return self._published_events

    def events_of(self, event_type: str) -> List[DomainEvent]:
        return [e for e in self._published_events if e.event_type == event_type]

    def reset(self) -> None:
        self._committed = False
        self._rolled_back = False
        self._published_events.clear()
        self.clear_events()
