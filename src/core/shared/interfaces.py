"""
Interfaces (Ports) - contracts between the core and the adapters.

Driven ports live here: UnitOfWork, Repository, EventPublisher and
SequenceGenerator. The core defines them, adapters implement them, and
dependencies always point at the core.
"""

from abc import ABC, abstractmethod
from typing import Dict, List, Optional, TypeVar, Generic, Protocol, runtime_checkable

from .events import DomainEvent


T = TypeVar("T")


class UnitOfWork(ABC):
    """
    Unit of Work - one read-modify-write as an atomic unit.

    Pattern: context manager
        with uow:
            repo.save(ticket)
            uow.publish_event(event)
        # commit on clean exit, rollback on exception

    Events queued with ``publish_event`` are only published after the
    commit succeeds. A rollback discards them.
    """

    def __init__(self):
        self._events: List[DomainEvent] = []

    def __enter__(self) -> "UnitOfWork":
        self._begin_transaction()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> bool:
        if exc_type is not None:
            self.rollback()
        else:
            self.commit()
        return False

    @abstractmethod
    def _begin_transaction(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def commit(self) -> None:
        """
        Persist the changes, then publish the queued events.

        Note:
            If the commit fails the events are discarded.
        """
        raise NotImplementedError

    @abstractmethod
    def rollback(self) -> None:
        """Undo the changes and drop the queued events."""
        raise NotImplementedError

    def publish_event(self, event: DomainEvent) -> None:
        """Queue an event for publication after commit."""
        self._events.append(event)

    def collect_events(self) -> List[DomainEvent]:
        return list(self._events)

    def clear_events(self) -> None:
        self._events.clear()


class Repository(Protocol, Generic[T]):
    """
    Basic persistence operations shared by every repository.

    Protocol, so adapters do not need to inherit from it.
    """

    def save(self, entity: T) -> None:
        ...

    def get_by_id(self, entity_id: str) -> Optional[T]:
        ...

    def delete(self, entity_id: str) -> None:
        ...

    def list_all(self) -> List[T]:
        ...


class EventPublisher(ABC):
    """
    Publishes domain events to consumers (Celery, logs, memory).
    """

    @abstractmethod
    def publish(self, event: DomainEvent) -> None:
        raise NotImplementedError

    @abstractmethod
    def publish_batch(self, events: List[DomainEvent]) -> None:
        raise NotImplementedError


@runtime_checkable
class SequenceGenerator(Protocol):
    """
    Atomic named counters.

    Human readable numbers (ticket numbers, receipt numbers) are drawn
    from here instead of counting documents, so two concurrent requests
    never get the same value.
    """

    def next_value(self, name: str) -> int:
        """Increment the counter ``name`` and return the new value (starts at 1)."""
        ...


class InMemorySequenceGenerator:
    """Counter dictionary for tests and local prototyping."""

    def __init__(self, start: Optional[Dict[str, int]] = None):
        self._values: Dict[str, int] = dict(start or {})

    def next_value(self, name: str) -> int:
        self._values[name] = self._values.get(name, 0) + 1
        return self._values[name]

    def current(self, name: str) -> int:
        return self._values.get(name, 0)


UoW = UnitOfWork
