"""
Fixtures for the core (framework free) tests.
"""

from typing import List

import pytest

from src.core.shared.actor import Actor
from src.core.shared.events import DomainEvent
from src.core.shared.interfaces import UnitOfWork


class FakeUnitOfWork(UnitOfWork):
    """
    Unit of Work that only records what happened.

    Events are moved to ``published`` on commit and dropped on rollback,
    the same contract as the real implementation.
    """

    def __init__(self):
        super().__init__()
        self.published: List[DomainEvent] = []
        self.commits = 0
        self.rollbacks = 0

    def _begin_transaction(self) -> None:
        pass

    def commit(self) -> None:
        self.commits += 1
        self.published.extend(self._events)
        self.clear_events()

    def rollback(self) -> None:
        self.rollbacks += 1
        self.clear_events()

    def of_type(self, event_type: str) -> List[DomainEvent]:
        return [e for e in self.published if e.event_type == event_type]


@pytest.fixture
def uow():
    return FakeUnitOfWork()


@pytest.fixture
def admin():
    return Actor.admin("admin-1")


@pytest.fixture
def customer():
    return Actor.customer("cust-1")


@pytest.fixture
def other_customer():
    return Actor.customer("cust-2")


@pytest.fixture
def invoice_uow():
    """Second unit of work, for the invoice step that runs in its own transaction."""
    return FakeUnitOfWork()
