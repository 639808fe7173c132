"""
Ports (interfaces) for ticket persistence.

- TicketFilter: store independent filter criteria
- TicketRepository: CRUD plus filtered lookup
- InMemoryTicketRepository: reference implementation for tests

Example:
    class DjangoTicketRepository:
        def find(self, criteria: TicketFilter) -> List[TicketEntity]:
            return [self.to_entity(m) for m in TicketModel.objects.filter(...)]
"""

from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, List, Optional, Protocol, runtime_checkable

from src.core.shared.exceptions import ConcurrencyError, EntityNotFoundError

from .entities import TicketEntity, TicketStatus, TicketType
from .sla import TicketPriority

if TYPE_CHECKING:
    from src.core.statistics.aggregators import TicketStatistics


@dataclass(frozen=True)
class TicketFilter:
    """
    Filter criteria understood by every ticket repository.

    All fields are optional; ``None`` means "do not filter".
    ``created_from`` is inclusive and ``created_to`` exclusive.
    """

    customer_id: Optional[str] = None
    assigned_to_id: Optional[str] = None
    statuses: Optional[tuple] = None
    priority: Optional[TicketPriority] = None
    ticket_type: Optional[TicketType] = None
    breached: Optional[bool] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None

    def matches(self, ticket: TicketEntity) -> bool:
        """In-memory evaluation, mirrored by the ORM adapter."""
        if self.customer_id is not None and ticket.customer_id != self.customer_id:
            return False
        if self.assigned_to_id is not None and ticket.assigned_to_id != self.assigned_to_id:
            return False
        if self.statuses is not None and ticket.status not in self.statuses:
            return False
        if self.priority is not None and ticket.priority != self.priority:
            return False
        if self.ticket_type is not None and ticket.ticket_type != self.ticket_type:
            return False
        if self.breached is not None and bool(ticket.sla and ticket.sla.breached) != self.breached:
            return False
        if self.created_from is not None and ticket.created_at < self.created_from:
            return False
        if self.created_to is not None and ticket.created_at >= self.created_to:
            return False
        return True


ACTIVE_STATUSES = (
    TicketStatus.OPEN,
    TicketStatus.IN_REVIEW,
    TicketStatus.PENDING_CUSTOMER,
)


@runtime_checkable
class TicketRepository(Protocol):
    """
    Persistence contract for tickets.

    Implementations:
    - DjangoTicketRepository (ORM)
    - InMemoryTicketRepository (tests)
    """

    def save(self, ticket: TicketEntity) -> None:
        """Create or update. Ticket numbers are unique across the store."""
        ...

    def get_by_id(self, ticket_id: str) -> Optional[TicketEntity]:
        ...

    def get_by_number(self, ticket_number: str) -> Optional[TicketEntity]:
        ...

    def delete(self, ticket_id: str) -> None:
        """
        Raises:
            EntityNotFoundError: If the ticket does not exist
        """
        ...

    def find(self, criteria: TicketFilter, offset: int = 0, limit: Optional[int] = None) -> List[TicketEntity]:
        """Tickets matching ``criteria``, newest first, optionally one page of them."""
        ...

    def list_all(self) -> List[TicketEntity]:
        ...

    def exists(self, ticket_id: str) -> bool:
        ...

    def count(self, criteria: Optional[TicketFilter] = None) -> int:
        ...

    def statistics(self, criteria: TicketFilter) -> "TicketStatistics":
        """Per status, priority and type figures, computed by the store."""
        ...


class InMemoryTicketRepository:
    """
    Dict backed TicketRepository.

    Example:
        repo = InMemoryTicketRepository()
        repo.save(ticket)
        assert repo.get_by_id(ticket.id) is ticket
    """

    def __init__(self):
        self._tickets: dict[str, TicketEntity] = {}

    def save(self, ticket: TicketEntity) -> None:
        for other in self._tickets.values():
            if other.id != ticket.id and other.ticket_number == ticket.ticket_number:
                raise ConcurrencyError(f"Ticket number {ticket.ticket_number} already used")
        self._tickets[ticket.id] = ticket

    def get_by_id(self, ticket_id: str) -> Optional[TicketEntity]:
        return self._tickets.get(ticket_id)

    def get_by_number(self, ticket_number: str) -> Optional[TicketEntity]:
        for ticket in self._tickets.values():
            if ticket.ticket_number == ticket_number:
                return ticket
        return None

    def delete(self, ticket_id: str) -> None:
        if ticket_id not in self._tickets:
            raise EntityNotFoundError(
                f"Ticket {ticket_id} not found", entity_type="Ticket", entity_id=ticket_id
            )
        del self._tickets[ticket_id]

    def find(self, criteria: TicketFilter, offset: int = 0, limit: Optional[int] = None) -> List[TicketEntity]:
        found = [t for t in self._tickets.values() if criteria.matches(t)]
        found.sort(key=lambda t: t.created_at, reverse=True)
        end = None if limit is None else offset + limit
        return found[offset:end]

    def list_all(self) -> List[TicketEntity]:
        return list(self._tickets.values())

    def exists(self, ticket_id: str) -> bool:
        return ticket_id in self._tickets

    def count(self, criteria: Optional[TicketFilter] = None) -> int:
        if criteria is None:
            return len(self._tickets)
        return sum(1 for t in self._tickets.values() if criteria.matches(t))

    def statistics(self, criteria: TicketFilter) -> "TicketStatistics":
        from src.core.statistics.aggregators import summarize_tickets
        return summarize_tickets(self.find(criteria))

    def clear(self) -> None:
        self._tickets.clear()
