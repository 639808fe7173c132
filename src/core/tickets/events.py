"""
Ticket domain events.

Events:
- TicketCreatedEvent
- TicketCommentAddedEvent
- TicketAssignedEvent
- TicketAwaitingCustomerEvent
- TicketResolvedEvent
- TicketClosedEvent
- TicketReopenedEvent
- TicketRatedEvent
- TicketSLABreachedEvent

Use cases queue them on the Unit of Work; they are published after commit:

    with uow:
        repo.save(ticket)
        uow.publish_event(TicketCreatedEvent(aggregate_id=ticket.id, ...))
"""

from dataclasses import dataclass
from typing import Dict, Any, Optional

from src.core.shared.events import DomainEvent


@dataclass
class _TicketEvent(DomainEvent):
    @property
    def aggregate_type(self) -> str:
        return "Ticket"


@dataclass
class TicketCreatedEvent(_TicketEvent):
    """
    A ticket was raised.

    Typical handlers:
    - acknowledge to the customer
    - alert the support queue for urgent tickets
    """

    ticket_number: str = ""
    customer_id: str = ""
    ticket_type: str = ""
    priority: str = ""
    subject: str = ""


@dataclass
class TicketCommentAddedEvent(_TicketEvent):
    """
    A comment was appended.

    Attributes:
        author_id: Who wrote it
        preview: First 100 characters
        is_internal: Hidden from the customer
        first_response: This comment recorded the first response
    """

    author_id: str = ""
    preview: str = ""
    is_internal: bool = False
    first_response: bool = False


@dataclass
class TicketAssignedEvent(_TicketEvent):
    agent_id: str = ""
    assigned_by_id: Optional[str] = None

    def _get_event_data(self) -> Dict[str, Any]:
        data = {"agent_id": self.agent_id}
        if self.assigned_by_id:
            data["assigned_by_id"] = self.assigned_by_id
        return data


@dataclass
class TicketAwaitingCustomerEvent(_TicketEvent):
    requested_by_id: str = ""
    customer_id: str = ""


@dataclass
class TicketResolvedEvent(_TicketEvent):
    """
    A ticket was resolved.

    Typical handlers:
    - ask the customer for a rating
    - feed SLA dashboards
    """

    resolved_by_id: str = ""
    customer_id: str = ""
    resolution_time_hours: Optional[float] = None
    sla_breached: bool = False


@dataclass
class TicketClosedEvent(_TicketEvent):
    closed_by_id: str = ""


@dataclass
class TicketReopenedEvent(_TicketEvent):
    """
    A resolved/closed ticket went back to OPEN.

    A reopen often means the fix did not hold, so handlers alert the
    support lead.
    """

    reopened_by_id: str = ""
    reason: Optional[str] = None
    reopened_count: int = 0

    def _get_event_data(self) -> Dict[str, Any]:
        data = {
            "reopened_by_id": self.reopened_by_id,
            "reopened_count": self.reopened_count,
        }
        if self.reason:
            data["reason"] = self.reason
        return data


@dataclass
class TicketRatedEvent(_TicketEvent):
    score: int = 0
    customer_id: str = ""


@dataclass
class TicketSLABreachedEvent(_TicketEvent):
    """
    The sticky breach flag flipped on.

    Attributes:
        ticket_number: Human readable number
        priority: Priority at creation
        assigned_to_id: Current assignee, if any
        response_overdue: The response deadline was missed
        resolution_overdue: The resolution deadline was missed
    """

    ticket_number: str = ""
    priority: str = ""
    assigned_to_id: Optional[str] = None
    response_overdue: bool = False
    resolution_overdue: bool = False
