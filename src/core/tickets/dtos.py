"""
Data Transfer Objects for the ticket domain.

- Input DTOs: validated data coming from the request layer
- Output DTOs: what the request layer serializes back
- Query DTOs: filters and pagination for listings

Entities never leave the core; views only see these.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .entities import TicketEntity


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# INPUT DTOs
# =============================================================================

@dataclass(frozen=True)
class CreateTicketInputDTO:
    """
    Data to raise a ticket.

    Attributes:
        subject: Short title
        description: Details of the issue
        ticket_type: feedback | grievance | suggestion | technical | billing
        priority: low | medium | high | urgent
        category: Free text sub-classification
        attachments: Tuple of {name, url, type} mappings
    """

    subject: str
    description: str
    ticket_type: str = "technical"
    priority: str = "medium"
    category: Optional[str] = None
    attachments: tuple = field(default_factory=tuple)


@dataclass(frozen=True)
class AddCommentInputDTO:
    ticket_id: str
    text: str
    is_internal: bool = False
    attachments: tuple = field(default_factory=tuple)


@dataclass(frozen=True)
class AssignTicketInputDTO:
    ticket_id: str
    agent_id: str


@dataclass(frozen=True)
class ResolveTicketInputDTO:
    ticket_id: str
    resolution_text: str


@dataclass(frozen=True)
class ReopenTicketInputDTO:
    ticket_id: str
    reason: Optional[str] = None


@dataclass(frozen=True)
class RateTicketInputDTO:
    ticket_id: str
    score: int
    feedback: Optional[str] = None


# =============================================================================
# OUTPUT DTOs
# =============================================================================

@dataclass
class TicketOutputDTO:
    """
    Full ticket representation.

    Internal comments are dropped unless ``include_internal`` is set
    when building the DTO, which the use cases do for admins only.
    """

    id: str
    ticket_number: str
    customer_id: str
    ticket_type: str
    category: Optional[str]
    subject: str
    description: str
    priority: str
    status: str
    assigned_to_id: Optional[str]
    attachments: List[Dict[str, Any]]
    comments: List[Dict[str, Any]]
    resolution: Optional[Dict[str, Any]]
    rating: Optional[Dict[str, Any]]
    sla: Optional[Dict[str, Any]]
    is_response_overdue: bool
    is_resolution_overdue: bool
    first_response_at: Optional[datetime]
    closed_at: Optional[datetime]
    reopened_count: int
    last_reopened_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, entity: TicketEntity, include_internal: bool = True) -> "TicketOutputDTO":
        return cls(
            id=entity.id,
            ticket_number=entity.ticket_number,
            customer_id=entity.customer_id,
            ticket_type=entity.ticket_type.value,
            category=entity.category,
            subject=entity.subject,
            description=entity.description,
            priority=entity.priority.value,
            status=entity.status.value,
            assigned_to_id=entity.assigned_to_id,
            attachments=[a.to_dict() for a in entity.attachments],
            comments=[c.to_dict() for c in entity.visible_comments(include_internal)],
            resolution=entity.resolution.to_dict() if entity.resolution else None,
            rating=entity.rating.to_dict() if entity.rating else None,
            sla=entity.sla.to_dict() if entity.sla else None,
            is_response_overdue=entity.is_response_overdue(),
            is_resolution_overdue=entity.is_resolution_overdue(),
            first_response_at=entity.first_response_at,
            closed_at=entity.closed_at,
            reopened_count=entity.reopened_count,
            last_reopened_at=entity.last_reopened_at,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    def to_dict(self) -> dict:
        """JSON friendly representation."""
        return {
            "id": self.id,
            "ticket_number": self.ticket_number,
            "customer_id": self.customer_id,
            "type": self.ticket_type,
            "category": self.category,
            "subject": self.subject,
            "description": self.description,
            "priority": self.priority,
            "status": self.status,
            "assigned_to_id": self.assigned_to_id,
            "attachments": self.attachments,
            "comments": self.comments,
            "resolution": self.resolution,
            "rating": self.rating,
            "sla": self.sla,
            "is_response_overdue": self.is_response_overdue,
            "is_resolution_overdue": self.is_resolution_overdue,
            "first_response_at": _iso(self.first_response_at),
            "closed_at": _iso(self.closed_at),
            "reopened_count": self.reopened_count,
            "last_reopened_at": _iso(self.last_reopened_at),
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class TicketListItemDTO:
    """Slim row for listings."""

    id: str
    ticket_number: str
    subject: str
    ticket_type: str
    status: str
    priority: str
    customer_id: str
    assigned_to_id: Optional[str]
    sla_breached: bool
    created_at: datetime

    @classmethod
    def from_entity(cls, entity: TicketEntity) -> "TicketListItemDTO":
        return cls(
            id=entity.id,
            ticket_number=entity.ticket_number,
            subject=entity.subject,
            ticket_type=entity.ticket_type.value,
            status=entity.status.value,
            priority=entity.priority.value,
            customer_id=entity.customer_id,
            assigned_to_id=entity.assigned_to_id,
            sla_breached=bool(entity.sla and entity.sla.breached),
            created_at=entity.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "ticket_number": self.ticket_number,
            "subject": self.subject,
            "type": self.ticket_type,
            "status": self.status,
            "priority": self.priority,
            "customer_id": self.customer_id,
            "assigned_to_id": self.assigned_to_id,
            "sla_breached": self.sla_breached,
            "created_at": self.created_at.isoformat(),
        }


# =============================================================================
# QUERY DTOs
# =============================================================================

@dataclass(frozen=True)
class ListTicketsQueryDTO:
    """
    Listing filters as received from the request layer (strings).

    Attributes:
        status: Filter by status value
        priority: Filter by priority value
        ticket_type: Filter by type value
        assigned_to_id: Filter by assignee
        breached_only: Only tickets with the breach flag on
        page: 1-indexed page
        per_page: Page size
    """

    status: Optional[str] = None
    priority: Optional[str] = None
    ticket_type: Optional[str] = None
    assigned_to_id: Optional[str] = None
    breached_only: bool = False
    page: int = 1
    per_page: int = 20


@dataclass
class PaginatedResultDTO:
    items: List[TicketListItemDTO]
    total: int
    page: int
    per_page: int

    @property
    def total_pages(self) -> int:
        if self.per_page <= 0:
            return 0
        return (self.total + self.per_page - 1) // self.per_page

    @property
    def has_next(self) -> bool:
        return self.page < self.total_pages

    @property
    def has_previous(self) -> bool:
        return self.page > 1

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "page": self.page,
            "per_page": self.per_page,
            "total_pages": self.total_pages,
            "has_next": self.has_next,
            "has_previous": self.has_previous,
        }
