"""
Support ticket domain entities.

Entities:
- TicketEntity: aggregate root
- TicketComment, TicketAttachment, TicketResolution, TicketRating: sub-records
- TicketStatus, TicketType: enumerations (TicketPriority lives in sla)

Rules enforced here:
- Subject/description are required and bounded
- SLA deadlines are computed once, at creation
- Status only moves through the lifecycle methods
- Breach flag is re-evaluated on every mutation and never resets
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional
import uuid

from src.core.shared.clock import hours_between, parse_datetime, utcnow
from src.core.shared.exceptions import (
    ValidationError,
    BusinessRuleViolationError,
)

from .sla import SLAPolicy, SLARecord, TicketPriority, is_breached


TICKET_NUMBER_PREFIX = "TKT"


class TicketStatus(Enum):
    """
    Ticket states.

    Flow:
        OPEN → IN_REVIEW → PENDING_CUSTOMER → CLOSED
                   │              │
                   └──→ RESOLVED ←┘ → CLOSED

        RESOLVED / CLOSED → OPEN (reopen)
    """

    OPEN = "open"
    IN_REVIEW = "in_review"
    PENDING_CUSTOMER = "pending_customer"
    RESOLVED = "resolved"
    CLOSED = "closed"

    @property
    def is_finished(self) -> bool:
        return self in (TicketStatus.RESOLVED, TicketStatus.CLOSED)

    @classmethod
    def from_string(cls, value: str) -> "TicketStatus":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower().replace(" ", "_"))
        except ValueError:
            raise ValidationError(f"Invalid status: {value}", field="status")


class TicketType(Enum):
    FEEDBACK = "feedback"
    GRIEVANCE = "grievance"
    SUGGESTION = "suggestion"
    TECHNICAL = "technical"
    BILLING = "billing"

    @classmethod
    def from_string(cls, value: str) -> "TicketType":
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Invalid ticket type: {value}", field="type")


@dataclass
class TicketAttachment:
    name: str
    url: str
    type: Optional[str] = None
    uploaded_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TicketAttachment":
        try:
            uploaded_at = parse_datetime(data.get("uploaded_at"))
        except (TypeError, ValueError):
            raise ValidationError("Invalid attachment upload time", field="attachments")
        if not data.get("name") or not data.get("url"):
            raise ValidationError("Attachment needs a name and an url", field="attachments")
        return cls(
            name=data["name"],
            url=data["url"],
            type=data.get("type"),
            uploaded_at=uploaded_at or utcnow(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "url": self.url,
            "type": self.type,
            "uploaded_at": self.uploaded_at.isoformat(),
        }


@dataclass
class TicketComment:
    """
    One entry in the ticket conversation.

    Attributes:
        text: Comment body
        author_id: Who wrote it
        author_is_admin: Whether the author acted as admin
        is_internal: Hidden from the customer
        attachments: Files attached to the comment
        created_at: When it was written
    """

    text: str
    author_id: str
    author_is_admin: bool = False
    is_internal: bool = False
    attachments: List[TicketAttachment] = field(default_factory=list)
    created_at: datetime = field(default_factory=utcnow)
    id: str = field(default_factory=lambda: str(uuid.uuid4()))

    @property
    def counts_as_response(self) -> bool:
        return not self.is_internal or self.author_is_admin

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "text": self.text,
            "author_id": self.author_id,
            "author_is_admin": self.author_is_admin,
            "is_internal": self.is_internal,
            "attachments": [a.to_dict() for a in self.attachments],
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class TicketResolution:
    text: str
    resolved_by_id: str
    resolved_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "resolved_by_id": self.resolved_by_id,
            "resolved_at": self.resolved_at.isoformat(),
        }


@dataclass
class TicketRating:
    score: int
    feedback: Optional[str]
    rated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "score": self.score,
            "feedback": self.feedback,
            "rated_at": self.rated_at.isoformat(),
        }


def format_ticket_number(sequence: int, when: datetime, prefix: str = TICKET_NUMBER_PREFIX) -> str:
    """
    Human readable ticket number: prefix + YYYY + MM + 5-digit sequence.

    Example:
        format_ticket_number(42, datetime(2024, 3, 1)) == "TKT20240300042"
    """
    return f"{prefix}{when:%Y%m}{sequence:05d}"


@dataclass
class TicketEntity:
    """
    Aggregate root: support ticket.

    Invariants:
    - ticket_number is set once at creation and never changes
    - SLA deadlines are set once at creation from priority
    - resolution is present only while RESOLVED or CLOSED
    - rating can only be set while RESOLVED or CLOSED
    - reopen only from RESOLVED/CLOSED, and it bumps reopened_count by one

    Example:
        ticket = TicketEntity.create(
            customer_id="cust-1",
            subject="Lift not working",
            description="Tower B lift stuck since morning",
            ticket_number="TKT20240300001",
            priority=TicketPriority.HIGH,
        )
        ticket.assign_to_agent("agent-7")
        ticket.resolve("Technician fixed the lift", resolver_id="agent-7")
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    ticket_number: str = ""

    customer_id: str = ""
    ticket_type: TicketType = TicketType.TECHNICAL
    category: Optional[str] = None
    subject: str = ""
    description: str = ""

    priority: TicketPriority = TicketPriority.MEDIUM
    status: TicketStatus = TicketStatus.OPEN
    assigned_to_id: Optional[str] = None

    attachments: List[TicketAttachment] = field(default_factory=list)
    comments: List[TicketComment] = field(default_factory=list)
    resolution: Optional[TicketResolution] = None
    rating: Optional[TicketRating] = None
    sla: Optional[SLARecord] = None

    first_response_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    reopened_count: int = 0
    last_reopened_at: Optional[datetime] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    SUBJECT_MAX_LENGTH = 200
    DESCRIPTION_MAX_LENGTH = 2000

    @classmethod
    def create(
        cls,
        customer_id: str,
        subject: str,
        description: str,
        ticket_number: str,
        ticket_type: TicketType = TicketType.TECHNICAL,
        priority: TicketPriority = TicketPriority.MEDIUM,
        category: Optional[str] = None,
        attachments: Optional[List[TicketAttachment]] = None,
        policy: Optional[SLAPolicy] = None,
        now: Optional[datetime] = None,
    ) -> "TicketEntity":
        """
        Factory with validation and SLA computation.

        Args:
            customer_id: Owner of the ticket
            subject: Short title (max 200 chars)
            description: Details (max 2000 chars)
            ticket_number: Number drawn from the ticket sequence
            ticket_type: Ticket classification
            priority: Drives the SLA deadlines
            category: Free text sub-classification
            attachments: Files uploaded with the ticket
            policy: SLA table (defaults to the standard one)
            now: Creation time (defaults to current UTC time)

        Raises:
            ValidationError: If input is invalid
        """
        cls._validate_text("subject", subject, cls.SUBJECT_MAX_LENGTH)
        cls._validate_text("description", description, cls.DESCRIPTION_MAX_LENGTH)
        if not customer_id:
            raise ValidationError("Customer is required", field="customer_id")
        if not ticket_number:
            raise ValidationError("Ticket number is required", field="ticket_number")

        created_at = now or utcnow()
        policy = policy or SLAPolicy()

        return cls(
            ticket_number=ticket_number,
            customer_id=customer_id,
            ticket_type=ticket_type,
            category=category.strip() if category else None,
            subject=subject.strip(),
            description=description.strip(),
            priority=priority,
            status=TicketStatus.OPEN,
            attachments=list(attachments or []),
            sla=policy.deadlines_for(priority, created_at),
            created_at=created_at,
            updated_at=created_at,
        )

    @staticmethod
    def _validate_text(name: str, value: str, max_length: int) -> None:
        if not value or not value.strip():
            raise ValidationError(f"{name.capitalize()} is required", field=name)
        if len(value.strip()) > max_length:
            raise ValidationError(
                f"{name.capitalize()} cannot exceed {max_length} characters",
                field=name,
            )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    def add_comment(
        self,
        text: str,
        author_id: str,
        is_internal: bool = False,
        attachments: Optional[List[TicketAttachment]] = None,
        author_is_admin: bool = False,
        now: Optional[datetime] = None,
    ) -> TicketComment:
        """
        Append a comment and record the first response when it qualifies.

        A comment qualifies when it is public or written by an admin.
        The first qualifying comment sets ``first_response_at`` and the
        SLA response time.

        Returns:
            The comment that was appended
        """
        if not text or not text.strip():
            raise ValidationError("Comment text is required", field="text")
        if not author_id:
            raise ValidationError("Comment author is required", field="author_id")

        now = now or utcnow()
        # a late first response still counts as a missed deadline
        self._refresh_breach(now)
        comment = TicketComment(
            text=text.strip(),
            author_id=author_id,
            author_is_admin=author_is_admin,
            is_internal=is_internal,
            attachments=list(attachments or []),
            created_at=now,
        )
        self.comments.append(comment)

        if self.first_response_at is None and comment.counts_as_response:
            self.first_response_at = now
            self.sla.response_time_hours = hours_between(self.created_at, now)

        self._touch(now)
        return comment

    def assign_to_agent(self, agent_id: str, now: Optional[datetime] = None) -> None:
        """
        Set the assignee and move the ticket to IN_REVIEW.

        Raises:
            ValidationError: If agent_id is empty
            BusinessRuleViolationError: If the ticket is resolved or closed
        """
        if not agent_id:
            raise ValidationError("Agent is required", field="agent_id")
        if self.status.is_finished:
            raise BusinessRuleViolationError(
                f"Cannot assign a {self.status.value} ticket",
                rule="ticket_finished",
            )

        self.assigned_to_id = agent_id
        self.status = TicketStatus.IN_REVIEW
        self._touch(now)

    def request_customer_info(self, now: Optional[datetime] = None) -> None:
        """IN_REVIEW → PENDING_CUSTOMER."""
        if self.status != TicketStatus.IN_REVIEW:
            raise BusinessRuleViolationError(
                "Only tickets in review can wait for the customer",
                rule="invalid_status_transition",
            )
        self.status = TicketStatus.PENDING_CUSTOMER
        self._touch(now)

    def resolve(self, text: str, resolver_id: str, now: Optional[datetime] = None) -> None:
        """
        Resolve the ticket and record the resolution time.

        Raises:
            ValidationError: If text or resolver is missing
            BusinessRuleViolationError: If already resolved or closed
        """
        if self.status == TicketStatus.RESOLVED:
            raise BusinessRuleViolationError(
                "Ticket is already resolved",
                rule="ticket_already_resolved",
            )
        if self.status == TicketStatus.CLOSED:
            raise BusinessRuleViolationError(
                "Closed tickets must be reopened before resolving",
                rule="ticket_finished",
            )
        if not text or not text.strip():
            raise ValidationError("Resolution text is required", field="text")
        if not resolver_id:
            raise ValidationError("Resolver is required", field="resolver_id")

        now = now or utcnow()
        # breach check must see the pre-resolution state
        self._refresh_breach(now)
        self.status = TicketStatus.RESOLVED
        self.resolution = TicketResolution(
            text=text.strip(),
            resolved_by_id=resolver_id,
            resolved_at=now,
        )
        self.sla.resolution_time_hours = hours_between(self.created_at, now)
        self._touch(now)

    def close(self, now: Optional[datetime] = None) -> None:
        """
        Close a resolved ticket, or one abandoned while waiting on the customer.
        """
        if self.status not in (TicketStatus.RESOLVED, TicketStatus.PENDING_CUSTOMER):
            raise BusinessRuleViolationError(
                f"Cannot close a ticket in status {self.status.value}",
                rule="invalid_status_transition",
            )
        now = now or utcnow()
        self._refresh_breach(now)
        self.status = TicketStatus.CLOSED
        self.closed_at = now
        self._touch(now)

    def reopen(self, reason: Optional[str] = None, now: Optional[datetime] = None) -> None:
        """
        RESOLVED/CLOSED → OPEN.

        Clears the resolution, bumps ``reopened_count`` and, when a reason
        is given, leaves a public comment authored by the customer.

        Raises:
            BusinessRuleViolationError: If the ticket is not resolved or closed
        """
        if not self.status.is_finished:
            raise BusinessRuleViolationError(
                "Only resolved or closed tickets can be reopened",
                rule="reopen_requires_resolution",
            )

        now = now or utcnow()
        self.status = TicketStatus.OPEN
        self.resolution = None
        self.closed_at = None
        self.sla.resolution_time_hours = None
        self.reopened_count += 1
        self.last_reopened_at = now

        if reason and reason.strip():
            self.add_comment(
                text=f"Ticket reopened: {reason.strip()}",
                author_id=self.customer_id,
                is_internal=False,
                now=now,
            )
        self._touch(now)

    def add_rating(self, score: int, feedback: Optional[str] = None, now: Optional[datetime] = None) -> None:
        """
        Rate the support received.

        Raises:
            BusinessRuleViolationError: If status is not RESOLVED/CLOSED
            ValidationError: If score is outside 1..5
        """
        if not self.status.is_finished:
            raise BusinessRuleViolationError(
                "Can only rate resolved or closed tickets",
                rule="rating_requires_resolution",
            )
        if isinstance(score, bool) or not isinstance(score, int) or not 1 <= score <= 5:
            raise ValidationError("Rating score must be between 1 and 5", field="score")

        now = now or utcnow()
        self.rating = TicketRating(
            score=score,
            feedback=feedback.strip() if feedback else None,
            rated_at=now,
        )
        self._touch(now)

    # -------------------------------------------------------------------------
    # SLA
    # -------------------------------------------------------------------------

    def refresh_sla(self, now: Optional[datetime] = None) -> bool:
        """
        Re-evaluate the breach flag without any other change.

        Returns:
            True if the flag flipped on during this call
        """
        was_breached = self.sla.breached
        self._refresh_breach(now or utcnow())
        return self.sla.breached and not was_breached

    def _refresh_breach(self, now: datetime) -> None:
        if self.sla is None:
            return
        self.sla.breached = is_breached(
            self.sla,
            now,
            has_response=self.first_response_at is not None,
            is_finished=self.status.is_finished,
        )

    def is_response_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.first_response_at or self.status == TicketStatus.CLOSED or not self.sla:
            return False
        return (now or utcnow()) > self.sla.response_deadline

    def is_resolution_overdue(self, now: Optional[datetime] = None) -> bool:
        if self.status.is_finished or not self.sla:
            return False
        return (now or utcnow()) > self.sla.resolution_deadline

    def _touch(self, now: Optional[datetime] = None) -> None:
        now = now or utcnow()
        self._refresh_breach(now)
        self.updated_at = now

    # -------------------------------------------------------------------------
    # Queries
    # -------------------------------------------------------------------------

    def visible_comments(self, include_internal: bool) -> List[TicketComment]:
        if include_internal:
            return list(self.comments)
        return [c for c in self.comments if not c.is_internal]

    def __repr__(self) -> str:
        return (
            f"TicketEntity("
            f"number={self.ticket_number}, "
            f"status={self.status.value}, "
            f"priority={self.priority.value}"
            f")"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TicketEntity):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)
