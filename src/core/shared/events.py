"""
Domain Events - decoupled notification between the core and its adapters.

Events are:
- named in the past tense (TicketResolved, not ResolveTicket)
- created by use cases and queued on the Unit of Work
- published only after a successful commit
- serializable, so they can travel through Celery
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, ClassVar
import uuid

from .clock import utcnow


@dataclass
class DomainEvent(ABC):
    """
    Abstract base for every domain event.

    Attributes:
        event_id: Unique identifier of the event
        aggregate_id: Id of the aggregate that raised it
        occurred_at: When it happened (UTC)
        version: Schema version of the payload

    Example:
        @dataclass
        class TicketCreatedEvent(DomainEvent):
            customer_id: str = ""

            @property
            def aggregate_type(self) -> str:
                return "Ticket"
    """

    event_id: str = field(default_factory=lambda: str(uuid.uuid4()))
    aggregate_id: str = ""
    occurred_at: datetime = field(default_factory=utcnow)
    version: int = 1

    _event_type: ClassVar[str] = ""

    def __post_init__(self):
        if not self.aggregate_id:
            raise ValueError("aggregate_id is required")

    @property
    @abstractmethod
    def aggregate_type(self) -> str:
        """Name of the aggregate type, e.g. "Ticket" or "Payment"."""
        ...

    @property
    def event_type(self) -> str:
        return self.__class__.__name__

    def to_dict(self) -> Dict[str, Any]:
        """
        Serialize the event for transport and structured logging.

        Returns:
            Envelope with the event payload under ``data``
        """
        return {
            "event_id": self.event_id,
            "event_type": self.event_type,
            "aggregate_id": self.aggregate_id,
            "aggregate_type": self.aggregate_type,
            "occurred_at": self.occurred_at.isoformat(),
            "version": self.version,
            "data": self._get_event_data(),
        }

    def _get_event_data(self) -> Dict[str, Any]:
        """Event specific fields. Subclasses override when they need formatting."""
        base_fields = {"event_id", "aggregate_id", "occurred_at", "version"}
        return {
            key: value
            for key, value in self.__dict__.items()
            if key not in base_fields and not key.startswith("_")
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "DomainEvent":
        """Rebuild an event from the envelope produced by ``to_dict``."""
        event_data = data.get("data", {})
        return cls(
            event_id=data.get("event_id", str(uuid.uuid4())),
            aggregate_id=data["aggregate_id"],
            occurred_at=datetime.fromisoformat(data["occurred_at"]),
            version=data.get("version", 1),
            **event_data,
        )

    def __repr__(self) -> str:
        return (
            f"{self.event_type}("
            f"event_id={self.event_id[:8]}..., "
            f"aggregate_id={self.aggregate_id}, "
            f"occurred_at={self.occurred_at.isoformat()}"
            f")"
        )
