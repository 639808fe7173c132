"""
SLA Policy - priority to deadlines.

Pure value objects, no I/O. A ticket gets its deadlines once at
creation and keeps them, even if the policy is reconfigured later.

SLA table (hours):
    PRIORITY   RESPONSE   RESOLUTION
    urgent         2          24
    high           4          48
    medium        24          72
    low           48         120

Breach:
    The flag turns on when the response deadline passes without a
    qualifying response, or when the resolution deadline passes while
    the ticket is not resolved/closed. It never turns off again.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Any, Dict, Mapping, Optional, Tuple

from src.core.shared.exceptions import ValidationError


class TicketPriority(Enum):
    """
    Ordered priority levels: LOW < MEDIUM < HIGH < URGENT.
    """

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]

    def __lt__(self, other: "TicketPriority") -> bool:
        if not isinstance(other, TicketPriority):
            return NotImplemented
        return self.rank < other.rank

    @classmethod
    def from_string(cls, value: str) -> "TicketPriority":
        """
        Accepts the enum name ("URGENT") or value ("urgent").

        Raises:
            ValidationError: If the value is unknown
        """
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value).strip().lower())
        except ValueError:
            raise ValidationError(f"Invalid priority: {value}", field="priority")


_PRIORITY_RANK = {
    TicketPriority.LOW: 0,
    TicketPriority.MEDIUM: 1,
    TicketPriority.HIGH: 2,
    TicketPriority.URGENT: 3,
}


@dataclass(frozen=True)
class SLAHours:
    response: int
    resolution: int


DEFAULT_SLA_HOURS: Dict[TicketPriority, SLAHours] = {
    TicketPriority.URGENT: SLAHours(response=2, resolution=24),
    TicketPriority.HIGH: SLAHours(response=4, resolution=48),
    TicketPriority.MEDIUM: SLAHours(response=24, resolution=72),
    TicketPriority.LOW: SLAHours(response=48, resolution=120),
}


@dataclass
class SLARecord:
    """
    SLA state stored on a ticket.

    Attributes:
        response_deadline: created_at + response hours
        resolution_deadline: created_at + resolution hours
        response_time_hours: Hours until the first qualifying response
        resolution_time_hours: Hours until resolution
        breached: Sticky breach flag
    """

    response_deadline: datetime
    resolution_deadline: datetime
    response_time_hours: Optional[float] = None
    resolution_time_hours: Optional[float] = None
    breached: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return {
            "response_deadline": self.response_deadline.isoformat(),
            "resolution_deadline": self.resolution_deadline.isoformat(),
            "response_time_hours": self.response_time_hours,
            "resolution_time_hours": self.resolution_time_hours,
            "breached": self.breached,
        }


@dataclass(frozen=True)
class SLAPolicy:
    """
    Mapping from priority to (response hours, resolution hours).

    Example:
        policy = SLAPolicy()
        record = policy.deadlines_for(TicketPriority.URGENT, created_at)
        record.response_deadline == created_at + timedelta(hours=2)
    """

    hours: Mapping[TicketPriority, SLAHours] = field(
        default_factory=lambda: dict(DEFAULT_SLA_HOURS)
    )

    @classmethod
    def from_mapping(cls, raw: Optional[Mapping[str, Any]]) -> "SLAPolicy":
        """
        Build a policy from settings.

        Accepts ``{"urgent": {"response": 2, "resolution": 24}}`` or
        ``{"urgent": [2, 24]}``. Missing priorities keep the defaults.

        Raises:
            ValidationError: If an entry is malformed or not positive
        """
        hours = dict(DEFAULT_SLA_HOURS)
        for key, value in (raw or {}).items():
            priority = TicketPriority.from_string(key)
            response, resolution = cls._parse_entry(key, value)
            if response <= 0 or resolution <= 0:
                raise ValidationError(
                    f"SLA hours for {key} must be positive", field="sla_hours"
                )
            hours[priority] = SLAHours(response=response, resolution=resolution)
        return cls(hours=hours)

    @staticmethod
    def _parse_entry(key: str, value: Any) -> Tuple[int, int]:
        try:
            if isinstance(value, Mapping):
                return int(value["response"]), int(value["resolution"])
            response, resolution = value
            return int(response), int(resolution)
        except (KeyError, TypeError, ValueError):
            raise ValidationError(f"Malformed SLA entry for {key}", field="sla_hours")

    def hours_for(self, priority: TicketPriority) -> SLAHours:
        return self.hours[priority]

    def deadlines_for(self, priority: TicketPriority, created_at: datetime) -> SLARecord:
        """Fresh SLA record for a ticket created at ``created_at``."""
        hours = self.hours_for(priority)
        return SLARecord(
            response_deadline=created_at + timedelta(hours=hours.response),
            resolution_deadline=created_at + timedelta(hours=hours.resolution),
        )

    def to_dict(self) -> Dict[str, Dict[str, int]]:
        return {
            priority.value: {"response": h.response, "resolution": h.resolution}
            for priority, h in self.hours.items()
        }


def is_breached(
    record: SLARecord,
    now: datetime,
    has_response: bool,
    is_finished: bool,
) -> bool:
    """
    Evaluate the breach condition at ``now``.

    Args:
        record: SLA record with the deadlines
        now: Evaluation time
        has_response: A qualifying response was recorded
        is_finished: The ticket is resolved or closed
    """
    if record.breached:
        return True
    if now > record.response_deadline and not has_response:
        return True
    if now > record.resolution_deadline and not is_finished:
        return True
    return False
