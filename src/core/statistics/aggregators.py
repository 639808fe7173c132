"""
Statistics aggregators.

Every accumulator is keyed by the domain enums, so a new status or type
shows up with a zero count instead of silently disappearing.

The ORM repositories group and average in SQL and hand the per-group
figures to ``TicketStatistics.build`` / ``PaymentStatistics.build``. The
scans below produce the same figures from entities, for the in-memory
repositories and for the optional Python predicate.

Functions:
- summarize_tickets: per status/priority/type breakdown
- summarize_payments: totals over successful payments, per type sums
- is_emi_defaulter / find_emi_defaulters: overdue EMI instalments
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from decimal import Decimal
from typing import Callable, Dict, Iterable, List, Mapping, Optional

from src.core.shared.clock import utcnow
from src.core.payments.entities import PaymentEntity, PaymentStatus, PaymentType
from src.core.tickets.entities import TicketEntity, TicketStatus, TicketType
from src.core.tickets.sla import TicketPriority


DEFAULT_EMI_GRACE_DAYS = 7

CENTS = Decimal("0.01")

TicketPredicate = Callable[[TicketEntity], bool]
PaymentPredicate = Callable[[PaymentEntity], bool]


class _Mean:
    """Running mean that ignores missing values."""

    def __init__(self):
        self.total = 0.0
        self.count = 0

    def add(self, value: Optional[float]) -> None:
        if value is None:
            return
        self.total += float(value)
        self.count += 1

    @property
    def value(self) -> Optional[float]:
        if not self.count:
            return None
        return round(self.total / self.count, 2)


def round_average(value: Optional[float]) -> Optional[float]:
    if value is None:
        return None
    return round(float(value), 2)


# =============================================================================
# Tickets
# =============================================================================

@dataclass
class TicketStatusStats:
    count: int = 0
    avg_response_time_hours: Optional[float] = None
    avg_resolution_time_hours: Optional[float] = None
    avg_rating: Optional[float] = None
    breached_count: int = 0

    def to_dict(self) -> dict:
        return {
            "count": self.count,
            "avg_response_time_hours": self.avg_response_time_hours,
            "avg_resolution_time_hours": self.avg_resolution_time_hours,
            "avg_rating": self.avg_rating,
            "breached_count": self.breached_count,
        }


@dataclass
class TicketStatistics:
    total: int
    by_status: Dict[TicketStatus, TicketStatusStats]
    by_priority: Dict[TicketPriority, int]
    by_type: Dict[TicketType, int]
    average_rating: Optional[float]
    breached_count: int
    resolution_rate: float

    @classmethod
    def build(
        cls,
        by_status: Mapping[TicketStatus, TicketStatusStats],
        by_priority: Mapping[TicketPriority, int],
        by_type: Mapping[TicketType, int],
        average_rating: Optional[float] = None,
    ) -> "TicketStatistics":
        """
        Assemble the totals from per-group figures.

        Missing enum members are filled with zeroes, so the in-memory
        scan and the database grouping produce the same shape.
        """
        status_stats = {status: by_status.get(status) or TicketStatusStats() for status in TicketStatus}
        total = sum(stats.count for stats in status_stats.values())
        finished = status_stats[TicketStatus.RESOLVED].count + status_stats[TicketStatus.CLOSED].count

        return cls(
            total=total,
            by_status=status_stats,
            by_priority={priority: by_priority.get(priority, 0) for priority in TicketPriority},
            by_type={ticket_type: by_type.get(ticket_type, 0) for ticket_type in TicketType},
            average_rating=round_average(average_rating),
            breached_count=sum(stats.breached_count for stats in status_stats.values()),
            resolution_rate=round(finished / total * 100, 2) if total else 0.0,
        )

    def to_dict(self) -> dict:
        return {
            "total": self.total,
            "by_status": {s.value: stats.to_dict() for s, stats in self.by_status.items()},
            "by_priority": {p.value: n for p, n in self.by_priority.items()},
            "by_type": {t.value: n for t, n in self.by_type.items()},
            "average_rating": self.average_rating,
            "breached_count": self.breached_count,
            "resolution_rate": self.resolution_rate,
        }


def summarize_tickets(
    tickets: Iterable[TicketEntity],
    predicate: Optional[TicketPredicate] = None,
) -> TicketStatistics:
    """
    Aggregate tickets by status, priority and type in Python.

    Used by the in-memory repository and whenever an extra predicate
    has to run against whole entities; the ORM repository groups in SQL.

    Args:
        tickets: Tickets to scan
        predicate: Extra filter applied to each ticket

    Returns:
        TicketStatistics with every enum member present
    """
    counts = {status: 0 for status in TicketStatus}
    breached = {status: 0 for status in TicketStatus}
    response = {status: _Mean() for status in TicketStatus}
    resolution = {status: _Mean() for status in TicketStatus}
    rating = {status: _Mean() for status in TicketStatus}
    by_priority = {priority: 0 for priority in TicketPriority}
    by_type = {ticket_type: 0 for ticket_type in TicketType}
    overall_rating = _Mean()

    for ticket in tickets:
        if predicate is not None and not predicate(ticket):
            continue
        status = ticket.status
        counts[status] += 1
        by_priority[ticket.priority] += 1
        by_type[ticket.ticket_type] += 1
        if ticket.sla:
            response[status].add(ticket.sla.response_time_hours)
            resolution[status].add(ticket.sla.resolution_time_hours)
            if ticket.sla.breached:
                breached[status] += 1
        if ticket.rating:
            rating[status].add(ticket.rating.score)
            overall_rating.add(ticket.rating.score)

    return TicketStatistics.build(
        by_status={
            status: TicketStatusStats(
                count=counts[status],
                avg_response_time_hours=response[status].value,
                avg_resolution_time_hours=resolution[status].value,
                avg_rating=rating[status].value,
                breached_count=breached[status],
            )
            for status in TicketStatus
        },
        by_priority=by_priority,
        by_type=by_type,
        average_rating=overall_rating.value,
    )


# =============================================================================
# Payments
# =============================================================================

@dataclass
class PaymentStatistics:
    total_amount: Decimal = Decimal("0.00")
    total_payments: int = 0
    avg_amount: Decimal = Decimal("0.00")
    by_type: Dict[PaymentType, Decimal] = field(
        default_factory=lambda: {t: Decimal("0.00") for t in PaymentType}
    )

    @classmethod
    def build(cls, amounts_by_type: Mapping[PaymentType, Decimal], total_payments: int) -> "PaymentStatistics":
        """Totals from per-type amount sums of SUCCESS payments."""
        stats = cls(total_payments=total_payments)
        for payment_type, amount in amounts_by_type.items():
            amount = Decimal(str(amount or 0)).quantize(CENTS)
            stats.by_type[payment_type] += amount
            stats.total_amount += amount
        if total_payments:
            stats.avg_amount = (stats.total_amount / total_payments).quantize(CENTS)
        return stats

    def to_dict(self) -> dict:
        return {
            "total_amount": str(self.total_amount),
            "total_payments": self.total_payments,
            "avg_amount": str(self.avg_amount),
            "by_type": {t.value: str(amount) for t, amount in self.by_type.items()},
        }


def summarize_payments(
    payments: Iterable[PaymentEntity],
    predicate: Optional[PaymentPredicate] = None,
) -> PaymentStatistics:
    """
    Totals over SUCCESS payments only.

    Refunded, pending and failed payments are ignored.
    """
    amounts = {payment_type: Decimal("0.00") for payment_type in PaymentType}
    count = 0
    for payment in payments:
        if payment.status != PaymentStatus.SUCCESS:
            continue
        if predicate is not None and not predicate(payment):
            continue
        amounts[payment.payment_type] += payment.amount
        count += 1
    return PaymentStatistics.build(amounts, count)


# =============================================================================
# EMI defaulters
# =============================================================================

def emi_cutoff(now: Optional[datetime] = None, grace_days: int = DEFAULT_EMI_GRACE_DAYS) -> datetime:
    """Due dates strictly before this instant are in default."""
    return (now or utcnow()) - timedelta(days=grace_days)


def is_emi_defaulter(
    payment: PaymentEntity,
    now: Optional[datetime] = None,
    grace_days: int = DEFAULT_EMI_GRACE_DAYS,
) -> bool:
    """
    A pending EMI whose next due date is older than the grace window.
    """
    due = payment.metadata.next_due_date
    return (
        payment.payment_type == PaymentType.EMI
        and payment.status == PaymentStatus.PENDING
        and due is not None
        and due < emi_cutoff(now, grace_days)
    )


def find_emi_defaulters(
    payments: Iterable[PaymentEntity],
    now: Optional[datetime] = None,
    grace_days: int = DEFAULT_EMI_GRACE_DAYS,
) -> List[PaymentEntity]:
    """Defaulters, oldest due date first."""
    now = now or utcnow()
    found = [p for p in payments if is_emi_defaulter(p, now, grace_days)]
    return sorted(found, key=lambda p: p.metadata.next_due_date)
