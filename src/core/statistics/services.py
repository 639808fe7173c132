"""
Statistics use cases.

Read only, admin only. The coarse filter (dates, owner, project) goes
to the repository, which groups and averages in the store. An optional
predicate needs whole entities, so it switches to a scan in Python.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from src.core.shared.actor import Actor
from src.core.shared.clock import utcnow
from src.core.shared.exceptions import ValidationError
from src.core.payments.entities import PaymentEntity, PaymentStatus, PaymentType
from src.core.payments.ports import PaymentFilter, PaymentRepository
from src.core.tickets.ports import TicketFilter, TicketRepository

from .aggregators import (
    DEFAULT_EMI_GRACE_DAYS,
    PaymentPredicate,
    PaymentStatistics,
    TicketPredicate,
    TicketStatistics,
    emi_cutoff,
    find_emi_defaulters,
    summarize_payments,
    summarize_tickets,
)


logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class StatisticsQueryDTO:
    """
    Attributes:
        created_from: Inclusive lower bound on creation time
        created_to: Exclusive upper bound on creation time
        customer_id: Restrict to one customer
        project_id: Restrict to one project (payments only)
    """

    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    customer_id: Optional[str] = None
    project_id: Optional[str] = None

    def __post_init__(self):
        if self.created_from and self.created_to and self.created_from >= self.created_to:
            raise ValidationError("created_from must be before created_to", field="created_from")


@dataclass
class EMIDefaulterDTO:
    payment_id: str
    customer_id: str
    project_id: str
    amount: str
    installment_number: Optional[int]
    next_due_date: datetime
    days_overdue: int

    @classmethod
    def from_entity(cls, payment: PaymentEntity, now: datetime) -> "EMIDefaulterDTO":
        due = payment.metadata.next_due_date
        return cls(
            payment_id=payment.id,
            customer_id=payment.customer_id,
            project_id=payment.project_id,
            amount=str(payment.amount),
            installment_number=payment.metadata.installment_number,
            next_due_date=due,
            days_overdue=(now - due).days,
        )

    def to_dict(self) -> dict:
        return {
            "payment_id": self.payment_id,
            "customer_id": self.customer_id,
            "project_id": self.project_id,
            "amount": self.amount,
            "installment_number": self.installment_number,
            "next_due_date": self.next_due_date.isoformat(),
            "days_overdue": self.days_overdue,
        }


class TicketStatisticsService:
    def __init__(self, ticket_repo: TicketRepository):
        self.ticket_repo = ticket_repo

    def execute(
        self,
        actor: Actor,
        query: Optional[StatisticsQueryDTO] = None,
        predicate: Optional[TicketPredicate] = None,
    ) -> TicketStatistics:
        actor.require_admin("view_statistics")
        query = query or StatisticsQueryDTO()
        criteria = TicketFilter(
            customer_id=query.customer_id,
            created_from=query.created_from,
            created_to=query.created_to,
        )
        if predicate is None:
            return self.ticket_repo.statistics(criteria)
        return summarize_tickets(self.ticket_repo.find(criteria), predicate)


class PaymentStatisticsService:
    def __init__(self, payment_repo: PaymentRepository):
        self.payment_repo = payment_repo

    def execute(
        self,
        actor: Actor,
        query: Optional[StatisticsQueryDTO] = None,
        predicate: Optional[PaymentPredicate] = None,
    ) -> PaymentStatistics:
        actor.require_admin("view_statistics")
        query = query or StatisticsQueryDTO()
        criteria = PaymentFilter(
            customer_id=query.customer_id,
            project_id=query.project_id,
            statuses=(PaymentStatus.SUCCESS,),
            created_from=query.created_from,
            created_to=query.created_to,
        )
        if predicate is None:
            return self.payment_repo.statistics(criteria)
        return summarize_payments(self.payment_repo.find(criteria), predicate)


class EMIDefaultersService:
    """
    Pending EMI instalments overdue by more than the grace window.

    Example:
        service = EMIDefaultersService(repo, grace_days=7)
        service.execute(Actor.admin("a-1"))  # [EMIDefaulterDTO, ...]
    """

    def __init__(self, payment_repo: PaymentRepository, grace_days: int = DEFAULT_EMI_GRACE_DAYS):
        if grace_days < 0:
            raise ValidationError("Grace period cannot be negative", field="grace_days")
        self.payment_repo = payment_repo
        self.grace_days = grace_days

    def execute(self, actor: Optional[Actor] = None, grace_days: Optional[int] = None) -> List[EMIDefaulterDTO]:
        """
        Args:
            actor: Caller; None for internal scheduled runs
            grace_days: Override of the configured grace period
        """
        if actor is not None:
            actor.require_admin("view_emi_defaulters")
        grace = self.grace_days if grace_days is None else grace_days
        if grace < 0:
            raise ValidationError("Grace period cannot be negative", field="grace_days")

        now = utcnow()
        candidates = self.payment_repo.find(
            PaymentFilter(
                payment_type=PaymentType.EMI,
                statuses=(PaymentStatus.PENDING,),
                next_due_before=emi_cutoff(now, grace),
            )
        )
        defaulters = find_emi_defaulters(candidates, now, grace)
        logger.debug("%d EMI defaulters with %d days grace", len(defaulters), grace)
        return [EMIDefaulterDTO.from_entity(p, now) for p in defaulters]
