"""
Django repository for payments.

Implements the PaymentRepository port from src/core/payments/ports.py.
Filters mirror ``PaymentFilter.matches`` one to one.
"""

import logging
from typing import Optional

from django.db.models import Count, QuerySet, Sum

from src.core.payments.entities import PaymentEntity, PaymentStatus, PaymentType
from src.core.payments.ports import PaymentFilter
from src.core.statistics.aggregators import PaymentStatistics

from ..shared.repository import BaseRepository
from .mappers import PaymentMapper
from .models import PaymentModel

logger = logging.getLogger(__name__)


class DjangoPaymentRepository(BaseRepository[PaymentEntity, PaymentModel, PaymentFilter]):
    """
    Example:
        repo = DjangoPaymentRepository()
        repo.get_by_order_id("order_9f2c...", customer_id="cust-1")
        repo.find(PaymentFilter(payment_type=PaymentType.EMI, next_due_before=cutoff))
    """

    model_class = PaymentModel
    entity_name = "Payment"

    def __init__(self):
        self._mapper = PaymentMapper()

    def to_entity(self, model: PaymentModel) -> PaymentEntity:
        return self._mapper.to_entity(model)

    def to_model(self, entity: PaymentEntity) -> PaymentModel:
        return self._mapper.to_model(entity)

    def _apply_filter(self, qs: QuerySet, criteria: PaymentFilter) -> QuerySet:
        if criteria.customer_id is not None:
            qs = qs.filter(customer_id=criteria.customer_id)
        if criteria.project_id is not None:
            qs = qs.filter(project_id=criteria.project_id)
        if criteria.statuses is not None:
            qs = qs.filter(status__in=[s.value for s in criteria.statuses])
        if criteria.payment_type is not None:
            qs = qs.filter(payment_type=criteria.payment_type.value)
        if criteria.method is not None:
            qs = qs.filter(method=criteria.method.value)
        if criteria.created_from is not None:
            qs = qs.filter(created_at__gte=criteria.created_from)
        if criteria.created_to is not None:
            qs = qs.filter(created_at__lt=criteria.created_to)
        if criteria.next_due_before is not None:
            qs = qs.filter(next_due_date__lt=criteria.next_due_before)
        return qs

    def get_by_order_id(self, order_id: str, customer_id: Optional[str] = None) -> Optional[PaymentEntity]:
        if not order_id:
            return None
        lookup = {'gateway_order_id': order_id}
        if customer_id is not None:
            lookup['customer_id'] = customer_id
        return self._get_one(**lookup)

    def get_by_gateway_payment_id(self, gateway_payment_id: str) -> Optional[PaymentEntity]:
        if not gateway_payment_id:
            return None
        return self._get_one(gateway_payment_id=gateway_payment_id)

    def statistics(self, criteria: PaymentFilter) -> PaymentStatistics:
        """Amount sums per payment type over SUCCESS rows, grouped in SQL."""
        rows = (
            self._filtered(criteria)
            .filter(status=PaymentStatus.SUCCESS.value)
            .order_by()
            .values('payment_type')
            .annotate(total=Sum('amount'), count=Count('id'))
        )
        amounts = {}
        count = 0
        for row in rows:
            amounts[PaymentType(row['payment_type'])] = row['total']
            count += row['count']
        return PaymentStatistics.build(amounts, count)
