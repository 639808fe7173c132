"""
Django repository for tickets.

Implements the TicketRepository port from src/core/tickets/ports.py on
top of the ORM. It is a DRIVEN ADAPTER: the core calls it, it never
calls the core back.

Filters are translated to SQL one to one with ``TicketFilter.matches``,
so the in-memory and ORM repositories answer the same questions.
"""

import logging
from typing import Optional

from django.db.models import Avg, Count, Q, QuerySet

from src.core.statistics.aggregators import TicketStatistics, TicketStatusStats, round_average
from src.core.tickets.entities import TicketEntity, TicketStatus, TicketType
from src.core.tickets.ports import TicketFilter
from src.core.tickets.sla import TicketPriority

from ..shared.repository import BaseRepository
from .mappers import TicketMapper
from .models import TicketModel

logger = logging.getLogger(__name__)


class DjangoTicketRepository(BaseRepository[TicketEntity, TicketModel, TicketFilter]):
    """
    Example:
        repo = DjangoTicketRepository()
        repo.save(ticket)
        repo.get_by_number("TKT20240300001")
        repo.find(TicketFilter(customer_id="cust-1", breached=True))
    """

    model_class = TicketModel
    entity_name = "Ticket"

    def __init__(self):
        self._mapper = TicketMapper()

    def to_entity(self, model: TicketModel) -> TicketEntity:
        return self._mapper.to_entity(model)

    def to_model(self, entity: TicketEntity) -> TicketModel:
        return self._mapper.to_model(entity)

    def _apply_filter(self, qs: QuerySet, criteria: TicketFilter) -> QuerySet:
        if criteria.customer_id is not None:
            qs = qs.filter(customer_id=criteria.customer_id)
        if criteria.assigned_to_id is not None:
            qs = qs.filter(assigned_to_id=criteria.assigned_to_id)
        if criteria.statuses is not None:
            qs = qs.filter(status__in=[s.value for s in criteria.statuses])
        if criteria.priority is not None:
            qs = qs.filter(priority=criteria.priority.value)
        if criteria.ticket_type is not None:
            qs = qs.filter(ticket_type=criteria.ticket_type.value)
        if criteria.breached is not None:
            qs = qs.filter(sla_breached=criteria.breached)
        if criteria.created_from is not None:
            qs = qs.filter(created_at__gte=criteria.created_from)
        if criteria.created_to is not None:
            qs = qs.filter(created_at__lt=criteria.created_to)
        return qs

    def get_by_number(self, ticket_number: str) -> Optional[TicketEntity]:
        return self._get_one(ticket_number=ticket_number)

    def statistics(self, criteria: TicketFilter) -> TicketStatistics:
        """
        Grouped counts and averages, one query per breakdown.

        Averages skip NULLs, so tickets without a response, resolution
        or rating do not drag the figures down.
        """
        qs = self._filtered(criteria).order_by()

        by_status = {
            TicketStatus(row['status']): TicketStatusStats(
                count=row['count'],
                avg_response_time_hours=round_average(row['avg_response']),
                avg_resolution_time_hours=round_average(row['avg_resolution']),
                avg_rating=round_average(row['avg_rating']),
                breached_count=row['breached'],
            )
            for row in (
                qs.values('status')
                .annotate(
                    count=Count('id'),
                    avg_response=Avg('sla_response_time_hours'),
                    avg_resolution=Avg('sla_resolution_time_hours'),
                    avg_rating=Avg('rating_score'),
                    breached=Count('id', filter=Q(sla_breached=True)),
                )
            )
        }

        by_priority = dict(
            qs.values('priority')
            .annotate(count=Count('id'))
            .values_list('priority', 'count')
        )

        by_type = dict(
            qs.values('ticket_type')
            .annotate(count=Count('id'))
            .values_list('ticket_type', 'count')
        )

        average_rating = qs.aggregate(avg=Avg('rating_score'))['avg']

        logger.debug("Ticket statistics over %d statuses", len(by_status))
        return TicketStatistics.build(
            by_status=by_status,
            by_priority={TicketPriority(k): v for k, v in by_priority.items()},
            by_type={TicketType(k): v for k, v in by_type.items()},
            average_rating=average_rating,
        )
