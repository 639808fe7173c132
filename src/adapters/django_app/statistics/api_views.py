"""
JSON API for statistics (admin only).

Endpoints:
- GET /api/statistics/tickets/          Ticket breakdown
- GET /api/statistics/payments/         Totals over successful payments
- GET /api/statistics/emi-defaulters/   Overdue EMI instalments

Query params for the two summaries:
- from, to: ISO 8601 bounds on creation time (``to`` exclusive)
- customer_id
- project_id (payments only)
"""

import logging

from django.http import HttpRequest, JsonResponse

from src.core.shared.clock import parse_datetime
from src.core.shared.exceptions import ValidationError
from src.core.statistics.services import StatisticsQueryDTO

from ..shared.api import BaseAPIView, json_response, query_int

logger = logging.getLogger(__name__)


def _query_datetime(request: HttpRequest, name: str):
    try:
        return parse_datetime(request.GET.get(name))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO 8601 date", field=name)


def build_statistics_query(request: HttpRequest) -> StatisticsQueryDTO:
    return StatisticsQueryDTO(
        created_from=_query_datetime(request, 'from'),
        created_to=_query_datetime(request, 'to'),
        customer_id=request.GET.get('customer_id') or None,
        project_id=request.GET.get('project_id') or None,
    )


class TicketStatisticsView(BaseAPIView):

    def get(self, request: HttpRequest) -> JsonResponse:
        try:
            actor = self.get_actor(request)
            stats = self.get_service('ticket_statistics_service').execute(actor, build_statistics_query(request))
            return json_response(success=True, data=stats.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class PaymentStatisticsView(BaseAPIView):

    def get(self, request: HttpRequest) -> JsonResponse:
        try:
            actor = self.get_actor(request)
            stats = self.get_service('payment_statistics_service').execute(actor, build_statistics_query(request))
            return json_response(success=True, data=stats.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class EMIDefaultersView(BaseAPIView):

    def get(self, request: HttpRequest) -> JsonResponse:
        """
        Query params:
        - grace_days: override of EMI_GRACE_DAYS
        """
        try:
            actor = self.get_actor(request)
            grace_days = request.GET.get('grace_days')
            defaulters = self.get_service('emi_defaulters_service').execute(
                actor,
                grace_days=None if grace_days in (None, '') else query_int(request, 'grace_days', 0),
            )
            return json_response(
                success=True,
                data=[d.to_dict() for d in defaulters],
                meta={'count': len(defaulters)},
            )

        except Exception as e:
            return self.handle_exception(e)
