"""
JSON API for tickets.

Endpoints:
- GET    /api/tickets/                      List tickets
- POST   /api/tickets/                      Create ticket
- GET    /api/tickets/<id>/                 Ticket detail
- DELETE /api/tickets/<id>/                 Delete ticket (admin)
- POST   /api/tickets/<id>/comments/        Add comment
- POST   /api/tickets/<id>/assign/          Assign to agent (admin)
- POST   /api/tickets/<id>/request-info/    Ask the customer for details (admin)
- POST   /api/tickets/<id>/resolve/         Resolve (admin)
- POST   /api/tickets/<id>/close/           Close (admin)
- POST   /api/tickets/<id>/reopen/          Reopen
- POST   /api/tickets/<id>/rate/            Rate (owner)

Views are thin: parse, build the DTO, call one use case, serialize.
"""

import logging

from django.http import HttpRequest, JsonResponse

from src.core.tickets.dtos import (
    AddCommentInputDTO,
    AssignTicketInputDTO,
    CreateTicketInputDTO,
    ListTicketsQueryDTO,
    RateTicketInputDTO,
    ReopenTicketInputDTO,
    ResolveTicketInputDTO,
)
from src.core.shared.exceptions import ValidationError

from ..shared.api import BaseAPIView, json_response, query_bool, query_int

logger = logging.getLogger(__name__)


class TicketAPIListView(BaseAPIView):
    """
    GET  /api/tickets/ - list
    POST /api/tickets/ - create
    """

    def get(self, request: HttpRequest) -> JsonResponse:
        """
        Query params:
        - status, priority, type, assigned_to_id
        - breached: only tickets that missed their SLA
        - page (default 1), per_page (default 20, max 100)
        """
        try:
            actor = self.get_actor(request)
            query = ListTicketsQueryDTO(
                status=request.GET.get('status') or None,
                priority=request.GET.get('priority') or None,
                ticket_type=request.GET.get('type') or None,
                assigned_to_id=request.GET.get('assigned_to_id') or None,
                breached_only=bool(query_bool(request, 'breached')),
                page=query_int(request, 'page', 1),
                per_page=query_int(request, 'per_page', 20),
            )
            result = self.get_service('list_tickets_service').execute(actor, query)
            page = result.to_dict()
            items = page.pop('items')
            return json_response(success=True, data=items, meta=page)

        except Exception as e:
            return self.handle_exception(e)

    def post(self, request: HttpRequest) -> JsonResponse:
        """
        Body:
        {
            "subject": "string (required)",
            "description": "string (required)",
            "type": "feedback|grievance|suggestion|technical|billing",
            "priority": "low|medium|high|urgent",
            "category": "string",
            "attachments": [{"name": "...", "url": "...", "type": "..."}]
        }
        """
        try:
            actor = self.get_actor(request)
            data = self.parse_body(request)

            input_dto = CreateTicketInputDTO(
                subject=data.get('subject', ''),
                description=data.get('description', ''),
                ticket_type=data.get('type', 'technical'),
                priority=data.get('priority', 'medium'),
                category=data.get('category'),
                attachments=tuple(data.get('attachments') or ()),
            )
            output = self.get_service('create_ticket_service').execute(actor, input_dto)

            logger.info("API: ticket %s created", output.ticket_number)
            return json_response(success=True, data=output.to_dict(), status=201)

        except Exception as e:
            return self.handle_exception(e)


class TicketAPIDetailView(BaseAPIView):

    def get(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            actor = self.get_actor(request)
            output = self.get_service('get_ticket_service').execute(actor, pk)
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)

    def delete(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            actor = self.get_actor(request)
            self.get_service('delete_ticket_service').execute(actor, pk)
            return json_response(success=True, data={'id': pk})

        except Exception as e:
            return self.handle_exception(e)


class TicketAPICommentView(BaseAPIView):

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        """
        Body:
        {"text": "string", "is_internal": false, "attachments": [...]}
        """
        try:
            actor = self.get_actor(request)
            data = self.parse_body(request)

            input_dto = AddCommentInputDTO(
                ticket_id=pk,
                text=data.get('text', ''),
                is_internal=bool(data.get('is_internal', False)),
                attachments=tuple(data.get('attachments') or ()),
            )
            output = self.get_service('add_comment_service').execute(actor, input_dto)
            return json_response(success=True, data=output.to_dict(), status=201)

        except Exception as e:
            return self.handle_exception(e)


class TicketAPIAssignView(BaseAPIView):

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        """
        Body:
        {"agent_id": "string (required)"}
        """
        try:
            actor = self.get_actor(request)
            data = self.parse_body(request)
            if not data.get('agent_id'):
                raise ValidationError("agent_id is required", field="agent_id")

            output = self.get_service('assign_ticket_service').execute(
                actor, AssignTicketInputDTO(ticket_id=pk, agent_id=data['agent_id'])
            )
            logger.info("API: ticket %s assigned to %s", output.ticket_number, data['agent_id'])
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class TicketAPIRequestInfoView(BaseAPIView):

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            actor = self.get_actor(request)
            output = self.get_service('request_customer_info_service').execute(actor, pk)
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class TicketAPIResolveView(BaseAPIView):

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        """
        Body:
        {"resolution": "string (required)"}
        """
        try:
            actor = self.get_actor(request)
            data = self.parse_body(request)

            output = self.get_service('resolve_ticket_service').execute(
                actor, ResolveTicketInputDTO(ticket_id=pk, resolution_text=data.get('resolution', ''))
            )
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class TicketAPICloseView(BaseAPIView):

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        try:
            actor = self.get_actor(request)
            output = self.get_service('close_ticket_service').execute(actor, pk)
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class TicketAPIReopenView(BaseAPIView):

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        """
        Body:
        {"reason": "string (optional)"}
        """
        try:
            actor = self.get_actor(request)
            data = self.parse_body(request)

            output = self.get_service('reopen_ticket_service').execute(
                actor, ReopenTicketInputDTO(ticket_id=pk, reason=data.get('reason') or None)
            )
            logger.info("API: ticket %s reopened", output.ticket_number)
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)


class TicketAPIRateView(BaseAPIView):

    def post(self, request: HttpRequest, pk: str) -> JsonResponse:
        """
        Body:
        {"score": 1-5, "feedback": "string (optional)"}
        """
        try:
            actor = self.get_actor(request)
            data = self.parse_body(request)
            if 'score' not in data:
                raise ValidationError("score is required", field="score")

            output = self.get_service('rate_ticket_service').execute(
                actor,
                RateTicketInputDTO(ticket_id=pk, score=data['score'], feedback=data.get('feedback')),
            )
            return json_response(success=True, data=output.to_dict())

        except Exception as e:
            return self.handle_exception(e)
