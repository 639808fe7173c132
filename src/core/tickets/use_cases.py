"""
Use Cases (Application Services) for support tickets.

Use cases:
- CreateTicketService: raise a ticket
- AddCommentService: append to the conversation
- AssignTicketService: hand the ticket to an agent
- RequestCustomerInfoService: park the ticket waiting on the customer
- ResolveTicketService: resolve with a resolution note
- CloseTicketService: close a resolved/parked ticket
- ReopenTicketService: reopen a resolved/closed ticket
- RateTicketService: customer rating after resolution
- GetTicketService / ListTicketsService: reads
- DeleteTicketService: administrative delete
- SweepSLABreachesService: periodic breach refresh

Every command follows the same shape:
    with uow:
        load → authorize → entity method → save → queue events
    return OutputDTO
"""

import logging
from typing import List, Optional

from src.core.shared.actor import Actor
from src.core.shared.clock import utcnow
from src.core.shared.interfaces import SequenceGenerator, UnitOfWork
from src.core.shared.exceptions import EntityNotFoundError, ValidationError

from .dtos import (
    AddCommentInputDTO,
    AssignTicketInputDTO,
    CreateTicketInputDTO,
    ListTicketsQueryDTO,
    PaginatedResultDTO,
    RateTicketInputDTO,
    ReopenTicketInputDTO,
    ResolveTicketInputDTO,
    TicketListItemDTO,
    TicketOutputDTO,
)
from .entities import (
    TICKET_NUMBER_PREFIX,
    TicketAttachment,
    TicketEntity,
    TicketStatus,
    TicketType,
    format_ticket_number,
)
from .events import (
    TicketAssignedEvent,
    TicketAwaitingCustomerEvent,
    TicketClosedEvent,
    TicketCommentAddedEvent,
    TicketCreatedEvent,
    TicketRatedEvent,
    TicketReopenedEvent,
    TicketResolvedEvent,
    TicketSLABreachedEvent,
)
from .ports import ACTIVE_STATUSES, TicketFilter, TicketRepository
from .sla import SLAPolicy, TicketPriority


logger = logging.getLogger(__name__)

TICKET_SEQUENCE = "ticket"


def _breach_event(ticket: TicketEntity) -> TicketSLABreachedEvent:
    now = utcnow()
    return TicketSLABreachedEvent(
        aggregate_id=ticket.id,
        ticket_number=ticket.ticket_number,
        priority=ticket.priority.value,
        assigned_to_id=ticket.assigned_to_id,
        response_overdue=ticket.first_response_at is None and now > ticket.sla.response_deadline,
        resolution_overdue=now > ticket.sla.resolution_deadline,
    )


class _TicketCommandService:
    """Shared plumbing: load by id and report breach flips."""

    def __init__(self, ticket_repo: TicketRepository, uow: UnitOfWork):
        self.ticket_repo = ticket_repo
        self.uow = uow

    def _load(self, ticket_id: str) -> TicketEntity:
        ticket = self.ticket_repo.get_by_id(ticket_id)
        if not ticket:
            raise EntityNotFoundError(
                f"Ticket {ticket_id} not found",
                entity_type="Ticket",
                entity_id=ticket_id,
            )
        return ticket

    def _publish_breach_if_flipped(self, ticket: TicketEntity, was_breached: bool) -> None:
        if ticket.sla and ticket.sla.breached and not was_breached:
            logger.warning("SLA breached for ticket %s", ticket.ticket_number)
            self.uow.publish_event(_breach_event(ticket))


class CreateTicketService:
    """
    Use Case: raise a new ticket.

    Flow:
    1. Parse type/priority
    2. Draw the next number from the ticket sequence
    3. Build the entity (SLA deadlines computed here, once)
    4. Save and queue TicketCreatedEvent

    Example:
        service = CreateTicketService(repo, sequence, uow)
        output = service.execute(
            Actor.customer("cust-1"),
            CreateTicketInputDTO(subject="Water leak", description="Flat 402 ceiling"),
        )
        output.ticket_number  # "TKT20240300001"
    """

    def __init__(
        self,
        ticket_repo: TicketRepository,
        sequence: SequenceGenerator,
        uow: UnitOfWork,
        sla_policy: Optional[SLAPolicy] = None,
        number_prefix: str = TICKET_NUMBER_PREFIX,
    ):
        self.ticket_repo = ticket_repo
        self.sequence = sequence
        self.uow = uow
        self.sla_policy = sla_policy or SLAPolicy()
        self.number_prefix = number_prefix

    def execute(self, actor: Actor, input_dto: CreateTicketInputDTO) -> TicketOutputDTO:
        """
        Raises:
            ValidationError: If the input is invalid
        """
        ticket_type = TicketType.from_string(input_dto.ticket_type)
        priority = TicketPriority.from_string(input_dto.priority)
        attachments = [TicketAttachment.from_dict(a) for a in input_dto.attachments]

        with self.uow:
            now = utcnow()
            number = format_ticket_number(
                self.sequence.next_value(TICKET_SEQUENCE), now, self.number_prefix
            )
            ticket = TicketEntity.create(
                customer_id=actor.user_id,
                subject=input_dto.subject,
                description=input_dto.description,
                ticket_number=number,
                ticket_type=ticket_type,
                priority=priority,
                category=input_dto.category,
                attachments=attachments,
                policy=self.sla_policy,
                now=now,
            )
            self.ticket_repo.save(ticket)

            self.uow.publish_event(
                TicketCreatedEvent(
                    aggregate_id=ticket.id,
                    ticket_number=ticket.ticket_number,
                    customer_id=ticket.customer_id,
                    ticket_type=ticket.ticket_type.value,
                    priority=ticket.priority.value,
                    subject=ticket.subject,
                )
            )

        logger.info("Ticket %s created by %s", ticket.ticket_number, actor.user_id)
        return TicketOutputDTO.from_entity(ticket, include_internal=actor.is_admin)


class AddCommentService(_TicketCommandService):
    """
    Use Case: comment on a ticket.

    Owner or admin only. Internal notes are admin only.
    """

    def execute(self, actor: Actor, input_dto: AddCommentInputDTO) -> TicketOutputDTO:
        attachments = [TicketAttachment.from_dict(a) for a in input_dto.attachments]

        with self.uow:
            ticket = self._load(input_dto.ticket_id)
            actor.require_owner(ticket.customer_id, "comment", allow_admin=True)
            if input_dto.is_internal:
                actor.require_admin("add_internal_comments")

            was_breached = ticket.sla.breached
            had_response = ticket.first_response_at is not None
            comment = ticket.add_comment(
                text=input_dto.text,
                author_id=actor.user_id,
                is_internal=input_dto.is_internal,
                attachments=attachments,
                author_is_admin=actor.is_admin,
            )
            self.ticket_repo.save(ticket)

            self.uow.publish_event(
                TicketCommentAddedEvent(
                    aggregate_id=ticket.id,
                    author_id=actor.user_id,
                    preview=comment.text[:100],
                    is_internal=comment.is_internal,
                    first_response=not had_response and ticket.first_response_at is not None,
                )
            )
            self._publish_breach_if_flipped(ticket, was_breached)

        return TicketOutputDTO.from_entity(ticket, include_internal=actor.is_admin)


class AssignTicketService(_TicketCommandService):
    """Use Case: admin assigns the ticket to an agent (status → in_review)."""

    def execute(self, actor: Actor, input_dto: AssignTicketInputDTO) -> TicketOutputDTO:
        actor.require_admin("assign_tickets")

        with self.uow:
            ticket = self._load(input_dto.ticket_id)
            was_breached = ticket.sla.breached
            ticket.assign_to_agent(input_dto.agent_id)
            self.ticket_repo.save(ticket)

            self.uow.publish_event(
                TicketAssignedEvent(
                    aggregate_id=ticket.id,
                    agent_id=input_dto.agent_id,
                    assigned_by_id=actor.user_id,
                )
            )
            self._publish_breach_if_flipped(ticket, was_breached)

        logger.info("Ticket %s assigned to %s", ticket.ticket_number, input_dto.agent_id)
        return TicketOutputDTO.from_entity(ticket)


class RequestCustomerInfoService(_TicketCommandService):
    """Use Case: admin parks a ticket until the customer answers."""

    def execute(self, actor: Actor, ticket_id: str) -> TicketOutputDTO:
        actor.require_admin("request_customer_info")

        with self.uow:
            ticket = self._load(ticket_id)
            was_breached = ticket.sla.breached
            ticket.request_customer_info()
            self.ticket_repo.save(ticket)

            self.uow.publish_event(
                TicketAwaitingCustomerEvent(
                    aggregate_id=ticket.id,
                    requested_by_id=actor.user_id,
                    customer_id=ticket.customer_id,
                )
            )
            self._publish_breach_if_flipped(ticket, was_breached)

        return TicketOutputDTO.from_entity(ticket)


class ResolveTicketService(_TicketCommandService):
    """
    Use Case: admin resolves a ticket.

    Raises:
        AuthorizationError: If the actor is not an admin
        EntityNotFoundError: If the ticket does not exist
        BusinessRuleViolationError: If the ticket is already resolved
    """

    def execute(self, actor: Actor, input_dto: ResolveTicketInputDTO) -> TicketOutputDTO:
        actor.require_admin("resolve_tickets")

        with self.uow:
            ticket = self._load(input_dto.ticket_id)
            was_breached = ticket.sla.breached
            ticket.resolve(input_dto.resolution_text, resolver_id=actor.user_id)
            self.ticket_repo.save(ticket)

            self._publish_breach_if_flipped(ticket, was_breached)
            self.uow.publish_event(
                TicketResolvedEvent(
                    aggregate_id=ticket.id,
                    resolved_by_id=actor.user_id,
                    customer_id=ticket.customer_id,
                    resolution_time_hours=ticket.sla.resolution_time_hours,
                    sla_breached=ticket.sla.breached,
                )
            )

        logger.info(
            "Ticket %s resolved in %.2fh", ticket.ticket_number, ticket.sla.resolution_time_hours
        )
        return TicketOutputDTO.from_entity(ticket)


class CloseTicketService(_TicketCommandService):
    """Use Case: admin closes a resolved (or parked) ticket."""

    def execute(self, actor: Actor, ticket_id: str) -> TicketOutputDTO:
        actor.require_admin("close_tickets")

        with self.uow:
            ticket = self._load(ticket_id)
            was_breached = ticket.sla.breached
            ticket.close()
            self.ticket_repo.save(ticket)

            self._publish_breach_if_flipped(ticket, was_breached)
            self.uow.publish_event(
                TicketClosedEvent(aggregate_id=ticket.id, closed_by_id=actor.user_id)
            )

        return TicketOutputDTO.from_entity(ticket)


class ReopenTicketService(_TicketCommandService):
    """
    Use Case: reopen a resolved or closed ticket.

    The owning customer reopens; admins may reopen on their behalf.
    """

    def execute(self, actor: Actor, input_dto: ReopenTicketInputDTO) -> TicketOutputDTO:
        with self.uow:
            ticket = self._load(input_dto.ticket_id)
            actor.require_owner(ticket.customer_id, "reopen", allow_admin=True)

            was_breached = ticket.sla.breached
            ticket.reopen(input_dto.reason)
            self.ticket_repo.save(ticket)

            self.uow.publish_event(
                TicketReopenedEvent(
                    aggregate_id=ticket.id,
                    reopened_by_id=actor.user_id,
                    reason=input_dto.reason,
                    reopened_count=ticket.reopened_count,
                )
            )
            self._publish_breach_if_flipped(ticket, was_breached)

        logger.info("Ticket %s reopened (%d)", ticket.ticket_number, ticket.reopened_count)
        return TicketOutputDTO.from_entity(ticket, include_internal=actor.is_admin)


class RateTicketService(_TicketCommandService):
    """Use Case: the owning customer rates a resolved/closed ticket."""

    def execute(self, actor: Actor, input_dto: RateTicketInputDTO) -> TicketOutputDTO:
        with self.uow:
            ticket = self._load(input_dto.ticket_id)
            actor.require_owner(ticket.customer_id, "rate")

            ticket.add_rating(input_dto.score, input_dto.feedback)
            self.ticket_repo.save(ticket)

            self.uow.publish_event(
                TicketRatedEvent(
                    aggregate_id=ticket.id,
                    score=input_dto.score,
                    customer_id=ticket.customer_id,
                )
            )

        return TicketOutputDTO.from_entity(ticket, include_internal=actor.is_admin)


class DeleteTicketService(_TicketCommandService):
    """Use Case: administrative delete."""

    def execute(self, actor: Actor, ticket_id: str) -> None:
        actor.require_admin("delete_tickets")
        with self.uow:
            ticket = self._load(ticket_id)
            self.ticket_repo.delete(ticket.id)
        logger.info("Ticket %s deleted by %s", ticket.ticket_number, actor.user_id)


class GetTicketService:
    """
    Use Case: ticket details.

    No UoW, read only. The breach flag is re-evaluated on the returned
    copy so readers never see a stale value.
    """

    def __init__(self, ticket_repo: TicketRepository):
        self.ticket_repo = ticket_repo

    def execute(self, actor: Actor, ticket_id: str) -> TicketOutputDTO:
        """
        Raises:
            EntityNotFoundError: If the ticket does not exist
            AuthorizationError: If the actor is neither owner nor admin
        """
        ticket = self.ticket_repo.get_by_id(ticket_id)
        if not ticket:
            raise EntityNotFoundError(
                f"Ticket {ticket_id} not found",
                entity_type="Ticket",
                entity_id=ticket_id,
            )
        actor.require_owner(ticket.customer_id, "view", allow_admin=True)

        ticket.refresh_sla()
        return TicketOutputDTO.from_entity(ticket, include_internal=actor.is_admin)


class ListTicketsService:
    """
    Use Case: paginated listing.

    Customers only ever see their own tickets.
    """

    MAX_PER_PAGE = 100

    def __init__(self, ticket_repo: TicketRepository):
        self.ticket_repo = ticket_repo

    def execute(self, actor: Actor, query: Optional[ListTicketsQueryDTO] = None) -> PaginatedResultDTO:
        query = query or ListTicketsQueryDTO()
        if query.page < 1:
            raise ValidationError("Page must be >= 1", field="page")
        per_page = min(max(query.per_page, 1), self.MAX_PER_PAGE)

        criteria = TicketFilter(
            customer_id=None if actor.is_admin else actor.user_id,
            assigned_to_id=query.assigned_to_id,
            statuses=(TicketStatus.from_string(query.status),) if query.status else None,
            priority=TicketPriority.from_string(query.priority) if query.priority else None,
            ticket_type=TicketType.from_string(query.ticket_type) if query.ticket_type else None,
            breached=True if query.breached_only else None,
        )
        page_items = self.ticket_repo.find(criteria, offset=(query.page - 1) * per_page, limit=per_page)

        return PaginatedResultDTO(
            items=[TicketListItemDTO.from_entity(t) for t in page_items],
            total=self.ticket_repo.count(criteria),
            page=query.page,
            per_page=per_page,
        )


class SweepSLABreachesService(_TicketCommandService):
    """
    Use Case: refresh the breach flag of every active ticket.

    Run periodically by Celery beat. Breach correctness does not depend
    on it; it only makes breach alerts timely.

    Returns:
        Ticket numbers whose flag flipped during the sweep
    """

    def execute(self) -> List[str]:
        flipped: List[str] = []
        with self.uow:
            now = utcnow()
            candidates = self.ticket_repo.find(
                TicketFilter(statuses=ACTIVE_STATUSES, breached=False)
            )
            for ticket in candidates:
                if ticket.refresh_sla(now):
                    self.ticket_repo.save(ticket)
                    self.uow.publish_event(_breach_event(ticket))
                    flipped.append(ticket.ticket_number)

        if flipped:
            logger.warning("SLA sweep flagged %d tickets: %s", len(flipped), ", ".join(flipped))
        else:
            logger.debug("SLA sweep found no new breaches")
        return flipped
