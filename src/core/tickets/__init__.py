"""
Support ticket domain.

- Entities (TicketEntity, TicketStatus, TicketType)
- SLA policy (TicketPriority, SLAPolicy, SLARecord)
- Use cases (create, comment, assign, resolve, close, reopen, rate, ...)
- Domain events
- DTOs and ports
"""

from .sla import SLAPolicy, SLARecord, TicketPriority
from .entities import TicketEntity, TicketStatus, TicketType, TicketComment
from .events import (
    TicketCreatedEvent,
    TicketAssignedEvent,
    TicketResolvedEvent,
    TicketReopenedEvent,
    TicketSLABreachedEvent,
)
from .dtos import (
    CreateTicketInputDTO,
    AddCommentInputDTO,
    AssignTicketInputDTO,
    ResolveTicketInputDTO,
    ReopenTicketInputDTO,
    RateTicketInputDTO,
    TicketOutputDTO,
    TicketListItemDTO,
)
from .ports import TicketFilter, TicketRepository, InMemoryTicketRepository
from .use_cases import (
    CreateTicketService,
    AddCommentService,
    AssignTicketService,
    RequestCustomerInfoService,
    ResolveTicketService,
    CloseTicketService,
    ReopenTicketService,
    RateTicketService,
    DeleteTicketService,
    GetTicketService,
    ListTicketsService,
    SweepSLABreachesService,
)

__all__ = [
    # SLA
    "SLAPolicy",
    "SLARecord",
    "TicketPriority",
    # Entities
    "TicketEntity",
    "TicketStatus",
    "TicketType",
    "TicketComment",
    # Events
    "TicketCreatedEvent",
    "TicketAssignedEvent",
    "TicketResolvedEvent",
    "TicketReopenedEvent",
    "TicketSLABreachedEvent",
    # DTOs
    "CreateTicketInputDTO",
    "AddCommentInputDTO",
    "AssignTicketInputDTO",
    "ResolveTicketInputDTO",
    "ReopenTicketInputDTO",
    "RateTicketInputDTO",
    "TicketOutputDTO",
    "TicketListItemDTO",
    # Ports
    "TicketFilter",
    "TicketRepository",
    "InMemoryTicketRepository",
    # Use Cases
    "CreateTicketService",
    "AddCommentService",
    "AssignTicketService",
    "RequestCustomerInfoService",
    "ResolveTicketService",
    "CloseTicketService",
    "ReopenTicketService",
    "RateTicketService",
    "DeleteTicketService",
    "GetTicketService",
    "ListTicketsService",
    "SweepSLABreachesService",
]
