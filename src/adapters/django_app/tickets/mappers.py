"""
Mappers between TicketEntity (core) and TicketModel (Django).

Responsibilities:
- to_model(): Entity → Model, flattening the SLA record
- to_entity(): Model → Entity, rebuilding the embedded documents

Mappers are stateless and never validate: whatever is in the table was
validated by the entity when it was written.
"""

from typing import Any, Dict, List, Optional

from src.core.shared.clock import parse_datetime
from src.core.tickets.entities import (
    TicketAttachment,
    TicketComment,
    TicketEntity,
    TicketRating,
    TicketResolution,
    TicketStatus,
    TicketType,
)
from src.core.tickets.sla import SLARecord, TicketPriority

from .models import TicketModel


def _attachment(data: Dict[str, Any]) -> TicketAttachment:
    return TicketAttachment(
        name=data["name"],
        url=data["url"],
        type=data.get("type"),
        uploaded_at=parse_datetime(data.get("uploaded_at")),
    )


def _comment(data: Dict[str, Any]) -> TicketComment:
    return TicketComment(
        id=data["id"],
        text=data["text"],
        author_id=data["author_id"],
        author_is_admin=data.get("author_is_admin", False),
        is_internal=data.get("is_internal", False),
        attachments=[_attachment(a) for a in data.get("attachments") or []],
        created_at=parse_datetime(data["created_at"]),
    )


def _resolution(data: Optional[Dict[str, Any]]) -> Optional[TicketResolution]:
    if not data:
        return None
    return TicketResolution(
        text=data["text"],
        resolved_by_id=data["resolved_by_id"],
        resolved_at=parse_datetime(data["resolved_at"]),
    )


def _rating(data: Optional[Dict[str, Any]]) -> Optional[TicketRating]:
    if not data:
        return None
    return TicketRating(
        score=data["score"],
        feedback=data.get("feedback"),
        rated_at=parse_datetime(data["rated_at"]),
    )


class TicketMapper:
    """
    - to_model(): Entity → Model
    - to_entity(): Model → Entity
    - to_entity_list(): List[Model] → List[Entity]
    """

    @staticmethod
    def to_model(entity: TicketEntity) -> TicketModel:
        """
        Note:
            Does not call .save(); that is the repository's job
        """
        sla = entity.sla
        return TicketModel(
            id=entity.id,
            ticket_number=entity.ticket_number,
            customer_id=entity.customer_id,
            ticket_type=entity.ticket_type.value,
            category=entity.category,
            subject=entity.subject,
            description=entity.description,
            priority=entity.priority.value,
            status=entity.status.value,
            assigned_to_id=entity.assigned_to_id,
            attachments=[a.to_dict() for a in entity.attachments],
            comments=[c.to_dict() for c in entity.comments],
            resolution=entity.resolution.to_dict() if entity.resolution else None,
            rating=entity.rating.to_dict() if entity.rating else None,
            rating_score=entity.rating.score if entity.rating else None,
            sla_response_deadline=sla.response_deadline if sla else None,
            sla_resolution_deadline=sla.resolution_deadline if sla else None,
            sla_response_time_hours=sla.response_time_hours if sla else None,
            sla_resolution_time_hours=sla.resolution_time_hours if sla else None,
            sla_breached=sla.breached if sla else False,
            first_response_at=entity.first_response_at,
            closed_at=entity.closed_at,
            reopened_count=entity.reopened_count,
            last_reopened_at=entity.last_reopened_at,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    @staticmethod
    def to_entity(model: TicketModel) -> TicketEntity:
        sla = None
        if model.sla_response_deadline and model.sla_resolution_deadline:
            sla = SLARecord(
                response_deadline=model.sla_response_deadline,
                resolution_deadline=model.sla_resolution_deadline,
                response_time_hours=model.sla_response_time_hours,
                resolution_time_hours=model.sla_resolution_time_hours,
                breached=model.sla_breached,
            )

        return TicketEntity(
            id=model.id,
            ticket_number=model.ticket_number,
            customer_id=model.customer_id,
            ticket_type=TicketType(model.ticket_type),
            category=model.category,
            subject=model.subject,
            description=model.description,
            priority=TicketPriority(model.priority),
            status=TicketStatus(model.status),
            assigned_to_id=model.assigned_to_id,
            attachments=[_attachment(a) for a in model.attachments or []],
            comments=[_comment(c) for c in model.comments or []],
            resolution=_resolution(model.resolution),
            rating=_rating(model.rating),
            sla=sla,
            first_response_at=model.first_response_at,
            closed_at=model.closed_at,
            reopened_count=model.reopened_count,
            last_reopened_at=model.last_reopened_at,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def to_entity_list(models: List[TicketModel]) -> List[TicketEntity]:
        return [TicketMapper.to_entity(model) for model in models]
