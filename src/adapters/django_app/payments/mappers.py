"""
Mappers between PaymentEntity (core) and PaymentModel (Django).
"""

from decimal import Decimal
from typing import Any, Dict, List, Optional

from src.core.shared.clock import parse_datetime
from src.core.payments.entities import (
    GatewayDetails,
    InvoiceRecord,
    PaymentEntity,
    PaymentMetadata,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    RefundDetails,
    RefundStatus,
)

from .models import PaymentModel


def _invoice(data: Optional[Dict[str, Any]]) -> Optional[InvoiceRecord]:
    if not data:
        return None
    return InvoiceRecord(
        number=data["number"],
        url=data["url"],
        generated_at=parse_datetime(data["generated_at"]),
    )


def _refund(data: Optional[Dict[str, Any]]) -> Optional[RefundDetails]:
    if not data:
        return None
    return RefundDetails(
        amount=Decimal(data["amount"]),
        reason=data["reason"],
        date=parse_datetime(data["date"]),
        status=RefundStatus(data["status"]),
        refund_id=data.get("refund_id"),
        failure_reason=data.get("failure_reason"),
    )


class PaymentMapper:
    """
    - to_model(): Entity → Model
    - to_entity(): Model → Entity
    """

    @staticmethod
    def to_model(entity: PaymentEntity) -> PaymentModel:
        return PaymentModel(
            id=entity.id,
            customer_id=entity.customer_id,
            project_id=entity.project_id,
            amount=entity.amount,
            currency=entity.currency,
            payment_type=entity.payment_type.value,
            method=entity.method.value,
            status=entity.status.value,
            gateway_provider=entity.gateway.provider,
            gateway_order_id=entity.gateway.order_id,
            gateway_payment_id=entity.gateway.payment_id,
            gateway_signature=entity.gateway.signature,
            gateway_transaction_id=entity.gateway.transaction_id,
            receipt_number=entity.receipt_number,
            invoice=entity.invoice.to_dict() if entity.invoice else None,
            metadata=entity.metadata.to_dict(),
            refund=entity.refund.to_dict() if entity.refund else None,
            next_due_date=entity.metadata.next_due_date,
            failure_reason=entity.failure_reason,
            paid_at=entity.paid_at,
            attempts=entity.attempts,
            notes=entity.notes,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    @staticmethod
    def to_entity(model: PaymentModel) -> PaymentEntity:
        return PaymentEntity(
            id=model.id,
            customer_id=model.customer_id,
            project_id=model.project_id,
            amount=Decimal(model.amount).quantize(Decimal("0.01")),
            currency=model.currency,
            payment_type=PaymentType(model.payment_type),
            method=PaymentMethod(model.method),
            gateway=GatewayDetails(
                provider=model.gateway_provider,
                order_id=model.gateway_order_id,
                payment_id=model.gateway_payment_id,
                signature=model.gateway_signature,
                transaction_id=model.gateway_transaction_id,
            ),
            status=PaymentStatus(model.status),
            receipt_number=model.receipt_number,
            invoice=_invoice(model.invoice),
            metadata=PaymentMetadata.from_dict(model.metadata),
            refund=_refund(model.refund),
            failure_reason=model.failure_reason,
            paid_at=model.paid_at,
            attempts=model.attempts,
            notes=model.notes,
            created_at=model.created_at,
            updated_at=model.updated_at,
        )

    @staticmethod
    def to_entity_list(models: List[PaymentModel]) -> List[PaymentEntity]:
        return [PaymentMapper.to_entity(model) for model in models]
