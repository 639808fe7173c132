"""
Data Transfer Objects for the payment domain.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional

from .entities import PaymentEntity


# =============================================================================
# INPUT DTOs
# =============================================================================

@dataclass(frozen=True)
class InitiatePaymentInputDTO:
    """
    Attributes:
        project_id: Project the payment is for
        amount: Amount as string/number, parsed to Decimal
        payment_type: booking | down_payment | emi | full_payment | other
        method: card | bank_transfer | upi | cash | cheque
        currency: ISO 4217 code, INR by default
        metadata: Instalment details (unit_number, next_due_date, ...)
        notes: Free text
    """

    project_id: str
    amount: Any
    payment_type: str
    method: str
    currency: str = "INR"
    metadata: Dict[str, Any] = field(default_factory=dict)
    notes: Optional[str] = None


@dataclass(frozen=True)
class VerifyPaymentInputDTO:
    order_id: str
    payment_id: str
    signature: Optional[str] = None


@dataclass(frozen=True)
class UpdatePaymentStatusInputDTO:
    """Admin status update, used for offline methods (cash, cheque, transfer)."""

    payment_id: str
    status: str
    reason: Optional[str] = None
    transaction_id: Optional[str] = None


@dataclass(frozen=True)
class RefundPaymentInputDTO:
    payment_id: str
    amount: Any
    reason: str


@dataclass(frozen=True)
class UpdateRefundStatusInputDTO:
    payment_id: str
    status: str
    refund_id: Optional[str] = None
    reason: Optional[str] = None


@dataclass(frozen=True)
class GatewayWebhookInputDTO:
    """
    Raw gateway notification.

    Attributes:
        body: Raw request body, signed by the gateway
        signature: Value of the signature header
        event: Event name, e.g. "payment.captured"
        payload: Parsed JSON payload
    """

    body: bytes
    signature: Optional[str]
    event: str
    payload: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class ListPaymentsQueryDTO:
    status: Optional[str] = None
    payment_type: Optional[str] = None
    project_id: Optional[str] = None
    page: int = 1
    per_page: int = 20


# =============================================================================
# OUTPUT DTOs
# =============================================================================

@dataclass
class PaymentOutputDTO:
    id: str
    customer_id: str
    project_id: str
    amount: str
    currency: str
    payment_type: str
    method: str
    status: str
    gateway: Dict[str, Any]
    receipt_number: Optional[str]
    invoice: Optional[Dict[str, Any]]
    metadata: Dict[str, Any]
    refund: Optional[Dict[str, Any]]
    failure_reason: Optional[str]
    paid_at: Optional[datetime]
    attempts: int
    notes: Optional[str]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_entity(cls, entity: PaymentEntity) -> "PaymentOutputDTO":
        gateway = entity.gateway.to_dict()
        # signature stays internal
        gateway.pop("signature", None)
        return cls(
            id=entity.id,
            customer_id=entity.customer_id,
            project_id=entity.project_id,
            amount=str(entity.amount),
            currency=entity.currency,
            payment_type=entity.payment_type.value,
            method=entity.method.value,
            status=entity.status.value,
            gateway=gateway,
            receipt_number=entity.receipt_number,
            invoice=entity.invoice.to_dict() if entity.invoice else None,
            metadata=entity.metadata.to_dict(),
            refund=entity.refund.to_dict() if entity.refund else None,
            failure_reason=entity.failure_reason,
            paid_at=entity.paid_at,
            attempts=entity.attempts,
            notes=entity.notes,
            created_at=entity.created_at,
            updated_at=entity.updated_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "project_id": self.project_id,
            "amount": self.amount,
            "currency": self.currency,
            "payment_type": self.payment_type,
            "method": self.method,
            "status": self.status,
            "gateway": self.gateway,
            "receipt_number": self.receipt_number,
            "invoice": self.invoice,
            "metadata": self.metadata,
            "refund": self.refund,
            "failure_reason": self.failure_reason,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
            "attempts": self.attempts,
            "notes": self.notes,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
        }


@dataclass
class PaymentListItemDTO:
    id: str
    project_id: str
    amount: str
    payment_type: str
    method: str
    status: str
    receipt_number: Optional[str]
    created_at: datetime

    @classmethod
    def from_entity(cls, entity: PaymentEntity) -> "PaymentListItemDTO":
        return cls(
            id=entity.id,
            project_id=entity.project_id,
            amount=str(entity.amount),
            payment_type=entity.payment_type.value,
            method=entity.method.value,
            status=entity.status.value,
            receipt_number=entity.receipt_number,
            created_at=entity.created_at,
        )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "project_id": self.project_id,
            "amount": self.amount,
            "payment_type": self.payment_type,
            "method": self.method,
            "status": self.status,
            "receipt_number": self.receipt_number,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class PaymentPageDTO:
    items: List[PaymentListItemDTO]
    total: int
    page: int
    per_page: int

    @property
    def total_pages(self) -> int:
        if self.per_page <= 0:
            return 0
        return (self.total + self.per_page - 1) // self.per_page

    def to_dict(self) -> dict:
        return {
            "items": [item.to_dict() for item in self.items],
            "total": self.total,
            "page": self.page,
            "per_page": self.per_page,
            "total_pages": self.total_pages,
        }
