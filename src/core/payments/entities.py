"""
Payment domain entities.

Entities:
- PaymentEntity: aggregate root, one document per payment attempt
- GatewayDetails, InvoiceRecord, PaymentMetadata, RefundDetails: sub-records
- PaymentStatus, PaymentType, PaymentMethod, RefundStatus: enumerations

Rules enforced here:
- Amount is non-negative
- Receipt number is assigned once, on the first move to SUCCESS
- FAILED is terminal; a retry is a new PaymentEntity
- SUCCESS only leaves through the refund flow (→ REFUNDED)
- A refund needs SUCCESS and cannot exceed the paid amount
"""

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Any, Callable, Dict, Optional
import uuid

from src.core.shared.clock import parse_datetime, utcnow
from src.core.shared.exceptions import (
    ValidationError,
    BusinessRuleViolationError,
)


RECEIPT_NUMBER_PREFIX = "REC"
DEFAULT_CURRENCY = "INR"
DEFAULT_GATEWAY_PROVIDER = "razorpay"


def _parse_enum(enum_cls, value, field_name):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip().lower())
    except ValueError:
        raise ValidationError(f"Invalid {field_name}: {value}", field=field_name)


class PaymentStatus(Enum):
    """
    Payment states.

    Flow:
        PENDING → PROCESSING → SUCCESS → REFUNDED
            │          │
            └──────────┴──→ FAILED (terminal)
    """

    PENDING = "pending"
    PROCESSING = "processing"
    SUCCESS = "success"
    FAILED = "failed"
    REFUNDED = "refunded"

    @property
    def is_settleable(self) -> bool:
        return self in (PaymentStatus.PENDING, PaymentStatus.PROCESSING)

    @classmethod
    def from_string(cls, value: str) -> "PaymentStatus":
        return _parse_enum(cls, value, "status")


class PaymentType(Enum):
    BOOKING = "booking"
    DOWN_PAYMENT = "down_payment"
    EMI = "emi"
    FULL_PAYMENT = "full_payment"
    OTHER = "other"

    @classmethod
    def from_string(cls, value: str) -> "PaymentType":
        return _parse_enum(cls, value, "payment_type")


class PaymentMethod(Enum):
    CARD = "card"
    BANK_TRANSFER = "bank_transfer"
    UPI = "upi"
    CASH = "cash"
    CHEQUE = "cheque"

    @property
    def is_online(self) -> bool:
        """Online methods go through the payment gateway."""
        return self in (PaymentMethod.CARD, PaymentMethod.UPI)

    @classmethod
    def from_string(cls, value: str) -> "PaymentMethod":
        return _parse_enum(cls, value, "method")


class RefundStatus(Enum):
    INITIATED = "initiated"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_active(self) -> bool:
        return self != RefundStatus.FAILED


def to_amount(value: Any, field_name: str = "amount") -> Decimal:
    """
    Parse a money amount into a two-decimal Decimal.

    Raises:
        ValidationError: If the value is not a non-negative number
    """
    if isinstance(value, bool):
        raise ValidationError(f"Invalid {field_name}: {value}", field=field_name)
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid {field_name}: {value}", field=field_name)
    if not amount.is_finite() or amount < 0:
        raise ValidationError(f"{field_name.capitalize()} must be a non-negative number", field=field_name)
    return amount.quantize(Decimal("0.01"))


def new_order_id() -> str:
    """Placeholder gateway order id, ``order_`` + 16 hex chars."""
    return f"order_{uuid.uuid4().hex[:16]}"


def format_receipt_number(sequence: int, when: datetime, prefix: str = RECEIPT_NUMBER_PREFIX) -> str:
    """
    Receipt number: prefix + YYYY + MM + 6-digit sequence.

    Example:
        format_receipt_number(7, datetime(2024, 5, 2)) == "REC202405000007"
    """
    return f"{prefix}{when:%Y%m}{sequence:06d}"


@dataclass
class GatewayDetails:
    provider: str = DEFAULT_GATEWAY_PROVIDER
    order_id: Optional[str] = None
    payment_id: Optional[str] = None
    signature: Optional[str] = None
    transaction_id: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "provider": self.provider,
            "order_id": self.order_id,
            "payment_id": self.payment_id,
            "signature": self.signature,
            "transaction_id": self.transaction_id,
        }


@dataclass
class InvoiceRecord:
    number: str
    url: str
    generated_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "number": self.number,
            "url": self.url,
            "generated_at": self.generated_at.isoformat(),
        }


@dataclass
class PaymentMetadata:
    """
    Instalment plan details.

    ``next_due_date`` drives the EMI defaulter report.
    """

    unit_number: Optional[str] = None
    payment_plan: Optional[str] = None
    installment_number: Optional[int] = None
    total_installments: Optional[int] = None
    emi_amount: Optional[Decimal] = None
    next_due_date: Optional[datetime] = None
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> "PaymentMetadata":
        data = data or {}
        try:
            next_due = parse_datetime(data.get("next_due_date"))
        except (TypeError, ValueError):
            raise ValidationError(
                f"Invalid next_due_date: {data.get('next_due_date')}", field="next_due_date"
            )
        emi_amount = data.get("emi_amount")
        return cls(
            unit_number=data.get("unit_number"),
            payment_plan=data.get("payment_plan"),
            installment_number=data.get("installment_number"),
            total_installments=data.get("total_installments"),
            emi_amount=to_amount(emi_amount, "emi_amount") if emi_amount is not None else None,
            next_due_date=next_due,
            description=data.get("description"),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "unit_number": self.unit_number,
            "payment_plan": self.payment_plan,
            "installment_number": self.installment_number,
            "total_installments": self.total_installments,
            "emi_amount": str(self.emi_amount) if self.emi_amount is not None else None,
            "next_due_date": self.next_due_date.isoformat() if self.next_due_date else None,
            "description": self.description,
        }


@dataclass
class RefundDetails:
    amount: Decimal
    reason: str
    date: datetime
    status: RefundStatus = RefundStatus.INITIATED
    refund_id: Optional[str] = None
    failure_reason: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "amount": str(self.amount),
            "reason": self.reason,
            "date": self.date.isoformat(),
            "status": self.status.value,
            "refund_id": self.refund_id,
            "failure_reason": self.failure_reason,
        }


@dataclass
class PaymentEntity:
    """
    Aggregate root: a single payment attempt.

    Example:
        payment = PaymentEntity.initiate(
            customer_id="cust-1",
            project_id="proj-9",
            amount="250000",
            payment_type=PaymentType.BOOKING,
            method=PaymentMethod.UPI,
        )
        payment.mark_success(payment_id="pay_123", receipt_number_factory=lambda: "REC202405000001")
        payment.initiate_refund("50000", "Unit swap")
    """

    id: str = field(default_factory=lambda: str(uuid.uuid4()))
    customer_id: str = ""
    project_id: str = ""

    amount: Decimal = Decimal("0.00")
    currency: str = DEFAULT_CURRENCY
    payment_type: PaymentType = PaymentType.OTHER
    method: PaymentMethod = PaymentMethod.BANK_TRANSFER
    gateway: GatewayDetails = field(default_factory=GatewayDetails)

    status: PaymentStatus = PaymentStatus.PENDING
    receipt_number: Optional[str] = None
    invoice: Optional[InvoiceRecord] = None
    metadata: PaymentMetadata = field(default_factory=PaymentMetadata)
    refund: Optional[RefundDetails] = None

    failure_reason: Optional[str] = None
    paid_at: Optional[datetime] = None
    attempts: int = 0
    notes: Optional[str] = None

    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def initiate(
        cls,
        customer_id: str,
        project_id: str,
        amount: Any,
        payment_type: PaymentType,
        method: PaymentMethod,
        currency: str = DEFAULT_CURRENCY,
        metadata: Optional[PaymentMetadata] = None,
        notes: Optional[str] = None,
        gateway_provider: str = DEFAULT_GATEWAY_PROVIDER,
        now: Optional[datetime] = None,
    ) -> "PaymentEntity":
        """
        Create a PENDING payment.

        Online methods (card, upi) get gateway order details.

        Raises:
            ValidationError: If references or amount are invalid
        """
        if not customer_id:
            raise ValidationError("Customer is required", field="customer_id")
        if not project_id:
            raise ValidationError("Project is required", field="project_id")
        if not currency or len(currency.strip()) != 3:
            raise ValidationError(f"Invalid currency: {currency}", field="currency")

        now = now or utcnow()
        gateway = GatewayDetails(provider=gateway_provider)
        if method.is_online:
            gateway.order_id = new_order_id()

        return cls(
            customer_id=customer_id,
            project_id=project_id,
            amount=to_amount(amount),
            currency=currency.strip().upper(),
            payment_type=payment_type,
            method=method,
            gateway=gateway,
            status=PaymentStatus.PENDING,
            metadata=metadata or PaymentMetadata(),
            notes=notes,
            created_at=now,
            updated_at=now,
        )

    # -------------------------------------------------------------------------
    # Payment lifecycle
    # -------------------------------------------------------------------------

    def mark_processing(self, now: Optional[datetime] = None) -> None:
        if self.status != PaymentStatus.PENDING:
            raise BusinessRuleViolationError(
                f"Cannot process a {self.status.value} payment",
                rule="invalid_status_transition",
            )
        self.status = PaymentStatus.PROCESSING
        self._touch(now)

    def mark_success(
        self,
        receipt_number_factory: Callable[[], str],
        payment_id: Optional[str] = None,
        signature: Optional[str] = None,
        transaction_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """
        PENDING/PROCESSING → SUCCESS.

        The receipt number factory is only called when no receipt exists,
        so an assigned receipt survives any later save.
        """
        self._require_settleable("success")

        now = now or utcnow()
        self.status = PaymentStatus.SUCCESS
        self.paid_at = now
        if payment_id:
            self.gateway.payment_id = payment_id
        if signature:
            self.gateway.signature = signature
        if transaction_id:
            self.gateway.transaction_id = transaction_id
        if not self.receipt_number:
            self.receipt_number = receipt_number_factory()
        self._touch(now)

    def mark_failed(self, reason: Optional[str] = None, now: Optional[datetime] = None) -> None:
        """PENDING/PROCESSING → FAILED, counting the attempt."""
        self._require_settleable("failed")
        self.status = PaymentStatus.FAILED
        self.failure_reason = reason or "Payment failed"
        self.attempts += 1
        self._touch(now)

    def _require_settleable(self, target: str) -> None:
        if not self.status.is_settleable:
            raise BusinessRuleViolationError(
                f"Cannot move a {self.status.value} payment to {target}",
                rule="payment_already_settled",
            )

    # -------------------------------------------------------------------------
    # Refund flow
    # -------------------------------------------------------------------------

    def initiate_refund(
        self,
        amount: Any,
        reason: str,
        refund_id: Optional[str] = None,
        now: Optional[datetime] = None,
    ) -> None:
        """
        Start a refund on a successful payment.

        Raises:
            BusinessRuleViolationError: If not SUCCESS, if the amount exceeds
                the payment, or if another refund is in flight
            ValidationError: If amount or reason are invalid
        """
        if self.status != PaymentStatus.SUCCESS:
            raise BusinessRuleViolationError(
                "Can only refund successful payments",
                rule="refund_requires_success",
            )
        refund_amount = to_amount(amount, "refund_amount")
        if refund_amount <= 0:
            raise ValidationError("Refund amount must be positive", field="refund_amount")
        if refund_amount > self.amount:
            raise BusinessRuleViolationError(
                "Refund amount cannot exceed payment amount",
                rule="refund_exceeds_amount",
            )
        if self.refund and self.refund.status.is_active:
            raise BusinessRuleViolationError(
                "A refund is already in progress for this payment",
                rule="refund_in_progress",
            )
        if not reason or not reason.strip():
            raise ValidationError("Refund reason is required", field="reason")

        now = now or utcnow()
        self.refund = RefundDetails(
            amount=refund_amount,
            reason=reason.strip(),
            date=now,
            status=RefundStatus.INITIATED,
            refund_id=refund_id,
        )
        self._touch(now)

    def mark_refund_processing(self, refund_id: Optional[str] = None, now: Optional[datetime] = None) -> None:
        self._require_refund(RefundStatus.INITIATED)
        self.refund.status = RefundStatus.PROCESSING
        if refund_id:
            self.refund.refund_id = refund_id
        self._touch(now)

    def complete_refund(self, refund_id: Optional[str] = None, now: Optional[datetime] = None) -> None:
        """Refund settled by the gateway: SUCCESS → REFUNDED."""
        self._require_refund(RefundStatus.INITIATED, RefundStatus.PROCESSING)
        self.refund.status = RefundStatus.COMPLETED
        if refund_id:
            self.refund.refund_id = refund_id
        self.status = PaymentStatus.REFUNDED
        self._touch(now)

    def fail_refund(self, reason: Optional[str] = None, now: Optional[datetime] = None) -> None:
        """The refund failed; the payment stays SUCCESS and may be refunded again."""
        self._require_refund(RefundStatus.INITIATED, RefundStatus.PROCESSING)
        self.refund.status = RefundStatus.FAILED
        self.refund.failure_reason = reason or "Refund failed"
        self._touch(now)

    def _require_refund(self, *allowed: RefundStatus) -> None:
        if self.refund is None or self.refund.status not in allowed:
            current = self.refund.status.value if self.refund else "none"
            raise BusinessRuleViolationError(
                f"Refund is not in a valid state for this operation (current: {current})",
                rule="invalid_refund_transition",
            )

    # -------------------------------------------------------------------------
    # Invoice
    # -------------------------------------------------------------------------

    def attach_invoice(self, number: str, url: str, now: Optional[datetime] = None) -> None:
        if self.status not in (PaymentStatus.SUCCESS, PaymentStatus.REFUNDED):
            raise BusinessRuleViolationError(
                "Invoices are only issued for successful payments",
                rule="invoice_requires_success",
            )
        now = now or utcnow()
        self.invoice = InvoiceRecord(number=number, url=url, generated_at=now)
        self._touch(now)

    def _touch(self, now: Optional[datetime] = None) -> None:
        self.updated_at = now or utcnow()

    @property
    def refundable_amount(self) -> Decimal:
        if self.status != PaymentStatus.SUCCESS:
            return Decimal("0.00")
        return self.amount

    def __repr__(self) -> str:
        return (
            f"PaymentEntity("
            f"id={self.id[:8]}..., "
            f"amount={self.amount} {self.currency}, "
            f"status={self.status.value}"
            f")"
        )

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PaymentEntity):
            return False
        return self.id == other.id

    def __hash__(self) -> int:
        return hash(self.id)
