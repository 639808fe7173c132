"""
Ports (interfaces) for the payment domain.

- PaymentFilter / PaymentRepository: persistence
- InvoiceRenderer: turns a payment snapshot into a document
- PartyDirectory: customer/project snapshots for invoices
- SignatureVerifier: gateway signature checks
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Protocol, runtime_checkable

from src.core.shared.exceptions import ConcurrencyError, EntityNotFoundError

from .entities import PaymentEntity, PaymentMethod, PaymentStatus, PaymentType

if TYPE_CHECKING:
    from src.core.statistics.aggregators import PaymentStatistics


@dataclass(frozen=True)
class PaymentFilter:
    """
    Filter criteria understood by every payment repository.

    ``None`` means "do not filter". ``created_from`` is inclusive,
    ``created_to`` and ``next_due_before`` are exclusive.
    """

    customer_id: Optional[str] = None
    project_id: Optional[str] = None
    statuses: Optional[tuple] = None
    payment_type: Optional[PaymentType] = None
    method: Optional[PaymentMethod] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    next_due_before: Optional[datetime] = None

    def matches(self, payment: PaymentEntity) -> bool:
        if self.customer_id is not None and payment.customer_id != self.customer_id:
            return False
        if self.project_id is not None and payment.project_id != self.project_id:
            return False
        if self.statuses is not None and payment.status not in self.statuses:
            return False
        if self.payment_type is not None and payment.payment_type != self.payment_type:
            return False
        if self.method is not None and payment.method != self.method:
            return False
        if self.created_from is not None and payment.created_at < self.created_from:
            return False
        if self.created_to is not None and payment.created_at >= self.created_to:
            return False
        if self.next_due_before is not None:
            due = payment.metadata.next_due_date
            if due is None or due >= self.next_due_before:
                return False
        return True


@runtime_checkable
class PaymentRepository(Protocol):
    """
    Persistence contract for payments.

    Implementations:
    - DjangoPaymentRepository (ORM)
    - InMemoryPaymentRepository (tests)
    """

    def save(self, payment: PaymentEntity) -> None:
        """Create or update. Receipt numbers are unique across the store."""
        ...

    def get_by_id(self, payment_id: str) -> Optional[PaymentEntity]:
        ...

    def get_by_order_id(self, order_id: str, customer_id: Optional[str] = None) -> Optional[PaymentEntity]:
        """Lookup by gateway order id, optionally scoped to a customer."""
        ...

    def get_by_gateway_payment_id(self, gateway_payment_id: str) -> Optional[PaymentEntity]:
        ...

    def delete(self, payment_id: str) -> None:
        ...

    def find(self, criteria: PaymentFilter, offset: int = 0, limit: Optional[int] = None) -> List[PaymentEntity]:
        """Payments matching ``criteria``, newest first, optionally one page of them."""
        ...

    def list_all(self) -> List[PaymentEntity]:
        ...

    def count(self, criteria: Optional[PaymentFilter] = None) -> int:
        ...

    def statistics(self, criteria: PaymentFilter) -> "PaymentStatistics":
        """Totals over the SUCCESS payments matching ``criteria``, computed by the store."""
        ...


class InMemoryPaymentRepository:
    """Dict backed PaymentRepository for tests."""

    def __init__(self):
        self._payments: dict[str, PaymentEntity] = {}

    def save(self, payment: PaymentEntity) -> None:
        if payment.receipt_number:
            for other in self._payments.values():
                if other.id != payment.id and other.receipt_number == payment.receipt_number:
                    raise ConcurrencyError(f"Receipt number {payment.receipt_number} already used")
        self._payments[payment.id] = payment

    def get_by_id(self, payment_id: str) -> Optional[PaymentEntity]:
        return self._payments.get(payment_id)

    def get_by_order_id(self, order_id: str, customer_id: Optional[str] = None) -> Optional[PaymentEntity]:
        for payment in self._payments.values():
            if payment.gateway.order_id != order_id:
                continue
            if customer_id is not None and payment.customer_id != customer_id:
                continue
            return payment
        return None

    def get_by_gateway_payment_id(self, gateway_payment_id: str) -> Optional[PaymentEntity]:
        for payment in self._payments.values():
            if payment.gateway.payment_id == gateway_payment_id:
                return payment
        return None

    def delete(self, payment_id: str) -> None:
        if payment_id not in self._payments:
            raise EntityNotFoundError(
                f"Payment {payment_id} not found", entity_type="Payment", entity_id=payment_id
            )
        del self._payments[payment_id]

    def find(self, criteria: PaymentFilter, offset: int = 0, limit: Optional[int] = None) -> List[PaymentEntity]:
        found = [p for p in self._payments.values() if criteria.matches(p)]
        found.sort(key=lambda p: p.created_at, reverse=True)
        end = None if limit is None else offset + limit
        return found[offset:end]

    def list_all(self) -> List[PaymentEntity]:
        return list(self._payments.values())

    def count(self, criteria: Optional[PaymentFilter] = None) -> int:
        if criteria is None:
            return len(self._payments)
        return sum(1 for p in self._payments.values() if criteria.matches(p))

    def statistics(self, criteria: PaymentFilter) -> "PaymentStatistics":
        from src.core.statistics.aggregators import summarize_payments
        return summarize_payments(self.find(criteria))

    def clear(self) -> None:
        self._payments.clear()


# =============================================================================
# Invoice rendering
# =============================================================================

@dataclass(frozen=True)
class InvoiceSnapshot:
    """Everything a renderer needs, frozen at the time of rendering."""

    payment: Dict[str, Any]
    customer: Dict[str, Any] = field(default_factory=dict)
    project: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class RenderedInvoice:
    number: str
    url: str
    content: Optional[str] = None


class InvoiceRenderer(Protocol):
    def render(self, snapshot: InvoiceSnapshot) -> RenderedInvoice:
        """
        Produce the invoice document.

        Any exception raised here is logged by the caller and never
        fails the payment.
        """
        ...


class InMemoryInvoiceRenderer:
    """
    Renderer for tests: keeps every snapshot and fails on demand.

    Example:
        renderer = InMemoryInvoiceRenderer()
        renderer.fail_with = RuntimeError("storage down")
    """

    def __init__(self):
        self.snapshots: List[InvoiceSnapshot] = []
        self.fail_with: Optional[Exception] = None

    def render(self, snapshot: InvoiceSnapshot) -> RenderedInvoice:
        if self.fail_with is not None:
            raise self.fail_with
        self.snapshots.append(snapshot)
        receipt = snapshot.payment.get("receipt_number") or snapshot.payment["id"]
        number = f"INV-{receipt}"
        return RenderedInvoice(number=number, url=f"memory://invoices/{number}.html")


class PartyDirectory(Protocol):
    """Read-only view of customers and projects, owned by other services."""

    def customer_snapshot(self, customer_id: str) -> Dict[str, Any]:
        ...

    def project_snapshot(self, project_id: str) -> Dict[str, Any]:
        ...


class StaticPartyDirectory:
    """
    Directory that knows parties only by id.

    Used in tests and whenever the catalog service is not wired in.
    """

    def __init__(self, customers: Optional[Dict[str, Dict[str, Any]]] = None,
                 projects: Optional[Dict[str, Dict[str, Any]]] = None):
        self._customers = customers or {}
        self._projects = projects or {}

    def customer_snapshot(self, customer_id: str) -> Dict[str, Any]:
        return {"id": customer_id, **self._customers.get(customer_id, {})}

    def project_snapshot(self, project_id: str) -> Dict[str, Any]:
        return {"id": project_id, **self._projects.get(project_id, {})}


class SignatureVerifier(Protocol):
    def verify_payment(self, order_id: str, payment_id: str, signature: str) -> bool:
        ...

    def verify_webhook(self, body: bytes, signature: str) -> bool:
        ...
