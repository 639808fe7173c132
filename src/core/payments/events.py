"""
Payment domain events.

Events:
- PaymentInitiatedEvent
- PaymentSucceededEvent
- PaymentFailedEvent
- RefundInitiatedEvent
- RefundCompletedEvent
- RefundFailedEvent
- InvoiceGeneratedEvent
- GatewayReconciliationRequiredEvent
"""

from dataclasses import dataclass
from typing import Optional

from src.core.shared.events import DomainEvent


@dataclass
class _PaymentEvent(DomainEvent):
    @property
    def aggregate_type(self) -> str:
        return "Payment"


@dataclass
class PaymentInitiatedEvent(_PaymentEvent):
    customer_id: str = ""
    project_id: str = ""
    amount: str = ""
    payment_type: str = ""
    method: str = ""
    order_id: Optional[str] = None


@dataclass
class PaymentSucceededEvent(_PaymentEvent):
    """
    Payment settled.

    Typical handlers:
    - email the receipt
    - update the customer ledger
    """

    customer_id: str = ""
    amount: str = ""
    receipt_number: str = ""


@dataclass
class PaymentFailedEvent(_PaymentEvent):
    customer_id: str = ""
    reason: str = ""
    attempts: int = 0


@dataclass
class RefundInitiatedEvent(_PaymentEvent):
    amount: str = ""
    reason: str = ""
    initiated_by_id: str = ""


@dataclass
class RefundCompletedEvent(_PaymentEvent):
    amount: str = ""
    refund_id: Optional[str] = None


@dataclass
class RefundFailedEvent(_PaymentEvent):
    reason: str = ""


@dataclass
class InvoiceGeneratedEvent(_PaymentEvent):
    invoice_number: str = ""
    url: str = ""


@dataclass
class GatewayReconciliationRequiredEvent(_PaymentEvent):
    """
    The gateway reported an outcome the payment can no longer take, such
    as a capture on a payment already marked failed. Settled by hand.
    """

    gateway_event: str = ""
    gateway_reference: Optional[str] = None
    payment_status: str = ""
    reason: str = ""
