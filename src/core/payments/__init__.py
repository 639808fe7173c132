"""
Payment domain.

- Entities (PaymentEntity and its sub-records)
- Use cases (initiate, verify, settle, refund, webhook, invoice)
- EMI calculator
- Gateway signature verification
"""

from .entities import (
    PaymentEntity,
    PaymentStatus,
    PaymentType,
    PaymentMethod,
    RefundStatus,
    PaymentMetadata,
)
from .emi import calculate_emi, EMIQuote
from .gateway import HmacSignatureVerifier
from .ports import (
    PaymentFilter,
    PaymentRepository,
    InMemoryPaymentRepository,
    InvoiceRenderer,
    InvoiceSnapshot,
    RenderedInvoice,
    StaticPartyDirectory,
)
from .use_cases import (
    InitiatePaymentService,
    VerifyPaymentService,
    UpdatePaymentStatusService,
    InitiateRefundService,
    UpdateRefundStatusService,
    ProcessGatewayWebhookService,
    GenerateInvoiceService,
    GetPaymentService,
    ListPaymentsService,
)

__all__ = [
    "PaymentEntity",
    "PaymentStatus",
    "PaymentType",
    "PaymentMethod",
    "RefundStatus",
    "PaymentMetadata",
    "calculate_emi",
    "EMIQuote",
    "HmacSignatureVerifier",
    "PaymentFilter",
    "PaymentRepository",
    "InMemoryPaymentRepository",
    "InvoiceRenderer",
    "InvoiceSnapshot",
    "RenderedInvoice",
    "StaticPartyDirectory",
    "InitiatePaymentService",
    "VerifyPaymentService",
    "UpdatePaymentStatusService",
    "InitiateRefundService",
    "UpdateRefundStatusService",
    "ProcessGatewayWebhookService",
    "GenerateInvoiceService",
    "GetPaymentService",
    "ListPaymentsService",
]
