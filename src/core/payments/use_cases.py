"""
Use Cases (Application Services) for payments.

Use cases:
- InitiatePaymentService: customer starts a payment attempt
- VerifyPaymentService: gateway callback after checkout (signature check,
  success transition, best-effort invoice)
- UpdatePaymentStatusService: admin settles offline payments
- InitiateRefundService / UpdateRefundStatusService: refund flow (admin)
- ProcessGatewayWebhookService: asynchronous gateway notifications
- GenerateInvoiceService: (re)issue an invoice for a settled payment
- GetPaymentService / ListPaymentsService: reads

Invoice generation always runs in its own Unit of Work after the
payment transition is committed; its failures are logged and swallowed.
"""

import logging
from typing import Optional

from src.core.shared.actor import Actor
from src.core.shared.clock import utcnow
from src.core.shared.exceptions import (
    EntityNotFoundError,
    ValidationError,
)
from src.core.shared.interfaces import SequenceGenerator, UnitOfWork

from .dtos import (
    GatewayWebhookInputDTO,
    InitiatePaymentInputDTO,
    ListPaymentsQueryDTO,
    PaymentListItemDTO,
    PaymentOutputDTO,
    PaymentPageDTO,
    RefundPaymentInputDTO,
    UpdatePaymentStatusInputDTO,
    UpdateRefundStatusInputDTO,
    VerifyPaymentInputDTO,
)
from .entities import (
    DEFAULT_GATEWAY_PROVIDER,
    RECEIPT_NUMBER_PREFIX,
    PaymentEntity,
    PaymentMetadata,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    RefundStatus,
    format_receipt_number,
)
from .events import (
    GatewayReconciliationRequiredEvent,
    InvoiceGeneratedEvent,
    PaymentFailedEvent,
    PaymentInitiatedEvent,
    PaymentSucceededEvent,
    RefundCompletedEvent,
    RefundFailedEvent,
    RefundInitiatedEvent,
)
from .ports import (
    InvoiceRenderer,
    InvoiceSnapshot,
    PartyDirectory,
    PaymentFilter,
    PaymentRepository,
    SignatureVerifier,
)


logger = logging.getLogger(__name__)

RECEIPT_SEQUENCE = "receipt"


def _not_found(payment_id: str) -> EntityNotFoundError:
    return EntityNotFoundError(
        f"Payment {payment_id} not found",
        entity_type="Payment",
        entity_id=payment_id,
    )


class ReceiptNumberFactory:
    """Draws receipt numbers from the ``receipt`` sequence."""

    def __init__(self, sequence: SequenceGenerator, prefix: str = RECEIPT_NUMBER_PREFIX):
        self.sequence = sequence
        self.prefix = prefix

    def __call__(self) -> str:
        return format_receipt_number(self.sequence.next_value(RECEIPT_SEQUENCE), utcnow(), self.prefix)


def _settle_success(
    payment: PaymentEntity,
    uow: UnitOfWork,
    receipts: ReceiptNumberFactory,
    payment_id: Optional[str] = None,
    signature: Optional[str] = None,
    transaction_id: Optional[str] = None,
) -> None:
    payment.mark_success(
        receipt_number_factory=receipts,
        payment_id=payment_id,
        signature=signature,
        transaction_id=transaction_id,
    )
    uow.publish_event(
        PaymentSucceededEvent(
            aggregate_id=payment.id,
            customer_id=payment.customer_id,
            amount=str(payment.amount),
            receipt_number=payment.receipt_number,
        )
    )


def _settle_failure(payment: PaymentEntity, uow: UnitOfWork, reason: Optional[str]) -> None:
    payment.mark_failed(reason)
    uow.publish_event(
        PaymentFailedEvent(
            aggregate_id=payment.id,
            customer_id=payment.customer_id,
            reason=payment.failure_reason,
            attempts=payment.attempts,
        )
    )


class GenerateInvoiceService:
    """
    Use Case: render and attach an invoice.

    ``issue_best_effort`` is what the settlement flows call: it never
    raises. ``execute`` is the admin entry point and does raise.
    """

    def __init__(
        self,
        payment_repo: PaymentRepository,
        uow: UnitOfWork,
        renderer: InvoiceRenderer,
        directory: PartyDirectory,
    ):
        self.payment_repo = payment_repo
        self.uow = uow
        self.renderer = renderer
        self.directory = directory

    def execute(self, actor: Actor, payment_id: str) -> PaymentOutputDTO:
        actor.require_admin("generate_invoices")
        with self.uow:
            payment = self.payment_repo.get_by_id(payment_id)
            if not payment:
                raise _not_found(payment_id)
            self._issue(payment)
        return PaymentOutputDTO.from_entity(payment)

    def issue_best_effort(self, payment: PaymentEntity) -> bool:
        """
        Returns:
            True if the invoice was attached

        On failure the entity is put back as it was persisted, so callers
        never report an invoice that was not saved.
        """
        previous_invoice, previous_updated_at = payment.invoice, payment.updated_at
        try:
            with self.uow:
                self._issue(payment)
        except Exception:
            logger.exception("Invoice generation failed for payment %s", payment.id)
            payment.invoice = previous_invoice
            payment.updated_at = previous_updated_at
            return False
        return True

    def _issue(self, payment: PaymentEntity) -> None:
        snapshot = InvoiceSnapshot(
            payment=PaymentOutputDTO.from_entity(payment).to_dict(),
            customer=self.directory.customer_snapshot(payment.customer_id),
            project=self.directory.project_snapshot(payment.project_id),
        )
        rendered = self.renderer.render(snapshot)
        payment.attach_invoice(rendered.number, rendered.url)
        self.payment_repo.save(payment)
        self.uow.publish_event(
            InvoiceGeneratedEvent(
                aggregate_id=payment.id,
                invoice_number=rendered.number,
                url=rendered.url,
            )
        )
        logger.info("Invoice %s issued for payment %s", rendered.number, payment.id)


class InitiatePaymentService:
    """
    Use Case: start a payment attempt.

    Every attempt is a new document; a failed attempt is never resumed.

    Example:
        output = service.execute(
            Actor.customer("cust-1"),
            InitiatePaymentInputDTO(project_id="p-1", amount="100000",
                                    payment_type="booking", method="upi"),
        )
        output.gateway["order_id"]  # "order_..."
    """

    def __init__(
        self,
        payment_repo: PaymentRepository,
        uow: UnitOfWork,
        gateway_provider: str = DEFAULT_GATEWAY_PROVIDER,
    ):
        self.payment_repo = payment_repo
        self.uow = uow
        self.gateway_provider = gateway_provider

    def execute(self, actor: Actor, input_dto: InitiatePaymentInputDTO) -> PaymentOutputDTO:
        payment = PaymentEntity.initiate(
            customer_id=actor.user_id,
            project_id=input_dto.project_id,
            amount=input_dto.amount,
            payment_type=PaymentType.from_string(input_dto.payment_type),
            method=PaymentMethod.from_string(input_dto.method),
            currency=input_dto.currency,
            metadata=PaymentMetadata.from_dict(input_dto.metadata),
            notes=input_dto.notes,
            gateway_provider=self.gateway_provider,
        )

        with self.uow:
            self.payment_repo.save(payment)
            self.uow.publish_event(
                PaymentInitiatedEvent(
                    aggregate_id=payment.id,
                    customer_id=payment.customer_id,
                    project_id=payment.project_id,
                    amount=str(payment.amount),
                    payment_type=payment.payment_type.value,
                    method=payment.method.value,
                    order_id=payment.gateway.order_id,
                )
            )

        logger.info("Payment %s initiated (%s %s)", payment.id, payment.amount, payment.currency)
        return PaymentOutputDTO.from_entity(payment)


class VerifyPaymentService:
    """
    Use Case: confirm a gateway checkout.

    Flow:
    1. Find the payment by (order id, customer)
    2. Check the gateway signature
       - invalid → FAILED with "Invalid signature"
       - valid   → SUCCESS, receipt number assigned
    3. Commit
    4. Best-effort invoice (own transaction, errors swallowed)
    """

    def __init__(
        self,
        payment_repo: PaymentRepository,
        sequence: SequenceGenerator,
        uow: UnitOfWork,
        verifier: SignatureVerifier,
        invoices: GenerateInvoiceService,
        receipt_prefix: str = RECEIPT_NUMBER_PREFIX,
    ):
        self.payment_repo = payment_repo
        self.uow = uow
        self.verifier = verifier
        self.invoices = invoices
        self.receipts = ReceiptNumberFactory(sequence, receipt_prefix)

    def execute(self, actor: Actor, input_dto: VerifyPaymentInputDTO) -> PaymentOutputDTO:
        if not input_dto.order_id or not input_dto.payment_id:
            raise ValidationError("order_id and payment_id are required", field="order_id")

        with self.uow:
            payment = self.payment_repo.get_by_order_id(input_dto.order_id, customer_id=actor.user_id)
            if not payment:
                raise EntityNotFoundError(
                    f"No payment for order {input_dto.order_id}",
                    entity_type="Payment",
                    entity_id=input_dto.order_id,
                )

            valid = self.verifier.verify_payment(
                input_dto.order_id, input_dto.payment_id, input_dto.signature
            )
            if valid:
                _settle_success(
                    payment,
                    self.uow,
                    self.receipts,
                    payment_id=input_dto.payment_id,
                    signature=input_dto.signature,
                )
            else:
                logger.warning("Invalid gateway signature for order %s", input_dto.order_id)
                _settle_failure(payment, self.uow, "Invalid signature")
            self.payment_repo.save(payment)

        if payment.status == PaymentStatus.SUCCESS:
            self.invoices.issue_best_effort(payment)

        return PaymentOutputDTO.from_entity(payment)


class UpdatePaymentStatusService:
    """
    Use Case: admin moves a payment to processing, success or failed.

    Used for offline methods where no gateway callback arrives.
    """

    def __init__(
        self,
        payment_repo: PaymentRepository,
        sequence: SequenceGenerator,
        uow: UnitOfWork,
        invoices: GenerateInvoiceService,
        receipt_prefix: str = RECEIPT_NUMBER_PREFIX,
    ):
        self.payment_repo = payment_repo
        self.uow = uow
        self.invoices = invoices
        self.receipts = ReceiptNumberFactory(sequence, receipt_prefix)

    def execute(self, actor: Actor, input_dto: UpdatePaymentStatusInputDTO) -> PaymentOutputDTO:
        actor.require_admin("update_payment_status")
        target = PaymentStatus.from_string(input_dto.status)

        with self.uow:
            payment = self.payment_repo.get_by_id(input_dto.payment_id)
            if not payment:
                raise _not_found(input_dto.payment_id)

            if target == PaymentStatus.PROCESSING:
                payment.mark_processing()
            elif target == PaymentStatus.SUCCESS:
                _settle_success(
                    payment, self.uow, self.receipts, transaction_id=input_dto.transaction_id
                )
            elif target == PaymentStatus.FAILED:
                _settle_failure(payment, self.uow, input_dto.reason)
            else:
                raise ValidationError(
                    f"Status {target.value} cannot be set directly", field="status"
                )
            self.payment_repo.save(payment)

        if target == PaymentStatus.SUCCESS:
            self.invoices.issue_best_effort(payment)

        logger.info("Payment %s moved to %s by %s", payment.id, target.value, actor.user_id)
        return PaymentOutputDTO.from_entity(payment)


class InitiateRefundService:
    """
    Use Case: admin starts a refund.

    Raises:
        AuthorizationError: If the actor is not an admin
        EntityNotFoundError: If the payment does not exist
        BusinessRuleViolationError: If not refundable or the amount exceeds the payment
    """

    def __init__(self, payment_repo: PaymentRepository, uow: UnitOfWork):
        self.payment_repo = payment_repo
        self.uow = uow

    def execute(self, actor: Actor, input_dto: RefundPaymentInputDTO) -> PaymentOutputDTO:
        actor.require_admin("refund_payments")

        with self.uow:
            payment = self.payment_repo.get_by_id(input_dto.payment_id)
            if not payment:
                raise _not_found(input_dto.payment_id)

            payment.initiate_refund(input_dto.amount, input_dto.reason)
            self.payment_repo.save(payment)

            self.uow.publish_event(
                RefundInitiatedEvent(
                    aggregate_id=payment.id,
                    amount=str(payment.refund.amount),
                    reason=payment.refund.reason,
                    initiated_by_id=actor.user_id,
                )
            )

        logger.info("Refund of %s initiated on payment %s", payment.refund.amount, payment.id)
        return PaymentOutputDTO.from_entity(payment)


class UpdateRefundStatusService:
    """Use Case: admin (or the webhook) moves a refund forward."""

    def __init__(self, payment_repo: PaymentRepository, uow: UnitOfWork):
        self.payment_repo = payment_repo
        self.uow = uow

    def execute(self, actor: Actor, input_dto: UpdateRefundStatusInputDTO) -> PaymentOutputDTO:
        actor.require_admin("update_refunds")

        with self.uow:
            payment = self.payment_repo.get_by_id(input_dto.payment_id)
            if not payment:
                raise _not_found(input_dto.payment_id)
            apply_refund_status(payment, self.uow, input_dto.status, input_dto.refund_id, input_dto.reason)
            self.payment_repo.save(payment)

        return PaymentOutputDTO.from_entity(payment)


def apply_refund_status(
    payment: PaymentEntity,
    uow: UnitOfWork,
    status: str,
    refund_id: Optional[str] = None,
    reason: Optional[str] = None,
) -> None:
    try:
        target = RefundStatus(str(status).strip().lower())
    except ValueError:
        raise ValidationError(f"Invalid refund status: {status}", field="status")

    if target == RefundStatus.PROCESSING:
        payment.mark_refund_processing(refund_id)
    elif target == RefundStatus.COMPLETED:
        payment.complete_refund(refund_id)
        uow.publish_event(
            RefundCompletedEvent(
                aggregate_id=payment.id,
                amount=str(payment.refund.amount),
                refund_id=payment.refund.refund_id,
            )
        )
    elif target == RefundStatus.FAILED:
        payment.fail_refund(reason)
        uow.publish_event(
            RefundFailedEvent(aggregate_id=payment.id, reason=payment.refund.failure_reason)
        )
    else:
        raise ValidationError("Refunds are initiated through the refund endpoint", field="status")


class ProcessGatewayWebhookService:
    """
    Use Case: handle a gateway notification.

    Supported events:
        payment.captured  → SUCCESS (receipt, best-effort invoice)
        payment.failed    → FAILED
        refund.processed  → refund COMPLETED, payment REFUNDED

    Unknown events are acknowledged and ignored. Known events the payment
    can no longer take (a capture after FAILED, a refund with none in
    flight) are acknowledged too and raise a
    GatewayReconciliationRequiredEvent instead of an error, so the
    gateway stops retrying.

    Returns:
        Id of the payment that changed, or None
    """

    def __init__(
        self,
        payment_repo: PaymentRepository,
        sequence: SequenceGenerator,
        uow: UnitOfWork,
        verifier: SignatureVerifier,
        invoices: GenerateInvoiceService,
        receipt_prefix: str = RECEIPT_NUMBER_PREFIX,
    ):
        self.payment_repo = payment_repo
        self.uow = uow
        self.verifier = verifier
        self.invoices = invoices
        self.receipts = ReceiptNumberFactory(sequence, receipt_prefix)

    def execute(self, input_dto: GatewayWebhookInputDTO) -> Optional[str]:
        if not self.verifier.verify_webhook(input_dto.body, input_dto.signature):
            raise ValidationError("Invalid webhook signature", field="signature")

        handler = {
            "payment.captured": self._on_captured,
            "payment.failed": self._on_failed,
            "refund.processed": self._on_refund_processed,
        }.get(input_dto.event)

        if handler is None:
            logger.info("Unhandled webhook event: %s", input_dto.event)
            return None
        return handler(input_dto.payload)

    @staticmethod
    def _entity(payload: dict, name: str) -> dict:
        return (payload.get(name) or {}).get("entity") or {}

    def _reconcile(self, payment: PaymentEntity, gateway_event: str,
                   reference: Optional[str], reason: str) -> str:
        logger.warning("Webhook %s needs reconciliation for payment %s: %s",
                       gateway_event, payment.id, reason)
        self.uow.publish_event(
            GatewayReconciliationRequiredEvent(
                aggregate_id=payment.id,
                gateway_event=gateway_event,
                gateway_reference=reference,
                payment_status=payment.status.value,
                reason=reason,
            )
        )
        return payment.id

    def _on_captured(self, payload: dict) -> Optional[str]:
        entity = self._entity(payload, "payment")
        with self.uow:
            payment = self.payment_repo.get_by_order_id(entity.get("order_id", ""))
            if payment is None:
                logger.warning("Captured payment for unknown order %s", entity.get("order_id"))
                return None
            if payment.status == PaymentStatus.SUCCESS:
                return payment.id
            if not payment.status.is_settleable:
                return self._reconcile(payment, "payment.captured", entity.get("id"),
                                       f"captured after the payment was {payment.status.value}")
            _settle_success(
                payment, self.uow, self.receipts,
                payment_id=entity.get("id"),
                transaction_id=(entity.get("acquirer_data") or {}).get("rrn"),
            )
            self.payment_repo.save(payment)

        self.invoices.issue_best_effort(payment)
        return payment.id

    def _on_failed(self, payload: dict) -> Optional[str]:
        entity = self._entity(payload, "payment")
        with self.uow:
            payment = self.payment_repo.get_by_order_id(entity.get("order_id", ""))
            if payment is None or not payment.status.is_settleable:
                return payment.id if payment else None
            _settle_failure(payment, self.uow, entity.get("error_description"))
            self.payment_repo.save(payment)
        return payment.id

    def _on_refund_processed(self, payload: dict) -> Optional[str]:
        entity = self._entity(payload, "refund")
        with self.uow:
            payment = self.payment_repo.get_by_gateway_payment_id(entity.get("payment_id", ""))
            if payment is None:
                logger.warning("Refund for unknown gateway payment %s", entity.get("payment_id"))
                return None
            if payment.status == PaymentStatus.REFUNDED:
                return payment.id
            in_flight = (RefundStatus.INITIATED, RefundStatus.PROCESSING)
            if payment.refund is None or payment.refund.status not in in_flight:
                current = payment.refund.status.value if payment.refund else "none"
                return self._reconcile(payment, "refund.processed", entity.get("id"),
                                       f"refund processed while refund status is {current}")
            apply_refund_status(payment, self.uow, RefundStatus.COMPLETED.value, entity.get("id"))
            self.payment_repo.save(payment)
        return payment.id


class GetPaymentService:
    def __init__(self, payment_repo: PaymentRepository):
        self.payment_repo = payment_repo

    def execute(self, actor: Actor, payment_id: str) -> PaymentOutputDTO:
        """
        Raises:
            EntityNotFoundError: If the payment does not exist
            AuthorizationError: If the actor is neither owner nor admin
        """
        payment = self.payment_repo.get_by_id(payment_id)
        if not payment:
            raise _not_found(payment_id)
        actor.require_owner(payment.customer_id, "view", allow_admin=True)
        return PaymentOutputDTO.from_entity(payment)


class ListPaymentsService:
    """Customers see their own payments, admins see all."""

    MAX_PER_PAGE = 100

    def __init__(self, payment_repo: PaymentRepository):
        self.payment_repo = payment_repo

    def execute(self, actor: Actor, query: Optional[ListPaymentsQueryDTO] = None) -> PaymentPageDTO:
        query = query or ListPaymentsQueryDTO()
        if query.page < 1:
            raise ValidationError("Page must be >= 1", field="page")
        per_page = min(max(query.per_page, 1), self.MAX_PER_PAGE)

        criteria = PaymentFilter(
            customer_id=None if actor.is_admin else actor.user_id,
            project_id=query.project_id,
            statuses=(PaymentStatus.from_string(query.status),) if query.status else None,
            payment_type=PaymentType.from_string(query.payment_type) if query.payment_type else None,
        )
        payments = self.payment_repo.find(criteria, offset=(query.page - 1) * per_page, limit=per_page)

        return PaymentPageDTO(
            items=[PaymentListItemDTO.from_entity(p) for p in payments],
            total=self.payment_repo.count(criteria),
            page=query.page,
            per_page=per_page,
        )
