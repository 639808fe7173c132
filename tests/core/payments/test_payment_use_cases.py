"""
Unit tests for the payment use cases.

Strategy:
- InMemoryPaymentRepository, InMemorySequenceGenerator and
  InMemoryInvoiceRenderer as fakes
- A separate FakeUnitOfWork for the invoice step, so the best-effort
  invoice transaction can be observed on its own
"""

import json

import pytest

from src.core.shared.clock import utcnow
from src.core.shared.exceptions import (
    AuthorizationError,
    BusinessRuleViolationError,
    ConcurrencyError,
    EntityNotFoundError,
    ValidationError,
)
from src.core.payments.dtos import (
    GatewayWebhookInputDTO,
    InitiatePaymentInputDTO,
    ListPaymentsQueryDTO,
    RefundPaymentInputDTO,
    UpdatePaymentStatusInputDTO,
    UpdateRefundStatusInputDTO,
    VerifyPaymentInputDTO,
)
from src.core.payments.entities import PaymentStatus
from src.core.payments.gateway import HmacSignatureVerifier, sign
from src.core.payments.ports import (
    InMemoryInvoiceRenderer,
    InMemoryPaymentRepository,
    PaymentFilter,
    StaticPartyDirectory,
)
from src.core.payments.use_cases import (
    GenerateInvoiceService,
    GetPaymentService,
    InitiatePaymentService,
    InitiateRefundService,
    ListPaymentsService,
    ProcessGatewayWebhookService,
    UpdatePaymentStatusService,
    UpdateRefundStatusService,
    VerifyPaymentService,
)


KEY_SECRET = "rzp_key_secret"
WEBHOOK_SECRET = "rzp_webhook_secret"


class InvoiceSaveFailingRepository(InMemoryPaymentRepository):
    """Loses the connection on the save that attaches an invoice."""

    def save(self, payment):
        if payment.invoice is not None:
            raise ConcurrencyError(f"Payment {payment.id} could not be saved")
        super().save(payment)


@pytest.fixture
def renderer():
    return InMemoryInvoiceRenderer()


@pytest.fixture
def invoices(payment_repo, invoice_uow, renderer):
    directory = StaticPartyDirectory(customers={"cust-1": {"name": "Asha Rao"}})
    return GenerateInvoiceService(payment_repo, invoice_uow, renderer, directory)


@pytest.fixture
def verifier():
    return HmacSignatureVerifier(key_secret=KEY_SECRET, webhook_secret=WEBHOOK_SECRET)


@pytest.fixture
def initiate(payment_repo, uow, customer):
    def _initiate(method="upi", amount="250000", payment_type="booking", actor=None, **extra):
        return InitiatePaymentService(payment_repo, uow).execute(
            actor or customer,
            InitiatePaymentInputDTO(
                project_id="proj-9", amount=amount, payment_type=payment_type, method=method, **extra
            ),
        )
    return _initiate


@pytest.fixture
def mark_paid(payment_repo, sequence, uow, invoices, admin):
    def _mark_paid(payment_id):
        return UpdatePaymentStatusService(payment_repo, sequence, uow, invoices).execute(
            admin, UpdatePaymentStatusInputDTO(payment_id=payment_id, status="success")
        )
    return _mark_paid


class TestInitiatePaymentService:

    def test_initiate_upi_payment(self, initiate, payment_repo, uow):
        output = initiate(metadata={"unit_number": "B-402"}, notes="Booking for B-402")

        assert output.status == "pending"
        assert output.customer_id == "cust-1"
        assert output.amount == "250000.00"
        assert output.gateway["order_id"].startswith("order_")
        assert output.metadata["unit_number"] == "B-402"
        assert payment_repo.get_by_id(output.id) is not None

        event = uow.of_type("PaymentInitiatedEvent")[0]
        assert event.order_id == output.gateway["order_id"]
        assert event.payment_type == "booking"

    def test_signature_never_leaves_the_dto(self, initiate):
        assert "signature" not in initiate().gateway

    def test_configured_gateway_provider(self, payment_repo, uow, customer):
        output = InitiatePaymentService(payment_repo, uow, gateway_provider="stripe").execute(
            customer,
            InitiatePaymentInputDTO(project_id="p", amount="1", payment_type="other", method="card"),
        )

        assert output.gateway["provider"] == "stripe"

    def test_invalid_type(self, initiate, uow):
        with pytest.raises(ValidationError) as exc:
            initiate(payment_type="gift")
        assert exc.value.field == "payment_type"
        assert uow.published == []

    def test_every_attempt_is_a_new_payment(self, initiate, payment_repo):
        first = initiate()
        second = initiate()

        assert first.id != second.id
        assert payment_repo.count() == 2


class TestVerifyPaymentService:

    @pytest.fixture
    def service(self, payment_repo, sequence, uow, verifier, invoices):
        return VerifyPaymentService(payment_repo, sequence, uow, verifier, invoices)

    def test_valid_signature_settles(self, service, initiate, customer, uow, renderer, invoice_uow):
        order_id = initiate().gateway["order_id"]
        signature = sign(KEY_SECRET, f"{order_id}|pay_1".encode())

        output = service.execute(
            customer, VerifyPaymentInputDTO(order_id=order_id, payment_id="pay_1", signature=signature)
        )

        assert output.status == "success"
        assert output.receipt_number == f"REC{utcnow():%Y%m}000001"
        assert output.gateway["payment_id"] == "pay_1"
        assert uow.of_type("PaymentSucceededEvent")[0].receipt_number == output.receipt_number

        # invoice issued in its own transaction
        assert output.invoice["number"] == f"INV-{output.receipt_number}"
        assert renderer.snapshots[0].customer == {"id": "cust-1", "name": "Asha Rao"}
        assert invoice_uow.of_type("InvoiceGeneratedEvent")

    def test_invalid_signature_fails(self, service, initiate, customer, uow, renderer):
        order_id = initiate().gateway["order_id"]

        output = service.execute(
            customer, VerifyPaymentInputDTO(order_id=order_id, payment_id="pay_1", signature="forged")
        )

        assert output.status == "failed"
        assert output.failure_reason == "Invalid signature"
        assert output.receipt_number is None
        assert uow.of_type("PaymentFailedEvent")[0].attempts == 1
        assert renderer.snapshots == []

    def test_order_of_another_customer(self, service, initiate, other_customer):
        order_id = initiate().gateway["order_id"]

        with pytest.raises(EntityNotFoundError):
            service.execute(
                other_customer, VerifyPaymentInputDTO(order_id=order_id, payment_id="pay_1", signature="x")
            )

    def test_missing_ids(self, service, customer):
        with pytest.raises(ValidationError):
            service.execute(customer, VerifyPaymentInputDTO(order_id="", payment_id=""))

    def test_invoice_failure_does_not_fail_payment(self, service, initiate, customer, renderer, payment_repo):
        renderer.fail_with = RuntimeError("storage down")
        order_id = initiate().gateway["order_id"]
        signature = sign(KEY_SECRET, f"{order_id}|pay_1".encode())

        output = service.execute(
            customer, VerifyPaymentInputDTO(order_id=order_id, payment_id="pay_1", signature=signature)
        )

        assert output.status == "success"
        assert output.invoice is None
        assert payment_repo.get_by_id(output.id).status == PaymentStatus.SUCCESS


class TestUpdatePaymentStatusService:

    def test_offline_payment_settled_by_admin(self, initiate, mark_paid):
        payment = initiate(method="cheque")

        output = mark_paid(payment.id)

        assert output.status == "success"
        assert output.receipt_number is not None
        assert output.invoice is not None

    def test_receipts_are_sequential(self, initiate, mark_paid):
        first = mark_paid(initiate(method="cash").id)
        second = mark_paid(initiate(method="cash").id)

        assert int(second.receipt_number[-6:]) == int(first.receipt_number[-6:]) + 1

    def test_processing_then_failed(self, initiate, payment_repo, sequence, uow, invoices, admin):
        service = UpdatePaymentStatusService(payment_repo, sequence, uow, invoices)
        payment = initiate(method="bank_transfer")

        service.execute(admin, UpdatePaymentStatusInputDTO(payment_id=payment.id, status="processing"))
        output = service.execute(
            admin, UpdatePaymentStatusInputDTO(payment_id=payment.id, status="failed", reason="Bounced")
        )

        assert output.status == "failed"
        assert output.failure_reason == "Bounced"

    def test_refunded_cannot_be_set_directly(self, initiate, payment_repo, sequence, uow, invoices, admin):
        service = UpdatePaymentStatusService(payment_repo, sequence, uow, invoices)

        with pytest.raises(ValidationError):
            service.execute(admin, UpdatePaymentStatusInputDTO(payment_id=initiate().id, status="refunded"))

    def test_customer_cannot_update(self, initiate, payment_repo, sequence, uow, invoices, customer):
        service = UpdatePaymentStatusService(payment_repo, sequence, uow, invoices)

        with pytest.raises(AuthorizationError):
            service.execute(customer, UpdatePaymentStatusInputDTO(payment_id=initiate().id, status="success"))

    def test_settled_payment_is_final(self, initiate, mark_paid):
        payment = initiate()
        mark_paid(payment.id)

        with pytest.raises(BusinessRuleViolationError):
            mark_paid(payment.id)

    def test_invoice_that_failed_to_save_is_not_reported(self, sequence, uow, invoice_uow, renderer, admin, customer):
        repo = InvoiceSaveFailingRepository()
        invoices = GenerateInvoiceService(repo, invoice_uow, renderer, StaticPartyDirectory())
        payment = InitiatePaymentService(repo, uow).execute(
            customer, InitiatePaymentInputDTO(project_id="proj-9", amount="500", payment_type="booking", method="cash")
        )

        output = UpdatePaymentStatusService(repo, sequence, uow, invoices).execute(
            admin, UpdatePaymentStatusInputDTO(payment_id=payment.id, status="success")
        )

        stored = repo.get_by_id(payment.id)
        assert output.status == "success"
        assert output.invoice is None
        assert stored.status == PaymentStatus.SUCCESS
        assert stored.invoice is None
        assert len(renderer.snapshots) == 1
        assert invoice_uow.of_type("InvoiceGeneratedEvent") == []


class TestRefunds:

    def test_refund_lifecycle(self, initiate, mark_paid, payment_repo, uow, admin):
        payment = initiate(amount="100000")
        mark_paid(payment.id)

        output = InitiateRefundService(payment_repo, uow).execute(
            admin, RefundPaymentInputDTO(payment_id=payment.id, amount="25000", reason="Unit swap")
        )
        assert output.refund["status"] == "initiated"
        assert uow.of_type("RefundInitiatedEvent")[0].initiated_by_id == "admin-1"

        status_service = UpdateRefundStatusService(payment_repo, uow)
        status_service.execute(
            admin, UpdateRefundStatusInputDTO(payment_id=payment.id, status="processing", refund_id="rfnd_1")
        )
        output = status_service.execute(admin, UpdateRefundStatusInputDTO(payment_id=payment.id, status="completed"))

        assert output.status == "refunded"
        assert output.refund["refund_id"] == "rfnd_1"
        assert uow.of_type("RefundCompletedEvent")[0].amount == "25000.00"

    def test_refund_failure(self, initiate, mark_paid, payment_repo, uow, admin):
        payment = initiate()
        mark_paid(payment.id)
        InitiateRefundService(payment_repo, uow).execute(
            admin, RefundPaymentInputDTO(payment_id=payment.id, amount="10", reason="test")
        )

        output = UpdateRefundStatusService(payment_repo, uow).execute(
            admin, UpdateRefundStatusInputDTO(payment_id=payment.id, status="failed", reason="Bank rejected")
        )

        assert output.status == "success"
        assert output.refund["status"] == "failed"
        assert uow.of_type("RefundFailedEvent")[0].reason == "Bank rejected"

    def test_refund_exceeding_amount(self, initiate, mark_paid, payment_repo, uow, admin):
        payment = initiate(amount="1000")
        mark_paid(payment.id)

        with pytest.raises(BusinessRuleViolationError) as exc:
            InitiateRefundService(payment_repo, uow).execute(
                admin, RefundPaymentInputDTO(payment_id=payment.id, amount="5000", reason="oops")
            )
        assert exc.value.rule == "refund_exceeds_amount"

    def test_refund_of_pending_payment(self, initiate, payment_repo, uow, admin):
        with pytest.raises(BusinessRuleViolationError) as exc:
            InitiateRefundService(payment_repo, uow).execute(
                admin, RefundPaymentInputDTO(payment_id=initiate().id, amount="1", reason="r")
            )
        assert exc.value.rule == "refund_requires_success"

    def test_customer_cannot_refund(self, initiate, payment_repo, uow, customer):
        with pytest.raises(AuthorizationError):
            InitiateRefundService(payment_repo, uow).execute(
                customer, RefundPaymentInputDTO(payment_id=initiate().id, amount="1", reason="r")
            )

    def test_unknown_refund_status(self, initiate, mark_paid, payment_repo, uow, admin):
        payment = initiate()
        mark_paid(payment.id)

        with pytest.raises(ValidationError):
            UpdateRefundStatusService(payment_repo, uow).execute(
                admin, UpdateRefundStatusInputDTO(payment_id=payment.id, status="initiated")
            )


class TestGenerateInvoiceService:

    def test_admin_regenerates_invoice(self, initiate, mark_paid, invoices, admin, renderer):
        payment = initiate()
        mark_paid(payment.id)

        output = invoices.execute(admin, payment.id)

        assert output.invoice["url"].startswith("memory://invoices/")
        assert len(renderer.snapshots) == 2

    def test_pending_payment(self, initiate, invoices, admin):
        with pytest.raises(BusinessRuleViolationError):
            invoices.execute(admin, initiate().id)

    def test_customer_cannot_generate(self, initiate, invoices, customer):
        with pytest.raises(AuthorizationError):
            invoices.execute(customer, initiate().id)


class TestProcessGatewayWebhookService:

    @pytest.fixture
    def service(self, payment_repo, sequence, uow, verifier, invoices):
        return ProcessGatewayWebhookService(payment_repo, sequence, uow, verifier, invoices)

    @staticmethod
    def webhook(event, payload, secret=WEBHOOK_SECRET):
        body = json.dumps({"event": event, "payload": payload}).encode()
        return GatewayWebhookInputDTO(body=body, signature=sign(secret, body), event=event, payload=payload)

    def test_payment_captured(self, service, initiate, payment_repo):
        payment = initiate()
        payload = {"payment": {"entity": {
            "id": "pay_9", "order_id": payment.gateway["order_id"], "acquirer_data": {"rrn": "123456"},
        }}}

        assert service.execute(self.webhook("payment.captured", payload)) == payment.id

        stored = payment_repo.get_by_id(payment.id)
        assert stored.status == PaymentStatus.SUCCESS
        assert stored.gateway.payment_id == "pay_9"
        assert stored.gateway.transaction_id == "123456"
        assert stored.invoice is not None

    def test_captured_twice_is_idempotent(self, service, initiate, payment_repo, uow):
        payment = initiate()
        payload = {"payment": {"entity": {"id": "pay_9", "order_id": payment.gateway["order_id"]}}}

        service.execute(self.webhook("payment.captured", payload))
        receipt = payment_repo.get_by_id(payment.id).receipt_number
        service.execute(self.webhook("payment.captured", payload))

        assert payment_repo.get_by_id(payment.id).receipt_number == receipt
        assert len(uow.of_type("PaymentSucceededEvent")) == 1

    def test_payment_failed(self, service, initiate, payment_repo):
        payment = initiate()
        payload = {"payment": {"entity": {
            "order_id": payment.gateway["order_id"], "error_description": "Card declined",
        }}}

        service.execute(self.webhook("payment.failed", payload))

        stored = payment_repo.get_by_id(payment.id)
        assert stored.status == PaymentStatus.FAILED
        assert stored.failure_reason == "Card declined"

    def test_refund_processed(self, service, initiate, payment_repo, uow, admin):
        payment = initiate()
        captured = {"payment": {"entity": {"id": "pay_9", "order_id": payment.gateway["order_id"]}}}
        service.execute(self.webhook("payment.captured", captured))
        InitiateRefundService(payment_repo, uow).execute(
            admin, RefundPaymentInputDTO(payment_id=payment.id, amount="100", reason="r")
        )

        refund = {"refund": {"entity": {"id": "rfnd_3", "payment_id": "pay_9"}}}
        service.execute(self.webhook("refund.processed", refund))

        stored = payment_repo.get_by_id(payment.id)
        assert stored.status == PaymentStatus.REFUNDED
        assert stored.refund.refund_id == "rfnd_3"

    def test_unknown_event_is_ignored(self, service):
        assert service.execute(self.webhook("order.paid", {})) is None

    def test_capture_after_failure_is_acknowledged_for_reconciliation(self, service, initiate, payment_repo,
                                                                       uow, renderer):
        payment = initiate()
        order_id = payment.gateway["order_id"]
        service.execute(self.webhook("payment.failed", {"payment": {"entity": {"order_id": order_id}}}))

        captured = {"payment": {"entity": {"id": "pay_9", "order_id": order_id}}}
        assert service.execute(self.webhook("payment.captured", captured)) == payment.id

        stored = payment_repo.get_by_id(payment.id)
        assert stored.status == PaymentStatus.FAILED
        assert stored.receipt_number is None
        assert renderer.snapshots == []
        event = uow.of_type("GatewayReconciliationRequiredEvent")[0]
        assert event.aggregate_id == payment.id
        assert event.gateway_event == "payment.captured"
        assert event.gateway_reference == "pay_9"
        assert event.payment_status == "failed"

    def test_refund_without_request_is_acknowledged_for_reconciliation(self, service, initiate, payment_repo, uow):
        payment = initiate()
        captured = {"payment": {"entity": {"id": "pay_9", "order_id": payment.gateway["order_id"]}}}
        service.execute(self.webhook("payment.captured", captured))

        refund = {"refund": {"entity": {"id": "rfnd_3", "payment_id": "pay_9"}}}
        assert service.execute(self.webhook("refund.processed", refund)) == payment.id

        stored = payment_repo.get_by_id(payment.id)
        assert stored.status == PaymentStatus.SUCCESS
        assert stored.refund is None
        event = uow.of_type("GatewayReconciliationRequiredEvent")[0]
        assert event.gateway_event == "refund.processed"
        assert event.gateway_reference == "rfnd_3"
        assert event.reason == "refund processed while refund status is none"

    def test_unknown_order(self, service):
        payload = {"payment": {"entity": {"id": "pay_9", "order_id": "order_missing"}}}

        assert service.execute(self.webhook("payment.captured", payload)) is None

    def test_bad_signature(self, service):
        with pytest.raises(ValidationError) as exc:
            service.execute(self.webhook("payment.captured", {}, secret="wrong"))
        assert exc.value.field == "signature"


class TestReadServices:

    def test_get_as_owner_and_admin(self, initiate, payment_repo, customer, admin):
        payment = initiate()

        assert GetPaymentService(payment_repo).execute(customer, payment.id).id == payment.id
        assert GetPaymentService(payment_repo).execute(admin, payment.id).id == payment.id

    def test_get_as_stranger(self, initiate, payment_repo, other_customer):
        with pytest.raises(AuthorizationError):
            GetPaymentService(payment_repo).execute(other_customer, initiate().id)

    def test_get_missing(self, payment_repo, admin):
        with pytest.raises(EntityNotFoundError):
            GetPaymentService(payment_repo).execute(admin, "missing")

    def test_list_is_scoped_to_customer(self, initiate, payment_repo, customer, other_customer, admin):
        initiate()
        initiate(actor=other_customer)

        assert ListPaymentsService(payment_repo).execute(customer).total == 1
        assert ListPaymentsService(payment_repo).execute(admin).total == 2

    def test_list_filters(self, initiate, mark_paid, payment_repo, admin):
        mark_paid(initiate(payment_type="emi").id)
        initiate(payment_type="emi")
        initiate(payment_type="booking")

        page = ListPaymentsService(payment_repo).execute(
            admin, ListPaymentsQueryDTO(status="success", payment_type="emi")
        )

        assert page.total == 1
        assert page.items[0].status == "success"

    def test_invalid_page(self, payment_repo, admin):
        with pytest.raises(ValidationError):
            ListPaymentsService(payment_repo).execute(admin, ListPaymentsQueryDTO(page=0))

    def test_pages_are_sliced_by_the_repository(self, initiate, payment_repo, admin):
        for _ in range(3):
            initiate()

        page = ListPaymentsService(payment_repo).execute(admin, ListPaymentsQueryDTO(page=2, per_page=2))

        assert page.total == 3
        assert page.total_pages == 2
        assert len(page.items) == 1
        assert payment_repo.find(PaymentFilter(), offset=2, limit=2)[0].id == page.items[0].id
