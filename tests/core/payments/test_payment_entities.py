"""
Unit tests for the payment aggregate: initiation, settlement, refund
flow, invoices and metadata parsing.
"""

from datetime import datetime, timezone
from decimal import Decimal

import pytest

from src.core.shared.exceptions import BusinessRuleViolationError, ValidationError
from src.core.payments.entities import (
    PaymentEntity,
    PaymentMetadata,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
    RefundStatus,
    format_receipt_number,
    new_order_id,
    to_amount,
)


def receipts():
    counter = iter(range(1, 100))
    return lambda: format_receipt_number(next(counter), datetime(2024, 5, 2))


def make_payment(method=PaymentMethod.UPI, amount="250000", **overrides):
    values = dict(
        customer_id="cust-1",
        project_id="proj-9",
        amount=amount,
        payment_type=PaymentType.BOOKING,
        method=method,
    )
    values.update(overrides)
    return PaymentEntity.initiate(**values)


def paid_payment(amount="250000"):
    payment = make_payment(amount=amount)
    payment.mark_success(receipt_number_factory=receipts(), payment_id="pay_1")
    return payment


class TestHelpers:

    def test_receipt_number_format(self):
        assert format_receipt_number(7, datetime(2024, 5, 2)) == "REC202405000007"

    def test_order_id_format(self):
        order_id = new_order_id()

        assert order_id.startswith("order_")
        assert len(order_id) == len("order_") + 16
        assert new_order_id() != order_id

    def test_to_amount_rounds_to_paise(self):
        assert to_amount("1000.456") == Decimal("1000.46")
        assert to_amount(10) == Decimal("10.00")

    @pytest.mark.parametrize("value", ["-1", "abc", None])
    def test_to_amount_rejects_invalid(self, value):
        with pytest.raises(ValidationError):
            to_amount(value)


class TestInitiate:

    def test_online_payment_gets_order(self):
        payment = make_payment(method=PaymentMethod.CARD)

        assert payment.status == PaymentStatus.PENDING
        assert payment.amount == Decimal("250000.00")
        assert payment.currency == "INR"
        assert payment.gateway.provider == "razorpay"
        assert payment.gateway.order_id.startswith("order_")
        assert payment.receipt_number is None

    def test_offline_payment_has_no_order(self):
        payment = make_payment(method=PaymentMethod.CHEQUE)

        assert payment.gateway.order_id is None

    def test_currency_is_normalised(self):
        assert make_payment(currency=" usd ").currency == "USD"

    @pytest.mark.parametrize("field_name,value", [
        ("customer_id", ""),
        ("project_id", ""),
        ("currency", "RUPEES"),
    ])
    def test_invalid_references(self, field_name, value):
        with pytest.raises(ValidationError) as exc:
            make_payment(**{field_name: value})
        assert exc.value.field == field_name

    def test_negative_amount(self):
        with pytest.raises(ValidationError):
            make_payment(amount="-10")

    def test_enum_parsing(self):
        assert PaymentType.from_string("EMI") == PaymentType.EMI
        assert PaymentMethod.from_string("bank_transfer") == PaymentMethod.BANK_TRANSFER
        with pytest.raises(ValidationError):
            PaymentMethod.from_string("crypto")


class TestSettlement:

    def test_success_assigns_receipt(self):
        payment = make_payment()
        payment.mark_success(receipt_number_factory=receipts(), payment_id="pay_1", signature="sig")

        assert payment.status == PaymentStatus.SUCCESS
        assert payment.receipt_number == "REC202405000001"
        assert payment.gateway.payment_id == "pay_1"
        assert payment.paid_at is not None

    def test_success_from_processing(self):
        payment = make_payment()
        payment.mark_processing()
        payment.mark_success(receipt_number_factory=receipts())

        assert payment.status == PaymentStatus.SUCCESS

    def test_existing_receipt_is_kept(self):
        payment = make_payment()
        payment.receipt_number = "REC202401000099"
        payment.mark_success(receipt_number_factory=receipts())

        assert payment.receipt_number == "REC202401000099"

    def test_failure_counts_attempt(self):
        payment = make_payment()
        payment.mark_failed("Card declined")

        assert payment.status == PaymentStatus.FAILED
        assert payment.failure_reason == "Card declined"
        assert payment.attempts == 1

    def test_failed_is_terminal(self):
        payment = make_payment()
        payment.mark_failed()

        with pytest.raises(BusinessRuleViolationError) as exc:
            payment.mark_success(receipt_number_factory=receipts())
        assert exc.value.rule == "payment_already_settled"

    def test_success_cannot_fail(self):
        with pytest.raises(BusinessRuleViolationError) as exc:
            paid_payment().mark_failed()
        assert exc.value.rule == "payment_already_settled"

    def test_processing_only_from_pending(self):
        with pytest.raises(BusinessRuleViolationError) as exc:
            paid_payment().mark_processing()
        assert exc.value.rule == "invalid_status_transition"


class TestRefundFlow:

    def test_initiate_refund(self):
        payment = paid_payment()
        payment.initiate_refund("50000", " Unit swap ")

        assert payment.refund.amount == Decimal("50000.00")
        assert payment.refund.reason == "Unit swap"
        assert payment.refund.status == RefundStatus.INITIATED
        assert payment.status == PaymentStatus.SUCCESS

    def test_complete_refund(self):
        payment = paid_payment()
        payment.initiate_refund("50000", "Unit swap")
        payment.mark_refund_processing(refund_id="rfnd_1")
        payment.complete_refund()

        assert payment.status == PaymentStatus.REFUNDED
        assert payment.refund.status == RefundStatus.COMPLETED
        assert payment.refund.refund_id == "rfnd_1"
        assert payment.refundable_amount == Decimal("0.00")

    def test_failed_refund_can_be_retried(self):
        payment = paid_payment()
        payment.initiate_refund("50000", "Unit swap")
        payment.fail_refund("Bank rejected")

        assert payment.refund.status == RefundStatus.FAILED
        assert payment.refund.failure_reason == "Bank rejected"
        assert payment.status == PaymentStatus.SUCCESS

        payment.initiate_refund("40000", "Retry")
        assert payment.refund.status == RefundStatus.INITIATED

    def test_refund_requires_success(self):
        with pytest.raises(BusinessRuleViolationError) as exc:
            make_payment().initiate_refund("10", "why")
        assert exc.value.rule == "refund_requires_success"

    def test_refund_cannot_exceed_amount(self):
        with pytest.raises(BusinessRuleViolationError) as exc:
            paid_payment(amount="1000").initiate_refund("1000.01", "too much")
        assert exc.value.rule == "refund_exceeds_amount"

    def test_full_refund_is_allowed(self):
        payment = paid_payment(amount="1000")
        payment.initiate_refund("1000", "Cancelled booking")

        assert payment.refund.amount == payment.amount

    def test_second_refund_while_in_flight(self):
        payment = paid_payment()
        payment.initiate_refund("100", "first")

        with pytest.raises(BusinessRuleViolationError) as exc:
            payment.initiate_refund("100", "second")
        assert exc.value.rule == "refund_in_progress"

    @pytest.mark.parametrize("amount", ["0", "-5"])
    def test_non_positive_refund(self, amount):
        with pytest.raises(ValidationError) as exc:
            paid_payment().initiate_refund(amount, "reason")
        assert exc.value.field == "refund_amount"

    def test_reason_required(self):
        with pytest.raises(ValidationError) as exc:
            paid_payment().initiate_refund("10", "  ")
        assert exc.value.field == "reason"

    def test_refund_transitions_need_a_refund(self):
        with pytest.raises(BusinessRuleViolationError) as exc:
            paid_payment().complete_refund()
        assert exc.value.rule == "invalid_refund_transition"

    def test_completed_refund_cannot_fail(self):
        payment = paid_payment()
        payment.initiate_refund("10", "reason")
        payment.complete_refund()

        with pytest.raises(BusinessRuleViolationError):
            payment.fail_refund()


class TestInvoice:

    def test_attach_invoice(self):
        payment = paid_payment()
        payment.attach_invoice("INV202405000001", "/media/invoices/INV202405000001.html")

        assert payment.invoice.number == "INV202405000001"
        assert payment.invoice.generated_at is not None

    def test_pending_payment_has_no_invoice(self):
        with pytest.raises(BusinessRuleViolationError) as exc:
            make_payment().attach_invoice("INV1", "url")
        assert exc.value.rule == "invoice_requires_success"


class TestPaymentMetadata:

    def test_from_dict(self):
        metadata = PaymentMetadata.from_dict({
            "unit_number": "B-402",
            "installment_number": 3,
            "total_installments": 24,
            "emi_amount": "21500.50",
            "next_due_date": "2024-06-05T00:00:00Z",
        })

        assert metadata.unit_number == "B-402"
        assert metadata.emi_amount == Decimal("21500.50")
        assert metadata.next_due_date == datetime(2024, 6, 5, tzinfo=timezone.utc)

    def test_empty(self):
        assert PaymentMetadata.from_dict(None) == PaymentMetadata()

    def test_invalid_due_date(self):
        with pytest.raises(ValidationError) as exc:
            PaymentMetadata.from_dict({"next_due_date": "next tuesday"})
        assert exc.value.field == "next_due_date"

    def test_to_dict(self):
        data = PaymentMetadata(installment_number=2, next_due_date=datetime(2024, 6, 5, tzinfo=timezone.utc)).to_dict()

        assert data["installment_number"] == 2
        assert data["next_due_date"] == "2024-06-05T00:00:00+00:00"
