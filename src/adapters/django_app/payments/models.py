"""
Django models for the payment domain.

ADAPTERS for src/core/payments/entities.py; no business rules here.

Layout:
- Gateway details are flattened so order and gateway payment ids can
  be looked up by index (checkout verification, webhooks)
- ``next_due_date`` is copied out of the metadata document so the EMI
  defaulter query runs in SQL
- Refund, invoice and metadata are embedded JSON documents
"""

from django.db import models
from django.utils import timezone


class PaymentStatusChoices(models.TextChoices):
    """Mirrors PaymentStatus."""
    PENDING = 'pending', 'Pending'
    PROCESSING = 'processing', 'Processing'
    SUCCESS = 'success', 'Success'
    FAILED = 'failed', 'Failed'
    REFUNDED = 'refunded', 'Refunded'


class PaymentTypeChoices(models.TextChoices):
    """Mirrors PaymentType."""
    BOOKING = 'booking', 'Booking'
    DOWN_PAYMENT = 'down_payment', 'Down payment'
    EMI = 'emi', 'EMI'
    FULL_PAYMENT = 'full_payment', 'Full payment'
    OTHER = 'other', 'Other'


class PaymentMethodChoices(models.TextChoices):
    """Mirrors PaymentMethod."""
    CARD = 'card', 'Card'
    BANK_TRANSFER = 'bank_transfer', 'Bank transfer'
    UPI = 'upi', 'UPI'
    CASH = 'cash', 'Cash'
    CHEQUE = 'cheque', 'Cheque'


class PaymentModel(models.Model):
    """
    Persistence for PaymentEntity.

    Fields:
        id: UUID generated by the entity
        amount: Decimal with two places, never a float
        receipt_number: REC + yyyymm + 6 digits, unique once assigned
        gateway_*: Flattened GatewayDetails
    """

    id = models.CharField(
        max_length=36,
        primary_key=True,
        editable=False,
        help_text="Payment UUID"
    )

    customer_id = models.CharField(max_length=100, db_index=True)

    project_id = models.CharField(max_length=100, db_index=True)

    amount = models.DecimalField(max_digits=14, decimal_places=2)

    currency = models.CharField(max_length=3, default='INR')

    payment_type = models.CharField(
        max_length=20,
        choices=PaymentTypeChoices.choices,
        default=PaymentTypeChoices.OTHER,
        db_index=True,
    )

    method = models.CharField(
        max_length=20,
        choices=PaymentMethodChoices.choices,
        default=PaymentMethodChoices.BANK_TRANSFER,
    )

    status = models.CharField(
        max_length=20,
        choices=PaymentStatusChoices.choices,
        default=PaymentStatusChoices.PENDING,
        db_index=True,
    )

    # Gateway
    gateway_provider = models.CharField(max_length=30, default='razorpay')
    gateway_order_id = models.CharField(max_length=64, null=True, blank=True, unique=True)
    gateway_payment_id = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    gateway_signature = models.CharField(max_length=128, null=True, blank=True)
    gateway_transaction_id = models.CharField(max_length=64, null=True, blank=True)

    receipt_number = models.CharField(
        max_length=20,
        null=True,
        blank=True,
        unique=True,
        help_text="Assigned once, on success"
    )

    # Embedded documents
    invoice = models.JSONField(null=True, blank=True)
    metadata = models.JSONField(default=dict, blank=True)
    refund = models.JSONField(null=True, blank=True)

    next_due_date = models.DateTimeField(
        null=True,
        blank=True,
        db_index=True,
        help_text="Copy of metadata.next_due_date"
    )

    failure_reason = models.CharField(max_length=255, null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    attempts = models.PositiveIntegerField(default=0)
    notes = models.TextField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'payments'
        verbose_name = 'Payment'
        verbose_name_plural = 'Payments'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['customer_id', 'created_at'], name='payments_custome_9a3b17_idx'),
            models.Index(fields=['status', 'created_at'], name='payments_status_41c2de_idx'),
            models.Index(fields=['payment_type', 'status', 'next_due_date'], name='payments_emi_due_7e05f8_idx'),
        ]

    def __str__(self):
        return f"{self.receipt_number or self.id[:8]} {self.amount} {self.currency}"

    def __repr__(self):
        return f"<PaymentModel id={self.id[:8]} status={self.status}>"
