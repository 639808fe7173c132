"""
Initial migration for the payment domain.

Creates the ``payments`` table with flattened gateway columns, a copy of
the next EMI due date and embedded JSON documents for invoice, refund
and metadata.
"""

from django.db import migrations, models
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='PaymentModel',
            fields=[
                ('id', models.CharField(
                    max_length=36,
                    primary_key=True,
                    serialize=False,
                    editable=False,
                    help_text='Payment UUID'
                )),
                ('customer_id', models.CharField(max_length=100, db_index=True)),
                ('project_id', models.CharField(max_length=100, db_index=True)),
                ('amount', models.DecimalField(max_digits=14, decimal_places=2)),
                ('currency', models.CharField(max_length=3, default='INR')),
                ('payment_type', models.CharField(
                    max_length=20,
                    choices=[
                        ('booking', 'Booking'),
                        ('down_payment', 'Down payment'),
                        ('emi', 'EMI'),
                        ('full_payment', 'Full payment'),
                        ('other', 'Other'),
                    ],
                    default='other',
                    db_index=True,
                )),
                ('method', models.CharField(
                    max_length=20,
                    choices=[
                        ('card', 'Card'),
                        ('bank_transfer', 'Bank transfer'),
                        ('upi', 'UPI'),
                        ('cash', 'Cash'),
                        ('cheque', 'Cheque'),
                    ],
                    default='bank_transfer',
                )),
                ('status', models.CharField(
                    max_length=20,
                    choices=[
                        ('pending', 'Pending'),
                        ('processing', 'Processing'),
                        ('success', 'Success'),
                        ('failed', 'Failed'),
                        ('refunded', 'Refunded'),
                    ],
                    default='pending',
                    db_index=True,
                )),
                ('gateway_provider', models.CharField(max_length=30, default='razorpay')),
                ('gateway_order_id', models.CharField(max_length=64, null=True, blank=True, unique=True)),
                ('gateway_payment_id', models.CharField(max_length=64, null=True, blank=True, db_index=True)),
                ('gateway_signature', models.CharField(max_length=128, null=True, blank=True)),
                ('gateway_transaction_id', models.CharField(max_length=64, null=True, blank=True)),
                ('receipt_number', models.CharField(
                    max_length=20,
                    null=True,
                    blank=True,
                    unique=True,
                    help_text='Assigned once, on success'
                )),
                ('invoice', models.JSONField(null=True, blank=True)),
                ('metadata', models.JSONField(default=dict, blank=True)),
                ('refund', models.JSONField(null=True, blank=True)),
                ('next_due_date', models.DateTimeField(
                    null=True,
                    blank=True,
                    db_index=True,
                    help_text='Copy of metadata.next_due_date'
                )),
                ('failure_reason', models.CharField(max_length=255, null=True, blank=True)),
                ('paid_at', models.DateTimeField(null=True, blank=True)),
                ('attempts', models.PositiveIntegerField(default=0)),
                ('notes', models.TextField(null=True, blank=True)),
                ('created_at', models.DateTimeField(
                    default=django.utils.timezone.now,
                    db_index=True
                )),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                'verbose_name': 'Payment',
                'verbose_name_plural': 'Payments',
                'db_table': 'payments',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['customer_id', 'created_at'], name='payments_custome_9a3b17_idx'),
                    models.Index(fields=['status', 'created_at'], name='payments_status_41c2de_idx'),
                    models.Index(fields=['payment_type', 'status', 'next_due_date'], name='payments_emi_due_7e05f8_idx'),
                ],
            },
        ),
    ]
