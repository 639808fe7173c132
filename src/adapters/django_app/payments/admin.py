"""
Django admin for payments. Read only: money moves through the API and
the gateway webhook, never through a form.
"""

from django.contrib import admin
from django.utils.html import format_html

from .models import PaymentModel


@admin.register(PaymentModel)
class PaymentAdmin(admin.ModelAdmin):

    list_display = [
        'short_id',
        'receipt_number',
        'customer_id',
        'project_id',
        'amount',
        'currency',
        'payment_type',
        'method',
        'status_badge',
        'created_at',
    ]

    list_filter = ['status', 'payment_type', 'method', 'created_at']

    search_fields = [
        'id',
        'receipt_number',
        'customer_id',
        'project_id',
        'gateway_order_id',
        'gateway_payment_id',
    ]

    fieldsets = [
        ('Payment', {
            'fields': ['id', 'customer_id', 'project_id', 'amount', 'currency', 'payment_type', 'method', 'notes'],
        }),
        ('Status', {
            'fields': ['status', 'receipt_number', 'paid_at', 'failure_reason', 'attempts', 'next_due_date'],
        }),
        ('Gateway', {
            'fields': ['gateway_provider', 'gateway_order_id', 'gateway_payment_id', 'gateway_transaction_id'],
            'classes': ['collapse'],
        }),
        ('Documents', {
            'fields': ['metadata', 'invoice', 'refund'],
            'classes': ['collapse'],
        }),
        ('Timestamps', {
            'fields': ['created_at', 'updated_at'],
            'classes': ['collapse'],
        }),
    ]

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    def get_readonly_fields(self, request, obj=None):
        return [field.name for field in self.model._meta.fields if field.name != 'gateway_signature']

    def has_add_permission(self, request):
        return False

    def has_delete_permission(self, request, obj=None):
        return False

    @admin.display(description='ID')
    def short_id(self, obj):
        return obj.id[:8]

    @admin.display(description='Status')
    def status_badge(self, obj):
        colors = {
            'pending': '#6c757d',
            'processing': '#ffc107',
            'success': '#28a745',
            'failed': '#dc3545',
            'refunded': '#17a2b8',
        }
        return format_html(
            '<span style="background-color: {}; color: white; padding: 3px 8px; '
            'border-radius: 3px; font-size: 11px;">{}</span>',
            colors.get(obj.status, '#6c757d'),
            obj.get_status_display(),
        )
