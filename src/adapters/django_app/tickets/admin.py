"""
Django admin for tickets.

Read mostly: state changes go through the API so that SLA bookkeeping
and domain events stay consistent. The admin is for support leads who
need to search and inspect.
"""

from django.contrib import admin
from django.utils.html import format_html

from .models import TicketModel


_BADGE = (
    '<span style="background-color: {}; color: white; padding: 3px 8px; '
    'border-radius: 3px; font-size: 11px;">{}</span>'
)


@admin.register(TicketModel)
class TicketAdmin(admin.ModelAdmin):

    list_display = [
        'ticket_number',
        'subject',
        'status_badge',
        'priority_badge',
        'ticket_type',
        'customer_id',
        'assigned_to_id',
        'created_at',
        'sla_badge',
    ]

    list_filter = [
        'status',
        'priority',
        'ticket_type',
        'sla_breached',
        'created_at',
    ]

    search_fields = [
        'ticket_number',
        'subject',
        'description',
        'customer_id',
        'assigned_to_id',
    ]

    readonly_fields = [
        'id',
        'ticket_number',
        'customer_id',
        'comments',
        'resolution',
        'rating',
        'sla_response_deadline',
        'sla_resolution_deadline',
        'sla_response_time_hours',
        'sla_resolution_time_hours',
        'sla_breached',
        'first_response_at',
        'closed_at',
        'reopened_count',
        'last_reopened_at',
        'created_at',
        'updated_at',
    ]

    fieldsets = [
        ('Ticket', {
            'fields': ['id', 'ticket_number', 'ticket_type', 'category', 'subject', 'description'],
        }),
        ('Status', {
            'fields': ['status', 'priority', 'customer_id', 'assigned_to_id'],
        }),
        ('Conversation', {
            'fields': ['attachments', 'comments', 'resolution', 'rating'],
            'classes': ['collapse'],
        }),
        ('SLA', {
            'fields': [
                'sla_response_deadline', 'sla_resolution_deadline',
                'sla_response_time_hours', 'sla_resolution_time_hours',
                'sla_breached', 'first_response_at',
            ],
        }),
        ('Timestamps', {
            'fields': ['closed_at', 'reopened_count', 'last_reopened_at', 'created_at', 'updated_at'],
            'classes': ['collapse'],
        }),
    ]

    ordering = ['-created_at']

    date_hierarchy = 'created_at'

    @admin.display(description='Status')
    def status_badge(self, obj):
        colors = {
            'open': '#17a2b8',
            'in_review': '#ffc107',
            'pending_customer': '#6c757d',
            'resolved': '#28a745',
            'closed': '#343a40',
        }
        return format_html(_BADGE, colors.get(obj.status, '#6c757d'), obj.get_status_display())

    @admin.display(description='Priority')
    def priority_badge(self, obj):
        colors = {
            'low': '#28a745',
            'medium': '#ffc107',
            'high': '#fd7e14',
            'urgent': '#dc3545',
        }
        return format_html(_BADGE, colors.get(obj.priority, '#6c757d'), obj.get_priority_display())

    @admin.display(description='SLA')
    def sla_badge(self, obj):
        if obj.sla_breached:
            return format_html('<span style="color: #dc3545; font-weight: bold;">{}</span>', 'Breached')
        return format_html('<span style="color: #28a745;">{}</span>', 'Within SLA')
