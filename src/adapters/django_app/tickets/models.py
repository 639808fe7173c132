"""
Django models for the ticket domain.

These models are ADAPTERS: they persist the entities defined in
src/core/tickets/entities.py and carry no business rules. Conversion
happens in mappers.py.

Layout:
- The SLA record is flattened into ``sla_*`` columns so the breach
  sweep and the "breached only" filter run in SQL
- Comments, attachments, resolution and rating are embedded JSON;
  they are always read and written together with the ticket
- ``rating_score`` copies the rating score out of its document so the
  statistics can average it in SQL
"""

from django.db import models
from django.utils import timezone


class TicketStatusChoices(models.TextChoices):
    """Mirrors TicketStatus."""
    OPEN = 'open', 'Open'
    IN_REVIEW = 'in_review', 'In review'
    PENDING_CUSTOMER = 'pending_customer', 'Pending customer'
    RESOLVED = 'resolved', 'Resolved'
    CLOSED = 'closed', 'Closed'


class TicketPriorityChoices(models.TextChoices):
    """Mirrors TicketPriority."""
    LOW = 'low', 'Low'
    MEDIUM = 'medium', 'Medium'
    HIGH = 'high', 'High'
    URGENT = 'urgent', 'Urgent'


class TicketTypeChoices(models.TextChoices):
    """Mirrors TicketType."""
    FEEDBACK = 'feedback', 'Feedback'
    GRIEVANCE = 'grievance', 'Grievance'
    SUGGESTION = 'suggestion', 'Suggestion'
    TECHNICAL = 'technical', 'Technical'
    BILLING = 'billing', 'Billing'


class TicketModel(models.Model):
    """
    Persistence for TicketEntity.

    Fields:
        id: UUID generated by the entity
        ticket_number: Human readable number (TKT + yyyymm + 5 digits)
        customer_id / assigned_to_id: Ids owned by the identity service
        sla_*: Flattened SLARecord
        comments: List of comment dicts, oldest first
    """

    id = models.CharField(
        max_length=36,
        primary_key=True,
        editable=False,
        help_text="Ticket UUID"
    )

    ticket_number = models.CharField(
        max_length=20,
        unique=True,
        help_text="Human readable ticket number"
    )

    customer_id = models.CharField(
        max_length=100,
        db_index=True,
        help_text="Customer who raised the ticket"
    )

    ticket_type = models.CharField(
        max_length=20,
        choices=TicketTypeChoices.choices,
        default=TicketTypeChoices.TECHNICAL,
        db_index=True,
    )

    category = models.CharField(
        max_length=100,
        null=True,
        blank=True,
    )

    subject = models.CharField(max_length=200)

    description = models.TextField()

    priority = models.CharField(
        max_length=10,
        choices=TicketPriorityChoices.choices,
        default=TicketPriorityChoices.MEDIUM,
        db_index=True,
    )

    status = models.CharField(
        max_length=20,
        choices=TicketStatusChoices.choices,
        default=TicketStatusChoices.OPEN,
        db_index=True,
    )

    assigned_to_id = models.CharField(
        max_length=100,
        null=True,
        blank=True,
        db_index=True,
        help_text="Admin working on the ticket"
    )

    # Embedded documents
    attachments = models.JSONField(default=list, blank=True)
    comments = models.JSONField(default=list, blank=True)
    resolution = models.JSONField(null=True, blank=True)
    rating = models.JSONField(null=True, blank=True)
    rating_score = models.PositiveSmallIntegerField(
        null=True,
        blank=True,
        help_text="Copy of rating.score for averages in SQL"
    )

    # SLA
    sla_response_deadline = models.DateTimeField(null=True, blank=True)
    sla_resolution_deadline = models.DateTimeField(null=True, blank=True, db_index=True)
    sla_response_time_hours = models.FloatField(null=True, blank=True)
    sla_resolution_time_hours = models.FloatField(null=True, blank=True)
    sla_breached = models.BooleanField(default=False, db_index=True)

    # Lifecycle
    first_response_at = models.DateTimeField(null=True, blank=True)
    closed_at = models.DateTimeField(null=True, blank=True)
    reopened_count = models.PositiveIntegerField(default=0)
    last_reopened_at = models.DateTimeField(null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(default=timezone.now)

    class Meta:
        db_table = 'tickets'
        verbose_name = 'Ticket'
        verbose_name_plural = 'Tickets'
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['customer_id', 'created_at'], name='tickets_custome_2f1c0a_idx'),
            models.Index(fields=['status', 'created_at'], name='tickets_status_8d4e21_idx'),
            models.Index(fields=['assigned_to_id', 'status'], name='tickets_assigne_5b7f93_idx'),
            models.Index(fields=['sla_breached', 'status'], name='tickets_sla_bre_c04a6e_idx'),
        ]

    def __str__(self):
        return f"{self.ticket_number} {self.subject}"

    def __repr__(self):
        return f"<TicketModel {self.ticket_number} status={self.status}>"
