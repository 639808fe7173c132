"""
Initial migration for the ticket domain.

Creates the ``tickets`` table with flattened SLA columns and embedded
JSON documents for comments, attachments, resolution and rating.
"""

from django.db import migrations, models
import django.utils.timezone


class Migration(migrations.Migration):

    initial = True

    dependencies = [
    ]

    operations = [
        migrations.CreateModel(
            name='TicketModel',
            fields=[
                ('id', models.CharField(
                    max_length=36,
                    primary_key=True,
                    serialize=False,
                    editable=False,
                    help_text='Ticket UUID'
                )),
                ('ticket_number', models.CharField(
                    max_length=20,
                    unique=True,
                    help_text='Human readable ticket number'
                )),
                ('customer_id', models.CharField(
                    max_length=100,
                    db_index=True,
                    help_text='Customer who raised the ticket'
                )),
                ('ticket_type', models.CharField(
                    max_length=20,
                    choices=[
                        ('feedback', 'Feedback'),
                        ('grievance', 'Grievance'),
                        ('suggestion', 'Suggestion'),
                        ('technical', 'Technical'),
                        ('billing', 'Billing'),
                    ],
                    default='technical',
                    db_index=True,
                )),
                ('category', models.CharField(max_length=100, null=True, blank=True)),
                ('subject', models.CharField(max_length=200)),
                ('description', models.TextField()),
                ('priority', models.CharField(
                    max_length=10,
                    choices=[
                        ('low', 'Low'),
                        ('medium', 'Medium'),
                        ('high', 'High'),
                        ('urgent', 'Urgent'),
                    ],
                    default='medium',
                    db_index=True,
                )),
                ('status', models.CharField(
                    max_length=20,
                    choices=[
                        ('open', 'Open'),
                        ('in_review', 'In review'),
                        ('pending_customer', 'Pending customer'),
                        ('resolved', 'Resolved'),
                        ('closed', 'Closed'),
                    ],
                    default='open',
                    db_index=True,
                )),
                ('assigned_to_id', models.CharField(
                    max_length=100,
                    null=True,
                    blank=True,
                    db_index=True,
                    help_text='Admin working on the ticket'
                )),
                ('attachments', models.JSONField(default=list, blank=True)),
                ('comments', models.JSONField(default=list, blank=True)),
                ('resolution', models.JSONField(null=True, blank=True)),
                ('rating', models.JSONField(null=True, blank=True)),
                ('rating_score', models.PositiveSmallIntegerField(
                    null=True,
                    blank=True,
                    help_text='Copy of rating.score for averages in SQL'
                )),
                ('sla_response_deadline', models.DateTimeField(null=True, blank=True)),
                ('sla_resolution_deadline', models.DateTimeField(null=True, blank=True, db_index=True)),
                ('sla_response_time_hours', models.FloatField(null=True, blank=True)),
                ('sla_resolution_time_hours', models.FloatField(null=True, blank=True)),
                ('sla_breached', models.BooleanField(default=False, db_index=True)),
                ('first_response_at', models.DateTimeField(null=True, blank=True)),
                ('closed_at', models.DateTimeField(null=True, blank=True)),
                ('reopened_count', models.PositiveIntegerField(default=0)),
                ('last_reopened_at', models.DateTimeField(null=True, blank=True)),
                ('created_at', models.DateTimeField(
                    default=django.utils.timezone.now,
                    db_index=True
                )),
                ('updated_at', models.DateTimeField(default=django.utils.timezone.now)),
            ],
            options={
                'verbose_name': 'Ticket',
                'verbose_name_plural': 'Tickets',
                'db_table': 'tickets',
                'ordering': ['-created_at'],
                'indexes': [
                    models.Index(fields=['customer_id', 'created_at'], name='tickets_custome_2f1c0a_idx'),
                    models.Index(fields=['status', 'created_at'], name='tickets_status_8d4e21_idx'),
                    models.Index(fields=['assigned_to_id', 'status'], name='tickets_assigne_5b7f93_idx'),
                    models.Index(fields=['sla_breached', 'status'], name='tickets_sla_bre_c04a6e_idx'),
                ],
            },
        ),
    ]
