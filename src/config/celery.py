"""
Celery application.

Used for:
- asynchronous domain event handlers
- notifications
- scheduled jobs (SLA sweep, EMI defaulter report, daily report)

Architecture:
- Broker: RabbitMQ or Redis (CELERY_BROKER_URL)
- Result backend: Redis
- Workers: consume the ``events``, ``notifications`` and ``reports`` queues

Usage:
    celery -A src.config.celery worker -l INFO
    celery -A src.config.celery beat -l INFO
"""

import os

from celery import Celery
from celery.schedules import crontab
from kombu import Exchange, Queue

os.environ.setdefault('DJANGO_SETTINGS_MODULE', 'src.config.settings')

HANDLERS = 'src.adapters.django_app.events.handlers'

app = Celery('realtyengage')

# CELERY_* names in Django settings
app.config_from_object('django.conf:settings', namespace='CELERY')

app.conf.update(
    task_serializer='json',
    accept_content=['json'],
    result_serializer='json',

    enable_utc=True,

    task_acks_late=True,
    task_reject_on_worker_lost=True,
    worker_prefetch_multiplier=1,

    task_default_retry_delay=60,
    task_max_retries=3,

    result_expires=3600,

    worker_send_task_events=True,
    task_send_sent_event=True,
)

app.conf.task_default_queue = 'default'

app.conf.task_queues = (
    Queue('default', Exchange('default'), routing_key='default'),
    Queue('events', Exchange('events'), routing_key='events.#'),
    Queue('notifications', Exchange('notifications'), routing_key='notifications.#'),
    Queue('reports', Exchange('reports'), routing_key='reports.#'),
)

app.conf.task_routes = {
    f'{HANDLERS}.notify_user': {'queue': 'notifications'},
    f'{HANDLERS}.notify_support_team': {'queue': 'notifications'},
    f'{HANDLERS}.sweep_sla_breaches': {'queue': 'reports'},
    f'{HANDLERS}.report_emi_defaulters': {'queue': 'reports'},
    f'{HANDLERS}.generate_daily_report': {'queue': 'reports'},
    f'{HANDLERS}.*': {'queue': 'events'},
}

app.autodiscover_tasks(['src.adapters.django_app.events'], related_name='handlers')

app.conf.beat_schedule = {
    'sweep-sla-breaches': {
        'task': f'{HANDLERS}.sweep_sla_breaches',
        'schedule': 3600.0,
    },
    'report-emi-defaulters': {
        'task': f'{HANDLERS}.report_emi_defaulters',
        'schedule': crontab(hour=9, minute=0),
    },
    'daily-report': {
        'task': f'{HANDLERS}.generate_daily_report',
        'schedule': crontab(hour=8, minute=0),
    },
}
