"""
Celery handlers for domain events.

``dispatch_domain_event`` is the single entry point: publishers enqueue
``(event_type, envelope)`` and the dispatcher routes the envelope to the
matching handler. Events without a dedicated handler only record a
metric.

Envelope (see DomainEvent.to_dict):
    {"event_id", "event_type", "aggregate_id", "aggregate_type",
     "occurred_at", "version", "data": {...}}

Beat tasks:
- sweep_sla_breaches (hourly)
- report_emi_defaulters (daily)
- generate_daily_report (daily)
"""

import logging
import re
from datetime import timedelta
from typing import Any, Dict, Optional

from celery import shared_task

from src.core.shared.actor import Actor
from src.core.shared.clock import utcnow
from src.core.statistics.services import StatisticsQueryDTO

logger = logging.getLogger(__name__)

SYSTEM_ACTOR = Actor.admin('system')

_HANDLER_OPTIONS = dict(bind=True, max_retries=3, default_retry_delay=60, acks_late=True)


def _data(event_data: Dict[str, Any]) -> Dict[str, Any]:
    return event_data.get('data') or {}


def _metric_name(event_type: str) -> str:
    """TicketSLABreachedEvent -> ticket_sla_breached"""
    name = event_type[:-len('Event')] if event_type.endswith('Event') else event_type
    return re.sub(r'(?<=[a-z0-9])(?=[A-Z])|(?<=[A-Z])(?=[A-Z][a-z])', '_', name).lower()


def _container():
    from src.config.container import get_container
    return get_container()


# =============================================================================
# Ticket handlers
# =============================================================================

@shared_task(autoretry_for=(Exception,), **_HANDLER_OPTIONS)
def handle_ticket_created(self, event_data: Dict[str, Any]) -> None:
    """
    Acknowledge to the customer; page the support queue for urgent and
    high priority tickets.
    """
    data = _data(event_data)
    ticket_number = data.get('ticket_number')
    priority = data.get('priority', 'medium')

    logger.info("[HANDLER] TicketCreated: %s | customer=%s | priority=%s",
                ticket_number, data.get('customer_id'), priority)

    notify_user.delay(
        user_id=data.get('customer_id'),
        message=f"We received your ticket {ticket_number}: {data.get('subject', '')}",
    )
    if priority in ('high', 'urgent'):
        notify_support_team.delay(
            reference=ticket_number,
            message=f"New {priority} ticket: {data.get('subject', '')}",
            priority='high' if priority == 'urgent' else 'normal',
        )
    record_metric.delay(metric_name='ticket_created', value=1,
                        tags={'priority': priority, 'type': data.get('ticket_type', '')})


@shared_task(**_HANDLER_OPTIONS)
def handle_ticket_assigned(self, event_data: Dict[str, Any]) -> None:
    data = _data(event_data)
    ticket_id = event_data.get('aggregate_id', '')
    logger.info("[HANDLER] TicketAssigned: %s | agent=%s", ticket_id, data.get('agent_id'))

    notify_user.delay(
        user_id=data.get('agent_id'),
        message=f"Ticket {ticket_id[:8]} was assigned to you",
    )


@shared_task(**_HANDLER_OPTIONS)
def handle_ticket_awaiting_customer(self, event_data: Dict[str, Any]) -> None:
    data = _data(event_data)
    logger.info("[HANDLER] TicketAwaitingCustomer: %s", event_data.get('aggregate_id'))

    notify_user.delay(
        user_id=data.get('customer_id'),
        message="Our team needs more information to continue with your ticket",
    )


@shared_task(**_HANDLER_OPTIONS)
def handle_ticket_resolved(self, event_data: Dict[str, Any]) -> None:
    """Ask the customer for a rating and feed the SLA metrics."""
    data = _data(event_data)
    logger.info("[HANDLER] TicketResolved: %s | by=%s | breached=%s",
                event_data.get('aggregate_id'), data.get('resolved_by_id'), data.get('sla_breached'))

    notify_user.delay(
        user_id=data.get('customer_id'),
        message="Your ticket was resolved. Please rate our support",
    )
    if data.get('resolution_time_hours') is not None:
        record_metric.delay(metric_name='ticket_resolution_hours', value=data['resolution_time_hours'],
                            tags={'sla_breached': str(bool(data.get('sla_breached'))).lower()})


@shared_task(**_HANDLER_OPTIONS)
def handle_ticket_reopened(self, event_data: Dict[str, Any]) -> None:
    data = _data(event_data)
    ticket_id = event_data.get('aggregate_id', '')
    logger.info("[HANDLER] TicketReopened: %s | count=%s | reason=%s",
                ticket_id, data.get('reopened_count'), data.get('reason', ''))

    notify_support_team.delay(
        reference=ticket_id,
        message=f"Ticket reopened ({data.get('reopened_count', 1)}x): {data.get('reason') or 'no reason given'}",
    )
    record_metric.delay(metric_name='ticket_reopened', value=1,
                        tags={'reason': 'given' if data.get('reason') else 'missing'})


@shared_task(**_HANDLER_OPTIONS)
def handle_ticket_sla_breached(self, event_data: Dict[str, Any]) -> None:
    data = _data(event_data)
    ticket_number = data.get('ticket_number')
    logger.warning("[HANDLER] TicketSLABreached: %s | priority=%s | assignee=%s",
                   ticket_number, data.get('priority'), data.get('assigned_to_id'))

    overdue = 'response' if data.get('response_overdue') else 'resolution'
    notify_support_team.delay(
        reference=ticket_number,
        message=f"SLA breached ({overdue} overdue), priority {data.get('priority')}",
        priority='high',
    )
    if data.get('assigned_to_id'):
        notify_user.delay(user_id=data['assigned_to_id'],
                          message=f"Ticket {ticket_number} breached its SLA")
    record_metric.delay(metric_name='ticket_sla_breached', value=1,
                        tags={'priority': data.get('priority', ''), 'overdue': overdue})


# =============================================================================
# Payment handlers
# =============================================================================

@shared_task(**_HANDLER_OPTIONS)
def handle_payment_succeeded(self, event_data: Dict[str, Any]) -> None:
    data = _data(event_data)
    logger.info("[HANDLER] PaymentSucceeded: %s | receipt=%s | amount=%s",
                event_data.get('aggregate_id'), data.get('receipt_number'), data.get('amount'))

    notify_user.delay(
        user_id=data.get('customer_id'),
        message=f"Payment of {data.get('amount')} received. Receipt {data.get('receipt_number')}",
    )
    record_metric.delay(metric_name='payment_succeeded', value=float(data.get('amount') or 0))


@shared_task(**_HANDLER_OPTIONS)
def handle_payment_failed(self, event_data: Dict[str, Any]) -> None:
    data = _data(event_data)
    logger.info("[HANDLER] PaymentFailed: %s | reason=%s", event_data.get('aggregate_id'), data.get('reason'))

    notify_user.delay(
        user_id=data.get('customer_id'),
        message=f"Your payment did not go through: {data.get('reason')}. You can try again",
    )
    record_metric.delay(metric_name='payment_failed', value=1)


@shared_task(**_HANDLER_OPTIONS)
def handle_refund_failed(self, event_data: Dict[str, Any]) -> None:
    data = _data(event_data)
    payment_id = event_data.get('aggregate_id', '')
    logger.warning("[HANDLER] RefundFailed: %s | reason=%s", payment_id, data.get('reason'))

    notify_support_team.delay(
        reference=payment_id,
        message=f"Refund failed: {data.get('reason')}",
        priority='high',
    )


@shared_task(**_HANDLER_OPTIONS)
def handle_gateway_reconciliation_required(self, event_data: Dict[str, Any]) -> None:
    """The gateway and our records disagree; finance has to settle it."""
    data = _data(event_data)
    payment_id = event_data.get('aggregate_id', '')
    logger.warning("[HANDLER] GatewayReconciliationRequired: %s | %s | %s",
                   payment_id, data.get('gateway_event'), data.get('reason'))

    notify_support_team.delay(
        reference=payment_id,
        message=f"Reconcile {data.get('gateway_event')} ({data.get('gateway_reference')}): {data.get('reason')}",
        priority='high',
    )
    record_metric.delay(metric_name='gateway_reconciliation_required', value=1,
                        tags={'gateway_event': data.get('gateway_event', '')})


EVENT_HANDLERS = {
    'TicketCreatedEvent': handle_ticket_created,
    'TicketAssignedEvent': handle_ticket_assigned,
    'TicketAwaitingCustomerEvent': handle_ticket_awaiting_customer,
    'TicketResolvedEvent': handle_ticket_resolved,
    'TicketReopenedEvent': handle_ticket_reopened,
    'TicketSLABreachedEvent': handle_ticket_sla_breached,
    'PaymentSucceededEvent': handle_payment_succeeded,
    'PaymentFailedEvent': handle_payment_failed,
    'RefundFailedEvent': handle_refund_failed,
    'GatewayReconciliationRequiredEvent': handle_gateway_reconciliation_required,
}


# =============================================================================
# Dispatcher
# =============================================================================

@shared_task(bind=True, max_retries=5, default_retry_delay=30)
def dispatch_domain_event(self, event_type: str, event_data: Dict[str, Any]) -> Optional[str]:
    """
    Route one event envelope.

    Returns:
        Name of the task it was routed to
    """
    handler = EVENT_HANDLERS.get(event_type)
    if handler is None:
        logger.debug("[DISPATCHER] No handler for %s, metric only", event_type)
        record_metric.delay(metric_name=_metric_name(event_type), value=1)
        return record_metric.name

    logger.info("[DISPATCHER] Routing %s", event_type)
    handler.delay(event_data)
    return handler.name


# =============================================================================
# Notification and metric tasks
# =============================================================================

@shared_task(bind=True, max_retries=3, default_retry_delay=120)
def notify_user(self, user_id: Optional[str], message: str, channel: str = 'email') -> None:
    """Delivery is owned by the notification service; here we only log."""
    if not user_id:
        logger.warning("[NOTIFICATION] Dropped message without recipient: %s", message)
        return
    logger.info("[NOTIFICATION] %s to %s: %s", channel.upper(), user_id, message)


@shared_task(bind=True, max_retries=3, default_retry_delay=60)
def notify_support_team(self, reference: Optional[str], message: str, priority: str = 'normal') -> None:
    logger.info("[NOTIFICATION] Support team [%s] %s: %s", priority, reference, message)


@shared_task(bind=True, ignore_result=True)
def record_metric(self, metric_name: str, value: float, tags: Optional[Dict[str, str]] = None) -> None:
    logger.info("[METRIC] %s=%s | tags=%s", metric_name, value, tags or {})


# =============================================================================
# Scheduled tasks (beat)
# =============================================================================

@shared_task(bind=True)
def sweep_sla_breaches(self) -> int:
    """
    Flip the breach flag on active tickets past a deadline.

    Returns:
        Number of tickets that breached in this run
    """
    flipped = _container().sweep_sla_breaches_service().execute()
    logger.info("[SCHEDULED] SLA sweep flagged %d tickets", len(flipped))

    if flipped:
        record_metric.delay(metric_name='ticket_sla_sweep_breaches', value=len(flipped))
    return len(flipped)


@shared_task(bind=True)
def report_emi_defaulters(self, grace_days: Optional[int] = None) -> int:
    """
    Remind every customer with an overdue EMI instalment and send the
    list to the collections desk.

    Returns:
        Number of defaulters
    """
    defaulters = _container().emi_defaulters_service().execute(grace_days=grace_days)
    logger.info("[SCHEDULED] %d EMI defaulters", len(defaulters))

    for defaulter in defaulters:
        notify_user.delay(
            user_id=defaulter.customer_id,
            message=(
                f"Your EMI instalment of {defaulter.amount} is overdue by "
                f"{defaulter.days_overdue} days"
            ),
        )
    if defaulters:
        notify_support_team.delay(
            reference='emi-defaulters',
            message=f"{len(defaulters)} EMI instalments overdue",
        )
    record_metric.delay(metric_name='emi_defaulters', value=len(defaulters))
    return len(defaulters)


@shared_task(bind=True)
def generate_daily_report(self) -> Dict[str, Any]:
    """Ticket and payment statistics for the last 24 hours."""
    container = _container()
    now = utcnow()
    query = StatisticsQueryDTO(created_from=now - timedelta(days=1), created_to=now)

    report = {
        'generated_at': now.isoformat(),
        'tickets': container.ticket_statistics_service().execute(SYSTEM_ACTOR, query).to_dict(),
        'payments': container.payment_statistics_service().execute(SYSTEM_ACTOR, query).to_dict(),
    }
    logger.info("[SCHEDULED] Daily report: %d tickets, %d payments",
                report['tickets']['total'], report['payments']['total_payments'])
    return report
