"""
Tests for the event publishers and the Celery handlers.

Celery runs eagerly in the test settings, so ``delay`` executes the
task inline.
"""

import logging
from datetime import timedelta
from unittest.mock import patch

import pytest

from src.adapters.django_app.events import handlers
from src.adapters.django_app.events.publishers import (
    CeleryEventPublisher,
    CompositeEventPublisher,
    InMemoryEventPublisher,
    LoggingEventPublisher,
    get_event_publisher,
)
from src.core.payments.entities import (
    PaymentEntity,
    PaymentMetadata,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
)
from src.core.payments.events import GatewayReconciliationRequiredEvent, PaymentInitiatedEvent
from src.core.shared.clock import utcnow
from src.core.tickets.entities import TicketEntity
from src.core.tickets.events import TicketCreatedEvent, TicketSLABreachedEvent
from src.core.tickets.sla import TicketPriority


def ticket_created(priority="urgent"):
    return TicketCreatedEvent(
        aggregate_id="t-1",
        ticket_number="TKT20240300001",
        customer_id="cust-1",
        ticket_type="technical",
        priority=priority,
        subject="Lift stuck",
    )


class TestGetEventPublisher:

    @pytest.mark.parametrize("mode,expected", [
        ("logging", LoggingEventPublisher),
        ("celery", CeleryEventPublisher),
        ("both", CompositeEventPublisher),
        ("memory", InMemoryEventPublisher),
        ("MEMORY", InMemoryEventPublisher),
        (None, LoggingEventPublisher),
    ])
    def test_modes(self, mode, expected):
        assert isinstance(get_event_publisher(mode), expected)

    def test_unknown_mode(self):
        with pytest.raises(ValueError):
            get_event_publisher("kafka")


class TestPublishers:

    def test_in_memory(self):
        publisher = InMemoryEventPublisher()
        publisher.publish_batch([ticket_created(), PaymentInitiatedEvent(aggregate_id="p-1")])

        assert len(publisher.published_events) == 2
        assert len(publisher.get_events_by_type("TicketCreatedEvent")) == 1

        publisher.clear()
        assert publisher.published_events == []

    def test_local_handlers(self):
        seen = []
        publisher = InMemoryEventPublisher()
        publisher.register_handler("TicketCreatedEvent", seen.append)
        publisher.register_handler("TicketCreatedEvent", lambda e: 1 / 0)

        publisher.publish(ticket_created())

        assert len(seen) == 1

    def test_logging(self, caplog):
        with caplog.at_level(logging.INFO):
            LoggingEventPublisher().publish(ticket_created())

        assert "TicketCreatedEvent" in caplog.text
        assert "TKT20240300001" in caplog.text

    def test_celery_enqueues_envelope(self):
        event = ticket_created()

        with patch.object(handlers.dispatch_domain_event, "delay") as delay:
            CeleryEventPublisher(also_log=False).publish(event)

        delay.assert_called_once_with("TicketCreatedEvent", event.to_dict())

    def test_celery_swallows_broker_errors(self):
        with patch.object(handlers.dispatch_domain_event, "delay", side_effect=ConnectionError("down")):
            CeleryEventPublisher().publish(ticket_created())

    def test_composite_isolates_failures(self):
        class Broken(InMemoryEventPublisher):
            def publish_batch(self, events):
                raise RuntimeError("broken")

        healthy = InMemoryEventPublisher()
        CompositeEventPublisher([Broken(), healthy]).publish_batch([ticket_created()])

        assert len(healthy.published_events) == 1


class TestDispatcher:

    def test_routes_to_handler(self):
        result = handlers.dispatch_domain_event.apply(
            args=("TicketCreatedEvent", ticket_created().to_dict())
        ).get()

        assert result == handlers.handle_ticket_created.name

    def test_unknown_event_records_a_metric(self):
        result = handlers.dispatch_domain_event.apply(
            args=("TicketRatedEvent", {"aggregate_id": "t-1", "data": {}})
        ).get()

        assert result == handlers.record_metric.name

    def test_every_routed_handler_runs(self, caplog):
        event = TicketSLABreachedEvent(
            aggregate_id="t-1", ticket_number="TKT20240300001", priority="urgent",
            assigned_to_id="agent-7", response_overdue=True,
        )

        with caplog.at_level(logging.INFO):
            handlers.dispatch_domain_event.apply(args=(event.event_type, event.to_dict())).get()

        assert "SLA breached (response overdue)" in caplog.text

    def test_reconciliation_pages_support(self, caplog):
        event = GatewayReconciliationRequiredEvent(
            aggregate_id="p-1", gateway_event="payment.captured", gateway_reference="pay_9",
            payment_status="failed", reason="captured after the payment was failed",
        )

        with caplog.at_level(logging.INFO):
            result = handlers.dispatch_domain_event.apply(args=(event.event_type, event.to_dict())).get()

        assert result == handlers.handle_gateway_reconciliation_required.name
        assert "Reconcile payment.captured (pay_9)" in caplog.text

    @pytest.mark.parametrize("event_type,metric", [
        ("TicketSLABreachedEvent", "ticket_sla_breached"),
        ("PaymentInitiatedEvent", "payment_initiated"),
        ("RefundCompletedEvent", "refund_completed"),
        ("Custom", "custom"),
    ])
    def test_metric_name(self, event_type, metric):
        assert handlers._metric_name(event_type) == metric

    def test_every_handler_is_a_task(self):
        for handler in handlers.EVENT_HANDLERS.values():
            assert handler.name.startswith("src.adapters.django_app.events.handlers.")


class TestScheduledTasks:

    def test_sla_sweep(self, container):
        ticket = TicketEntity.create(
            customer_id="cust-1",
            subject="No water",
            description="No water supply since morning",
            ticket_number="TKT20240300001",
            priority=TicketPriority.URGENT,
            now=utcnow() - timedelta(hours=5),
        )
        container.ticket_repository().save(ticket)

        assert handlers.sweep_sla_breaches.apply().get() == 1
        assert handlers.sweep_sla_breaches.apply().get() == 0
        assert container.event_publisher().get_events_by_type("TicketSLABreachedEvent")

    def test_emi_defaulter_report(self, container):
        payment = PaymentEntity.initiate(
            customer_id="cust-1",
            project_id="proj-9",
            amount="21500",
            payment_type=PaymentType.EMI,
            method=PaymentMethod.BANK_TRANSFER,
            metadata=PaymentMetadata(installment_number=4, next_due_date=utcnow() - timedelta(days=20)),
        )
        container.payment_repository().save(payment)

        assert handlers.report_emi_defaulters.apply().get() == 1
        assert handlers.report_emi_defaulters.apply(kwargs={"grace_days": 30}).get() == 0

    def test_daily_report(self, container):
        payment = PaymentEntity.initiate(
            customer_id="cust-1",
            project_id="proj-9",
            amount="1000",
            payment_type=PaymentType.BOOKING,
            method=PaymentMethod.CASH,
        )
        payment.status = PaymentStatus.SUCCESS
        container.payment_repository().save(payment)

        report = handlers.generate_daily_report.apply().get()

        assert report["tickets"]["total"] == 0
        assert report["payments"]["total_payments"] == 1
        assert report["payments"]["total_amount"] == "1000.00"
