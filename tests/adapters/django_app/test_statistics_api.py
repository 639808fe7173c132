"""
Tests for the admin statistics API.
"""

from datetime import timedelta

import pytest

from src.core.payments.entities import (
    PaymentEntity,
    PaymentMetadata,
    PaymentMethod,
    PaymentStatus,
    PaymentType,
)
from src.core.shared.clock import utcnow


def save_payment(container, amount, payment_type=PaymentType.BOOKING, status=PaymentStatus.SUCCESS,
                 project_id="proj-9", due=None):
    payment = PaymentEntity.initiate(
        customer_id="cust-1",
        project_id=project_id,
        amount=amount,
        payment_type=payment_type,
        method=PaymentMethod.BANK_TRANSFER,
        metadata=PaymentMetadata(installment_number=5, next_due_date=due),
    )
    payment.status = status
    container.payment_repository().save(payment)
    return payment


class TestTicketStatisticsView:

    def test_breakdown(self, container, api_client, sample_ticket_data):
        for customer in ("cust-1", "cust-2"):
            api_client.as_customer(customer).post("/api/tickets/", sample_ticket_data)

        response = api_client.as_admin().get("/api/statistics/tickets/")

        data = response.json()["data"]
        assert response.status_code == 200
        assert data["total"] == 2
        assert data["by_status"]["open"]["count"] == 2
        assert data["by_status"]["closed"]["count"] == 0
        assert data["by_priority"]["high"] == 2
        assert data["by_type"]["grievance"] == 2
        assert data["resolution_rate"] == 0.0

    def test_customer_filter(self, container, api_client, sample_ticket_data):
        for customer in ("cust-1", "cust-2"):
            api_client.as_customer(customer).post("/api/tickets/", sample_ticket_data)

        data = api_client.as_admin().get("/api/statistics/tickets/", {"customer_id": "cust-2"}).json()["data"]

        assert data["total"] == 1

    def test_customers_are_forbidden(self, container, api_client):
        response = api_client.as_customer().get("/api/statistics/tickets/")

        assert response.status_code == 403

    def test_invalid_range(self, container, api_client):
        response = api_client.as_admin().get("/api/statistics/tickets/", {
            "from": "2024-05-01T00:00:00Z",
            "to": "2024-04-01T00:00:00Z",
        })

        assert response.status_code == 400
        assert response.json()["meta"]["field"] == "created_from"

    def test_unparseable_date(self, container, api_client):
        response = api_client.as_admin().get("/api/statistics/tickets/", {"from": "last week"})

        assert response.status_code == 400
        assert response.json()["meta"]["field"] == "from"


class TestPaymentStatisticsView:

    def test_totals(self, container, api_client):
        save_payment(container, "100000")
        save_payment(container, "20000", payment_type=PaymentType.EMI)
        save_payment(container, "5000", status=PaymentStatus.FAILED)
        save_payment(container, "7000", project_id="proj-1")

        data = api_client.as_admin().get("/api/statistics/payments/", {"project_id": "proj-9"}).json()["data"]

        assert data["total_payments"] == 2
        assert data["total_amount"] == "120000.00"
        assert data["avg_amount"] == "60000.00"
        assert data["by_type"]["emi"] == "20000.00"


class TestEMIDefaultersView:

    def test_lists_defaulters(self, container, api_client):
        overdue = save_payment(container, "21500", PaymentType.EMI, PaymentStatus.PENDING,
                               due=utcnow() - timedelta(days=15))
        save_payment(container, "21500", PaymentType.EMI, PaymentStatus.PENDING,
                     due=utcnow() - timedelta(days=2))

        body = api_client.as_admin().get("/api/statistics/emi-defaulters/").json()

        assert body["meta"]["count"] == 1
        assert body["data"][0]["payment_id"] == overdue.id
        assert body["data"][0]["days_overdue"] == 15
        assert body["data"][0]["installment_number"] == 5

    def test_grace_override(self, container, api_client):
        save_payment(container, "21500", PaymentType.EMI, PaymentStatus.PENDING,
                     due=utcnow() - timedelta(days=2))

        body = api_client.as_admin().get("/api/statistics/emi-defaulters/", {"grace_days": "1"}).json()

        assert body["meta"]["count"] == 1

    @pytest.mark.parametrize("grace_days", ["-1", "soon"])
    def test_invalid_grace(self, container, api_client, grace_days):
        response = api_client.as_admin().get("/api/statistics/emi-defaulters/", {"grace_days": grace_days})

        assert response.status_code == 400
        assert response.json()["meta"]["field"] == "grace_days"
