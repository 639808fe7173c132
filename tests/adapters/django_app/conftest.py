"""
Fixtures for the Django adapter suite.

Django itself is configured by pytest-django from
``tests.django_settings``. API tests talk to a testing container with
in-memory repositories installed as the process wide container, so
they need no database.
"""

import json

import pytest
from django.test import Client

from src.config import container as container_module
from src.config.container import get_testing_container, reset_container


@pytest.fixture
def container():
    """Testing container installed as the global one for the test."""
    testing = get_testing_container()
    container_module._container = testing
    yield testing
    reset_container()


@pytest.fixture
def api_client():
    return ApiClient()


class ApiClient:
    """
    Thin wrapper over the Django test client that sends JSON bodies and
    the identity headers.

    Example:
        api_client.as_customer("cust-1").post("/api/tickets/", {...})
    """

    def __init__(self):
        self._client = Client()
        self._headers = {}

    def as_customer(self, user_id: str = "cust-1") -> "ApiClient":
        self._headers = {"HTTP_X_USER_ID": user_id, "HTTP_X_USER_ROLE": "customer"}
        return self

    def as_admin(self, user_id: str = "admin-1") -> "ApiClient":
        self._headers = {"HTTP_X_USER_ID": user_id, "HTTP_X_USER_ROLE": "admin"}
        return self

    def anonymous(self) -> "ApiClient":
        self._headers = {}
        return self

    def get(self, path, params=None):
        return self._client.get(path, params or {}, **self._headers)

    def post(self, path, data=None, **extra):
        body = data if isinstance(data, (bytes, str)) else json.dumps(data or {})
        return self._client.post(path, body, content_type="application/json", **self._headers, **extra)

    def delete(self, path):
        return self._client.delete(path, **self._headers)


@pytest.fixture
def sample_ticket_data():
    return {
        "subject": "Water leak in flat B-402",
        "description": "The bathroom ceiling has been leaking since Monday.",
        "type": "grievance",
        "priority": "high",
        "category": "maintenance",
    }


@pytest.fixture
def sample_payment_data():
    return {
        "project_id": "proj-9",
        "amount": "250000",
        "type": "booking",
        "method": "upi",
        "metadata": {"unit_number": "B-402"},
    }
