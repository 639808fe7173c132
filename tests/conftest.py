"""
Global pytest configuration.

Loaded automatically by pytest. Registers the markers and the
``--run-integration`` switch, and provides the fixtures shared by the
core and adapter suites.
"""

from datetime import datetime, timezone
from pathlib import Path

import pytest

from src.core.payments.ports import InMemoryPaymentRepository
from src.core.shared.interfaces import InMemorySequenceGenerator
from src.core.tickets.ports import InMemoryTicketRepository


@pytest.fixture(scope="session")
def project_root():
    return Path(__file__).parent.parent


@pytest.fixture
def now():
    """A fixed, timezone aware reference instant."""
    return datetime(2024, 3, 15, 10, 0, tzinfo=timezone.utc)


@pytest.fixture
def ticket_repo():
    return InMemoryTicketRepository()


@pytest.fixture
def payment_repo():
    return InMemoryPaymentRepository()


@pytest.fixture
def sequence():
    return InMemorySequenceGenerator()


def pytest_configure(config):
    config.addinivalue_line(
        "markers", "slow: marks tests as slow (deselect with '-m \"not slow\"')"
    )
    config.addinivalue_line(
        "markers", "integration: needs a real PostgreSQL/Redis, run with --run-integration"
    )


def pytest_collection_modifyitems(config, items):
    if config.getoption("--run-integration", default=False):
        return
    skip_integration = pytest.mark.skip(reason="Integration tests need --run-integration")
    for item in items:
        if "integration" in item.keywords:
            item.add_marker(skip_integration)


def pytest_addoption(parser):
    parser.addoption(
        "--run-integration",
        action="store_true",
        default=False,
        help="run integration tests",
    )
