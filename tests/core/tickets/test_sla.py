"""
Unit tests for the SLA policy.

Coverage:
- Default deadlines per priority
- Policy overrides from settings (dict and pair forms)
- Breach evaluation, including stickiness
- Priority ordering
"""

from datetime import timedelta

import pytest

from src.core.shared.exceptions import ValidationError
from src.core.tickets.sla import (
    DEFAULT_SLA_HOURS,
    SLAHours,
    SLAPolicy,
    TicketPriority,
    is_breached,
)


class TestSLAPolicyDeadlines:

    @pytest.mark.parametrize("priority,response,resolution", [
        (TicketPriority.URGENT, 2, 24),
        (TicketPriority.HIGH, 4, 48),
        (TicketPriority.MEDIUM, 24, 72),
        (TicketPriority.LOW, 48, 120),
    ])
    def test_default_table(self, now, priority, response, resolution):
        record = SLAPolicy().deadlines_for(priority, now)

        assert record.response_deadline == now + timedelta(hours=response)
        assert record.resolution_deadline == now + timedelta(hours=resolution)
        assert record.breached is False
        assert record.response_time_hours is None

    def test_to_dict_lists_every_priority(self):
        table = SLAPolicy().to_dict()

        assert table["urgent"] == {"response": 2, "resolution": 24}
        assert set(table) == {"low", "medium", "high", "urgent"}


class TestSLAPolicyFromMapping:

    def test_empty_mapping_keeps_defaults(self):
        assert SLAPolicy.from_mapping(None).hours == DEFAULT_SLA_HOURS
        assert SLAPolicy.from_mapping({}).hours == DEFAULT_SLA_HOURS

    def test_dict_entry_overrides_one_priority(self):
        policy = SLAPolicy.from_mapping({"urgent": {"response": 1, "resolution": 8}})

        assert policy.hours_for(TicketPriority.URGENT) == SLAHours(response=1, resolution=8)
        assert policy.hours_for(TicketPriority.LOW) == DEFAULT_SLA_HOURS[TicketPriority.LOW]

    def test_pair_entry_is_accepted(self):
        policy = SLAPolicy.from_mapping({"HIGH": [6, 36]})

        assert policy.hours_for(TicketPriority.HIGH) == SLAHours(response=6, resolution=36)

    def test_unknown_priority_is_rejected(self):
        with pytest.raises(ValidationError) as exc:
            SLAPolicy.from_mapping({"critical": [1, 2]})
        assert exc.value.field == "priority"

    @pytest.mark.parametrize("entry", [{"response": 1}, [1], "fast", [0, 10], [-1, 5]])
    def test_malformed_or_non_positive_entry(self, entry):
        with pytest.raises(ValidationError) as exc:
            SLAPolicy.from_mapping({"low": entry})
        assert exc.value.field == "sla_hours"


class TestIsBreached:

    @pytest.fixture
    def record(self, now):
        return SLAPolicy().deadlines_for(TicketPriority.URGENT, now)

    def test_within_deadlines(self, record, now):
        assert not is_breached(record, now + timedelta(hours=1), has_response=False, is_finished=False)

    def test_response_deadline_missed(self, record, now):
        assert is_breached(record, now + timedelta(hours=3), has_response=False, is_finished=False)

    def test_response_given_in_time(self, record, now):
        assert not is_breached(record, now + timedelta(hours=3), has_response=True, is_finished=False)

    def test_resolution_deadline_missed(self, record, now):
        assert is_breached(record, now + timedelta(hours=25), has_response=True, is_finished=False)

    def test_finished_ticket_past_resolution_deadline(self, record, now):
        assert not is_breached(record, now + timedelta(hours=25), has_response=True, is_finished=True)

    def test_flag_is_sticky(self, record, now):
        record.breached = True

        assert is_breached(record, now, has_response=True, is_finished=True)


class TestTicketPriority:

    def test_ordering(self):
        assert TicketPriority.LOW < TicketPriority.MEDIUM < TicketPriority.HIGH < TicketPriority.URGENT
        assert max(TicketPriority) == TicketPriority.URGENT

    def test_from_string_accepts_name_and_value(self):
        assert TicketPriority.from_string("URGENT") == TicketPriority.URGENT
        assert TicketPriority.from_string(" low ") == TicketPriority.LOW
        assert TicketPriority.from_string(TicketPriority.HIGH) == TicketPriority.HIGH

    def test_from_string_rejects_unknown(self):
        with pytest.raises(ValidationError):
            TicketPriority.from_string("asap")
