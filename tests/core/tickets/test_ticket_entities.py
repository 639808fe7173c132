"""
Unit tests for the ticket aggregate.

Covers every business rule the entity enforces: creation and
validation, the status machine, first response tracking, resolution,
reopen, rating and the sticky SLA breach flag.
"""

from datetime import datetime, timedelta, timezone

import pytest

from src.core.shared.exceptions import BusinessRuleViolationError, ValidationError
from src.core.tickets.entities import (
    TicketAttachment,
    TicketEntity,
    TicketStatus,
    TicketType,
    format_ticket_number,
)
from src.core.tickets.sla import SLAPolicy, TicketPriority


def make_ticket(now, priority=TicketPriority.MEDIUM, **overrides):
    values = dict(
        customer_id="cust-1",
        subject="Water leak in flat 402",
        description="Ceiling near the balcony has been leaking since Monday",
        ticket_number="TKT20240300001",
        priority=priority,
        now=now,
    )
    values.update(overrides)
    return TicketEntity.create(**values)


def resolved_ticket(now):
    ticket = make_ticket(now)
    ticket.assign_to_agent("agent-7", now=now)
    ticket.resolve("Plumber replaced the pipe", resolver_id="agent-7", now=now + timedelta(hours=2))
    return ticket


class TestFormatTicketNumber:

    def test_prefix_month_and_padded_sequence(self):
        assert format_ticket_number(42, datetime(2024, 3, 1)) == "TKT20240300042"

    def test_custom_prefix(self):
        assert format_ticket_number(7, datetime(2025, 11, 30), prefix="SUP") == "SUP20251100007"


class TestTicketCreation:

    def test_create_valid_ticket(self, now):
        ticket = make_ticket(now, priority=TicketPriority.URGENT, category="  plumbing ")

        assert len(ticket.id) == 36
        assert ticket.status == TicketStatus.OPEN
        assert ticket.ticket_type == TicketType.TECHNICAL
        assert ticket.category == "plumbing"
        assert ticket.created_at == now
        assert ticket.reopened_count == 0
        assert ticket.first_response_at is None

    def test_sla_deadlines_come_from_priority(self, now):
        ticket = make_ticket(now, priority=TicketPriority.HIGH)

        assert ticket.sla.response_deadline == now + timedelta(hours=4)
        assert ticket.sla.resolution_deadline == now + timedelta(hours=48)
        assert ticket.sla.breached is False

    def test_custom_policy_is_applied(self, now):
        policy = SLAPolicy.from_mapping({"medium": [1, 10]})
        ticket = make_ticket(now, policy=policy)

        assert ticket.sla.response_deadline == now + timedelta(hours=1)

    def test_subject_and_description_are_stripped(self, now):
        ticket = make_ticket(now, subject="  Lift stuck  ", description="  Tower B  ")

        assert ticket.subject == "Lift stuck"
        assert ticket.description == "Tower B"

    @pytest.mark.parametrize("field_name,value", [
        ("subject", ""),
        ("subject", "   "),
        ("subject", "x" * 201),
        ("description", ""),
        ("description", "x" * 2001),
        ("customer_id", ""),
        ("ticket_number", ""),
    ])
    def test_invalid_fields(self, now, field_name, value):
        with pytest.raises(ValidationError) as exc:
            make_ticket(now, **{field_name: value})
        assert exc.value.field == field_name

    def test_attachments_are_kept(self, now):
        attachment = TicketAttachment.from_dict({"name": "leak.jpg", "url": "https://cdn/leak.jpg"})
        ticket = make_ticket(now, attachments=[attachment])

        assert ticket.attachments == [attachment]

    def test_attachment_requires_name_and_url(self):
        with pytest.raises(ValidationError) as exc:
            TicketAttachment.from_dict({"name": "leak.jpg"})
        assert exc.value.field == "attachments"


class TestComments:

    def test_public_comment_records_first_response(self, now):
        ticket = make_ticket(now)

        ticket.add_comment("We are on it", author_id="agent-7", author_is_admin=True,
                           now=now + timedelta(hours=3))

        assert ticket.first_response_at == now + timedelta(hours=3)
        assert ticket.sla.response_time_hours == 3.0

    def test_only_first_response_is_recorded(self, now):
        ticket = make_ticket(now)
        ticket.add_comment("First", author_id="agent-7", now=now + timedelta(hours=1))
        ticket.add_comment("Second", author_id="agent-7", now=now + timedelta(hours=5))

        assert ticket.first_response_at == now + timedelta(hours=1)
        assert ticket.sla.response_time_hours == 1.0

    def test_internal_note_by_admin_counts_as_response(self, now):
        ticket = make_ticket(now)
        ticket.add_comment("Checking with vendor", author_id="agent-7", is_internal=True,
                           author_is_admin=True, now=now + timedelta(hours=1))

        assert ticket.first_response_at is not None

    def test_internal_note_by_non_admin_does_not_count(self, now):
        ticket = make_ticket(now)
        ticket.add_comment("draft", author_id="cust-1", is_internal=True, now=now)

        assert ticket.first_response_at is None

    def test_empty_text_is_rejected(self, now):
        with pytest.raises(ValidationError) as exc:
            make_ticket(now).add_comment("  ", author_id="cust-1")
        assert exc.value.field == "text"

    def test_visible_comments_hides_internal_notes(self, now):
        ticket = make_ticket(now)
        ticket.add_comment("public", author_id="agent-7", now=now)
        ticket.add_comment("internal", author_id="agent-7", is_internal=True, author_is_admin=True, now=now)

        assert [c.text for c in ticket.visible_comments(include_internal=False)] == ["public"]
        assert len(ticket.visible_comments(include_internal=True)) == 2


class TestStatusMachine:

    def test_assign_moves_to_in_review(self, now):
        ticket = make_ticket(now)
        ticket.assign_to_agent("agent-7", now=now)

        assert ticket.assigned_to_id == "agent-7"
        assert ticket.status == TicketStatus.IN_REVIEW

    def test_assign_requires_agent(self, now):
        with pytest.raises(ValidationError):
            make_ticket(now).assign_to_agent("")

    def test_cannot_assign_resolved_ticket(self, now):
        ticket = resolved_ticket(now)

        with pytest.raises(BusinessRuleViolationError) as exc:
            ticket.assign_to_agent("agent-9")
        assert exc.value.rule == "ticket_finished"

    def test_request_customer_info_from_in_review(self, now):
        ticket = make_ticket(now)
        ticket.assign_to_agent("agent-7", now=now)
        ticket.request_customer_info(now=now)

        assert ticket.status == TicketStatus.PENDING_CUSTOMER

    def test_request_customer_info_requires_in_review(self, now):
        with pytest.raises(BusinessRuleViolationError) as exc:
            make_ticket(now).request_customer_info()
        assert exc.value.rule == "invalid_status_transition"

    def test_close_from_pending_customer(self, now):
        ticket = make_ticket(now)
        ticket.assign_to_agent("agent-7", now=now)
        ticket.request_customer_info(now=now)
        ticket.close(now=now + timedelta(hours=1))

        assert ticket.status == TicketStatus.CLOSED
        assert ticket.closed_at == now + timedelta(hours=1)

    def test_close_open_ticket_is_rejected(self, now):
        with pytest.raises(BusinessRuleViolationError) as exc:
            make_ticket(now).close()
        assert exc.value.rule == "invalid_status_transition"


class TestResolve:

    def test_resolve_records_resolution(self, now):
        ticket = resolved_ticket(now)

        assert ticket.status == TicketStatus.RESOLVED
        assert ticket.resolution.text == "Plumber replaced the pipe"
        assert ticket.resolution.resolved_by_id == "agent-7"
        assert ticket.sla.resolution_time_hours == 2.0

    def test_resolve_directly_from_open(self, now):
        ticket = make_ticket(now)
        ticket.resolve("Duplicate of TKT20240300000", resolver_id="admin-1", now=now)

        assert ticket.status == TicketStatus.RESOLVED

    def test_resolve_twice(self, now):
        ticket = resolved_ticket(now)

        with pytest.raises(BusinessRuleViolationError) as exc:
            ticket.resolve("again", resolver_id="agent-7")
        assert exc.value.rule == "ticket_already_resolved"

    def test_resolve_closed_ticket(self, now):
        ticket = resolved_ticket(now)
        ticket.close(now=now + timedelta(hours=3))

        with pytest.raises(BusinessRuleViolationError) as exc:
            ticket.resolve("again", resolver_id="agent-7")
        assert exc.value.rule == "ticket_finished"

    def test_resolution_text_required(self, now):
        with pytest.raises(ValidationError) as exc:
            make_ticket(now).resolve("", resolver_id="agent-7")
        assert exc.value.field == "text"


class TestReopen:

    def test_reopen_clears_resolution(self, now):
        ticket = resolved_ticket(now)
        ticket.reopen("Still leaking", now=now + timedelta(hours=5))

        assert ticket.status == TicketStatus.OPEN
        assert ticket.resolution is None
        assert ticket.closed_at is None
        assert ticket.sla.resolution_time_hours is None
        assert ticket.reopened_count == 1
        assert ticket.last_reopened_at == now + timedelta(hours=5)

    def test_reason_is_left_as_customer_comment(self, now):
        ticket = resolved_ticket(now)
        ticket.reopen("Still leaking", now=now + timedelta(hours=5))

        comment = ticket.comments[-1]
        assert comment.text == "Ticket reopened: Still leaking"
        assert comment.author_id == "cust-1"
        assert comment.is_internal is False

    def test_reopen_without_reason_adds_no_comment(self, now):
        ticket = resolved_ticket(now)
        ticket.reopen(now=now + timedelta(hours=5))

        assert ticket.comments == []

    def test_reopen_counts_every_cycle(self, now):
        ticket = resolved_ticket(now)
        ticket.reopen(now=now + timedelta(hours=5))
        ticket.resolve("Fixed again", resolver_id="agent-7", now=now + timedelta(hours=6))
        ticket.close(now=now + timedelta(hours=7))
        ticket.reopen(now=now + timedelta(hours=8))

        assert ticket.reopened_count == 2

    def test_open_ticket_cannot_be_reopened(self, now):
        with pytest.raises(BusinessRuleViolationError) as exc:
            make_ticket(now).reopen("why not")
        assert exc.value.rule == "reopen_requires_resolution"


class TestRating:

    def test_rate_resolved_ticket(self, now):
        ticket = resolved_ticket(now)
        ticket.add_rating(5, feedback=" quick fix ", now=now)

        assert ticket.rating.score == 5
        assert ticket.rating.feedback == "quick fix"

    def test_rating_requires_resolution(self, now):
        with pytest.raises(BusinessRuleViolationError) as exc:
            make_ticket(now).add_rating(4)
        assert exc.value.rule == "rating_requires_resolution"

    @pytest.mark.parametrize("score", [0, 6, -1, True, "5", 4.5])
    def test_score_out_of_range(self, now, score):
        with pytest.raises(ValidationError) as exc:
            resolved_ticket(now).add_rating(score)
        assert exc.value.field == "score"


class TestSLABreach:

    def test_missed_response_deadline_flips_flag(self, now):
        ticket = make_ticket(now, priority=TicketPriority.URGENT)

        assert ticket.refresh_sla(now + timedelta(hours=3)) is True
        assert ticket.sla.breached is True

    def test_refresh_reports_only_the_flip(self, now):
        ticket = make_ticket(now, priority=TicketPriority.URGENT)
        ticket.refresh_sla(now + timedelta(hours=3))

        assert ticket.refresh_sla(now + timedelta(hours=4)) is False

    def test_flag_survives_a_later_response_and_resolution(self, now):
        ticket = make_ticket(now, priority=TicketPriority.URGENT)
        ticket.add_comment("Sorry for the delay", author_id="agent-7", author_is_admin=True,
                           now=now + timedelta(hours=3))
        ticket.resolve("Fixed", resolver_id="agent-7", now=now + timedelta(hours=4))

        assert ticket.sla.breached is True

    def test_late_resolution_is_a_breach(self, now):
        ticket = make_ticket(now, priority=TicketPriority.URGENT)
        ticket.add_comment("On it", author_id="agent-7", author_is_admin=True, now=now + timedelta(hours=1))
        ticket.resolve("Fixed", resolver_id="agent-7", now=now + timedelta(hours=30))

        assert ticket.sla.breached is True

    def test_timely_resolution_is_not_a_breach(self, now):
        ticket = make_ticket(now, priority=TicketPriority.URGENT)
        ticket.add_comment("On it", author_id="agent-7", author_is_admin=True, now=now + timedelta(hours=1))
        ticket.resolve("Fixed", resolver_id="agent-7", now=now + timedelta(hours=10))

        assert ticket.refresh_sla(now + timedelta(days=30)) is False
        assert ticket.sla.breached is False

    def test_overdue_helpers(self, now):
        ticket = make_ticket(now, priority=TicketPriority.URGENT)

        assert ticket.is_response_overdue(now + timedelta(hours=3))
        assert not ticket.is_resolution_overdue(now + timedelta(hours=3))
        assert ticket.is_resolution_overdue(now + timedelta(hours=25))

    def test_finished_ticket_is_never_resolution_overdue(self, now):
        ticket = resolved_ticket(now)

        assert not ticket.is_resolution_overdue(now + timedelta(days=30))


class TestTicketIdentity:

    def test_equality_by_id(self, now):
        ticket = make_ticket(now)
        same = TicketEntity(id=ticket.id)

        assert ticket == same
        assert hash(ticket) == hash(same)

    def test_repr(self):
        ticket = make_ticket(datetime(2024, 3, 1, tzinfo=timezone.utc))

        assert "TKT20240300001" in repr(ticket)
        assert "open" in repr(ticket)
