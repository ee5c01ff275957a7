from datetime import UTC, datetime, timedelta

import pytest

from rsvp_automation.automation.dtos import ActionType, TriggerType
from rsvp_automation.automation.triggers import (
    Abandon,
    Defer,
    Fire,
    TriggerFacts,
    evaluate_trigger,
)
from rsvp_automation.guests.dtos import RsvpStatus

NOW = datetime(2026, 6, 1, 12, 0, tzinfo=UTC)


def test_no_response_fires_once_delay_has_passed():
    facts = TriggerFacts(rsvp_status=RsvpStatus.PENDING, last_sent_at=NOW - timedelta(hours=25))

    assert isinstance(evaluate_trigger(TriggerType.NO_RESPONSE, facts, NOW), Fire)


def test_no_response_defers_until_last_send_plus_delay():
    sent = NOW - timedelta(hours=2)
    facts = TriggerFacts(rsvp_status=RsvpStatus.PENDING, last_sent_at=sent, delay_hours=6)

    decision = evaluate_trigger(TriggerType.NO_RESPONSE_WHATSAPP, facts, NOW)

    assert decision == Defer(sent + timedelta(hours=6))


@pytest.mark.parametrize(
    "trigger,hours",
    [
        (TriggerType.NO_RESPONSE_24H, 24),
        (TriggerType.NO_RESPONSE_48H, 48),
        (TriggerType.NO_RESPONSE_72H, 72),
    ],
)
def test_fixed_no_response_triggers_ignore_flow_delay(trigger, hours):
    sent = NOW - timedelta(hours=1)
    facts = TriggerFacts(rsvp_status=RsvpStatus.PENDING, last_sent_at=sent, delay_hours=1)

    assert evaluate_trigger(trigger, facts, NOW) == Defer(sent + timedelta(hours=hours))


@pytest.mark.parametrize(
    "status", [RsvpStatus.ACCEPTED, RsvpStatus.DECLINED, RsvpStatus.MAYBE]
)
def test_no_response_is_abandoned_once_guest_answered_even_if_due(status):
    facts = TriggerFacts(rsvp_status=status, last_sent_at=NOW - timedelta(days=5))

    decision = evaluate_trigger(TriggerType.NO_RESPONSE_48H, facts, NOW)

    assert decision == Abandon("guest already responded")


def test_no_response_without_any_send_is_abandoned():
    facts = TriggerFacts(rsvp_status=RsvpStatus.PENDING)

    assert evaluate_trigger(TriggerType.NO_RESPONSE, facts, NOW) == Abandon("no notification sent yet")


def test_rsvp_state_trigger_fires_after_delay_since_change():
    facts = TriggerFacts(
        rsvp_status=RsvpStatus.MAYBE,
        responded_at=NOW - timedelta(hours=24),
        delay_hours=24,
    )

    assert isinstance(evaluate_trigger(TriggerType.RSVP_MAYBE, facts, NOW), Fire)


def test_rsvp_state_trigger_defers_until_delay_elapsed():
    responded = NOW - timedelta(hours=1)
    facts = TriggerFacts(rsvp_status=RsvpStatus.ACCEPTED, responded_at=responded, delay_hours=3)

    assert evaluate_trigger(TriggerType.RSVP_CONFIRMED, facts, NOW) == Defer(responded + timedelta(hours=3))


def test_rsvp_state_trigger_abandoned_when_state_changed_again():
    facts = TriggerFacts(rsvp_status=RsvpStatus.ACCEPTED, responded_at=NOW - timedelta(days=2))

    decision = evaluate_trigger(TriggerType.RSVP_MAYBE, facts, NOW)

    assert isinstance(decision, Abandon)


def test_calendar_trigger_fires_at_scheduled_time():
    facts = TriggerFacts(rsvp_status=RsvpStatus.ACCEPTED, scheduled_for=NOW)

    assert isinstance(evaluate_trigger(TriggerType.EVENT_MORNING, facts, NOW), Fire)


def test_calendar_trigger_defers_to_scheduled_time():
    later = NOW + timedelta(hours=3)
    facts = TriggerFacts(rsvp_status=RsvpStatus.ACCEPTED, scheduled_for=later)

    assert evaluate_trigger(TriggerType.HOURS_BEFORE_EVENT_2, facts, NOW) == Defer(later)


def test_calendar_trigger_requires_confirmed_guest():
    facts = TriggerFacts(rsvp_status=RsvpStatus.MAYBE, scheduled_for=NOW - timedelta(minutes=5))

    assert evaluate_trigger(TriggerType.EVENT_MORNING, facts, NOW) == Abandon("guest not confirmed")


def test_table_assignment_action_without_table_is_abandoned():
    facts = TriggerFacts(
        rsvp_status=RsvpStatus.ACCEPTED,
        scheduled_for=NOW,
        action=ActionType.SEND_TABLE_ASSIGNMENT,
        has_table_assignment=False,
    )

    assert evaluate_trigger(TriggerType.EVENT_MORNING, facts, NOW) == Abandon("no table assignment")
