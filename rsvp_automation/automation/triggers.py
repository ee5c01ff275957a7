"""Decide whether a pending automation should fire, wait, or be dropped.

Everything here is pure: callers load the facts, pass ``now`` and act on the
returned decision.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

from rsvp_automation.automation.dtos import (
    CALENDAR_TRIGGERS,
    DEFAULT_NO_RESPONSE_DELAY_HOURS,
    NO_RESPONSE_TRIGGERS,
    RSVP_STATE_TRIGGERS,
    ActionType,
    TriggerType,
)
from rsvp_automation.guests.dtos import RsvpStatus


@dataclass(frozen=True)
class Fire:
    reason: str = "due"


@dataclass(frozen=True)
class Defer:
    until: datetime
    reason: str = "not due yet"


@dataclass(frozen=True)
class Abandon:
    reason: str


TriggerDecision = Fire | Defer | Abandon


@dataclass(frozen=True)
class TriggerFacts:
    rsvp_status: RsvpStatus
    responded_at: datetime | None = None
    # Last invitation-type send, already filtered by channel for channel-scoped triggers
    last_sent_at: datetime | None = None
    event_starts_at: datetime | None = None
    has_table_assignment: bool = False
    delay_hours: int | None = None
    scheduled_for: datetime | None = None
    action: ActionType | None = None


def is_no_response_trigger(trigger: TriggerType) -> bool:
    return trigger in NO_RESPONSE_TRIGGERS


def is_rsvp_state_trigger(trigger: TriggerType) -> bool:
    return trigger in RSVP_STATE_TRIGGERS


def is_calendar_trigger(trigger: TriggerType) -> bool:
    return trigger in CALENDAR_TRIGGERS


def no_response_delay(trigger: TriggerType, delay_hours: int | None) -> timedelta:
    rule = NO_RESPONSE_TRIGGERS[trigger]
    if rule.fixed_hours is not None:
        return timedelta(hours=rule.fixed_hours)
    if delay_hours is None:
        return timedelta(hours=DEFAULT_NO_RESPONSE_DELAY_HOURS)
    return timedelta(hours=delay_hours)


def evaluate_trigger(trigger: TriggerType, facts: TriggerFacts, now: datetime) -> TriggerDecision:
    if facts.action == ActionType.SEND_TABLE_ASSIGNMENT and not facts.has_table_assignment:
        return Abandon("no table assignment")

    if is_no_response_trigger(trigger):
        return _evaluate_no_response(trigger, facts, now)
    if is_rsvp_state_trigger(trigger):
        return _evaluate_rsvp_state(trigger, facts, now)
    if is_calendar_trigger(trigger):
        return _evaluate_calendar(facts, now)
    return Abandon(f"unsupported trigger {trigger.value}")


def _evaluate_no_response(trigger: TriggerType, facts: TriggerFacts, now: datetime) -> TriggerDecision:
    if facts.rsvp_status != RsvpStatus.PENDING:
        return Abandon("guest already responded")
    if facts.last_sent_at is None:
        return Abandon("no notification sent yet")

    due_at = facts.last_sent_at + no_response_delay(trigger, facts.delay_hours)
    if now >= due_at:
        return Fire(f"no response since {facts.last_sent_at.isoformat()}")
    return Defer(due_at)


def _evaluate_rsvp_state(trigger: TriggerType, facts: TriggerFacts, now: datetime) -> TriggerDecision:
    expected = RSVP_STATE_TRIGGERS[trigger]
    if facts.rsvp_status != expected:
        return Abandon(f"rsvp changed to {facts.rsvp_status.value}")
    if facts.responded_at is None:
        return Fire()

    due_at = facts.responded_at + timedelta(hours=facts.delay_hours or 0)
    if now >= due_at:
        return Fire()
    return Defer(due_at)


def _evaluate_calendar(facts: TriggerFacts, now: datetime) -> TriggerDecision:
    if facts.rsvp_status != RsvpStatus.ACCEPTED:
        return Abandon("guest not confirmed")
    if facts.scheduled_for is None or now >= facts.scheduled_for:
        return Fire()
    return Defer(facts.scheduled_for)
