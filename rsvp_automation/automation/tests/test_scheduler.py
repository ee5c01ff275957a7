import asyncio
from dataclasses import dataclass
from datetime import timedelta
from unittest.mock import AsyncMock

import pytest

from rsvp_automation.automation.dtos import (
    ActionContext,
    ActionResult,
    ActionType,
    ExecutionStatus,
    FlowStatus,
    TriggerType,
)
from rsvp_automation.automation.executor import ActionExecutor
from rsvp_automation.automation.repository.orm_models import AutomationFlowExecution
from rsvp_automation.automation.scheduler import AutomationScheduler, ExecutionCleanup
from rsvp_automation.guests.dtos import RsvpStatus


@dataclass
class SchedulerTestConfig:
    automation_batch_size: int = 100
    automation_max_retries: int = 3
    automation_retry_backoff_minutes: int = 60
    action_timeout_seconds: float = 5.0
    execution_retention_days: int = 30


class RecordingExecutor(ActionExecutor):
    """Executor double that records each call and answers with a fixed result."""

    def __init__(self, success: bool = True, message: str = "sent", delay: float = 0, error: Exception | None = None):
        self.success = success
        self.message = message
        self.delay = delay
        self.error = error
        self.calls: list[tuple[ActionType, ActionContext]] = []

    async def execute(self, action: ActionType, context: ActionContext) -> ActionResult:
        self.calls.append((action, context))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error:
            raise self.error
        return ActionResult(success=self.success, message=self.message)


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


async def load_execution(session_maker, execution_id) -> AutomationFlowExecution:
    async with session_maker() as session:
        return await session.get(AutomationFlowExecution, execution_id)


@pytest.fixture
async def pending_guest(make_event, make_guest, make_notification, now):
    """A guest who got an invitation 25 hours ago and never answered."""
    event = await make_event()
    guest = await make_guest(event)
    await make_notification(guest, sent_at=now - timedelta(hours=25))
    return event, guest


async def test_due_execution_is_sent(session_maker, pending_guest, make_flow, make_execution, now):
    event, guest = pending_guest
    flow = await make_flow(event)
    execution = await make_execution(flow, guest, scheduled_for=now - timedelta(hours=1))
    executor = RecordingExecutor()
    scheduler = AutomationScheduler(executor, session_maker, SchedulerTestConfig(), lambda: now)

    result = await scheduler.process_due()

    assert (result.processed, result.succeeded, result.failed) == (1, 1, 0)
    [(action, context)] = executor.calls
    assert action == ActionType.SEND_WHATSAPP_INTERACTIVE_REMINDER
    assert context.guest_name == "Noa Levi"
    assert context.event_title == event.title
    assert context.rsvp_link.startswith("http")

    stored = await load_execution(session_maker, execution.uuid)
    assert stored.status == ExecutionStatus.COMPLETED
    assert stored.executed_at == now
    assert stored.error_message is None


async def test_execution_is_sent_at_most_once(session_maker, pending_guest, make_flow, make_execution, now):
    event, guest = pending_guest
    flow = await make_flow(event)
    await make_execution(flow, guest, scheduled_for=now - timedelta(hours=1))
    executor = RecordingExecutor()
    scheduler = AutomationScheduler(executor, session_maker, SchedulerTestConfig(), lambda: now)

    await scheduler.process_due()
    second = await scheduler.process_due()

    assert second.processed == 0
    assert len(executor.calls) == 1


async def test_execution_selected_by_two_pollers_runs_once(
    session_maker, pending_guest, make_flow, make_execution, now
):
    event, guest = pending_guest
    flow = await make_flow(event)
    execution = await make_execution(flow, guest, scheduled_for=now - timedelta(hours=1))
    executor = RecordingExecutor()
    first = AutomationScheduler(executor, session_maker, SchedulerTestConfig(), lambda: now)
    second = AutomationScheduler(executor, session_maker, SchedulerTestConfig(), lambda: now)
    # both pollers selected the row before either of them claimed it
    selected = await first.read_model.due_execution_ids(now, 100)
    second.read_model.due_execution_ids = AsyncMock(return_value=selected)

    await first.process_due()
    late = await second.process_due()

    assert len(executor.calls) == 1
    assert (late.processed, late.succeeded, late.failed) == (1, 0, 0)
    assert (await load_execution(session_maker, execution.uuid)).status == ExecutionStatus.COMPLETED


async def test_failure_retries_then_fails_permanently(
    session_maker, pending_guest, make_flow, make_execution, now
):
    event, guest = pending_guest
    flow = await make_flow(event)
    execution = await make_execution(flow, guest, scheduled_for=now - timedelta(hours=1))
    executor = RecordingExecutor(success=False, message="provider down")
    clock = Clock(now)
    scheduler = AutomationScheduler(executor, session_maker, SchedulerTestConfig(), clock)

    first = await scheduler.process_due()
    stored = await load_execution(session_maker, execution.uuid)
    assert first.retried == 1
    assert stored.status == ExecutionStatus.PENDING
    assert stored.retry_count == 1
    assert stored.scheduled_for == now + timedelta(minutes=60)
    assert stored.error_message == "provider down"

    # not due again before the backoff has passed
    assert (await scheduler.process_due()).processed == 0

    clock.now = now + timedelta(minutes=61)
    await scheduler.process_due()
    clock.now = now + timedelta(minutes=122)
    last = await scheduler.process_due()

    stored = await load_execution(session_maker, execution.uuid)
    assert last.failed == 1
    assert len(executor.calls) == 3
    assert stored.status == ExecutionStatus.FAILED
    assert stored.retry_count == 3
    assert stored.error_message == "provider down (after 3 attempts)"


async def test_action_exception_counts_as_failure(session_maker, pending_guest, make_flow, make_execution, now):
    event, guest = pending_guest
    flow = await make_flow(event)
    execution = await make_execution(flow, guest, scheduled_for=now - timedelta(hours=1))
    executor = RecordingExecutor(error=RuntimeError("boom"))
    scheduler = AutomationScheduler(executor, session_maker, SchedulerTestConfig(), lambda: now)

    result = await scheduler.process_due()

    stored = await load_execution(session_maker, execution.uuid)
    assert result.retried == 1
    assert stored.status == ExecutionStatus.PENDING
    assert stored.error_message == "boom"


async def test_action_timeout(session_maker, pending_guest, make_flow, make_execution, now):
    event, guest = pending_guest
    flow = await make_flow(event)
    execution = await make_execution(flow, guest, scheduled_for=now - timedelta(hours=1))
    executor = RecordingExecutor(delay=1)
    config = SchedulerTestConfig(action_timeout_seconds=0.05, automation_max_retries=1)
    scheduler = AutomationScheduler(executor, session_maker, config, lambda: now)

    result = await scheduler.process_due()

    stored = await load_execution(session_maker, execution.uuid)
    assert result.failed == 1
    assert stored.status == ExecutionStatus.FAILED
    assert stored.error_message == "Action timed out after 0.05s (after 1 attempts)"


async def test_not_yet_due_is_deferred(session_maker, make_event, make_guest, make_notification, make_flow, make_execution, now):
    event = await make_event()
    guest = await make_guest(event)
    sent_at = now - timedelta(hours=2)
    await make_notification(guest, sent_at=sent_at)
    flow = await make_flow(event)
    execution = await make_execution(flow, guest, scheduled_for=None)
    executor = RecordingExecutor()
    scheduler = AutomationScheduler(executor, session_maker, SchedulerTestConfig(), lambda: now)

    result = await scheduler.process_due()

    stored = await load_execution(session_maker, execution.uuid)
    assert result.deferred == 1
    assert executor.calls == []
    assert stored.status == ExecutionStatus.PENDING
    assert stored.scheduled_for == sent_at + timedelta(hours=24)


async def test_guest_who_responded_is_skipped(session_maker, make_event, make_guest, make_notification, make_flow, make_execution, now):
    event = await make_event()
    guest = await make_guest(event, status=RsvpStatus.ACCEPTED, responded_at=now - timedelta(hours=3))
    await make_notification(guest, sent_at=now - timedelta(days=2))
    flow = await make_flow(event)
    execution = await make_execution(flow, guest, scheduled_for=now - timedelta(hours=1))
    executor = RecordingExecutor()
    scheduler = AutomationScheduler(executor, session_maker, SchedulerTestConfig(), lambda: now)

    result = await scheduler.process_due()

    stored = await load_execution(session_maker, execution.uuid)
    assert result.skipped == 1
    assert executor.calls == []
    assert stored.status == ExecutionStatus.SKIPPED
    assert stored.error_message == "guest already responded"


async def test_table_assignment_without_table_is_skipped(session_maker, make_event, make_guest, make_flow, make_execution, now):
    event = await make_event()
    guest = await make_guest(event, status=RsvpStatus.ACCEPTED, guest_count=2)
    flow = await make_flow(
        event, trigger=TriggerType.EVENT_MORNING, action=ActionType.SEND_TABLE_ASSIGNMENT
    )
    execution = await make_execution(flow, guest, scheduled_for=now - timedelta(minutes=5))
    executor = RecordingExecutor()
    scheduler = AutomationScheduler(executor, session_maker, SchedulerTestConfig(), lambda: now)

    await scheduler.process_due()

    stored = await load_execution(session_maker, execution.uuid)
    assert stored.status == ExecutionStatus.SKIPPED
    assert stored.error_message == "no table assignment"


async def test_maybe_follow_up_uses_event_delay(session_maker, make_event, make_guest, make_flow, make_execution, now):
    event = await make_event(rsvp_maybe_reminder_delay_hours=48)
    guest = await make_guest(event, status=RsvpStatus.MAYBE, responded_at=now - timedelta(hours=30))
    flow = await make_flow(
        event,
        trigger=TriggerType.RSVP_MAYBE,
        action=ActionType.SEND_WHATSAPP_INTERACTIVE_REMINDER,
        delay_hours=24,
    )
    execution = await make_execution(flow, guest, scheduled_for=now - timedelta(hours=6))
    executor = RecordingExecutor()
    scheduler = AutomationScheduler(executor, session_maker, SchedulerTestConfig(), lambda: now)

    result = await scheduler.process_due()

    stored = await load_execution(session_maker, execution.uuid)
    assert result.deferred == 1
    assert stored.scheduled_for == now + timedelta(hours=18)


async def test_paused_flow_is_not_processed(session_maker, pending_guest, make_flow, make_execution, now):
    event, guest = pending_guest
    flow = await make_flow(event, status=FlowStatus.PAUSED)
    execution = await make_execution(flow, guest, scheduled_for=now - timedelta(hours=1))
    executor = RecordingExecutor()
    scheduler = AutomationScheduler(executor, session_maker, SchedulerTestConfig(), lambda: now)

    result = await scheduler.process_due()

    assert result.processed == 0
    assert (await load_execution(session_maker, execution.uuid)).status == ExecutionStatus.PENDING


async def test_batch_size_limits_work_per_poll(session_maker, make_event, make_guest, make_notification, make_flow, make_execution, now):
    event = await make_event()
    flow = await make_flow(event)
    for i in range(3):
        guest = await make_guest(event, name=f"Guest {i}", phone_number=f"05840035{i:02d}")
        await make_notification(guest, sent_at=now - timedelta(hours=30))
        await make_execution(flow, guest, scheduled_for=now - timedelta(hours=1))
    executor = RecordingExecutor()
    scheduler = AutomationScheduler(executor, session_maker, SchedulerTestConfig(automation_batch_size=2), lambda: now)

    assert (await scheduler.process_due()).succeeded == 2
    assert (await scheduler.process_due()).succeeded == 1


async def test_cleanup_deletes_old_finished_executions(session_maker, make_event, make_guest, make_flow, make_execution, now):
    event = await make_event()
    flow = await make_flow(event)
    old = await make_execution(
        flow, await make_guest(event, name="A"), ExecutionStatus.COMPLETED, executed_at=now - timedelta(days=31)
    )
    recent = await make_execution(
        flow, await make_guest(event, name="B"), ExecutionStatus.SKIPPED, executed_at=now - timedelta(days=2)
    )
    pending = await make_execution(flow, await make_guest(event, name="C"), ExecutionStatus.PENDING)
    cleanup = ExecutionCleanup(session_maker, SchedulerTestConfig(), lambda: now)

    deleted = await cleanup.run()

    assert deleted == 1
    assert await load_execution(session_maker, old.uuid) is None
    assert await load_execution(session_maker, recent.uuid) is not None
    assert await load_execution(session_maker, pending.uuid) is not None
