"""Tests for FlowManager."""

from datetime import timedelta
from uuid import uuid4

import pytest
from sqlalchemy import select

from rsvp_automation.automation.dtos import (
    ActionType,
    ExecutionStatus,
    FlowAlreadyExistsError,
    FlowNotFoundError,
    FlowStatus,
    TriggerType,
    UnknownTemplateError,
)
from rsvp_automation.automation.flows import FlowManager
from rsvp_automation.automation.repository.orm_models import AutomationFlowExecution
from rsvp_automation.guests.dtos import EventNotFoundError, RsvpStatus


async def statuses(session_maker, flow_id) -> list[ExecutionStatus]:
    async with session_maker() as session:
        stmt = select(AutomationFlowExecution.status).where(AutomationFlowExecution.flow_id == flow_id)
        return sorted((await session.execute(stmt)).scalars())


@pytest.fixture
def manager(session_maker, test_settings, clock):
    return FlowManager(session_maker, test_settings, clock)


async def test_create_from_template(manager, make_event):
    event = await make_event()

    flow = await manager.create_from_template(event.uuid, "the_chaser", custom_message="Hi {guestName}!")

    assert flow.name == "The Chaser"
    assert flow.trigger == TriggerType.NO_RESPONSE_24H
    assert flow.action == ActionType.SEND_WHATSAPP_INTERACTIVE_REMINDER
    assert flow.status == FlowStatus.DRAFT
    assert flow.template_name == "the_chaser"
    assert flow.custom_message == "Hi {guestName}!"


async def test_create_from_unknown_template(manager, make_event):
    event = await make_event()

    with pytest.raises(UnknownTemplateError):
        await manager.create_from_template(event.uuid, "the_nagger")


async def test_create_for_unknown_event(manager):
    with pytest.raises(EventNotFoundError):
        await manager.create_custom(
            uuid4(), "Custom", TriggerType.RSVP_DECLINED, ActionType.SEND_CUSTOM_WHATSAPP
        )


async def test_duplicate_trigger_rejected(manager, make_event):
    event = await make_event()
    await manager.create_from_template(event.uuid, "thank_you")

    with pytest.raises(FlowAlreadyExistsError):
        await manager.create_custom(
            event.uuid, "Another", TriggerType.RSVP_CONFIRMED, ActionType.SEND_CUSTOM_WHATSAPP
        )


async def test_activate_backfills_matching_guests(manager, make_event, make_guest):
    event = await make_event()
    await make_guest(event, status=RsvpStatus.ACCEPTED)
    await make_guest(event, name="Pending", phone_number="0521111111")
    flow = await manager.create_from_template(event.uuid, "thank_you")

    activated = await manager.set_status(flow.id, FlowStatus.ACTIVE)

    assert activated.status == FlowStatus.ACTIVE
    assert await statuses(manager.session_maker, flow.id) == [ExecutionStatus.PENDING]

    # re-activating an active flow creates nothing new
    await manager.set_status(flow.id, FlowStatus.ACTIVE)
    assert len(await statuses(manager.session_maker, flow.id)) == 1


async def test_pause_skips_pending(manager, session_maker, make_event, make_guest, make_flow, make_execution, now):
    event = await make_event()
    flow = await make_flow(event)
    await make_execution(flow, await make_guest(event, name="A"))
    await make_execution(flow, await make_guest(event, name="B"), ExecutionStatus.COMPLETED, executed_at=now)

    await manager.set_status(flow.uuid, FlowStatus.PAUSED)

    assert await statuses(session_maker, flow.uuid) == [ExecutionStatus.COMPLETED, ExecutionStatus.SKIPPED]
    async with session_maker() as session:
        reasons = (
            await session.execute(
                select(AutomationFlowExecution.error_message).where(
                    AutomationFlowExecution.status == ExecutionStatus.SKIPPED
                )
            )
        ).scalars()
        assert list(reasons) == ["flow paused"]


async def test_retry_failed_and_cancel_pending(manager, session_maker, make_event, make_guest, make_flow, make_execution, now):
    event = await make_event()
    flow = await make_flow(event)
    await make_execution(flow, await make_guest(event, name="A"), ExecutionStatus.FAILED, executed_at=now)

    assert await manager.retry_failed(flow.uuid) == 1
    assert await manager.cancel_pending(flow.uuid) == 1
    assert await statuses(session_maker, flow.uuid) == [ExecutionStatus.SKIPPED]


async def test_unknown_flow(manager):
    with pytest.raises(FlowNotFoundError):
        await manager.retry_failed(uuid4())
    with pytest.raises(FlowNotFoundError):
        await manager.set_status(uuid4(), FlowStatus.PAUSED)


async def test_stats(manager, make_event, make_guest, make_flow, make_execution, now):
    event = await make_event()
    flow = await make_flow(event)
    await make_flow(event, trigger=TriggerType.RSVP_DECLINED, action=ActionType.SEND_CUSTOM_WHATSAPP)
    await make_execution(flow, await make_guest(event, name="A"))
    await make_execution(flow, await make_guest(event, name="B"), ExecutionStatus.COMPLETED, executed_at=now)
    await make_execution(flow, await make_guest(event, name="C"), ExecutionStatus.FAILED, executed_at=now)

    stats = {s.flow_id: s for s in await manager.stats(event.uuid)}

    assert len(stats) == 2
    chaser = stats[flow.uuid]
    assert (chaser.total, chaser.pending, chaser.completed, chaser.failed, chaser.skipped) == (3, 1, 1, 1, 0)
    assert [s.total for s in stats.values() if s.flow_id != flow.uuid] == [0]


async def test_retry_single_execution(manager, make_event, make_guest, make_flow, make_execution, now):
    event = await make_event()
    flow = await make_flow(event)
    execution = await make_execution(
        flow, await make_guest(event), ExecutionStatus.FAILED, retry_count=3, executed_at=now - timedelta(hours=1)
    )

    result = await manager.retry_execution(execution.uuid)

    assert result.status == ExecutionStatus.PENDING
    assert result.retry_count == 0
