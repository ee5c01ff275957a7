"""Reactions of the automation engine to guest and flow events."""

import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rsvp_automation.automation.dtos import (
    NO_RESPONSE_TRIGGERS,
    RSVP_STATE_TRIGGERS,
    ActionType,
    FlowDTO,
    FlowStatus,
    TriggerType,
)
from rsvp_automation.automation.planner import calendar_fire_time
from rsvp_automation.automation.repository.read_models import last_notification_sent_at
from rsvp_automation.automation.repository.write_models import (
    SqlAutomationFlowWriteModel,
    SqlExecutionWriteModel,
)
from rsvp_automation.automation.triggers import is_calendar_trigger, is_no_response_trigger, no_response_delay
from rsvp_automation.config.database import async_session_manager
from rsvp_automation.config.settings import Settings, settings
from rsvp_automation.guests.dtos import (
    INVITATION_TYPES,
    NotificationChannel,
    NotificationType,
    RsvpStatus,
)
from rsvp_automation.guests.repository.orm_models import Guest, GuestRsvp
from rsvp_automation.models.base import utcnow
from rsvp_automation.models.event import Event

logger = logging.getLogger(__name__)

MAYBE_FOLLOW_UP_FLOW_NAME = "Maybe Follow-up Reminder"

_RSVP_CHANGE_FLOWS = {
    RsvpStatus.ACCEPTED: TriggerType.RSVP_CONFIRMED,
    RsvpStatus.DECLINED: TriggerType.RSVP_DECLINED,
}


class AutomationHooks:
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        config: Settings = settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session_maker = session_maker
        self.config = config
        self.clock = clock
        self.flows = SqlAutomationFlowWriteModel(session_maker=session_maker)
        self.executions = SqlExecutionWriteModel(session_maker=session_maker)

    def _session(self):
        return async_session_manager(session_maker=self.session_maker)

    async def on_rsvp_changed(self, guest_id: UUID, event_id: UUID, status: RsvpStatus) -> None:
        """Stop nagging a guest who answered and queue the flows for the new status."""
        now = self.clock()
        if status != RsvpStatus.PENDING:
            no_response_flows = await self.flows.list_flows(
                event_id, triggers=NO_RESPONSE_TRIGGERS, status=None
            )
            skipped = await self.executions.skip_pending_for_guest(
                guest_id, [flow.id for flow in no_response_flows], "guest already responded", now
            )
            if skipped:
                logger.info(f"Skipped {skipped} no-response executions for guest {guest_id}")

        trigger = _RSVP_CHANGE_FLOWS.get(status)
        if trigger is None:
            return
        for flow in await self.flows.list_flows(event_id, triggers=[trigger]):
            await self.executions.create_if_absent(flow.id, guest_id, None)

    async def on_notification_sent(
        self,
        guest_id: UUID,
        notification_type: NotificationType,
        channel: NotificationChannel,
        sent_at: datetime,
    ) -> None:
        """Start (or restart) the no-response clock for a guest who hasn't answered."""
        if notification_type not in INVITATION_TYPES:
            return

        async with self._session() as session:
            row = (
                await session.execute(
                    select(Guest.event_id, GuestRsvp.status)
                    .outerjoin(GuestRsvp, GuestRsvp.guest_id == Guest.uuid)
                    .where(Guest.uuid == guest_id)
                )
            ).one_or_none()
        if row is None:
            return
        event_id, status = row
        if status not in (None, RsvpStatus.PENDING):
            return

        for flow in await self.flows.list_flows(event_id, triggers=NO_RESPONSE_TRIGGERS):
            rule = NO_RESPONSE_TRIGGERS[flow.trigger]
            if rule.channel is not None and rule.channel != channel:
                continue
            scheduled_for = sent_at + no_response_delay(flow.trigger, flow.delay_hours)
            if not await self.executions.create_if_absent(flow.id, guest_id, scheduled_for):
                await self.executions.reschedule_pending(flow.id, guest_id, scheduled_for)

    async def schedule_maybe_follow_up(
        self, guest_id: UUID, event_id: UUID, rearm: bool = True
    ) -> datetime | None:
        """Queue the reminder for a guest who answered "maybe".

        The delay always comes from the event; the flow is created on first use.
        With ``rearm`` an existing execution is reset to run again, otherwise it is
        left as it is. Returns when a newly queued reminder is due, or None if
        nothing was queued (the event's follow-up flow was paused or archived,
        or an execution already existed and ``rearm`` is off).
        """
        async with self._session() as session:
            event = await session.get(Event, event_id)
            delay_hours = (
                event.rsvp_maybe_reminder_delay_hours
                if event is not None and event.rsvp_maybe_reminder_delay_hours
                else self.config.default_maybe_reminder_delay_hours
            )

        flow = await self.flows.get_or_create_flow(
            event_id=event_id,
            name=MAYBE_FOLLOW_UP_FLOW_NAME,
            trigger=TriggerType.RSVP_MAYBE,
            action=ActionType.SEND_WHATSAPP_INTERACTIVE_REMINDER,
            delay_hours=delay_hours,
            status=FlowStatus.ACTIVE,
        )
        if flow.status not in (FlowStatus.ACTIVE, FlowStatus.DRAFT):
            logger.info(f"Maybe follow-up flow {flow.id} is {flow.status.value}, not scheduling guest {guest_id}")
            return None

        scheduled_for = self.clock() + timedelta(hours=delay_hours)
        if not rearm:
            if not await self.executions.create_if_absent(flow.id, guest_id, scheduled_for):
                return None
        else:
            await self.executions.rearm(flow.id, guest_id, scheduled_for)
        logger.info(f"Scheduled maybe follow-up for guest {guest_id} at {scheduled_for.isoformat()}")
        return scheduled_for

    async def on_flow_activated(self, flow: FlowDTO) -> int:
        """Create executions for every guest the flow currently applies to."""
        now = self.clock()
        plans: list[tuple[UUID, datetime | None]] = []

        async with self._session() as session:
            event = await session.get(Event, flow.event_id)
            if event is None:
                return 0
            guests = (
                await session.execute(
                    select(Guest.uuid, GuestRsvp.status)
                    .outerjoin(GuestRsvp, GuestRsvp.guest_id == Guest.uuid)
                    .where(Guest.event_id == event.uuid)
                )
            ).all()

            if is_no_response_trigger(flow.trigger):
                rule = NO_RESPONSE_TRIGGERS[flow.trigger]
                for guest_id, status in guests:
                    if status not in (None, RsvpStatus.PENDING):
                        continue
                    last_sent = await last_notification_sent_at(session, guest_id, rule.channel)
                    if last_sent is not None:
                        plans.append((guest_id, last_sent + no_response_delay(flow.trigger, flow.delay_hours)))
            elif is_calendar_trigger(flow.trigger):
                fire_at = calendar_fire_time(
                    flow.trigger, event.starts_at, event.timezone, flow.delay_hours, self.config
                )
                if fire_at >= now:
                    plans.extend((guest_id, fire_at) for guest_id, status in guests if status == RsvpStatus.ACCEPTED)
            elif flow.trigger in RSVP_STATE_TRIGGERS:
                expected = RSVP_STATE_TRIGGERS[flow.trigger]
                plans.extend((guest_id, None) for guest_id, status in guests if status == expected)

        created = 0
        for guest_id, scheduled_for in plans:
            if await self.executions.create_if_absent(flow.id, guest_id, scheduled_for):
                created += 1
        logger.info(f"Activated flow {flow.id} ({flow.trigger.value}): {created} executions created")
        return created
