import logging
from collections.abc import Callable
from datetime import UTC, datetime, time, timedelta
from typing import Protocol
from zoneinfo import ZoneInfo

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rsvp_automation.automation.dtos import CALENDAR_TRIGGERS, FlowStatus, TriggerType
from rsvp_automation.automation.repository.orm_models import AutomationFlow
from rsvp_automation.automation.repository.write_models import SqlExecutionWriteModel
from rsvp_automation.config.database import async_session_manager
from rsvp_automation.config.settings import settings
from rsvp_automation.guests.dtos import RsvpStatus
from rsvp_automation.guests.repository.orm_models import Guest, GuestRsvp
from rsvp_automation.models.base import utcnow
from rsvp_automation.models.event import Event

logger = logging.getLogger(__name__)

DEFAULT_HOURS_BEFORE_EVENT = 2
DEFAULT_HOURS_AFTER_EVENT = 12


class CalendarConfig(Protocol):
    event_morning_hour: int
    day_after_hour: int


class PlannerConfig(CalendarConfig, Protocol):
    event_trigger_horizon_hours: int


def _local_time_on(day, hour: int, tz: ZoneInfo) -> datetime:
    return datetime.combine(day, time(hour=hour), tzinfo=tz).astimezone(UTC)


def calendar_fire_time(
    trigger: TriggerType,
    event_starts_at: datetime,
    event_timezone: str,
    delay_hours: int | None = None,
    config: CalendarConfig = settings,
) -> datetime:
    """Absolute (UTC) time a calendar-relative trigger fires for an event."""
    tz = ZoneInfo(event_timezone or "UTC")
    event_day = event_starts_at.astimezone(tz).date()

    if trigger == TriggerType.EVENT_MORNING:
        return _local_time_on(event_day, config.event_morning_hour, tz)
    if trigger == TriggerType.DAY_AFTER_MORNING:
        return _local_time_on(event_day + timedelta(days=1), config.day_after_hour, tz)
    if trigger == TriggerType.HOURS_BEFORE_EVENT:
        hours = delay_hours if delay_hours is not None else DEFAULT_HOURS_BEFORE_EVENT
        return event_starts_at - timedelta(hours=hours)
    if trigger == TriggerType.HOURS_BEFORE_EVENT_2:
        return event_starts_at - timedelta(hours=2)
    if trigger == TriggerType.AFTER_EVENT:
        hours = delay_hours if delay_hours is not None else DEFAULT_HOURS_AFTER_EVENT
        return event_starts_at + timedelta(hours=hours)
    raise ValueError(f"{trigger.value} is not a calendar trigger")


class EventTriggerPlanner:
    """Creates the executions for calendar-relative flows of upcoming events."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        config: PlannerConfig = settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session_maker = session_maker
        self.config = config
        self.clock = clock
        self.executions = SqlExecutionWriteModel(session_maker=session_maker)

    async def plan(self) -> int:
        """Returns the number of executions created."""
        now = self.clock()
        horizon = now + timedelta(hours=self.config.event_trigger_horizon_hours)

        async with async_session_manager(session_maker=self.session_maker) as session:
            stmt = (
                select(AutomationFlow, Event)
                .join(Event, Event.uuid == AutomationFlow.event_id)
                .where(
                    Event.is_active.is_(True),
                    Event.starts_at >= now,
                    Event.starts_at <= horizon,
                    AutomationFlow.status == FlowStatus.ACTIVE,
                    AutomationFlow.trigger.in_(CALENDAR_TRIGGERS),
                )
            )
            flows = (await session.execute(stmt)).all()

            plans = []
            for flow, event in flows:
                fire_at = calendar_fire_time(
                    flow.trigger, event.starts_at, event.timezone, flow.delay_hours, self.config
                )
                if fire_at < now:
                    logger.debug(f"Skipping {flow.trigger.value} for event {event.uuid}: {fire_at} has passed")
                    continue
                guest_ids = (
                    await session.execute(
                        select(Guest.uuid)
                        .join(GuestRsvp, GuestRsvp.guest_id == Guest.uuid)
                        .where(Guest.event_id == event.uuid, GuestRsvp.status == RsvpStatus.ACCEPTED)
                    )
                ).scalars()
                plans.extend((flow.uuid, guest_id, fire_at) for guest_id in guest_ids)

        created = 0
        for flow_id, guest_id, fire_at in plans:
            if await self.executions.create_if_absent(flow_id, guest_id, fire_at):
                created += 1

        logger.info(f"Planned {created} calendar executions across {len(flows)} flows")
        return created
