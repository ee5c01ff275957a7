"""Owner-facing management of an event's automation flows."""

import logging
from collections.abc import Callable
from datetime import datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rsvp_automation.automation.dtos import (
    ActionType,
    ExecutionDTO,
    FlowDTO,
    FlowStatsDTO,
    FlowStatus,
    TriggerType,
)
from rsvp_automation.automation.hooks import AutomationHooks
from rsvp_automation.automation.repository.read_models import SqlAutomationReadModel
from rsvp_automation.automation.repository.write_models import (
    SqlAutomationFlowWriteModel,
    SqlExecutionWriteModel,
)
from rsvp_automation.automation.templates import get_flow_template
from rsvp_automation.config.database import async_session_manager
from rsvp_automation.config.settings import Settings, settings
from rsvp_automation.guests.dtos import EventNotFoundError
from rsvp_automation.models.base import utcnow
from rsvp_automation.models.event import Event

logger = logging.getLogger(__name__)

_STOPPED_STATUSES = (FlowStatus.PAUSED, FlowStatus.ARCHIVED)


class FlowManager:
    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        config: Settings = settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session_maker = session_maker
        self.clock = clock
        self.flows = SqlAutomationFlowWriteModel(session_maker=session_maker)
        self.executions = SqlExecutionWriteModel(session_maker=session_maker)
        self.read_model = SqlAutomationReadModel(session_maker=session_maker)
        self.hooks = AutomationHooks(session_maker=session_maker, config=config, clock=clock)

    async def _ensure_event(self, event_id: UUID) -> None:
        async with async_session_manager(session_maker=self.session_maker) as session:
            if await session.get(Event, event_id) is None:
                raise EventNotFoundError(event_id)

    async def create_from_template(
        self, event_id: UUID, template_name: str, custom_message: str | None = None
    ) -> FlowDTO:
        template = get_flow_template(template_name)
        await self._ensure_event(event_id)
        flow = await self.flows.create_flow(
            event_id=event_id,
            name=template.name,
            trigger=template.trigger,
            action=template.action,
            delay_hours=template.delay_hours,
            custom_message=custom_message,
            template_name=template_name,
        )
        logger.info(f"Created flow '{flow.name}' for event {event_id} from template {template_name}")
        return flow

    async def create_custom(
        self,
        event_id: UUID,
        name: str,
        trigger: TriggerType,
        action: ActionType,
        delay_hours: int | None = None,
        custom_message: str | None = None,
    ) -> FlowDTO:
        await self._ensure_event(event_id)
        flow = await self.flows.create_flow(
            event_id=event_id,
            name=name,
            trigger=trigger,
            action=action,
            delay_hours=delay_hours,
            custom_message=custom_message,
        )
        logger.info(f"Created flow '{name}' ({trigger.value} -> {action.value}) for event {event_id}")
        return flow

    async def set_status(self, flow_id: UUID, status: FlowStatus) -> FlowDTO:
        previous = await self.flows.get_flow(flow_id)
        flow = await self.flows.set_status(flow_id, status)
        if status == FlowStatus.ACTIVE and previous.status != FlowStatus.ACTIVE:
            await self.hooks.on_flow_activated(flow)
        elif status in _STOPPED_STATUSES:
            swept = await self.executions.skip_pending_for_flow(
                flow_id, f"flow {status.value.lower()}", self.clock()
            )
            logger.info(f"Flow {flow_id} {status.value}: {swept} pending executions skipped")
        return flow

    async def retry_failed(self, flow_id: UUID) -> int:
        await self.flows.get_flow(flow_id)
        return await self.executions.retry_failed_for_flow(flow_id, self.clock())

    async def cancel_pending(self, flow_id: UUID) -> int:
        await self.flows.get_flow(flow_id)
        return await self.executions.skip_pending_for_flow(flow_id, "cancelled", self.clock())

    async def retry_execution(self, execution_id: UUID) -> ExecutionDTO:
        return await self.executions.retry_execution(execution_id, self.clock())

    async def stats(self, event_id: UUID) -> list[FlowStatsDTO]:
        return await self.read_model.flow_stats(event_id)
