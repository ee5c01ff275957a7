import abc
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import case, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rsvp_automation.automation.context import build_action_context, load_guest_rows
from rsvp_automation.automation.dtos import (
    ActionContext,
    ExecutionDTO,
    ExecutionStatus,
    FlowDTO,
    FlowStatsDTO,
    FlowStatus,
)
from rsvp_automation.automation.repository.orm_models import AutomationFlow, AutomationFlowExecution
from rsvp_automation.config.database import async_session_manager
from rsvp_automation.config.settings import settings
from rsvp_automation.guests.dtos import (
    DELIVERED_STATUSES,
    INVITATION_TYPES,
    NotificationChannel,
)
from rsvp_automation.guests.repository.orm_models import NotificationLog


def flow_to_dto(flow: AutomationFlow) -> FlowDTO:
    return FlowDTO(
        id=flow.uuid,
        event_id=flow.event_id,
        name=flow.name,
        trigger=flow.trigger,
        action=flow.action,
        status=flow.status,
        delay_hours=flow.delay_hours,
        custom_message=flow.custom_message,
        template_name=flow.template_name,
    )


def execution_to_dto(execution: AutomationFlowExecution) -> ExecutionDTO:
    return ExecutionDTO(
        id=execution.uuid,
        flow_id=execution.flow_id,
        guest_id=execution.guest_id,
        status=execution.status,
        scheduled_for=execution.scheduled_for,
        retry_count=execution.retry_count,
        error_message=execution.error_message,
        executed_at=execution.executed_at,
    )


@dataclass(frozen=True)
class ExecutionSnapshot:
    """An execution with everything needed to evaluate and run it, loaded in one go."""

    execution: ExecutionDTO
    flow: FlowDTO
    context: ActionContext
    responded_at: datetime | None
    maybe_reminder_delay_hours: int


async def last_notification_sent_at(
    session: AsyncSession, guest_id: UUID, channel: NotificationChannel | None = None
) -> datetime | None:
    stmt = select(func.max(NotificationLog.sent_at)).where(
        NotificationLog.guest_id == guest_id,
        NotificationLog.type.in_(INVITATION_TYPES),
        NotificationLog.status.in_(DELIVERED_STATUSES),
    )
    if channel is not None:
        stmt = stmt.where(NotificationLog.channel == channel)
    return (await session.execute(stmt)).scalar_one_or_none()


class AutomationReadModel(abc.ABC):
    @abc.abstractmethod
    async def due_execution_ids(self, now: datetime, limit: int) -> list[UUID]:
        raise NotImplementedError

    @abc.abstractmethod
    async def load_snapshot(self, execution_id: UUID) -> ExecutionSnapshot | None:
        raise NotImplementedError

    @abc.abstractmethod
    async def last_sent_at(
        self, guest_id: UUID, channel: NotificationChannel | None = None
    ) -> datetime | None:
        raise NotImplementedError

    @abc.abstractmethod
    async def flow_stats(self, event_id: UUID) -> list[FlowStatsDTO]:
        raise NotImplementedError


class SqlAutomationReadModel(AutomationReadModel):
    def __init__(
        self,
        session_overwrite: AsyncSession | None = None,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        frontend_url: str | None = None,
    ) -> None:
        self.session_overwrite = session_overwrite
        self.session_maker = session_maker
        self.frontend_url = frontend_url or settings.frontend_url

    def _session(self):
        return async_session_manager(
            session_overwrite=self.session_overwrite, session_maker=self.session_maker
        )

    async def due_execution_ids(self, now: datetime, limit: int) -> list[UUID]:
        async with self._session() as session:
            stmt = (
                select(AutomationFlowExecution.uuid)
                .join(AutomationFlow, AutomationFlow.uuid == AutomationFlowExecution.flow_id)
                .where(
                    AutomationFlowExecution.status == ExecutionStatus.PENDING,
                    or_(
                        AutomationFlowExecution.scheduled_for.is_(None),
                        AutomationFlowExecution.scheduled_for <= now,
                    ),
                    AutomationFlow.status == FlowStatus.ACTIVE,
                )
                .order_by(AutomationFlowExecution.scheduled_for.asc().nulls_first())
                .limit(limit)
            )
            return list((await session.execute(stmt)).scalars())

    async def load_snapshot(self, execution_id: UUID) -> ExecutionSnapshot | None:
        async with self._session() as session:
            row = (
                await session.execute(
                    select(AutomationFlowExecution, AutomationFlow)
                    .join(AutomationFlow, AutomationFlow.uuid == AutomationFlowExecution.flow_id)
                    .where(AutomationFlowExecution.uuid == execution_id)
                )
            ).one_or_none()
            if row is None:
                return None
            execution, flow = row

            guest_rows = await load_guest_rows(session, execution.guest_id)
            if guest_rows is None:
                return None
            guest, rsvp, event = guest_rows

            return ExecutionSnapshot(
                execution=execution_to_dto(execution),
                flow=flow_to_dto(flow),
                context=build_action_context(
                    guest, rsvp, event, self.frontend_url, custom_message=flow.custom_message
                ),
                responded_at=rsvp.responded_at if rsvp else None,
                maybe_reminder_delay_hours=event.rsvp_maybe_reminder_delay_hours,
            )

    async def last_sent_at(
        self, guest_id: UUID, channel: NotificationChannel | None = None
    ) -> datetime | None:
        async with self._session() as session:
            return await last_notification_sent_at(session, guest_id, channel)

    async def flow_stats(self, event_id: UUID) -> list[FlowStatsDTO]:
        def count(status: ExecutionStatus):
            return func.count(case((AutomationFlowExecution.status == status, 1)))

        async with self._session() as session:
            stmt = (
                select(
                    AutomationFlow,
                    func.count(AutomationFlowExecution.uuid),
                    count(ExecutionStatus.PENDING),
                    count(ExecutionStatus.PROCESSING),
                    count(ExecutionStatus.COMPLETED),
                    count(ExecutionStatus.FAILED),
                    count(ExecutionStatus.SKIPPED),
                )
                .outerjoin(AutomationFlowExecution, AutomationFlowExecution.flow_id == AutomationFlow.uuid)
                .where(AutomationFlow.event_id == event_id)
                .group_by(AutomationFlow.uuid)
                .order_by(AutomationFlow.created_at)
            )
            rows = (await session.execute(stmt)).all()

        return [
            FlowStatsDTO(
                flow_id=flow.uuid,
                name=flow.name,
                trigger=flow.trigger,
                status=flow.status,
                total=total,
                pending=pending,
                processing=processing,
                completed=completed,
                failed=failed,
                skipped=skipped,
            )
            for flow, total, pending, processing, completed, failed, skipped in rows
        ]
