"""Automation flow and execution write models.

Execution state changes are single conditional statements (insert-on-conflict,
or an UPDATE guarded by the expected current status) so that overlapping
pollers and webhook handlers can't interleave into an invalid state.
"""

from collections.abc import Iterable
from datetime import datetime, timedelta
from uuid import UUID

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rsvp_automation.automation.dtos import (
    TERMINAL_EXECUTION_STATUSES,
    ActionType,
    ExecutionDTO,
    ExecutionNotFoundError,
    ExecutionStatus,
    FlowAlreadyExistsError,
    FlowDTO,
    FlowNotFoundError,
    FlowStatus,
    TriggerType,
)
from rsvp_automation.automation.repository.orm_models import AutomationFlow, AutomationFlowExecution
from rsvp_automation.automation.repository.read_models import execution_to_dto, flow_to_dto
from rsvp_automation.config.database import async_session_manager, dialect_insert

Execution = AutomationFlowExecution


class SqlAutomationFlowWriteModel:
    def __init__(
        self,
        session_overwrite: AsyncSession | None = None,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.session_overwrite = session_overwrite
        self.session_maker = session_maker

    def _session(self):
        return async_session_manager(
            session_overwrite=self.session_overwrite, session_maker=self.session_maker
        )

    async def create_flow(
        self,
        event_id: UUID,
        name: str,
        trigger: TriggerType,
        action: ActionType,
        delay_hours: int | None = None,
        custom_message: str | None = None,
        template_name: str | None = None,
        status: FlowStatus = FlowStatus.DRAFT,
    ) -> FlowDTO:
        flow = AutomationFlow(
            event_id=event_id,
            name=name,
            trigger=trigger,
            action=action,
            delay_hours=delay_hours,
            custom_message=custom_message,
            template_name=template_name,
            status=status,
        )
        try:
            async with self._session() as session:
                existing = await self._find_flow(session, event_id, trigger)
                if existing is not None:
                    raise FlowAlreadyExistsError(event_id, trigger)
                session.add(flow)
                await session.flush()
        except IntegrityError as e:
            # lost a race with another request creating the same flow
            raise FlowAlreadyExistsError(event_id, trigger) from e
        return flow_to_dto(flow)

    async def _find_flow(
        self, session: AsyncSession, event_id: UUID, trigger: TriggerType
    ) -> AutomationFlow | None:
        stmt = select(AutomationFlow).where(
            AutomationFlow.event_id == event_id, AutomationFlow.trigger == trigger
        )
        return (await session.execute(stmt)).scalar_one_or_none()

    async def find_flow(self, event_id: UUID, trigger: TriggerType) -> FlowDTO | None:
        async with self._session() as session:
            flow = await self._find_flow(session, event_id, trigger)
            return flow_to_dto(flow) if flow else None

    async def get_flow(self, flow_id: UUID) -> FlowDTO:
        async with self._session() as session:
            flow = await session.get(AutomationFlow, flow_id)
            if flow is None:
                raise FlowNotFoundError(flow_id)
            return flow_to_dto(flow)

    async def get_or_create_flow(
        self,
        event_id: UUID,
        name: str,
        trigger: TriggerType,
        action: ActionType,
        delay_hours: int | None,
        status: FlowStatus,
    ) -> FlowDTO:
        """Return the event's flow for ``trigger``, creating it if there is none."""
        async with self._session() as session:
            stmt = (
                dialect_insert(session, AutomationFlow)
                .values(
                    event_id=event_id,
                    name=name,
                    trigger=trigger,
                    action=action,
                    delay_hours=delay_hours,
                    status=status,
                )
                .on_conflict_do_nothing(index_elements=["event_id", "trigger"])
            )
            await session.execute(stmt)
            flow = await self._find_flow(session, event_id, trigger)
            return flow_to_dto(flow)

    async def set_status(self, flow_id: UUID, status: FlowStatus) -> FlowDTO:
        async with self._session() as session:
            flow = await session.get(AutomationFlow, flow_id)
            if flow is None:
                raise FlowNotFoundError(flow_id)
            flow.status = status
            await session.flush()
            return flow_to_dto(flow)

    async def list_flows(
        self,
        event_id: UUID,
        triggers: Iterable[TriggerType] | None = None,
        status: FlowStatus | None = FlowStatus.ACTIVE,
    ) -> list[FlowDTO]:
        async with self._session() as session:
            stmt = select(AutomationFlow).where(AutomationFlow.event_id == event_id)
            if status is not None:
                stmt = stmt.where(AutomationFlow.status == status)
            if triggers is not None:
                stmt = stmt.where(AutomationFlow.trigger.in_(list(triggers)))
            stmt = stmt.order_by(AutomationFlow.created_at)
            return [flow_to_dto(flow) for flow in (await session.execute(stmt)).scalars()]


class SqlExecutionWriteModel:
    def __init__(
        self,
        session_overwrite: AsyncSession | None = None,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.session_overwrite = session_overwrite
        self.session_maker = session_maker

    def _session(self):
        return async_session_manager(
            session_overwrite=self.session_overwrite, session_maker=self.session_maker
        )

    async def _transition(self, execution_id: UUID, expected: ExecutionStatus, **values) -> bool:
        async with self._session() as session:
            result = await session.execute(
                update(Execution)
                .where(Execution.uuid == execution_id, Execution.status == expected)
                .values(**values)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    async def create_if_absent(
        self, flow_id: UUID, guest_id: UUID, scheduled_for: datetime | None
    ) -> bool:
        """Insert a PENDING execution unless (flow, guest) already has one. True if inserted."""
        async with self._session() as session:
            stmt = (
                dialect_insert(session, Execution)
                .values(
                    flow_id=flow_id,
                    guest_id=guest_id,
                    status=ExecutionStatus.PENDING,
                    scheduled_for=scheduled_for,
                    retry_count=0,
                )
                .on_conflict_do_nothing(index_elements=["flow_id", "guest_id"])
                .returning(Execution.uuid)
            )
            return (await session.execute(stmt)).scalar_one_or_none() is not None

    async def rearm(self, flow_id: UUID, guest_id: UUID, scheduled_for: datetime | None) -> bool:
        """Upsert (flow, guest) back to a fresh PENDING execution.

        An execution that is being sent right now is left alone. True if a row
        was written.
        """
        async with self._session() as session:
            stmt = dialect_insert(session, Execution).values(
                flow_id=flow_id,
                guest_id=guest_id,
                status=ExecutionStatus.PENDING,
                scheduled_for=scheduled_for,
                retry_count=0,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=["flow_id", "guest_id"],
                set_={
                    "status": ExecutionStatus.PENDING,
                    "scheduled_for": scheduled_for,
                    "retry_count": 0,
                    "error_message": None,
                    "executed_at": None,
                },
                where=Execution.status != ExecutionStatus.PROCESSING,
            ).returning(Execution.uuid)
            return (await session.execute(stmt)).scalar_one_or_none() is not None

    async def reschedule_pending(
        self, flow_id: UUID, guest_id: UUID, scheduled_for: datetime | None
    ) -> bool:
        async with self._session() as session:
            result = await session.execute(
                update(Execution)
                .where(
                    Execution.flow_id == flow_id,
                    Execution.guest_id == guest_id,
                    Execution.status == ExecutionStatus.PENDING,
                )
                .values(scheduled_for=scheduled_for)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    async def defer(self, execution_id: UUID, until: datetime) -> bool:
        return await self._transition(execution_id, ExecutionStatus.PENDING, scheduled_for=until)

    async def skip(self, execution_id: UUID, reason: str, now: datetime) -> bool:
        return await self._transition(
            execution_id,
            ExecutionStatus.PENDING,
            status=ExecutionStatus.SKIPPED,
            error_message=reason,
            executed_at=now,
        )

    async def claim(self, execution_id: UUID) -> bool:
        """PENDING -> PROCESSING. False means someone else got there first."""
        return await self._transition(
            execution_id, ExecutionStatus.PENDING, status=ExecutionStatus.PROCESSING
        )

    async def complete(self, execution_id: UUID, now: datetime) -> bool:
        return await self._transition(
            execution_id,
            ExecutionStatus.PROCESSING,
            status=ExecutionStatus.COMPLETED,
            error_message=None,
            executed_at=now,
        )

    async def record_failure(
        self,
        execution_id: UUID,
        error: str,
        now: datetime,
        max_retries: int,
        backoff: timedelta,
    ) -> ExecutionStatus | None:
        """Count a failed attempt: re-arm with a flat backoff, or FAILED once retries run out.

        Returns the new status, or None if the execution was not PROCESSING.
        """
        processing = (Execution.uuid == execution_id, Execution.status == ExecutionStatus.PROCESSING)
        async with self._session() as session:
            result = await session.execute(
                update(Execution)
                .where(*processing, Execution.retry_count + 1 < max_retries)
                .values(
                    status=ExecutionStatus.PENDING,
                    retry_count=Execution.retry_count + 1,
                    scheduled_for=now + backoff,
                    error_message=error,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return ExecutionStatus.PENDING

            result = await session.execute(
                update(Execution)
                .where(*processing)
                .values(
                    status=ExecutionStatus.FAILED,
                    retry_count=Execution.retry_count + 1,
                    error_message=f"{error} (after {max_retries} attempts)",
                    executed_at=now,
                )
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 1:
                return ExecutionStatus.FAILED
        return None

    async def fail(self, execution_id: UUID, error: str, now: datetime) -> bool:
        async with self._session() as session:
            result = await session.execute(
                update(Execution)
                .where(
                    Execution.uuid == execution_id,
                    Execution.status.in_([ExecutionStatus.PENDING, ExecutionStatus.PROCESSING]),
                )
                .values(status=ExecutionStatus.FAILED, error_message=error, executed_at=now)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount == 1

    async def skip_pending_for_flow(self, flow_id: UUID, reason: str, now: datetime) -> int:
        async with self._session() as session:
            result = await session.execute(
                update(Execution)
                .where(Execution.flow_id == flow_id, Execution.status == ExecutionStatus.PENDING)
                .values(status=ExecutionStatus.SKIPPED, error_message=reason, executed_at=now)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    async def skip_pending_for_guest(
        self, guest_id: UUID, flow_ids: Iterable[UUID], reason: str, now: datetime
    ) -> int:
        flow_ids = list(flow_ids)
        if not flow_ids:
            return 0
        async with self._session() as session:
            result = await session.execute(
                update(Execution)
                .where(
                    Execution.guest_id == guest_id,
                    Execution.flow_id.in_(flow_ids),
                    Execution.status == ExecutionStatus.PENDING,
                )
                .values(status=ExecutionStatus.SKIPPED, error_message=reason, executed_at=now)
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    async def retry_failed_for_flow(self, flow_id: UUID, now: datetime) -> int:
        async with self._session() as session:
            result = await session.execute(
                update(Execution)
                .where(Execution.flow_id == flow_id, Execution.status == ExecutionStatus.FAILED)
                .values(
                    status=ExecutionStatus.PENDING,
                    retry_count=0,
                    scheduled_for=now,
                    error_message=None,
                    executed_at=None,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount

    async def retry_execution(self, execution_id: UUID, now: datetime) -> ExecutionDTO:
        """Put a FAILED or SKIPPED execution back in the queue, due now."""
        async with self._session() as session:
            await session.execute(
                update(Execution)
                .where(
                    Execution.uuid == execution_id,
                    Execution.status.in_([ExecutionStatus.FAILED, ExecutionStatus.SKIPPED]),
                )
                .values(
                    status=ExecutionStatus.PENDING,
                    retry_count=0,
                    scheduled_for=now,
                    error_message=None,
                    executed_at=None,
                )
                .execution_options(synchronize_session=False)
            )
            execution = await session.get(Execution, execution_id, populate_existing=True)
            if execution is None:
                raise ExecutionNotFoundError(execution_id)
            return execution_to_dto(execution)

    async def delete_finished_before(self, cutoff: datetime) -> int:
        async with self._session() as session:
            result = await session.execute(
                delete(Execution)
                .where(
                    Execution.status.in_(TERMINAL_EXECUTION_STATUSES),
                    Execution.executed_at < cutoff,
                )
                .execution_options(synchronize_session=False)
            )
            return result.rowcount
