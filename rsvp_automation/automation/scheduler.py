"""Polls due executions, evaluates their triggers and runs their actions."""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime, timedelta
from typing import Protocol
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rsvp_automation.automation.dtos import (
    NO_RESPONSE_TRIGGERS,
    ExecutionStatus,
    ProcessResult,
    TriggerType,
)
from rsvp_automation.automation.executor import ActionExecutor
from rsvp_automation.automation.repository.read_models import ExecutionSnapshot, SqlAutomationReadModel
from rsvp_automation.automation.repository.write_models import SqlExecutionWriteModel
from rsvp_automation.automation.triggers import (
    Abandon,
    Defer,
    TriggerFacts,
    evaluate_trigger,
    is_no_response_trigger,
)
from rsvp_automation.config.settings import settings
from rsvp_automation.models.base import utcnow

logger = logging.getLogger(__name__)


class SchedulerConfig(Protocol):
    automation_batch_size: int
    automation_max_retries: int
    automation_retry_backoff_minutes: int
    action_timeout_seconds: float


class CleanupConfig(Protocol):
    execution_retention_days: int


class AutomationScheduler:
    def __init__(
        self,
        executor: ActionExecutor,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        config: SchedulerConfig = settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.executor = executor
        self.config = config
        self.clock = clock
        self.read_model = SqlAutomationReadModel(session_maker=session_maker)
        self.executions = SqlExecutionWriteModel(session_maker=session_maker)

    async def process_due(self) -> ProcessResult:
        result = ProcessResult()
        execution_ids = await self.read_model.due_execution_ids(
            self.clock(), self.config.automation_batch_size
        )
        for execution_id in execution_ids:
            result.processed += 1
            try:
                await self._process_one(execution_id, result)
            except Exception as e:
                logger.exception(f"Automation execution {execution_id} crashed")
                if await self.executions.fail(execution_id, f"Unhandled error: {e}", self.clock()):
                    result.failed += 1

        if execution_ids:
            logger.info(
                f"Processed {result.processed} executions: {result.succeeded} succeeded, "
                f"{result.failed} failed, {result.retried} retried, {result.skipped} skipped, "
                f"{result.deferred} deferred"
            )
        return result

    async def _facts(self, snapshot: ExecutionSnapshot) -> TriggerFacts:
        flow, context = snapshot.flow, snapshot.context
        last_sent_at = None
        if is_no_response_trigger(flow.trigger):
            last_sent_at = await self.read_model.last_sent_at(
                context.guest_id, NO_RESPONSE_TRIGGERS[flow.trigger].channel
            )
        delay_hours = flow.delay_hours
        if flow.trigger == TriggerType.RSVP_MAYBE:
            delay_hours = snapshot.maybe_reminder_delay_hours
        return TriggerFacts(
            rsvp_status=context.rsvp_status,
            responded_at=snapshot.responded_at,
            last_sent_at=last_sent_at,
            event_starts_at=context.event_starts_at,
            has_table_assignment=bool(context.table_name),
            delay_hours=delay_hours,
            scheduled_for=snapshot.execution.scheduled_for,
            action=flow.action,
        )

    async def _process_one(self, execution_id: UUID, result: ProcessResult) -> None:
        snapshot = await self.read_model.load_snapshot(execution_id)
        if snapshot is None:
            logger.warning(f"Execution {execution_id} has no guest or flow anymore")
            return
        now = self.clock()

        decision = evaluate_trigger(snapshot.flow.trigger, await self._facts(snapshot), now)
        if isinstance(decision, Defer):
            if await self.executions.defer(execution_id, decision.until):
                result.deferred += 1
            return
        if isinstance(decision, Abandon):
            if await self.executions.skip(execution_id, decision.reason, now):
                result.skipped += 1
                logger.info(f"Skipped execution {execution_id}: {decision.reason}")
            return

        if not await self.executions.claim(execution_id):
            logger.debug(f"Execution {execution_id} was claimed by another worker")
            return

        try:
            outcome = await asyncio.wait_for(
                self.executor.execute(snapshot.flow.action, snapshot.context),
                timeout=self.config.action_timeout_seconds,
            )
            success, error = outcome.success, outcome.message
        except asyncio.TimeoutError:
            success, error = False, f"Action timed out after {self.config.action_timeout_seconds}s"
        except Exception as e:
            logger.exception(f"Action {snapshot.flow.action.value} raised for execution {execution_id}")
            success, error = False, str(e)

        if success:
            await self.executions.complete(execution_id, self.clock())
            result.succeeded += 1
            return

        status = await self.executions.record_failure(
            execution_id,
            error,
            self.clock(),
            max_retries=self.config.automation_max_retries,
            backoff=timedelta(minutes=self.config.automation_retry_backoff_minutes),
        )
        if status == ExecutionStatus.PENDING:
            result.retried += 1
            logger.info(f"Execution {execution_id} failed, will retry: {error}")
        elif status == ExecutionStatus.FAILED:
            result.failed += 1
            logger.warning(f"Execution {execution_id} failed permanently: {error}")


class ExecutionCleanup:
    """Deletes finished executions older than the retention window."""

    def __init__(
        self,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        config: CleanupConfig = settings,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.config = config
        self.clock = clock
        self.executions = SqlExecutionWriteModel(session_maker=session_maker)

    async def run(self) -> int:
        cutoff = self.clock() - timedelta(days=self.config.execution_retention_days)
        deleted = await self.executions.delete_finished_before(cutoff)
        logger.info(f"Deleted {deleted} finished executions older than {cutoff.isoformat()}")
        return deleted
