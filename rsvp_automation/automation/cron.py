"""Endpoints an external scheduler calls to drive the automation engine."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel

from rsvp_automation.automation import urls
from rsvp_automation.automation.planner import EventTriggerPlanner
from rsvp_automation.automation.scheduler import AutomationScheduler, ExecutionCleanup
from rsvp_automation.automation.service import build_cleanup, build_planner, build_scheduler
from rsvp_automation.config.settings import get_settings

logger = logging.getLogger(__name__)


def _token_from_authorization(header: str | None) -> str | None:
    if not header:
        return None
    parts = header.split()
    if len(parts) == 2 and parts[0].lower() == "bearer":
        return parts[1]
    return None


def get_cron_secret() -> str:
    """Factory for the expected cron token. Override in tests."""
    return get_settings().cron_secret


async def require_cron_token(request: Request, expected: str = Depends(get_cron_secret)) -> None:
    if not expected:
        return  # no auth configured

    provided = _token_from_authorization(request.headers.get("Authorization"))
    if provided != expected:
        logger.warning(f"Rejected cron call to {request.url.path}: invalid token")
        raise HTTPException(status_code=401, detail="Invalid cron token")


router = APIRouter(dependencies=[Depends(require_cron_token)])


class ProcessResponse(BaseModel):
    processed: int
    succeeded: int
    failed: int
    retried: int
    skipped: int
    deferred: int


class PlanResponse(BaseModel):
    created: int


class CleanupResponse(BaseModel):
    deleted: int


def get_automation_scheduler() -> AutomationScheduler:
    """Factory for the scheduler. Override in tests."""
    return build_scheduler(config=get_settings())


def get_event_trigger_planner() -> EventTriggerPlanner:
    """Factory for the planner. Override in tests."""
    return build_planner(config=get_settings())


def get_execution_cleanup() -> ExecutionCleanup:
    """Factory for the cleanup job. Override in tests."""
    return build_cleanup(config=get_settings())


@router.post(urls.CRON_PROCESS_URL, response_model=ProcessResponse)
async def process_automations(
    scheduler: AutomationScheduler = Depends(get_automation_scheduler),
) -> ProcessResponse:
    result = await scheduler.process_due()
    return ProcessResponse(**result.__dict__)


@router.post(urls.CRON_PLAN_URL, response_model=PlanResponse)
async def plan_event_triggers(
    planner: EventTriggerPlanner = Depends(get_event_trigger_planner),
) -> PlanResponse:
    return PlanResponse(created=await planner.plan())


@router.post(urls.CRON_CLEANUP_URL, response_model=CleanupResponse)
async def cleanup_executions(
    cleanup: ExecutionCleanup = Depends(get_execution_cleanup),
) -> CleanupResponse:
    return CleanupResponse(deleted=await cleanup.run())
