from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, model_validator

from rsvp_automation.automation import urls
from rsvp_automation.automation.dtos import (
    ActionType,
    ExecutionNotFoundError,
    ExecutionStatus,
    FlowAlreadyExistsError,
    FlowNotFoundError,
    FlowStatus,
    TriggerType,
    UnknownTemplateError,
)
from rsvp_automation.automation.flows import FlowManager
from rsvp_automation.guests.dtos import EventNotFoundError

router = APIRouter()


class CreateFlowRequest(BaseModel):
    """Either ``template_name`` or a custom name/trigger/action."""

    template_name: str | None = None
    name: str | None = None
    trigger: TriggerType | None = None
    action: ActionType | None = None
    delay_hours: int | None = None
    custom_message: str | None = None

    @model_validator(mode="after")
    def check_template_or_custom(self) -> "CreateFlowRequest":
        if self.template_name is None and (self.name is None or self.trigger is None or self.action is None):
            raise ValueError("Provide template_name, or name, trigger and action")
        return self


class FlowResponse(BaseModel):
    id: UUID
    event_id: UUID
    name: str
    trigger: TriggerType
    action: ActionType
    status: FlowStatus
    delay_hours: int | None = None
    custom_message: str | None = None
    template_name: str | None = None


class UpdateFlowStatusRequest(BaseModel):
    status: FlowStatus


class CountResponse(BaseModel):
    count: int


class ExecutionResponse(BaseModel):
    id: UUID
    flow_id: UUID
    guest_id: UUID
    status: ExecutionStatus
    scheduled_for: datetime | None
    retry_count: int


class FlowStatsResponse(BaseModel):
    flow_id: UUID
    name: str
    trigger: TriggerType
    status: FlowStatus
    total: int
    pending: int
    processing: int
    completed: int
    failed: int
    skipped: int


def get_flow_manager() -> FlowManager:
    """Factory for the flow manager. Override in tests."""
    return FlowManager()


@router.post(urls.EVENT_AUTOMATION_FLOWS_URL, response_model=FlowResponse, status_code=201)
async def create_flow(
    event_id: UUID,
    request: CreateFlowRequest,
    manager: FlowManager = Depends(get_flow_manager),
) -> FlowResponse:
    """Create a DRAFT flow from a named template or from a custom trigger/action pair."""
    try:
        if request.template_name is not None:
            flow = await manager.create_from_template(
                event_id, request.template_name, custom_message=request.custom_message
            )
        else:
            flow = await manager.create_custom(
                event_id,
                name=request.name,
                trigger=request.trigger,
                action=request.action,
                delay_hours=request.delay_hours,
                custom_message=request.custom_message,
            )
    except UnknownTemplateError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except FlowAlreadyExistsError as e:
        raise HTTPException(status_code=409, detail=str(e))
    return FlowResponse(**flow.__dict__)


@router.patch(urls.AUTOMATION_FLOW_STATUS_URL, response_model=FlowResponse)
async def update_flow_status(
    flow_id: UUID,
    request: UpdateFlowStatusRequest,
    manager: FlowManager = Depends(get_flow_manager),
) -> FlowResponse:
    try:
        flow = await manager.set_status(flow_id, request.status)
    except FlowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return FlowResponse(**flow.__dict__)


@router.post(urls.AUTOMATION_FLOW_RETRY_FAILED_URL, response_model=CountResponse)
async def retry_failed_executions(
    flow_id: UUID, manager: FlowManager = Depends(get_flow_manager)
) -> CountResponse:
    try:
        return CountResponse(count=await manager.retry_failed(flow_id))
    except FlowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post(urls.AUTOMATION_FLOW_CANCEL_PENDING_URL, response_model=CountResponse)
async def cancel_pending_executions(
    flow_id: UUID, manager: FlowManager = Depends(get_flow_manager)
) -> CountResponse:
    try:
        return CountResponse(count=await manager.cancel_pending(flow_id))
    except FlowNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))


@router.post(urls.AUTOMATION_EXECUTION_RETRY_URL, response_model=ExecutionResponse)
async def retry_execution(
    execution_id: UUID, manager: FlowManager = Depends(get_flow_manager)
) -> ExecutionResponse:
    try:
        execution = await manager.retry_execution(execution_id)
    except ExecutionNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    return ExecutionResponse(
        id=execution.id,
        flow_id=execution.flow_id,
        guest_id=execution.guest_id,
        status=execution.status,
        scheduled_for=execution.scheduled_for,
        retry_count=execution.retry_count,
    )


@router.get(urls.EVENT_AUTOMATION_STATS_URL, response_model=list[FlowStatsResponse])
async def automation_stats(
    event_id: UUID, manager: FlowManager = Depends(get_flow_manager)
) -> list[FlowStatsResponse]:
    return [FlowStatsResponse(**stats.__dict__) for stats in await manager.stats(event_id)]
