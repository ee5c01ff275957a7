from datetime import datetime
from typing import Protocol
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from rsvp_automation.automation.hooks import AutomationHooks
from rsvp_automation.guests.dtos import GuestNotFoundError, InvalidGuestCountError, RsvpStatus
from rsvp_automation.guests.repository.write_models import RsvpWriteModel, SqlRsvpWriteModel
from rsvp_automation.guests.urls import UPDATE_RSVP_URL

router = APIRouter()


class RsvpUpdateRequest(BaseModel):
    status: RsvpStatus
    guest_count: int | None = Field(default=None, ge=1)


class RsvpUpdateResponse(BaseModel):
    guest_id: UUID
    status: RsvpStatus
    guest_count: int | None
    previous_status: RsvpStatus | None
    follow_up_at: datetime | None = None


class RsvpHooks(Protocol):
    async def on_rsvp_changed(self, guest_id: UUID, event_id: UUID, status: RsvpStatus) -> None: ...

    async def schedule_maybe_follow_up(self, guest_id: UUID, event_id: UUID) -> datetime | None: ...


def get_rsvp_write_model() -> RsvpWriteModel:
    """Dependency to get RSVP write model instance."""
    return SqlRsvpWriteModel()


def get_rsvp_hooks() -> RsvpHooks:
    """Dependency to get the automation hooks. Override in tests."""
    return AutomationHooks()


@router.put(UPDATE_RSVP_URL, response_model=RsvpUpdateResponse)
async def update_rsvp(
    guest_id: UUID,
    request: RsvpUpdateRequest,
    write_model: RsvpWriteModel = Depends(get_rsvp_write_model),
    hooks: RsvpHooks = Depends(get_rsvp_hooks),
) -> RsvpUpdateResponse:
    """
    Set a guest's RSVP on their behalf (e.g. after a phone call).

    Runs the same automation hooks as a WhatsApp reply: pending no-response
    reminders are dropped, and a MAYBE schedules the follow-up reminder.
    """
    try:
        change = await write_model.set_rsvp(guest_id, request.status, request.guest_count)
    except GuestNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except InvalidGuestCountError as e:
        raise HTTPException(status_code=422, detail=str(e))

    follow_up_at = None
    if change.status_changed:
        await hooks.on_rsvp_changed(change.guest_id, change.event_id, change.status)
        if change.status == RsvpStatus.MAYBE:
            follow_up_at = await hooks.schedule_maybe_follow_up(change.guest_id, change.event_id)

    return RsvpUpdateResponse(
        guest_id=change.guest_id,
        status=change.status,
        guest_count=change.guest_count,
        previous_status=change.previous_status,
        follow_up_at=follow_up_at,
    )
