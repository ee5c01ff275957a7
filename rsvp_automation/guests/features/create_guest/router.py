from datetime import datetime
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field

from rsvp_automation.guests.dtos import EventNotFoundError, Language, RsvpStatus
from rsvp_automation.guests.features.create_guest.write_model import (
    GuestCreateWriteModel,
    SqlGuestCreateWriteModel,
)
from rsvp_automation.guests.urls import CREATE_GUEST_URL

router = APIRouter()


class CreateGuestRequest(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    phone_number: str | None = None
    preferred_language: Language = Language.EN
    table_name: str | None = None


class RsvpResponse(BaseModel):
    status: RsvpStatus
    guest_count: int | None = None
    responded_at: datetime | None = None


class GuestResponse(BaseModel):
    id: UUID
    event_id: UUID
    name: str
    phone_number: str | None
    rsvp_link: str
    table_name: str | None = None
    rsvp: RsvpResponse | None = None


def get_guest_create_write_model() -> GuestCreateWriteModel:
    """Dependency to get guest creation write model instance."""
    return SqlGuestCreateWriteModel()


@router.post(CREATE_GUEST_URL, response_model=GuestResponse, status_code=201)
async def create_guest(
    event_id: UUID,
    request: CreateGuestRequest,
    write_model: GuestCreateWriteModel = Depends(get_guest_create_write_model),
) -> GuestResponse:
    try:
        guest = await write_model.create_guest(
            event_id=event_id,
            name=request.name,
            phone_number=request.phone_number,
            preferred_language=request.preferred_language,
            table_name=request.table_name,
        )
    except EventNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))

    return GuestResponse(
        id=guest.id,
        event_id=guest.event_id,
        name=guest.name,
        phone_number=guest.phone_number,
        rsvp_link=guest.rsvp_link,
        table_name=guest.table_name,
        rsvp=RsvpResponse(**guest.rsvp.__dict__) if guest.rsvp else None,
    )
