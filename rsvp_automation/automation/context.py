from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from rsvp_automation.automation.dtos import ActionContext
from rsvp_automation.guests.dtos import RsvpStatus
from rsvp_automation.guests.repository.orm_models import Guest, GuestRsvp
from rsvp_automation.guests.repository.read_models import build_rsvp_link
from rsvp_automation.models.event import Event


def build_action_context(
    guest: Guest,
    rsvp: GuestRsvp | None,
    event: Event,
    frontend_url: str,
    custom_message: str | None = None,
) -> ActionContext:
    return ActionContext(
        guest_id=guest.uuid,
        event_id=event.uuid,
        guest_name=guest.name,
        guest_phone=guest.phone_number,
        rsvp_status=RsvpStatus(rsvp.status) if rsvp else RsvpStatus.PENDING,
        guest_count=rsvp.guest_count if rsvp else None,
        table_name=guest.table_name,
        event_title=event.title,
        event_starts_at=event.starts_at,
        event_timezone=event.timezone,
        event_location=event.location,
        event_venue=event.venue,
        rsvp_link=build_rsvp_link(frontend_url, guest.rsvp_token),
        custom_message=custom_message,
    )


async def load_guest_rows(
    session: AsyncSession, guest_id: UUID
) -> tuple[Guest, GuestRsvp | None, Event] | None:
    row = (
        await session.execute(
            select(Guest, GuestRsvp, Event)
            .join(Event, Event.uuid == Guest.event_id)
            .outerjoin(GuestRsvp, GuestRsvp.guest_id == Guest.uuid)
            .where(Guest.uuid == guest_id)
        )
    ).one_or_none()
    if row is None:
        return None
    guest, rsvp, event = row
    return guest, rsvp, event
