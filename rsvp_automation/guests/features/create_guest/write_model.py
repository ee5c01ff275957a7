"""Write model for adding a guest to an event.

Creates the Guest with a fresh RSVP token and a PENDING RSVP row.
Returns DTOs instead of ORM models.
"""

from abc import ABC, abstractmethod
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rsvp_automation.config.database import async_session_manager
from rsvp_automation.config.settings import settings
from rsvp_automation.guests.dtos import EventNotFoundError, GuestDTO, Language, RsvpStatus
from rsvp_automation.guests.phone_numbers import clean_phone
from rsvp_automation.guests.repository.orm_models import Guest, GuestRsvp
from rsvp_automation.guests.repository.read_models import guest_to_dto
from rsvp_automation.models.event import Event


class GuestCreateWriteModel(ABC):
    @abstractmethod
    async def create_guest(
        self,
        event_id: UUID,
        name: str,
        phone_number: str | None = None,
        preferred_language: Language = Language.EN,
        table_name: str | None = None,
    ) -> GuestDTO:
        """Add a guest to an event with a PENDING RSVP.

        Args:
            event_id: The event the guest is invited to
            name: Display name used in messages
            phone_number: WhatsApp/SMS number in any common format
            preferred_language: Language for messages (default English)
            table_name: Seating assignment, if already known
        """
        raise NotImplementedError


class SqlGuestCreateWriteModel(GuestCreateWriteModel):
    def __init__(
        self,
        session_overwrite: AsyncSession | None = None,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        frontend_url: str | None = None,
    ) -> None:
        self.session_overwrite = session_overwrite
        self.session_maker = session_maker
        self.frontend_url = frontend_url or settings.frontend_url

    async def create_guest(
        self,
        event_id: UUID,
        name: str,
        phone_number: str | None = None,
        preferred_language: Language = Language.EN,
        table_name: str | None = None,
    ) -> GuestDTO:
        async with async_session_manager(
            session_overwrite=self.session_overwrite, session_maker=self.session_maker
        ) as session:
            if await session.get(Event, event_id) is None:
                raise EventNotFoundError(event_id)

            guest = Guest(
                event_id=event_id,
                name=name,
                phone_number=clean_phone(phone_number) or None,
                preferred_language=preferred_language,
                rsvp_token=str(uuid4()),
                table_name=table_name,
            )
            session.add(guest)
            await session.flush()

            rsvp = GuestRsvp(guest_id=guest.uuid, status=RsvpStatus.PENDING)
            session.add(rsvp)
            await session.flush()

            return guest_to_dto(guest, rsvp, self.frontend_url)
