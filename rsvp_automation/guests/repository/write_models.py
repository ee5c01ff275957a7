"""RSVP write model. Returns DTOs, never ORM models."""

from abc import ABC, abstractmethod
from collections.abc import Callable
from datetime import datetime
from uuid import UUID

from sqlalchemy import case, literal, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rsvp_automation.config.database import async_session_manager, dialect_insert
from rsvp_automation.guests.dtos import (
    GuestNotFoundError,
    InvalidGuestCountError,
    RsvpChangeDTO,
    RsvpStatus,
)
from rsvp_automation.guests.repository.orm_models import Guest, GuestRsvp
from rsvp_automation.models.base import UTCDateTime, utcnow


class RsvpWriteModel(ABC):
    @abstractmethod
    async def set_rsvp(
        self,
        guest_id: UUID,
        status: RsvpStatus,
        guest_count: int | None = None,
    ) -> RsvpChangeDTO:
        """Set the RSVP for a guest to ``status`` (and ``guest_count`` when ACCEPTED).

        Idempotent: setting the same value twice keeps status, count and
        ``responded_at`` as they were.
        """
        raise NotImplementedError


class SqlRsvpWriteModel(RsvpWriteModel):
    def __init__(
        self,
        session_overwrite: AsyncSession | None = None,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.session_overwrite = session_overwrite
        self.session_maker = session_maker
        self.clock = clock

    def set_session_overwrite(self, session: AsyncSession) -> None:
        self.session_overwrite = session

    async def set_rsvp(
        self,
        guest_id: UUID,
        status: RsvpStatus,
        guest_count: int | None = None,
    ) -> RsvpChangeDTO:
        if guest_count is not None and (status != RsvpStatus.ACCEPTED or guest_count < 1):
            raise InvalidGuestCountError(guest_count)

        async with async_session_manager(
            session_overwrite=self.session_overwrite, session_maker=self.session_maker
        ) as session:
            row = (
                await session.execute(
                    select(Guest.event_id, GuestRsvp.status)
                    .outerjoin(GuestRsvp, GuestRsvp.guest_id == Guest.uuid)
                    .where(Guest.uuid == guest_id)
                )
            ).one_or_none()
            if row is None:
                raise GuestNotFoundError(guest_id)
            event_id, previous_status = row

            now = literal(self.clock(), UTCDateTime())
            unchanged = GuestRsvp.status == status

            if status == RsvpStatus.ACCEPTED:
                new_count = guest_count
                # a repeated "accept" must not wipe a count the guest already picked
                count_on_conflict = (
                    guest_count
                    if guest_count is not None
                    else case((unchanged, GuestRsvp.guest_count), else_=None)
                )
            elif status == RsvpStatus.DECLINED:
                new_count = count_on_conflict = 0
            else:
                new_count = count_on_conflict = None

            if status == RsvpStatus.PENDING:
                responded_at = responded_on_conflict = None
            else:
                responded_at = now
                responded_on_conflict = case((unchanged, GuestRsvp.responded_at), else_=now)

            stmt = dialect_insert(session, GuestRsvp).values(
                guest_id=guest_id,
                status=status,
                guest_count=new_count,
                responded_at=responded_at,
            )
            stmt = stmt.on_conflict_do_update(
                index_elements=[GuestRsvp.guest_id],
                set_={
                    "status": status,
                    "guest_count": count_on_conflict,
                    "responded_at": responded_on_conflict,
                    "updated_at": now,
                },
            ).returning(GuestRsvp.guest_count)
            stored_count = (await session.execute(stmt)).scalar_one()

        return RsvpChangeDTO(
            guest_id=guest_id,
            event_id=event_id,
            status=status,
            guest_count=stored_count,
            previous_status=RsvpStatus(previous_status) if previous_status else None,
        )
