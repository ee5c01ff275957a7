from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rsvp_automation.config.database import async_session_manager, dialect_insert
from rsvp_automation.correlation.dtos import CorrelationTier
from rsvp_automation.guests.dtos import GuestNotFoundError, RsvpChangeDTO, RsvpStatus
from rsvp_automation.guests.repository.orm_models import Guest, GuestRsvp, InboundResponse
from rsvp_automation.guests.repository.write_models import SqlRsvpWriteModel
from rsvp_automation.models.base import utcnow


@dataclass(frozen=True)
class RecordedReply:
    """Outcome of storing a reply.

    ``duplicate`` means the provider message was stored by an earlier delivery;
    ``rsvp`` then holds the guest's current RSVP, left untouched.
    """

    duplicate: bool
    rsvp: RsvpChangeDTO


class InboundResponseLog(ABC):
    @abstractmethod
    async def record_reply(
        self,
        guest_id: UUID,
        provider_message_id: str,
        response_type: str,
        selection_id: str,
        selection_title: str | None,
        correlation_tier: CorrelationTier,
        raw_payload: dict[str, str],
        rsvp_status_set: RsvpStatus,
        guest_count_set: int | None = None,
    ) -> RecordedReply:
        """Store an inbound reply and set the guest's RSVP it implies, both or neither."""
        raise NotImplementedError


class SqlInboundResponseLog(InboundResponseLog):
    def __init__(
        self,
        session_overwrite: AsyncSession | None = None,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        clock: Callable[[], datetime] = utcnow,
        rsvp_write_model_class: type[SqlRsvpWriteModel] = SqlRsvpWriteModel,
    ) -> None:
        self.session_overwrite = session_overwrite
        self.session_maker = session_maker
        self.clock = clock
        self._rsvp_write_model_class = rsvp_write_model_class

    async def record_reply(
        self,
        guest_id,
        provider_message_id,
        response_type,
        selection_id,
        selection_title,
        correlation_tier,
        raw_payload,
        rsvp_status_set,
        guest_count_set=None,
    ) -> RecordedReply:
        now = self.clock()
        async with async_session_manager(
            session_overwrite=self.session_overwrite, session_maker=self.session_maker
        ) as session:
            stmt = (
                dialect_insert(session, InboundResponse)
                .values(
                    guest_id=guest_id,
                    provider_message_id=provider_message_id,
                    response_type=response_type,
                    selection_id=selection_id,
                    selection_title=selection_title,
                    correlation_tier=correlation_tier.value,
                    raw_payload=raw_payload,
                    rsvp_status_set=rsvp_status_set,
                    guest_count_set=guest_count_set,
                    processed_at=now,
                )
                .on_conflict_do_nothing(index_elements=["provider_message_id"])
                .returning(InboundResponse.uuid)
            )
            if (await session.execute(stmt)).scalar_one_or_none() is None:
                return RecordedReply(duplicate=True, rsvp=await self._current_rsvp(session, guest_id))

            # shares the session, so a failed RSVP write also drops the reply row
            rsvp_write_model = self._rsvp_write_model_class(session_overwrite=session, clock=self.clock)
            change = await rsvp_write_model.set_rsvp(guest_id, rsvp_status_set, guest_count_set)
            return RecordedReply(duplicate=False, rsvp=change)

    async def _current_rsvp(self, session: AsyncSession, guest_id: UUID) -> RsvpChangeDTO:
        row = (
            await session.execute(
                select(Guest.event_id, GuestRsvp.status, GuestRsvp.guest_count)
                .outerjoin(GuestRsvp, GuestRsvp.guest_id == Guest.uuid)
                .where(Guest.uuid == guest_id)
            )
        ).one_or_none()
        if row is None:
            raise GuestNotFoundError(guest_id)
        event_id, status, guest_count = row
        status = RsvpStatus(status) if status else RsvpStatus.PENDING
        return RsvpChangeDTO(
            guest_id=guest_id,
            event_id=event_id,
            status=status,
            guest_count=guest_count,
            previous_status=status,
        )
