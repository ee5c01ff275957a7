import abc
from collections.abc import Sequence
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rsvp_automation.config.database import async_session_manager
from rsvp_automation.guests.dtos import (
    DELIVERED_STATUSES,
    GuestDTO,
    NotificationDTO,
    NotificationType,
    RsvpDTO,
    RsvpStatus,
)
from rsvp_automation.guests.repository.notification_ledger import load_correlation_token
from rsvp_automation.guests.repository.orm_models import Guest, GuestRsvp, NotificationLog


def guest_to_dto(guest: Guest, rsvp: GuestRsvp | None, frontend_url: str) -> GuestDTO:
    return GuestDTO(
        id=guest.uuid,
        event_id=guest.event_id,
        name=guest.name,
        phone_number=guest.phone_number,
        rsvp_token=guest.rsvp_token,
        rsvp_link=build_rsvp_link(frontend_url, guest.rsvp_token),
        table_name=guest.table_name,
        rsvp=RsvpDTO(
            status=RsvpStatus(rsvp.status),
            guest_count=rsvp.guest_count,
            responded_at=rsvp.responded_at,
        )
        if rsvp
        else None,
    )


def build_rsvp_link(frontend_url: str, rsvp_token: str) -> str:
    return f"{frontend_url.rstrip('/')}/rsvp/{rsvp_token}"


def _notification_to_dto(log: NotificationLog) -> NotificationDTO:
    return NotificationDTO(
        id=log.uuid,
        guest_id=log.guest_id,
        type=log.type,
        channel=log.channel,
        status=log.status,
        sent_at=log.sent_at,
        provider_response=log.provider_response,
    )


class GuestLookupReadModel(abc.ABC):
    @abc.abstractmethod
    async def find_notification_by_token(
        self, token: str, types: Sequence[NotificationType]
    ) -> NotificationDTO | None:
        """Sent or delivered notification of one of ``types`` whose provider id equals ``token``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def find_latest_notification_for_phones(
        self, phones: Sequence[str], types: Sequence[NotificationType]
    ) -> NotificationDTO | None:
        """Most recent sent or delivered notification to any guest whose phone is in ``phones``."""
        raise NotImplementedError

    @abc.abstractmethod
    async def find_guest_id_by_phones(self, phones: Sequence[str]) -> UUID | None:
        raise NotImplementedError


class SqlGuestLookupReadModel(GuestLookupReadModel):
    def __init__(
        self,
        session_overwrite: AsyncSession | None = None,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.session_overwrite = session_overwrite
        self.session_maker = session_maker

    async def find_notification_by_token(
        self, token: str, types: Sequence[NotificationType]
    ) -> NotificationDTO | None:
        if not token:
            return None
        async with async_session_manager(
            session_overwrite=self.session_overwrite, session_maker=self.session_maker
        ) as session:
            stmt = (
                select(NotificationLog)
                .where(
                    NotificationLog.provider_response.contains(token, autoescape=True),
                    NotificationLog.type.in_(types),
                    NotificationLog.status.in_(DELIVERED_STATUSES),
                )
                .order_by(NotificationLog.sent_at.desc())
            )
            for log in (await session.execute(stmt)).scalars():
                # LIKE narrows the candidates, the parsed token must match exactly
                if load_correlation_token(log.provider_response) == token:
                    return _notification_to_dto(log)
        return None

    async def find_latest_notification_for_phones(
        self, phones: Sequence[str], types: Sequence[NotificationType]
    ) -> NotificationDTO | None:
        if not phones:
            return None
        async with async_session_manager(
            session_overwrite=self.session_overwrite, session_maker=self.session_maker
        ) as session:
            stmt = (
                select(NotificationLog)
                .join(Guest, Guest.uuid == NotificationLog.guest_id)
                .where(
                    Guest.phone_number.in_(phones),
                    NotificationLog.type.in_(types),
                    NotificationLog.status.in_(DELIVERED_STATUSES),
                )
                .order_by(NotificationLog.sent_at.desc())
                .limit(1)
            )
            log = (await session.execute(stmt)).scalar_one_or_none()
            return _notification_to_dto(log) if log else None

    async def find_guest_id_by_phones(self, phones: Sequence[str]) -> UUID | None:
        if not phones:
            return None
        async with async_session_manager(
            session_overwrite=self.session_overwrite, session_maker=self.session_maker
        ) as session:
            stmt = (
                select(Guest.uuid)
                .where(Guest.phone_number.in_(phones))
                .order_by(Guest.created_at.desc())
                .limit(1)
            )
            return (await session.execute(stmt)).scalar_one_or_none()
