import json
from abc import ABC, abstractmethod
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rsvp_automation.config.database import async_session_manager
from rsvp_automation.guests.dtos import (
    NotificationChannel,
    NotificationDTO,
    NotificationStatus,
    NotificationType,
)
from rsvp_automation.guests.repository.orm_models import NotificationLog


def dump_provider_response(sid: str | None = None, **extra) -> str:
    payload = {"sid": sid} if sid else {}
    payload.update({k: v for k, v in extra.items() if v is not None})
    return json.dumps(payload, sort_keys=True)


def load_correlation_token(provider_response: str | None) -> str | None:
    """Extract the provider message id from a stored provider response blob."""
    if not provider_response:
        return None
    try:
        payload = json.loads(provider_response)
    except ValueError:
        # older rows stored the bare sid
        return provider_response.strip() or None
    if isinstance(payload, dict):
        sid = payload.get("sid")
        return str(sid) if sid else None
    if isinstance(payload, str):
        return payload or None
    return None


class NotificationLedger(ABC):
    """Append-only log of outbound send attempts."""

    @abstractmethod
    async def record(
        self,
        guest_id: UUID,
        notification_type: NotificationType,
        channel: NotificationChannel,
        status: NotificationStatus,
        sent_at: datetime,
        provider_sid: str | None = None,
        error_message: str | None = None,
    ) -> NotificationDTO:
        raise NotImplementedError


class SqlNotificationLedger(NotificationLedger):
    def __init__(
        self,
        session_overwrite: AsyncSession | None = None,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
    ) -> None:
        self.session_overwrite = session_overwrite
        self.session_maker = session_maker

    async def record(
        self,
        guest_id: UUID,
        notification_type: NotificationType,
        channel: NotificationChannel,
        status: NotificationStatus,
        sent_at: datetime,
        provider_sid: str | None = None,
        error_message: str | None = None,
    ) -> NotificationDTO:
        log = NotificationLog(
            guest_id=guest_id,
            type=notification_type,
            channel=channel,
            status=status,
            sent_at=sent_at,
            provider_response=dump_provider_response(provider_sid, error=error_message),
            error_message=error_message,
        )
        async with async_session_manager(
            session_overwrite=self.session_overwrite, session_maker=self.session_maker
        ) as session:
            session.add(log)
            await session.flush()

        return NotificationDTO(
            id=log.uuid,
            guest_id=guest_id,
            type=notification_type,
            channel=channel,
            status=status,
            sent_at=sent_at,
            provider_response=log.provider_response,
        )


class NoOpNotificationLedger(NotificationLedger):
    """No-op implementation for testing or when logging is disabled."""

    async def record(
        self,
        guest_id: UUID,
        notification_type: NotificationType,
        channel: NotificationChannel,
        status: NotificationStatus,
        sent_at: datetime,
        provider_sid: str | None = None,
        error_message: str | None = None,
    ) -> NotificationDTO:
        return NotificationDTO(
            id=uuid4(),
            guest_id=guest_id,
            type=notification_type,
            channel=channel,
            status=status,
            sent_at=sent_at,
            provider_response=dump_provider_response(provider_sid, error=error_message),
        )
