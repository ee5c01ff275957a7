"""Immediate answers to a guest's WhatsApp reply (count picker, confirmation)."""

import logging
from abc import ABC, abstractmethod
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rsvp_automation.automation.context import build_action_context, load_guest_rows
from rsvp_automation.automation.dtos import ActionResult, ActionType
from rsvp_automation.automation.executor import ActionExecutor
from rsvp_automation.config.database import async_session_manager
from rsvp_automation.config.settings import settings
from rsvp_automation.guests.dtos import RsvpStatus
from rsvp_automation.models.event import Event

logger = logging.getLogger(__name__)


class ReplySender(ABC):
    @abstractmethod
    async def request_guest_count(self, guest_id: UUID) -> None:
        raise NotImplementedError

    @abstractmethod
    async def send_confirmation(self, guest_id: UUID) -> None:
        raise NotImplementedError


def event_confirmation_message(event: Event, status: RsvpStatus) -> str | None:
    """The event's own confirmation text for ``status``, if the owner wrote one."""
    if status == RsvpStatus.ACCEPTED:
        return event.rsvp_confirmed_message
    if status == RsvpStatus.DECLINED:
        return event.rsvp_declined_message
    if status == RsvpStatus.MAYBE:
        return event.rsvp_maybe_message
    return None


class ExecutorReplySender(ReplySender):
    """Sends replies through the action executor, so they land in the notification ledger."""

    def __init__(
        self,
        executor: ActionExecutor,
        session_maker: async_sessionmaker[AsyncSession] | None = None,
        frontend_url: str | None = None,
    ) -> None:
        self.executor = executor
        self.session_maker = session_maker
        self.frontend_url = frontend_url or settings.frontend_url

    async def _send(self, action: ActionType, guest_id: UUID) -> ActionResult | None:
        async with async_session_manager(session_maker=self.session_maker) as session:
            rows = await load_guest_rows(session, guest_id)
            if rows is None:
                logger.warning(f"Guest {guest_id} disappeared before {action.value} could be sent")
                return None
            guest, rsvp, event = rows
            context = build_action_context(guest, rsvp, event, self.frontend_url)
            if action == ActionType.SEND_WHATSAPP_CONFIRMATION:
                context = build_action_context(
                    guest,
                    rsvp,
                    event,
                    self.frontend_url,
                    custom_message=event_confirmation_message(event, context.rsvp_status),
                )

        result = await self.executor.execute(action, context)
        if not result.success:
            logger.warning(f"{action.value} to guest {guest_id} failed: {result.message}")
        return result

    async def request_guest_count(self, guest_id: UUID) -> None:
        await self._send(ActionType.SEND_WHATSAPP_GUEST_COUNT, guest_id)

    async def send_confirmation(self, guest_id: UUID) -> None:
        await self._send(ActionType.SEND_WHATSAPP_CONFIRMATION, guest_id)
