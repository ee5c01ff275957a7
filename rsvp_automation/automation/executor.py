import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable, Callable
from datetime import datetime
from typing import Protocol
from uuid import UUID

from rsvp_automation.automation.dtos import ACTIONS, ActionContext, ActionResult, ActionType
from rsvp_automation.config.settings import settings
from rsvp_automation.guests.dtos import (
    INVITATION_TYPES,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
)
from rsvp_automation.guests.phone_numbers import NumberingScheme, to_e164
from rsvp_automation.guests.repository.notification_ledger import NotificationLedger
from rsvp_automation.messaging.base import MessageSender, OutboundMessage
from rsvp_automation.messaging.templates import (
    MessageTemplates,
    format_event_date,
    format_event_time,
    render_message,
)
from rsvp_automation.models.base import utcnow

logger = logging.getLogger(__name__)

NotificationSentHook = Callable[[UUID, NotificationType, NotificationChannel, datetime], Awaitable[None]]

_DEFAULT_BODIES = {
    ActionType.SEND_TABLE_ASSIGNMENT: MessageTemplates.TABLE_ASSIGNMENT,
    ActionType.SEND_WHATSAPP_EVENT_DAY: MessageTemplates.EVENT_DAY,
    ActionType.SEND_WHATSAPP_THANK_YOU: MessageTemplates.THANK_YOU,
    ActionType.SEND_SMS_REMINDER: MessageTemplates.REMINDER,
}


class ExecutorConfig(Protocol):
    twilio_content_sids: dict[str, str]
    phone_country_code: str
    phone_trunk_prefix: str


class ActionExecutor(ABC):
    """Performs one automation action. Retrying is the scheduler's job."""

    @abstractmethod
    async def execute(self, action: ActionType, context: ActionContext) -> ActionResult:
        raise NotImplementedError


def message_variables(context: ActionContext) -> dict[str, str]:
    address = context.event_location or ""
    venue = context.event_venue or address
    return {
        "guestName": context.guest_name,
        "name": context.guest_name,
        "eventTitle": context.event_title,
        "eventDate": format_event_date(context.event_starts_at, context.event_timezone),
        "eventTime": format_event_time(context.event_starts_at, context.event_timezone),
        "venue": venue,
        "location": address,
        "address": address,
        "guestCount": str(context.guest_count) if context.guest_count is not None else "",
        "tableName": context.table_name or "",
        "rsvpLink": context.rsvp_link or "",
    }


def template_variables(context: ActionContext) -> dict[str, str]:
    """Positional variables for the approved WhatsApp content templates."""
    variables = message_variables(context)
    return {
        "1": variables["guestName"],
        "2": variables["eventTitle"],
        "3": variables["eventDate"],
        "4": variables["eventTime"],
        "5": variables["venue"],
        "6": variables["rsvpLink"],
    }


class MessagingActionExecutor(ActionExecutor):
    """Renders the action's message, sends it and appends it to the notification ledger."""

    def __init__(
        self,
        sender: MessageSender,
        ledger: NotificationLedger,
        config: ExecutorConfig = settings,
        on_notification_sent: NotificationSentHook | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._sender = sender
        self._ledger = ledger
        self._config = config
        self._on_notification_sent = on_notification_sent
        self._clock = clock
        self._scheme = NumberingScheme.from_config(config)

    def _body_template(self, action: ActionType, context: ActionContext) -> str | None:
        if context.custom_message:
            return context.custom_message
        if action == ActionType.SEND_WHATSAPP_CONFIRMATION:
            return MessageTemplates.get_confirmation_template(context.rsvp_status)
        return _DEFAULT_BODIES.get(action)

    def _build_message(self, action: ActionType, context: ActionContext) -> OutboundMessage | str:
        """Return the message to send, or the reason it can't be built."""
        spec = ACTIONS[action]
        to = to_e164(context.guest_phone, self._scheme)
        if spec.uses_template:
            content_sid = self._config.twilio_content_sids.get(action.value)
            if not content_sid:
                return f"No WhatsApp template configured for {action.value}"
            return OutboundMessage(
                to=to,
                channel=spec.channel,
                content_sid=content_sid,
                content_variables=template_variables(context),
            )

        template = self._body_template(action, context)
        if not template:
            return f"No message text configured for {action.value}"
        return OutboundMessage(
            to=to,
            channel=spec.channel,
            body=render_message(template, message_variables(context)),
        )

    async def execute(self, action: ActionType, context: ActionContext) -> ActionResult:
        spec = ACTIONS.get(action)
        if spec is None:
            return ActionResult(success=False, message=f"Unknown action: {action}")
        if not context.guest_phone:
            return ActionResult(success=False, message="Guest has no phone number")

        message = self._build_message(action, context)
        if isinstance(message, str):
            return ActionResult(success=False, message=message)

        sent_at = self._clock()
        try:
            sid = await self._sender.send(message)
        except Exception as e:
            logger.warning(f"Failed to send {action.value} to guest {context.guest_id}: {e}")
            await self._ledger.record(
                guest_id=context.guest_id,
                notification_type=spec.notification_type,
                channel=spec.channel,
                status=NotificationStatus.FAILED,
                sent_at=sent_at,
                error_message=str(e),
            )
            return ActionResult(success=False, message=str(e))

        # the message is out: bookkeeping failures are logged, never reported as a failed send
        try:
            await self._ledger.record(
                guest_id=context.guest_id,
                notification_type=spec.notification_type,
                channel=spec.channel,
                status=NotificationStatus.SENT,
                sent_at=sent_at,
                provider_sid=sid,
            )
        except Exception:
            logger.exception(f"Failed to log {action.value} {sid} for guest {context.guest_id}")
        if self._on_notification_sent and spec.notification_type in INVITATION_TYPES:
            try:
                await self._on_notification_sent(
                    context.guest_id, spec.notification_type, spec.channel, sent_at
                )
            except Exception:
                logger.exception(f"Failed to start the no-response clock for guest {context.guest_id}")
        return ActionResult(success=True, message=f"{action.value} sent ({sid})")
