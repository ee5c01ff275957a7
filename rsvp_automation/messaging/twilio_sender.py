import json
import logging
from typing import Protocol
from uuid import uuid4

import httpx

from rsvp_automation.config.settings import settings
from rsvp_automation.guests.dtos import NotificationChannel
from rsvp_automation.messaging.base import MessageSender, MessageSendError, OutboundMessage

logger = logging.getLogger(__name__)


class TwilioConfig(Protocol):
    twilio_account_sid: str
    twilio_auth_token: str
    twilio_whatsapp_from: str
    twilio_sms_from: str
    twilio_api_base_url: str


class TwilioMessageSender(MessageSender):
    """Sends WhatsApp and SMS messages through the Twilio Messages REST API."""

    def __init__(
        self,
        config: TwilioConfig = settings,
        http_client_class: type[httpx.AsyncClient] = httpx.AsyncClient,
    ):
        self._config = config
        self._http_client_class = http_client_class

    def _addresses(self, message: OutboundMessage) -> tuple[str, str]:
        if message.channel == NotificationChannel.WHATSAPP:
            return f"whatsapp:{message.to}", f"whatsapp:{self._config.twilio_whatsapp_from}"
        return message.to, self._config.twilio_sms_from

    async def send(self, message: OutboundMessage) -> str:
        to_address, from_address = self._addresses(message)
        data = {"To": to_address, "From": from_address}
        if message.content_sid:
            data["ContentSid"] = message.content_sid
            data["ContentVariables"] = json.dumps(message.content_variables)
        else:
            data["Body"] = message.body or ""

        url = (
            f"{self._config.twilio_api_base_url}/Accounts/"
            f"{self._config.twilio_account_sid}/Messages.json"
        )
        async with self._http_client_class() as client:
            response = await client.post(
                url,
                data=data,
                auth=(self._config.twilio_account_sid, self._config.twilio_auth_token),
            )

        if response.status_code >= 400:
            try:
                error = response.json()
            except ValueError:
                error = {"message": response.text}
            raise MessageSendError(
                f"Twilio error {error.get('code', response.status_code)}: {error.get('message')}"
            )

        sid = response.json().get("sid")
        if not sid:
            raise MessageSendError("Twilio response did not include a message sid")
        logger.info(f"Sent {message.channel.value} message {sid} to {message.to}")
        return sid


class ConsoleMessageSender(MessageSender):
    """Logs messages instead of sending them, for local development."""

    async def send(self, message: OutboundMessage) -> str:
        sid = f"local-{uuid4().hex}"
        logger.info(
            f"[{message.channel.value}] to={message.to} sid={sid} "
            f"content_sid={message.content_sid} body={message.body!r}"
        )
        return sid
