import logging
from typing import Protocol

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from pydantic import ValidationError
from twilio.request_validator import RequestValidator

from rsvp_automation.config.settings import get_settings
from rsvp_automation.correlation.handler import ReplyHandler
from rsvp_automation.correlation.service import build_reply_handler
from rsvp_automation.webhooks import urls
from rsvp_automation.webhooks.schema import InboundWhatsAppMessage

logger = logging.getLogger(__name__)

router = APIRouter()


class WebhookVerifier(Protocol):
    """Protocol for webhook signature verification."""

    def __call__(self, url: str, params: dict[str, str], signature: str) -> None:
        """Raise if ``signature`` is not valid for ``url`` and ``params``."""
        ...


class TwilioConfig(Protocol):
    twilio_auth_token: str
    webhook_public_url: str


class TwilioSignatureVerifier:
    """Checks X-Twilio-Signature with the account's auth token."""

    def __init__(self, config: TwilioConfig) -> None:
        self._config = config

    def __call__(self, url: str, params: dict[str, str], signature: str) -> None:
        if not self._config.twilio_auth_token:
            raise ValueError("Twilio auth token not configured")
        if not signature:
            raise HTTPException(status_code=401, detail="Missing signature")

        validator = RequestValidator(self._config.twilio_auth_token)
        if not validator.validate(url, params, signature):
            raise HTTPException(status_code=401, detail="Invalid signature")


def get_webhook_verifier() -> WebhookVerifier:
    """Factory for webhook verifier. Override in tests."""
    return TwilioSignatureVerifier(get_settings())


def get_reply_handler() -> ReplyHandler:
    """Factory for the reply handler. Override in tests."""
    return build_reply_handler(config=get_settings())


def signed_url(request: Request) -> str:
    """The URL Twilio computed the signature over."""
    public_url = get_settings().webhook_public_url
    if public_url:
        return public_url.rstrip("/") + request.url.path + (f"?{request.url.query}" if request.url.query else "")
    return str(request.url)


@router.post(urls.TWILIO_WHATSAPP_WEBHOOK_URL)
async def twilio_whatsapp_webhook(
    request: Request,
    background_tasks: BackgroundTasks,
    verifier: WebhookVerifier = Depends(get_webhook_verifier),
    handler: ReplyHandler = Depends(get_reply_handler),
) -> dict[str, str]:
    """
    Receive WhatsApp button and list replies from Twilio.

    The request is verified and acknowledged immediately; matching the reply
    to a guest and updating the RSVP run after the response is sent.
    """
    form = await request.form()
    params = {key: str(value) for key, value in form.items()}

    try:
        verifier(signed_url(request), params, request.headers.get("X-Twilio-Signature", ""))
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Webhook verification error: {e}")
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        message = InboundWhatsAppMessage.model_validate(params)
    except ValidationError as e:
        logger.warning(f"Malformed Twilio payload: {e.errors()}")
        raise HTTPException(status_code=400, detail="Malformed payload")

    reply = message.to_reply(params)
    if reply.kind is None:
        logger.info(f"Non-interactive WhatsApp message from {reply.phone}: {reply.body!r}")
        return {"status": "ignored"}

    background_tasks.add_task(handler.handle, reply)
    return {"status": "received"}
