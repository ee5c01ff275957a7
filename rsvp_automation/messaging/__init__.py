from rsvp_automation.config.settings import Settings, settings
from rsvp_automation.messaging.base import MessageSender, MessageSendError, OutboundMessage
from rsvp_automation.messaging.twilio_sender import ConsoleMessageSender, TwilioMessageSender


def get_message_sender(config: Settings = settings) -> MessageSender:
    """Get the configured message sender."""
    if config.twilio_account_sid and config.twilio_auth_token:
        return TwilioMessageSender(config=config)
    return ConsoleMessageSender()


__all__ = [
    "MessageSender",
    "MessageSendError",
    "OutboundMessage",
    "TwilioMessageSender",
    "ConsoleMessageSender",
    "get_message_sender",
]
