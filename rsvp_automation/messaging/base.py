from abc import ABC, abstractmethod
from dataclasses import dataclass, field

from rsvp_automation.guests.dtos import NotificationChannel


class MessageSendError(Exception):
    """Raised when the provider refuses a message."""


@dataclass(frozen=True)
class OutboundMessage:
    to: str  # E.164
    channel: NotificationChannel
    body: str | None = None
    content_sid: str | None = None
    content_variables: dict[str, str] = field(default_factory=dict)


class MessageSender(ABC):
    @abstractmethod
    async def send(self, message: OutboundMessage) -> str:
        """Send a message and return the provider's message id."""
        raise NotImplementedError
