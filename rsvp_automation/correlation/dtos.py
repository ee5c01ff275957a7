import hashlib
import json
from dataclasses import dataclass, field
from enum import Enum
from uuid import UUID

from rsvp_automation.guests.dtos import NotificationDTO, NotificationType, RsvpStatus


class CorrelationTier(str, Enum):
    EXACT_TOKEN = "EXACT_TOKEN"
    RECENT_NOTIFICATION = "RECENT_NOTIFICATION"
    DIRECT_PHONE = "DIRECT_PHONE"


class ReplyKind(str, Enum):
    CHOICE = "CHOICE"  # button: accept / decline / maybe
    COUNT = "COUNT"  # list picker: number of guests


# Outbound messages a reply of each kind can be answering
REPLIABLE_TYPES: dict[ReplyKind, tuple[NotificationType, ...]] = {
    ReplyKind.CHOICE: (
        NotificationType.INTERACTIVE_INVITE,
        NotificationType.INTERACTIVE_REMINDER,
    ),
    ReplyKind.COUNT: (
        NotificationType.INTERACTIVE_INVITE,
        NotificationType.INTERACTIVE_REMINDER,
        NotificationType.GUEST_COUNT_REQUEST,
    ),
}


@dataclass(frozen=True)
class Choice:
    status: RsvpStatus
    title: str


CHOICES: dict[str, Choice] = {
    "accept": Choice(RsvpStatus.ACCEPTED, "Yes, I'll attend"),
    "decline": Choice(RsvpStatus.DECLINED, "No, I won't attend"),
    "maybe": Choice(RsvpStatus.MAYBE, "Don't know yet"),
}


@dataclass(frozen=True)
class InboundReply:
    """An inbound WhatsApp message, with the channel prefix stripped from the sender."""

    phone: str
    message_sid: str | None = None
    button_payload: str | None = None
    list_id: str | None = None
    replied_to_sid: str | None = None
    body: str | None = None
    raw: dict[str, str] = field(default_factory=dict)

    @property
    def kind(self) -> ReplyKind | None:
        if self.button_payload:
            return ReplyKind.CHOICE
        if self.list_id:
            return ReplyKind.COUNT
        return None

    @property
    def provider_message_id(self) -> str:
        """Stable id of the inbound message, used to absorb redeliveries."""
        if self.message_sid:
            return self.message_sid
        digest = hashlib.sha256(json.dumps(self.raw, sort_keys=True).encode("utf-8"))
        return f"sha256:{digest.hexdigest()[:48]}"


@dataclass(frozen=True)
class Resolution:
    guest_id: UUID
    tier: CorrelationTier
    notification: NotificationDTO | None = None
