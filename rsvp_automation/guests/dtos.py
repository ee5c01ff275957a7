from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID


class GuestNotFoundError(Exception):
    """Raised when a guest id does not exist."""

    def __init__(self, guest_id: UUID) -> None:
        self.guest_id = guest_id
        super().__init__(f"Guest '{guest_id}' not found")


class EventNotFoundError(Exception):
    """Raised when an event id does not exist."""

    def __init__(self, event_id: UUID) -> None:
        self.event_id = event_id
        super().__init__(f"Event '{event_id}' not found")


class InvalidGuestCountError(ValueError):
    """Raised when a guest count is not a positive integer."""

    def __init__(self, value: object) -> None:
        self.value = value
        super().__init__(f"Invalid guest count: {value!r}")


class RsvpStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    DECLINED = "DECLINED"
    MAYBE = "MAYBE"


class Language(str, Enum):
    EN = "en"
    HE = "he"


class NotificationType(str, Enum):
    INVITE = "INVITE"
    REMINDER = "REMINDER"
    IMAGE_INVITE = "IMAGE_INVITE"
    INTERACTIVE_INVITE = "INTERACTIVE_INVITE"
    INTERACTIVE_REMINDER = "INTERACTIVE_REMINDER"
    GUEST_COUNT_REQUEST = "GUEST_COUNT_REQUEST"
    CONFIRMATION = "CONFIRMATION"
    EVENT_DAY = "EVENT_DAY"
    THANK_YOU = "THANK_YOU"
    TABLE_ASSIGNMENT = "TABLE_ASSIGNMENT"


class NotificationChannel(str, Enum):
    WHATSAPP = "WHATSAPP"
    SMS = "SMS"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    FAILED = "FAILED"


# Outbound messages that start the "waiting for a reply" clock
INVITATION_TYPES = (
    NotificationType.INVITE,
    NotificationType.REMINDER,
    NotificationType.IMAGE_INVITE,
    NotificationType.INTERACTIVE_INVITE,
    NotificationType.INTERACTIVE_REMINDER,
)

# A send counts as delivered to the guest once the provider accepted it
DELIVERED_STATUSES = (NotificationStatus.SENT, NotificationStatus.DELIVERED)


@dataclass(frozen=True)
class RsvpDTO:
    status: RsvpStatus
    guest_count: int | None = None
    responded_at: datetime | None = None


@dataclass(frozen=True)
class GuestDTO:
    id: UUID
    event_id: UUID
    name: str
    phone_number: str | None
    rsvp_token: str
    rsvp_link: str
    table_name: str | None = None
    rsvp: RsvpDTO | None = None


@dataclass(frozen=True)
class RsvpChangeDTO:
    """Result of setting a guest's RSVP."""

    guest_id: UUID
    event_id: UUID
    status: RsvpStatus
    guest_count: int | None
    previous_status: RsvpStatus | None

    @property
    def status_changed(self) -> bool:
        return self.previous_status != self.status


@dataclass(frozen=True)
class NotificationDTO:
    id: UUID
    guest_id: UUID
    type: NotificationType
    channel: NotificationChannel
    status: NotificationStatus
    sent_at: datetime
    provider_response: str | None = None
