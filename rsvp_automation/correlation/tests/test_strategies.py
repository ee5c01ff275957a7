from datetime import UTC, datetime
from uuid import UUID, uuid4

from rsvp_automation.correlation.dtos import REPLIABLE_TYPES, CorrelationTier, InboundReply, ReplyKind
from rsvp_automation.correlation.strategies import ResponseCorrelator
from rsvp_automation.guests.dtos import (
    NotificationChannel,
    NotificationDTO,
    NotificationStatus,
    NotificationType,
)
from rsvp_automation.guests.repository.read_models import GuestLookupReadModel

CHOICE_TYPES = REPLIABLE_TYPES[ReplyKind.CHOICE]


def notification(guest_id: UUID, sid: str) -> NotificationDTO:
    return NotificationDTO(
        id=uuid4(),
        guest_id=guest_id,
        type=NotificationType.INTERACTIVE_INVITE,
        channel=NotificationChannel.WHATSAPP,
        status=NotificationStatus.SENT,
        sent_at=datetime(2026, 8, 1, tzinfo=UTC),
        provider_response=f'{{"sid": "{sid}"}}',
    )


class InMemoryGuestLookupReadModel(GuestLookupReadModel):
    def __init__(self, by_token=None, latest_by_phone=None, guests_by_phone=None):
        self.by_token: dict[str, NotificationDTO] = by_token or {}
        self.latest_by_phone: dict[str, NotificationDTO] = latest_by_phone or {}
        self.guests_by_phone: dict[str, UUID] = guests_by_phone or {}
        self.phone_lookups: list[list[str]] = []

    async def find_notification_by_token(self, token, types):
        found = self.by_token.get(token)
        return found if found and found.type in types else None

    async def find_latest_notification_for_phones(self, phones, types):
        self.phone_lookups.append(list(phones))
        for phone in phones:
            found = self.latest_by_phone.get(phone)
            if found and found.type in types:
                return found
        return None

    async def find_guest_id_by_phones(self, phones):
        for phone in phones:
            if phone in self.guests_by_phone:
                return self.guests_by_phone[phone]
        return None


def reply(replied_to: str | None = None) -> InboundReply:
    return InboundReply(phone="+972584003578", button_payload="accept", replied_to_sid=replied_to)


async def test_exact_token_wins_over_recent_notification():
    answered, newer = uuid4(), uuid4()
    read_model = InMemoryGuestLookupReadModel(
        by_token={"SM_OLD": notification(answered, "SM_OLD")},
        latest_by_phone={"0584003578": notification(newer, "SM_NEW")},
    )

    resolution = await ResponseCorrelator.default(read_model).correlate(reply("SM_OLD"), CHOICE_TYPES)

    assert resolution.guest_id == answered
    assert resolution.tier == CorrelationTier.EXACT_TOKEN
    assert resolution.notification.guest_id == answered


async def test_unknown_token_falls_back_to_phone():
    guest_id = uuid4()
    read_model = InMemoryGuestLookupReadModel(latest_by_phone={"0584003578": notification(guest_id, "SM_1")})

    resolution = await ResponseCorrelator.default(read_model).correlate(reply("SM_GONE"), CHOICE_TYPES)

    assert resolution.guest_id == guest_id
    assert resolution.tier == CorrelationTier.RECENT_NOTIFICATION
    # every stored representation of the number is tried
    assert set(read_model.phone_lookups[0]) >= {"+972584003578", "972584003578", "0584003578", "584003578"}


async def test_direct_phone_is_last_resort():
    guest_id = uuid4()
    read_model = InMemoryGuestLookupReadModel(guests_by_phone={"584003578": guest_id})

    resolution = await ResponseCorrelator.default(read_model).correlate(reply(), CHOICE_TYPES)

    assert resolution.guest_id == guest_id
    assert resolution.tier == CorrelationTier.DIRECT_PHONE
    assert resolution.notification is None


async def test_nothing_matches():
    resolution = await ResponseCorrelator.default(InMemoryGuestLookupReadModel()).correlate(reply("SM_X"), CHOICE_TYPES)

    assert resolution is None
