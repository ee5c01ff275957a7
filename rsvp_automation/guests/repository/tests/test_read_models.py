from datetime import timedelta

from rsvp_automation.guests.dtos import NotificationStatus, NotificationType
from rsvp_automation.guests.phone_numbers import phone_variants
from rsvp_automation.guests.repository.read_models import SqlGuestLookupReadModel

CHOICE_TYPES = (NotificationType.INTERACTIVE_INVITE, NotificationType.INTERACTIVE_REMINDER)


async def test_token_must_match_exactly(session_maker, make_event, make_guest, make_notification):
    event = await make_event()
    guest = await make_guest(event)
    other = await make_guest(event, name="Other", phone_number="0521111111")
    # "SM123" is a substring of the other guest's sid
    await make_notification(other, sid="SM1234")
    log = await make_notification(guest, sid="SM123")
    read_model = SqlGuestLookupReadModel(session_maker=session_maker)

    found = await read_model.find_notification_by_token("SM123", CHOICE_TYPES)

    assert found.id == log.uuid
    assert found.guest_id == guest.uuid


async def test_token_ignores_failed_and_other_types(session_maker, make_event, make_guest, make_notification):
    event = await make_event()
    guest = await make_guest(event)
    await make_notification(guest, sid="SM_FAILED", status=NotificationStatus.FAILED)
    await make_notification(guest, notification_type=NotificationType.CONFIRMATION, sid="SM_CONFIRM")
    read_model = SqlGuestLookupReadModel(session_maker=session_maker)

    assert await read_model.find_notification_by_token("SM_FAILED", CHOICE_TYPES) is None
    assert await read_model.find_notification_by_token("SM_CONFIRM", CHOICE_TYPES) is None


async def test_token_accepts_delivered(session_maker, make_event, make_guest, make_notification):
    event = await make_event()
    guest = await make_guest(event)
    await make_notification(guest, sid="SM_DELIVERED", status=NotificationStatus.DELIVERED)
    read_model = SqlGuestLookupReadModel(session_maker=session_maker)

    found = await read_model.find_notification_by_token("SM_DELIVERED", CHOICE_TYPES)

    assert found is not None


async def test_latest_notification_for_phones(session_maker, make_event, make_guest, make_notification, now):
    first_event = await make_event(title="Engagement")
    second_event = await make_event(title="Wedding")
    older = await make_guest(first_event, phone_number="+972584003578")
    newer = await make_guest(second_event, phone_number="0584003578")
    await make_notification(older, sent_at=now - timedelta(days=30))
    latest = await make_notification(newer, sent_at=now - timedelta(days=1))
    read_model = SqlGuestLookupReadModel(session_maker=session_maker)

    found = await read_model.find_latest_notification_for_phones(phone_variants("972584003578"), CHOICE_TYPES)

    assert found.id == latest.uuid
    assert found.guest_id == newer.uuid


async def test_latest_notification_respects_types(session_maker, make_event, make_guest, make_notification):
    event = await make_event()
    guest = await make_guest(event)
    await make_notification(guest, notification_type=NotificationType.GUEST_COUNT_REQUEST)
    read_model = SqlGuestLookupReadModel(session_maker=session_maker)

    assert await read_model.find_latest_notification_for_phones(phone_variants("0584003578"), CHOICE_TYPES) is None
    assert (
        await read_model.find_latest_notification_for_phones(
            phone_variants("0584003578"), CHOICE_TYPES + (NotificationType.GUEST_COUNT_REQUEST,)
        )
        is not None
    )


async def test_guest_by_phones(session_maker, make_event, make_guest):
    event = await make_event()
    guest = await make_guest(event, phone_number="584003578")
    read_model = SqlGuestLookupReadModel(session_maker=session_maker)

    assert await read_model.find_guest_id_by_phones(phone_variants("+972584003578")) == guest.uuid
    assert await read_model.find_guest_id_by_phones(phone_variants("+31612345678")) is None
    assert await read_model.find_guest_id_by_phones([]) is None
