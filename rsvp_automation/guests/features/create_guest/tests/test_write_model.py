"""Tests for SqlGuestCreateWriteModel."""

from uuid import uuid4

import pytest
from sqlalchemy import select

from rsvp_automation.guests.dtos import EventNotFoundError, Language, RsvpStatus
from rsvp_automation.guests.features.create_guest.write_model import SqlGuestCreateWriteModel
from rsvp_automation.guests.repository.orm_models import Guest, GuestRsvp


async def test_create_guest(session_maker, make_event):
    """A new guest gets a token, a PENDING RSVP and a cleaned phone number."""
    event = await make_event()
    write_model = SqlGuestCreateWriteModel(
        session_maker=session_maker, frontend_url="https://rsvp.example.com/"
    )

    result = await write_model.create_guest(
        event_id=event.uuid,
        name="Noa Levi",
        phone_number="058-400 3578",
        preferred_language=Language.HE,
        table_name="Table 4",
    )

    assert result.event_id == event.uuid
    assert result.name == "Noa Levi"
    assert result.phone_number == "0584003578"
    assert result.table_name == "Table 4"
    assert result.rsvp.status == RsvpStatus.PENDING
    assert result.rsvp.guest_count is None
    assert result.rsvp_link == f"https://rsvp.example.com/rsvp/{result.rsvp_token}"

    async with session_maker() as session:
        guest = await session.get(Guest, result.id)
        rsvp = (await session.execute(select(GuestRsvp).where(GuestRsvp.guest_id == result.id))).scalar_one()
    assert guest.preferred_language == Language.HE
    assert rsvp.status == RsvpStatus.PENDING
    assert rsvp.responded_at is None


async def test_create_guest_without_phone(session_maker, make_event):
    event = await make_event()
    write_model = SqlGuestCreateWriteModel(session_maker=session_maker)

    result = await write_model.create_guest(event_id=event.uuid, name="Grandma", phone_number="  ")

    assert result.phone_number is None


async def test_tokens_are_unique(session_maker, make_event):
    event = await make_event()
    write_model = SqlGuestCreateWriteModel(session_maker=session_maker)

    first = await write_model.create_guest(event_id=event.uuid, name="A")
    second = await write_model.create_guest(event_id=event.uuid, name="B")

    assert first.rsvp_token != second.rsvp_token


async def test_create_guest_unknown_event(session_maker):
    write_model = SqlGuestCreateWriteModel(session_maker=session_maker)

    with pytest.raises(EventNotFoundError):
        await write_model.create_guest(event_id=uuid4(), name="Noa")

    async with session_maker() as session:
        assert (await session.execute(select(Guest))).first() is None
