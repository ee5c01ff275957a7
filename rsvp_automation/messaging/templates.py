import re
from dataclasses import dataclass
from datetime import datetime
from zoneinfo import ZoneInfo

from rsvp_automation.guests.dtos import RsvpStatus

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@dataclass
class MessageTemplates:
    CONFIRMED = (
        "Thank you {guestName}! We're delighted you'll be joining us for {eventTitle} "
        "on {eventDate} at {venue}. We've noted {guestCount} guest(s)."
    )
    DECLINED = (
        "Thank you for letting us know, {guestName}. We're sorry you can't make it "
        "to {eventTitle} and will miss you."
    )
    MAYBE = (
        "Thanks {guestName}! We understand you're not sure yet. "
        "We'll check in with you again closer to {eventTitle}."
    )
    EVENT_DAY = (
        "Good morning {guestName}! Today is the day. {eventTitle} starts at {eventTime} "
        "at {venue}, {address}. See you there!"
    )
    TABLE_ASSIGNMENT = "Hi {guestName}, welcome to {eventTitle}! You are seated at table {tableName}."
    THANK_YOU = "Dear {guestName}, thank you for celebrating {eventTitle} with us!"
    REMINDER = (
        "Hi {guestName}, we haven't heard from you yet about {eventTitle} on {eventDate}. "
        "Please let us know if you can make it: {rsvpLink}"
    )

    @classmethod
    def get_confirmation_template(cls, status: RsvpStatus) -> str:
        if status == RsvpStatus.ACCEPTED:
            return cls.CONFIRMED
        if status == RsvpStatus.DECLINED:
            return cls.DECLINED
        return cls.MAYBE


def format_event_date(starts_at: datetime, timezone: str) -> str:
    return starts_at.astimezone(ZoneInfo(timezone)).strftime("%d/%m/%Y")


def format_event_time(starts_at: datetime, timezone: str) -> str:
    return starts_at.astimezone(ZoneInfo(timezone)).strftime("%H:%M")


def render_message(template: str, variables: dict[str, str]) -> str:
    """Fill ``{name}`` placeholders; unknown placeholders are left as written."""
    return _PLACEHOLDER.sub(lambda match: variables.get(match.group(1), match.group(0)), template)
