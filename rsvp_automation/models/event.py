from datetime import datetime

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from rsvp_automation.config.table_names import TableNames
from rsvp_automation.models.base import Base, TimeStamp


class Event(Base, TimeStamp):
    __tablename__ = TableNames.EVENTS.value

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    starts_at: Mapped[datetime] = mapped_column(nullable=False, index=True)
    timezone: Mapped[str] = mapped_column(String(64), default="UTC", nullable=False)
    location: Mapped[str | None] = mapped_column(String(500), nullable=True)
    venue: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    # Hours after a MAYBE reply before the follow-up reminder goes out
    rsvp_maybe_reminder_delay_hours: Mapped[int] = mapped_column(
        Integer, default=24, nullable=False
    )
    # Optional custom texts for the reply confirmations, with {placeholders}
    rsvp_confirmed_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    rsvp_declined_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    rsvp_maybe_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<Event {self.title} on {self.starts_at}>"
