from datetime import datetime
from uuid import UUID

from sqlalchemy import JSON, Enum, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from rsvp_automation.config.table_names import TableNames
from rsvp_automation.guests.dtos import (
    Language,
    NotificationChannel,
    NotificationStatus,
    NotificationType,
    RsvpStatus,
)
from rsvp_automation.models.base import Base, TimeStamp
from rsvp_automation.models.event import Event


class Guest(Base, TimeStamp):
    __tablename__ = TableNames.GUESTS.value

    event_id: Mapped[UUID] = mapped_column(
        ForeignKey(f"{TableNames.EVENTS.value}.uuid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    event: Mapped[Event] = relationship(Event)

    name: Mapped[str] = mapped_column(String(255), nullable=False)
    # Stored without formatting characters; lookups go through phone_variants()
    phone_number: Mapped[str | None] = mapped_column(String(50), nullable=True, index=True)
    preferred_language: Mapped[str] = mapped_column(
        Enum(Language, name="language_enum", values_callable=lambda x: [e.value for e in x]),
        default=Language.EN,
        nullable=False,
    )
    rsvp_token: Mapped[str] = mapped_column(String(36), nullable=False, unique=True, index=True)
    table_name: Mapped[str | None] = mapped_column(String(100), nullable=True)

    rsvp: Mapped["GuestRsvp | None"] = relationship(
        "GuestRsvp", back_populates="guest", uselist=False
    )

    def __repr__(self) -> str:
        return f"<Guest {self.name} ({self.phone_number})>"


class GuestRsvp(Base, TimeStamp):
    __tablename__ = TableNames.GUEST_RSVPS.value

    guest_id: Mapped[UUID] = mapped_column(
        ForeignKey(f"{TableNames.GUESTS.value}.uuid", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    guest: Mapped[Guest] = relationship(Guest, back_populates="rsvp")

    status: Mapped[RsvpStatus] = mapped_column(
        Enum(RsvpStatus, name="rsvp_status_enum", values_callable=lambda x: [e.value for e in x]),
        default=RsvpStatus.PENDING,
        nullable=False,
        index=True,
    )
    # 0 when DECLINED, set only once an ACCEPTED guest picks a count
    guest_count: Mapped[int | None] = mapped_column(Integer, nullable=True)
    responded_at: Mapped[datetime | None] = mapped_column(nullable=True)

    def __repr__(self) -> str:
        return f"<GuestRsvp {self.guest_id} {self.status}>"


class NotificationLog(Base, TimeStamp):
    __tablename__ = TableNames.NOTIFICATION_LOGS.value
    __table_args__ = (
        Index("ix_notification_logs_type_status", "type", "status"),
        Index("ix_notification_logs_guest_sent_at", "guest_id", "sent_at"),
    )

    guest_id: Mapped[UUID] = mapped_column(
        ForeignKey(f"{TableNames.GUESTS.value}.uuid", ondelete="CASCADE"),
        nullable=False,
    )
    type: Mapped[NotificationType] = mapped_column(
        Enum(
            NotificationType,
            name="notification_type_enum",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    channel: Mapped[NotificationChannel] = mapped_column(
        Enum(
            NotificationChannel,
            name="notification_channel_enum",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    status: Mapped[NotificationStatus] = mapped_column(
        Enum(
            NotificationStatus,
            name="notification_status_enum",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=False,
    )
    sent_at: Mapped[datetime] = mapped_column(nullable=False)
    # Serialized provider reply, e.g. {"sid": "SM..."}; the sid is the correlation token
    provider_response: Mapped[str | None] = mapped_column(Text, nullable=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)

    def __repr__(self) -> str:
        return f"<NotificationLog {self.type} to={self.guest_id} status={self.status}>"


class InboundResponse(Base, TimeStamp):
    __tablename__ = TableNames.INBOUND_RESPONSES.value

    guest_id: Mapped[UUID] = mapped_column(
        ForeignKey(f"{TableNames.GUESTS.value}.uuid", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    response_type: Mapped[str] = mapped_column(String(20), nullable=False)  # button | list
    selection_id: Mapped[str] = mapped_column(String(100), nullable=False)
    selection_title: Mapped[str | None] = mapped_column(String(255), nullable=True)
    rsvp_status_set: Mapped[RsvpStatus | None] = mapped_column(
        Enum(
            RsvpStatus,
            name="rsvp_status_enum",
            values_callable=lambda x: [e.value for e in x],
        ),
        nullable=True,
    )
    guest_count_set: Mapped[int | None] = mapped_column(Integer, nullable=True)
    correlation_tier: Mapped[str] = mapped_column(String(20), nullable=False)
    # Twilio MessageSid of the inbound message, unique so redeliveries are absorbed
    provider_message_id: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    raw_payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    processed_at: Mapped[datetime] = mapped_column(nullable=False)

    def __repr__(self) -> str:
        return f"<InboundResponse {self.response_type}:{self.selection_id} guest={self.guest_id}>"
