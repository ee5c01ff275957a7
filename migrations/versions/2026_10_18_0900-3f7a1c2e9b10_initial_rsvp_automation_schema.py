"""initial rsvp automation schema

Revision ID: 3f7a1c2e9b10
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "3f7a1c2e9b10"
down_revision = None
branch_labels = None
depends_on = None

rsvp_status_enum = postgresql.ENUM(
    "PENDING", "ACCEPTED", "DECLINED", "MAYBE", name="rsvp_status_enum", create_type=False
)
language_enum = postgresql.ENUM("en", "he", name="language_enum", create_type=False)
notification_type_enum = postgresql.ENUM(
    "INVITE",
    "REMINDER",
    "IMAGE_INVITE",
    "INTERACTIVE_INVITE",
    "INTERACTIVE_REMINDER",
    "GUEST_COUNT_REQUEST",
    "CONFIRMATION",
    "EVENT_DAY",
    "THANK_YOU",
    "TABLE_ASSIGNMENT",
    name="notification_type_enum",
    create_type=False,
)
notification_channel_enum = postgresql.ENUM(
    "WHATSAPP", "SMS", name="notification_channel_enum", create_type=False
)
notification_status_enum = postgresql.ENUM(
    "PENDING", "SENT", "DELIVERED", "FAILED", name="notification_status_enum", create_type=False
)
automation_trigger_enum = postgresql.ENUM(
    "NO_RESPONSE",
    "NO_RESPONSE_WHATSAPP",
    "NO_RESPONSE_SMS",
    "NO_RESPONSE_24H",
    "NO_RESPONSE_48H",
    "NO_RESPONSE_72H",
    "RSVP_CONFIRMED",
    "RSVP_DECLINED",
    "RSVP_MAYBE",
    "EVENT_MORNING",
    "HOURS_BEFORE_EVENT",
    "HOURS_BEFORE_EVENT_2",
    "AFTER_EVENT",
    "DAY_AFTER_MORNING",
    name="automation_trigger_enum",
    create_type=False,
)
automation_action_enum = postgresql.ENUM(
    "SEND_WHATSAPP_INVITE",
    "SEND_WHATSAPP_REMINDER",
    "SEND_WHATSAPP_INTERACTIVE_INVITE",
    "SEND_WHATSAPP_INTERACTIVE_REMINDER",
    "SEND_WHATSAPP_GUEST_COUNT",
    "SEND_WHATSAPP_CONFIRMATION",
    "SEND_TABLE_ASSIGNMENT",
    "SEND_WHATSAPP_EVENT_DAY",
    "SEND_WHATSAPP_THANK_YOU",
    "SEND_CUSTOM_WHATSAPP",
    "SEND_CUSTOM_SMS",
    "SEND_SMS_REMINDER",
    name="automation_action_enum",
    create_type=False,
)
automation_flow_status_enum = postgresql.ENUM(
    "DRAFT", "ACTIVE", "PAUSED", "ARCHIVED", name="automation_flow_status_enum", create_type=False
)
automation_execution_status_enum = postgresql.ENUM(
    "PENDING",
    "PROCESSING",
    "COMPLETED",
    "FAILED",
    "SKIPPED",
    name="automation_execution_status_enum",
    create_type=False,
)

ENUMS = (
    rsvp_status_enum,
    language_enum,
    notification_type_enum,
    notification_channel_enum,
    notification_status_enum,
    automation_trigger_enum,
    automation_action_enum,
    automation_flow_status_enum,
    automation_execution_status_enum,
)


def timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    for enum in ENUMS:
        enum.create(bind, checkfirst=True)

    op.create_table(
        "events",
        sa.Column("uuid", sa.UUID(), nullable=False),
        sa.Column("title", sa.String(length=255), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False, server_default="UTC"),
        sa.Column("location", sa.String(length=500), nullable=True),
        sa.Column("venue", sa.String(length=255), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("rsvp_maybe_reminder_delay_hours", sa.Integer(), nullable=False, server_default="24"),
        sa.Column("rsvp_confirmed_message", sa.Text(), nullable=True),
        sa.Column("rsvp_declined_message", sa.Text(), nullable=True),
        sa.Column("rsvp_maybe_message", sa.Text(), nullable=True),
        *timestamps(),
        sa.PrimaryKeyConstraint("uuid"),
    )
    op.create_index("ix_events_starts_at", "events", ["starts_at"])

    op.create_table(
        "guests",
        sa.Column("uuid", sa.UUID(), nullable=False),
        sa.Column("event_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("phone_number", sa.String(length=50), nullable=True),
        sa.Column("preferred_language", language_enum, nullable=False, server_default="en"),
        sa.Column("rsvp_token", sa.String(length=36), nullable=False),
        sa.Column("table_name", sa.String(length=100), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["event_id"], ["events.uuid"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("uuid"),
    )
    op.create_index("ix_guests_event_id", "guests", ["event_id"])
    op.create_index("ix_guests_phone_number", "guests", ["phone_number"])
    op.create_index("ix_guests_rsvp_token", "guests", ["rsvp_token"], unique=True)

    op.create_table(
        "guest_rsvps",
        sa.Column("uuid", sa.UUID(), nullable=False),
        sa.Column("guest_id", sa.UUID(), nullable=False),
        sa.Column("status", rsvp_status_enum, nullable=False, server_default="PENDING"),
        sa.Column("guest_count", sa.Integer(), nullable=True),
        sa.Column("responded_at", sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["guest_id"], ["guests.uuid"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("uuid"),
        sa.UniqueConstraint("guest_id"),
    )
    op.create_index("ix_guest_rsvps_status", "guest_rsvps", ["status"])

    op.create_table(
        "notification_logs",
        sa.Column("uuid", sa.UUID(), nullable=False),
        sa.Column("guest_id", sa.UUID(), nullable=False),
        sa.Column("type", notification_type_enum, nullable=False),
        sa.Column("channel", notification_channel_enum, nullable=False),
        sa.Column("status", notification_status_enum, nullable=False),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("provider_response", sa.Text(), nullable=True),
        sa.Column("error_message", sa.Text(), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["guest_id"], ["guests.uuid"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("uuid"),
    )
    op.create_index("ix_notification_logs_type_status", "notification_logs", ["type", "status"])
    op.create_index("ix_notification_logs_guest_sent_at", "notification_logs", ["guest_id", "sent_at"])

    op.create_table(
        "inbound_responses",
        sa.Column("uuid", sa.UUID(), nullable=False),
        sa.Column("guest_id", sa.UUID(), nullable=False),
        sa.Column("response_type", sa.String(length=20), nullable=False),
        sa.Column("selection_id", sa.String(length=100), nullable=False),
        sa.Column("selection_title", sa.String(length=255), nullable=True),
        sa.Column("rsvp_status_set", rsvp_status_enum, nullable=True),
        sa.Column("guest_count_set", sa.Integer(), nullable=True),
        sa.Column("correlation_tier", sa.String(length=20), nullable=False),
        sa.Column("provider_message_id", sa.String(length=64), nullable=False),
        sa.Column("raw_payload", sa.JSON(), nullable=False),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=False),
        *timestamps(),
        sa.ForeignKeyConstraint(["guest_id"], ["guests.uuid"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("uuid"),
        sa.UniqueConstraint("provider_message_id"),
    )
    op.create_index("ix_inbound_responses_guest_id", "inbound_responses", ["guest_id"])

    op.create_table(
        "automation_flows",
        sa.Column("uuid", sa.UUID(), nullable=False),
        sa.Column("event_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("trigger", automation_trigger_enum, nullable=False),
        sa.Column("action", automation_action_enum, nullable=False),
        sa.Column("status", automation_flow_status_enum, nullable=False, server_default="DRAFT"),
        sa.Column("delay_hours", sa.Integer(), nullable=True),
        sa.Column("custom_message", sa.Text(), nullable=True),
        sa.Column("template_name", sa.String(length=100), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["event_id"], ["events.uuid"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("uuid"),
        sa.UniqueConstraint("event_id", "trigger", name="uq_automation_flows_event_trigger"),
    )
    op.create_index("ix_automation_flows_event_id", "automation_flows", ["event_id"])

    op.create_table(
        "automation_flow_executions",
        sa.Column("uuid", sa.UUID(), nullable=False),
        sa.Column("flow_id", sa.UUID(), nullable=False),
        sa.Column("guest_id", sa.UUID(), nullable=False),
        sa.Column("status", automation_execution_status_enum, nullable=False, server_default="PENDING"),
        sa.Column("scheduled_for", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retry_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("error_message", sa.Text(), nullable=True),
        sa.Column("executed_at", sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.ForeignKeyConstraint(["flow_id"], ["automation_flows.uuid"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["guest_id"], ["guests.uuid"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("uuid"),
        sa.UniqueConstraint("flow_id", "guest_id", name="uq_automation_executions_flow_guest"),
    )
    op.create_index(
        "ix_automation_executions_status_scheduled_for",
        "automation_flow_executions",
        ["status", "scheduled_for"],
    )
    op.create_index("ix_automation_flow_executions_guest_id", "automation_flow_executions", ["guest_id"])


def downgrade() -> None:
    op.drop_table("automation_flow_executions")
    op.drop_table("automation_flows")
    op.drop_table("inbound_responses")
    op.drop_table("notification_logs")
    op.drop_table("guest_rsvps")
    op.drop_table("guests")
    op.drop_table("events")
    bind = op.get_bind()
    for enum in reversed(ENUMS):
        enum.drop(bind, checkfirst=True)
