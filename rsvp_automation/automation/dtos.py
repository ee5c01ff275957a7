from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from uuid import UUID

from rsvp_automation.guests.dtos import NotificationChannel, NotificationType, RsvpStatus


class FlowAlreadyExistsError(Exception):
    """Raised when an event already has a flow for the trigger."""

    def __init__(self, event_id: UUID, trigger: "TriggerType") -> None:
        self.event_id = event_id
        self.trigger = trigger
        super().__init__(f"Event '{event_id}' already has an automation for {trigger.value}")


class FlowNotFoundError(Exception):
    def __init__(self, flow_id: UUID) -> None:
        self.flow_id = flow_id
        super().__init__(f"Automation flow '{flow_id}' not found")


class ExecutionNotFoundError(Exception):
    def __init__(self, execution_id: UUID) -> None:
        self.execution_id = execution_id
        super().__init__(f"Automation execution '{execution_id}' not found")


class UnknownTemplateError(Exception):
    def __init__(self, template_name: str) -> None:
        self.template_name = template_name
        super().__init__(f"Unknown automation template '{template_name}'")


class TriggerType(str, Enum):
    # No reply since the last invitation / reminder
    NO_RESPONSE = "NO_RESPONSE"
    NO_RESPONSE_WHATSAPP = "NO_RESPONSE_WHATSAPP"
    NO_RESPONSE_SMS = "NO_RESPONSE_SMS"
    NO_RESPONSE_24H = "NO_RESPONSE_24H"
    NO_RESPONSE_48H = "NO_RESPONSE_48H"
    NO_RESPONSE_72H = "NO_RESPONSE_72H"
    # Guest moved into an RSVP state
    RSVP_CONFIRMED = "RSVP_CONFIRMED"
    RSVP_DECLINED = "RSVP_DECLINED"
    RSVP_MAYBE = "RSVP_MAYBE"
    # Relative to the event calendar
    EVENT_MORNING = "EVENT_MORNING"
    HOURS_BEFORE_EVENT = "HOURS_BEFORE_EVENT"
    HOURS_BEFORE_EVENT_2 = "HOURS_BEFORE_EVENT_2"
    AFTER_EVENT = "AFTER_EVENT"
    DAY_AFTER_MORNING = "DAY_AFTER_MORNING"


class ActionType(str, Enum):
    SEND_WHATSAPP_INVITE = "SEND_WHATSAPP_INVITE"
    SEND_WHATSAPP_REMINDER = "SEND_WHATSAPP_REMINDER"
    SEND_WHATSAPP_INTERACTIVE_INVITE = "SEND_WHATSAPP_INTERACTIVE_INVITE"
    SEND_WHATSAPP_INTERACTIVE_REMINDER = "SEND_WHATSAPP_INTERACTIVE_REMINDER"
    SEND_WHATSAPP_GUEST_COUNT = "SEND_WHATSAPP_GUEST_COUNT"
    SEND_WHATSAPP_CONFIRMATION = "SEND_WHATSAPP_CONFIRMATION"
    SEND_TABLE_ASSIGNMENT = "SEND_TABLE_ASSIGNMENT"
    SEND_WHATSAPP_EVENT_DAY = "SEND_WHATSAPP_EVENT_DAY"
    SEND_WHATSAPP_THANK_YOU = "SEND_WHATSAPP_THANK_YOU"
    SEND_CUSTOM_WHATSAPP = "SEND_CUSTOM_WHATSAPP"
    SEND_CUSTOM_SMS = "SEND_CUSTOM_SMS"
    SEND_SMS_REMINDER = "SEND_SMS_REMINDER"


class FlowStatus(str, Enum):
    DRAFT = "DRAFT"
    ACTIVE = "ACTIVE"
    PAUSED = "PAUSED"
    ARCHIVED = "ARCHIVED"


class ExecutionStatus(str, Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


TERMINAL_EXECUTION_STATUSES = (
    ExecutionStatus.COMPLETED,
    ExecutionStatus.FAILED,
    ExecutionStatus.SKIPPED,
)


@dataclass(frozen=True)
class NoResponseRule:
    # None means the flow's delay_hours (default 24) applies
    fixed_hours: int | None
    channel: NotificationChannel | None


NO_RESPONSE_TRIGGERS: dict[TriggerType, NoResponseRule] = {
    TriggerType.NO_RESPONSE: NoResponseRule(None, None),
    TriggerType.NO_RESPONSE_WHATSAPP: NoResponseRule(None, NotificationChannel.WHATSAPP),
    TriggerType.NO_RESPONSE_SMS: NoResponseRule(None, NotificationChannel.SMS),
    TriggerType.NO_RESPONSE_24H: NoResponseRule(24, None),
    TriggerType.NO_RESPONSE_48H: NoResponseRule(48, None),
    TriggerType.NO_RESPONSE_72H: NoResponseRule(72, None),
}

RSVP_STATE_TRIGGERS: dict[TriggerType, RsvpStatus] = {
    TriggerType.RSVP_CONFIRMED: RsvpStatus.ACCEPTED,
    TriggerType.RSVP_DECLINED: RsvpStatus.DECLINED,
    TriggerType.RSVP_MAYBE: RsvpStatus.MAYBE,
}

CALENDAR_TRIGGERS = frozenset(
    {
        TriggerType.EVENT_MORNING,
        TriggerType.HOURS_BEFORE_EVENT,
        TriggerType.HOURS_BEFORE_EVENT_2,
        TriggerType.AFTER_EVENT,
        TriggerType.DAY_AFTER_MORNING,
    }
)

DEFAULT_NO_RESPONSE_DELAY_HOURS = 24


@dataclass(frozen=True)
class ActionSpec:
    notification_type: NotificationType
    channel: NotificationChannel
    # Sent as an approved WhatsApp content template rather than free text
    uses_template: bool


ACTIONS: dict[ActionType, ActionSpec] = {
    ActionType.SEND_WHATSAPP_INVITE: ActionSpec(
        NotificationType.INVITE, NotificationChannel.WHATSAPP, True
    ),
    ActionType.SEND_WHATSAPP_REMINDER: ActionSpec(
        NotificationType.REMINDER, NotificationChannel.WHATSAPP, True
    ),
    ActionType.SEND_WHATSAPP_INTERACTIVE_INVITE: ActionSpec(
        NotificationType.INTERACTIVE_INVITE, NotificationChannel.WHATSAPP, True
    ),
    ActionType.SEND_WHATSAPP_INTERACTIVE_REMINDER: ActionSpec(
        NotificationType.INTERACTIVE_REMINDER, NotificationChannel.WHATSAPP, True
    ),
    ActionType.SEND_WHATSAPP_GUEST_COUNT: ActionSpec(
        NotificationType.GUEST_COUNT_REQUEST, NotificationChannel.WHATSAPP, True
    ),
    ActionType.SEND_WHATSAPP_CONFIRMATION: ActionSpec(
        NotificationType.CONFIRMATION, NotificationChannel.WHATSAPP, False
    ),
    ActionType.SEND_TABLE_ASSIGNMENT: ActionSpec(
        NotificationType.TABLE_ASSIGNMENT, NotificationChannel.WHATSAPP, False
    ),
    ActionType.SEND_WHATSAPP_EVENT_DAY: ActionSpec(
        NotificationType.EVENT_DAY, NotificationChannel.WHATSAPP, False
    ),
    ActionType.SEND_WHATSAPP_THANK_YOU: ActionSpec(
        NotificationType.THANK_YOU, NotificationChannel.WHATSAPP, False
    ),
    ActionType.SEND_CUSTOM_WHATSAPP: ActionSpec(
        NotificationType.REMINDER, NotificationChannel.WHATSAPP, False
    ),
    ActionType.SEND_CUSTOM_SMS: ActionSpec(NotificationType.REMINDER, NotificationChannel.SMS, False),
    ActionType.SEND_SMS_REMINDER: ActionSpec(
        NotificationType.REMINDER, NotificationChannel.SMS, False
    ),
}


@dataclass(frozen=True)
class ActionContext:
    """Everything an action needs to render and address one message."""

    guest_id: UUID
    event_id: UUID
    guest_name: str
    guest_phone: str | None
    rsvp_status: RsvpStatus
    event_title: str
    event_starts_at: datetime
    event_timezone: str = "UTC"
    event_location: str | None = None
    event_venue: str | None = None
    guest_count: int | None = None
    table_name: str | None = None
    rsvp_link: str | None = None
    custom_message: str | None = None


@dataclass(frozen=True)
class ActionResult:
    success: bool
    message: str


@dataclass(frozen=True)
class FlowDTO:
    id: UUID
    event_id: UUID
    name: str
    trigger: TriggerType
    action: ActionType
    status: FlowStatus
    delay_hours: int | None = None
    custom_message: str | None = None
    template_name: str | None = None


@dataclass(frozen=True)
class ExecutionDTO:
    id: UUID
    flow_id: UUID
    guest_id: UUID
    status: ExecutionStatus
    scheduled_for: datetime | None
    retry_count: int
    error_message: str | None = None
    executed_at: datetime | None = None


@dataclass
class ProcessResult:
    processed: int = 0
    succeeded: int = 0
    failed: int = 0
    retried: int = 0
    skipped: int = 0
    deferred: int = 0


@dataclass(frozen=True)
class FlowStatsDTO:
    flow_id: UUID
    name: str
    trigger: TriggerType
    status: FlowStatus
    total: int
    pending: int
    processing: int
    completed: int
    failed: int
    skipped: int
