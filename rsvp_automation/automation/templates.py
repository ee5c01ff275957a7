from dataclasses import dataclass

from rsvp_automation.automation.dtos import ActionType, TriggerType, UnknownTemplateError


@dataclass(frozen=True)
class FlowTemplate:
    name: str
    description: str
    trigger: TriggerType
    action: ActionType
    delay_hours: int | None = None


FLOW_TEMPLATES: dict[str, FlowTemplate] = {
    "the_chaser": FlowTemplate(
        name="The Chaser",
        description="Interactive reminder to guests who haven't answered within a day",
        trigger=TriggerType.NO_RESPONSE_24H,
        action=ActionType.SEND_WHATSAPP_INTERACTIVE_REMINDER,
    ),
    "second_chance": FlowTemplate(
        name="Second Chance",
        description="Another reminder two days after the last invitation",
        trigger=TriggerType.NO_RESPONSE_48H,
        action=ActionType.SEND_WHATSAPP_REMINDER,
    ),
    "the_concierge": FlowTemplate(
        name="The Concierge",
        description="Table assignment on the morning of the event",
        trigger=TriggerType.EVENT_MORNING,
        action=ActionType.SEND_TABLE_ASSIGNMENT,
    ),
    "thank_you": FlowTemplate(
        name="Thank You",
        description="Thank guests as soon as they confirm",
        trigger=TriggerType.RSVP_CONFIRMED,
        action=ActionType.SEND_WHATSAPP_THANK_YOU,
    ),
    "location_reminder": FlowTemplate(
        name="Location Reminder",
        description="Venue and time two hours before the event starts",
        trigger=TriggerType.HOURS_BEFORE_EVENT_2,
        action=ActionType.SEND_WHATSAPP_EVENT_DAY,
    ),
}


def get_flow_template(template_name: str) -> FlowTemplate:
    try:
        return FLOW_TEMPLATES[template_name]
    except KeyError:
        raise UnknownTemplateError(template_name) from None
