from enum import Enum


class TableNames(str, Enum):
    EVENTS = "events"
    GUESTS = "guests"
    GUEST_RSVPS = "guest_rsvps"
    NOTIFICATION_LOGS = "notification_logs"
    INBOUND_RESPONSES = "inbound_responses"
    AUTOMATION_FLOWS = "automation_flows"
    AUTOMATION_FLOW_EXECUTIONS = "automation_flow_executions"
