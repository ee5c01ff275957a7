EVENT_AUTOMATION_FLOWS_URL = "/api/v1/events/{event_id}/automation-flows"
AUTOMATION_FLOW_STATUS_URL = "/api/v1/automation-flows/{flow_id}/status"
AUTOMATION_FLOW_RETRY_FAILED_URL = "/api/v1/automation-flows/{flow_id}/retry-failed"
AUTOMATION_FLOW_CANCEL_PENDING_URL = "/api/v1/automation-flows/{flow_id}/cancel-pending"
AUTOMATION_EXECUTION_RETRY_URL = "/api/v1/automation-executions/{execution_id}/retry"
EVENT_AUTOMATION_STATS_URL = "/api/v1/events/{event_id}/automation-stats"

CRON_PROCESS_URL = "/api/v1/cron/automation/process"
CRON_PLAN_URL = "/api/v1/cron/automation/plan"
CRON_CLEANUP_URL = "/api/v1/cron/automation/cleanup"
