"""Wiring of the automation components against the configured database and provider."""

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rsvp_automation.automation.executor import MessagingActionExecutor
from rsvp_automation.automation.hooks import AutomationHooks
from rsvp_automation.automation.planner import EventTriggerPlanner
from rsvp_automation.automation.scheduler import AutomationScheduler, ExecutionCleanup
from rsvp_automation.config.settings import Settings, settings
from rsvp_automation.guests.repository.notification_ledger import SqlNotificationLedger
from rsvp_automation.messaging import MessageSender, get_message_sender


def build_executor(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    config: Settings = settings,
    sender: MessageSender | None = None,
) -> MessagingActionExecutor:
    hooks = AutomationHooks(session_maker=session_maker, config=config)
    return MessagingActionExecutor(
        sender=sender or get_message_sender(config),
        ledger=SqlNotificationLedger(session_maker=session_maker),
        config=config,
        on_notification_sent=hooks.on_notification_sent,
    )


def build_scheduler(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    config: Settings = settings,
) -> AutomationScheduler:
    return AutomationScheduler(
        executor=build_executor(session_maker, config),
        session_maker=session_maker,
        config=config,
    )


def build_planner(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    config: Settings = settings,
) -> EventTriggerPlanner:
    return EventTriggerPlanner(session_maker=session_maker, config=config)


def build_cleanup(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    config: Settings = settings,
) -> ExecutionCleanup:
    return ExecutionCleanup(session_maker=session_maker, config=config)
