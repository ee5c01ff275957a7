from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from rsvp_automation.automation.hooks import AutomationHooks
from rsvp_automation.automation.service import build_executor
from rsvp_automation.config.settings import Settings, settings
from rsvp_automation.correlation.handler import ReplyHandler
from rsvp_automation.correlation.replies import ExecutorReplySender
from rsvp_automation.correlation.repository.inbound_log import SqlInboundResponseLog
from rsvp_automation.correlation.strategies import ResponseCorrelator
from rsvp_automation.guests.phone_numbers import NumberingScheme
from rsvp_automation.guests.repository.read_models import SqlGuestLookupReadModel
from rsvp_automation.messaging import MessageSender


def build_reply_handler(
    session_maker: async_sessionmaker[AsyncSession] | None = None,
    config: Settings = settings,
    sender: MessageSender | None = None,
) -> ReplyHandler:
    return ReplyHandler(
        correlator=ResponseCorrelator.default(
            SqlGuestLookupReadModel(session_maker=session_maker),
            NumberingScheme.from_config(config),
        ),
        inbound_log=SqlInboundResponseLog(session_maker=session_maker),
        hooks=AutomationHooks(session_maker=session_maker, config=config),
        replies=ExecutorReplySender(
            build_executor(session_maker, config, sender),
            session_maker=session_maker,
            frontend_url=config.frontend_url,
        ),
    )
