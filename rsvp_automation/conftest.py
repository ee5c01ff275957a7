import contextlib
from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest
from httpx import ASGITransport, AsyncClient

from rsvp_automation.automation.dtos import (
    ActionType,
    ExecutionStatus,
    FlowStatus,
    TriggerType,
)
from rsvp_automation.automation.repository.orm_models import AutomationFlow, AutomationFlowExecution
from rsvp_automation.config.database import create_engine, create_session_maker
from rsvp_automation.config.settings import Settings
from rsvp_automation.guests.dtos import (
    NotificationChannel,
    NotificationStatus,
    NotificationType,
    RsvpStatus,
)
from rsvp_automation.guests.repository.notification_ledger import dump_provider_response
from rsvp_automation.guests.repository.orm_models import Guest, GuestRsvp, NotificationLog
from rsvp_automation.main import app
from rsvp_automation.models.base import BaseModel
from rsvp_automation.models.event import Event

NOW = datetime(2026, 8, 1, 10, 0, tzinfo=UTC)


@pytest.fixture
def now() -> datetime:
    return NOW


@pytest.fixture
def clock(now):
    return lambda: now


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        frontend_url="https://rsvp.example.com",
        twilio_content_sids={
            ActionType.SEND_WHATSAPP_INVITE.value: "HX_INVITE",
            ActionType.SEND_WHATSAPP_REMINDER.value: "HX_REMINDER",
            ActionType.SEND_WHATSAPP_INTERACTIVE_INVITE.value: "HX_INTERACTIVE_INVITE",
            ActionType.SEND_WHATSAPP_INTERACTIVE_REMINDER.value: "HX_INTERACTIVE_REMINDER",
            ActionType.SEND_WHATSAPP_GUEST_COUNT.value: "HX_GUEST_COUNT",
        },
        cron_secret="",
    )


@pytest.fixture
async def session_maker(tmp_path):
    """A fresh SQLite database per test, with every table created."""
    engine = create_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(BaseModel.metadata.create_all)
    yield create_session_maker(engine)
    await engine.dispose()


@pytest.fixture
def make_event(session_maker, now):
    async def factory(**values) -> Event:
        values.setdefault("title", "Dana & Yoav's Wedding")
        values.setdefault("starts_at", now + timedelta(days=14))
        values.setdefault("timezone", "Asia/Jerusalem")
        values.setdefault("location", "12 Harbour Road, Haifa")
        values.setdefault("venue", "Villa Carmel")
        async with session_maker() as session:
            event = Event(**values)
            session.add(event)
            await session.commit()
            return event

    return factory


@pytest.fixture
def make_guest(session_maker):
    async def factory(
        event: Event,
        name: str = "Noa Levi",
        phone_number: str | None = "0584003578",
        status: RsvpStatus | None = RsvpStatus.PENDING,
        guest_count: int | None = None,
        responded_at: datetime | None = None,
        table_name: str | None = None,
    ) -> Guest:
        async with session_maker() as session:
            guest = Guest(
                event_id=event.uuid,
                name=name,
                phone_number=phone_number,
                rsvp_token=str(uuid4()),
                table_name=table_name,
            )
            session.add(guest)
            await session.flush()
            if status is not None:
                session.add(
                    GuestRsvp(
                        guest_id=guest.uuid,
                        status=status,
                        guest_count=guest_count,
                        responded_at=responded_at,
                    )
                )
            await session.commit()
            return guest

    return factory


@pytest.fixture
def make_notification(session_maker, now):
    async def factory(
        guest: Guest,
        notification_type: NotificationType = NotificationType.INTERACTIVE_INVITE,
        status: NotificationStatus = NotificationStatus.SENT,
        channel: NotificationChannel = NotificationChannel.WHATSAPP,
        sent_at: datetime | None = None,
        sid: str | None = None,
    ) -> NotificationLog:
        async with session_maker() as session:
            log = NotificationLog(
                guest_id=guest.uuid,
                type=notification_type,
                channel=channel,
                status=status,
                sent_at=sent_at or now,
                provider_response=dump_provider_response(sid) if sid else None,
            )
            session.add(log)
            await session.commit()
            return log

    return factory


@pytest.fixture
def make_flow(session_maker):
    async def factory(
        event: Event,
        trigger: TriggerType = TriggerType.NO_RESPONSE_24H,
        action: ActionType = ActionType.SEND_WHATSAPP_INTERACTIVE_REMINDER,
        status: FlowStatus = FlowStatus.ACTIVE,
        delay_hours: int | None = None,
        custom_message: str | None = None,
        name: str | None = None,
    ) -> AutomationFlow:
        async with session_maker() as session:
            flow = AutomationFlow(
                event_id=event.uuid,
                name=name or f"{trigger.value} flow",
                trigger=trigger,
                action=action,
                status=status,
                delay_hours=delay_hours,
                custom_message=custom_message,
            )
            session.add(flow)
            await session.commit()
            return flow

    return factory


@pytest.fixture
def make_execution(session_maker):
    async def factory(
        flow: AutomationFlow,
        guest: Guest,
        status: ExecutionStatus = ExecutionStatus.PENDING,
        scheduled_for: datetime | None = None,
        retry_count: int = 0,
        executed_at: datetime | None = None,
    ) -> AutomationFlowExecution:
        async with session_maker() as session:
            execution = AutomationFlowExecution(
                flow_id=flow.uuid,
                guest_id=guest.uuid,
                status=status,
                scheduled_for=scheduled_for,
                retry_count=retry_count,
                executed_at=executed_at,
            )
            session.add(execution)
            await session.commit()
            return execution

    return factory


@pytest.fixture
def client_factory():
    @contextlib.asynccontextmanager
    async def factory(overrides: dict | None = None):
        app.dependency_overrides.update(overrides or {})
        transport = ASGITransport(app=app)
        try:
            async with AsyncClient(transport=transport, base_url="http://test") as client:
                yield client
        finally:
            app.dependency_overrides.clear()

    return factory


@pytest.fixture
async def client(client_factory):
    async with client_factory() as client:
        yield client
