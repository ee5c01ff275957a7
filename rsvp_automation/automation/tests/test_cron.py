import pytest

from rsvp_automation.automation import urls
from rsvp_automation.automation.cron import (
    get_automation_scheduler,
    get_cron_secret,
    get_event_trigger_planner,
    get_execution_cleanup,
)
from rsvp_automation.automation.dtos import ProcessResult


class FakeScheduler:
    def __init__(self):
        self.calls = 0

    async def process_due(self) -> ProcessResult:
        self.calls += 1
        return ProcessResult(processed=3, succeeded=1, failed=1, skipped=1)


class FakePlanner:
    async def plan(self) -> int:
        return 4


class FakeCleanup:
    async def run(self) -> int:
        return 7


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def overrides(scheduler):
    return {
        get_cron_secret: lambda: "s3cret",
        get_automation_scheduler: lambda: scheduler,
        get_event_trigger_planner: lambda: FakePlanner(),
        get_execution_cleanup: lambda: FakeCleanup(),
    }


@pytest.mark.asyncio
async def test_process_with_valid_token(client_factory, overrides, scheduler):
    async with client_factory(overrides) as client:
        response = await client.post(urls.CRON_PROCESS_URL, headers={"Authorization": "Bearer s3cret"})

    assert response.status_code == 200
    assert response.json() == {
        "processed": 3,
        "succeeded": 1,
        "failed": 1,
        "retried": 0,
        "skipped": 1,
        "deferred": 0,
    }
    assert scheduler.calls == 1


@pytest.mark.asyncio
@pytest.mark.parametrize("header", [None, "Bearer wrong", "s3cret", "Basic s3cret"])
async def test_rejects_bad_token(client_factory, overrides, scheduler, header):
    headers = {"Authorization": header} if header else {}

    async with client_factory(overrides) as client:
        response = await client.post(urls.CRON_PROCESS_URL, headers=headers)

    assert response.status_code == 401
    assert scheduler.calls == 0


@pytest.mark.asyncio
async def test_no_secret_configured_allows_calls(client_factory, overrides, scheduler):
    overrides[get_cron_secret] = lambda: ""

    async with client_factory(overrides) as client:
        response = await client.post(urls.CRON_PROCESS_URL)

    assert response.status_code == 200


@pytest.mark.asyncio
async def test_plan_and_cleanup(client_factory, overrides):
    headers = {"Authorization": "Bearer s3cret"}

    async with client_factory(overrides) as client:
        plan = await client.post(urls.CRON_PLAN_URL, headers=headers)
        cleanup = await client.post(urls.CRON_CLEANUP_URL, headers=headers)

    assert plan.json() == {"created": 4}
    assert cleanup.json() == {"deleted": 7}
