"""CLI commands for RSVP automation."""

import asyncio
from datetime import datetime
from uuid import UUID
from zoneinfo import ZoneInfo

import typer

from rsvp_automation.automation.flows import FlowManager
from rsvp_automation.automation.service import build_cleanup, build_planner, build_scheduler
from rsvp_automation.config.database import async_session_manager
from rsvp_automation.config.logging import setup_logging
from rsvp_automation.config.settings import get_settings, reload_settings
from rsvp_automation.guests.features.create_guest.write_model import SqlGuestCreateWriteModel
from rsvp_automation.models.event import Event

app = typer.Typer(help="CLI commands for RSVP automation")


@app.callback()
def main():
    setup_logging()


async def _create_event(
    title: str,
    starts_at: datetime,
    timezone: str,
    location: str | None,
    venue: str | None,
    maybe_delay_hours: int,
) -> Event:
    async with async_session_manager() as session:
        event = Event(
            title=title,
            starts_at=starts_at,
            timezone=timezone,
            location=location,
            venue=venue,
            rsvp_maybe_reminder_delay_hours=maybe_delay_hours,
        )
        session.add(event)
        await session.flush()
        return event


@app.command()
def create_event(
    title: str,
    starts_at: datetime = typer.Option(..., help="Local start time, e.g. 2026-08-15T19:30:00"),
    timezone: str = typer.Option("UTC", help="IANA timezone of the venue"),
    location: str | None = typer.Option(None),
    venue: str | None = typer.Option(None),
    maybe_delay_hours: int = typer.Option(24, help="Hours before a MAYBE gets a follow-up"),
):
    """Create an event."""
    if starts_at.tzinfo is None:
        starts_at = starts_at.replace(tzinfo=ZoneInfo(timezone))
    event = asyncio.run(_create_event(title, starts_at, timezone, location, venue, maybe_delay_hours))

    typer.secho("Event created successfully!", fg=typer.colors.GREEN)
    typer.secho(f"Event ID: {event.uuid}", fg=typer.colors.CYAN)


@app.command()
def create_guest(
    event_id: UUID,
    name: str,
    phone: str | None = typer.Option(None, help="Phone number in any common format"),
    table: str | None = typer.Option(None, help="Table assignment"),
):
    """Add a guest with a PENDING RSVP to an event."""
    write_model = SqlGuestCreateWriteModel()
    guest = asyncio.run(
        write_model.create_guest(event_id=event_id, name=name, phone_number=phone, table_name=table)
    )

    typer.secho("Guest created successfully!", fg=typer.colors.GREEN)
    typer.secho(f"Guest ID: {guest.id}", fg=typer.colors.CYAN)
    typer.secho(f"RSVP URL: {guest.rsvp_link}", fg=typer.colors.CYAN)


@app.command()
def process_automations():
    """Run one scheduler cycle over the due executions."""
    result = asyncio.run(build_scheduler(config=get_settings()).process_due())
    typer.secho(
        f"Processed {result.processed}: {result.succeeded} succeeded, {result.failed} failed, "
        f"{result.retried} retried, {result.skipped} skipped, {result.deferred} deferred",
        fg=typer.colors.GREEN if not result.failed else typer.colors.YELLOW,
    )


@app.command()
def plan_event_triggers():
    """Create executions for calendar flows of events starting soon."""
    created = asyncio.run(build_planner(config=get_settings()).plan())
    typer.secho(f"Created {created} executions", fg=typer.colors.GREEN)


@app.command()
def cleanup_executions():
    """Delete finished executions older than the retention window."""
    deleted = asyncio.run(build_cleanup(config=get_settings()).run())
    typer.secho(f"Deleted {deleted} executions", fg=typer.colors.GREEN)


async def _run_worker(cycles: int | None):
    cycle = 0
    while cycles is None or cycle < cycles:
        config = reload_settings()
        if cycle % config.planner_interval_cycles == 0:
            await build_planner(config=config).plan()
            await build_cleanup(config=config).run()
        result = await build_scheduler(config=config).process_due()
        if result.processed:
            typer.secho(
                f"[cycle {cycle}] {result.succeeded} sent, {result.retried} retrying, {result.failed} failed",
                fg=typer.colors.BLUE,
            )
        cycle += 1
        await asyncio.sleep(config.worker_poll_interval_seconds)


@app.command()
def run_worker(cycles: int | None = typer.Option(None, help="Stop after this many cycles")):
    """Poll for due executions forever (or for --cycles cycles)."""
    typer.secho("Automation worker started", fg=typer.colors.GREEN)
    try:
        asyncio.run(_run_worker(cycles))
    except KeyboardInterrupt:
        typer.secho("Automation worker stopped", fg=typer.colors.YELLOW)


@app.command()
def flow_stats(event_id: UUID):
    """Show execution counts for each automation flow of an event."""
    stats = asyncio.run(FlowManager().stats(event_id))
    if not stats:
        typer.secho("No automation flows for this event", fg=typer.colors.YELLOW)
        return
    for flow in stats:
        typer.secho(f"{flow.name} ({flow.trigger.value}, {flow.status.value})", fg=typer.colors.CYAN)
        typer.echo(
            f"  total={flow.total} pending={flow.pending} processing={flow.processing} "
            f"completed={flow.completed} failed={flow.failed} skipped={flow.skipped}"
        )


if __name__ == "__main__":
    app()
