"""Turns a guest's WhatsApp button or list reply into an RSVP update."""

import logging
from datetime import datetime
from typing import Protocol
from uuid import UUID

from rsvp_automation.correlation.dtos import (
    CHOICES,
    REPLIABLE_TYPES,
    InboundReply,
    ReplyKind,
    Resolution,
)
from rsvp_automation.correlation.replies import ReplySender
from rsvp_automation.correlation.repository.inbound_log import InboundResponseLog, RecordedReply
from rsvp_automation.correlation.strategies import ResponseCorrelator
from rsvp_automation.guests.dtos import RsvpChangeDTO, RsvpStatus

logger = logging.getLogger(__name__)


class RsvpHooks(Protocol):
    async def on_rsvp_changed(self, guest_id: UUID, event_id: UUID, status: RsvpStatus) -> None: ...

    async def schedule_maybe_follow_up(
        self, guest_id: UUID, event_id: UUID, rearm: bool = True
    ) -> datetime | None: ...


def parse_guest_count(list_id: str) -> int | None:
    try:
        count = int(list_id.strip())
    except ValueError:
        return None
    return count if count >= 1 else None


class ReplyHandler:
    def __init__(
        self,
        correlator: ResponseCorrelator,
        inbound_log: InboundResponseLog,
        hooks: RsvpHooks,
        replies: ReplySender,
    ) -> None:
        self.correlator = correlator
        self.inbound_log = inbound_log
        self.hooks = hooks
        self.replies = replies

    async def handle(self, reply: InboundReply) -> RsvpChangeDTO | None:
        """Never raises: failures are logged with the guest (or "unresolved") and the payload."""
        guest_ref = "unresolved"
        try:
            kind = reply.kind
            if kind is None:
                logger.info(f"Ignoring non-interactive message from {reply.phone}: {reply.body!r}")
                return None

            if kind == ReplyKind.CHOICE:
                choice = CHOICES.get(reply.button_payload.strip().lower())
                if choice is None:
                    logger.warning(f"Unknown button payload {reply.button_payload!r}: {reply.raw}")
                    return None
                count = None
            else:
                count = parse_guest_count(reply.list_id)
                if count is None:
                    logger.warning(f"Invalid guest count {reply.list_id!r}: {reply.raw}")
                    return None
                choice = None

            resolution = await self.correlator.correlate(reply, REPLIABLE_TYPES[kind])
            if resolution is None:
                logger.warning(f"Reply unresolved for {reply.phone}: {reply.raw}")
                return None
            guest_ref = str(resolution.guest_id)

            if choice is not None:
                return await self._apply_choice(reply, resolution, choice.status, choice.title)
            return await self._apply_count(reply, resolution, count)
        except Exception:
            logger.exception(f"Failed to handle WhatsApp reply for guest {guest_ref}: {reply.raw}")
            return None

    async def _record(
        self, reply: InboundReply, resolution: Resolution, status: RsvpStatus, **values
    ) -> RecordedReply:
        recorded = await self.inbound_log.record_reply(
            guest_id=resolution.guest_id,
            provider_message_id=reply.provider_message_id,
            correlation_tier=resolution.tier,
            raw_payload=reply.raw,
            rsvp_status_set=status,
            **values,
        )
        if recorded.duplicate:
            logger.info(
                f"Duplicate delivery {reply.provider_message_id} for guest {resolution.guest_id}, ignoring"
            )
        return recorded

    async def _catch_up(self, rsvp: RsvpChangeDTO, status: RsvpStatus) -> None:
        """Re-run the idempotent follow-ups of a redelivered reply whose answer still stands.

        An earlier delivery may have stored the RSVP and then failed before its
        automations were queued. Messages are never sent twice.
        """
        if rsvp.status != status:
            return
        await self.hooks.on_rsvp_changed(rsvp.guest_id, rsvp.event_id, rsvp.status)
        if status == RsvpStatus.MAYBE:
            await self.hooks.schedule_maybe_follow_up(rsvp.guest_id, rsvp.event_id, rearm=False)

    async def _apply_choice(
        self, reply: InboundReply, resolution: Resolution, status: RsvpStatus, title: str
    ) -> RsvpChangeDTO | None:
        recorded = await self._record(
            reply,
            resolution,
            status,
            response_type="button",
            selection_id=reply.button_payload.strip().lower(),
            selection_title=title,
        )
        if recorded.duplicate:
            await self._catch_up(recorded.rsvp, status)
            return None

        change = recorded.rsvp
        logger.info(f"RSVP via button: guest {change.guest_id} -> {status.value} ({resolution.tier.value})")
        if change.status_changed:
            await self.hooks.on_rsvp_changed(change.guest_id, change.event_id, change.status)
        if status == RsvpStatus.MAYBE:
            await self.hooks.schedule_maybe_follow_up(change.guest_id, change.event_id)

        if status == RsvpStatus.ACCEPTED:
            await self.replies.request_guest_count(change.guest_id)
        else:
            await self.replies.send_confirmation(change.guest_id)
        return change

    async def _apply_count(
        self, reply: InboundReply, resolution: Resolution, count: int
    ) -> RsvpChangeDTO | None:
        recorded = await self._record(
            reply,
            resolution,
            RsvpStatus.ACCEPTED,
            response_type="list",
            selection_id=f"count:{count}",
            selection_title=f"{count} guests",
            guest_count_set=count,
        )
        if recorded.duplicate:
            await self._catch_up(recorded.rsvp, RsvpStatus.ACCEPTED)
            return None

        change = recorded.rsvp
        logger.info(f"Guest count via list: guest {change.guest_id} -> {count} ({resolution.tier.value})")
        if change.status_changed:
            await self.hooks.on_rsvp_changed(change.guest_id, change.event_id, change.status)
        await self.replies.send_confirmation(change.guest_id)
        return change
