"""Ordered strategies for finding the guest an inbound reply belongs to."""

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence

from rsvp_automation.correlation.dtos import CorrelationTier, InboundReply, Resolution
from rsvp_automation.guests.dtos import NotificationType
from rsvp_automation.guests.phone_numbers import DEFAULT_SCHEME, NumberingScheme, phone_variants
from rsvp_automation.guests.repository.read_models import GuestLookupReadModel

logger = logging.getLogger(__name__)


class CorrelationStrategy(ABC):
    tier: CorrelationTier

    @abstractmethod
    async def resolve(
        self, reply: InboundReply, types: Sequence[NotificationType]
    ) -> Resolution | None:
        raise NotImplementedError


class ExactTokenStrategy(CorrelationStrategy):
    """The reply names the message it answers; match it against the ledger."""

    tier = CorrelationTier.EXACT_TOKEN

    def __init__(self, read_model: GuestLookupReadModel) -> None:
        self.read_model = read_model

    async def resolve(self, reply, types):
        if not reply.replied_to_sid:
            return None
        notification = await self.read_model.find_notification_by_token(reply.replied_to_sid, types)
        if notification is None:
            return None
        return Resolution(notification.guest_id, self.tier, notification)


class RecentNotificationStrategy(CorrelationStrategy):
    """Newest repliable message sent to any guest with the sender's phone."""

    tier = CorrelationTier.RECENT_NOTIFICATION

    def __init__(self, read_model: GuestLookupReadModel, scheme: NumberingScheme = DEFAULT_SCHEME) -> None:
        self.read_model = read_model
        self.scheme = scheme

    async def resolve(self, reply, types):
        phones = phone_variants(reply.phone, self.scheme)
        notification = await self.read_model.find_latest_notification_for_phones(phones, types)
        if notification is None:
            return None
        return Resolution(notification.guest_id, self.tier, notification)


class DirectPhoneStrategy(CorrelationStrategy):
    tier = CorrelationTier.DIRECT_PHONE

    def __init__(self, read_model: GuestLookupReadModel, scheme: NumberingScheme = DEFAULT_SCHEME) -> None:
        self.read_model = read_model
        self.scheme = scheme

    async def resolve(self, reply, types):
        guest_id = await self.read_model.find_guest_id_by_phones(phone_variants(reply.phone, self.scheme))
        if guest_id is None:
            return None
        return Resolution(guest_id, self.tier)


class ResponseCorrelator:
    def __init__(self, strategies: Sequence[CorrelationStrategy]) -> None:
        self.strategies = list(strategies)

    @classmethod
    def default(
        cls, read_model: GuestLookupReadModel, scheme: NumberingScheme = DEFAULT_SCHEME
    ) -> "ResponseCorrelator":
        return cls(
            [
                ExactTokenStrategy(read_model),
                RecentNotificationStrategy(read_model, scheme),
                DirectPhoneStrategy(read_model, scheme),
            ]
        )

    async def correlate(
        self, reply: InboundReply, types: Sequence[NotificationType]
    ) -> Resolution | None:
        for strategy in self.strategies:
            resolution = await strategy.resolve(reply, types)
            if resolution is not None:
                logger.debug(f"Reply from {reply.phone} resolved by {strategy.tier.value}")
                return resolution
        return None
