"""Subscription tier sync from Stripe webhook events."""

from __future__ import annotations

import logging
from typing import Any

from saga_core.profiles import ProfileStore
from saga_core.tiers import DEFAULT_TIER, SubscriptionTier

from saga_api.config import APISettings

logger = logging.getLogger(__name__)

_GROWTH_PRICE_PREFIX = "price_growth"
_TRANSFORMATION_PRICE_PREFIX = "price_transformation"


def tier_from_price_id(price_id: str, settings: APISettings) -> SubscriptionTier:
    """Map a Stripe price ID to a subscription tier.

    Configured price IDs win; otherwise the ``price_growth*`` /
    ``price_transformation*`` naming convention decides, and anything
    else maps to Explorer.
    """
    if price_id in settings.stripe_price_ids_transformation:
        return SubscriptionTier.TRANSFORMATION
    if price_id in settings.stripe_price_ids_growth:
        return SubscriptionTier.GROWTH
    if price_id.startswith(_TRANSFORMATION_PRICE_PREFIX):
        return SubscriptionTier.TRANSFORMATION
    if price_id.startswith(_GROWTH_PRICE_PREFIX):
        return SubscriptionTier.GROWTH
    return DEFAULT_TIER


class SubscriptionService:
    """Apply subscription lifecycle events to stored profiles.

    Parameters
    ----------
    store:
        Profile store receiving tier updates.
    settings:
        Provides the price-id to tier mapping.
    """

    def __init__(self, store: ProfileStore, settings: APISettings) -> None:
        self._store = store
        self._settings = settings

    async def handle_event(self, event: dict[str, Any]) -> dict[str, str]:
        """Process a verified Stripe event.

        Supported events:
        - ``customer.subscription.created``
        - ``customer.subscription.updated``
        - ``customer.subscription.deleted``

        Returns
        -------
        dict
            ``{"status": "processed" | "ignored" | "unmatched"}``.
        """
        event_type = event.get("type", "")
        data_object = event.get("data", {}).get("object", {})

        if event_type in (
            "customer.subscription.created",
            "customer.subscription.updated",
        ):
            return await self._apply(data_object, self._tier_for_subscription(data_object))

        if event_type == "customer.subscription.deleted":
            return await self._apply(data_object, DEFAULT_TIER)

        logger.debug("Unhandled Stripe event type: %s", event_type)
        return {"status": "ignored"}

    def _tier_for_subscription(self, subscription: dict[str, Any]) -> SubscriptionTier:
        items = subscription.get("items", {}).get("data", [])
        if not items:
            return DEFAULT_TIER
        price_id = items[0].get("price", {}).get("id", "") or ""
        return tier_from_price_id(price_id, self._settings)

    async def _resolve_uid(self, subscription: dict[str, Any]) -> str | None:
        metadata = subscription.get("metadata") or {}
        uid = metadata.get("userId") or metadata.get("uid")
        if uid:
            return uid
        customer_id = subscription.get("customer")
        if customer_id:
            profile = await self._store.get_by_stripe_customer(customer_id)
            if profile is not None:
                return profile.uid
        return None

    async def _apply(self, subscription: dict[str, Any], tier: SubscriptionTier) -> dict[str, str]:
        uid = await self._resolve_uid(subscription)
        if uid is None:
            logger.warning(
                "Subscription event %s matches no user (customer=%s)",
                subscription.get("id"),
                subscription.get("customer"),
            )
            return {"status": "unmatched"}

        await self._store.set_subscription_tier(
            uid,
            tier,
            stripe_customer_id=subscription.get("customer"),
        )
        logger.info("Subscription tier for %s set to %s", uid, tier.value)
        return {"status": "processed"}
