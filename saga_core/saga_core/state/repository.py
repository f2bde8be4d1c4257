"""Repository for the ``user_profiles`` table."""

from __future__ import annotations

import logging

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from saga_core.state.tables import UserProfileTable
from saga_core.tiers import DEFAULT_ROLE, DEFAULT_TIER, Role, SubscriptionTier

logger = logging.getLogger(__name__)


class ProfileRepository:
    """CRUD operations for stored user profiles.

    The repository flushes but never commits; the caller owns the
    transaction (see :func:`saga_core.state.database.session_scope`).
    """

    def __init__(self, session: AsyncSession) -> None:
        self._session = session

    async def get(self, uid: str) -> UserProfileTable | None:
        """Fetch a profile by identity id."""
        return await self._session.get(UserProfileTable, uid)

    async def get_by_stripe_customer(self, customer_id: str) -> UserProfileTable | None:
        stmt = select(UserProfileTable).where(UserProfileTable.stripe_customer_id == customer_id)
        result = await self._session.execute(stmt)
        return result.scalars().first()

    async def upsert(
        self,
        uid: str,
        *,
        email: str | None = None,
        display_name: str | None = None,
        role: Role | None = None,
        subscription_tier: SubscriptionTier | None = None,
        stripe_customer_id: str | None = None,
    ) -> UserProfileTable:
        """Create the profile if missing, then apply any provided fields."""
        row = await self.get(uid)
        if row is None:
            row = UserProfileTable(
                uid=uid,
                role=(role or DEFAULT_ROLE).value,
                subscription_tier=(subscription_tier or DEFAULT_TIER).value,
            )
            self._session.add(row)
        else:
            if role is not None:
                row.role = role.value
            if subscription_tier is not None:
                row.subscription_tier = subscription_tier.value

        if email is not None:
            row.email = email.lower().strip()
        if display_name is not None:
            row.display_name = display_name.strip()
        if stripe_customer_id is not None:
            row.stripe_customer_id = stripe_customer_id

        await self._session.flush()
        return row

    async def set_role(self, uid: str, role: Role) -> UserProfileTable:
        row = await self.upsert(uid, role=role)
        logger.info("Role for uid=%s set to %s", uid, role.value)
        return row

    async def set_subscription_tier(
        self,
        uid: str,
        tier: SubscriptionTier,
        *,
        stripe_customer_id: str | None = None,
    ) -> UserProfileTable:
        row = await self.upsert(uid, subscription_tier=tier, stripe_customer_id=stripe_customer_id)
        logger.info("Subscription tier for uid=%s set to %s", uid, tier.value)
        return row
