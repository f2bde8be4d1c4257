"""SQLAlchemy-backed :class:`~saga_core.profiles.ProfileStore`."""

from __future__ import annotations

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from saga_core.identity import ProfileRecord
from saga_core.state.database import session_scope
from saga_core.state.repository import ProfileRepository
from saga_core.state.tables import UserProfileTable
from saga_core.tiers import Role, SubscriptionTier


def _to_record(row: UserProfileTable) -> ProfileRecord:
    return ProfileRecord(
        uid=row.uid,
        role=row.role,
        subscription_tier=row.subscription_tier,
        email=row.email,
        display_name=row.display_name,
        stripe_customer_id=row.stripe_customer_id,
    )


class SqlProfileStore:
    """Profile store that opens one short transaction per call.

    Parameters
    ----------
    session_factory:
        Factory for :class:`AsyncSession` objects bound to the profile
        database.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session_factory = session_factory

    async def get(self, uid: str) -> ProfileRecord | None:
        async with session_scope(self._session_factory) as session:
            row = await ProfileRepository(session).get(uid)
            return _to_record(row) if row is not None else None

    async def get_by_stripe_customer(self, customer_id: str) -> ProfileRecord | None:
        async with session_scope(self._session_factory) as session:
            row = await ProfileRepository(session).get_by_stripe_customer(customer_id)
            return _to_record(row) if row is not None else None

    async def set_role(self, uid: str, role: Role) -> ProfileRecord:
        async with session_scope(self._session_factory) as session:
            row = await ProfileRepository(session).set_role(uid, role)
            return _to_record(row)

    async def set_subscription_tier(
        self,
        uid: str,
        tier: SubscriptionTier,
        *,
        stripe_customer_id: str | None = None,
    ) -> ProfileRecord:
        async with session_scope(self._session_factory) as session:
            row = await ProfileRepository(session).set_subscription_tier(
                uid, tier, stripe_customer_id=stripe_customer_id
            )
            return _to_record(row)
