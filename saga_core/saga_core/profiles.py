"""Profile store interface and an in-process implementation.

The tier resolver only reads profiles; the billing webhook and admin
endpoints also write role and tier changes through the same interface.
The SQLAlchemy-backed implementation lives in
:mod:`saga_core.state.profile_store`.
"""

from __future__ import annotations

import asyncio
from typing import Protocol, runtime_checkable

from saga_core.identity import ProfileRecord
from saga_core.tiers import Role, SubscriptionTier


@runtime_checkable
class ProfileStore(Protocol):
    """Lookup and update of stored user profiles keyed by identity id."""

    async def get(self, uid: str) -> ProfileRecord | None: ...

    async def get_by_stripe_customer(self, customer_id: str) -> ProfileRecord | None: ...

    async def set_role(self, uid: str, role: Role) -> ProfileRecord: ...

    async def set_subscription_tier(
        self,
        uid: str,
        tier: SubscriptionTier,
        *,
        stripe_customer_id: str | None = None,
    ) -> ProfileRecord: ...


class InMemoryProfileStore:
    """Dict-backed :class:`ProfileStore` for tests and local runs."""

    def __init__(self, profiles: list[ProfileRecord] | None = None) -> None:
        self._profiles: dict[str, ProfileRecord] = {p.uid: p for p in profiles or []}
        self._lock = asyncio.Lock()

    async def get(self, uid: str) -> ProfileRecord | None:
        return self._profiles.get(uid)

    async def get_by_stripe_customer(self, customer_id: str) -> ProfileRecord | None:
        for profile in self._profiles.values():
            if profile.stripe_customer_id == customer_id:
                return profile
        return None

    async def put(self, profile: ProfileRecord) -> None:
        async with self._lock:
            self._profiles[profile.uid] = profile

    async def set_role(self, uid: str, role: Role) -> ProfileRecord:
        async with self._lock:
            current = self._profiles.get(uid) or ProfileRecord(uid=uid)
            updated = current.model_copy(update={"role": role.value})
            self._profiles[uid] = updated
            return updated

    async def set_subscription_tier(
        self,
        uid: str,
        tier: SubscriptionTier,
        *,
        stripe_customer_id: str | None = None,
    ) -> ProfileRecord:
        async with self._lock:
            current = self._profiles.get(uid) or ProfileRecord(uid=uid)
            changes: dict[str, str] = {"subscription_tier": tier.value}
            if stripe_customer_id:
                changes["stripe_customer_id"] = stripe_customer_id
            updated = current.model_copy(update=changes)
            self._profiles[uid] = updated
            return updated
