"""Identity and stored-profile value types."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict

from saga_core.tiers import DEFAULT_ROLE, DEFAULT_TIER, Role, SubscriptionTier


class ResolutionSource(str, Enum):
    """Where the resolved role/tier came from (for logging and tests)."""

    CLAIMS = "claims"
    PROFILE = "profile"
    DEFAULT = "default"


class Identity(BaseModel):
    """An authenticated caller, built per request.

    ``role == Role.ADMIN`` implies every capability check succeeds
    regardless of ``subscription_tier``.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    role: Role = DEFAULT_ROLE
    subscription_tier: SubscriptionTier = DEFAULT_TIER
    source: ResolutionSource = ResolutionSource.DEFAULT

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN


class ProfileRecord(BaseModel):
    """The subset of a stored user profile the access layer reads.

    Values are kept as raw strings; the resolver validates them.
    """

    uid: str
    role: str | None = None
    subscription_tier: str | None = None
    email: str | None = None
    display_name: str | None = None
    stripe_customer_id: str | None = None
