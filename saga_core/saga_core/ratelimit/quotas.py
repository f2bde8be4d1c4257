"""Quota configuration for the rate limiter.

Quotas are data, not logic.  :class:`QuotaTable` holds one
:class:`Quota` per subscription tier plus one for anonymous callers; the
API layer builds it from environment settings.  The defaults mirror
production: 20 AI requests per hour for anonymous and Explorer callers,
200 for Growth, 1000 for Transformation.
"""

from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field

from saga_core.tiers import SubscriptionTier

HOUR_SECONDS: float = 3600.0
GLOBAL_WINDOW_SECONDS: float = 15 * 60.0


class Quota(BaseModel):
    """A request budget over a fixed window."""

    model_config = ConfigDict(frozen=True)

    limit: int = Field(gt=0)
    window_seconds: float = Field(gt=0)

    def describe(self) -> str:
        """Human-readable form used in upgrade hints, e.g. ``200 requests/hour``."""
        if self.window_seconds == HOUR_SECONDS:
            return f"{self.limit} requests/hour"
        if self.window_seconds % 60 == 0:
            return f"{self.limit} requests per {int(self.window_seconds // 60)} minutes"
        return f"{self.limit} requests per {self.window_seconds:g} seconds"


class QuotaTable(BaseModel):
    """Per-tier quotas.  ``anonymous`` applies when no tier is known."""

    model_config = ConfigDict(frozen=True)

    anonymous: Quota = Quota(limit=20, window_seconds=HOUR_SECONDS)
    explorer: Quota = Quota(limit=20, window_seconds=HOUR_SECONDS)
    growth: Quota = Quota(limit=200, window_seconds=HOUR_SECONDS)
    transformation: Quota = Quota(limit=1000, window_seconds=HOUR_SECONDS)

    def for_tier(self, tier: SubscriptionTier | None) -> Quota:
        if tier is None:
            return self.anonymous
        if tier == SubscriptionTier.TRANSFORMATION:
            return self.transformation
        if tier == SubscriptionTier.GROWTH:
            return self.growth
        return self.explorer


DEFAULT_AI_QUOTAS: QuotaTable = QuotaTable()

# Uniform abuse guard applied to all API traffic regardless of tier.
DEFAULT_GLOBAL_QUOTA: Quota = Quota(limit=100, window_seconds=GLOBAL_WINDOW_SECONDS)
