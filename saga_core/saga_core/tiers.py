"""Subscription tiers, user roles and per-tier allowances.

Three subscription tiers are sold:

* **Explorer** -- Free tier.  AI chat, SOS booking, a handful of journal
  entries per month.
* **Growth** -- Unlocks journal analysis, practice scenarios, the audio
  library and community posting.
* **Transformation** -- Everything, plus weekly insights, session prep and
  priority booking.

Tiers are totally ordered (Explorer < Growth < Transformation).  The
ordering is a product convention used by :func:`has_tier_access`; the
capability table in :mod:`saga_core.permissions` lists allowed tiers
explicitly.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict


class SubscriptionTier(str, Enum):
    """Subscription level determining which capabilities are unlocked."""

    EXPLORER = "Explorer"
    GROWTH = "Growth"
    TRANSFORMATION = "Transformation"

    @property
    def rank(self) -> int:
        return _TIER_RANK[self]


class Role(str, Enum):
    """Account role.  ``admin`` bypasses every tier-based capability check."""

    USER = "user"
    ADMIN = "admin"


_TIER_RANK: dict[SubscriptionTier, int] = {
    SubscriptionTier.EXPLORER: 1,
    SubscriptionTier.GROWTH: 2,
    SubscriptionTier.TRANSFORMATION: 3,
}

# Tiers in ascending order.
TIER_ORDER: tuple[SubscriptionTier, ...] = tuple(sorted(SubscriptionTier, key=lambda t: t.rank))

DEFAULT_TIER: SubscriptionTier = SubscriptionTier.EXPLORER
DEFAULT_ROLE: Role = Role.USER

# A tier claim of "admin" is written by the back office for staff accounts.
ADMIN_TIER_CLAIM: str = "admin"

_TIER_LOOKUP: dict[str, SubscriptionTier] = {t.value.lower(): t for t in SubscriptionTier}
_ROLE_LOOKUP: dict[str, Role] = {r.value: r for r in Role}


def parse_tier(raw: str) -> SubscriptionTier:
    """Convert a claim or profile string into a :class:`SubscriptionTier`.

    Matching is case-insensitive.  Raises :class:`ValueError` for unknown
    values (including the ``"admin"`` pseudo-tier, which callers must
    handle before parsing).
    """
    try:
        return _TIER_LOOKUP[raw.strip().lower()]
    except (KeyError, AttributeError):
        raise ValueError(f"Unknown subscription tier '{raw}'. Valid tiers: {[t.value for t in TIER_ORDER]}")


def parse_role(raw: str) -> Role:
    """Convert a claim or profile string into a :class:`Role`.

    Raises :class:`ValueError` if the string does not map to a known role.
    """
    try:
        return _ROLE_LOOKUP[raw.strip().lower()]
    except (KeyError, AttributeError):
        raise ValueError(f"Unknown role '{raw}'. Valid roles: {sorted(_ROLE_LOOKUP)}")


def has_tier_access(user_tier: SubscriptionTier, required_tier: SubscriptionTier) -> bool:
    """Return ``True`` if *user_tier* is at or above *required_tier*."""
    return user_tier.rank >= required_tier.rank


def next_tiers(tier: SubscriptionTier) -> tuple[SubscriptionTier, ...]:
    """Return the tiers strictly above *tier*, lowest first."""
    return tuple(t for t in TIER_ORDER if t.rank > tier.rank)


# ---------------------------------------------------------------------------
# Per-tier monthly allowances
# ---------------------------------------------------------------------------

UNLIMITED: int = -1


class SubscriptionLimits(BaseModel):
    """Monthly allowances and perks for a tier.

    Counts use ``-1`` (:data:`UNLIMITED`) for "no cap".
    """

    model_config = ConfigDict(frozen=True)

    monthly_journal_entries: int
    monthly_sos_sessions: int
    monthly_coaching_sessions: int
    advanced_analytics: bool
    priority_support: bool
    personalized_plans: bool


TIER_LIMITS: dict[SubscriptionTier, SubscriptionLimits] = {
    SubscriptionTier.EXPLORER: SubscriptionLimits(
        monthly_journal_entries=10,
        monthly_sos_sessions=1,
        monthly_coaching_sessions=0,
        advanced_analytics=False,
        priority_support=False,
        personalized_plans=False,
    ),
    SubscriptionTier.GROWTH: SubscriptionLimits(
        monthly_journal_entries=50,
        monthly_sos_sessions=5,
        monthly_coaching_sessions=2,
        advanced_analytics=True,
        priority_support=False,
        personalized_plans=True,
    ),
    SubscriptionTier.TRANSFORMATION: SubscriptionLimits(
        monthly_journal_entries=UNLIMITED,
        monthly_sos_sessions=UNLIMITED,
        monthly_coaching_sessions=UNLIMITED,
        advanced_analytics=True,
        priority_support=True,
        personalized_plans=True,
    ),
}


def get_subscription_limits(tier: SubscriptionTier) -> SubscriptionLimits:
    """Return the monthly allowances for *tier*."""
    return TIER_LIMITS.get(tier, TIER_LIMITS[DEFAULT_TIER])
