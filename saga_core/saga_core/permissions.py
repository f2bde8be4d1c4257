"""Capability table: which subscription tiers may use which feature.

The table is static application configuration, defined once at import
time.  Every capability maps to a non-empty set of tiers, and by
convention each set is upward closed (if Growth may use it, so may
Transformation).  ``tests/unit/test_permissions.py`` checks both.
"""

from __future__ import annotations

from enum import Enum
from types import MappingProxyType

from saga_core.tiers import TIER_ORDER, SubscriptionTier


class Capability(str, Enum):
    """Named, gated product features."""

    # Open to every tier (quota still applies)
    AI_CHAT = "ai_chat"
    SOS_BOOKING = "sos_booking"

    # Growth and above
    AI_UNLIMITED = "ai_unlimited"
    COMMUNITY_WRITE = "community_write"
    JOURNAL_ANALYSIS = "journal_analysis"
    AUDIO_LIBRARY = "audio_library"
    AI_SCENARIOS = "ai_scenarios"

    # Transformation only
    WEEKLY_INSIGHTS = "weekly_insights"
    SESSION_PREP = "session_prep"
    PRIORITY_BOOKING = "priority_booking"
    SESSION_DISCOUNT = "session_discount"


_ALL_TIERS: frozenset[SubscriptionTier] = frozenset(SubscriptionTier)

_GROWTH_AND_UP: frozenset[SubscriptionTier] = frozenset(
    {SubscriptionTier.GROWTH, SubscriptionTier.TRANSFORMATION},
)

_TRANSFORMATION_ONLY: frozenset[SubscriptionTier] = frozenset({SubscriptionTier.TRANSFORMATION})

PERMISSION_TABLE: MappingProxyType[str, frozenset[SubscriptionTier]] = MappingProxyType(
    {
        Capability.AI_CHAT.value: _ALL_TIERS,
        Capability.SOS_BOOKING.value: _ALL_TIERS,
        Capability.AI_UNLIMITED.value: _GROWTH_AND_UP,
        Capability.COMMUNITY_WRITE.value: _GROWTH_AND_UP,
        Capability.JOURNAL_ANALYSIS.value: _GROWTH_AND_UP,
        Capability.AUDIO_LIBRARY.value: _GROWTH_AND_UP,
        Capability.AI_SCENARIOS.value: _GROWTH_AND_UP,
        Capability.WEEKLY_INSIGHTS.value: _TRANSFORMATION_ONLY,
        Capability.SESSION_PREP.value: _TRANSFORMATION_ONLY,
        Capability.PRIORITY_BOOKING.value: _TRANSFORMATION_ONLY,
        Capability.SESSION_DISCOUNT.value: _TRANSFORMATION_ONLY,
    }
)


def _capability_key(capability: Capability | str) -> str:
    return capability.value if isinstance(capability, Capability) else str(capability)


def allowed_tiers(capability: Capability | str) -> frozenset[SubscriptionTier] | None:
    """Return the tiers allowed to use *capability*, or ``None`` if unknown."""
    return PERMISSION_TABLE.get(_capability_key(capability))


def is_known_capability(capability: Capability | str) -> bool:
    return _capability_key(capability) in PERMISSION_TABLE


def minimum_tier(capability: Capability | str) -> SubscriptionTier | None:
    """Return the lowest tier that unlocks *capability*.

    Returns ``None`` for capabilities not present in the table.
    """
    tiers = allowed_tiers(capability)
    if not tiers:
        return None
    for tier in TIER_ORDER:
        if tier in tiers:
            return tier
    return None


def capabilities_for_tier(tier: SubscriptionTier) -> frozenset[str]:
    """Return every capability name unlocked by *tier*."""
    return frozenset(name for name, tiers in PERMISSION_TABLE.items() if tier in tiers)
