"""Tier resolver: turn verified token claims into an :class:`Identity`.

Resolution is two steps with a fixed precedence:

1. **Claims.**  ``role`` and ``subscriptionTier`` custom claims are
   refreshed server-side whenever a tier changes, so when present they
   are authoritative and override anything in the stored profile.
2. **Stored profile.**  Consulted only for fields the claims lack.  This
   covers the window right after signup where the profile document exists
   but the claims have not propagated yet.

Fields missing from both fall back to ``role=user`` / ``tier=Explorer``.

A tier claim of ``"admin"`` is treated as the highest paid tier and also
sets ``role=admin``.  A boolean ``admin: true`` claim sets ``role=admin``
as well.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from typing import Any

from saga_core.errors import Unauthenticated
from saga_core.identity import Identity, ProfileRecord, ResolutionSource
from saga_core.profiles import ProfileStore
from saga_core.tiers import (
    ADMIN_TIER_CLAIM,
    DEFAULT_ROLE,
    DEFAULT_TIER,
    Role,
    SubscriptionTier,
    parse_role,
    parse_tier,
)

logger = logging.getLogger(__name__)

# Claim names, camelCase as written by the identity provider.  The
# snake_case spelling is accepted for tokens minted by internal tools.
_TIER_CLAIMS: tuple[str, ...] = ("subscriptionTier", "subscription_tier")
_SUBJECT_CLAIMS: tuple[str, ...] = ("uid", "sub", "user_id")


def _first_claim(claims: Mapping[str, Any], names: tuple[str, ...]) -> Any:
    for name in names:
        value = claims.get(name)
        if value not in (None, ""):
            return value
    return None


class TierResolver:
    """Resolve ``(role, tier)`` for a request.

    Parameters
    ----------
    profile_store:
        Fallback source for role/tier when claims are incomplete.  When
        ``None`` the resolver relies on claims and defaults only.
    """

    def __init__(self, profile_store: ProfileStore | None = None) -> None:
        self._profiles = profile_store

    async def resolve(self, claims: Mapping[str, Any] | None) -> Identity:
        """Return the :class:`Identity` described by *claims*.

        Raises
        ------
        Unauthenticated
            If there are no verified claims or they carry no subject.
        """
        if not claims:
            raise Unauthenticated("No verified identity token")

        uid = _first_claim(claims, _SUBJECT_CLAIMS)
        if not uid:
            raise Unauthenticated("Identity token has no subject")
        uid = str(uid)

        raw_role = claims.get("role")
        raw_tier = _first_claim(claims, _TIER_CLAIMS)
        used: set[ResolutionSource] = set()
        if raw_role is not None or raw_tier is not None:
            used.add(ResolutionSource.CLAIMS)

        if raw_role is None or raw_tier is None:
            profile = await self._load_profile(uid)
            if profile is not None:
                if raw_role is None and profile.role:
                    raw_role = profile.role
                    used.add(ResolutionSource.PROFILE)
                if raw_tier is None and profile.subscription_tier:
                    raw_tier = profile.subscription_tier
                    used.add(ResolutionSource.PROFILE)

        if ResolutionSource.PROFILE in used:
            source = ResolutionSource.PROFILE
        elif ResolutionSource.CLAIMS in used:
            source = ResolutionSource.CLAIMS
        else:
            source = ResolutionSource.DEFAULT

        role = self._coerce_role(uid, raw_role)
        if isinstance(raw_tier, str) and raw_tier.strip().lower() == ADMIN_TIER_CLAIM:
            tier = SubscriptionTier.TRANSFORMATION
            role = Role.ADMIN
        else:
            tier = self._coerce_tier(uid, raw_tier)

        if claims.get("admin") is True:
            role = Role.ADMIN

        identity = Identity(id=uid, role=role, subscription_tier=tier, source=source)
        logger.debug(
            "Resolved identity uid=%s role=%s tier=%s source=%s",
            uid,
            identity.role.value,
            identity.subscription_tier.value,
            identity.source.value,
        )
        return identity

    async def _load_profile(self, uid: str) -> ProfileRecord | None:
        if self._profiles is None:
            return None
        try:
            return await self._profiles.get(uid)
        except Exception:
            # Profile outage: fall back to defaults.
            logger.warning("Profile lookup failed for uid=%s; using defaults", uid, exc_info=True)
            return None

    @staticmethod
    def _coerce_role(uid: str, raw: Any) -> Role:
        if raw is None:
            return DEFAULT_ROLE
        try:
            return parse_role(str(raw))
        except ValueError:
            logger.warning("Unrecognised role '%s' for uid=%s; using '%s'", raw, uid, DEFAULT_ROLE.value)
            return DEFAULT_ROLE

    @staticmethod
    def _coerce_tier(uid: str, raw: Any) -> SubscriptionTier:
        if raw is None:
            return DEFAULT_TIER
        try:
            return parse_tier(str(raw))
        except ValueError:
            logger.warning("Unrecognised tier '%s' for uid=%s; using '%s'", raw, uid, DEFAULT_TIER.value)
            return DEFAULT_TIER
