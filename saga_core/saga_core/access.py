"""Composed access gate: resolve, authorize, rate-limit.

One call decides whether a protected endpoint may run::

    Start
      -> resolve identity      -- Unauthenticated --> 401
      -> check capability      -- Forbidden ---------> 403 (upgrade required)
      -> check rate limit      -- Throttled ---------> 429 (Retry-After)
      -> PASS

Every failure is converted into an :class:`AccessDecision`; nothing in
here raises into the caller.  There are no internal retries -- the
client decides whether to retry from the ``Retry-After`` hint.
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from saga_core.authorization import check_capability
from saga_core.errors import AccessError, ConfigurationError, Forbidden, RateLimited, Unauthenticated
from saga_core.identity import Identity
from saga_core.permissions import Capability, allowed_tiers
from saga_core.ratelimit.limiter import RateDecision, RateLimiter
from saga_core.ratelimit.quotas import QuotaTable
from saga_core.resolver import TierResolver
from saga_core.tiers import TIER_ORDER, SubscriptionTier, next_tiers

logger = logging.getLogger(__name__)


class AccessOutcome(str, Enum):
    PASS = "pass"
    UNAUTHENTICATED = "unauthenticated"
    FORBIDDEN = "forbidden"
    THROTTLED = "throttled"


@dataclass(frozen=True)
class AccessDecision:
    """The single pre-handler verdict for a protected endpoint."""

    outcome: AccessOutcome
    status_code: int = 200
    reason: str = "ok"
    message: str = ""
    identity: Identity | None = None
    rate: RateDecision | None = None
    required_tiers: tuple[SubscriptionTier, ...] = field(default_factory=tuple)
    upgrade_message: str | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome == AccessOutcome.PASS

    def to_payload(self) -> dict[str, Any]:
        """JSON body for a rejection response."""
        payload: dict[str, Any] = {"error": self.message or self.reason, "reason": self.reason}
        if self.identity is not None:
            payload["current_tier"] = self.identity.subscription_tier.value
        if self.required_tiers:
            payload["required_tiers"] = [t.value for t in self.required_tiers]
        if self.upgrade_message:
            payload["upgrade_message"] = self.upgrade_message
        if self.rate is not None and not self.rate.allowed:
            payload["retry_after"] = self.rate.retry_after_seconds
            payload["requests_remaining"] = self.rate.remaining
            payload["reset_at"] = int(self.rate.reset_at)
        return payload

    def headers(self) -> dict[str, str]:
        if self.rate is None:
            return {}
        return self.rate.headers()


def rate_limit_key(identity: Identity | None, client_address: str | None, *, scope: str = "ai") -> str:
    """Key rate windows by identity id when known, else by client address."""
    if identity is not None:
        return f"{scope}:user:{identity.id}"
    return f"{scope}:ip:{client_address or 'unknown'}"


def upgrade_message(tier: SubscriptionTier, quotas: QuotaTable) -> str:
    """Tier-specific hint shown when the AI quota is exhausted."""
    higher = next_tiers(tier)
    if not higher:
        return "You have reached your rate limit"
    offers = " or ".join(f"{t.value} for {quotas.for_tier(t).describe()}" for t in higher)
    return f"Upgrade to {offers}"


class AccessGate:
    """Wire :class:`TierResolver`, the authorization gate and
    :class:`RateLimiter` into one decision.

    Parameters
    ----------
    resolver:
        Produces the identity from verified claims.
    limiter:
        Quota enforcement for the gated endpoints.
    """

    def __init__(self, resolver: TierResolver, limiter: RateLimiter) -> None:
        self._resolver = resolver
        self._limiter = limiter

    @property
    def limiter(self) -> RateLimiter:
        return self._limiter

    async def identify(self, claims: Mapping[str, Any] | None) -> Identity | AccessDecision:
        """Resolve *claims*; return a 401 decision instead of raising."""
        try:
            return await self._resolver.resolve(claims)
        except Unauthenticated as exc:
            return AccessDecision(
                outcome=AccessOutcome.UNAUTHENTICATED,
                status_code=exc.status_code,
                reason=exc.reason,
                message=exc.message,
            )

    async def evaluate(
        self,
        claims: Mapping[str, Any] | None,
        capability: Capability | str | None,
        *,
        client_address: str | None = None,
        rate_limited: bool = True,
        now: float | None = None,
    ) -> AccessDecision:
        """Run the full pipeline for one request.

        Parameters
        ----------
        claims:
            Verified token claims, or ``None`` for anonymous callers.
        capability:
            Capability the endpoint requires, or ``None`` when any
            authenticated caller may use it.
        client_address:
            Network address, used for logging and as the key fallback.
        rate_limited:
            Whether the endpoint is subject to the tier quota.
        """
        resolved = await self.identify(claims)
        if isinstance(resolved, AccessDecision):
            logger.info("Access denied (unauthenticated): client=%s", client_address or "unknown")
            return resolved
        identity = resolved

        rate: RateDecision | None = None
        try:
            if capability is not None:
                check_capability(identity, capability)
            if rate_limited:
                rate = await self._limiter.check(
                    rate_limit_key(identity, client_address),
                    identity.subscription_tier,
                    now=now,
                )
                if not rate.allowed:
                    raise RateLimited(
                        f"AI rate limit exceeded for {identity.subscription_tier.value} tier",
                        retry_after_seconds=rate.retry_after_seconds,
                    )
        except ConfigurationError as exc:
            return AccessDecision(
                outcome=AccessOutcome.FORBIDDEN,
                status_code=exc.status_code,
                reason=exc.reason,
                message=exc.message,
                identity=identity,
            )
        except Forbidden as exc:
            tiers = allowed_tiers(capability) or frozenset()
            return AccessDecision(
                outcome=AccessOutcome.FORBIDDEN,
                status_code=exc.status_code,
                reason=exc.reason,
                message=exc.message,
                identity=identity,
                required_tiers=tuple(t for t in TIER_ORDER if t in tiers),
            )
        except RateLimited as exc:
            logger.warning(
                "AI rate limit exceeded: uid=%s tier=%s limit=%d retry_after=%d",
                identity.id,
                identity.subscription_tier.value,
                rate.limit if rate else 0,
                exc.retry_after_seconds,
            )
            return AccessDecision(
                outcome=AccessOutcome.THROTTLED,
                status_code=exc.status_code,
                reason=exc.reason,
                message=exc.message,
                identity=identity,
                rate=rate,
                upgrade_message=upgrade_message(identity.subscription_tier, self._limiter.quotas),
            )
        except AccessError as exc:
            logger.warning("Access denied: uid=%s reason=%s", identity.id, exc.reason)
            return AccessDecision(
                outcome=AccessOutcome.FORBIDDEN,
                status_code=exc.status_code,
                reason=exc.reason,
                message=exc.message,
                identity=identity,
            )

        return AccessDecision(outcome=AccessOutcome.PASS, identity=identity, rate=rate)
