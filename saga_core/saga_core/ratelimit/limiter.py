"""Fixed-window rate limiter with per-tier quotas.

For each request the limiter fetches the key's :class:`RateWindow` (or
starts a new one), then:

* if the window has run its course (``now >= window_start +
  window_seconds``) it is reset to ``count=1`` and the request allowed;
* otherwise ``count`` is incremented.  Over-limit increments are still
  recorded, and the request is throttled with
  ``retry_after_seconds = ceil(reset_at - now)``.

The quota is looked up from the tier on every call, so a tier change is
picked up on the very next request.  A window that opened under one tier
keeps its start time; only the limit changes.
"""

from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, replace

from saga_core.ratelimit.quotas import DEFAULT_AI_QUOTAS, Quota, QuotaTable
from saga_core.ratelimit.store import InMemoryRateLimitStore, RateLimitStore, RateWindow
from saga_core.tiers import SubscriptionTier

logger = logging.getLogger(__name__)

# Bound on optimistic retries when another request for the same key wins
# the swap.  Exhausting it fails closed.
_MAX_SWAP_ATTEMPTS: int = 32


@dataclass(frozen=True)
class RateDecision:
    """Outcome of one rate-limit check.

    ``allowed`` requests carry ``remaining``; throttled ones carry
    ``retry_after_seconds`` (always >= 1).  Both carry ``reset_at`` as a
    UNIX timestamp in seconds.
    """

    allowed: bool
    limit: int
    remaining: int
    reset_at: float
    retry_after_seconds: int = 0

    def headers(self) -> dict[str, str]:
        """Standard ``X-RateLimit-*`` headers (plus ``Retry-After`` when throttled)."""
        out = {
            "X-RateLimit-Limit": str(self.limit),
            "X-RateLimit-Remaining": str(self.remaining),
            "X-RateLimit-Reset": str(int(math.ceil(self.reset_at))),
        }
        if not self.allowed:
            out["Retry-After"] = str(self.retry_after_seconds)
        return out


class RateLimiter:
    """Per-key fixed-window limiter.

    Parameters
    ----------
    store:
        Window storage.  Defaults to a fresh :class:`InMemoryRateLimitStore`.
    quotas:
        Tier to quota mapping used by :meth:`check`.
    clock:
        Returns the current UNIX time in seconds.  Injected by tests.
    """

    def __init__(
        self,
        store: RateLimitStore | None = None,
        quotas: QuotaTable = DEFAULT_AI_QUOTAS,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store: RateLimitStore = store if store is not None else InMemoryRateLimitStore(clock)
        self._quotas = quotas
        self._clock = clock

    @property
    def store(self) -> RateLimitStore:
        return self._store

    @property
    def quotas(self) -> QuotaTable:
        return self._quotas

    async def check(self, key: str, tier: SubscriptionTier | None, now: float | None = None) -> RateDecision:
        """Record a request for *key* against *tier*'s quota."""
        return await self.hit(key, self._quotas.for_tier(tier), now=now)

    async def hit(self, key: str, quota: Quota, now: float | None = None) -> RateDecision:
        """Record a request for *key* against an explicit *quota*."""
        now = self._clock() if now is None else now

        for _ in range(_MAX_SWAP_ATTEMPTS):
            current = await self._store.get(key)
            if current is None or current.is_expired(now):
                updated = RateWindow(
                    key=key,
                    count=1,
                    window_start=now,
                    window_seconds=quota.window_seconds,
                    limit=quota.limit,
                )
            else:
                updated = replace(current, count=current.count + 1, limit=quota.limit)

            if await self._store.compare_and_swap(key, current, updated):
                return self._decide(updated, now)

        logger.error("Rate-limit store contention on key=%s; failing closed", key)
        return RateDecision(
            allowed=False,
            limit=quota.limit,
            remaining=0,
            reset_at=now + 1,
            retry_after_seconds=1,
        )

    @staticmethod
    def _decide(window: RateWindow, now: float) -> RateDecision:
        if window.count > window.limit:
            retry_after = max(int(math.ceil(window.reset_at - now)), 1)
            return RateDecision(
                allowed=False,
                limit=window.limit,
                remaining=0,
                reset_at=window.reset_at,
                retry_after_seconds=retry_after,
            )
        return RateDecision(
            allowed=True,
            limit=window.limit,
            remaining=window.limit - window.count,
            reset_at=window.reset_at,
        )
