"""Tests for the fixed-window limiter and its in-memory store.

Time is driven explicitly through the ``now`` argument.
"""

from __future__ import annotations

import asyncio

import pytest

from saga_core.ratelimit.limiter import RateDecision, RateLimiter
from saga_core.ratelimit.quotas import DEFAULT_AI_QUOTAS, HOUR_SECONDS, Quota, QuotaTable
from saga_core.ratelimit.store import InMemoryRateLimitStore, RateWindow
from saga_core.tiers import SubscriptionTier

T0 = 1_700_000_000.0


class _LosingStore(InMemoryRateLimitStore):
    """Store whose swaps fail a fixed number of times, as if another replica raced."""

    def __init__(self, failures: int) -> None:
        super().__init__()
        self.failures = failures
        self.attempts = 0

    async def compare_and_swap(self, key: str, expected: RateWindow | None, new: RateWindow) -> bool:
        self.attempts += 1
        if self.failures > 0:
            self.failures -= 1
            return False
        return await super().compare_and_swap(key, expected, new)


class TestQuotas:
    def test_default_tier_quotas(self) -> None:
        assert DEFAULT_AI_QUOTAS.for_tier(SubscriptionTier.EXPLORER).limit == 20
        assert DEFAULT_AI_QUOTAS.for_tier(SubscriptionTier.GROWTH).limit == 200
        assert DEFAULT_AI_QUOTAS.for_tier(SubscriptionTier.TRANSFORMATION).limit == 1000

    def test_anonymous_gets_explorer_quota(self) -> None:
        assert DEFAULT_AI_QUOTAS.for_tier(None) == DEFAULT_AI_QUOTAS.for_tier(SubscriptionTier.EXPLORER)

    def test_describe(self) -> None:
        assert Quota(limit=200, window_seconds=HOUR_SECONDS).describe() == "200 requests/hour"
        assert Quota(limit=100, window_seconds=900).describe() == "100 requests per 15 minutes"

    def test_non_positive_limit_rejected(self) -> None:
        with pytest.raises(ValueError):
            Quota(limit=0, window_seconds=60)


class TestFixedWindow:
    @pytest.mark.asyncio
    async def test_explorer_twenty_allowed_then_throttled(self) -> None:
        limiter = RateLimiter()
        decisions = [await limiter.check("ai:user:u1", SubscriptionTier.EXPLORER, now=T0 + i) for i in range(21)]

        assert all(d.allowed for d in decisions[:20])
        last = decisions[20]
        assert not last.allowed
        assert last.retry_after_seconds > 0
        assert last.remaining == 0

    @pytest.mark.asyncio
    async def test_remaining_counts_down(self) -> None:
        limiter = RateLimiter()
        first = await limiter.check("k", SubscriptionTier.EXPLORER, now=T0)
        second = await limiter.check("k", SubscriptionTier.EXPLORER, now=T0 + 1)
        assert first.remaining == 19
        assert second.remaining == 18

    @pytest.mark.asyncio
    async def test_retry_after_tracks_window_end(self) -> None:
        limiter = RateLimiter(quotas=QuotaTable(explorer=Quota(limit=1, window_seconds=60)))
        await limiter.check("k", SubscriptionTier.EXPLORER, now=T0)
        throttled = await limiter.check("k", SubscriptionTier.EXPLORER, now=T0 + 10.5)
        assert throttled.retry_after_seconds == 50
        assert throttled.headers()["Retry-After"] == "50"

    @pytest.mark.asyncio
    async def test_window_resets_after_elapsing(self) -> None:
        limiter = RateLimiter(quotas=QuotaTable(explorer=Quota(limit=2, window_seconds=60)))
        for i in range(3):
            await limiter.check("k", SubscriptionTier.EXPLORER, now=T0 + i)

        decision = await limiter.check("k", SubscriptionTier.EXPLORER, now=T0 + 60)
        assert decision.allowed
        window = await limiter.store.get("k")
        assert window is not None
        assert window.count == 1
        assert window.window_start == T0 + 60

    @pytest.mark.asyncio
    async def test_over_limit_requests_are_recorded(self) -> None:
        limiter = RateLimiter(quotas=QuotaTable(explorer=Quota(limit=1, window_seconds=60)))
        for i in range(4):
            await limiter.check("k", SubscriptionTier.EXPLORER, now=T0 + i)
        window = await limiter.store.get("k")
        assert window is not None
        assert window.count == 4

    @pytest.mark.asyncio
    async def test_keys_are_isolated(self) -> None:
        limiter = RateLimiter(quotas=QuotaTable(explorer=Quota(limit=1, window_seconds=60)))
        await limiter.check("a", SubscriptionTier.EXPLORER, now=T0)
        assert (await limiter.check("b", SubscriptionTier.EXPLORER, now=T0)).allowed

    @pytest.mark.asyncio
    async def test_tier_upgrade_applies_on_next_request(self) -> None:
        limiter = RateLimiter()
        for i in range(21):
            await limiter.check("k", SubscriptionTier.EXPLORER, now=T0 + i)

        decision = await limiter.check("k", SubscriptionTier.GROWTH, now=T0 + 30)
        assert decision.allowed
        assert decision.limit == 200
        window = await limiter.store.get("k")
        assert window is not None
        assert window.window_start == T0

    def test_headers_on_allowed_decision(self) -> None:
        headers = RateDecision(allowed=True, limit=20, remaining=5, reset_at=T0 + 0.2).headers()
        assert headers == {
            "X-RateLimit-Limit": "20",
            "X-RateLimit-Remaining": "5",
            "X-RateLimit-Reset": str(int(T0) + 1),
        }


class TestConcurrency:
    @pytest.mark.asyncio
    async def test_two_racing_requests_at_limit_minus_one(self) -> None:
        limiter = RateLimiter(quotas=QuotaTable(explorer=Quota(limit=5, window_seconds=60)))
        for i in range(4):
            await limiter.check("k", SubscriptionTier.EXPLORER, now=T0 + i)

        results = await asyncio.gather(
            limiter.check("k", SubscriptionTier.EXPLORER, now=T0 + 10),
            limiter.check("k", SubscriptionTier.EXPLORER, now=T0 + 10),
        )
        assert sorted(r.allowed for r in results) == [False, True]

    @pytest.mark.asyncio
    async def test_many_concurrent_requests_never_overshoot(self) -> None:
        limiter = RateLimiter(quotas=QuotaTable(explorer=Quota(limit=20, window_seconds=60)))
        results = await asyncio.gather(
            *(limiter.check("k", SubscriptionTier.EXPLORER, now=T0) for _ in range(50))
        )
        assert sum(r.allowed for r in results) == 20

    @pytest.mark.asyncio
    async def test_lost_swap_is_retried(self) -> None:
        store = _LosingStore(failures=3)
        limiter = RateLimiter(store=store)
        decision = await limiter.check("k", SubscriptionTier.EXPLORER, now=T0)
        assert decision.allowed
        assert store.attempts == 4

    @pytest.mark.asyncio
    async def test_persistent_contention_fails_closed(self) -> None:
        limiter = RateLimiter(store=_LosingStore(failures=10_000))
        decision = await limiter.check("k", SubscriptionTier.EXPLORER, now=T0)
        assert not decision.allowed
        assert decision.retry_after_seconds == 1


class TestStoreHousekeeping:
    @pytest.mark.asyncio
    async def test_prune_drops_expired_windows(self) -> None:
        store = InMemoryRateLimitStore()
        limiter = RateLimiter(store=store, quotas=QuotaTable(explorer=Quota(limit=5, window_seconds=60)))
        await limiter.check("old", SubscriptionTier.EXPLORER, now=T0)
        await limiter.check("fresh", SubscriptionTier.EXPLORER, now=T0 + 50)

        removed = await store.prune(now=T0 + 61)
        assert removed == 1
        assert len(store) == 1
        assert await store.get("old") is None

    @pytest.mark.asyncio
    async def test_start_and_stop_cleanup_task(self) -> None:
        store = InMemoryRateLimitStore()
        store.start()
        store.start()
        await store.stop()
        await store.stop()

    @pytest.mark.asyncio
    async def test_compare_and_swap_rejects_stale_expectation(self) -> None:
        store = InMemoryRateLimitStore()
        first = RateWindow(key="k", count=1, window_start=T0, window_seconds=60, limit=5)
        assert await store.compare_and_swap("k", None, first)
        assert not await store.compare_and_swap("k", None, first)
