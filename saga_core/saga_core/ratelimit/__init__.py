"""Tiered fixed-window rate limiting."""

from saga_core.ratelimit.limiter import RateDecision, RateLimiter
from saga_core.ratelimit.quotas import DEFAULT_AI_QUOTAS, DEFAULT_GLOBAL_QUOTA, Quota, QuotaTable
from saga_core.ratelimit.store import InMemoryRateLimitStore, RateLimitStore, RateWindow

__all__ = [
    "DEFAULT_AI_QUOTAS",
    "DEFAULT_GLOBAL_QUOTA",
    "InMemoryRateLimitStore",
    "Quota",
    "QuotaTable",
    "RateDecision",
    "RateLimitStore",
    "RateLimiter",
    "RateWindow",
]
