"""Global rate-limiting middleware -- fixed window, per client address.

A coarse abuse guard in front of all ``/api/`` traffic, independent of
subscription tier (100 requests per 15 minutes by default).  The
tier-specific AI quotas are enforced separately by the access gate on
the AI endpoints.

Payment-provider webhooks and health probes are exempt.
"""

from __future__ import annotations

import logging
from collections.abc import Collection
from typing import Any

from pydantic import BaseModel
from saga_core.ratelimit.limiter import RateLimiter
from saga_core.ratelimit.quotas import DEFAULT_GLOBAL_QUOTA, Quota
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

logger = logging.getLogger(__name__)


class RateLimitConfig(BaseModel):
    """Global rate-limit configuration.

    Attributes:
        enabled: Master toggle.  When ``False`` the middleware is a
            pass-through.
        quota: Budget per client address.
        path_prefix: Only paths under this prefix are limited.
        exempt_paths: Paths that bypass rate limiting entirely.
        trusted_proxies: Peer addresses whose forwarding headers are
            believed.  ``"*"`` trusts every peer.
    """

    enabled: bool = True
    quota: Quota = DEFAULT_GLOBAL_QUOTA
    path_prefix: str = "/api/"
    exempt_paths: set[str] = {"/api/health", "/api/stripe/webhooks"}
    trusted_proxies: set[str] = set()


def client_address(request: Request, trusted_proxies: Collection[str] = frozenset()) -> str:
    """Best-effort client address.

    Forwarding headers are only read when the socket peer is listed in
    *trusted_proxies* (or the list contains ``"*"``).  Order: first hop
    of ``X-Forwarded-For``, ``X-Real-IP``, ``CF-Connecting-IP``, the
    socket peer, then ``"unknown"``.
    """
    peer = request.client.host if request.client and request.client.host else None
    if "*" in trusted_proxies or (peer is not None and peer in trusted_proxies):
        forwarded = request.headers.get("x-forwarded-for")
        if forwarded:
            first = forwarded.split(",")[0].strip()
            if first:
                return first
        for header in ("x-real-ip", "cf-connecting-ip"):
            value = request.headers.get(header)
            if value:
                return value.strip()
    return peer or "unknown"


class RateLimitMiddleware(BaseHTTPMiddleware):
    """Starlette middleware enforcing the global per-address quota.

    Decorates every limited response with ``X-RateLimit-Limit``,
    ``X-RateLimit-Remaining`` and ``X-RateLimit-Reset`` and answers
    ``429 Too Many Requests`` with ``Retry-After`` once the budget is
    spent.
    """

    def __init__(
        self,
        app: Any,
        config: RateLimitConfig | None = None,
        limiter: RateLimiter | None = None,
    ) -> None:
        super().__init__(app)
        self._config: RateLimitConfig = config or RateLimitConfig()
        self._limiter: RateLimiter = limiter or RateLimiter()
        logger.info(
            "RateLimitMiddleware initialised (enabled=%s, limit=%d per %.0fs)",
            self._config.enabled,
            self._config.quota.limit,
            self._config.quota.window_seconds,
        )

    def _is_limited(self, path: str) -> bool:
        if path in self._config.exempt_paths:
            return False
        return path.startswith(self._config.path_prefix)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not self._config.enabled or not self._is_limited(request.url.path):
            return await call_next(request)

        address = client_address(request, self._config.trusted_proxies)
        decision = await self._limiter.hit(f"api:ip:{address}", self._config.quota)

        if not decision.allowed:
            logger.warning(
                "Rate limit exceeded: client=%s path=%s limit=%d",
                address,
                request.url.path,
                decision.limit,
            )
            return JSONResponse(
                status_code=429,
                content={
                    "error": "Rate limit exceeded",
                    "reason": "rate_limited",
                    "retry_after": decision.retry_after_seconds,
                },
                headers=decision.headers(),
            )

        response = await call_next(request)
        response.headers.update(decision.headers())
        return response
