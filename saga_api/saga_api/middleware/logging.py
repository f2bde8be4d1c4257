"""Structured request-logging middleware."""

from __future__ import annotations

import logging
import time
import uuid
from collections.abc import Collection
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from saga_api.middleware.rate_limit import client_address

logger = logging.getLogger("saga_api.access")

# Header names whose values must be masked in log output.
_SENSITIVE_HEADERS: frozenset[str] = frozenset({"authorization", "cookie", "stripe-signature"})
_MASK: str = "***"

_CORRELATION_HEADER: str = "X-Correlation-ID"

# Access-layer rejections are expected traffic, not client errors.
_ACCESS_REJECTIONS: frozenset[int] = frozenset({401, 403, 429})


def _safe_headers(request: Request) -> dict[str, str]:
    return {key: (_MASK if key.lower() in _SENSITIVE_HEADERS else value) for key, value in request.headers.items()}


def _level_for(status_code: int) -> int:
    if status_code >= 500:
        return logging.ERROR
    if status_code in _ACCESS_REJECTIONS:
        return logging.INFO
    if status_code >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request with method, path, status code, and duration.

    Each record carries a ``correlation_id`` (from the incoming
    ``X-Correlation-ID`` header or a fresh UUID-4, echoed back on the
    response), the caller's ``uid`` when one was verified, and the
    remaining quota reported by the rate limiters.  401/403/429 are logged
    at INFO, other 4xx at WARNING, 5xx at ERROR.
    """

    def __init__(self, app: Any, trusted_proxies: Collection[str] = frozenset()) -> None:
        super().__init__(app)
        self._trusted_proxies = frozenset(trusted_proxies)

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get(_CORRELATION_HEADER.lower()) or str(uuid.uuid4())

        start = time.monotonic()
        response: Response | None = None
        try:
            response = await call_next(request)
            response.headers[_CORRELATION_HEADER] = correlation_id
            return response
        finally:
            status_code = response.status_code if response is not None else 500
            log_payload: dict[str, Any] = {
                "method": request.method,
                "path": request.url.path,
                "query": str(request.url.query) if request.url.query else None,
                "status_code": status_code,
                "duration_ms": round((time.monotonic() - start) * 1000, 2),
                "client": client_address(request, self._trusted_proxies),
                "correlation_id": correlation_id,
                "uid": getattr(request.state, "uid", None) or "anonymous",
                "rate_limit_remaining": response.headers.get("X-RateLimit-Remaining") if response else None,
                "headers": _safe_headers(request),
            }
            logger.log(_level_for(status_code), "request completed", extra={"request": log_payload})
