"""Authentication middleware that extracts and verifies identity tokens.

Reads ``Authorization: Bearer <token>``, verifies it with
:class:`~saga_api.security.TokenVerifier`, and stores the claims on
``request.state.claims`` (``None`` for anonymous callers) and the
identity id on ``request.state.uid``.

The middleware never rejects a request itself.  A missing or invalid
token leaves the caller anonymous; the access gate in front of each
protected endpoint turns that into a 401, so every rejection comes out
of one place with one response shape.  Public paths skip verification
entirely.
"""

from __future__ import annotations

import logging
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from saga_api.security import TokenVerifier

logger = logging.getLogger(__name__)

# Paths that never carry a user identity.
_PUBLIC_PATHS: frozenset[str] = frozenset(
    {
        "/api/health",
        "/api/stripe/webhooks",
        "/docs",
        "/openapi.json",
        "/redoc",
        "/favicon.ico",
    }
)

_PUBLIC_PREFIXES: tuple[str, ...] = (
    "/docs",
    "/redoc",
)


def is_public_path(path: str) -> bool:
    """Return ``True`` if the path should bypass authentication."""
    if path in _PUBLIC_PATHS:
        return True
    return any(path.startswith(prefix) for prefix in _PUBLIC_PREFIXES)


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("authorization")
    if not auth_header:
        return None
    parts = auth_header.split(None, 1)
    if len(parts) != 2 or parts[0].lower() != "bearer":
        return None
    return parts[1].strip() or None


class AuthenticationMiddleware(BaseHTTPMiddleware):
    """Populate ``request.state`` with verified identity claims."""

    def __init__(self, app: Any, verifier: TokenVerifier) -> None:
        super().__init__(app)
        self._verifier = verifier
        logger.info("AuthenticationMiddleware initialised")

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        request.state.claims = None
        request.state.uid = None
        request.state.auth_error = None

        if is_public_path(request.url.path):
            return await call_next(request)

        token = _bearer_token(request)
        if token is not None:
            try:
                claims = self._verifier.verify(token)
            except PermissionError as exc:
                request.state.auth_error = str(exc)
                logger.warning("Rejected identity token on %s: %s", request.url.path, exc)
            else:
                request.state.claims = claims
                request.state.uid = claims.get("uid") or claims.get("sub")

        return await call_next(request)
