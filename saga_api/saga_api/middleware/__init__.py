"""Middleware components for the Saga API."""

from __future__ import annotations

from saga_api.middleware.access import get_claims, require_admin, require_capability, require_identity
from saga_api.middleware.auth import AuthenticationMiddleware
from saga_api.middleware.logging import RequestLoggingMiddleware
from saga_api.middleware.rate_limit import RateLimitConfig, RateLimitMiddleware, client_address
from saga_api.middleware.security_headers import SecurityHeadersMiddleware

__all__ = [
    "AuthenticationMiddleware",
    "RateLimitConfig",
    "RateLimitMiddleware",
    "RequestLoggingMiddleware",
    "SecurityHeadersMiddleware",
    "client_address",
    "get_claims",
    "require_admin",
    "require_capability",
    "require_identity",
]
