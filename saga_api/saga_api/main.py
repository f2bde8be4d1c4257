"""FastAPI application entry-point for the Saga API."""

from __future__ import annotations

import logging
import secrets
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from saga_core.ratelimit.limiter import RateLimiter
from saga_core.ratelimit.store import InMemoryRateLimitStore
from sqlalchemy.exc import SQLAlchemyError

from saga_api import __version__
from saga_api.config import APISettings
from saga_api.dependencies import (
    dispose_access_gate,
    dispose_coaching_client,
    dispose_profile_store,
    get_settings,
    init_access_gate,
    init_coaching_client,
    init_profile_store,
)
from saga_api.middleware.auth import AuthenticationMiddleware
from saga_api.middleware.json_formatter import configure_structured_logging
from saga_api.middleware.logging import RequestLoggingMiddleware
from saga_api.middleware.rate_limit import RateLimitConfig, RateLimitMiddleware
from saga_api.middleware.security_headers import SecurityHeadersMiddleware
from saga_api.routers import admin, ai, health, subscription, webhooks
from saga_api.security import TokenVerifier

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application startup / shutdown lifecycle.

    On startup:
    - Open the profile store and create its tables if missing.
    - Build the access gate (resolver + per-tier AI limiter).
    - Initialise the coaching engine HTTP client.

    On shutdown the same resources are released in reverse order.
    """
    settings: APISettings = app.state.settings

    if settings.structured_logging:
        configure_structured_logging()
        logger.info("Structured JSON logging enabled")

    profile_store = await init_profile_store(settings)
    logger.info("Profile store initialised (%s)", settings.database_url.split("://", 1)[0])

    init_access_gate(settings, profile_store)
    logger.info(
        "Access gate initialised (AI quotas: explorer=%d growth=%d transformation=%d per %.0fs)",
        settings.ai_quota_explorer,
        settings.ai_quota_growth,
        settings.ai_quota_transformation,
        settings.ai_quota_window_seconds,
    )

    init_coaching_client(settings)
    logger.info("Coaching engine client initialised (%s)", settings.ai_engine_url)

    global_store: InMemoryRateLimitStore = app.state.global_rate_store
    global_store.start()

    yield

    await global_store.stop()
    await dispose_coaching_client()
    await dispose_access_gate()
    await dispose_profile_store()
    logger.info("Application shutdown complete")


# ---------------------------------------------------------------------------
# Application factory
# ---------------------------------------------------------------------------


def resolve_token_secret(settings: APISettings) -> str:
    """Return the identity-token secret, refusing to run without one.

    In debug mode a missing secret is replaced by a random per-process
    value; tokens then do not survive a restart.  Otherwise a missing
    secret raises :class:`RuntimeError`.
    """
    secret = settings.auth_token_secret.get_secret_value()
    if secret:
        return secret
    if settings.debug:
        logger.warning(
            "SAGA_AUTH_TOKEN_SECRET not set; generated random per-process dev secret. "
            "Tokens will not survive process restarts."
        )
        return f"dev-{secrets.token_hex(32)}"
    raise RuntimeError(
        "SAGA_AUTH_TOKEN_SECRET must be set when debug is disabled. "
        "Refusing to start with an insecure default secret."
    )


def create_app(settings: APISettings | None = None) -> FastAPI:
    """Construct and configure the FastAPI application."""
    settings = settings or get_settings()

    app = FastAPI(
        title="Saga API",
        description="Relationship coaching platform: identity, tiered access and AI quotas.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.global_rate_store = InMemoryRateLimitStore()

    # -- Middleware (last added runs first) ----------------------------------

    app.add_middleware(
        AuthenticationMiddleware,
        verifier=TokenVerifier(resolve_token_secret(settings)),
    )
    app.add_middleware(
        RateLimitMiddleware,
        config=RateLimitConfig(
            enabled=settings.rate_limit_enabled,
            quota=settings.global_quota(),
            trusted_proxies=set(settings.trusted_proxies),
        ),
        limiter=RateLimiter(store=app.state.global_rate_store),
    )
    app.add_middleware(RequestLoggingMiddleware, trusted_proxies=settings.trusted_proxies)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "PUT", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Correlation-ID", "Accept"],
        expose_headers=["Retry-After", "X-RateLimit-Limit", "X-RateLimit-Remaining", "X-RateLimit-Reset"],
    )
    app.add_middleware(SecurityHeadersMiddleware)

    # -- Routers -------------------------------------------------------------

    app.include_router(health.router, prefix="/api")
    app.include_router(ai.router, prefix="/api")
    app.include_router(subscription.router, prefix="/api")
    app.include_router(admin.router, prefix="/api")
    app.include_router(webhooks.router, prefix="/api")

    # -- Exception handlers --------------------------------------------------

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError) -> JSONResponse:
        logger.warning("ValueError on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=400, content={"detail": "Invalid request"})

    @app.exception_handler(PermissionError)
    async def permission_error_handler(request: Request, exc: PermissionError) -> JSONResponse:
        logger.warning("PermissionError on %s: %s", request.url.path, exc)
        return JSONResponse(status_code=403, content={"detail": "Permission denied"})

    @app.exception_handler(SQLAlchemyError)
    async def sqlalchemy_error_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
        logger.error("Database error: %s", exc, exc_info=True)
        return JSONResponse(status_code=500, content={"detail": "Internal database error"})

    return app


# Module-level application instance used by ``uvicorn saga_api.main:app``.
app = create_app()
