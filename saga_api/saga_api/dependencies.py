"""FastAPI dependency injection for settings, the profile store, the
access gate and the coaching engine client.

Process-wide singletons are created in the application lifespan via the
``init_*`` functions and torn down with the ``dispose_*`` functions.
Tests replace them with ``app.dependency_overrides``.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import Depends
from saga_core.access import AccessGate
from saga_core.profiles import ProfileStore
from saga_core.ratelimit.limiter import RateLimiter
from saga_core.ratelimit.store import InMemoryRateLimitStore
from saga_core.resolver import TierResolver
from saga_core.state.database import create_tables, get_engine, get_session_factory
from saga_core.state.profile_store import SqlProfileStore
from sqlalchemy.ext.asyncio import AsyncEngine

from saga_api.config import APISettings, load_api_settings
from saga_api.services.coaching_client import CoachingEngineClient

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Settings
# ---------------------------------------------------------------------------

_settings_cache: APISettings | None = None


def get_settings() -> APISettings:
    """Return the cached :class:`APISettings` singleton."""
    global _settings_cache  # noqa: PLW0603
    if _settings_cache is None:
        _settings_cache = load_api_settings()
    return _settings_cache


SettingsDep = Annotated[APISettings, Depends(get_settings)]

# ---------------------------------------------------------------------------
# Profile store
# ---------------------------------------------------------------------------

_engine: AsyncEngine | None = None
_profile_store: ProfileStore | None = None


async def init_profile_store(settings: APISettings) -> ProfileStore:
    """Create the engine, ensure tables exist, and cache the store."""
    global _engine, _profile_store  # noqa: PLW0603
    _engine = get_engine(settings.database_url)
    await create_tables(_engine)
    _profile_store = SqlProfileStore(get_session_factory(_engine))
    return _profile_store


async def dispose_profile_store() -> None:
    global _engine, _profile_store  # noqa: PLW0603
    if _engine is not None:
        await _engine.dispose()
    _engine = None
    _profile_store = None


def get_profile_store() -> ProfileStore:
    if _profile_store is None:
        raise RuntimeError(
            "Profile store has not been initialised. Ensure init_profile_store() is called during application startup."
        )
    return _profile_store


ProfileStoreDep = Annotated[ProfileStore, Depends(get_profile_store)]

# ---------------------------------------------------------------------------
# Access gate
# ---------------------------------------------------------------------------

_access_gate: AccessGate | None = None
_rate_store: InMemoryRateLimitStore | None = None


def init_access_gate(settings: APISettings, profile_store: ProfileStore) -> AccessGate:
    """Build the resolver + limiter pipeline used by protected endpoints."""
    global _access_gate, _rate_store  # noqa: PLW0603
    _rate_store = InMemoryRateLimitStore()
    _rate_store.start()
    limiter = RateLimiter(store=_rate_store, quotas=settings.ai_quotas())
    _access_gate = AccessGate(TierResolver(profile_store), limiter)
    return _access_gate


async def dispose_access_gate() -> None:
    global _access_gate, _rate_store  # noqa: PLW0603
    if _rate_store is not None:
        await _rate_store.stop()
    _rate_store = None
    _access_gate = None


def get_access_gate() -> AccessGate:
    if _access_gate is None:
        raise RuntimeError(
            "Access gate has not been initialised. Ensure init_access_gate() is called during application startup."
        )
    return _access_gate


AccessGateDep = Annotated[AccessGate, Depends(get_access_gate)]

# ---------------------------------------------------------------------------
# Coaching engine client
# ---------------------------------------------------------------------------

_coaching_client: CoachingEngineClient | None = None


def init_coaching_client(settings: APISettings) -> CoachingEngineClient:
    global _coaching_client  # noqa: PLW0603
    _coaching_client = CoachingEngineClient(settings.ai_engine_url, timeout=settings.ai_engine_timeout)
    return _coaching_client


async def dispose_coaching_client() -> None:
    global _coaching_client  # noqa: PLW0603
    if _coaching_client is not None:
        await _coaching_client.close()
        _coaching_client = None


def get_coaching_client() -> CoachingEngineClient:
    if _coaching_client is None:
        raise RuntimeError(
            "Coaching client has not been initialised. Ensure init_coaching_client() is called during startup."
        )
    return _coaching_client


CoachingClientDep = Annotated[CoachingEngineClient, Depends(get_coaching_client)]
