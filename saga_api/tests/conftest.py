"""Shared fixtures for Saga API tests.

Provides settings, an in-memory profile store, a mock coaching engine
client, the FastAPI app with dependency overrides, and helpers to mint
signed identity tokens.
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator, Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from pydantic import SecretStr

# The module-level app in saga_api.main refuses to start without a token
# secret, so set one BEFORE importing application modules.
_TEST_TOKEN_SECRET = "test-secret-for-saga-tests"
os.environ.setdefault("SAGA_AUTH_TOKEN_SECRET", _TEST_TOKEN_SECRET)

from saga_core.access import AccessGate
from saga_core.identity import ProfileRecord
from saga_core.profiles import InMemoryProfileStore
from saga_core.ratelimit.limiter import RateLimiter
from saga_core.resolver import TierResolver

from saga_api.config import APISettings
from saga_api.dependencies import get_access_gate, get_coaching_client, get_profile_store, get_settings
from saga_api.main import create_app
from saga_api.security import TokenVerifier
from saga_api.services.coaching_client import CoachingEngineClient

_TEST_WEBHOOK_SECRET = "whsec_test_secret"

# ---------------------------------------------------------------------------
# Tokens
# ---------------------------------------------------------------------------


@pytest.fixture()
def verifier() -> TokenVerifier:
    return TokenVerifier(_TEST_TOKEN_SECRET)


@pytest.fixture()
def auth_headers(verifier: TokenVerifier) -> Callable[..., dict[str, str]]:
    """Return a factory producing ``Authorization`` headers for given claims.

    Example::

        headers = auth_headers(uid="u1", subscriptionTier="Growth")
    """

    def _make(**claims: Any) -> dict[str, str]:
        return {"Authorization": f"Bearer {verifier.issue(claims)}"}

    return _make


# ---------------------------------------------------------------------------
# Settings and collaborators
# ---------------------------------------------------------------------------


@pytest.fixture()
def test_settings() -> APISettings:
    """Return a settings object suitable for testing."""
    return APISettings(
        debug=True,
        database_url="sqlite+aiosqlite:///:memory:",
        auth_token_secret=SecretStr(_TEST_TOKEN_SECRET),
        ai_engine_url="http://engine.test",
        ai_engine_timeout=5.0,
        cors_origins=["http://localhost:3000"],
        billing_enabled=True,
        stripe_webhook_secret=SecretStr(_TEST_WEBHOOK_SECRET),
    )


@pytest.fixture()
def profile_store() -> InMemoryProfileStore:
    return InMemoryProfileStore(
        [
            ProfileRecord(uid="explorer-1", role="user", subscription_tier="Explorer", email="e@example.com"),
            ProfileRecord(uid="growth-1", role="user", subscription_tier="Growth", stripe_customer_id="cus_growth"),
            ProfileRecord(uid="staff-1", role="admin", subscription_tier="Explorer"),
        ]
    )


@pytest.fixture()
def access_gate(test_settings: APISettings, profile_store: InMemoryProfileStore) -> AccessGate:
    return AccessGate(TierResolver(profile_store), RateLimiter(quotas=test_settings.ai_quotas()))


@pytest.fixture()
def mock_coaching_client() -> AsyncMock:
    """Return a mock CoachingEngineClient whose methods all succeed."""
    client = AsyncMock(spec=CoachingEngineClient)
    client.chat = AsyncMock(return_value={"reply": "Try naming the feeling before the request."})
    client.analyze_journal = AsyncMock(return_value={"themes": ["appreciation"], "sentiment": "positive"})
    client.generate_scenarios = AsyncMock(return_value={"scenarios": [{"title": "Chores negotiation"}]})
    client.book_sos = AsyncMock(return_value={"booking_id": "sos_1", "eta_minutes": 30})
    client.health_check = AsyncMock(return_value=True)
    client.close = AsyncMock()
    return client


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


@pytest.fixture()
def app(
    test_settings: APISettings,
    profile_store: InMemoryProfileStore,
    access_gate: AccessGate,
    mock_coaching_client: AsyncMock,
) -> FastAPI:
    """Create the app with dependency overrides so no database or engine is needed."""
    application = create_app(test_settings)
    application.dependency_overrides[get_settings] = lambda: test_settings
    application.dependency_overrides[get_profile_store] = lambda: profile_store
    application.dependency_overrides[get_access_gate] = lambda: access_gate
    application.dependency_overrides[get_coaching_client] = lambda: mock_coaching_client
    return application


@pytest_asyncio.fixture()
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Yield an async httpx client bound to the test app (no auth header)."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac
