"""Tests for the AI coaching endpoints behind the access gate.

Covers:
- 401 for anonymous and tampered tokens.
- 403 with upgrade details when the tier lacks the capability.
- Admin bypass of capability checks.
- 429 with Retry-After and upgrade hint once the tier quota is spent.
- 503 when the coaching engine is unavailable.
"""

from __future__ import annotations

from collections.abc import Callable
from unittest.mock import AsyncMock

import pytest
from httpx import AsyncClient

_CHAT_BODY = {"messages": [{"role": "user", "content": "We keep arguing about chores."}]}


class TestAuthentication:
    @pytest.mark.asyncio
    async def test_anonymous_chat_is_401(self, client: AsyncClient) -> None:
        resp = await client.post("/api/ai/chat", json=_CHAT_BODY)
        assert resp.status_code == 401
        assert resp.json()["detail"]["reason"] == "unauthenticated"

    @pytest.mark.asyncio
    async def test_tampered_token_is_401(
        self, client: AsyncClient, auth_headers: Callable[..., dict[str, str]]
    ) -> None:
        headers = auth_headers(uid="growth-1")
        headers["Authorization"] = headers["Authorization"][:-4] + "0000"
        resp = await client.post("/api/ai/chat", json=_CHAT_BODY, headers=headers)
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_expired_token_is_401(self, client: AsyncClient, verifier) -> None:
        token = verifier.issue({"uid": "growth-1"}, ttl_seconds=-3600)
        resp = await client.post("/api/ai/chat", json=_CHAT_BODY, headers={"Authorization": f"Bearer {token}"})
        assert resp.status_code == 401


class TestCapabilities:
    @pytest.mark.asyncio
    async def test_explorer_can_chat(
        self,
        client: AsyncClient,
        auth_headers: Callable[..., dict[str, str]],
        mock_coaching_client: AsyncMock,
    ) -> None:
        resp = await client.post("/api/ai/chat", json=_CHAT_BODY, headers=auth_headers(uid="explorer-1"))
        assert resp.status_code == 200
        body = resp.json()
        assert body["tier"] == "Explorer"
        assert body["requests_remaining"] == 19
        mock_coaching_client.chat.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_explorer_journal_analysis_is_403(
        self,
        client: AsyncClient,
        auth_headers: Callable[..., dict[str, str]],
        mock_coaching_client: AsyncMock,
    ) -> None:
        resp = await client.post(
            "/api/ai/journal-analysis",
            json={"entry": "Felt heard today."},
            headers=auth_headers(uid="explorer-1"),
        )
        assert resp.status_code == 403
        detail = resp.json()["detail"]
        assert detail["reason"] == "upgrade_required"
        assert detail["current_tier"] == "Explorer"
        assert detail["required_tiers"] == ["Growth", "Transformation"]
        mock_coaching_client.analyze_journal.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_growth_journal_analysis_allowed(
        self, client: AsyncClient, auth_headers: Callable[..., dict[str, str]]
    ) -> None:
        resp = await client.post(
            "/api/ai/journal-analysis",
            json={"entry": "Felt heard today.", "mood": "calm"},
            headers=auth_headers(uid="growth-1"),
        )
        assert resp.status_code == 200
        assert resp.json()["result"]["sentiment"] == "positive"

    @pytest.mark.asyncio
    async def test_claim_overrides_stored_tier(
        self, client: AsyncClient, auth_headers: Callable[..., dict[str, str]]
    ) -> None:
        resp = await client.post(
            "/api/ai/scenarios",
            json={"topic": "holiday plans"},
            headers=auth_headers(uid="explorer-1", subscriptionTier="Growth"),
        )
        assert resp.status_code == 200
        assert resp.json()["tier"] == "Growth"

    @pytest.mark.asyncio
    async def test_admin_explorer_allowed_journal_analysis(
        self, client: AsyncClient, auth_headers: Callable[..., dict[str, str]]
    ) -> None:
        resp = await client.post(
            "/api/ai/journal-analysis",
            json={"entry": "Staff check."},
            headers=auth_headers(uid="staff-1"),
        )
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_sos_priority_only_for_transformation(
        self,
        client: AsyncClient,
        auth_headers: Callable[..., dict[str, str]],
        mock_coaching_client: AsyncMock,
    ) -> None:
        body = {"situation": "We need help tonight.", "urgency": "high"}
        explorer = await client.post("/api/ai/book-sos", json=body, headers=auth_headers(uid="explorer-1"))
        top = await client.post(
            "/api/ai/book-sos",
            json=body,
            headers=auth_headers(uid="t-1", subscriptionTier="Transformation"),
        )
        assert explorer.status_code == 200
        assert explorer.json()["priority"] is False
        assert top.json()["priority"] is True
        assert mock_coaching_client.book_sos.await_args.kwargs["priority"] is True


class TestQuota:
    @pytest.mark.asyncio
    async def test_explorer_throttled_after_twenty(
        self, client: AsyncClient, auth_headers: Callable[..., dict[str, str]]
    ) -> None:
        headers = auth_headers(uid="explorer-1")
        for _ in range(20):
            ok = await client.post("/api/ai/chat", json=_CHAT_BODY, headers=headers)
            assert ok.status_code == 200

        resp = await client.post("/api/ai/chat", json=_CHAT_BODY, headers=headers)
        assert resp.status_code == 429
        detail = resp.json()["detail"]
        assert detail["reason"] == "rate_limited"
        assert detail["retry_after"] > 0
        assert detail["current_tier"] == "Explorer"
        assert detail["requests_remaining"] == 0
        assert detail["upgrade_message"].startswith("Upgrade to Growth for 200 requests/hour")
        assert int(resp.headers["Retry-After"]) > 0
        assert resp.headers["X-RateLimit-Limit"] == "20"
        assert resp.headers["X-RateLimit-Remaining"] == "0"

    @pytest.mark.asyncio
    async def test_quota_is_per_identity(
        self, client: AsyncClient, auth_headers: Callable[..., dict[str, str]]
    ) -> None:
        first = auth_headers(uid="explorer-1")
        for _ in range(21):
            await client.post("/api/ai/chat", json=_CHAT_BODY, headers=first)

        resp = await client.post("/api/ai/chat", json=_CHAT_BODY, headers=auth_headers(uid="explorer-2"))
        assert resp.status_code == 200


class TestEngineFailures:
    @pytest.mark.asyncio
    async def test_engine_unavailable_is_503(
        self,
        client: AsyncClient,
        auth_headers: Callable[..., dict[str, str]],
        mock_coaching_client: AsyncMock,
    ) -> None:
        mock_coaching_client.chat.return_value = None
        resp = await client.post("/api/ai/chat", json=_CHAT_BODY, headers=auth_headers(uid="growth-1"))
        assert resp.status_code == 503

    @pytest.mark.asyncio
    async def test_oversized_message_is_422(
        self, client: AsyncClient, auth_headers: Callable[..., dict[str, str]]
    ) -> None:
        body = {"messages": [{"role": "user", "content": "x" * 5001}]}
        resp = await client.post("/api/ai/chat", json=body, headers=auth_headers(uid="growth-1"))
        assert resp.status_code == 422
