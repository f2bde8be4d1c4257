"""Tests for the admin endpoints."""

from __future__ import annotations

from collections.abc import Callable

import pytest
from httpx import AsyncClient
from saga_core.profiles import InMemoryProfileStore


class TestAdminGuard:
    @pytest.mark.asyncio
    async def test_anonymous_is_401(self, client: AsyncClient) -> None:
        resp = await client.get("/api/admin/users/explorer-1")
        assert resp.status_code == 401

    @pytest.mark.asyncio
    async def test_paid_user_is_403(self, client: AsyncClient, auth_headers: Callable[..., dict[str, str]]) -> None:
        resp = await client.get(
            "/api/admin/users/explorer-1",
            headers=auth_headers(uid="t-1", subscriptionTier="Transformation"),
        )
        assert resp.status_code == 403
        assert resp.json()["detail"]["reason"] == "admin_required"

    @pytest.mark.asyncio
    async def test_admin_tier_claim_grants_access(
        self, client: AsyncClient, auth_headers: Callable[..., dict[str, str]]
    ) -> None:
        headers = auth_headers(uid="ops", subscriptionTier="admin")
        resp = await client.get("/api/admin/users/explorer-1", headers=headers)
        assert resp.status_code == 200


class TestProfiles:
    @pytest.mark.asyncio
    async def test_get_user(self, client: AsyncClient, auth_headers: Callable[..., dict[str, str]]) -> None:
        resp = await client.get("/api/admin/users/explorer-1", headers=auth_headers(uid="staff-1"))
        assert resp.status_code == 200
        body = resp.json()
        assert body["uid"] == "explorer-1"
        assert body["subscription_tier"] == "Explorer"
        assert body["email"] == "e@example.com"

    @pytest.mark.asyncio
    async def test_get_missing_user_is_404(
        self, client: AsyncClient, auth_headers: Callable[..., dict[str, str]]
    ) -> None:
        resp = await client.get("/api/admin/users/ghost", headers=auth_headers(uid="staff-1"))
        assert resp.status_code == 404

    @pytest.mark.asyncio
    async def test_grant_admin_role(
        self,
        client: AsyncClient,
        auth_headers: Callable[..., dict[str, str]],
        profile_store: InMemoryProfileStore,
    ) -> None:
        resp = await client.put(
            "/api/admin/users/explorer-1/role",
            json={"role": "admin"},
            headers=auth_headers(uid="staff-1"),
        )
        assert resp.status_code == 200
        assert resp.json()["role"] == "admin"
        stored = await profile_store.get("explorer-1")
        assert stored is not None
        assert stored.role == "admin"

    @pytest.mark.asyncio
    async def test_granted_role_unlocks_capabilities(
        self, client: AsyncClient, auth_headers: Callable[..., dict[str, str]]
    ) -> None:
        await client.put(
            "/api/admin/users/explorer-1/role",
            json={"role": "admin"},
            headers=auth_headers(uid="staff-1"),
        )
        resp = await client.post(
            "/api/ai/journal-analysis",
            json={"entry": "Now with staff access."},
            headers=auth_headers(uid="explorer-1"),
        )
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_invalid_role_is_422(self, client: AsyncClient, auth_headers: Callable[..., dict[str, str]]) -> None:
        resp = await client.put(
            "/api/admin/users/explorer-1/role",
            json={"role": "owner"},
            headers=auth_headers(uid="staff-1"),
        )
        assert resp.status_code == 422
