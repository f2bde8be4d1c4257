"""Back-office endpoints: profile lookup and admin role management."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, HTTPException
from saga_core.identity import Identity
from saga_core.tiers import parse_role

from saga_api.dependencies import ProfileStoreDep
from saga_api.middleware.access import require_admin
from saga_api.schemas import ProfileResponse, RoleUpdateRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/users/{uid}", response_model=ProfileResponse)
async def get_user(
    uid: str,
    store: ProfileStoreDep,
    _admin: Identity = Depends(require_admin),
) -> ProfileResponse:
    profile = await store.get(uid)
    if profile is None:
        raise HTTPException(status_code=404, detail=f"User {uid} not found")
    return ProfileResponse(**profile.model_dump())


@router.put("/users/{uid}/role", response_model=ProfileResponse)
async def set_user_role(
    uid: str,
    body: RoleUpdateRequest,
    store: ProfileStoreDep,
    admin: Identity = Depends(require_admin),
) -> ProfileResponse:
    """Grant or revoke the admin role.

    Takes effect on the user's next request unless their token carries a
    ``role`` claim, which wins over the stored profile.
    """
    if await store.get(uid) is None:
        raise HTTPException(status_code=404, detail=f"User {uid} not found")
    role = parse_role(body.role)
    profile = await store.set_role(uid, role)
    logger.info("Role for %s set to %s by %s", uid, role.value, admin.id)
    return ProfileResponse(**profile.model_dump())
