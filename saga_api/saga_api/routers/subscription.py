"""The caller's subscription: effective tier, limits and capabilities."""

from __future__ import annotations

from fastapi import APIRouter, Depends
from saga_core.access import AccessGate
from saga_core.identity import Identity
from saga_core.permissions import PERMISSION_TABLE, capabilities_for_tier
from saga_core.tiers import get_subscription_limits

from saga_api.dependencies import get_access_gate
from saga_api.middleware.access import require_identity
from saga_api.schemas import SubscriptionResponse

router = APIRouter(prefix="/subscription", tags=["subscription"])


@router.get("", response_model=SubscriptionResponse)
async def get_subscription(
    identity: Identity = Depends(require_identity),
    gate: AccessGate = Depends(get_access_gate),
) -> SubscriptionResponse:
    """Return what the caller's tier unlocks.

    Admins are reported with every capability since they bypass the
    permission table.
    """
    tier = identity.subscription_tier
    if identity.is_admin:
        capabilities = sorted(PERMISSION_TABLE)
    else:
        capabilities = sorted(capabilities_for_tier(tier))
    return SubscriptionResponse(
        uid=identity.id,
        role=identity.role.value,
        tier=tier.value,
        source=identity.source.value,
        limits=get_subscription_limits(tier),
        capabilities=capabilities,
        ai_quota=gate.limiter.quotas.for_tier(tier).describe(),
    )
