"""FastAPI dependencies that put the access gate in front of endpoints.

Example::

    @router.post("/ai/journal-analysis")
    async def analyze(
        identity: Identity = Depends(require_capability(Capability.JOURNAL_ANALYSIS)),
    ):
        ...

A non-pass :class:`~saga_core.access.AccessDecision` becomes an
``HTTPException`` whose ``detail`` is the decision payload and whose
headers carry ``Retry-After`` / ``X-RateLimit-*`` where applicable.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from fastapi import Depends, HTTPException, Request
from saga_core.access import AccessDecision, AccessGate
from saga_core.identity import Identity
from saga_core.permissions import Capability

from saga_api.config import APISettings
from saga_api.dependencies import get_access_gate, get_settings
from saga_api.middleware.rate_limit import client_address

logger = logging.getLogger(__name__)


def get_claims(request: Request) -> dict[str, Any] | None:
    """Return the verified claims stored by ``AuthenticationMiddleware``."""
    return getattr(request.state, "claims", None)


def _raise_for(decision: AccessDecision) -> None:
    raise HTTPException(
        status_code=decision.status_code,
        detail=decision.to_payload(),
        headers=decision.headers() or None,
    )


def require_capability(capability: Capability | str, *, rate_limited: bool = True) -> Callable[..., Any]:
    """Return a dependency enforcing *capability* and, optionally, the AI quota.

    Resolves the caller's identity, checks the permission table, then
    charges one request against the caller's tier quota.  Returns the
    resolved :class:`Identity`.
    """

    async def _guard(
        request: Request,
        gate: AccessGate = Depends(get_access_gate),
        settings: APISettings = Depends(get_settings),
    ) -> Identity:
        decision = await gate.evaluate(
            get_claims(request),
            capability,
            client_address=client_address(request, settings.trusted_proxies),
            rate_limited=rate_limited,
        )
        if not decision.allowed:
            _raise_for(decision)
        request.state.rate_decision = decision.rate
        return decision.identity  # type: ignore[return-value]

    return _guard


async def require_identity(
    request: Request,
    gate: AccessGate = Depends(get_access_gate),
) -> Identity:
    """Dependency for endpoints open to any authenticated caller."""
    resolved = await gate.identify(get_claims(request))
    if isinstance(resolved, AccessDecision):
        _raise_for(resolved)
    return resolved


async def require_admin(identity: Identity = Depends(require_identity)) -> Identity:
    """Dependency restricting an endpoint to the admin role."""
    if not identity.is_admin:
        logger.info("Admin access denied: uid=%s role=%s", identity.id, identity.role.value)
        raise HTTPException(
            status_code=403,
            detail={
                "error": "Administrator role required",
                "reason": "admin_required",
                "current_tier": identity.subscription_tier.value,
            },
        )
    return identity
