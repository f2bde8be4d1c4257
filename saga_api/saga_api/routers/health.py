"""Liveness probe."""

from __future__ import annotations

import asyncio
import logging
from typing import Any

from fastapi import APIRouter

from saga_api import __version__
from saga_api.dependencies import CoachingClientDep

logger = logging.getLogger(__name__)

# Short timeout for the engine check so probes respond quickly.
_ENGINE_HEALTH_TIMEOUT = 2.0

router = APIRouter(tags=["health"])


@router.get("/health")
async def health(coaching_client: CoachingClientDep) -> dict[str, Any]:
    """Return service health.

    Always answers 200 so load-balancers see the service as alive; the
    ``ai_engine`` field reports whether the coaching engine is reachable.
    """
    try:
        engine_ok = await asyncio.wait_for(coaching_client.health_check(), timeout=_ENGINE_HEALTH_TIMEOUT)
    except TimeoutError:
        engine_ok = False
    if not engine_ok:
        logger.warning("Health check: coaching engine unreachable")
    return {
        "status": "healthy",
        "version": __version__,
        "ai_engine": "ok" if engine_ok else "unavailable",
    }
