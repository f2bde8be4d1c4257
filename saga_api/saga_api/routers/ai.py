"""AI coaching endpoints.

Every route sits behind :func:`require_capability`, which resolves the
caller, checks the permission table and charges the tier quota before
the handler runs.
"""

from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request
from saga_core.authorization import authorize
from saga_core.identity import Identity
from saga_core.permissions import Capability

from saga_api.dependencies import CoachingClientDep
from saga_api.middleware.access import require_capability
from saga_api.schemas import (
    ChatRequest,
    CoachingResponse,
    JournalAnalysisRequest,
    ScenarioRequest,
    SOSBookingRequest,
    SOSBookingResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ai", tags=["ai"])


def _remaining(request: Request) -> int | None:
    rate = getattr(request.state, "rate_decision", None)
    return rate.remaining if rate is not None else None


def _unavailable(path: str) -> HTTPException:
    logger.error("Coaching engine unavailable for %s", path)
    return HTTPException(status_code=503, detail="Coaching engine unavailable")


@router.post("/chat", response_model=CoachingResponse)
async def chat(
    body: ChatRequest,
    request: Request,
    coaching_client: CoachingClientDep,
    identity: Identity = Depends(require_capability(Capability.AI_CHAT)),
) -> dict[str, Any]:
    result = await coaching_client.chat(identity.id, [m.model_dump() for m in body.messages])
    if result is None:
        raise _unavailable(request.url.path)
    return {"result": result, "tier": identity.subscription_tier.value, "requests_remaining": _remaining(request)}


@router.post("/journal-analysis", response_model=CoachingResponse)
async def journal_analysis(
    body: JournalAnalysisRequest,
    request: Request,
    coaching_client: CoachingClientDep,
    identity: Identity = Depends(require_capability(Capability.JOURNAL_ANALYSIS)),
) -> dict[str, Any]:
    """Analyse a journal entry (Growth and above)."""
    result = await coaching_client.analyze_journal(identity.id, body.entry, body.mood)
    if result is None:
        raise _unavailable(request.url.path)
    return {"result": result, "tier": identity.subscription_tier.value, "requests_remaining": _remaining(request)}


@router.post("/scenarios", response_model=CoachingResponse)
async def scenarios(
    body: ScenarioRequest,
    request: Request,
    coaching_client: CoachingClientDep,
    identity: Identity = Depends(require_capability(Capability.AI_SCENARIOS)),
) -> dict[str, Any]:
    """Generate practice scenarios (Growth and above)."""
    result = await coaching_client.generate_scenarios(identity.id, body.topic, body.count)
    if result is None:
        raise _unavailable(request.url.path)
    return {"result": result, "tier": identity.subscription_tier.value, "requests_remaining": _remaining(request)}


@router.post("/book-sos", response_model=SOSBookingResponse)
async def book_sos(
    body: SOSBookingRequest,
    request: Request,
    coaching_client: CoachingClientDep,
    identity: Identity = Depends(require_capability(Capability.SOS_BOOKING)),
) -> dict[str, Any]:
    """Book an SOS session.

    Open to every tier; Transformation members (and admins) are queued
    with priority.
    """
    priority = authorize(identity.role, identity.subscription_tier, Capability.PRIORITY_BOOKING)
    result = await coaching_client.book_sos(identity.id, body.situation, urgency=body.urgency, priority=priority)
    if result is None:
        raise _unavailable(request.url.path)
    return {
        "result": result,
        "tier": identity.subscription_tier.value,
        "requests_remaining": _remaining(request),
        "priority": priority,
    }
