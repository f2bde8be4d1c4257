"""Shared Pydantic request and response models for API endpoints."""

from __future__ import annotations

from typing import Any, Literal

from pydantic import BaseModel, Field
from saga_core.tiers import SubscriptionLimits

# ---------------------------------------------------------------------------
# AI coaching
# ---------------------------------------------------------------------------


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"] = "user"
    content: str = Field(..., min_length=1, max_length=5000)


class ChatRequest(BaseModel):
    """Request body for ``POST /ai/chat``."""

    messages: list[ChatMessage] = Field(..., min_length=1, max_length=50)


class JournalAnalysisRequest(BaseModel):
    """Request body for ``POST /ai/journal-analysis``."""

    entry: str = Field(..., min_length=1, max_length=10000)
    mood: str | None = Field(default=None, max_length=100)


class ScenarioRequest(BaseModel):
    """Request body for ``POST /ai/scenarios``."""

    topic: str = Field(..., min_length=1, max_length=500)
    count: int = Field(default=3, ge=1, le=10)


class SOSBookingRequest(BaseModel):
    """Request body for ``POST /ai/book-sos``."""

    situation: str = Field(..., min_length=1, max_length=5000)
    urgency: Literal["low", "normal", "high"] = "normal"


class CoachingResponse(BaseModel):
    """Engine result relayed to the client."""

    result: dict[str, Any]
    tier: str
    requests_remaining: int | None = None


class SOSBookingResponse(CoachingResponse):
    priority: bool = False


# ---------------------------------------------------------------------------
# Subscription and profiles
# ---------------------------------------------------------------------------


class SubscriptionResponse(BaseModel):
    """The caller's effective tier, role and what it unlocks."""

    uid: str
    role: str
    tier: str
    source: str
    limits: SubscriptionLimits
    capabilities: list[str] = Field(default_factory=list)
    ai_quota: str


class ProfileResponse(BaseModel):
    uid: str
    role: str | None = None
    subscription_tier: str | None = None
    email: str | None = None
    display_name: str | None = None
    stripe_customer_id: str | None = None


class RoleUpdateRequest(BaseModel):
    """Request body for ``PUT /admin/users/{uid}/role``."""

    role: Literal["user", "admin"]
