"""API router modules for the Saga service."""

from __future__ import annotations

from saga_api.routers import admin, ai, health, subscription, webhooks

__all__ = [
    "admin",
    "ai",
    "health",
    "subscription",
    "webhooks",
]
