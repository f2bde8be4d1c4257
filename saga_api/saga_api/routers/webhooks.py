"""Stripe webhook receiver keeping subscription tiers in sync.

Exempt from identity and rate-limit checks; the Stripe signature is the
authentication.
"""

from __future__ import annotations

import json
import logging

import stripe
from fastapi import APIRouter, HTTPException, Request

from saga_api.dependencies import ProfileStoreDep, SettingsDep
from saga_api.services.subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/stripe", tags=["billing"])


@router.post("/webhooks")
async def stripe_webhook(
    request: Request,
    settings: SettingsDep,
    store: ProfileStoreDep,
) -> dict[str, str]:
    """Verify the Stripe signature and apply the subscription event."""
    if not settings.billing_enabled:
        return {"status": "billing_disabled"}

    body = await request.body()
    sig_header = request.headers.get("stripe-signature", "")
    if not sig_header:
        raise HTTPException(status_code=400, detail="Missing Stripe signature")

    try:
        stripe.Webhook.construct_event(
            payload=body,
            sig_header=sig_header,
            secret=settings.stripe_webhook_secret.get_secret_value(),
        )
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid payload")
    except stripe.SignatureVerificationError as exc:
        logger.warning("Stripe webhook signature verification failed: %s", exc)
        raise HTTPException(status_code=400, detail="Signature verification failed")

    # The handler works on the plain JSON body once the signature checks out.
    service = SubscriptionService(store, settings)
    return await service.handle_event(json.loads(body))
