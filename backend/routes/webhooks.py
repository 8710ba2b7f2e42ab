"""Webhook Routes - Stripe.

POST /webhooks/stripe - reads the raw body; the signature covers the exact bytes.

Only an unverifiable signature is rejected (400). Every verified event is
acknowledged with 200 whatever the provisioning outcome, otherwise Stripe
keeps retrying.
"""
from fastapi import APIRouter, Depends, Header, Request
from typing import Optional
from database import get_db
from services.stripe_webhook_service import stripe_webhook_service
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/webhooks", tags=["webhooks"])


@router.post("/stripe")
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None, alias="Stripe-Signature"),
    db=Depends(get_db),
):
    payload = await request.body()
    outcome, details = await stripe_webhook_service.process_webhook(db, payload, stripe_signature)
    logger.info(f"Stripe webhook outcome={outcome.value} ref={details.get('ref')}")
    return {"ok": True, "received": True, "outcome": outcome.value}
