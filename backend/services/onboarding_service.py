"""Creator Onboarding Service - pending signup + Stripe PaymentIntent.

A creator candidate first gets an onboarding record (password already hashed)
and a PaymentIntent tagged with the record id. The account itself is created
later by the webhook once Stripe reports the payment; unpaid records are
purged by the TTL index.
"""
import stripe
import os
import logging
from typing import Dict, Any

from pydantic import ValidationError as SchemaError

from auth import hash_password
from models import AuditAction, CreatorIntentRequest, OnboardingSession, UserRole
from utils.audit import create_audit_log
from utils.errors import ExternalServiceError, ValidationError

logger = logging.getLogger(__name__)

stripe.api_key = (os.getenv("STRIPE_SECRET_KEY") or os.getenv("STRIPE_API_KEY") or "").strip()

CURRENCY = "sek"

def onboarding_price_sek() -> int:
    return int(os.getenv("CREATOR_ONBOARDING_PRICE_SEK", "199"))


class OnboardingService:

    async def create_creator_intent(self, db, request: CreatorIntentRequest) -> Dict[str, Any]:
        """
        Persist a pending creator signup and open a PaymentIntent for it.

        Returns:
            Dict with the PaymentIntent client secret and the onboarding reference
        """
        name = (request.name or "").strip()
        email = (request.email or "").strip().lower()
        if not name or not email or not request.password:
            raise ValidationError("Missing fields")

        try:
            onboarding = OnboardingSession(
                name=name,
                email=email,
                password_hash=hash_password(request.password),
                role=UserRole.CREATOR,
            )
        except SchemaError:
            raise ValidationError("Invalid email")
        await db.onboarding_sessions.insert_one(onboarding.model_dump())
        ref = onboarding.onboarding_id
        price = onboarding_price_sek()

        try:
            if not (stripe.api_key or "").strip():
                raise ValueError("STRIPE_SECRET_KEY or STRIPE_API_KEY is not set")
            intent = stripe.PaymentIntent.create(
                amount=price * 100,
                currency=CURRENCY,
                automatic_payment_methods={"enabled": True},
                metadata={
                    "ref": ref,
                    "email": email,
                    "role": UserRole.CREATOR.value,
                },
                description=f"Valoris – Creator onboarding ({price} SEK)",
            )
        except Exception as e:
            # The pending record is left to expire through its TTL
            logger.error(f"create-intent failed for onboarding {ref}: {e}")
            raise ExternalServiceError("Failed to create payment intent")

        await create_audit_log(
            db,
            action=AuditAction.ONBOARDING_CREATED,
            resource_type="onboarding_session",
            resource_id=ref,
            metadata={"payment_intent_id": intent.id, "amount_sek": price},
        )
        logger.info(f"Creator onboarding {ref} created with PaymentIntent {intent.id}")

        return {"client_secret": intent.client_secret, "ref": ref}


onboarding_service = OnboardingService()
