"""Stripe Webhook Service - creator account provisioning after payment.

Key Principles:
1. Signature verification: unsigned or forged payloads are rejected and never read
2. Idempotency: one onboarding record yields at most one user and one welcome mail
3. Acknowledge business misses: Stripe retries anything that is not 2xx, so
   unknown references, already-used records and internal errors are logged
   and acknowledged

Events Handled:
- payment_intent.succeeded (Payment Element flow, provisioning trigger)
- checkout.session.completed (Checkout flow, provisioning trigger)
- payment_intent.payment_failed (logged only)

Onboarding record lifecycle:
    pending (used_at null) -> consumed (used_at set)
    Records past their TTL are purged by MongoDB and treated as not found.
"""
import stripe
import asyncio
import json
import os
import logging
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Dict, Any, Optional, Tuple

from pymongo.errors import DuplicateKeyError

from database import ONBOARDING_TTL_SECONDS
from models import AuditAction, User, UserRole
from services.email_service import email_service
from utils.audit import create_audit_log
from utils.errors import WebhookSignatureError

logger = logging.getLogger(__name__)

PAYMENT_SUCCEEDED = "payment_intent.succeeded"
PAYMENT_FAILED = "payment_intent.payment_failed"
CHECKOUT_COMPLETED = "checkout.session.completed"

HANDLED_EVENTS = (PAYMENT_SUCCEEDED, PAYMENT_FAILED, CHECKOUT_COMPLETED)

def _get_webhook_secret() -> str:
    return (os.getenv("STRIPE_WEBHOOK_SECRET") or "").strip()


class WebhookOutcome(str, Enum):
    IGNORED_EVENT = "IGNORED_EVENT"
    MISSING_REF = "MISSING_REF"
    PAYMENT_FAILED = "PAYMENT_FAILED"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_USED = "ALREADY_USED"
    PROVISIONED = "PROVISIONED"
    USER_EXISTED = "USER_EXISTED"
    ERROR = "ERROR"


def _as_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def extract_reference(event: Dict[str, Any]) -> Optional[str]:
    """Onboarding reference: PaymentIntent metadata, or the Checkout client reference."""
    obj = event.get("data", {}).get("object", {}) or {}
    metadata = obj.get("metadata") or {}
    if event.get("type") == CHECKOUT_COMPLETED:
        return obj.get("client_reference_id") or metadata.get("ref")
    return metadata.get("ref")


class StripeWebhookService:
    """Verifies Stripe events and turns paid onboarding records into creator accounts."""

    # =========================================================================
    # Event Processing Entry Point
    # =========================================================================

    def verify_event(self, payload: bytes, signature: Optional[str]) -> Dict[str, Any]:
        """Verify the Stripe-Signature header against the raw body and parse it.

        Raises WebhookSignatureError for a missing header, a missing secret,
        a bad or stale signature (older than Stripe's 300 s tolerance) or an
        unparseable body.
        """
        if not signature:
            raise WebhookSignatureError("Missing stripe-signature")

        webhook_secret = _get_webhook_secret()
        if not webhook_secret:
            logger.error("STRIPE_WEBHOOK_SECRET not set - rejecting webhook")
            raise WebhookSignatureError("Webhook Error")

        try:
            text = payload.decode("utf-8")
            stripe.WebhookSignature.verify_header(
                text, signature, webhook_secret, tolerance=stripe.Webhook.DEFAULT_TOLERANCE
            )
            event = json.loads(text)
        except stripe.SignatureVerificationError as e:
            logger.error(f"Webhook signature verification failed: {e}")
            raise WebhookSignatureError("Webhook Error")
        except (UnicodeDecodeError, ValueError) as e:
            logger.error(f"Webhook parse error: {e}")
            raise WebhookSignatureError("Webhook Error")

        if not isinstance(event, dict):
            raise WebhookSignatureError("Webhook Error")
        return event

    async def process_webhook(self, db, payload: bytes, signature: Optional[str]) -> Tuple[WebhookOutcome, Dict[str, Any]]:
        """
        Main webhook entry point.

        Signature problems raise; everything after verification is swallowed
        into an outcome so the caller can always acknowledge.

        Returns:
            (outcome, details)
        """
        event = self.verify_event(payload, signature)
        event_id = event.get("id")
        event_type = event.get("type")
        logger.info(f"WEBHOOK_RECEIVED event_id={event_id} event_type={event_type}")

        try:
            return await self._handle_event(db, event)
        except Exception as e:
            logger.exception(f"WEBHOOK_PROCESSING_FAILED event_id={event_id} event_type={event_type} error={e}")
            return WebhookOutcome.ERROR, {"event_id": event_id}

    # =========================================================================
    # Event Handlers
    # =========================================================================

    async def _handle_event(self, db, event: Dict[str, Any]) -> Tuple[WebhookOutcome, Dict[str, Any]]:
        event_type = event.get("type")
        if event_type not in HANDLED_EVENTS:
            logger.info(f"Ignoring unhandled event type: {event_type}")
            return WebhookOutcome.IGNORED_EVENT, {"event_type": event_type}

        obj = event.get("data", {}).get("object", {}) or {}
        ref = extract_reference(event)
        details = {"event_type": event_type, "object_id": obj.get("id"), "ref": ref}

        if not ref:
            logger.info(f"No ref in {event_type} {obj.get('id')} - skipping")
            return WebhookOutcome.MISSING_REF, details

        if event_type == PAYMENT_FAILED:
            logger.info(f"Payment failed for onboarding ref {ref} (intent {obj.get('id')})")
            return WebhookOutcome.PAYMENT_FAILED, details

        outcome = await self.provision_creator(db, ref, payment_reference=obj.get("id"))
        return outcome, details

    async def provision_creator(self, db, ref: str, payment_reference: Optional[str] = None) -> WebhookOutcome:
        """
        Consume a pending onboarding record and create its creator account.

        Concurrent deliveries for the same record are safe:
        - the unique email index lets only one insert succeed; a
          DuplicateKeyError means someone else provisioned the user
        - only the insert winner sends the welcome mail
        - used_at is set with a conditional update, so the record
          transitions to consumed exactly once
        """
        now = datetime.now(timezone.utc)
        onboarding = await db.onboarding_sessions.find_one({"onboarding_id": ref}, {"_id": 0})
        if not onboarding or self._is_expired(onboarding, now):
            logger.error(f"OnboardingSession not found/expired: {ref}")
            return WebhookOutcome.NOT_FOUND

        if onboarding.get("used_at"):
            logger.info(f"Onboarding already used: {ref}")
            return WebhookOutcome.ALREADY_USED

        email = onboarding["email"]
        created = False
        existing = await db.users.find_one({"email": email}, {"_id": 0, "user_id": 1})
        if not existing:
            user = User(
                name=onboarding["name"],
                email=email,
                password_hash=onboarding["password_hash"],
                role=UserRole.CREATOR,
            )
            try:
                await db.users.insert_one(user.model_dump())
                created = True
            except DuplicateKeyError:
                logger.info(f"User {email} provisioned by a concurrent delivery")

        if created:
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, email_service.send_welcome_email, email, onboarding["name"])
            await create_audit_log(
                db,
                action=AuditAction.CREATOR_PROVISIONED,
                actor_id=user.user_id,
                resource_type="onboarding_session",
                resource_id=ref,
                metadata={"payment_reference": payment_reference},
            )
            logger.info(f"CREATOR USER CREATED: {email} ref={ref} payment={payment_reference}")
        else:
            logger.info(f"User already exists: {email}")

        result = await db.onboarding_sessions.update_one(
            {"onboarding_id": ref, "used_at": None},
            {"$set": {"used_at": now}},
        )
        if result.modified_count == 0:
            logger.info(f"Onboarding {ref} consumed by a concurrent delivery")

        return WebhookOutcome.PROVISIONED if created else WebhookOutcome.USER_EXISTED

    def _is_expired(self, onboarding: Dict[str, Any], now: datetime) -> bool:
        """MongoDB's TTL sweep runs about once a minute; stale records are treated as gone."""
        created_at = _as_aware(onboarding.get("created_at"))
        if not isinstance(created_at, datetime):
            return False
        return created_at + timedelta(seconds=ONBOARDING_TTL_SECONDS) <= now


stripe_webhook_service = StripeWebhookService()
