"""Valuation Service - persisted valuations owned by a single user.

Estimates are never edited directly: creation and every feature change run the
full formula again from the stored base attributes.
"""
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional
import logging

from models import (
    AuditAction, CreateValuationRequest, Features, Valuation, ValuationStatus,
)
from services.valuation_estimator import estimate_price
from utils.audit import create_audit_log
from utils.errors import AuthorizationError, NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _estimate_fields(estimate) -> Dict[str, int]:
    return {
        "estimate_sek": estimate.estimate,
        "low_sek": estimate.low,
        "high_sek": estimate.high,
        "confidence": estimate.confidence,
    }


async def get_valuation(db, valuation_id: str) -> Dict[str, Any]:
    """Load a valuation by id regardless of owner; NotFoundError when absent."""
    valuation = await db.valuations.find_one({"valuation_id": valuation_id}, {"_id": 0})
    if not valuation:
        raise NotFoundError("Not found")
    return valuation


async def get_owned_valuation(db, valuation_id: str, user: dict) -> Dict[str, Any]:
    """Load a valuation the caller owns.

    Raises NotFoundError when it does not exist and AuthorizationError when it
    belongs to someone else.
    """
    valuation = await get_valuation(db, valuation_id)
    if valuation["user_id"] != user.get("userId"):
        raise AuthorizationError("Forbidden")
    return valuation


class ValuationService:

    async def create_valuation(self, db, user_id: str, request: CreateValuationRequest) -> Valuation:
        if not request.address or not request.property_type or not request.living_area:
            raise ValidationError("address, propertyType and livingArea are required")
        if request.living_area <= 0:
            raise ValidationError("livingArea must be a positive number")

        rooms = request.rooms or 1
        features = Features.from_raw(request.features)
        estimate = estimate_price(
            property_type=request.property_type,
            living_area=request.living_area,
            rooms=rooms,
            year_built=request.year_built,
            features=features,
        )

        valuation = Valuation(
            user_id=user_id,
            address=request.address,
            city=(request.city or "").strip(),
            property_type=request.property_type,
            living_area=request.living_area,
            rooms=rooms,
            year_built=request.year_built,
            features=features,
            status=ValuationStatus.DONE,
            **_estimate_fields(estimate),
        )
        await db.valuations.insert_one(valuation.model_dump())

        await create_audit_log(
            db,
            action=AuditAction.VALUATION_CREATED,
            actor_id=user_id,
            resource_type="valuation",
            resource_id=valuation.valuation_id,
            metadata={"estimate_sek": estimate.estimate},
        )
        logger.info(f"Valuation {valuation.valuation_id} created: {estimate.estimate} SEK")
        return valuation

    async def update_features(self, db, valuation_id: str, user: dict, raw_features: Optional[dict]) -> Valuation:
        """Replace the feature set and recompute the estimate from stored attributes."""
        current = await get_owned_valuation(db, valuation_id, user)
        valuation = Valuation(**current)

        features = Features.from_raw(raw_features)
        estimate = estimate_price(
            property_type=valuation.property_type,
            living_area=valuation.living_area,
            rooms=valuation.rooms or 1,
            year_built=valuation.year_built,
            features=features,
        )

        changes = {
            "features": features.model_dump(),
            "updated_at": datetime.now(timezone.utc),
            **_estimate_fields(estimate),
        }
        await db.valuations.update_one({"valuation_id": valuation_id}, {"$set": changes})

        await create_audit_log(
            db,
            action=AuditAction.VALUATION_FEATURES_UPDATED,
            actor_id=user.get("userId"),
            resource_type="valuation",
            resource_id=valuation_id,
            before_state=valuation.features.model_dump(),
            after_state=features.model_dump(),
            metadata={"estimate_sek": estimate.estimate},
        )
        return valuation.model_copy(update={**changes, "features": features})

    async def list_for_user(self, db, user_id: str) -> List[Valuation]:
        docs = await db.valuations.find({"user_id": user_id}, {"_id": 0}).sort("created_at", -1).to_list(None)
        return [Valuation(**doc) for doc in docs]

    async def get_for_user(self, db, valuation_id: str, user: dict) -> Valuation:
        return Valuation(**await get_owned_valuation(db, valuation_id, user))


valuation_service = ValuationService()
