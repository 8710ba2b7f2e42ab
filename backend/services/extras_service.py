"""Extras Service - per-valuation catalogue of optional add-on services.

The first read for a valuation without extras seeds three defaults. Two
concurrent first reads can both seed; that duplicate is tolerated and not
guarded here.
"""
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Tuple
import logging

from models import AuditAction, ExtraPropertyType, ExtraService, ExtraServiceUpdate, Language
from utils.audit import create_audit_log
from utils.errors import NotFoundError, ValidationError
from utils.localized import LocalizedText

logger = logging.getLogger(__name__)

DEFAULT_EXTRAS = [
    {
        "title_sv": "Homestyling",
        "title_en": "Home staging",
        "description_sv": "Förbered bostaden för visning (möblering + styling).",
        "description_en": "Prepare the home for viewings (furnishing + styling).",
        "price_sek": 15000,
    },
    {
        "title_sv": "Proffsfoto",
        "title_en": "Professional photos",
        "description_sv": "Fotograf + redigering för bättre annons.",
        "description_en": "Photographer + editing for a better listing.",
        "price_sek": 4500,
    },
    {
        "title_sv": "3D / Planritning",
        "title_en": "3D / Floor plan",
        "description_sv": "Planritning / 3D-visning för annons.",
        "description_en": "Floor plan / 3D viewing for the listing.",
        "price_sek": 3500,
    },
]


class SeedResult(str, Enum):
    SEEDED = "SEEDED"
    ALREADY_PRESENT = "ALREADY_PRESENT"


def build_default_extras(valuation_id: str) -> List[ExtraService]:
    """Default extras; the legacy fields carry the Swedish text."""
    return [
        ExtraService(
            valuation_id=valuation_id,
            title=default["title_sv"],
            description=default["description_sv"],
            property_type=ExtraPropertyType.BOTH,
            **default,
        )
        for default in DEFAULT_EXTRAS
    ]


def project_extra(doc: Dict[str, Any], lang: Language) -> Dict[str, Any]:
    """Client view: title/description in ``lang`` plus both raw languages."""
    title = LocalizedText.from_doc(doc, "title")
    description = LocalizedText.from_doc(doc, "description")
    raw_title = title.filled()
    raw_description = description.filled()
    return {
        "extraId": doc["extra_id"],
        "valuationId": doc["valuation_id"],
        "priceSek": doc["price_sek"],
        "propertyType": doc["property_type"],
        "title": title.resolve(lang),
        "description": description.resolve(lang),
        "titleSv": raw_title.sv,
        "titleEn": raw_title.en,
        "descriptionSv": raw_description.sv,
        "descriptionEn": raw_description.en,
    }


class ExtrasService:

    async def list_for_valuation(self, db, valuation_id: str, actor_id: str = None) -> Tuple[SeedResult, List[Dict[str, Any]]]:
        """Persisted extras for a valuation, seeding the defaults when there are none."""
        extras = await db.extra_services.find(
            {"valuation_id": valuation_id}, {"_id": 0}
        ).sort("created_at", 1).to_list(None)

        if extras:
            return SeedResult.ALREADY_PRESENT, extras

        defaults = [extra.model_dump() for extra in build_default_extras(valuation_id)]
        await db.extra_services.insert_many([dict(doc) for doc in defaults])

        await create_audit_log(
            db,
            action=AuditAction.EXTRAS_SEEDED,
            actor_id=actor_id,
            resource_type="valuation",
            resource_id=valuation_id,
            metadata={"count": len(defaults)},
        )
        logger.info(f"Seeded {len(defaults)} default extras for valuation {valuation_id}")
        return SeedResult.SEEDED, defaults

    async def list_all(self, db) -> List[Dict[str, Any]]:
        return await db.extra_services.find({}, {"_id": 0}).sort("updated_at", -1).to_list(None)

    async def update_extra(self, db, extra_id: str, update: ExtraServiceUpdate, actor_id: str = None) -> Dict[str, Any]:
        """Partial update: only fields present in the request are written."""
        changes = update.model_dump(exclude_unset=True)
        changes = {k: v for k, v in changes.items() if v is not None}
        if not changes:
            raise ValidationError("No fields to update")

        before = await db.extra_services.find_one({"extra_id": extra_id}, {"_id": 0})
        if not before:
            raise NotFoundError("Not found")

        changes["updated_at"] = datetime.now(timezone.utc)
        await db.extra_services.update_one({"extra_id": extra_id}, {"$set": changes})
        updated = {**before, **changes}

        await create_audit_log(
            db,
            action=AuditAction.EXTRA_UPDATED,
            actor_id=actor_id,
            resource_type="extra_service",
            resource_id=extra_id,
            before_state={k: before.get(k) for k in changes if k != "updated_at"},
            after_state={k: v for k, v in changes.items() if k != "updated_at"},
        )
        return updated


extras_service = ExtrasService()
