"""Offer Service - running cart of extras per (valuation, user).

The total is kept in step with the items by a single atomic upsert
($push + $inc), so concurrent appends for the same pair cannot lose an
increment and the total is never recomputed at read time.
"""
from datetime import datetime, timezone
from typing import Any, Dict, Optional
import logging
import uuid

from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from models import AuditAction, Language, OfferItem, OfferItemInput
from utils.audit import create_audit_log
from utils.errors import ValidationError
from utils.localized import LocalizedText

logger = logging.getLogger(__name__)


def normalize_item(item: Optional[OfferItemInput]) -> OfferItem:
    """Validate an incoming line item and fill every title slot."""
    if item is None or item.price_sek is None:
        raise ValidationError("Missing data (valuationId, item, item.priceSek)")

    title = LocalizedText(sv=item.title_sv or "", en=item.title_en or "", legacy=item.title or "")
    if title.is_empty:
        raise ValidationError("Missing data (item.titleSv/titleEn/title)")

    title = title.filled()
    return OfferItem(title=title.legacy, title_sv=title.sv, title_en=title.en, price_sek=item.price_sek)


def project_offer(doc: Dict[str, Any], lang: Language) -> Dict[str, Any]:
    items = []
    for it in doc.get("items") or []:
        items.append({
            "title": LocalizedText.from_doc(it, "title").resolve(lang),
            "titleSv": it.get("title_sv"),
            "titleEn": it.get("title_en"),
            "priceSek": it.get("price_sek"),
        })
    return {
        "offerId": doc.get("offer_id"),
        "valuationId": doc["valuation_id"],
        "userId": doc["user_id"],
        "totalSek": doc["total_sek"],
        "items": items,
    }


class OfferService:

    async def add_item(self, db, valuation_id: str, user_id: str, item: OfferItem) -> Dict[str, Any]:
        """Append ``item`` and add its price to the total in one write."""
        now = datetime.now(timezone.utc)
        query = {"valuation_id": valuation_id, "user_id": user_id}
        update = {
            "$push": {"items": item.model_dump()},
            "$inc": {"total_sek": item.price_sek},
            "$set": {"updated_at": now},
            "$setOnInsert": {"offer_id": str(uuid.uuid4()), "created_at": now},
        }

        try:
            offer = await self._upsert(db, query, update)
        except DuplicateKeyError:
            # Lost the insert race on the (valuation_id, user_id) unique index;
            # the document exists now so the retry is a plain update.
            offer = await self._upsert(db, query, update)

        await create_audit_log(
            db,
            action=AuditAction.OFFER_ITEM_ADDED,
            actor_id=user_id,
            resource_type="offer",
            resource_id=offer.get("offer_id"),
            metadata={"valuation_id": valuation_id, "price_sek": item.price_sek, "total_sek": offer["total_sek"]},
        )
        return offer

    async def _upsert(self, db, query: Dict[str, Any], update: Dict[str, Any]) -> Dict[str, Any]:
        return await db.offers.find_one_and_update(
            query,
            update,
            projection={"_id": 0},
            upsert=True,
            return_document=ReturnDocument.AFTER,
        )

    async def get_offer(self, db, valuation_id: str, user_id: str) -> Optional[Dict[str, Any]]:
        return await db.offers.find_one({"valuation_id": valuation_id, "user_id": user_id}, {"_id": 0})


offer_service = OfferService()
