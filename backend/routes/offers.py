"""Offer routes: one running offer per (valuation, user).

POST /offers                  - append a line item, total updated atomically
GET  /offers/{valuation_id}   - the caller's offer, titles in ?lang=sv|en
"""
from fastapi import APIRouter, Depends, Query
from typing import Optional
from database import get_db
from middleware import require_auth
from models import AddOfferItemRequest
from services.offer_service import normalize_item, offer_service, project_offer
from services.valuation_service import get_owned_valuation
from utils.errors import ValidationError
from utils.localized import pick_language

router = APIRouter(prefix="/offers", tags=["offers"])

@router.post("")
async def add_offer_item(data: AddOfferItemRequest, user: dict = Depends(require_auth), db=Depends(get_db)):
    if not data.valuation_id:
        raise ValidationError("Missing data (valuationId, item, item.priceSek)")
    item = normalize_item(data.item)
    
    await get_owned_valuation(db, data.valuation_id, user)
    offer = await offer_service.add_item(db, data.valuation_id, user["userId"], item)
    return {"ok": True, "offer": project_offer(offer, pick_language(None))}

@router.get("/{valuation_id}")
async def get_offer(
    valuation_id: str,
    lang: Optional[str] = Query(None),
    user: dict = Depends(require_auth),
    db=Depends(get_db),
):
    await get_owned_valuation(db, valuation_id, user)
    offer = await offer_service.get_offer(db, valuation_id, user["userId"])
    if not offer:
        return {"ok": True, "offer": None}
    return {"ok": True, "offer": project_offer(offer, pick_language(lang))}
