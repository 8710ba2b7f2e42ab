"""Valuation routes. A valuation is visible and mutable only by its owner.

The estimate is never written by clients: creation and every features
PATCH recompute it from the stored attributes.
"""
from fastapi import APIRouter, Depends
from database import get_db
from middleware import require_auth
from models import CreateValuationRequest, UpdateFeaturesRequest
from services.valuation_service import valuation_service

router = APIRouter(prefix="/valuations", tags=["valuations"])

@router.post("")
async def create_valuation(data: CreateValuationRequest, user: dict = Depends(require_auth), db=Depends(get_db)):
    valuation = await valuation_service.create_valuation(db, user["userId"], data)
    return {"ok": True, "valuation": valuation.to_api()}

@router.patch("/{valuation_id}/features")
async def update_features(
    valuation_id: str,
    data: UpdateFeaturesRequest,
    user: dict = Depends(require_auth),
    db=Depends(get_db),
):
    valuation = await valuation_service.update_features(db, valuation_id, user, data.features)
    return {"ok": True, "valuation": valuation.to_api()}

# Declared before /{valuation_id} so "mine" is not taken for an id
@router.get("/mine")
async def my_valuations(user: dict = Depends(require_auth), db=Depends(get_db)):
    valuations = await valuation_service.list_for_user(db, user["userId"])
    return {"ok": True, "valuations": [v.to_api() for v in valuations]}

@router.get("/{valuation_id}")
async def get_valuation(valuation_id: str, user: dict = Depends(require_auth), db=Depends(get_db)):
    valuation = await valuation_service.get_for_user(db, valuation_id, user)
    return {"ok": True, "valuation": valuation.to_api()}
