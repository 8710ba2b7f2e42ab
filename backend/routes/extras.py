"""Extras routes (admin/creator only).

GET   /extras/admin/all          - every extra, most recently updated first
PATCH /extras/admin/{extra_id}   - partial update of one extra
GET   /extras/{valuation_id}     - extras for any valuation, seeded on first read

The admin paths are declared first so "admin" is never read as a valuation id.
"""
from fastapi import APIRouter, Depends, Query
from typing import Optional
from database import get_db
from middleware import staff_route_guard
from models import ExtraService, ExtraServiceUpdate
from services.extras_service import extras_service, project_extra
from services.valuation_service import get_valuation
from utils.localized import pick_language

router = APIRouter(prefix="/extras", tags=["extras"], dependencies=[Depends(staff_route_guard)])

@router.get("/admin/all")
async def list_all_extras(db=Depends(get_db)):
    extras = await extras_service.list_all(db)
    return {"ok": True, "extras": [ExtraService(**doc).to_api() for doc in extras]}

@router.patch("/admin/{extra_id}")
async def update_extra(
    extra_id: str,
    data: ExtraServiceUpdate,
    user: dict = Depends(staff_route_guard),
    db=Depends(get_db),
):
    updated = await extras_service.update_extra(db, extra_id, data, actor_id=user.get("userId"))
    return {"ok": True, "extra": ExtraService(**updated).to_api()}

@router.get("/{valuation_id}")
async def list_extras(
    valuation_id: str,
    lang: Optional[str] = Query(None),
    user: dict = Depends(staff_route_guard),
    db=Depends(get_db),
):
    await get_valuation(db, valuation_id)
    language = pick_language(lang)
    _, extras = await extras_service.list_for_valuation(db, valuation_id, actor_id=user.get("userId"))
    return {"ok": True, "extras": [project_extra(doc, language) for doc in extras]}
