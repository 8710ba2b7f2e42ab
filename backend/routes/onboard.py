"""Creator onboarding routes.

POST /onboard/creator/create-intent - pending signup + Stripe PaymentIntent.
The account is created by the Stripe webhook once the payment succeeds.
"""
from fastapi import APIRouter, Depends
from database import get_db
from models import CreatorIntentRequest
from services.onboarding_service import onboarding_service

router = APIRouter(prefix="/onboard", tags=["onboarding"])

@router.post("/creator/create-intent")
async def create_creator_intent(data: CreatorIntentRequest, db=Depends(get_db)):
    result = await onboarding_service.create_creator_intent(db, data)
    return {
        "ok": True,
        "clientSecret": result["client_secret"],
        "ref": result["ref"],
    }
