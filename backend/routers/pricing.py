from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from models import Pricing, User
from schemas import PricingResponse, PricingUpdate
from security import require_dev_admin
from utils import log_transaction

router = APIRouter()


def get_or_create_pricing(db: Session) -> Pricing:
    pricing = db.query(Pricing).order_by(Pricing.id.asc()).first()
    if not pricing:
        pricing = Pricing(internal_delegate=2500, external_delegate=3500)
        db.add(pricing)
        db.commit()
        db.refresh(pricing)
    return pricing


@router.get("/pricing", response_model=PricingResponse)
def get_pricing(db: Session = Depends(get_db)):
    return PricingResponse.model_validate(get_or_create_pricing(db))


@router.put("/pricing", response_model=PricingResponse)
def update_pricing(
    payload: PricingUpdate,
    request: Request,
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    pricing = get_or_create_pricing(db)
    pricing.internal_delegate = payload.internal_delegate
    pricing.external_delegate = payload.external_delegate
    db.commit()
    db.refresh(pricing)
    log_transaction(db, admin, "PRICING_UPDATED", payload.model_dump(), request)
    return PricingResponse.model_validate(pricing)
