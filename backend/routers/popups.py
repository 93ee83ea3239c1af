from typing import Optional

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from database import get_db
from models import Popup, User
from schemas import PopupResponse, PopupToggle, PopupUpdate
from security import require_admin, require_dev_admin
from utils import log_transaction

router = APIRouter()


def get_or_create_popup(db: Session) -> Popup:
    popup = db.query(Popup).order_by(Popup.id.asc()).first()
    if not popup:
        popup = Popup(heading="", text="", is_active=False)
        db.add(popup)
        db.commit()
        db.refresh(popup)
    return popup


@router.get("/popups", response_model=PopupResponse)
def get_popup(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return PopupResponse.model_validate(get_or_create_popup(db))


@router.get("/popups/active", response_model=Optional[PopupResponse])
def get_active_popup(db: Session = Depends(get_db)):
    popup = db.query(Popup).filter(Popup.is_active.is_(True)).order_by(Popup.id.asc()).first()
    if not popup or not (popup.heading or "").strip():
        return None
    return PopupResponse.model_validate(popup)


@router.put("/popups", response_model=PopupResponse)
def update_popup(
    payload: PopupUpdate,
    request: Request,
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    popup = get_or_create_popup(db)
    popup.heading = payload.heading
    popup.text = payload.text
    if payload.is_active is not None:
        popup.is_active = payload.is_active
    db.commit()
    db.refresh(popup)
    log_transaction(db, admin, "POPUP_UPDATED", {"popup_id": popup.id, "is_active": popup.is_active}, request)
    return PopupResponse.model_validate(popup)


@router.patch("/popups/toggle", response_model=PopupResponse)
def toggle_popup(
    payload: PopupToggle,
    request: Request,
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    popup = get_or_create_popup(db)
    popup.is_active = payload.is_active
    db.commit()
    db.refresh(popup)
    log_transaction(db, admin, "POPUP_TOGGLED", {"popup_id": popup.id, "is_active": popup.is_active}, request)
    return PopupResponse.model_validate(popup)
