from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from database import get_db
from models import ContactForm, ContactStatus, User
from schemas import ContactCreate, ContactResponse, ContactUpdate
from security import require_admin
from time_utils import now_tz
from utils import log_transaction

router = APIRouter()


def _get_contact_or_404(db: Session, contact_id: int) -> ContactForm:
    contact = db.query(ContactForm).filter(ContactForm.id == contact_id).first()
    if not contact:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Contact form not found")
    return contact


@router.post("/contact", response_model=ContactResponse, status_code=status.HTTP_201_CREATED)
def submit_contact(payload: ContactCreate, db: Session = Depends(get_db)):
    contact = ContactForm(
        name=payload.name.strip(),
        email=str(payload.email).strip().lower(),
        phone=(payload.phone or "").strip() or None,
        subject=payload.subject.strip(),
        message=payload.message.strip(),
        status=ContactStatus.PENDING,
    )
    db.add(contact)
    db.commit()
    db.refresh(contact)
    return ContactResponse.model_validate(contact)


@router.get("/contact", response_model=List[ContactResponse])
def list_contacts(
    status_filter: Optional[ContactStatus] = Query(default=None, alias="status"),
    search: Optional[str] = Query(default=None, max_length=120),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(ContactForm)
    if status_filter:
        query = query.filter(ContactForm.status == status_filter)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            ContactForm.name.ilike(pattern),
            ContactForm.email.ilike(pattern),
            ContactForm.subject.ilike(pattern),
        ))
    rows = query.order_by(ContactForm.submitted_at.desc(), ContactForm.id.desc()).all()
    return [ContactResponse.model_validate(row) for row in rows]


@router.get("/contact/{contact_id}", response_model=ContactResponse)
def get_contact(contact_id: int, admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    return ContactResponse.model_validate(_get_contact_or_404(db, contact_id))


@router.put("/contact/{contact_id}", response_model=ContactResponse)
def update_contact(
    contact_id: int,
    payload: ContactUpdate,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    contact = _get_contact_or_404(db, contact_id)
    if payload.status is not None and payload.status != contact.status:
        contact.status = payload.status
        contact.resolved_at = now_tz() if payload.status == ContactStatus.RESOLVED else None
    if payload.notes is not None:
        contact.notes = payload.notes.strip() or None
    db.commit()
    db.refresh(contact)
    log_transaction(db, admin, "CONTACT_UPDATED", {"contact_id": contact.id, "status": contact.status.value}, request)
    return ContactResponse.model_validate(contact)


@router.delete("/contact/{contact_id}")
def delete_contact(
    contact_id: int,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    contact = _get_contact_or_404(db, contact_id)
    db.delete(contact)
    db.commit()
    log_transaction(db, admin, "CONTACT_DELETED", {"contact_id": contact_id}, request)
    return {"message": "Contact form deleted successfully"}
