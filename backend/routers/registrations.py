from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from database import get_db
from models import Committee, Payment, Portfolio, Registration, RegistrationStatus, User
from schemas import RegistrationCreate, RegistrationResponse, RegistrationUpdate
from security import ensure_owner_or_admin, is_admin, require_admin, require_user
from utils import log_transaction

router = APIRouter()

ADMIN_FIELDS = ("status", "allocated_committee_id", "allocated_portfolio_id", "clear_allocation")


def _latest_payment(db: Session, registration: Registration) -> Optional[Payment]:
    return (
        db.query(Payment)
        .filter(Payment.registration_id == registration.id)
        .order_by(Payment.created_at.desc(), Payment.id.desc())
        .first()
    )


def build_registration_response(db: Session, registration: Registration) -> RegistrationResponse:
    payment = _latest_payment(db, registration)
    return RegistrationResponse(
        id=registration.id,
        user_id=registration.user_id,
        first_name=registration.first_name,
        last_name=registration.last_name,
        email=registration.email,
        phone=registration.phone,
        institution=registration.institution,
        institution_type=registration.institution_type,
        grade=registration.grade,
        is_kumaraguru=bool(registration.is_kumaraguru),
        committee_preference_1=registration.committee_preference_1,
        committee_preference_2=registration.committee_preference_2,
        committee_preference_3=registration.committee_preference_3,
        portfolio_preference_1=registration.portfolio_preference_1,
        portfolio_preference_2=registration.portfolio_preference_2,
        portfolio_preference_3=registration.portfolio_preference_3,
        previous_experience=registration.previous_experience,
        status=registration.status,
        allocated_committee_id=registration.allocated_committee_id,
        allocated_portfolio_id=registration.allocated_portfolio_id,
        allocated_committee=registration.allocated_committee.name if registration.allocated_committee else None,
        allocated_portfolio=registration.allocated_portfolio.name if registration.allocated_portfolio else None,
        payment_status=payment.status if payment else None,
        created_at=registration.created_at,
        updated_at=registration.updated_at,
    )


def recount_portfolio(db: Session, portfolio_id: Optional[int]) -> None:
    """Sync portfolio.registered with approved registrations allocated to it."""
    if not portfolio_id:
        return
    portfolio = db.query(Portfolio).filter(Portfolio.id == portfolio_id).first()
    if not portfolio:
        return
    portfolio.registered = (
        db.query(func.count(Registration.id))
        .filter(
            Registration.allocated_portfolio_id == portfolio_id,
            Registration.status == RegistrationStatus.APPROVED,
        )
        .scalar()
        or 0
    )


def _get_registration_or_404(db: Session, registration_id: int) -> Registration:
    registration = db.query(Registration).filter(Registration.id == registration_id).first()
    if not registration:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Registration not found")
    return registration


def _ensure_portfolio_has_room(db: Session, portfolio: Portfolio, registration: Registration) -> None:
    taken = (
        db.query(func.count(Registration.id))
        .filter(
            Registration.allocated_portfolio_id == portfolio.id,
            Registration.status == RegistrationStatus.APPROVED,
            Registration.id != registration.id,
        )
        .scalar()
        or 0
    )
    if taken >= (portfolio.capacity or 0):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Portfolio is full")


def _apply_allocation(db: Session, registration: Registration, data: dict) -> None:
    if data.get("clear_allocation"):
        registration.allocated_committee_id = None
        registration.allocated_portfolio_id = None
        return

    committee_id = data.get("allocated_committee_id", registration.allocated_committee_id)
    portfolio_id = data.get("allocated_portfolio_id", registration.allocated_portfolio_id)

    if committee_id is not None:
        if not db.query(Committee).filter(Committee.id == committee_id).first():
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Committee not found")
    if portfolio_id is not None:
        portfolio = db.query(Portfolio).filter(Portfolio.id == portfolio_id).first()
        if not portfolio:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Portfolio not found")
        if committee_id is None:
            committee_id = portfolio.committee_id
        elif portfolio.committee_id != committee_id:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Portfolio does not belong to committee")
        if portfolio_id != registration.allocated_portfolio_id:
            _ensure_portfolio_has_room(db, portfolio, registration)

    registration.allocated_committee_id = committee_id
    registration.allocated_portfolio_id = portfolio_id


@router.post("/registrations", response_model=RegistrationResponse, status_code=status.HTTP_201_CREATED)
def create_registration(
    payload: RegistrationCreate,
    request: Request,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    existing = db.query(Registration).filter(Registration.user_id == user.id).first()
    if existing:
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Registration already exists")

    data = payload.model_dump()
    data["email"] = str(data["email"]).strip().lower()
    registration = Registration(user_id=user.id, **data)
    db.add(registration)
    db.commit()
    db.refresh(registration)
    log_transaction(db, user, "REGISTRATION_CREATED", {"registration_id": registration.id}, request)
    return build_registration_response(db, registration)


@router.get("/registrations", response_model=List[RegistrationResponse])
def list_registrations(
    status_filter: Optional[RegistrationStatus] = Query(default=None, alias="status"),
    committee: Optional[str] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    query = db.query(Registration)
    if status_filter:
        query = query.filter(Registration.status == status_filter)
    if committee:
        query = query.filter(func.lower(Registration.committee_preference_1) == committee.strip().lower())
    rows = query.order_by(Registration.created_at.desc(), Registration.id.desc()).all()
    return [build_registration_response(db, row) for row in rows]


@router.get("/registrations/me", response_model=Optional[RegistrationResponse])
def get_my_registration(user: User = Depends(require_user), db: Session = Depends(get_db)):
    registration = (
        db.query(Registration)
        .filter(Registration.user_id == user.id)
        .order_by(Registration.id.desc())
        .first()
    )
    if not registration:
        return None
    return build_registration_response(db, registration)


@router.get("/registrations/{registration_id}", response_model=RegistrationResponse)
def get_registration(registration_id: int, user: User = Depends(require_user), db: Session = Depends(get_db)):
    registration = _get_registration_or_404(db, registration_id)
    ensure_owner_or_admin(user, registration.user_id)
    return build_registration_response(db, registration)


@router.put("/registrations/{registration_id}", response_model=RegistrationResponse)
def update_registration(
    registration_id: int,
    payload: RegistrationUpdate,
    request: Request,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    registration = _get_registration_or_404(db, registration_id)
    ensure_owner_or_admin(user, registration.user_id)

    data = payload.model_dump(exclude_unset=True)
    touches_admin_fields = any(field in data and data[field] not in (None, False) for field in ADMIN_FIELDS)
    if touches_admin_fields and not is_admin(user):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")

    previous_portfolio_id = registration.allocated_portfolio_id
    previous_status = registration.status
    for field, value in data.items():
        if field in ADMIN_FIELDS:
            continue
        if field == "first_name" and not value:
            continue
        setattr(registration, field, value)

    if touches_admin_fields:
        if data.get("status") is not None:
            registration.status = data["status"]
        if any(key in data for key in ("allocated_committee_id", "allocated_portfolio_id", "clear_allocation")):
            _apply_allocation(db, registration, data)
        # approving keeps an existing allocation, so its seat must still be free
        if (
            registration.status == RegistrationStatus.APPROVED
            and previous_status != RegistrationStatus.APPROVED
            and registration.allocated_portfolio_id is not None
            and registration.allocated_portfolio_id == previous_portfolio_id
        ):
            portfolio = db.query(Portfolio).filter(Portfolio.id == registration.allocated_portfolio_id).first()
            if portfolio:
                _ensure_portfolio_has_room(db, portfolio, registration)

    db.flush()
    recount_portfolio(db, previous_portfolio_id)
    if registration.allocated_portfolio_id != previous_portfolio_id:
        recount_portfolio(db, registration.allocated_portfolio_id)
    elif touches_admin_fields:
        recount_portfolio(db, registration.allocated_portfolio_id)
    db.commit()
    db.refresh(registration)

    details = {"registration_id": registration.id}
    if touches_admin_fields:
        details.update({
            "status": registration.status.value,
            "allocated_committee_id": registration.allocated_committee_id,
            "allocated_portfolio_id": registration.allocated_portfolio_id,
        })
    log_transaction(db, user, "REGISTRATION_UPDATED", details, request)
    return build_registration_response(db, registration)


@router.delete("/registrations/{registration_id}")
def delete_registration(
    registration_id: int,
    request: Request,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    registration = _get_registration_or_404(db, registration_id)
    ensure_owner_or_admin(user, registration.user_id)
    portfolio_id = registration.allocated_portfolio_id
    db.delete(registration)
    db.flush()
    recount_portfolio(db, portfolio_id)
    db.commit()
    log_transaction(db, user, "REGISTRATION_DELETED", {"registration_id": registration_id}, request)
    return {"message": "Registration deleted successfully"}
