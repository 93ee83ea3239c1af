from typing import List, Optional

from fastapi import APIRouter, Depends, File, Form, HTTPException, Request, UploadFile, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from database import get_db
from models import Committee, InstitutionType, Portfolio, Registration, User
from schemas import (
    CommitteeResponse,
    CommitteeStat,
    PortfolioCreate,
    PortfolioResponse,
    PortfolioUpdate,
)
from security import require_dev_admin
from utils import IMAGE_CONTENT_TYPES, _delete_s3_object, _upload_to_s3, log_transaction

router = APIRouter()


def _get_committee_or_404(db: Session, committee_id: int) -> Committee:
    committee = db.query(Committee).filter(Committee.id == committee_id).first()
    if not committee:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Committee not found")
    return committee


def _get_portfolio_or_404(db: Session, committee_id: int, portfolio_id: int) -> Portfolio:
    portfolio = (
        db.query(Portfolio)
        .filter(Portfolio.id == portfolio_id, Portfolio.committee_id == committee_id)
        .first()
    )
    if not portfolio:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Portfolio not found")
    return portfolio


def _clean_name(value: Optional[str], label: str) -> str:
    cleaned = (value or "").strip()
    if not cleaned:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=f"{label} is required")
    return cleaned


def _parse_institution_type(value: Optional[str]) -> InstitutionType:
    try:
        return InstitutionType((value or "both").strip().lower())
    except ValueError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid institution type") from exc


def _ordered(query):
    return query.order_by(Committee.name.asc(), Committee.id.asc())


@router.get("/committees", response_model=List[CommitteeResponse])
def list_committees(db: Session = Depends(get_db)):
    return [CommitteeResponse.model_validate(row) for row in _ordered(db.query(Committee)).all()]


@router.get("/committees/featured", response_model=List[CommitteeResponse])
def list_featured_committees(db: Session = Depends(get_db)):
    rows = _ordered(db.query(Committee).filter(Committee.is_featured.is_(True))).all()
    return [CommitteeResponse.model_validate(row) for row in rows]


@router.get("/committees/institution/{institution_type}", response_model=List[CommitteeResponse])
def list_committees_for_institution(institution_type: str, db: Session = Depends(get_db)):
    requested = _parse_institution_type(institution_type)
    query = db.query(Committee)
    if requested != InstitutionType.BOTH:
        query = query.filter(Committee.institution_type.in_([requested, InstitutionType.BOTH]))
    return [CommitteeResponse.model_validate(row) for row in _ordered(query).all()]


@router.get("/committees/stats", response_model=List[CommitteeStat])
def committee_stats(db: Session = Depends(get_db)):
    preference_counts = dict(
        db.query(func.lower(Registration.committee_preference_1), func.count(Registration.id))
        .group_by(func.lower(Registration.committee_preference_1))
        .all()
    )
    stats = []
    for committee in _ordered(db.query(Committee)).all():
        portfolios = committee.portfolios or []
        stats.append(CommitteeStat(
            id=committee.id,
            name=committee.name,
            capacity=committee.capacity or 0,
            portfolio_count=len(portfolios),
            seats=sum(p.capacity or 0 for p in portfolios),
            registered=sum(p.registered or 0 for p in portfolios),
            preference_count=preference_counts.get(committee.name.lower(), 0),
        ))
    return stats


@router.get("/committees/{committee_id}", response_model=CommitteeResponse)
def get_committee(committee_id: int, db: Session = Depends(get_db)):
    return CommitteeResponse.model_validate(_get_committee_or_404(db, committee_id))


@router.post("/committees", response_model=CommitteeResponse, status_code=status.HTTP_201_CREATED)
def create_committee(
    request: Request,
    name: str = Form(...),
    institution_type: str = Form("both"),
    description: Optional[str] = Form(None),
    capacity: int = Form(0),
    is_featured: bool = Form(False),
    logo: Optional[UploadFile] = File(None),
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    committee = Committee(
        name=_clean_name(name, "Committee name"),
        institution_type=_parse_institution_type(institution_type),
        description=(description or "").strip() or None,
        capacity=max(0, capacity),
        is_featured=is_featured,
    )
    if logo is not None and logo.filename:
        committee.logo_url = _upload_to_s3(logo, "committees/logos", allowed_types=IMAGE_CONTENT_TYPES)
    db.add(committee)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Committee already exists") from exc
    db.refresh(committee)
    log_transaction(db, admin, "COMMITTEE_CREATED", {"committee_id": committee.id, "name": committee.name}, request)
    return CommitteeResponse.model_validate(committee)


@router.put("/committees/{committee_id}", response_model=CommitteeResponse)
def update_committee(
    committee_id: int,
    request: Request,
    name: Optional[str] = Form(None),
    institution_type: Optional[str] = Form(None),
    description: Optional[str] = Form(None),
    capacity: Optional[int] = Form(None),
    is_featured: Optional[bool] = Form(None),
    logo: Optional[UploadFile] = File(None),
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    committee = _get_committee_or_404(db, committee_id)
    if name is not None:
        committee.name = _clean_name(name, "Committee name")
    if institution_type is not None:
        committee.institution_type = _parse_institution_type(institution_type)
    if description is not None:
        committee.description = description.strip() or None
    if capacity is not None:
        committee.capacity = max(0, capacity)
    if is_featured is not None:
        committee.is_featured = is_featured
    previous_logo = None
    if logo is not None and logo.filename:
        previous_logo = committee.logo_url
        committee.logo_url = _upload_to_s3(logo, "committees/logos", allowed_types=IMAGE_CONTENT_TYPES)
    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Committee already exists") from exc
    if previous_logo:
        _delete_s3_object(previous_logo)
    db.refresh(committee)
    log_transaction(db, admin, "COMMITTEE_UPDATED", {"committee_id": committee.id}, request)
    return CommitteeResponse.model_validate(committee)


@router.delete("/committees/{committee_id}")
def delete_committee(
    committee_id: int,
    request: Request,
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    committee = _get_committee_or_404(db, committee_id)
    logo_url = committee.logo_url
    name = committee.name
    db.delete(committee)
    db.commit()
    _delete_s3_object(logo_url)
    log_transaction(db, admin, "COMMITTEE_DELETED", {"committee_id": committee_id, "name": name}, request)
    return {"message": "Committee deleted successfully"}


@router.get("/committees/{committee_id}/portfolios", response_model=List[PortfolioResponse])
def list_portfolios(committee_id: int, db: Session = Depends(get_db)):
    committee = _get_committee_or_404(db, committee_id)
    return [PortfolioResponse.model_validate(row) for row in committee.portfolios]


@router.post(
    "/committees/{committee_id}/portfolios",
    response_model=PortfolioResponse,
    status_code=status.HTTP_201_CREATED,
)
def create_portfolio(
    committee_id: int,
    payload: PortfolioCreate,
    request: Request,
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    committee = _get_committee_or_404(db, committee_id)
    display_order = payload.display_order
    if display_order is None:
        display_order = (
            db.query(func.max(Portfolio.display_order))
            .filter(Portfolio.committee_id == committee.id)
            .scalar()
        )
        display_order = (display_order or 0) + 1
    portfolio = Portfolio(
        committee_id=committee.id,
        name=payload.name,
        description=payload.description,
        capacity=payload.capacity,
        registered=0,
        display_order=display_order,
    )
    db.add(portfolio)
    db.commit()
    db.refresh(portfolio)
    log_transaction(db, admin, "PORTFOLIO_CREATED", {"committee_id": committee.id, "portfolio_id": portfolio.id}, request)
    return PortfolioResponse.model_validate(portfolio)


@router.put("/committees/{committee_id}/portfolios/{portfolio_id}", response_model=PortfolioResponse)
def update_portfolio(
    committee_id: int,
    portfolio_id: int,
    payload: PortfolioUpdate,
    request: Request,
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    portfolio = _get_portfolio_or_404(db, committee_id, portfolio_id)
    updates = payload.model_dump(exclude_unset=True)
    if "name" in updates:
        updates["name"] = _clean_name(updates["name"], "Portfolio name")
    if "capacity" in updates and updates["capacity"] is not None and updates["capacity"] < (portfolio.registered or 0):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Capacity cannot be below registered count")
    for field, value in updates.items():
        if value is not None:
            setattr(portfolio, field, value)
    db.commit()
    db.refresh(portfolio)
    log_transaction(db, admin, "PORTFOLIO_UPDATED", {"committee_id": committee_id, "portfolio_id": portfolio.id}, request)
    return PortfolioResponse.model_validate(portfolio)


@router.delete("/committees/{committee_id}/portfolios/{portfolio_id}")
def delete_portfolio(
    committee_id: int,
    portfolio_id: int,
    request: Request,
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    portfolio = _get_portfolio_or_404(db, committee_id, portfolio_id)
    db.query(Registration).filter(Registration.allocated_portfolio_id == portfolio.id).update(
        {Registration.allocated_portfolio_id: None}, synchronize_session=False
    )
    db.delete(portfolio)
    db.commit()
    log_transaction(db, admin, "PORTFOLIO_DELETED", {"committee_id": committee_id, "portfolio_id": portfolio_id}, request)
    return {"message": "Portfolio deleted successfully"}
