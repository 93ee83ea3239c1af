from typing import List

from fastapi import APIRouter, Depends, Query
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from database import get_db
from models import (
    Committee,
    ContactForm,
    ContactStatus,
    Payment,
    PaymentStatus,
    Registration,
    TransactionLog,
    User,
)
from schemas import ActivityItem, DashboardStat
from security import require_admin
from time_utils import days_ago

router = APIRouter()

RECENT_WINDOW_DAYS = 30


def _change(total: int, recent: int) -> str:
    if not total:
        return "0%"
    return f"+{round(recent / total * 100)}%"


def _count_with_recent(db: Session, column, created_column, *filters):
    since = days_ago(RECENT_WINDOW_DAYS)
    total = db.query(func.count(column)).filter(*filters).scalar() or 0
    recent = db.query(func.count(column)).filter(*filters, created_column >= since).scalar() or 0
    return total, recent


@router.get("/dashboard/stats", response_model=List[DashboardStat])
def dashboard_stats(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    users, users_recent = _count_with_recent(db, User.id, User.created_at)
    registrations, registrations_recent = _count_with_recent(db, Registration.id, Registration.created_at)
    paid, paid_recent = _count_with_recent(
        db, Payment.id, Payment.created_at, Payment.status == PaymentStatus.PAID
    )
    committees = db.query(func.count(Committee.id)).scalar() or 0
    contacts, contacts_recent = _count_with_recent(db, ContactForm.id, ContactForm.submitted_at)
    pending_contacts = (
        db.query(func.count(ContactForm.id)).filter(ContactForm.status == ContactStatus.PENDING).scalar() or 0
    )
    return [
        DashboardStat(label="Total Users", value=str(users), change=_change(users, users_recent), icon="Users", color="blue"),
        DashboardStat(
            label="Total Registrations",
            value=str(registrations),
            change=_change(registrations, registrations_recent),
            icon="UserPlus",
            color="green",
        ),
        DashboardStat(
            label="Confirmed Payments",
            value=str(paid),
            change=_change(paid, paid_recent),
            icon="CreditCard",
            color="purple",
        ),
        DashboardStat(label="Active Committees", value=str(committees), change="0%", icon="FileText", color="yellow"),
        DashboardStat(
            label="Contact Submissions",
            value=str(contacts),
            change=_change(contacts, contacts_recent),
            icon="MessageSquare",
            color="indigo",
        ),
        DashboardStat(label="Pending Contacts", value=str(pending_contacts), change="0%", icon="Clock", color="orange"),
    ]


def _describe(details) -> str:
    if not isinstance(details, dict) or not details:
        return ""
    return ", ".join(f"{key}={value}" for key, value in details.items())


@router.get("/dashboard/activity", response_model=List[ActivityItem])
def dashboard_activity(
    limit: int = Query(default=10, ge=1, le=50),
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    rows = (
        db.query(TransactionLog)
        .options(joinedload(TransactionLog.user))
        .order_by(TransactionLog.created_at.desc(), TransactionLog.id.desc())
        .limit(limit)
        .all()
    )
    items = []
    for row in rows:
        user = row.user
        name = " ".join(part for part in (user.first_name, user.last_name) if part) if user else "System"
        items.append(ActivityItem(
            type=row.action.split("_", 1)[0].lower(),
            user=name,
            action=row.action.replace("_", " ").title(),
            timestamp=row.created_at,
            details=_describe(row.details),
        ))
    return items
