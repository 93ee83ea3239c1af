import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

import email_workflows
from database import get_db
from email_bulk import available_tags
from models import Registration, User
from schemas import MailerRecipient, MailerSendRequest, MailerSendResponse, MailerStats, MailerTestRequest
from security import require_admin
from utils import log_transaction

logger = logging.getLogger(__name__)

router = APIRouter()


def _recipient(registration: Registration) -> MailerRecipient:
    name = " ".join(part for part in (registration.first_name, registration.last_name) if part)
    committee = (
        registration.allocated_committee.name
        if registration.allocated_committee
        else registration.committee_preference_1
    )
    return MailerRecipient(name=name, email=registration.email, committee=committee)


@router.post("/mailer/send", response_model=MailerSendResponse)
def send_mail(
    payload: MailerSendRequest,
    request: Request,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    if payload.recipient_type == "single":
        try:
            email_workflows.send_single(
                str(payload.single_email),
                payload.subject,
                payload.message,
                payload.email_provider,
            )
        except (RuntimeError, ValueError, OSError) as exc:
            logger.warning("Mailer send to %s failed: %s", payload.single_email, exc)
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to send email: {exc}") from exc
        log_transaction(db, admin, "MAILER_SENT", {"recipient_type": "single", "total_sent": 1}, request)
        return MailerSendResponse(total_recipients=1, total_sent=1, failed=[])

    registrations = email_workflows.select_registrations(db, payload.recipients)
    if not registrations:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="No recipients found")
    total_recipients = len({(r.email or "").strip().lower() for r in registrations if r.email})
    sent, failed = email_workflows.send_bulk(registrations, payload.subject, payload.message, payload.email_provider)
    log_transaction(db, admin, "MAILER_SENT", {
        "recipient_type": "registrants",
        "groups": payload.recipients,
        "total_sent": sent,
        "failed": len(failed),
    }, request)
    return MailerSendResponse(total_recipients=total_recipients, total_sent=sent, failed=failed)


@router.get("/mailer/recipients", response_model=List[MailerRecipient])
def list_recipients(
    committee: Optional[str] = None,
    admin: User = Depends(require_admin),
    db: Session = Depends(get_db),
):
    groups = [committee] if committee else [email_workflows.ALL_REGISTRANTS]
    return [_recipient(row) for row in email_workflows.select_registrations(db, groups)]


@router.get("/mailer/stats", response_model=MailerStats)
def mailer_stats(admin: User = Depends(require_admin), db: Session = Depends(get_db)):
    registrations = db.query(Registration).all()
    by_committee = {}
    for row in registrations:
        slug = email_workflows.committee_slug(
            row.allocated_committee.name if row.allocated_committee else row.committee_preference_1
        )
        if slug:
            by_committee[slug] = by_committee.get(slug, 0) + 1
    return MailerStats(total_registrants=len(registrations), by_committee=by_committee)


@router.get("/mailer/tags", response_model=List[str])
def mailer_tags(admin: User = Depends(require_admin)):
    return list(available_tags())


@router.post("/mailer/test", response_model=MailerSendResponse)
def send_test_mail(
    payload: MailerTestRequest,
    admin: User = Depends(require_admin),
):
    context = {
        "name": " ".join(part for part in (admin.first_name, admin.last_name) if part),
        "first_name": admin.first_name,
        "last_name": admin.last_name,
        "email": admin.email,
        "user_code": admin.user_code,
    }
    try:
        email_workflows.send_single(str(payload.email), payload.subject, payload.message, payload.email_provider, context)
    except (RuntimeError, ValueError, OSError) as exc:
        logger.warning("Test mail to %s failed: %s", payload.email, exc)
        raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail=f"Failed to send email: {exc}") from exc
    return MailerSendResponse(total_recipients=1, total_sent=1, failed=[])
