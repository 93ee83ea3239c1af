import logging
import re
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy.orm import Session

from email_bulk import registration_context, render_email_template
from email_templates import build_mailer_email, build_payment_receipt_email
from emailer import send_email
from models import Payment, Registration

logger = logging.getLogger(__name__)

ALL_REGISTRANTS = "all"


def committee_slug(name: Optional[str]) -> str:
    return re.sub(r"[^a-z0-9]+", "_", str(name or "").strip().lower()).strip("_")


def _registration_groups(registration: Registration) -> set:
    groups = {committee_slug(registration.committee_preference_1)}
    if registration.allocated_committee:
        groups.add(committee_slug(registration.allocated_committee.name))
    groups.discard("")
    return groups


def select_registrations(db: Session, group_ids: Iterable[str]) -> List[Registration]:
    wanted = {g.strip().lower() for g in group_ids if g and g.strip()}
    rows = db.query(Registration).order_by(Registration.created_at.asc(), Registration.id.asc()).all()
    if not wanted or ALL_REGISTRANTS in wanted:
        return rows
    return [row for row in rows if _registration_groups(row) & wanted]


def send_payment_receipt(payment: Payment) -> bool:
    user = payment.user
    if not user or not user.email:
        return False
    name = " ".join(part for part in (user.first_name, user.last_name) if part)
    subject, html, text = build_payment_receipt_email(
        name=name,
        user_code=user.user_code or "",
        amount=payment.amount,
        currency=payment.currency,
        razorpay_payment_id=payment.razorpay_payment_id or "",
    )
    try:
        send_email(user.email, subject, html, text)
    except (RuntimeError, ValueError, OSError) as exc:
        logger.warning("Payment receipt for payment %s not sent: %s", payment.id, exc)
        return False
    return True


def send_single(to_email: str, subject: str, message: str, provider: str, context: Optional[Dict] = None) -> None:
    context = context or {}
    rendered_subject = render_email_template(subject, context, html_mode=False)
    rendered_message = render_email_template(message, context, html_mode=False)
    subject_line, html, text = build_mailer_email(rendered_subject, rendered_message)
    send_email(to_email, subject_line, html, text, provider=provider)


def send_bulk(registrations: Iterable[Registration], subject: str, message: str, provider: str) -> Tuple[int, List[str]]:
    sent = 0
    failed: List[str] = []
    seen = set()
    for registration in registrations:
        email = (registration.email or "").strip().lower()
        if not email or email in seen:
            continue
        seen.add(email)
        try:
            send_single(registration.email, subject, message, provider, registration_context(registration))
            sent += 1
        except (RuntimeError, ValueError, OSError) as exc:
            logger.warning("Bulk mail to %s failed: %s", registration.email, exc)
            failed.append(registration.email)
    return sent, failed
