import html as html_lib
import re
from datetime import date, datetime
from typing import Any, Dict, Iterable, Optional

from models import Registration


TAG_PATTERN = re.compile(r"<([a-z0-9_]+)>", re.IGNORECASE)
MUSTACHE_PATTERN = re.compile(r"\{\{\s*([a-z0-9_]+)\s*\}\}", re.IGNORECASE)

ALLOWED_TAGS = {
    "name",
    "first_name",
    "last_name",
    "email",
    "phone",
    "institution",
    "grade",
    "user_code",
    "status",
    "committee",
    "portfolio",
    "committee_preference_1",
    "committee_preference_2",
    "committee_preference_3",
    "payment_status",
}


def _normalize_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "Yes" if value else "No"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if hasattr(value, "value"):
        return str(value.value)
    return str(value)


def render_email_template(template: str, context: Dict[str, Any], *, html_mode: bool) -> str:
    if not template:
        return ""

    def repl(match: re.Match) -> str:
        tag = match.group(1).lower()
        if tag not in ALLOWED_TAGS:
            return match.group(0)
        value = _normalize_value(context.get(tag))
        if html_mode:
            return html_lib.escape(value)
        return value

    rendered = TAG_PATTERN.sub(repl, template)
    return MUSTACHE_PATTERN.sub(repl, rendered)


def registration_context(registration: Registration, payment_status: Optional[str] = None) -> Dict[str, Any]:
    user = registration.user
    full_name = " ".join(part for part in (registration.first_name, registration.last_name) if part)
    return {
        "name": full_name,
        "first_name": registration.first_name,
        "last_name": registration.last_name,
        "email": registration.email,
        "phone": registration.phone,
        "institution": registration.institution,
        "grade": registration.grade,
        "user_code": user.user_code if user else None,
        "status": registration.status,
        "committee": registration.allocated_committee.name if registration.allocated_committee else None,
        "portfolio": registration.allocated_portfolio.name if registration.allocated_portfolio else None,
        "committee_preference_1": registration.committee_preference_1,
        "committee_preference_2": registration.committee_preference_2,
        "committee_preference_3": registration.committee_preference_3,
        "payment_status": payment_status,
    }


def available_tags() -> Iterable[str]:
    return sorted(ALLOWED_TAGS)
