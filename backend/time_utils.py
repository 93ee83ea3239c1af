import os
from datetime import datetime, timedelta
from typing import Optional
from zoneinfo import ZoneInfo

# Conference runs on IST; override with APP_TIMEZONE for other deployments
DEFAULT_TIMEZONE = "Asia/Kolkata"
DISPLAY_FORMAT = "%b %d, %Y, %I:%M %p"


def _timezone() -> ZoneInfo:
    return ZoneInfo(os.environ.get("APP_TIMEZONE") or DEFAULT_TIMEZONE)


def now_tz() -> datetime:
    return datetime.now(_timezone())


def days_ago(days: int) -> datetime:
    return now_tz() - timedelta(days=days)


def ensure_timezone(dt: datetime) -> datetime:
    if dt.tzinfo is None:
        # stored values without an offset are UTC
        dt = dt.replace(tzinfo=ZoneInfo("UTC"))
    return dt.astimezone(_timezone())


def format_display(dt: Optional[datetime]) -> str:
    """``Sep 26, 2025, 09:30 AM`` in the conference timezone; empty for missing values."""
    if dt is None:
        return ""
    return ensure_timezone(dt).strftime(DISPLAY_FORMAT)
