from __future__ import annotations

import logging
import os
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import inspect
from sqlalchemy.orm import Session

from accounts import create_account, find_user_by_email
from database import Base, engine, get_db
from models import Popup, Pricing, SystemConfig, User, UserRole

logger = logging.getLogger(__name__)

MIGRATION_MARKER_KEY = "migration:backend_bootstrap:v1"
DEFAULT_ADMIN_EMAIL = "admin@kumaragurumun.com"
DEFAULT_ADMIN_PASSWORD = "admin@kmun25"


def set_bootstrap_marker() -> None:
    db = next(get_db())
    try:
        marker = db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first()
        value = datetime.now(timezone.utc).isoformat()
        if marker:
            marker.value = value
        else:
            db.add(SystemConfig(key=MIGRATION_MARKER_KEY, value=value))
        db.commit()
    finally:
        db.close()


def clear_bootstrap_marker() -> bool:
    if not inspect(engine).has_table(SystemConfig.__tablename__):
        return False
    db = next(get_db())
    try:
        marker = db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first()
        if not marker:
            return False
        db.delete(marker)
        db.commit()
        return True
    finally:
        db.close()


def ensure_singleton_rows(db: Session) -> None:
    if not db.query(Pricing).first():
        db.add(Pricing(internal_delegate=2500, external_delegate=3500))
        logger.info("Seeded default pricing")
    if not db.query(Popup).first():
        db.add(Popup(heading="", text="", is_active=False))
        logger.info("Seeded inactive popup")
    db.commit()


def ensure_default_admin(db: Session) -> None:
    if db.query(User).filter(User.role == UserRole.DEV_ADMIN).first():
        return
    email = os.environ.get("DEFAULT_ADMIN_EMAIL", DEFAULT_ADMIN_EMAIL)
    password = os.environ.get("DEFAULT_ADMIN_PASSWORD", DEFAULT_ADMIN_PASSWORD)
    existing = find_user_by_email(db, email)
    if existing:
        existing.role = UserRole.DEV_ADMIN
        db.commit()
        logger.info("Promoted %s to DEV_ADMIN", email)
        return
    create_account(db, email=email, password=password, first_name="Dev", last_name="Admin", role=UserRole.DEV_ADMIN)
    logger.info("Default DEV_ADMIN created: %s", email)


def run_bootstrap_migrations(create_admin: bool = True) -> None:
    Base.metadata.create_all(bind=engine)

    db = next(get_db())
    try:
        ensure_singleton_rows(db)
        if create_admin:
            ensure_default_admin(db)
    finally:
        db.close()


def bootstrap_marker_value() -> Optional[str]:
    if not inspect(engine).has_table(SystemConfig.__tablename__):
        return None
    db = next(get_db())
    try:
        marker = db.query(SystemConfig).filter(SystemConfig.key == MIGRATION_MARKER_KEY).first()
        return marker.value if marker else None
    finally:
        db.close()
