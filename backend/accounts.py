from typing import Optional

from fastapi import HTTPException, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from auth import generate_user_code, get_password_hash
from models import User, UserRole


def _normalize_optional_text(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    normalized = str(value).strip()
    return normalized or None


def normalize_email(email: str) -> str:
    return str(email or "").strip().lower()


def find_user_by_email(db: Session, email: str) -> Optional[User]:
    return db.query(User).filter(func.lower(User.email) == normalize_email(email)).first()


def create_account(
    db: Session,
    *,
    email: str,
    password: str,
    first_name: str,
    last_name: Optional[str] = None,
    phone: Optional[str] = None,
    institution: Optional[str] = None,
    grade: Optional[str] = None,
    is_kumaraguru: bool = False,
    role: UserRole = UserRole.DELEGATE,
) -> User:
    if find_user_by_email(db, email):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")

    user = User(
        email=normalize_email(email),
        hashed_password=get_password_hash(password),
        first_name=first_name.strip(),
        last_name=_normalize_optional_text(last_name),
        phone=_normalize_optional_text(phone),
        institution=_normalize_optional_text(institution),
        grade=_normalize_optional_text(grade),
        is_kumaraguru=bool(is_kumaraguru),
        role=role,
    )
    db.add(user)
    db.flush()
    # public delegate id follows the primary key so it never collides
    user.user_code = generate_user_code(user.id)
    db.commit()
    db.refresh(user)
    return user


def apply_profile_update(user: User, data: dict) -> None:
    for field in ("first_name", "last_name", "phone", "institution", "grade"):
        if field in data:
            value = _normalize_optional_text(data[field])
            if field == "first_name" and not value:
                continue
            setattr(user, field, value)
