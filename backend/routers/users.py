from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from accounts import apply_profile_update, create_account, find_user_by_email, normalize_email
from auth import get_password_hash
from database import get_db
from models import User, UserRole
from schemas import AdminPasswordReset, AdminUserCreate, AdminUserUpdate, UserResponse
from security import require_dev_admin
from utils import log_transaction

router = APIRouter()


def _get_user_or_404(db: Session, user_id: int) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.get("/users", response_model=List[UserResponse])
def list_users(
    role: Optional[UserRole] = None,
    search: Optional[str] = Query(default=None, max_length=120),
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    query = db.query(User)
    if role:
        query = query.filter(User.role == role)
    if search and search.strip():
        pattern = f"%{search.strip()}%"
        query = query.filter(or_(
            User.email.ilike(pattern),
            User.first_name.ilike(pattern),
            User.last_name.ilike(pattern),
            User.user_code.ilike(pattern),
        ))
    return [UserResponse.model_validate(u) for u in query.order_by(User.created_at.desc(), User.id.desc()).all()]


@router.get("/users/{user_id}", response_model=UserResponse)
def get_user(user_id: int, admin: User = Depends(require_dev_admin), db: Session = Depends(get_db)):
    return UserResponse.model_validate(_get_user_or_404(db, user_id))


@router.post("/users", response_model=UserResponse, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: AdminUserCreate,
    request: Request,
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    user = create_account(db, **payload.model_dump())
    log_transaction(db, admin, "USER_CREATED", {"user_id": user.id, "role": user.role.value}, request)
    return UserResponse.model_validate(user)


@router.put("/users/{user_id}", response_model=UserResponse)
def update_user(
    user_id: int,
    payload: AdminUserUpdate,
    request: Request,
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    user = _get_user_or_404(db, user_id)
    data = payload.model_dump(exclude_unset=True)
    if data.get("email"):
        email = normalize_email(data["email"])
        other = find_user_by_email(db, email)
        if other and other.id != user.id:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Email already registered")
        user.email = email
    if data.get("role") is not None:
        if user.id == admin.id and data["role"] != UserRole.DEV_ADMIN:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot change your own role")
        user.role = data["role"]
    if data.get("is_kumaraguru") is not None:
        user.is_kumaraguru = data["is_kumaraguru"]
    apply_profile_update(user, data)
    db.commit()
    db.refresh(user)
    log_transaction(db, admin, "USER_UPDATED", {"user_id": user.id}, request)
    return UserResponse.model_validate(user)


@router.put("/users/{user_id}/password")
def reset_user_password(
    user_id: int,
    payload: AdminPasswordReset,
    request: Request,
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    user = _get_user_or_404(db, user_id)
    user.hashed_password = get_password_hash(payload.password)
    db.commit()
    log_transaction(db, admin, "USER_PASSWORD_RESET", {"user_id": user.id}, request)
    return {"message": "Password updated successfully"}


@router.delete("/users/{user_id}")
def delete_user(
    user_id: int,
    request: Request,
    admin: User = Depends(require_dev_admin),
    db: Session = Depends(get_db),
):
    user = _get_user_or_404(db, user_id)
    if user.id == admin.id:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Cannot delete your own account")
    db.delete(user)
    db.commit()
    log_transaction(db, admin, "USER_DELETED", {"user_id": user_id}, request)
    return {"message": "User deleted successfully"}
