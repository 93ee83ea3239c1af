from typing import Optional
from fastapi import Depends, HTTPException, status

from auth import get_current_user
from models import User, UserRole

ADMIN_ROLES = (UserRole.DELEGATE_AFFAIRS, UserRole.DEV_ADMIN)


def is_admin(user: Optional[User]) -> bool:
    return bool(user and user.role in ADMIN_ROLES)


def require_user(user: User = Depends(get_current_user)) -> User:
    return user


def require_roles(*roles: UserRole):
    allowed = set(roles)

    def _checker(user: User = Depends(get_current_user)) -> User:
        if user.role not in allowed:
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")
        return user

    return _checker


def require_admin(user: User = Depends(require_roles(*ADMIN_ROLES))) -> User:
    return user


def require_dev_admin(user: User = Depends(require_roles(UserRole.DEV_ADMIN))) -> User:
    return user


def ensure_owner_or_admin(user: User, owner_id: Optional[int]) -> None:
    if is_admin(user):
        return
    if owner_id is None or owner_id != user.id:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Insufficient permissions")

