from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from accounts import apply_profile_update, create_account, find_user_by_email
from auth import (
    build_token_claims,
    create_access_token,
    create_refresh_token,
    decode_token,
    get_password_hash,
    verify_password,
)
from database import get_db
from models import User
from schemas import (
    DelegateSignup,
    PasswordChangeRequest,
    ProfileUpdate,
    RefreshTokenRequest,
    TokenResponse,
    UserLogin,
    UserResponse,
)
from security import require_user
from time_utils import now_tz
from utils import log_transaction

router = APIRouter()


def _issue_tokens(user: User) -> TokenResponse:
    claims = build_token_claims(user)
    return TokenResponse(
        access_token=create_access_token(claims),
        refresh_token=create_refresh_token(claims),
        user=UserResponse.model_validate(user),
    )


@router.post("/auth/register", response_model=TokenResponse, status_code=status.HTTP_201_CREATED)
def register_delegate(signup: DelegateSignup, db: Session = Depends(get_db)):
    user = create_account(db, **signup.model_dump())
    return _issue_tokens(user)


@router.post("/auth/login", response_model=TokenResponse)
def login(login_data: UserLogin, db: Session = Depends(get_db)):
    user = find_user_by_email(db, login_data.email)
    if not user or not verify_password(login_data.password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid email or password")
    user.last_login = now_tz()
    db.commit()
    db.refresh(user)
    return _issue_tokens(user)


@router.post("/auth/refresh", response_model=TokenResponse)
def refresh(request: RefreshTokenRequest, db: Session = Depends(get_db)):
    payload = decode_token(request.refresh_token)
    subject = payload.get("sub")
    if payload.get("type") != "refresh" or not subject or not str(subject).isdigit():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid refresh token")
    user = db.query(User).filter(User.id == int(subject)).first()
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return _issue_tokens(user)


@router.get("/auth/profile", response_model=UserResponse)
def get_profile(user: User = Depends(require_user)):
    return UserResponse.model_validate(user)


@router.put("/auth/profile", response_model=UserResponse)
def update_profile(
    profile: ProfileUpdate,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    apply_profile_update(user, profile.model_dump(exclude_unset=True))
    db.commit()
    db.refresh(user)
    return UserResponse.model_validate(user)


@router.put("/auth/change-password")
def change_password(
    payload: PasswordChangeRequest,
    request: Request,
    user: User = Depends(require_user),
    db: Session = Depends(get_db),
):
    if not verify_password(payload.current_password, user.hashed_password):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Current password is incorrect")
    user.hashed_password = get_password_hash(payload.new_password)
    db.commit()
    log_transaction(db, user, "PASSWORD_CHANGED", request=request)
    return {"message": "Password updated successfully"}
