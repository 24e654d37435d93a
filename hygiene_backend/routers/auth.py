# hygiene_backend/routers/auth.py
from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, status
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import get_current_user
from ..errors import ValidationFailed
from ..models.user import User
from ..rules.complaints import utcnow
from ..schemas.auth import (
    AuthResponse,
    PasswordChangeIn,
    ProfileUpdateIn,
    RefreshResponse,
    UserCreate,
    UserLogin,
    UserOut,
)
from ..schemas.common import Message
from ..security import authenticate, get_password_hash, issue_token, verify_password

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


@router.post("/register", response_model=AuthResponse, status_code=status.HTTP_201_CREATED)
def register(payload: UserCreate, db: Session = Depends(get_db)):
    # Public signup always creates a plain user
    existing = (
        db.query(User)
        .filter(or_(User.email == payload.email.lower(), User.username == payload.username))
        .first()
    )
    if existing:
        field = "email" if existing.email == payload.email.lower() else "username"
        raise ValidationFailed(f"User with this {field} already exists", field=field)

    user = User(
        username=payload.username,
        email=payload.email,
        hashed_password=get_password_hash(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        phone_number=payload.phone_number,
        role="user",
        is_active=True,
    )
    db.add(user)
    db.commit()
    db.refresh(user)

    logger.info("New user registered: %s", user.email)
    return AuthResponse(
        message="User registered successfully",
        user=UserOut.model_validate(user),
        token=issue_token(user),
    )


@router.post("/login", response_model=AuthResponse)
def login(payload: UserLogin, db: Session = Depends(get_db)):
    user = authenticate(db, payload.email, payload.password)
    user.last_login = utcnow()
    db.commit()
    db.refresh(user)

    logger.info("User logged in: %s", user.email)
    return AuthResponse(
        message="Login successful",
        user=UserOut.model_validate(user),
        token=issue_token(user),
    )


@router.post("/logout", response_model=Message)
def logout(current_user: User = Depends(get_current_user)):
    # Tokens are stateless; the client drops its copy
    logger.info("User logged out: %s", current_user.email)
    return Message(message="Logout successful")


@router.get("/me", response_model=UserOut)
def me(current_user: User = Depends(get_current_user)):
    return current_user


@router.put("/me", response_model=UserOut)
def update_me(
    payload: ProfileUpdateIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    for field, value in payload.model_dump(exclude_unset=True).items():
        setattr(current_user, field, value)
    db.commit()
    db.refresh(current_user)

    logger.info("Profile updated: %s", current_user.email)
    return current_user


@router.put("/change-password", response_model=Message)
def change_password(
    payload: PasswordChangeIn,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    if not verify_password(payload.current_password, current_user.hashed_password):
        raise ValidationFailed("Current password is incorrect", field="current_password")

    current_user.hashed_password = get_password_hash(payload.new_password)
    db.commit()

    logger.info("Password changed: %s", current_user.email)
    return Message(message="Password changed successfully")


@router.post("/refresh", response_model=RefreshResponse)
def refresh_token(current_user: User = Depends(get_current_user)):
    # A fresh token reflects the current role; deactivated users are already rejected
    logger.info("Token refreshed: %s", current_user.email)
    return RefreshResponse(message="Token refreshed successfully", token=issue_token(current_user))
