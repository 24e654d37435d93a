from __future__ import annotations

from typing import Callable, Optional

from fastapi import Depends
from jose import JWTError
from sqlalchemy.orm import Session

from .db import get_db
from .errors import AuthenticationError, AuthorizationError
from .models.user import User
from .schemas.auth import TokenPayload
from .security import decode_access_token, oauth2_scheme


def _user_from_token(token: Optional[str], db: Session) -> Optional[User]:
    if not token:
        return None
    try:
        payload = decode_access_token(token)
        token_data = TokenPayload(**payload)
    except (JWTError, ValueError):
        return None
    return db.query(User).filter(User.id == token_data.sub).first()


def get_current_user(token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> User:
    user = _user_from_token(token, db)
    if user is None:
        raise AuthenticationError("Could not validate credentials")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")
    return user


def get_optional_user(token: Optional[str] = Depends(oauth2_scheme), db: Session = Depends(get_db)) -> Optional[User]:
    user = _user_from_token(token, db)
    return user if user is not None and user.is_active else None


def require_roles(*roles: str) -> Callable[[User], User]:
    def _wrapper(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in roles:
            raise AuthorizationError("Insufficient permissions")
        return current_user

    return _wrapper


require_admin = require_roles("admin")


def ensure_owner_or_admin(user: User, owner_id: str, message: str = "Access denied") -> None:
    """Ownership capability check for per-resource routes."""
    if user.is_admin or user.id == owner_id:
        return
    raise AuthorizationError(message)
