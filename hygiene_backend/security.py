# hygiene_backend/security.py
from __future__ import annotations
import datetime as dt
from typing import Any, Dict, Optional
from jose import jwt
from passlib.context import CryptContext
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session
from .config import settings
from .errors import AuthenticationError
from .models.user import User

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
# auto_error=False so public routes can still see an optional bearer token
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login", auto_error=False)

def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)

def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)

def create_access_token(data: Dict[str, Any], expires_delta: Optional[dt.timedelta] = None) -> str:
    claims = dict(data)
    lifetime = expires_delta or dt.timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    claims["exp"] = dt.datetime.now(dt.timezone.utc) + lifetime
    return jwt.encode(claims, settings.JWT_SECRET, algorithm=settings.JWT_ALG)


def issue_token(user: User) -> str:
    """Bearer token carrying the user id as ``sub`` and the role at issue time."""
    return create_access_token({"sub": user.id, "role": user.role})


def decode_access_token(token: str) -> Dict[str, Any]:
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALG])

def authenticate(db: Session, email: str, password: str) -> User:
    """Look up by e-mail and check the password; disabled accounts cannot log in."""
    user = db.query(User).filter(User.email == email.strip().lower()).first()
    if user is None or not verify_password(password, user.hashed_password):
        raise AuthenticationError("Invalid email or password")
    if not user.is_active:
        raise AuthenticationError("Account is deactivated")
    return user
