# hygiene_backend/routers/users.py
from __future__ import annotations

import logging
from datetime import timedelta
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import or_
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import require_admin
from ..errors import NotFoundError, StatePreconditionError
from ..models.complaint import Complaint
from ..models.feedback import Feedback
from ..models.user import User
from ..rules.complaints import utcnow
from ..schemas.auth import AdminUserUpdateIn, UserOut
from ..schemas.common import Message, Page, PageParams

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/users", tags=["users"], dependencies=[Depends(require_admin)])


# ---------- Schemas ----------
class UserEnvelope(BaseModel):
    message: str
    user: UserOut


class UserList(BaseModel):
    users: List[UserOut]


class UserStats(BaseModel):
    total_users: int
    active_users: int
    admin_users: int
    regular_users: int
    recent_registrations: int


class UserStatsEnvelope(BaseModel):
    stats: UserStats


# ---------- Helpers ----------
def _get_user(db: Session, user_id: str) -> User:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User", user_id)
    return user


def _count_admins(db: Session) -> int:
    return db.query(User).filter(User.role == "admin", User.is_active.is_(True)).count()


def _ensure_not_self(actor: User, target: User, action: str) -> None:
    if actor.id == target.id:
        raise StatePreconditionError(
            f"Cannot {action} your own account",
            precondition="target != actor",
        )


def _ensure_not_last_admin(db: Session, target: User, action: str) -> None:
    if target.is_admin and target.is_active and _count_admins(db) <= 1:
        raise StatePreconditionError(
            f"Cannot {action} the last active admin",
            precondition="at least one active admin remains",
        )


def _saved(db: Session, user: User, message: str) -> UserEnvelope:
    db.commit()
    db.refresh(user)
    return UserEnvelope(message=message, user=UserOut.model_validate(user))


# ---------- Routes ----------
@router.get("", response_model=Page[UserOut])
def list_users(
    role: Optional[Literal["user", "admin"]] = None,
    is_active: Optional[bool] = None,
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
):
    q = db.query(User)
    if role:
        q = q.filter(User.role == role)
    if is_active is not None:
        q = q.filter(User.is_active.is_(is_active))
    return page.paginate(q.order_by(User.created_at.desc(), User.username.asc()), UserOut)


@router.get("/search", response_model=UserList)
def search_users(
    q: str = Query(..., min_length=1),
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    pattern = f"%{q.strip()}%"
    rows = (
        db.query(User)
        .filter(
            or_(
                User.username.ilike(pattern),
                User.email.ilike(pattern),
                User.first_name.ilike(pattern),
                User.last_name.ilike(pattern),
            )
        )
        .order_by(User.created_at.desc())
        .limit(limit)
        .all()
    )
    return UserList(users=[UserOut.model_validate(u) for u in rows])


@router.get("/stats/overview", response_model=UserStatsEnvelope)
def user_stats(db: Session = Depends(get_db)):
    since = utcnow() - timedelta(days=30)
    stats = UserStats(
        total_users=db.query(User).count(),
        active_users=db.query(User).filter(User.is_active.is_(True)).count(),
        admin_users=db.query(User).filter(User.role == "admin").count(),
        regular_users=db.query(User).filter(User.role == "user").count(),
        recent_registrations=db.query(User).filter(User.created_at >= since).count(),
    )
    return UserStatsEnvelope(stats=stats)


@router.get("/{user_id}", response_model=UserOut)
def get_user(user_id: str, db: Session = Depends(get_db)):
    return _get_user(db, user_id)


@router.put("/{user_id}", response_model=UserEnvelope)
def update_user(
    user_id: str,
    payload: AdminUserUpdateIn,
    db: Session = Depends(get_db),
    actor: User = Depends(require_admin),
):
    target = _get_user(db, user_id)
    changes = payload.model_dump(exclude_unset=True)

    if changes.get("is_active") is False:
        _ensure_not_self(actor, target, "deactivate")
        _ensure_not_last_admin(db, target, "deactivate")
    if changes.get("role") == "user" and target.is_admin:
        _ensure_not_self(actor, target, "demote")
        _ensure_not_last_admin(db, target, "demote")

    for field, value in changes.items():
        if value is not None:
            setattr(target, field, value)
    envelope = _saved(db, target, "User updated successfully")

    logger.info("User updated by %s: %s", actor.email, target.email)
    return envelope


@router.post("/{user_id}/activate", response_model=UserEnvelope)
def activate_user(user_id: str, db: Session = Depends(get_db), actor: User = Depends(require_admin)):
    target = _get_user(db, user_id)
    if target.is_active:
        raise StatePreconditionError("User is already active", precondition="is_active == false")

    target.is_active = True
    envelope = _saved(db, target, "User activated successfully")

    logger.info("User activated by %s: %s", actor.email, target.email)
    return envelope


@router.post("/{user_id}/deactivate", response_model=UserEnvelope)
def deactivate_user(user_id: str, db: Session = Depends(get_db), actor: User = Depends(require_admin)):
    target = _get_user(db, user_id)
    _ensure_not_self(actor, target, "deactivate")
    if not target.is_active:
        raise StatePreconditionError("User is already inactive", precondition="is_active == true")
    _ensure_not_last_admin(db, target, "deactivate")

    target.is_active = False
    envelope = _saved(db, target, "User deactivated successfully")

    logger.info("User deactivated by %s: %s", actor.email, target.email)
    return envelope


@router.post("/{user_id}/promote", response_model=UserEnvelope)
def promote_user(user_id: str, db: Session = Depends(get_db), actor: User = Depends(require_admin)):
    target = _get_user(db, user_id)
    if target.is_admin:
        raise StatePreconditionError("User is already an admin", precondition="role == user")

    target.role = "admin"
    envelope = _saved(db, target, "User promoted to admin successfully")

    logger.info("User promoted to admin by %s: %s", actor.email, target.email)
    return envelope


@router.post("/{user_id}/demote", response_model=UserEnvelope)
def demote_user(user_id: str, db: Session = Depends(get_db), actor: User = Depends(require_admin)):
    target = _get_user(db, user_id)
    _ensure_not_self(actor, target, "demote")
    if not target.is_admin:
        raise StatePreconditionError("User is already a regular user", precondition="role == admin")
    _ensure_not_last_admin(db, target, "demote")

    target.role = "user"
    envelope = _saved(db, target, "User demoted successfully")

    logger.info("User demoted from admin by %s: %s", actor.email, target.email)
    return envelope


@router.delete("/{user_id}", response_model=Message)
def delete_user(user_id: str, db: Session = Depends(get_db), actor: User = Depends(require_admin)):
    target = _get_user(db, user_id)
    _ensure_not_self(actor, target, "delete")

    # Users with history are soft-disabled instead
    owns_complaints = db.query(Complaint.id).filter(Complaint.user_id == target.id).first() is not None
    owns_feedback = db.query(Feedback.id).filter(Feedback.user_id == target.id).first() is not None
    if owns_complaints or owns_feedback:
        raise StatePreconditionError(
            "User owns complaints or feedback; deactivate the account instead",
            precondition="user owns no complaints or feedback",
            user_id=target.id,
        )
    _ensure_not_last_admin(db, target, "delete")

    email = target.email
    db.delete(target)
    db.commit()

    logger.info("User deleted by %s: %s", actor.email, email)
    return Message(message="User deleted successfully")
