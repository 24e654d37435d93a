# hygiene_backend/routers/complaints.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy import and_, func, or_
from sqlalchemy.orm import Session

from ..db import get_db
from ..deps import ensure_owner_or_admin, get_current_user, require_admin
from ..errors import NotFoundError
from ..events import broadcaster
from ..models.complaint import Complaint
from ..models.user import User
from ..rules import complaints as lifecycle
from ..schemas.common import Message, Page, PageParams
from ..schemas.complaints import (
    AssignIn,
    CategoryStr,
    ComplaintCreate,
    ComplaintEnvelope,
    ComplaintList,
    ComplaintOut,
    ComplaintStats,
    ComplaintStatsEnvelope,
    ComplaintUpdate,
    PriorityStr,
    ResolveIn,
    RespondIn,
    StatusStr,
    StatusUpdateIn,
    buckets,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/complaints", tags=["complaints"])


# ---------- Helpers ----------
def _get_complaint(db: Session, complaint_id: int) -> Complaint:
    complaint = db.query(Complaint).filter(Complaint.id == complaint_id).first()
    if not complaint:
        raise NotFoundError("Complaint", complaint_id)
    return complaint


def urgent_filter():
    return or_(
        Complaint.is_urgent.is_(True),
        and_(Complaint.priority == "high", Complaint.status.in_(lifecycle.OPEN_STATUSES)),
    )


def _saved(db: Session, complaint: Complaint) -> ComplaintOut:
    db.commit()
    db.refresh(complaint)
    return ComplaintOut.model_validate(complaint)


def _envelope(message: str, out: ComplaintOut, background: BackgroundTasks, event: str) -> ComplaintEnvelope:
    background.add_task(broadcaster.broadcast, event, {"complaint": out.model_dump(mode="json")})
    return ComplaintEnvelope(message=message, complaint=out)


# ---------- Collection routes ----------
@router.get("", response_model=Page[ComplaintOut])
def list_complaints(
    status_filter: Optional[StatusStr] = Query(None, alias="status"),
    category: Optional[CategoryStr] = None,
    priority: Optional[PriorityStr] = None,
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = db.query(Complaint)
    # Regular users only ever see their own complaints
    if not current_user.is_admin:
        q = q.filter(Complaint.user_id == current_user.id)
    if status_filter:
        q = q.filter(Complaint.status == status_filter)
    if category:
        q = q.filter(Complaint.category == category)
    if priority:
        q = q.filter(Complaint.priority == priority)
    return page.paginate(q.order_by(Complaint.created_at.desc(), Complaint.id.desc()), ComplaintOut)


@router.post("", response_model=ComplaintEnvelope, status_code=status.HTTP_201_CREATED)
def create_complaint(
    payload: ComplaintCreate,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    fields = lifecycle.new_complaint_fields(
        payload.title, payload.description, payload.category, payload.priority
    )
    complaint = Complaint(
        **fields,
        user_id=current_user.id,
        tags=list(payload.tags),
    )
    complaint.location = payload.location
    db.add(complaint)
    out = _saved(db, complaint)

    logger.info("New complaint created by %s: %s", current_user.email, complaint.title)
    return _envelope("Complaint created successfully", out, background, "complaint:created")


@router.get(
    "/stats/overview",
    response_model=ComplaintStatsEnvelope,
    dependencies=[Depends(require_admin)],
)
def complaint_stats(db: Session = Depends(get_db)):
    def grouped(column):
        return buckets(db.query(column, func.count(Complaint.id)).group_by(column).all())

    resolved = (
        db.query(Complaint.created_at, Complaint.actual_resolution_time)
        .filter(Complaint.actual_resolution_time.isnot(None))
        .all()
    )
    hours = [(done - created).total_seconds() / 3600 for created, done in resolved]

    stats = ComplaintStats(
        by_status=grouped(Complaint.status),
        by_priority=grouped(Complaint.priority),
        by_category=grouped(Complaint.category),
        total=db.query(Complaint).count(),
        urgent=db.query(Complaint).filter(urgent_filter()).count(),
        average_resolution_hours=round(sum(hours) / len(hours), 1) if hours else None,
    )
    return ComplaintStatsEnvelope(stats=stats)


@router.get("/urgent", response_model=ComplaintList, dependencies=[Depends(require_admin)])
def urgent_complaints(db: Session = Depends(get_db)):
    rows = (
        db.query(Complaint)
        .filter(urgent_filter())
        .order_by(Complaint.escalation_level.desc(), Complaint.created_at.asc())
        .all()
    )
    return ComplaintList(complaints=[ComplaintOut.model_validate(c) for c in rows])


@router.get("/user/{user_id}", response_model=Page[ComplaintOut])
def complaints_for_user(
    user_id: str,
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    ensure_owner_or_admin(current_user, user_id)
    q = (
        db.query(Complaint)
        .filter(Complaint.user_id == user_id)
        .order_by(Complaint.created_at.desc(), Complaint.id.desc())
    )
    return page.paginate(q, ComplaintOut)


# ---------- Single complaint ----------
@router.get("/{complaint_id}", response_model=ComplaintOut)
def get_complaint(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    complaint = _get_complaint(db, complaint_id)
    ensure_owner_or_admin(current_user, complaint.user_id)
    return complaint


@router.put("/{complaint_id}", response_model=ComplaintEnvelope)
def update_complaint(
    complaint_id: int,
    payload: ComplaintUpdate,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    complaint = _get_complaint(db, complaint_id)
    ensure_owner_or_admin(current_user, complaint.user_id)

    lifecycle.apply_update(complaint, payload.model_dump(exclude_unset=True))
    out = _saved(db, complaint)

    logger.info("Complaint updated by %s: %s", current_user.email, complaint.title)
    return _envelope("Complaint updated successfully", out, background, "complaint:updated")


@router.delete("/{complaint_id}", response_model=Message)
def delete_complaint(
    complaint_id: int,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    complaint = _get_complaint(db, complaint_id)
    ensure_owner_or_admin(current_user, complaint.user_id)
    lifecycle.ensure_deletable(complaint)

    title = complaint.title
    db.delete(complaint)
    db.commit()

    logger.info("Complaint deleted by %s: %s", current_user.email, title)
    background.add_task(broadcaster.broadcast, "complaint:deleted", {"complaint_id": complaint_id})
    return Message(message="Complaint deleted successfully")


# ---------- Admin actions ----------
@router.post("/{complaint_id}/respond", response_model=ComplaintEnvelope)
def respond_to_complaint(
    complaint_id: int,
    payload: RespondIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    complaint = _get_complaint(db, complaint_id)
    lifecycle.record_admin_response(complaint, payload.message, admin.id)
    out = _saved(db, complaint)

    logger.info("Admin response added by %s to complaint: %s", admin.email, complaint.title)
    return _envelope("Response added successfully", out, background, "complaint:responded")


@router.post("/{complaint_id}/resolve", response_model=ComplaintEnvelope)
def resolve_complaint(
    complaint_id: int,
    background: BackgroundTasks,
    payload: Optional[ResolveIn] = None,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    complaint = _get_complaint(db, complaint_id)
    lifecycle.resolve(complaint, notes=payload.notes if payload else None, resolver_id=admin.id)
    out = _saved(db, complaint)

    logger.info("Complaint resolved by %s: %s", admin.email, complaint.title)
    return _envelope("Complaint resolved successfully", out, background, "complaint:resolved")


@router.post("/{complaint_id}/escalate", response_model=ComplaintEnvelope)
def escalate_complaint(
    complaint_id: int,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    complaint = _get_complaint(db, complaint_id)
    level = lifecycle.escalate(complaint)
    out = _saved(db, complaint)

    logger.info("Complaint escalated to level %d by %s: %s", level, admin.email, complaint.title)
    return _envelope("Complaint escalated successfully", out, background, "complaint:escalated")


@router.patch("/{complaint_id}/status", response_model=ComplaintEnvelope)
def change_status(
    complaint_id: int,
    payload: StatusUpdateIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    complaint = _get_complaint(db, complaint_id)
    previous = complaint.status
    lifecycle.transition(complaint, payload.status)
    out = _saved(db, complaint)

    logger.info(
        "Complaint status %s -> %s by %s: %s", previous, complaint.status, admin.email, complaint.title
    )
    return _envelope("Complaint status updated", out, background, "complaint:status-changed")


@router.patch("/{complaint_id}/assign", response_model=ComplaintEnvelope)
def assign_complaint(
    complaint_id: int,
    payload: AssignIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    complaint = _get_complaint(db, complaint_id)
    assignee = db.query(User).filter(User.id == payload.assignee_id).first()
    if not assignee:
        raise NotFoundError("User", payload.assignee_id)

    lifecycle.assign(complaint, assignee.id)
    out = _saved(db, complaint)

    logger.info("Complaint assigned to %s by %s: %s", assignee.email, admin.email, complaint.title)
    return _envelope("Complaint assigned successfully", out, background, "complaint:updated")
