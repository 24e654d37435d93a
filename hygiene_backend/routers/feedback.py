# hygiene_backend/routers/feedback.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..deps import ensure_owner_or_admin, get_current_user, require_admin
from ..errors import NotFoundError, StatePreconditionError
from ..events import broadcaster
from ..models.complaint import Complaint
from ..models.feedback import Feedback
from ..models.user import User
from ..rules import feedback as rules
from ..rules.complaints import utcnow
from ..schemas.common import Message, Page, PageParams
from ..schemas.complaints import buckets
from ..schemas.feedback import (
    FeedbackCategoryStr,
    FeedbackCreate,
    FeedbackEnvelope,
    FeedbackList,
    FeedbackOut,
    FeedbackRespondIn,
    FeedbackStats,
    FeedbackStatsEnvelope,
    FeedbackUpdate,
    FlagIn,
    HelpfulOut,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/feedback", tags=["feedback"])


# ---------- Helpers ----------
def _get_feedback(db: Session, feedback_id: int) -> Feedback:
    feedback = db.query(Feedback).filter(Feedback.id == feedback_id).first()
    if not feedback:
        raise NotFoundError("Feedback", feedback_id)
    return feedback


def _ensure_in_window(feedback: Feedback, action: str) -> None:
    window = settings.FEEDBACK_EDIT_WINDOW_MINUTES
    if not rules.within_edit_window(feedback.created_at, window):
        raise StatePreconditionError(
            f"Feedback can only be {action} within {window} minutes of submission",
            precondition=f"created_at within {window} minutes",
            feedback_id=feedback.id,
        )


def _saved(db: Session, feedback: Feedback) -> FeedbackOut:
    db.commit()
    db.refresh(feedback)
    return FeedbackOut.model_validate(feedback)


# ---------- Collection routes ----------
@router.get("", response_model=Page[FeedbackOut])
def list_feedback(
    rating: Optional[int] = Query(None, ge=1, le=5),
    category: Optional[FeedbackCategoryStr] = None,
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    q = db.query(Feedback)
    if not current_user.is_admin:
        q = q.filter(Feedback.user_id == current_user.id)
    if rating:
        q = q.filter(Feedback.rating == rating)
    if category:
        q = q.filter(Feedback.category == category)
    return page.paginate(q.order_by(Feedback.created_at.desc(), Feedback.id.desc()), FeedbackOut)


@router.post("", response_model=FeedbackEnvelope, status_code=status.HTTP_201_CREATED)
def create_feedback(
    payload: FeedbackCreate,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    complaint = db.query(Complaint).filter(Complaint.id == payload.complaint_id).first()
    if not complaint:
        raise NotFoundError("Complaint", payload.complaint_id)

    existing = (
        db.query(Feedback)
        .filter(Feedback.complaint_id == complaint.id, Feedback.user_id == current_user.id)
        .first()
    )
    rules.ensure_can_submit(complaint, current_user.id, existing)

    feedback = Feedback(
        complaint_id=complaint.id,
        user_id=current_user.id,
        rating=payload.rating,
        message=rules.clean_message(payload.message),
        category=payload.category,
        is_anonymous=payload.is_anonymous,
    )
    db.add(feedback)
    try:
        db.commit()
    except IntegrityError:
        # Lost a race with a concurrent submission for the same pair
        db.rollback()
        raise StatePreconditionError(
            "You have already submitted feedback for this complaint",
            precondition="no prior feedback for (complaint, user)",
        )
    db.refresh(feedback)
    out = FeedbackOut.model_validate(feedback)

    logger.info("New feedback submitted by %s for complaint: %s", current_user.email, complaint.title)
    background.add_task(broadcaster.broadcast, "feedback:created", {"feedback": out.model_dump(mode="json")})
    return FeedbackEnvelope(message="Feedback submitted successfully", feedback=out)


@router.get(
    "/stats/overview",
    response_model=FeedbackStatsEnvelope,
    dependencies=[Depends(require_admin)],
)
def feedback_stats(db: Session = Depends(get_db)):
    by_rating = (
        db.query(Feedback.rating, func.count(Feedback.id))
        .group_by(Feedback.rating)
        .order_by(Feedback.rating.asc())
        .all()
    )
    total = sum(count for _, count in by_rating)
    average = sum(rating * count for rating, count in by_rating) / total if total else 0.0

    sentiments = {"positive": 0, "neutral": 0, "negative": 0}
    for rating, count in by_rating:
        sentiments[rules.sentiment(rating)] += count

    stats = FeedbackStats(
        rating_distribution=buckets((str(rating), count) for rating, count in by_rating),
        average_rating=round(average, 2),
        total_feedback=total,
        sentiment_distribution=buckets(sentiments.items()),
    )
    return FeedbackStatsEnvelope(stats=stats)


@router.get("/recent", response_model=FeedbackList, dependencies=[Depends(require_admin)])
def recent_feedback(
    limit: int = Query(10, ge=1, le=50),
    db: Session = Depends(get_db),
):
    rows = db.query(Feedback).order_by(Feedback.created_at.desc(), Feedback.id.desc()).limit(limit).all()
    return FeedbackList(feedbacks=[FeedbackOut.model_validate(f) for f in rows])


@router.get("/flagged", response_model=FeedbackList, dependencies=[Depends(require_admin)])
def flagged_feedback(db: Session = Depends(get_db)):
    rows = (
        db.query(Feedback)
        .filter(Feedback.is_flagged.is_(True))
        .order_by(Feedback.created_at.desc())
        .all()
    )
    return FeedbackList(feedbacks=[FeedbackOut.model_validate(f) for f in rows])


@router.get("/complaint/{complaint_id}", response_model=FeedbackList)
def feedback_for_complaint(
    complaint_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    complaint = db.query(Complaint).filter(Complaint.id == complaint_id).first()
    if not complaint:
        raise NotFoundError("Complaint", complaint_id)
    ensure_owner_or_admin(current_user, complaint.user_id)

    rows = (
        db.query(Feedback)
        .filter(Feedback.complaint_id == complaint_id)
        .order_by(Feedback.created_at.desc())
        .all()
    )
    return FeedbackList(feedbacks=[FeedbackOut.model_validate(f) for f in rows])


# ---------- Single feedback ----------
@router.get("/{feedback_id}", response_model=FeedbackOut)
def get_feedback(
    feedback_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    feedback = _get_feedback(db, feedback_id)
    ensure_owner_or_admin(current_user, feedback.user_id)
    return feedback


@router.put("/{feedback_id}", response_model=FeedbackEnvelope)
def update_feedback(
    feedback_id: int,
    payload: FeedbackUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    feedback = _get_feedback(db, feedback_id)
    ensure_owner_or_admin(current_user, feedback.user_id)
    _ensure_in_window(feedback, "updated")

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("message") is not None:
        changes["message"] = rules.clean_message(changes["message"])
    for field, value in changes.items():
        if value is not None:
            setattr(feedback, field, value)
    out = _saved(db, feedback)

    logger.info("Feedback updated by %s", current_user.email)
    return FeedbackEnvelope(message="Feedback updated successfully", feedback=out)


@router.delete("/{feedback_id}", response_model=Message)
def delete_feedback(
    feedback_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    feedback = _get_feedback(db, feedback_id)
    ensure_owner_or_admin(current_user, feedback.user_id)
    # Admins may remove feedback at any time
    if not current_user.is_admin:
        _ensure_in_window(feedback, "deleted")

    db.delete(feedback)
    db.commit()

    logger.info("Feedback deleted by %s", current_user.email)
    return Message(message="Feedback deleted successfully")


@router.post("/{feedback_id}/helpful", response_model=HelpfulOut)
def mark_helpful(
    feedback_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    feedback = _get_feedback(db, feedback_id)
    feedback.helpful_count = (feedback.helpful_count or 0) + 1
    db.commit()

    logger.info("Feedback marked as helpful by %s", current_user.email)
    return HelpfulOut(message="Feedback marked as helpful", helpful_count=feedback.helpful_count)


@router.post("/{feedback_id}/flag", response_model=FeedbackEnvelope)
def flag_feedback(
    feedback_id: int,
    payload: FlagIn,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    feedback = _get_feedback(db, feedback_id)
    feedback.is_flagged = True
    feedback.flagged_reason = rules.clean_flag_reason(payload.reason)
    out = _saved(db, feedback)

    logger.info("Feedback flagged by %s: %s", admin.email, feedback.flagged_reason)
    return FeedbackEnvelope(message="Feedback flagged successfully", feedback=out)


@router.post("/{feedback_id}/respond", response_model=FeedbackEnvelope)
def respond_to_feedback(
    feedback_id: int,
    payload: FeedbackRespondIn,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    feedback = _get_feedback(db, feedback_id)
    feedback.admin_response_message = rules.clean_response(payload.message)
    feedback.responded_by_id = admin.id
    feedback.responded_at = utcnow()
    out = _saved(db, feedback)

    logger.info("Admin response added to feedback by %s", admin.email)
    return FeedbackEnvelope(message="Response added successfully", feedback=out)
