"""Guards for post-resolution feedback."""

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any, Optional

from ..errors import AuthorizationError, StatePreconditionError
from .complaints import RESOLVED, check_length, utcnow

MESSAGE_MAX = 500
FLAG_REASON_MAX = 200
RESPONSE_MAX = 500


def clean_message(message: Optional[str]) -> str:
    return check_length(message, "message", MESSAGE_MAX)


def clean_flag_reason(reason: Optional[str]) -> str:
    return check_length(reason, "reason", FLAG_REASON_MAX)


def clean_response(message: Optional[str]) -> str:
    return check_length(message, "message", RESPONSE_MAX)


def ensure_can_submit(complaint: Any, user_id: str, existing: Optional[Any]) -> None:
    """Resolved complaint, submitted by its owner, first feedback for the pair."""
    if complaint.status != RESOLVED:
        raise StatePreconditionError(
            "Feedback can only be submitted for resolved complaints",
            precondition="complaint.status == resolved",
            status=complaint.status,
        )
    if complaint.user_id != user_id:
        raise AuthorizationError("You can only provide feedback for your own complaints")
    if existing is not None:
        raise StatePreconditionError(
            "You have already submitted feedback for this complaint",
            precondition="no prior feedback for (complaint, user)",
            feedback_id=existing.id,
        )


def within_edit_window(created_at: datetime, window_minutes: int, now: Optional[datetime] = None) -> bool:
    return (now or utcnow()) - created_at <= timedelta(minutes=window_minutes)


def sentiment(rating: int) -> str:
    if rating >= 4:
        return "positive"
    if rating <= 2:
        return "negative"
    return "neutral"
