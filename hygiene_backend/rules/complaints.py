"""
Complaint lifecycle rules.

Pure functions over a complaint-like object (anything exposing ``status``,
``priority``, ``escalation_level``, ``is_urgent``, ``created_at`` ...). The ORM
hooks in ``models/complaint.py`` and the routers both call into this module,
so escalation and resolution stamping cannot drift between layers.

    pending ──► in-progress ──► resolved
       │             │
       └─────────────┴────────► closed
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, Optional

from ..errors import StatePreconditionError, ValidationFailed


PENDING = "pending"
IN_PROGRESS = "in-progress"
RESOLVED = "resolved"
CLOSED = "closed"

STATUSES = (PENDING, IN_PROGRESS, RESOLVED, CLOSED)
OPEN_STATUSES = frozenset({PENDING, IN_PROGRESS})
TERMINAL_STATUSES = frozenset({RESOLVED, CLOSED})

CATEGORIES = ("maintenance", "cleanliness", "security", "other")
PRIORITIES = ("low", "medium", "high")

MAX_ESCALATION = 3
URGENT_ESCALATION = 2
AUTO_ESCALATION_DAYS = 7

TITLE_MAX = 200
DESCRIPTION_MAX = 1000
RESPONSE_MAX = 500
NOTES_MAX = 500

EDITABLE_FIELDS = ("title", "description", "category", "priority", "location", "tags")
# An explicit null empties these instead of being ignored
CLEARABLE_FIELDS = ("location", "tags")

# Admin-driven moves; "resolved" is only reachable through resolve()
ALLOWED_TRANSITIONS: Dict[str, frozenset] = {
    PENDING: frozenset({IN_PROGRESS, CLOSED}),
    IN_PROGRESS: frozenset({CLOSED}),
    RESOLVED: frozenset(),
    CLOSED: frozenset(),
}


def utcnow() -> datetime:
    # Naive UTC, matching what SQLite hands back
    return datetime.now(timezone.utc).replace(tzinfo=None)


def check_length(value: Optional[str], field: str, maximum: int, minimum: int = 1) -> str:
    text = (value or "").strip()
    if len(text) < minimum or len(text) > maximum:
        raise ValidationFailed(
            f"{field.capitalize()} must be between {minimum} and {maximum} characters",
            field=field,
        )
    return text


def _check_choice(value: str, field: str, choices: Iterable[str]) -> str:
    if value not in choices:
        raise ValidationFailed(f"Invalid {field}", field=field)
    return value


# ---------- Derived values ----------

def age_in_days(created_at: Optional[datetime], now: Optional[datetime] = None) -> int:
    if created_at is None:
        return 0
    now = now or utcnow()
    if created_at.tzinfo is not None:
        created_at = created_at.astimezone(timezone.utc).replace(tzinfo=None)
    return max(0, (now - created_at) // timedelta(days=1))


def resolution_time_hours(complaint: Any) -> Optional[int]:
    if complaint.actual_resolution_time and complaint.created_at:
        return int((complaint.actual_resolution_time - complaint.created_at) // timedelta(hours=1))
    return None


def is_open(complaint: Any) -> bool:
    return complaint.status in OPEN_STATUSES


# ---------- Operations ----------

def new_complaint_fields(
    title: str,
    description: str,
    category: str,
    priority: str = "medium",
) -> Dict[str, Any]:
    """Validated initial state for a freshly filed complaint."""
    return {
        "title": check_length(title, "title", TITLE_MAX),
        "description": check_length(description, "description", DESCRIPTION_MAX),
        "category": _check_choice(category, "category", CATEGORIES),
        "priority": _check_choice(priority or "medium", "priority", PRIORITIES),
        "status": PENDING,
        "escalation_level": 0,
        "is_urgent": False,
    }


def record_admin_response(complaint: Any, message: str, responder_id: str, now: Optional[datetime] = None) -> None:
    """Attach an admin response. Status is left to the caller."""
    complaint.admin_response_message = check_length(message, "message", RESPONSE_MAX)
    complaint.responded_by_id = responder_id
    complaint.responded_at = now or utcnow()


def resolve(
    complaint: Any,
    notes: Optional[str] = None,
    resolver_id: Optional[str] = None,
    now: Optional[datetime] = None,
) -> None:
    if complaint.status == RESOLVED:
        raise StatePreconditionError(
            "Complaint is already resolved",
            precondition="status != resolved",
            status=complaint.status,
        )
    if notes is not None and len(notes) > NOTES_MAX:
        raise ValidationFailed(f"Resolution notes cannot exceed {NOTES_MAX} characters", field="notes")

    complaint.status = RESOLVED
    complaint.resolution_notes = notes
    stamp_resolution(complaint, now)
    if resolver_id:
        complaint.assigned_to_id = resolver_id


def escalate(complaint: Any) -> int:
    if complaint.status in TERMINAL_STATUSES:
        raise StatePreconditionError(
            "Cannot escalate resolved or closed complaints",
            precondition="status not in {resolved, closed}",
            status=complaint.status,
        )
    complaint.escalation_level = min(MAX_ESCALATION, (complaint.escalation_level or 0) + 1)
    if complaint.escalation_level >= URGENT_ESCALATION:
        complaint.is_urgent = True
    return complaint.escalation_level


def auto_escalation_level(priority: str, status: str, age_days: int, current_level: int = 0) -> int:
    """
    Escalation implied by age for pending high-priority complaints.

    One level per full week, capped at 3. Never lower than ``current_level``.
    """
    current_level = current_level or 0
    if status != PENDING or priority != "high" or age_days < AUTO_ESCALATION_DAYS:
        return current_level
    return max(current_level, min(MAX_ESCALATION, age_days // AUTO_ESCALATION_DAYS))


def auto_escalate(complaint: Any, now: Optional[datetime] = None) -> None:
    """Save-time policy; also raises the urgency flag once level 2 is reached."""
    level = auto_escalation_level(
        complaint.priority,
        complaint.status,
        age_in_days(complaint.created_at, now),
        complaint.escalation_level,
    )
    if level != (complaint.escalation_level or 0):
        complaint.escalation_level = level
        if level >= URGENT_ESCALATION:
            complaint.is_urgent = True


def stamp_resolution(complaint: Any, now: Optional[datetime] = None) -> None:
    """Set the resolution time exactly once."""
    if complaint.status == RESOLVED and complaint.actual_resolution_time is None:
        complaint.actual_resolution_time = now or utcnow()


def ensure_editable(complaint: Any) -> None:
    if complaint.status not in OPEN_STATUSES:
        raise StatePreconditionError(
            "Cannot update resolved or closed complaints",
            precondition="status in {pending, in-progress}",
            status=complaint.status,
        )


def apply_update(complaint: Any, changes: Dict[str, Any]) -> Dict[str, Any]:
    """Apply owner/admin edits. Returns the fields that were actually set."""
    ensure_editable(complaint)

    applied: Dict[str, Any] = {}
    for field, value in changes.items():
        if field not in EDITABLE_FIELDS:
            continue
        if value is None:
            if field not in CLEARABLE_FIELDS:
                continue
            value = [] if field == "tags" else None
        elif field == "title":
            value = check_length(value, "title", TITLE_MAX)
        elif field == "description":
            value = check_length(value, "description", DESCRIPTION_MAX)
        elif field == "category":
            value = _check_choice(value, "category", CATEGORIES)
        elif field == "priority":
            value = _check_choice(value, "priority", PRIORITIES)
        setattr(complaint, field, value)
        applied[field] = value
    return applied


def ensure_deletable(complaint: Any) -> None:
    if complaint.status != PENDING:
        raise StatePreconditionError(
            "Can only delete pending complaints",
            precondition="status == pending",
            status=complaint.status,
        )


def transition(complaint: Any, new_status: str) -> None:
    _check_choice(new_status, "status", STATUSES)
    if new_status == RESOLVED:
        raise StatePreconditionError(
            "Use the resolve action to resolve a complaint",
            precondition="status change via resolve",
            status=complaint.status,
        )
    if new_status not in ALLOWED_TRANSITIONS[complaint.status]:
        raise StatePreconditionError(
            f"Cannot move complaint from {complaint.status} to {new_status}",
            precondition=f"{complaint.status} -> {new_status} allowed",
            status=complaint.status,
        )
    complaint.status = new_status


def assign(complaint: Any, assignee_id: str) -> None:
    if complaint.status in TERMINAL_STATUSES:
        raise StatePreconditionError(
            "Cannot assign resolved or closed complaints",
            precondition="status not in {resolved, closed}",
            status=complaint.status,
        )
    complaint.assigned_to_id = assignee_id


def is_urgent_view(complaint: Any) -> bool:
    """Urgent listing: flagged urgent, or high priority and still open."""
    return bool(complaint.is_urgent) or (complaint.priority == "high" and is_open(complaint))
