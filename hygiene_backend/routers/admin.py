# hygiene_backend/routers/admin.py
from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Iterable, List, Literal

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ..db import get_db
from ..deps import require_admin
from ..models.complaint import Complaint
from ..models.feedback import Feedback
from ..models.sensor import Sensor, SensorAlert
from ..models.user import User
from ..rules import complaints as lifecycle
from ..rules import sensors as sensor_rules
from ..schemas.complaints import ComplaintOut, CountBucket, buckets
from ..schemas.sensors import SensorOut
from .complaints import urgent_filter

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"], dependencies=[Depends(require_admin)])

RECENT_LIMIT = 5
PERIOD_DAYS = {"7d": 7, "30d": 30, "90d": 90, "1y": 365}
ACTIVE_USER_DAYS = 7

PeriodStr = Literal["7d", "30d", "90d", "1y"]
SubjectStr = Literal["complaints", "users", "sensors", "feedback"]


# ---------- Schemas ----------
class Overview(BaseModel):
    total_users: int
    total_complaints: int
    total_sensors: int
    total_feedback: int
    average_rating: float


class RecentActivity(BaseModel):
    complaints: List[ComplaintOut]
    critical_sensors: List[SensorOut]
    open_complaints: List[ComplaintOut]


class DashboardStats(BaseModel):
    complaints_by_status: List[CountBucket]
    complaints_by_category: List[CountBucket]
    sensors_by_status: List[CountBucket]


class Dashboard(BaseModel):
    overview: Overview
    recent_activity: RecentActivity
    statistics: DashboardStats


class HealthSummary(BaseModel):
    score: int
    status: str


class HealthAlerts(BaseModel):
    critical_sensors: int
    offline_sensors: int
    maintenance_required: int
    urgent_complaints: int
    unacknowledged_alerts: int


class SystemHealth(BaseModel):
    system_health: HealthSummary
    alerts: HealthAlerts


def health_label(score: float) -> str:
    if score >= 90:
        return "excellent"
    if score >= 75:
        return "good"
    if score >= 50:
        return "fair"
    return "poor"


# ---------- Routes ----------
@router.get("/dashboard", response_model=Dashboard)
def dashboard(db: Session = Depends(get_db)):
    active_sensors = db.query(Sensor).filter(Sensor.is_active.is_(True))
    average_rating = db.query(func.avg(Feedback.rating)).scalar()

    recent = db.query(Complaint).order_by(Complaint.created_at.desc()).limit(RECENT_LIMIT).all()
    open_complaints = (
        db.query(Complaint)
        .filter(Complaint.status.in_(lifecycle.OPEN_STATUSES))
        .order_by(Complaint.created_at.desc())
        .limit(RECENT_LIMIT)
        .all()
    )
    critical = active_sensors.filter(Sensor.status == sensor_rules.CRITICAL).limit(RECENT_LIMIT).all()

    def complaint_groups(column):
        return buckets(db.query(column, func.count(Complaint.id)).group_by(column).all())

    sensor_groups = buckets(
        db.query(Sensor.status, func.count(Sensor.id))
        .filter(Sensor.is_active.is_(True))
        .group_by(Sensor.status)
        .all()
    )

    return Dashboard(
        overview=Overview(
            total_users=db.query(User).count(),
            total_complaints=db.query(Complaint).count(),
            total_sensors=active_sensors.count(),
            total_feedback=db.query(Feedback).count(),
            average_rating=round(float(average_rating or 0), 2),
        ),
        recent_activity=RecentActivity(
            complaints=[ComplaintOut.model_validate(c) for c in recent],
            critical_sensors=[SensorOut.model_validate(s) for s in critical],
            open_complaints=[ComplaintOut.model_validate(c) for c in open_complaints],
        ),
        statistics=DashboardStats(
            complaints_by_status=complaint_groups(Complaint.status),
            complaints_by_category=complaint_groups(Complaint.category),
            sensors_by_status=sensor_groups,
        ),
    )


@router.get("/system-health", response_model=SystemHealth)
def system_health(db: Session = Depends(get_db)):
    now = sensor_rules.utcnow()
    sensors = db.query(Sensor).filter(Sensor.is_active.is_(True)).all()

    total = len(sensors)
    healthy = sum(1 for s in sensors if s.status == sensor_rules.NORMAL)
    score = healthy / total * 100 if total else 100.0

    unacknowledged = (
        db.query(SensorAlert)
        .join(Sensor, SensorAlert.sensor_id == Sensor.id)
        .filter(Sensor.is_active.is_(True), SensorAlert.is_acknowledged.is_(False))
        .count()
    )

    return SystemHealth(
        system_health=HealthSummary(score=round(score), status=health_label(score)),
        alerts=HealthAlerts(
            critical_sensors=sum(1 for s in sensors if s.status == sensor_rules.CRITICAL),
            offline_sensors=sum(1 for s in sensors if s.status == sensor_rules.OFFLINE),
            maintenance_required=sum(1 for s in sensors if sensor_rules.requires_maintenance(s, now)),
            urgent_complaints=db.query(Complaint).filter(urgent_filter()).count(),
            unacknowledged_alerts=unacknowledged,
        ),
    )


# ---------- Analytics ----------
def _naive_utc(value: datetime) -> datetime:
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _daily(stamps: Iterable[datetime]) -> List[Dict[str, Any]]:
    counts = Counter(stamp.date().isoformat() for stamp in stamps)
    return [{"date": day, "count": counts[day]} for day in sorted(counts)]


def _complaint_analytics(db: Session, since: datetime) -> Dict[str, Any]:
    rows = db.query(Complaint).filter(Complaint.created_at >= since).all()
    hours = [
        (c.actual_resolution_time - c.created_at).total_seconds() / 3600
        for c in rows
        if c.status == lifecycle.RESOLVED and c.actual_resolution_time is not None
    ]
    return {
        "daily_complaints": _daily(c.created_at for c in rows),
        "complaints_by_category": buckets(Counter(c.category for c in rows).items()),
        "complaints_by_priority": buckets(Counter(c.priority for c in rows).items()),
        "average_resolution_hours": round(sum(hours) / len(hours), 2) if hours else 0.0,
    }


def _user_analytics(db: Session, since: datetime, now: datetime) -> Dict[str, Any]:
    users = db.query(User.created_at, User.role, User.last_login).all()
    joined = [(_naive_utc(created), role) for created, role, _ in users if created is not None]
    joined = [(created, role) for created, role in joined if created >= since]
    active_since = now - timedelta(days=ACTIVE_USER_DAYS)
    return {
        "daily_registrations": _daily(created for created, _ in joined),
        "users_by_role": buckets(Counter(role for _, role in joined).items()),
        "active_users": sum(1 for _, _, last in users if last is not None and _naive_utc(last) >= active_since),
    }


def _sensor_analytics(db: Session) -> Dict[str, Any]:
    # Current fleet snapshot; the period does not apply
    sensors = db.query(Sensor).filter(Sensor.is_active.is_(True)).all()
    scores = [s.health_score for s in sensors]
    return {
        "sensors_by_type": buckets(Counter(s.type for s in sensors).items()),
        "sensors_by_status": buckets(Counter(s.status for s in sensors).items()),
        "average_health_score": round(sum(scores) / len(scores), 1) if scores else 0.0,
    }


def _feedback_analytics(db: Session, since: datetime) -> Dict[str, Any]:
    rows = db.query(Feedback).filter(Feedback.created_at >= since).all()
    ratings = Counter(f.rating for f in rows)
    return {
        "daily_feedback": _daily(f.created_at for f in rows),
        "feedback_by_rating": buckets((str(rating), ratings[rating]) for rating in sorted(ratings)),
        "average_rating": round(sum(f.rating for f in rows) / len(rows), 2) if rows else 0.0,
    }


@router.get("/analytics")
def analytics(
    period: PeriodStr = "30d",
    subject: SubjectStr = Query("complaints", alias="type"),
    db: Session = Depends(get_db),
):
    now = lifecycle.utcnow()
    since = now - timedelta(days=PERIOD_DAYS[period])

    if subject == "complaints":
        data = _complaint_analytics(db, since)
    elif subject == "users":
        data = _user_analytics(db, since, now)
    elif subject == "sensors":
        data = _sensor_analytics(db)
    else:
        data = _feedback_analytics(db, since)

    return {"period": period, "type": subject, "since": since, "analytics": data}


# ---------- Reports ----------
def _complaints_report(db: Session) -> List[Dict[str, Any]]:
    rows = (
        db.query(Complaint)
        .options(joinedload(Complaint.assigned_to))
        .order_by(Complaint.created_at.desc(), Complaint.id.desc())
        .all()
    )
    return [
        {
            "id": c.id,
            "title": c.title,
            "category": c.category,
            "status": c.status,
            "priority": c.priority,
            "submitted_by": c.user.username if c.user else "Unknown",
            "assigned_to": c.assigned_to.username if c.assigned_to else "Unassigned",
            "created_at": c.created_at,
            "resolved_at": c.actual_resolution_time,
            "resolution_time_hours": lifecycle.resolution_time_hours(c),
        }
        for c in rows
    ]


def _sensors_report(db: Session) -> List[Dict[str, Any]]:
    rows = db.query(Sensor).filter(Sensor.is_active.is_(True)).order_by(Sensor.name.asc()).all()
    return [
        {
            "id": s.id,
            "name": s.name,
            "type": s.type,
            "status": s.status,
            "current_value": s.current_value,
            "threshold_value": s.threshold_value,
            "health_score": s.health_score,
            "battery_level": s.battery_level,
            "last_reading_at": s.last_reading_at,
            "location": s.location,
        }
        for s in rows
    ]


def _users_report(db: Session) -> List[Dict[str, Any]]:
    return [
        {
            "id": u.id,
            "username": u.username,
            "email": u.email,
            "role": u.role,
            "is_active": u.is_active,
            "created_at": u.created_at,
            "last_login": u.last_login,
        }
        for u in db.query(User).order_by(User.username.asc()).all()
    ]


def _feedback_report(db: Session) -> List[Dict[str, Any]]:
    rows = db.query(Feedback).order_by(Feedback.created_at.desc(), Feedback.id.desc()).all()
    return [
        {
            "id": f.id,
            "rating": f.rating,
            "message": f.message,
            "category": f.category,
            "submitted_by": f.user.username if f.user and not f.is_anonymous else "Anonymous",
            "complaint_title": f.complaint.title if f.complaint else "Unknown",
            "created_at": f.created_at,
        }
        for f in rows
    ]


REPORTS = {
    "complaints": _complaints_report,
    "sensors": _sensors_report,
    "users": _users_report,
    "feedback": _feedback_report,
}


@router.get("/reports")
def reports(
    subject: SubjectStr = Query(..., alias="type"),
    fmt: Literal["json"] = Query("json", alias="format"),
    db: Session = Depends(get_db),
):
    data = REPORTS[subject](db)
    logger.info("Report generated: %s (%d rows)", subject, len(data))
    return {"type": subject, "format": fmt, "generated_at": lifecycle.utcnow(), "data": data}
