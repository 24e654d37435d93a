# hygiene_backend/routers/sensors.py
from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, BackgroundTasks, Depends, Query, status
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..config import settings
from ..db import get_db
from ..deps import get_current_user, get_optional_user, require_admin
from ..errors import NotFoundError, ValidationFailed
from ..events import broadcaster
from ..models.sensor import MaintenanceRecord, Sensor, SensorAlert, SensorDataPoint
from ..models.user import User
from ..rules import sensors as rules
from ..schemas.common import Message, Page, PageParams
from ..schemas.complaints import buckets
from ..schemas.sensors import (
    AlertIn,
    DataPointAck,
    DataPointIn,
    DataPointOut,
    MaintenanceIn,
    SensorCreate,
    SensorDataOut,
    SensorDetail,
    SensorEnvelope,
    SensorList,
    SensorOut,
    SensorReadingAck,
    SensorStats,
    SensorStatsEnvelope,
    SensorStatusStr,
    SensorTypeStr,
    SensorUpdate,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/sensors", tags=["sensors"])


# ---------- Helpers ----------
def _get_sensor(db: Session, sensor_id: int) -> Sensor:
    sensor = db.query(Sensor).filter(Sensor.id == sensor_id).first()
    if not sensor:
        raise NotFoundError("Sensor", sensor_id)
    return sensor


def _ensure_unique_device(db: Session, device_id: str, sensor_id: Optional[int] = None) -> None:
    q = db.query(Sensor).filter(Sensor.device_id == device_id)
    if sensor_id is not None:
        q = q.filter(Sensor.id != sensor_id)
    if q.first():
        raise ValidationFailed("Sensor with this device ID already exists", field="device_id")


def _saved(db: Session, sensor: Sensor) -> SensorDetail:
    db.commit()
    db.refresh(sensor)
    return SensorDetail.model_validate(sensor)


def _envelope(message: str, out: SensorDetail, background: BackgroundTasks, event: str) -> SensorEnvelope:
    summary = out.model_dump(mode="json", exclude={"alerts", "maintenance_history"})
    background.add_task(broadcaster.broadcast, event, {"sensor": summary})
    return SensorEnvelope(message=message, sensor=out)


# ---------- Collection routes ----------
@router.get("", response_model=Page[SensorOut])
def list_sensors(
    type: Optional[SensorTypeStr] = None,
    status_filter: Optional[SensorStatusStr] = Query(None, alias="status"),
    page: PageParams = Depends(),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    q = db.query(Sensor).filter(Sensor.is_active.is_(True))
    if type:
        q = q.filter(Sensor.type == type)
    if status_filter:
        q = q.filter(Sensor.status == status_filter)
    return page.paginate(q.order_by(Sensor.name.asc(), Sensor.id.asc()), SensorOut)


@router.post("", response_model=SensorEnvelope, status_code=status.HTTP_201_CREATED)
def create_sensor(
    payload: SensorCreate,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    _ensure_unique_device(db, payload.device_id)

    sensor = Sensor(**payload.model_dump(exclude={"location"}))
    sensor.location = payload.location
    db.add(sensor)
    out = _saved(db, sensor)

    logger.info("New sensor created by %s: %s (%s)", admin.email, sensor.name, sensor.status)
    return _envelope("Sensor created successfully", out, background, "sensor:created")


@router.get(
    "/stats/overview",
    response_model=SensorStatsEnvelope,
    dependencies=[Depends(require_admin)],
)
def sensor_stats(db: Session = Depends(get_db)):
    active = db.query(Sensor).filter(Sensor.is_active.is_(True))

    def grouped(column):
        return buckets(
            db.query(column, func.count(Sensor.id))
            .filter(Sensor.is_active.is_(True))
            .group_by(column)
            .all()
        )

    scores = [s.health_score for s in active.all()]
    unacknowledged = (
        db.query(SensorAlert)
        .join(Sensor, SensorAlert.sensor_id == Sensor.id)
        .filter(Sensor.is_active.is_(True), SensorAlert.is_acknowledged.is_(False))
        .count()
    )
    stats = SensorStats(
        by_status=grouped(Sensor.status),
        by_type=grouped(Sensor.type),
        average_health_score=round(sum(scores) / len(scores), 1) if scores else 0.0,
        unacknowledged_alerts=unacknowledged,
    )
    return SensorStatsEnvelope(stats=stats)


@router.get("/critical", response_model=SensorList, dependencies=[Depends(require_admin)])
def critical_sensors(db: Session = Depends(get_db)):
    rows = (
        db.query(Sensor)
        .filter(Sensor.is_active.is_(True), Sensor.status == rules.CRITICAL)
        .order_by(Sensor.last_reading_at.desc())
        .all()
    )
    return SensorList(sensors=[SensorOut.model_validate(s) for s in rows])


@router.get("/maintenance-required", response_model=SensorList, dependencies=[Depends(require_admin)])
def maintenance_required(db: Session = Depends(get_db)):
    now = rules.utcnow()
    rows = db.query(Sensor).filter(Sensor.is_active.is_(True)).order_by(Sensor.name.asc()).all()
    return SensorList(
        sensors=[SensorOut.model_validate(s) for s in rows if rules.requires_maintenance(s, now)]
    )


# ---------- Single sensor ----------
@router.get("/{sensor_id}", response_model=SensorDetail)
def get_sensor(
    sensor_id: int,
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    return _get_sensor(db, sensor_id)


@router.put("/{sensor_id}", response_model=SensorEnvelope)
def update_sensor(
    sensor_id: int,
    payload: SensorUpdate,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    sensor = _get_sensor(db, sensor_id)
    rules.ensure_active(sensor)

    changes = payload.model_dump(exclude_unset=True)
    if changes.get("device_id") and changes["device_id"] != sensor.device_id:
        _ensure_unique_device(db, changes["device_id"], sensor.id)
    if "location" in changes:
        sensor.location = changes.pop("location")
    for field, value in changes.items():
        if value is not None:
            setattr(sensor, field, value)
    # status is re-derived by the before_update hook when values change
    out = _saved(db, sensor)

    logger.info("Sensor updated by %s: %s", admin.email, sensor.name)
    return _envelope("Sensor updated successfully", out, background, "sensor:updated")


@router.delete("/{sensor_id}", response_model=Message)
def delete_sensor(
    sensor_id: int,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    sensor = _get_sensor(db, sensor_id)
    rules.ensure_active(sensor)

    # Soft delete keeps history and alerts around
    sensor.is_active = False
    db.commit()

    logger.info("Sensor deactivated by %s: %s", admin.email, sensor.name)
    background.add_task(broadcaster.broadcast, "sensor:deleted", {"sensor_id": sensor_id})
    return Message(message="Sensor deleted successfully")


# ---------- Readings ----------
@router.post("/{sensor_id}/data", response_model=DataPointAck)
def add_sensor_data(
    sensor_id: int,
    payload: DataPointIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    actor: Optional[User] = Depends(get_optional_user),
):
    """Device ingest. Public so field hardware can post without a user token."""
    sensor = _get_sensor(db, sensor_id)

    point = SensorDataPoint(value=payload.value, timestamp=rules.utcnow())
    evicted = rules.add_data_point(sensor, point, limit=settings.SENSOR_HISTORY_LIMIT)
    if payload.battery_level is not None:
        sensor.battery_level = payload.battery_level
    if payload.signal_strength is not None:
        sensor.signal_strength = payload.signal_strength
    db.commit()
    db.refresh(sensor)

    logger.info(
        "Data point %s -> %s added to sensor %s by %s",
        payload.value,
        sensor.status,
        sensor.device_id,
        actor.email if actor else "device",
    )
    if evicted:
        logger.debug("Evicted %d old data points from sensor %s", len(evicted), sensor.device_id)
    ack = SensorReadingAck(
        id=sensor.id,
        name=sensor.name,
        current_value=sensor.current_value,
        status=sensor.status,
    )
    background.add_task(
        broadcaster.broadcast,
        "sensor:data",
        {"sensor_id": sensor.id, "value": payload.value, "status": sensor.status},
    )
    return DataPointAck(message="Data point added successfully", sensor=ack)


@router.get("/{sensor_id}/data", response_model=SensorDataOut)
def get_sensor_data(
    sensor_id: int,
    limit: int = Query(100, ge=1, le=1000),
    db: Session = Depends(get_db),
    _user: User = Depends(get_current_user),
):
    sensor = _get_sensor(db, sensor_id)
    latest = (
        db.query(SensorDataPoint)
        .filter(SensorDataPoint.sensor_id == sensor.id)
        .order_by(SensorDataPoint.id.desc())
        .limit(limit)
        .all()
    )
    # oldest first, like the stored history
    points = [DataPointOut.model_validate(p) for p in reversed(latest)]
    return SensorDataOut(sensor_id=sensor.id, sensor_name=sensor.name, data_points=points)


# ---------- Alerts & maintenance ----------
@router.post("/{sensor_id}/alert", response_model=SensorEnvelope, status_code=status.HTTP_201_CREATED)
def add_sensor_alert(
    sensor_id: int,
    payload: AlertIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    sensor = _get_sensor(db, sensor_id)
    alert = SensorAlert(
        type=payload.type,
        message=payload.message,
        severity=payload.severity,
        timestamp=rules.utcnow(),
    )
    rules.add_alert(sensor, alert)
    out = _saved(db, sensor)

    logger.info("Alert added to sensor %s by %s: %s", sensor.name, admin.email, alert.message)
    return _envelope("Alert added successfully", out, background, "sensor:alert")


@router.post("/{sensor_id}/alert/{alert_id}/acknowledge", response_model=SensorEnvelope)
def acknowledge_sensor_alert(
    sensor_id: int,
    alert_id: int,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    sensor = _get_sensor(db, sensor_id)
    rules.acknowledge_alert(sensor, alert_id, admin.id)
    out = _saved(db, sensor)

    logger.info("Alert %d on sensor %s acknowledged by %s", alert_id, sensor.name, admin.email)
    return _envelope("Alert acknowledged successfully", out, background, "sensor:alert-acknowledged")


@router.post(
    "/{sensor_id}/maintenance",
    response_model=SensorEnvelope,
    status_code=status.HTTP_201_CREATED,
)
def add_maintenance(
    sensor_id: int,
    payload: MaintenanceIn,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    sensor = _get_sensor(db, sensor_id)
    record = MaintenanceRecord(
        type=payload.type,
        description=payload.description,
        performed_by=admin.id,
        date=rules.utcnow(),
    )
    rules.add_maintenance_record(sensor, record)
    out = _saved(db, sensor)

    logger.info("Maintenance record added to sensor %s by %s", sensor.name, admin.email)
    return _envelope("Maintenance record added successfully", out, background, "sensor:updated")


@router.post("/{sensor_id}/offline", response_model=SensorEnvelope)
def mark_sensor_offline(
    sensor_id: int,
    background: BackgroundTasks,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    sensor = _get_sensor(db, sensor_id)
    rules.mark_offline(sensor)
    out = _saved(db, sensor)

    logger.warning("Sensor %s marked offline by %s", sensor.name, admin.email)
    return _envelope("Sensor marked offline", out, background, "sensor:offline")
