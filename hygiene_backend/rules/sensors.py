"""
Sensor status rules.

Status is a pure function of current_value / threshold_value:

    ratio >= 1.5          -> critical
    1.0 <= ratio < 1.5    -> warning
    ratio < 1.0           -> normal

``offline`` is never produced by the ratio. It is set only through
``mark_offline`` by liveness monitoring, and the next value change replaces it.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Any, List, Optional

from ..errors import NotFoundError, StatePreconditionError, ValidationFailed


NORMAL = "normal"
WARNING = "warning"
CRITICAL = "critical"
OFFLINE = "offline"

STATUSES = (NORMAL, WARNING, CRITICAL, OFFLINE)
SENSOR_TYPES = ("door-tracking", "odor", "humidity", "bin-level", "temperature", "air-quality")
ALERT_TYPES = ("threshold-exceeded", "device-offline", "battery-low", "calibration-due")
ALERT_SEVERITIES = ("low", "medium", "high", "critical")

WARNING_RATIO = 1.0
CRITICAL_RATIO = 1.5

HISTORY_LIMIT = 1000
ALERT_MESSAGE_MAX = 200
MAINTENANCE_DESCRIPTION_MAX = 500
CALIBRATION_LOOKAHEAD_DAYS = 30
LOW_BATTERY = 20

STATUS_PENALTY = {CRITICAL: 40, WARNING: 20, OFFLINE: 60}


def utcnow() -> datetime:
    return datetime.now(timezone.utc).replace(tzinfo=None)


def derive_status(current_value: float, threshold_value: float) -> str:
    if threshold_value is None or threshold_value <= 0:
        raise ValidationFailed("Threshold value must be greater than zero", field="threshold_value")
    ratio = current_value / threshold_value
    if ratio >= CRITICAL_RATIO:
        return CRITICAL
    if ratio >= WARNING_RATIO:
        return WARNING
    return NORMAL


def refresh_status(sensor: Any) -> str:
    sensor.status = derive_status(sensor.current_value, sensor.threshold_value)
    return sensor.status


def health_score(status: str, battery_level: Optional[float] = None, signal_strength: Optional[float] = None) -> int:
    """Display-only composite in [0, 100]; never persisted."""
    score = 100 - STATUS_PENALTY.get(status, 0)

    if battery_level is not None:
        if battery_level < 20:
            score -= 30
        elif battery_level < 50:
            score -= 15

    if signal_strength is not None:
        if signal_strength < 30:
            score -= 20
        elif signal_strength < 60:
            score -= 10

    return max(0, score)


def ensure_active(sensor: Any) -> None:
    if not sensor.is_active:
        raise StatePreconditionError(
            "Sensor is inactive",
            precondition="is_active == true",
            sensor_id=getattr(sensor, "id", None),
        )


def evict_overflow(points: List[Any], limit: int = HISTORY_LIMIT) -> List[Any]:
    """Drop the oldest entries in place until ``len(points) <= limit``."""
    overflow = len(points) - limit
    if overflow <= 0:
        return []
    evicted = list(points[:overflow])
    del points[:overflow]
    return evicted


def add_data_point(sensor: Any, point: Any, limit: int = HISTORY_LIMIT) -> List[Any]:
    """
    Append ``point`` (exposing ``value`` and ``timestamp``) to the sensor history.

    Updates the current value and last-reading snapshot, re-derives status and
    returns the evicted points.
    """
    ensure_active(sensor)
    if point.timestamp is None:
        point.timestamp = utcnow()

    sensor.data_points.append(point)
    evicted = evict_overflow(sensor.data_points, limit)

    sensor.current_value = point.value
    sensor.last_reading_value = point.value
    sensor.last_reading_at = point.timestamp
    refresh_status(sensor)
    return evicted


def add_alert(sensor: Any, alert: Any) -> Any:
    ensure_active(sensor)
    if alert.type not in ALERT_TYPES:
        raise ValidationFailed("Invalid alert type", field="type")
    if alert.severity not in ALERT_SEVERITIES:
        raise ValidationFailed("Invalid severity level", field="severity")
    message = (alert.message or "").strip()
    if not 1 <= len(message) <= ALERT_MESSAGE_MAX:
        raise ValidationFailed(
            f"Alert message must be between 1 and {ALERT_MESSAGE_MAX} characters", field="message"
        )
    alert.message = message
    alert.is_acknowledged = False
    sensor.alerts.append(alert)
    return alert


def find_alert(sensor: Any, alert_id: int) -> Any:
    for alert in sensor.alerts:
        if alert.id == alert_id:
            return alert
    raise NotFoundError("Alert", alert_id)


def acknowledge_alert(sensor: Any, alert_id: int, user_id: str, now: Optional[datetime] = None) -> Any:
    alert = find_alert(sensor, alert_id)
    alert.is_acknowledged = True
    alert.acknowledged_by_id = user_id
    alert.acknowledged_at = now or utcnow()
    return alert


def add_maintenance_record(sensor: Any, record: Any) -> Any:
    ensure_active(sensor)
    if not (record.type or "").strip():
        raise ValidationFailed("Maintenance type is required", field="type")
    description = (record.description or "").strip()
    if not 1 <= len(description) <= MAINTENANCE_DESCRIPTION_MAX:
        raise ValidationFailed(
            f"Maintenance description must be between 1 and {MAINTENANCE_DESCRIPTION_MAX} characters",
            field="description",
        )
    record.description = description
    if record.date is None:
        record.date = utcnow()
    sensor.maintenance_history.append(record)
    return record


def mark_offline(sensor: Any) -> None:
    ensure_active(sensor)
    sensor.status = OFFLINE


def requires_maintenance(sensor: Any, now: Optional[datetime] = None) -> bool:
    now = now or utcnow()
    if sensor.battery_level is not None and sensor.battery_level < LOW_BATTERY:
        return True
    if sensor.next_calibration_date is not None and sensor.next_calibration_date <= now + timedelta(
        days=CALIBRATION_LOOKAHEAD_DAYS
    ):
        return True
    return sensor.status == OFFLINE


def time_since_last_reading_ms(sensor: Any, now: Optional[datetime] = None) -> Optional[int]:
    if sensor.last_reading_at is None:
        return None
    return int(((now or utcnow()) - sensor.last_reading_at).total_seconds() * 1000)
