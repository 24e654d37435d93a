# hygiene_backend/models/sensor.py
from __future__ import annotations

from typing import Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    Float,
    Boolean,
    DateTime,
    ForeignKey,
    Text,
    event,
    inspect,
)
from sqlalchemy.orm import relationship

from ..db import Base
from ..rules import sensors as rules


class Sensor(Base):
    """
    IoT device registered to a building. Status is derived, see rules/sensors.py.
    """

    __tablename__ = "sensors"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    type = Column(String, nullable=False, index=True)
    device_id = Column(String, nullable=False, unique=True, index=True)

    location_building = Column(String, nullable=True)
    location_floor = Column(String, nullable=True)
    location_room = Column(String, nullable=True)
    location_area = Column(String, nullable=True)
    latitude = Column(Float, nullable=True)
    longitude = Column(Float, nullable=True)

    current_value = Column(Float, nullable=False)
    threshold_value = Column(Float, nullable=False)
    unit = Column(String, nullable=False)

    # normal / warning / critical / offline
    status = Column(String, nullable=False, default=rules.NORMAL, index=True)
    is_active = Column(Boolean, nullable=False, default=True)

    last_reading_value = Column(Float, nullable=True)
    last_reading_at = Column(DateTime, nullable=True)

    calibration_date = Column(DateTime, nullable=True)
    next_calibration_date = Column(DateTime, nullable=True)
    manufacturer = Column(String, nullable=True)
    model = Column(String, nullable=True)
    firmware_version = Column(String, nullable=True)
    battery_level = Column(Float, nullable=True)
    signal_strength = Column(Float, nullable=True)

    created_at = Column(DateTime, default=rules.utcnow, nullable=False)
    updated_at = Column(DateTime, default=rules.utcnow, onupdate=rules.utcnow)

    data_points = relationship(
        "SensorDataPoint",
        back_populates="sensor",
        cascade="all, delete-orphan",
        order_by="SensorDataPoint.id",
    )

    alerts = relationship(
        "SensorAlert",
        back_populates="sensor",
        cascade="all, delete-orphan",
        order_by="SensorAlert.id",
    )

    maintenance_history = relationship(
        "MaintenanceRecord",
        back_populates="sensor",
        cascade="all, delete-orphan",
        order_by="MaintenanceRecord.id",
    )

    @property
    def location(self):
        values = {
            "building": self.location_building,
            "floor": self.location_floor,
            "room": self.location_room,
            "area": self.location_area,
            "latitude": self.latitude,
            "longitude": self.longitude,
        }
        return values if any(v is not None for v in values.values()) else None

    @location.setter
    def location(self, value) -> None:
        value = value or {}
        if hasattr(value, "model_dump"):
            value = value.model_dump()
        self.location_building = value.get("building")
        self.location_floor = value.get("floor")
        self.location_room = value.get("room")
        self.location_area = value.get("area")
        self.latitude = value.get("latitude")
        self.longitude = value.get("longitude")

    @property
    def health_score(self) -> int:
        return rules.health_score(self.status, self.battery_level, self.signal_strength)

    @property
    def time_since_last_reading_ms(self) -> Optional[int]:
        return rules.time_since_last_reading_ms(self)

    @property
    def unacknowledged_alerts(self):
        return [a for a in self.alerts if not a.is_acknowledged]


class SensorDataPoint(Base):
    """
    One reading in a sensor's bounded history.
    """

    __tablename__ = "sensor_data_points"

    id = Column(Integer, primary_key=True, index=True)
    sensor_id = Column(Integer, ForeignKey("sensors.id"), nullable=False, index=True)
    value = Column(Float, nullable=False)
    timestamp = Column(DateTime, nullable=False, default=rules.utcnow)

    sensor = relationship("Sensor", back_populates="data_points")


class SensorAlert(Base):
    """
    Alerts are never deleted, only acknowledged.
    """

    __tablename__ = "sensor_alerts"

    id = Column(Integer, primary_key=True, index=True)
    sensor_id = Column(Integer, ForeignKey("sensors.id"), nullable=False, index=True)

    # threshold-exceeded / device-offline / battery-low / calibration-due
    type = Column(String, nullable=False)
    message = Column(String(200), nullable=False)
    severity = Column(String, nullable=False, default="medium")
    timestamp = Column(DateTime, nullable=False, default=rules.utcnow)

    is_acknowledged = Column(Boolean, nullable=False, default=False)
    acknowledged_by_id = Column(String, ForeignKey("users.id"), nullable=True)
    acknowledged_at = Column(DateTime, nullable=True)

    sensor = relationship("Sensor", back_populates="alerts")


class MaintenanceRecord(Base):
    __tablename__ = "sensor_maintenance_records"

    id = Column(Integer, primary_key=True, index=True)
    sensor_id = Column(Integer, ForeignKey("sensors.id"), nullable=False, index=True)
    date = Column(DateTime, nullable=False, default=rules.utcnow)
    type = Column(String, nullable=False)
    description = Column(Text, nullable=False)
    performed_by = Column(String, nullable=True)

    sensor = relationship("Sensor", back_populates="maintenance_history")


@event.listens_for(Sensor, "before_insert")
def derive_initial_status(mapper, connection, target):
    rules.refresh_status(target)
    if target.last_reading_at is None:
        target.last_reading_value = target.current_value
        target.last_reading_at = rules.utcnow()


@event.listens_for(Sensor, "before_update")
def rederive_status(mapper, connection, target):
    """Status follows current/threshold on every value change."""
    state = inspect(target)
    if state.attrs.current_value.history.has_changes() or state.attrs.threshold_value.history.has_changes():
        rules.refresh_status(target)
    if state.attrs.current_value.history.has_changes():
        target.last_reading_value = target.current_value
        target.last_reading_at = rules.utcnow()
