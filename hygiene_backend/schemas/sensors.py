# hygiene_backend/schemas/sensors.py
from __future__ import annotations

from datetime import datetime
from typing import Annotated, List, Literal, Optional

from pydantic import BaseModel, Field, StringConstraints

from .complaints import CountBucket

SensorTypeStr = Literal["door-tracking", "odor", "humidity", "bin-level", "temperature", "air-quality"]
SensorStatusStr = Literal["normal", "warning", "critical", "offline"]
AlertTypeStr = Literal["threshold-exceeded", "device-offline", "battery-low", "calibration-due"]
SeverityStr = Literal["low", "medium", "high", "critical"]

# Stripped before the length check
NonBlankStr = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1)]
SensorName = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]
AlertMessage = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=200)]
MaintenanceText = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=500)]


class SensorLocation(BaseModel):
    building: Optional[str] = None
    floor: Optional[str] = None
    room: Optional[str] = None
    area: Optional[str] = None
    latitude: Optional[float] = Field(default=None, ge=-90.0, le=90.0)
    longitude: Optional[float] = Field(default=None, ge=-180.0, le=180.0)


class SensorCreate(BaseModel):
    name: SensorName
    type: SensorTypeStr
    device_id: NonBlankStr
    current_value: float
    threshold_value: float = Field(..., gt=0)
    unit: NonBlankStr
    location: Optional[SensorLocation] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    firmware_version: Optional[str] = None
    battery_level: Optional[float] = Field(default=None, ge=0, le=100)
    signal_strength: Optional[float] = Field(default=None, ge=0, le=100)
    calibration_date: Optional[datetime] = None
    next_calibration_date: Optional[datetime] = None


class SensorUpdate(BaseModel):
    name: Optional[SensorName] = None
    type: Optional[SensorTypeStr] = None
    device_id: Optional[NonBlankStr] = None
    current_value: Optional[float] = None
    threshold_value: Optional[float] = Field(None, gt=0)
    unit: Optional[NonBlankStr] = None
    location: Optional[SensorLocation] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    firmware_version: Optional[str] = None
    battery_level: Optional[float] = Field(default=None, ge=0, le=100)
    signal_strength: Optional[float] = Field(default=None, ge=0, le=100)
    calibration_date: Optional[datetime] = None
    next_calibration_date: Optional[datetime] = None


class DataPointIn(BaseModel):
    value: float
    battery_level: Optional[int] = Field(default=None, ge=0, le=100)
    signal_strength: Optional[int] = Field(default=None, ge=0, le=100)


class AlertIn(BaseModel):
    type: AlertTypeStr
    message: AlertMessage
    severity: SeverityStr = "medium"


class MaintenanceIn(BaseModel):
    type: NonBlankStr
    description: MaintenanceText


class DataPointOut(BaseModel):
    value: float
    timestamp: datetime
    model_config = {"from_attributes": True}


class AlertOut(BaseModel):
    id: int
    type: str
    message: str
    severity: str
    timestamp: datetime
    is_acknowledged: bool
    acknowledged_by_id: Optional[str] = None
    acknowledged_at: Optional[datetime] = None
    model_config = {"from_attributes": True}


class MaintenanceOut(BaseModel):
    id: int
    date: datetime
    type: str
    description: str
    performed_by: Optional[str] = None
    model_config = {"from_attributes": True}


class SensorOut(BaseModel):
    id: int
    name: str
    type: str
    device_id: str
    location: Optional[SensorLocation] = None
    current_value: float
    threshold_value: float
    unit: str
    status: str
    is_active: bool
    last_reading_value: Optional[float] = None
    last_reading_at: Optional[datetime] = None
    calibration_date: Optional[datetime] = None
    next_calibration_date: Optional[datetime] = None
    manufacturer: Optional[str] = None
    model: Optional[str] = None
    firmware_version: Optional[str] = None
    battery_level: Optional[float] = None
    signal_strength: Optional[float] = None
    health_score: int
    time_since_last_reading_ms: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_config = {"from_attributes": True}


class SensorDetail(SensorOut):
    alerts: List[AlertOut] = []
    maintenance_history: List[MaintenanceOut] = []


class SensorEnvelope(BaseModel):
    message: str
    sensor: SensorDetail


class SensorReadingAck(BaseModel):
    id: int
    name: str
    current_value: float
    status: str


class DataPointAck(BaseModel):
    message: str
    sensor: SensorReadingAck


class SensorDataOut(BaseModel):
    sensor_id: int
    sensor_name: str
    data_points: List[DataPointOut]


class SensorList(BaseModel):
    sensors: List[SensorOut]


class SensorStats(BaseModel):
    by_status: List[CountBucket]
    by_type: List[CountBucket]
    average_health_score: float
    unacknowledged_alerts: int


class SensorStatsEnvelope(BaseModel):
    stats: SensorStats
