# hygiene_backend/seed_demo.py
"""
Load the demo dataset: four users, five sensors, five complaints, and
feedback for every resolved complaint.

    python -m hygiene_backend.seed_demo

Existing rows are wiped first.
"""
from __future__ import annotations

import logging
import random
from typing import Dict

from sqlalchemy.orm import Session

from hygiene_backend.db import init_db, session_scope
from hygiene_backend.logging_config import setup_logging
from hygiene_backend.models import (
    Complaint,
    Feedback,
    MaintenanceRecord,
    Sensor,
    SensorAlert,
    SensorDataPoint,
    User,
)
from hygiene_backend.rules import complaints as lifecycle
from hygiene_backend.rules import sensors as sensor_rules
from hygiene_backend.security import get_password_hash

logger = logging.getLogger(__name__)

USERS = [
    ("admin", "admin@example.com", "Admin123!", "System", "Administrator", "admin"),
    ("user1", "user1@example.com", "User123!", "John", "Doe", "user"),
    ("user2", "user2@example.com", "User123!", "Jane", "Smith", "user"),
    ("maintenance", "maintenance@example.com", "Maintenance123!", "Mike", "Johnson", "admin"),
]

SENSORS = [
    {
        "name": "Main Door Tracker", "type": "door-tracking", "device_id": "DOOR001",
        "current_value": 15, "threshold_value": 20, "unit": "entries/hour",
        "location": {"building": "Main Building", "floor": "1st Floor", "area": "Main Entrance"},
        "manufacturer": "IoT Solutions Inc.", "model": "DT-2000", "firmware_version": "v2.1.0",
        "battery_level": 85, "signal_strength": 95,
    },
    {
        "name": "Hallway Odor Monitor", "type": "odor", "device_id": "ODOR001",
        "current_value": 8.5, "threshold_value": 6.0, "unit": "ppm",
        "location": {"building": "Main Building", "floor": "2nd Floor", "area": "Hallway A"},
        "manufacturer": "Air Quality Systems", "model": "AQM-300", "firmware_version": "v1.5.2",
        "battery_level": 72, "signal_strength": 88,
    },
    {
        "name": "Indoor Humidity Sensor", "type": "humidity", "device_id": "HUMID001",
        "current_value": 65, "threshold_value": 60, "unit": "%",
        "location": {"building": "Main Building", "floor": "1st Floor", "area": "Conference Room"},
        "manufacturer": "Climate Control Ltd.", "model": "HC-150", "firmware_version": "v3.0.1",
        "battery_level": 91, "signal_strength": 92,
    },
    {
        "name": "Waste Bin Level Monitor", "type": "bin-level", "device_id": "BIN001",
        "current_value": 85, "threshold_value": 80, "unit": "%",
        "location": {"building": "Main Building", "floor": "1st Floor", "area": "Kitchen Area"},
        "manufacturer": "Smart Waste Solutions", "model": "WBL-500", "firmware_version": "v1.8.3",
        "battery_level": 45, "signal_strength": 78,
    },
    {
        "name": "Temperature Monitor", "type": "temperature", "device_id": "TEMP001",
        "current_value": 22.5, "threshold_value": 25.0, "unit": "°C",
        "location": {"building": "Main Building", "floor": "2nd Floor", "area": "Office Area"},
        "manufacturer": "Thermal Systems", "model": "TS-100", "firmware_version": "v2.2.0",
        "battery_level": 88, "signal_strength": 94,
    },
]

COMPLAINTS = [
    ("Broken Door Lock",
     "The main entrance door lock is not working properly. It gets stuck frequently "
     "and sometimes doesn't respond to key cards.",
     "maintenance", "high", lifecycle.PENDING),
    ("Unpleasant Odor in Hallway",
     "There is a strong smell coming from the waste disposal area. It's affecting the "
     "entire hallway and nearby offices.",
     "cleanliness", "medium", lifecycle.IN_PROGRESS),
    ("Air Conditioning Issue",
     "The air conditioning in the conference room is not cooling properly. The "
     "temperature is too high for comfortable meetings.",
     "maintenance", "medium", lifecycle.RESOLVED),
    ("Security Camera Malfunction",
     "One of the security cameras in the parking lot is showing a black screen. This "
     "is a security concern.",
     "security", "high", lifecycle.PENDING),
    ("Water Leak in Restroom",
     "There's a water leak under the sink in the men's restroom on the first floor. "
     "Water is pooling on the floor.",
     "maintenance", "high", lifecycle.IN_PROGRESS),
]


def clear(db: Session) -> None:
    for model in (Feedback, Complaint, SensorDataPoint, SensorAlert, MaintenanceRecord, Sensor, User):
        db.query(model).delete()
    db.commit()
    logger.info("Cleared existing data")


def seed_demo(db: Session) -> Dict[str, int]:
    clear(db)

    users = []
    for username, email, password, first, last, role in USERS:
        user = User(
            username=username,
            email=email,
            hashed_password=get_password_hash(password),
            first_name=first,
            last_name=last,
            role=role,
            is_active=True,
        )
        db.add(user)
        users.append(user)
    db.flush()
    logger.info("Created %d users", len(users))

    sensors = []
    for data in SENSORS:
        data = dict(data)
        location = data.pop("location")
        sensor = Sensor(**data)
        sensor.location = location
        db.add(sensor)
        sensors.append(sensor)
    db.flush()
    for sensor in sensors:
        logger.info("Created sensor %s: %s", sensor.device_id, sensor.status)

    bin_sensor = next(s for s in sensors if s.device_id == "BIN001")
    # 85/80 is a 1.06 ratio; the old demo dataset showed this bin as critical
    logger.warning(
        "Sensor BIN001 (%s/%s) is seeded as %s, not critical as in the previous demo data",
        bin_sensor.current_value,
        bin_sensor.threshold_value,
        bin_sensor.status,
    )
    sensor_rules.add_alert(
        bin_sensor,
        SensorAlert(
            type="threshold-exceeded",
            message="Waste bin level has exceeded the threshold limit. Please empty the bin.",
            severity="high",
            timestamp=sensor_rules.utcnow(),
        ),
    )

    admin = next(u for u in users if u.is_admin)
    regular = [u for u in users if not u.is_admin]
    complaints = []
    for i, (title, description, category, priority, status) in enumerate(COMPLAINTS):
        fields = lifecycle.new_complaint_fields(title, description, category, priority)
        complaint = Complaint(**fields, user_id=regular[i % len(regular)].id, tags=[])
        complaint.location = {"building": "Main Building"}
        if status == lifecycle.IN_PROGRESS:
            lifecycle.transition(complaint, status)
        elif status == lifecycle.RESOLVED:
            lifecycle.record_admin_response(
                complaint,
                "This issue has been resolved. The air conditioning unit has been repaired "
                "and is now functioning properly.",
                admin.id,
            )
            lifecycle.resolve(complaint, resolver_id=admin.id)
        db.add(complaint)
        complaints.append(complaint)
    db.flush()
    logger.info("Created %d complaints", len(complaints))

    resolved = [c for c in complaints if c.status == lifecycle.RESOLVED]
    for complaint in resolved:
        db.add(
            Feedback(
                complaint_id=complaint.id,
                user_id=complaint.user_id,
                rating=random.randint(3, 5),
                message="Thank you for resolving this issue promptly. The service was satisfactory.",
                category="overall-satisfaction",
            )
        )
    db.commit()
    logger.info("Created %d feedback entries", len(resolved))

    return {
        "users": len(users),
        "sensors": len(sensors),
        "complaints": len(complaints),
        "feedback": len(resolved),
    }


def main() -> None:
    setup_logging()
    init_db()
    with session_scope() as db:
        counts = seed_demo(db)
    logger.info("Database seeding completed: %s", counts)


if __name__ == "__main__":
    main()
