# hygiene_backend/models/__init__.py

from .user import User
from .complaint import Complaint
from .sensor import Sensor, SensorDataPoint, SensorAlert, MaintenanceRecord
from .feedback import Feedback

__all__ = [
    "User",
    "Complaint",
    "Sensor",
    "SensorDataPoint",
    "SensorAlert",
    "MaintenanceRecord",
    "Feedback",
]
