# hygiene_backend/models/complaint.py
from __future__ import annotations

from typing import Dict, Optional

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Text,
    JSON,
    Index,
    event,
)
from sqlalchemy.orm import relationship

from ..db import Base
from ..rules import complaints as lifecycle


LOCATION_FIELDS = ("building", "floor", "room", "area")


class Complaint(Base):
    """
    Occupant-filed facility complaint.
    """

    __tablename__ = "complaints"
    __table_args__ = (
        Index("ix_complaints_user_created", "user_id", "created_at"),
        Index("ix_complaints_status_priority", "status", "priority"),
    )

    id = Column(Integer, primary_key=True, index=True)

    title = Column(String(200), nullable=False)
    description = Column(Text, nullable=False)
    category = Column(String, nullable=False, index=True)

    # pending → in-progress → resolved | closed
    status = Column(String, nullable=False, default=lifecycle.PENDING)
    priority = Column(String, nullable=False, default="medium")

    user_id = Column(String, ForeignKey("users.id"), nullable=False)
    assigned_to_id = Column(String, ForeignKey("users.id"), nullable=True, index=True)

    location_building = Column(String, nullable=True)
    location_floor = Column(String, nullable=True)
    location_room = Column(String, nullable=True)
    location_area = Column(String, nullable=True)

    admin_response_message = Column(Text, nullable=True)
    responded_by_id = Column(String, ForeignKey("users.id"), nullable=True)
    responded_at = Column(DateTime, nullable=True)

    resolution_notes = Column(String(500), nullable=True)
    estimated_resolution_time = Column(DateTime, nullable=True)
    actual_resolution_time = Column(DateTime, nullable=True)

    tags = Column(JSON, nullable=False, default=list)
    is_urgent = Column(Boolean, nullable=False, default=False)
    escalation_level = Column(Integer, nullable=False, default=0)

    created_at = Column(DateTime, default=lifecycle.utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=lifecycle.utcnow, onupdate=lifecycle.utcnow)

    user = relationship("User", foreign_keys=[user_id], lazy="joined")
    assigned_to = relationship("User", foreign_keys=[assigned_to_id])
    responded_by = relationship("User", foreign_keys=[responded_by_id])

    feedback = relationship(
        "Feedback",
        back_populates="complaint",
        cascade="all, delete-orphan",
    )

    @property
    def location(self) -> Optional[Dict[str, Optional[str]]]:
        values = {f: getattr(self, f"location_{f}") for f in LOCATION_FIELDS}
        return values if any(values.values()) else None

    @location.setter
    def location(self, value) -> None:
        value = value or {}
        if hasattr(value, "model_dump"):
            value = value.model_dump()
        for f in LOCATION_FIELDS:
            setattr(self, f"location_{f}", value.get(f))

    @property
    def admin_response(self) -> Optional[Dict[str, object]]:
        if self.admin_response_message is None:
            return None
        return {
            "message": self.admin_response_message,
            "responded_by_id": self.responded_by_id,
            "responded_at": self.responded_at,
        }

    @property
    def age_in_days(self) -> int:
        return lifecycle.age_in_days(self.created_at)

    @property
    def resolution_time_hours(self) -> Optional[int]:
        return lifecycle.resolution_time_hours(self)


@event.listens_for(Complaint, "before_insert")
@event.listens_for(Complaint, "before_update")
def apply_lifecycle_rules(mapper, connection, target):
    """Save-time escalation and one-shot resolution stamping."""
    lifecycle.stamp_resolution(target)
    lifecycle.auto_escalate(target)
