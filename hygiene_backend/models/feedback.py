# hygiene_backend/models/feedback.py
from __future__ import annotations

from sqlalchemy import (
    Column,
    Integer,
    String,
    Boolean,
    DateTime,
    ForeignKey,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from ..db import Base
from ..rules import feedback as rules
from ..rules.complaints import utcnow


FEEDBACK_CATEGORIES = (
    "resolution-quality",
    "response-time",
    "communication",
    "overall-satisfaction",
)

RATING_DESCRIPTIONS = {
    1: "Very Dissatisfied",
    2: "Dissatisfied",
    3: "Neutral",
    4: "Satisfied",
    5: "Very Satisfied",
}


class Feedback(Base):
    __tablename__ = "feedback"
    __table_args__ = (
        # one feedback per (complaint, user)
        UniqueConstraint("complaint_id", "user_id", name="uq_feedback_complaint_user"),
    )

    id = Column(Integer, primary_key=True, index=True)
    complaint_id = Column(Integer, ForeignKey("complaints.id"), nullable=False, index=True)
    user_id = Column(String, ForeignKey("users.id"), nullable=False, index=True)

    rating = Column(Integer, nullable=False, index=True)
    message = Column(String(500), nullable=False)
    category = Column(String, nullable=False, default="overall-satisfaction")
    is_anonymous = Column(Boolean, nullable=False, default=False)
    helpful_count = Column(Integer, nullable=False, default=0)

    is_flagged = Column(Boolean, nullable=False, default=False)
    flagged_reason = Column(String(200), nullable=True)

    admin_response_message = Column(Text, nullable=True)
    responded_by_id = Column(String, ForeignKey("users.id"), nullable=True)
    responded_at = Column(DateTime, nullable=True)

    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow)

    complaint = relationship("Complaint", back_populates="feedback", lazy="joined")
    user = relationship("User", foreign_keys=[user_id], lazy="joined")

    @property
    def admin_response(self):
        if self.admin_response_message is None:
            return None
        return {
            "message": self.admin_response_message,
            "responded_by_id": self.responded_by_id,
            "responded_at": self.responded_at,
        }

    @property
    def rating_description(self) -> str:
        return RATING_DESCRIPTIONS.get(self.rating, "Unknown")

    @property
    def sentiment(self) -> str:
        return rules.sentiment(self.rating)
