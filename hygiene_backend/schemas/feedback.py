# hygiene_backend/schemas/feedback.py
from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, Field

from .auth import UserBrief
from .complaints import AdminResponseOut, CountBucket

FeedbackCategoryStr = Literal[
    "resolution-quality",
    "response-time",
    "communication",
    "overall-satisfaction",
]


class FeedbackCreate(BaseModel):
    complaint_id: int
    rating: int = Field(..., ge=1, le=5)
    message: str = Field(..., min_length=1, max_length=500)
    category: FeedbackCategoryStr = "overall-satisfaction"
    is_anonymous: bool = False


class FeedbackUpdate(BaseModel):
    rating: Optional[int] = Field(None, ge=1, le=5)
    message: Optional[str] = Field(None, min_length=1, max_length=500)
    category: Optional[FeedbackCategoryStr] = None
    is_anonymous: Optional[bool] = None


class FlagIn(BaseModel):
    reason: str = Field(..., min_length=1, max_length=200)


class FeedbackRespondIn(BaseModel):
    message: str = Field(..., min_length=1, max_length=500)


class ComplaintBrief(BaseModel):
    id: int
    title: str
    category: str
    status: str
    model_config = {"from_attributes": True}


class FeedbackOut(BaseModel):
    id: int
    complaint_id: int
    complaint: Optional[ComplaintBrief] = None
    user_id: str
    user: Optional[UserBrief] = None
    rating: int
    rating_description: str
    sentiment: str
    message: str
    category: str
    is_anonymous: bool
    helpful_count: int
    is_flagged: bool
    flagged_reason: Optional[str] = None
    admin_response: Optional[AdminResponseOut] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_config = {"from_attributes": True}


class FeedbackEnvelope(BaseModel):
    message: str
    feedback: FeedbackOut


class FeedbackList(BaseModel):
    feedbacks: List[FeedbackOut]


class HelpfulOut(BaseModel):
    message: str
    helpful_count: int


class FeedbackStats(BaseModel):
    rating_distribution: List[CountBucket]
    average_rating: float
    total_feedback: int
    sentiment_distribution: List[CountBucket]


class FeedbackStatsEnvelope(BaseModel):
    stats: FeedbackStats
