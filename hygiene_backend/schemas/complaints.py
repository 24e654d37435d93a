# hygiene_backend/schemas/complaints.py
from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from .auth import UserBrief

CategoryStr = Literal["maintenance", "cleanliness", "security", "other"]
PriorityStr = Literal["low", "medium", "high"]
StatusStr = Literal["pending", "in-progress", "resolved", "closed"]


class LocationIn(BaseModel):
    building: Optional[str] = None
    floor: Optional[str] = None
    room: Optional[str] = None
    area: Optional[str] = None


class ComplaintCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=200)
    description: str = Field(..., min_length=1, max_length=1000)
    category: CategoryStr
    priority: PriorityStr = "medium"
    location: Optional[LocationIn] = None
    tags: List[str] = []


class ComplaintUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = Field(None, min_length=1, max_length=1000)
    category: Optional[CategoryStr] = None
    priority: Optional[PriorityStr] = None
    location: Optional[LocationIn] = None
    tags: Optional[List[str]] = None


class RespondIn(BaseModel):
    message: str = Field(..., min_length=1, max_length=500)


class ResolveIn(BaseModel):
    notes: Optional[str] = Field(None, max_length=500)


class StatusUpdateIn(BaseModel):
    status: StatusStr


class AssignIn(BaseModel):
    assignee_id: str


class AdminResponseOut(BaseModel):
    message: str
    responded_by_id: Optional[str] = None
    responded_at: Optional[datetime] = None


class ComplaintOut(BaseModel):
    id: int
    title: str
    description: str
    category: str
    status: str
    priority: str
    user_id: str
    user: Optional[UserBrief] = None
    assigned_to_id: Optional[str] = None
    location: Optional[LocationIn] = None
    admin_response: Optional[AdminResponseOut] = None
    resolution_notes: Optional[str] = None
    estimated_resolution_time: Optional[datetime] = None
    actual_resolution_time: Optional[datetime] = None
    tags: List[str] = []
    is_urgent: bool
    escalation_level: int
    age_in_days: int
    resolution_time_hours: Optional[int] = None
    created_at: datetime
    updated_at: Optional[datetime] = None
    model_config = {"from_attributes": True}


class ComplaintEnvelope(BaseModel):
    message: str
    complaint: ComplaintOut


class CountBucket(BaseModel):
    key: str
    count: int


class ComplaintStats(BaseModel):
    by_status: List[CountBucket]
    by_priority: List[CountBucket]
    by_category: List[CountBucket]
    total: int
    urgent: int
    average_resolution_hours: Optional[float] = None


class ComplaintStatsEnvelope(BaseModel):
    stats: ComplaintStats


class ComplaintList(BaseModel):
    complaints: List[ComplaintOut]


def buckets(rows) -> List[Dict]:
    return [{"key": key or "unknown", "count": int(count)} for key, count in rows]
