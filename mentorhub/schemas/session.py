from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

# ======================
# SESSION REQUEST MODELS
# ======================

class BookingRequest(BaseModel):
    mentor_id: int
    # ISO 8601; without an offset it is read in the platform timezone
    scheduled_start: str
    duration_minutes: Optional[int] = None
    title: Optional[str] = None
    description: Optional[str] = None
    session_type: Optional[str] = None
    notes: Optional[str] = None
    meeting_link: Optional[str] = None


class CancelRequest(BaseModel):
    reason: Optional[str] = Field(None, max_length=500)


class OutcomeRequest(BaseModel):
    rating: Optional[int] = None
    feedback: Optional[str] = None


class DetailsUpdate(BaseModel):
    notes: Optional[str] = None
    meeting_link: Optional[str] = Field(None, max_length=500)

# ======================
# SESSION RESPONSE MODELS
# ======================

class SessionResponse(BaseModel):
    id: int
    student_id: int
    mentor_id: int
    title: str
    description: Optional[str] = None
    session_type: str
    scheduled_start: datetime
    duration_minutes: int
    status: str
    meeting_link: Optional[str] = None
    notes: Optional[str] = None
    rating: Optional[int] = None
    feedback: Optional[str] = None
    cancelled_at: Optional[datetime] = None
    cancelled_by: Optional[str] = None
    cancellation_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class QuickStats(BaseModel):
    upcoming_sessions: int
    completed_sessions: int
    total_connections: int
    total_sessions: int
    average_rating: float


class DashboardResponse(BaseModel):
    upcoming_sessions: List[SessionResponse]
    completed_sessions: List[SessionResponse]
    quick_stats: QuickStats


class SweepResponse(BaseModel):
    completed: List[int]
    count: int
