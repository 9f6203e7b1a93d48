# mentorhub/models/session.py
import enum

from sqlalchemy import Column, Integer, String, Text, ForeignKey, Index, CheckConstraint, text
from sqlalchemy.orm import relationship
from mentorhub.database import Base
from mentorhub.models.types import UTCDateTime, utcnow
from mentorhub.scheduling.lifecycle import SessionStatus


class SessionType(str, enum.Enum):
    VIDEO_CALL = "Video Call"
    PHONE_CALL = "Phone Call"
    IN_PERSON = "In-Person"
    CAREER_GUIDANCE = "Career Guidance"
    TECHNICAL_REVIEW = "Technical Review"
    GENERAL_MENTORING = "General Mentoring"


class Session(Base):
    __tablename__ = "sessions"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    mentor_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)
    title = Column(String(200), nullable=False, default="Mentoring Session")
    description = Column(Text)
    session_type = Column(String(30), nullable=False, default=SessionType.VIDEO_CALL.value)

    # Canonical UTC instant
    scheduled_start = Column(UTCDateTime, nullable=False)
    duration_minutes = Column(Integer, nullable=False, default=60)
    status = Column(String(20), nullable=False, default=SessionStatus.SCHEDULED.value, index=True)

    meeting_link = Column(String(500))
    notes = Column(Text)
    rating = Column(Integer)
    feedback = Column(Text)

    cancelled_at = Column(UTCDateTime)
    cancelled_by = Column(String(20))
    cancellation_reason = Column(String(500))
    completed_at = Column(UTCDateTime)

    created_at = Column(UTCDateTime, default=utcnow)
    updated_at = Column(UTCDateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        CheckConstraint("duration_minutes > 0", name="check_duration_positive"),
        CheckConstraint(
            "rating IS NULL OR (rating >= 1 AND rating <= 5)",
            name="check_session_rating_range",
        ),
        Index("ix_sessions_mentor_start", "mentor_id", "scheduled_start"),
        Index("ix_sessions_status_start", "status", "scheduled_start"),
        # One live booking per mentor instant; cancelled rows free the slot.
        Index(
            "uq_sessions_mentor_start_active",
            "mentor_id",
            "scheduled_start",
            unique=True,
            postgresql_where=text("status != 'cancelled'"),
            sqlite_where=text("status != 'cancelled'"),
        ),
    )

    # Relationships
    student = relationship("User", foreign_keys=[student_id], back_populates="student_sessions")
    mentor = relationship("User", foreign_keys=[mentor_id], back_populates="mentor_sessions")
