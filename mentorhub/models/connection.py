# mentorhub/models/connection.py
from sqlalchemy import Column, Integer, String, Text, Boolean, ForeignKey
from sqlalchemy.orm import relationship
from mentorhub.database import Base
from mentorhub.models.types import UTCDateTime, utcnow

CONNECTION_ACCEPTED = "accepted"


class Connection(Base):
    """Mentor/student relationship; the scheduling engine only reads it."""

    __tablename__ = "connections"

    id = Column(Integer, primary_key=True, index=True)
    student_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    mentor_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)
    status = Column(String(20), nullable=False, default="pending")  # pending/accepted/rejected/cancelled
    message = Column(Text)
    is_active = Column(Boolean, default=True, nullable=False)
    requested_at = Column(UTCDateTime, default=utcnow)
    responded_at = Column(UTCDateTime)

    student = relationship("User", foreign_keys=[student_id])
    mentor = relationship("User", foreign_keys=[mentor_id])
