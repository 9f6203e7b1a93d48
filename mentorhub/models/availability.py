# mentorhub/models/availability.py
from sqlalchemy import Column, Integer, ForeignKey, JSON
from sqlalchemy.orm import relationship
from mentorhub.database import Base
from mentorhub.models.types import UTCDateTime


class MentorAvailability(Base):
    """One weekly availability document per mentor, in its wire shape."""

    __tablename__ = "mentor_availability"

    id = Column(Integer, primary_key=True, index=True)
    mentor_id = Column(
        Integer,
        ForeignKey("users.id", ondelete="CASCADE"),
        unique=True,
        nullable=False,
    )
    weekly = Column(JSON, nullable=False)
    version = Column(Integer, nullable=False, default=1)
    last_updated = Column(UTCDateTime)

    mentor = relationship("User", back_populates="availability")
