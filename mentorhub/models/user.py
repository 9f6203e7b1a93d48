from sqlalchemy import Column, Integer, String, Boolean, TIMESTAMP, func
from sqlalchemy.orm import relationship
from mentorhub.database import Base

ROLE_STUDENT = "student"
ROLE_MENTOR = "mentor"
ROLE_ADMIN = "admin"
USER_ROLES = (ROLE_STUDENT, ROLE_MENTOR, ROLE_ADMIN)


# ---------------- USER (AUTH TABLE) ----------------
class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(100), nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password_hash = Column(String(255), nullable=False)
    role = Column(String(20), nullable=False, default=ROLE_STUDENT)
    is_active = Column(Boolean, default=True)
    created_at = Column(TIMESTAMP, server_default=func.now())
    updated_at = Column(TIMESTAMP, onupdate=func.now())

    student_sessions = relationship("Session", foreign_keys="Session.student_id", back_populates="student")
    mentor_sessions = relationship("Session", foreign_keys="Session.mentor_id", back_populates="mentor")
    availability = relationship(
        "MentorAvailability",
        back_populates="mentor",
        uselist=False,
        cascade="all, delete-orphan",
    )

    @property
    def is_mentor(self) -> bool:
        return (self.role or "").lower() == ROLE_MENTOR

    @property
    def is_student(self) -> bool:
        return (self.role or "").lower() == ROLE_STUDENT

    @property
    def is_admin(self) -> bool:
        return (self.role or "").lower() == ROLE_ADMIN
