# mentorhub/models/__init__.py
# Import models in dependency order
from .user import User
from .availability import MentorAvailability
from .connection import Connection
from .session import Session, SessionType
from .notification import Notification

__all__ = [
    "User",
    "MentorAvailability",
    "Connection",
    "Session",
    "SessionType",
    "Notification",
]
