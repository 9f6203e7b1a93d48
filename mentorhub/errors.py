# mentorhub/errors.py
"""
Typed errors raised by the scheduling engine.

Each error carries a human-readable message, a machine-readable code and an
optional details dict, and knows which HTTP status it maps to at the API layer.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, status


class SchedulingError(Exception):
    """Base class for every scheduling-domain error."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_code: str = "SCHEDULING_ERROR"

    def __init__(
        self,
        message: str,
        code: Optional[str] = None,
        details: Optional[Dict[str, Any]] = None,
    ) -> None:
        self.message = message
        self.code = code or self.default_code
        self.details = details or {}
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
        }

    def to_http_exception(self) -> HTTPException:
        return HTTPException(status_code=self.status_code, detail=self.to_dict())


class ValidationError(SchedulingError):
    """Malformed input, rejected before any mutation."""

    status_code = status.HTTP_400_BAD_REQUEST
    default_code = "VALIDATION_ERROR"


class NotFoundError(SchedulingError):
    """Referenced mentor, student or session does not exist."""

    status_code = status.HTTP_404_NOT_FOUND
    default_code = "NOT_FOUND"


class PermissionDenied(SchedulingError):
    """The acting user may not touch this record at all."""

    status_code = status.HTTP_403_FORBIDDEN
    default_code = "FORBIDDEN"


class PolicyViolation(SchedulingError):
    """A transition was attempted outside its guard."""

    status_code = 422
    default_code = "POLICY_VIOLATION"


class ConflictError(SchedulingError):
    """The record changed since it was read, or the slot is taken."""

    status_code = status.HTTP_409_CONFLICT
    default_code = "CONFLICT"


# Reason codes
INVALID_AVAILABILITY = "INVALID_AVAILABILITY"
INVALID_DURATION = "INVALID_DURATION"
INVALID_START = "INVALID_START"
INVALID_RATING = "INVALID_RATING"
MISSING_FIELD = "MISSING_FIELD"
INVALID_ROLE = "INVALID_ROLE"
INVALID_SESSION_TYPE = "INVALID_SESSION_TYPE"
SELF_BOOKING = "SELF_BOOKING"

SESSION_NOT_FOUND = "SESSION_NOT_FOUND"
MENTOR_NOT_FOUND = "MENTOR_NOT_FOUND"
STUDENT_NOT_FOUND = "STUDENT_NOT_FOUND"

INVALID_STATUS = "INVALID_STATUS"
CANCELLATION_WINDOW_CLOSED = "CANCELLATION_WINDOW_CLOSED"
TOO_EARLY_TO_START = "TOO_EARLY_TO_START"
SESSION_NOT_STARTED = "SESSION_NOT_STARTED"
NOT_SESSION_MENTOR = "NOT_SESSION_MENTOR"
NOT_SESSION_PARTICIPANT = "NOT_SESSION_PARTICIPANT"
SLOT_NOT_AVAILABLE = "SLOT_NOT_AVAILABLE"
NOT_CONNECTED = "NOT_CONNECTED"

STATUS_CHANGED = "STATUS_CHANGED"
SLOT_ALREADY_BOOKED = "SLOT_ALREADY_BOOKED"
