# mentorhub/api/session.py
"""
Session Management API

Booking, cancellation, start, outcome and the administrative overrides.
All rules live in SchedulingService; this layer maps the acting user onto
the service's roles and translates scheduling errors to HTTP responses.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status

from mentorhub.api.deps import get_scheduling_service, handle_scheduling_error
from mentorhub.errors import SchedulingError
from mentorhub.models.user import User
from mentorhub.scheduling import policy
from mentorhub.schemas.session import (
    BookingRequest,
    CancelRequest,
    DashboardResponse,
    DetailsUpdate,
    OutcomeRequest,
    SessionResponse,
    SweepResponse,
)
from mentorhub.services.scheduling_service import SchedulingService
from mentorhub.utils.security import get_current_user, require_admin

router = APIRouter(prefix="/sessions", tags=["sessions"])


# ======================
# HELPER FUNCTIONS
# ======================
def _cancelling_role(user: User) -> str:
    """Admins cancel on behalf of the platform."""
    if user.is_admin:
        return policy.ROLE_SYSTEM
    if user.is_mentor:
        return policy.ROLE_MENTOR
    return policy.ROLE_STUDENT


def _actor_id(user: User) -> Optional[int]:
    return None if user.is_admin else user.id


# ======================
# BOOKING
# ======================
@router.post("/", response_model=SessionResponse, status_code=status.HTTP_201_CREATED)
def book_session(
    payload: BookingRequest,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Student books one bookable slot of a mentor"""
    if not current_user.is_student:
        raise HTTPException(status_code=403, detail="Only students can book sessions")

    metadata = payload.model_dump(
        include={"title", "description", "session_type", "notes", "meeting_link"}
    )
    try:
        session = service.book_session(
            student_id=current_user.id,
            mentor_id=payload.mentor_id,
            start=payload.scheduled_start,
            duration_minutes=payload.duration_minutes,
            metadata=metadata,
        )
    except SchedulingError as exc:
        handle_scheduling_error(exc)
    return session


# ======================
# SESSION LISTING
# ======================
@router.get("/my", response_model=List[SessionResponse])
def get_my_sessions(
    status: Optional[str] = None,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Sessions of the current user, newest first, optionally filtered by status"""
    try:
        return service.list_sessions_for_user(current_user.id, status=status)
    except SchedulingError as exc:
        handle_scheduling_error(exc)


@router.get("/dashboard", response_model=DashboardResponse)
def get_dashboard(
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    try:
        return service.dashboard(current_user.id)
    except SchedulingError as exc:
        handle_scheduling_error(exc)


@router.post("/sweep", response_model=SweepResponse)
def sweep_sessions(
    admin: User = Depends(require_admin),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Complete every session whose end plus buffer has passed"""
    try:
        completed = service.sweep_auto_completions()
    except SchedulingError as exc:
        handle_scheduling_error(exc)
    return SweepResponse(completed=completed, count=len(completed))


@router.get("/{session_id}", response_model=SessionResponse)
def get_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    try:
        return service.get_session(session_id, actor_id=_actor_id(current_user))
    except SchedulingError as exc:
        handle_scheduling_error(exc)


# ======================
# TRANSITIONS
# ======================
@router.patch("/{session_id}/cancel", response_model=SessionResponse)
def cancel_session(
    session_id: int,
    payload: Optional[CancelRequest] = None,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    reason = payload.reason if payload else None
    try:
        return service.request_cancellation(
            session_id,
            _cancelling_role(current_user),
            reason=reason,
            actor_id=_actor_id(current_user),
        )
    except SchedulingError as exc:
        handle_scheduling_error(exc)


@router.patch("/{session_id}/start", response_model=SessionResponse)
def start_session(
    session_id: int,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    try:
        return service.start_session(session_id, current_user.id)
    except SchedulingError as exc:
        handle_scheduling_error(exc)


@router.patch("/{session_id}/outcome", response_model=SessionResponse)
def attach_outcome(
    session_id: int,
    payload: OutcomeRequest,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Student rates a completed session; a second call overwrites"""
    try:
        return service.attach_outcome(
            session_id,
            payload.rating,
            payload.feedback,
            actor_id=current_user.id,
        )
    except SchedulingError as exc:
        handle_scheduling_error(exc)


@router.patch("/{session_id}/details", response_model=SessionResponse)
def update_session_details(
    session_id: int,
    payload: DetailsUpdate,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    try:
        return service.update_session_details(
            session_id,
            _actor_id(current_user),
            notes=payload.notes,
            meeting_link=payload.meeting_link,
        )
    except SchedulingError as exc:
        handle_scheduling_error(exc)


@router.patch("/{session_id}/no-show", response_model=SessionResponse)
def mark_no_show(
    session_id: int,
    admin: User = Depends(require_admin),
    service: SchedulingService = Depends(get_scheduling_service),
):
    try:
        return service.mark_no_show(session_id)
    except SchedulingError as exc:
        handle_scheduling_error(exc)
