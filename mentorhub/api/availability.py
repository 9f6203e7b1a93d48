# mentorhub/api/availability.py
"""
Mentor availability API

Mentors maintain a weekly template of wall-clock slots in the platform
timezone; students read the public view and the bookable instants of a day.
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, HTTPException, Query

from mentorhub.api.deps import get_scheduling_service, handle_scheduling_error
from mentorhub.errors import SchedulingError
from mentorhub.models.user import User
from mentorhub.scheduling import availability as weekly_rules
from mentorhub.schemas.availability import (
    AvailabilityResponse,
    AvailabilityUpdate,
    BookableSlotsResponse,
    PublicAvailabilityResponse,
)
from mentorhub.services.scheduling_service import SchedulingService
from mentorhub.utils.security import get_current_user

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/availability", tags=["availability"])


def _require_owner_or_admin(mentor_id: int, current_user: User) -> None:
    if current_user.id != mentor_id and not current_user.is_admin:
        raise HTTPException(status_code=403, detail="Not authorized to manage this availability")


# ======================
# PUBLIC VIEWS
# ======================
@router.get("/public/{mentor_id}", response_model=PublicAvailabilityResponse)
def get_public_availability(
    mentor_id: int,
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Active slots only, for students choosing a time"""
    try:
        snapshot = service.availability_snapshot(mentor_id)
    except SchedulingError as exc:
        handle_scheduling_error(exc)

    return PublicAvailabilityResponse(
        mentor_id=mentor_id,
        mentor_name=snapshot.mentor_name or "",
        availability=weekly_rules.to_public_wire(snapshot.weekly),
        last_updated=snapshot.last_updated,
    )


@router.get("/{mentor_id}/slots", response_model=BookableSlotsResponse)
def get_bookable_slots(
    mentor_id: int,
    day: date = Query(..., alias="date", description="Calendar date in the platform timezone"),
    include_booked: bool = Query(False),
    service: SchedulingService = Depends(get_scheduling_service),
):
    try:
        slots = service.resolve_bookable_slots(mentor_id, day, exclude_booked=not include_booked)
    except SchedulingError as exc:
        handle_scheduling_error(exc)

    return BookableSlotsResponse(
        mentor_id=mentor_id,
        date=day,
        timezone=service.config.PLATFORM_TIMEZONE,
        slots=slots,
    )


# ======================
# MENTOR MANAGEMENT
# ======================
@router.get("/{mentor_id}", response_model=AvailabilityResponse)
def get_availability(
    mentor_id: int,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    """Full weekly template, including inactive slots"""
    _require_owner_or_admin(mentor_id, current_user)
    try:
        snapshot = service.availability_snapshot(mentor_id)
    except SchedulingError as exc:
        handle_scheduling_error(exc)

    return AvailabilityResponse(
        mentor_id=mentor_id,
        availability=weekly_rules.to_wire(snapshot.weekly),
        last_updated=snapshot.last_updated,
        version=snapshot.version,
    )


@router.put("/{mentor_id}", response_model=AvailabilityResponse)
def put_availability(
    mentor_id: int,
    payload: AvailabilityUpdate,
    current_user: User = Depends(get_current_user),
    service: SchedulingService = Depends(get_scheduling_service),
):
    _require_owner_or_admin(mentor_id, current_user)
    try:
        weekly = weekly_rules.from_wire(payload.availability)
        snapshot = service.put_availability(mentor_id, weekly)
    except SchedulingError as exc:
        logger.info("Availability update rejected for mentor %s: %s", mentor_id, exc.message)
        handle_scheduling_error(exc)

    return AvailabilityResponse(
        mentor_id=mentor_id,
        availability=weekly_rules.to_wire(snapshot.weekly),
        last_updated=snapshot.last_updated,
        version=snapshot.version,
    )
