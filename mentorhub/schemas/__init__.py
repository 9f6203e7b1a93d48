# mentorhub/schemas/__init__.py

# Availability schemas
from .availability import (
    AvailabilityUpdate,
    AvailabilityResponse,
    PublicAvailabilityResponse,
    BookableSlotsResponse,
)

# Session schemas
from .session import (
    BookingRequest,
    CancelRequest,
    OutcomeRequest,
    DetailsUpdate,
    SessionResponse,
    QuickStats,
    DashboardResponse,
    SweepResponse,
)

__all__ = [
    "AvailabilityUpdate",
    "AvailabilityResponse",
    "PublicAvailabilityResponse",
    "BookableSlotsResponse",
    "BookingRequest",
    "CancelRequest",
    "OutcomeRequest",
    "DetailsUpdate",
    "SessionResponse",
    "QuickStats",
    "DashboardResponse",
    "SweepResponse",
]
