from datetime import date, datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict

# ======================
# AVAILABILITY REQUEST MODELS
# ======================

class AvailabilityUpdate(BaseModel):
    """Full weekly availability keyed by lowercase weekday name."""
    availability: Dict[str, Any]

# ======================
# AVAILABILITY RESPONSE MODELS
# ======================

class AvailabilityResponse(BaseModel):
    mentor_id: int
    availability: Dict[str, Dict[str, Any]]
    last_updated: Optional[datetime] = None
    version: int = 0

    model_config = ConfigDict(from_attributes=True)


class PublicAvailabilityResponse(BaseModel):
    mentor_id: int
    mentor_name: str
    availability: Dict[str, Dict[str, Any]]
    last_updated: Optional[datetime] = None


class BookableSlotsResponse(BaseModel):
    mentor_id: int
    date: date
    timezone: str
    slots: List[datetime]
