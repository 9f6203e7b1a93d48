from typing import NoReturn

from fastapi import Depends
from sqlalchemy.orm import Session

from mentorhub.database import get_db
from mentorhub.errors import SchedulingError
from mentorhub.services.scheduling_service import SchedulingService


def get_scheduling_service(db: Session = Depends(get_db)) -> SchedulingService:
    return SchedulingService(db)


def handle_scheduling_error(exc: SchedulingError) -> NoReturn:
    """Re-raise a scheduling error as the matching HTTPException."""
    raise exc.to_http_exception()
