# mentorhub/crud/availability.py
from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session

from mentorhub.models.availability import MentorAvailability
from mentorhub.scheduling import availability as weekly_rules
from mentorhub.scheduling.availability import WeeklyAvailability


def get_record(db: Session, mentor_id: int) -> Optional[MentorAvailability]:
    return db.query(MentorAvailability).filter(
        MentorAvailability.mentor_id == mentor_id
    ).first()


def load_weekly(record: Optional[MentorAvailability]) -> WeeklyAvailability:
    """Decode a stored record; a mentor with no record is unavailable all week."""
    if record is None or not record.weekly:
        return WeeklyAvailability.default()
    return weekly_rules.from_wire(record.weekly)


def upsert_weekly(
    db: Session,
    mentor_id: int,
    weekly: WeeklyAvailability,
    updated_at: datetime,
) -> MentorAvailability:
    """
    Write the already-validated availability for a mentor.

    Flushes but does not commit; the caller owns the transaction.
    """
    record = get_record(db, mentor_id)
    payload = weekly_rules.to_wire(weekly)
    if record is None:
        record = MentorAvailability(
            mentor_id=mentor_id,
            weekly=payload,
            version=1,
            last_updated=updated_at,
        )
        db.add(record)
    else:
        record.weekly = payload
        record.version = (record.version or 0) + 1
        record.last_updated = updated_at
    db.flush()
    return record
