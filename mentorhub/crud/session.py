# mentorhub/crud/session.py
"""
Session persistence.

Status changes go through conditional_status_update: the UPDATE only applies
while the row's status is still one of the expected values, so concurrent
writers (two sweeps, a sweep and a cancellation) cannot both win.
"""

from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from mentorhub.models.session import Session as SessionModel
from mentorhub.scheduling.lifecycle import AUTO_COMPLETABLE, SessionStatus, values


def create_session(db: Session, **fields) -> SessionModel:
    session = SessionModel(**fields)
    db.add(session)
    db.flush()
    return session


def get_session(db: Session, session_id: int) -> Optional[SessionModel]:
    return db.query(SessionModel).filter(SessionModel.id == session_id).first()


def get_sessions_by_ids(db: Session, session_ids: Iterable[int]) -> List[SessionModel]:
    ids = list(session_ids)
    if not ids:
        return []
    return db.query(SessionModel).filter(SessionModel.id.in_(ids)).all()


def list_sessions_for_user(
    db: Session,
    user_id: int,
    statuses: Optional[Iterable] = None,
    limit: Optional[int] = None,
    ascending: bool = False,
) -> List[SessionModel]:
    query = db.query(SessionModel).filter(
        or_(SessionModel.student_id == user_id, SessionModel.mentor_id == user_id)
    )
    if statuses:
        query = query.filter(
            SessionModel.status.in_([getattr(status, "value", status) for status in statuses])
        )
    order = SessionModel.scheduled_start.asc() if ascending else SessionModel.scheduled_start.desc()
    query = query.order_by(order)
    if limit:
        query = query.limit(limit)
    return query.all()


def list_open_sessions(
    db: Session,
    *,
    user_id: Optional[int] = None,
    started_before: Optional[datetime] = None,
) -> List[SessionModel]:
    """Sessions still eligible for auto-completion, optionally for one participant."""
    query = db.query(SessionModel).filter(
        SessionModel.status.in_(values(AUTO_COMPLETABLE))
    )
    if user_id is not None:
        query = query.filter(
            or_(SessionModel.student_id == user_id, SessionModel.mentor_id == user_id)
        )
    if started_before is not None:
        query = query.filter(SessionModel.scheduled_start <= started_before)
    return query.order_by(SessionModel.scheduled_start.asc()).all()


def find_active_at(
    db: Session,
    mentor_id: int,
    scheduled_start: datetime,
) -> Optional[SessionModel]:
    """A non-cancelled session already holding this mentor instant."""
    return db.query(SessionModel).filter(
        SessionModel.mentor_id == mentor_id,
        SessionModel.scheduled_start == scheduled_start,
        SessionModel.status != SessionStatus.CANCELLED.value,
    ).first()


def list_taken_starts(
    db: Session,
    mentor_id: int,
    window_start: datetime,
    window_end: datetime,
) -> List[datetime]:
    rows = db.query(SessionModel.scheduled_start).filter(
        SessionModel.mentor_id == mentor_id,
        SessionModel.scheduled_start >= window_start,
        SessionModel.scheduled_start < window_end,
        SessionModel.status != SessionStatus.CANCELLED.value,
    ).all()
    return [row[0] for row in rows]


def conditional_status_update(
    db: Session,
    session_id: int,
    expected_statuses: Iterable,
    changes: Dict[str, Any],
) -> bool:
    """
    Apply ``changes`` only if the session's status is still expected.

    Returns True when exactly one row changed. Does not commit.
    """
    expected = [getattr(status, "value", status) for status in expected_statuses]
    updated = db.query(SessionModel).filter(
        SessionModel.id == session_id,
        SessionModel.status.in_(expected),
    ).update(changes, synchronize_session=False)
    return int(updated) == 1


def update_fields(db: Session, session: SessionModel, **fields) -> SessionModel:
    for key, value in fields.items():
        setattr(session, key, value)
    db.flush()
    return session


def count_sessions_for_user(db: Session, user_id: int) -> int:
    return db.query(SessionModel).filter(
        or_(SessionModel.student_id == user_id, SessionModel.mentor_id == user_id)
    ).count()


def average_rating_for_user(db: Session, user_id: int) -> float:
    average = db.query(func.avg(SessionModel.rating)).filter(
        or_(SessionModel.student_id == user_id, SessionModel.mentor_id == user_id),
        SessionModel.status == SessionStatus.COMPLETED.value,
        SessionModel.rating.isnot(None),
    ).scalar()
    return float(average or 0)
