from __future__ import annotations

import logging
import threading
from typing import List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from mentorhub import models
from mentorhub.config import settings
from mentorhub.models.notification import Notification
from mentorhub.utils.email import SessionEmail, compose_session_email, is_email_enabled, send_email

logger = logging.getLogger(__name__)


SESSION_BOOKED = "session_booked"
SESSION_CANCELLED = "session_cancelled"
SESSION_STARTED = "session_started"
SESSION_COMPLETED = "session_completed"
SESSION_NO_SHOW = "session_no_show"


def list_user_notifications(
    db: Session,
    *,
    user_id: int,
    unread_only: bool = False,
    limit: int = 50,
) -> List[Notification]:
    query = db.query(Notification).filter(Notification.recipient_id == user_id)
    if unread_only:
        query = query.filter(Notification.is_read.is_(False))
    return query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit).all()


def mark_notification_read(
    db: Session,
    *,
    user_id: int,
    notification_id: int,
) -> Optional[Notification]:
    notification = db.query(Notification).filter(
        Notification.id == notification_id,
        Notification.recipient_id == user_id,
    ).first()
    if not notification:
        return None
    notification.is_read = True
    db.commit()
    return notification


def mark_all_notifications_read(db: Session, *, user_id: int) -> int:
    updated = db.query(Notification).filter(
        Notification.recipient_id == user_id,
        Notification.is_read.is_(False),
    ).update({"is_read": True}, synchronize_session=False)
    db.commit()
    return int(updated)


def get_unread_count(db: Session, *, user_id: int) -> int:
    return db.query(Notification).filter(
        Notification.recipient_id == user_id,
        Notification.is_read.is_(False),
    ).count()


def create_notification(
    db: Session,
    *,
    recipient_id: int,
    actor_id: Optional[int],
    session_id: Optional[int],
    event_type: str,
    message: str,
) -> Notification:
    notification = Notification(
        recipient_id=recipient_id,
        actor_id=actor_id,
        session_id=session_id,
        event_type=event_type,
        message=message,
    )
    db.add(notification)
    db.flush()
    return notification


def _format_start(session: models.Session) -> str:
    local = session.scheduled_start.astimezone(ZoneInfo(settings.PLATFORM_TIMEZONE))
    return local.strftime("%a %d %b %Y, %H:%M %Z")


def _recipients(event: str, session: models.Session, actor_id: Optional[int]) -> List[int]:
    participants = [session.student_id, session.mentor_id]
    if event == SESSION_BOOKED:
        return [session.mentor_id]
    if event == SESSION_STARTED:
        return [session.student_id]
    if actor_id in participants:
        return [user_id for user_id in participants if user_id != actor_id]
    return participants


def _message(event: str, session: models.Session) -> str:
    when = _format_start(session)
    if event == SESSION_BOOKED:
        return f"New session '{session.title}' booked for {when}."
    if event == SESSION_CANCELLED:
        reason = session.cancellation_reason or "No reason provided"
        return f"Session '{session.title}' on {when} was cancelled by the {session.cancelled_by}. Reason: {reason}"
    if event == SESSION_STARTED:
        return f"Session '{session.title}' has started."
    if event == SESSION_COMPLETED:
        return f"Session '{session.title}' on {when} is complete. You can now leave a rating."
    if event == SESSION_NO_SHOW:
        return f"Session '{session.title}' on {when} was marked as a no-show."
    return f"Session '{session.title}' was updated."


def _send_notification_email(email: SessionEmail, *, notification_id: Optional[int], recipient_id: Optional[int]) -> None:
    """Send SMTP mail in a background thread so API latency stays low."""
    if not send_email(email):
        logger.info(
            "Notification email not sent (recipient_id=%s, notification_id=%s)",
            recipient_id,
            notification_id,
        )


def dispatch_email_for_notification(db: Session, notification: Notification) -> bool:
    """
    Best-effort email delivery for a committed notification.
    This function never raises and should not impact request success.
    """
    try:
        if not is_email_enabled():
            return False

        recipient = db.query(models.User).filter(
            models.User.id == notification.recipient_id
        ).first()
        if not recipient or not recipient.email:
            return False

        email = compose_session_email(
            to_email=recipient.email,
            recipient_name=recipient.name,
            event_type=notification.event_type,
            message=notification.message,
            session_id=notification.session_id,
        )
        worker = threading.Thread(
            target=_send_notification_email,
            args=(email,),
            kwargs={
                "notification_id": getattr(notification, "id", None),
                "recipient_id": notification.recipient_id,
            },
            daemon=True,
        )
        worker.start()
        return True
    except Exception as exc:
        logger.warning(
            "Notification email dispatch failed (notification_id=%s): %s",
            getattr(notification, "id", None),
            exc,
        )
        return False


def notify(
    db: Session,
    event: str,
    session: models.Session,
    *,
    actor_id: Optional[int] = None,
) -> List[Notification]:
    """
    Fire-and-forget sink for session events.

    Must be called after the state transition has been committed. Records
    in-app notifications and queues emails; any failure is logged and
    swallowed so the caller's result is unaffected.
    """
    try:
        created = [
            create_notification(
                db,
                recipient_id=recipient_id,
                actor_id=actor_id,
                session_id=session.id,
                event_type=event,
                message=_message(event, session),
            )
            for recipient_id in _recipients(event, session, actor_id)
        ]
        db.commit()
    except SQLAlchemyError as exc:
        db.rollback()
        logger.warning(
            "Notification for %s on session %s not recorded: %s",
            event,
            getattr(session, "id", None),
            exc,
        )
        return []
    except Exception as exc:
        db.rollback()
        logger.warning(
            "Notification for %s on session %s failed: %s",
            event,
            getattr(session, "id", None),
            exc,
        )
        return []

    for notification in created:
        dispatch_email_for_notification(db, notification)
    return created
