# mentorhub/services/scheduling_service.py
"""
Scheduling Service

Orchestrates availability, booking, cancellation and the session lifecycle
on top of the pure rules in mentorhub.scheduling. Every decision that depends
on the current time reads it from the injected Clock; every status change is
a conditional update so overlapping writers stay consistent.

Auto-completion runs lazily: listing, dashboard and single-session reads
sweep the sessions they are about to return. The same sweep is exposed as
sweep_auto_completions() for the admin endpoint, the cron script and the
optional in-process periodic task.
"""

import logging
from dataclasses import dataclass
from datetime import UTC, date, datetime, timedelta
from typing import Any, Callable, Dict, Iterable, List, Mapping, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from mentorhub import errors
from mentorhub.config import Settings, settings as default_settings
from mentorhub.crud import availability as availability_crud
from mentorhub.crud import session as session_crud
from mentorhub.crud import user as user_crud
from mentorhub.errors import (
    ConflictError,
    NotFoundError,
    PermissionDenied,
    PolicyViolation,
    ValidationError,
)
from mentorhub.models.session import Session as SessionModel, SessionType
from mentorhub.models.user import ROLE_MENTOR, ROLE_STUDENT
from mentorhub.scheduling import availability as weekly_rules
from mentorhub.scheduling import lifecycle, policy, resolver
from mentorhub.scheduling.availability import WeeklyAvailability
from mentorhub.scheduling.lifecycle import (
    AUTO_COMPLETABLE,
    NO_SHOW_ELIGIBLE,
    STARTABLE,
    Clock,
    SessionStatus,
    SystemClock,
)
from mentorhub.services import notification_service

logger = logging.getLogger(__name__)

DEFAULT_TITLE = "Mentoring Session"
DEFAULT_CANCELLATION_REASON = "No reason provided"

Notifier = Callable[..., Any]


@dataclass(frozen=True)
class AvailabilitySnapshot:
    mentor_id: int
    weekly: WeeklyAvailability
    mentor_name: Optional[str] = None
    last_updated: Optional[datetime] = None
    version: int = 0


class SchedulingService:
    """Session scheduling and lifecycle operations over one database session."""

    def __init__(
        self,
        db: Session,
        clock: Optional[Clock] = None,
        notifier: Optional[Notifier] = None,
        config: Optional[Settings] = None,
    ):
        self.db = db
        self.clock = clock or SystemClock()
        self.notifier = notifier or notification_service.notify
        self.config = config or default_settings
        self.tz = ZoneInfo(self.config.PLATFORM_TIMEZONE)

    # ======================
    # HELPERS
    # ======================

    def _now(self) -> datetime:
        return self.clock.now().astimezone(UTC)

    def _require_mentor(self, mentor_id: int):
        mentor = user_crud.get_active_user_with_role(self.db, mentor_id, ROLE_MENTOR)
        if not mentor:
            raise NotFoundError(
                "Mentor not found",
                code=errors.MENTOR_NOT_FOUND,
                details={"mentor_id": mentor_id},
            )
        return mentor

    def _require_student(self, student_id: int):
        student = user_crud.get_active_user_with_role(self.db, student_id, ROLE_STUDENT)
        if not student:
            raise NotFoundError(
                "Student not found",
                code=errors.STUDENT_NOT_FOUND,
                details={"student_id": student_id},
            )
        return student

    def _require_session(self, session_id: int) -> SessionModel:
        session = session_crud.get_session(self.db, session_id)
        if not session:
            raise NotFoundError(
                "Session not found",
                code=errors.SESSION_NOT_FOUND,
                details={"session_id": session_id},
            )
        return session

    @staticmethod
    def _require_participant(session: SessionModel, actor_id: Optional[int]) -> None:
        if actor_id is None:
            return
        if actor_id not in (session.student_id, session.mentor_id):
            raise PermissionDenied(
                "Not a participant of this session",
                code=errors.NOT_SESSION_PARTICIPANT,
                details={"session_id": session.id},
            )

    def _safe_notify(self, event: str, session: SessionModel, actor_id: Optional[int] = None) -> None:
        try:
            self.notifier(self.db, event, session, actor_id=actor_id)
        except Exception as exc:
            logger.warning(
                "Notification %s for session %s failed: %s", event, session.id, exc
            )

    def _commit(self) -> None:
        try:
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            raise

    def normalize_start(self, value: Any) -> datetime:
        """
        Convert a requested start into the canonical UTC instant.

        Accepts a datetime or an ISO 8601 string. Naive values are wall-clock
        times in the platform timezone.
        """
        if value is None or value == "":
            raise ValidationError(
                "scheduled_start is required",
                code=errors.MISSING_FIELD,
                details={"field": "scheduled_start"},
            )
        if isinstance(value, str):
            try:
                value = datetime.fromisoformat(value.strip().replace("Z", "+00:00"))
            except ValueError:
                raise ValidationError(
                    "Invalid scheduled_start format. Use ISO 8601 (e.g., '2026-02-20T14:00:00+05:30')",
                    code=errors.INVALID_START,
                    details={"value": value},
                )
        if not isinstance(value, datetime):
            raise ValidationError(
                "scheduled_start must be a datetime",
                code=errors.INVALID_START,
            )
        if value.tzinfo is None:
            value = value.replace(tzinfo=self.tz)
        return value.astimezone(UTC).replace(microsecond=0)

    # ======================
    # AVAILABILITY
    # ======================

    def availability_snapshot(self, mentor_id: int) -> AvailabilitySnapshot:
        mentor = self._require_mentor(mentor_id)
        record = availability_crud.get_record(self.db, mentor_id)
        return AvailabilitySnapshot(
            mentor_id=mentor_id,
            mentor_name=mentor.name,
            weekly=availability_crud.load_weekly(record),
            last_updated=record.last_updated if record else None,
            version=record.version if record else 0,
        )

    def get_availability(self, mentor_id: int) -> WeeklyAvailability:
        return self.availability_snapshot(mentor_id).weekly

    def put_availability(self, mentor_id: int, weekly: WeeklyAvailability) -> AvailabilitySnapshot:
        """Validate then replace a mentor's availability; invalid input writes nothing."""
        mentor = self._require_mentor(mentor_id)
        weekly_rules.validate(weekly)
        stored = weekly_rules.normalized(weekly)

        record = availability_crud.upsert_weekly(self.db, mentor_id, stored, self._now())
        self._commit()
        self.db.refresh(record)
        logger.info("Availability updated for mentor %s (version %s)", mentor_id, record.version)
        return AvailabilitySnapshot(
            mentor_id=mentor_id,
            mentor_name=mentor.name,
            weekly=stored,
            last_updated=record.last_updated,
            version=record.version,
        )

    def resolve_bookable_slots(
        self,
        mentor_id: int,
        day: date,
        exclude_booked: bool = False,
    ) -> List[datetime]:
        weekly = self.get_availability(mentor_id)
        slots = list(
            resolver.resolve(weekly, day, self.tz, self.config.SLOT_GRANULARITY_MINUTES)
        )
        if exclude_booked and slots:
            window_start, window_end = resolver.day_bounds(day, self.tz)
            taken = set(session_crud.list_taken_starts(self.db, mentor_id, window_start, window_end))
            slots = [slot for slot in slots if slot not in taken]
        return slots

    # ======================
    # BOOKING
    # ======================

    def _validate_metadata(self, metadata: Mapping[str, Any]) -> Dict[str, Any]:
        title = (metadata.get("title") or DEFAULT_TITLE).strip() or DEFAULT_TITLE
        session_type = metadata.get("session_type") or SessionType.VIDEO_CALL.value
        try:
            session_type = SessionType(session_type).value
        except ValueError:
            raise ValidationError(
                f"Unknown session type '{session_type}'",
                code=errors.INVALID_SESSION_TYPE,
                details={"allowed": [item.value for item in SessionType]},
            )
        return {
            "title": title[:200],
            "description": metadata.get("description"),
            "session_type": session_type,
            "notes": metadata.get("notes"),
            "meeting_link": metadata.get("meeting_link"),
        }

    def book_session(
        self,
        student_id: int,
        mentor_id: int,
        start: Any,
        duration_minutes: Optional[int] = None,
        metadata: Optional[Mapping[str, Any]] = None,
    ) -> SessionModel:
        if not student_id or not mentor_id:
            raise ValidationError(
                "student_id and mentor_id are required",
                code=errors.MISSING_FIELD,
            )
        if duration_minutes is None:
            duration_minutes = self.config.DEFAULT_SESSION_DURATION_MINUTES
        if isinstance(duration_minutes, bool) or not isinstance(duration_minutes, int) or duration_minutes <= 0:
            raise ValidationError(
                "duration_minutes must be a positive integer",
                code=errors.INVALID_DURATION,
                details={"duration_minutes": duration_minutes},
            )
        if student_id == mentor_id:
            raise ValidationError("Cannot book a session with yourself", code=errors.SELF_BOOKING)

        fields = self._validate_metadata(metadata or {})
        scheduled_start = self.normalize_start(start)

        self._require_student(student_id)
        self._require_mentor(mentor_id)

        if self.config.REQUIRE_CONNECTION_FOR_BOOKING and not user_crud.has_accepted_connection(
            self.db, student_id, mentor_id
        ):
            raise PolicyViolation(
                "You need an accepted connection with this mentor before booking",
                code=errors.NOT_CONNECTED,
            )

        now = self._now()
        if scheduled_start <= now:
            raise ValidationError(
                "Sessions must be booked in the future",
                code=errors.INVALID_START,
                details={"scheduled_start": scheduled_start.isoformat()},
            )

        weekly = self.get_availability(mentor_id)
        if not resolver.is_bookable(
            weekly, scheduled_start, self.tz, self.config.SLOT_GRANULARITY_MINUTES
        ):
            raise PolicyViolation(
                "The requested time is not within the mentor's availability",
                code=errors.SLOT_NOT_AVAILABLE,
                details={"scheduled_start": scheduled_start.isoformat()},
            )

        if session_crud.find_active_at(self.db, mentor_id, scheduled_start):
            raise ConflictError(
                "This slot is already booked",
                code=errors.SLOT_ALREADY_BOOKED,
                details={"scheduled_start": scheduled_start.isoformat()},
            )

        try:
            session = session_crud.create_session(
                self.db,
                student_id=student_id,
                mentor_id=mentor_id,
                scheduled_start=scheduled_start,
                duration_minutes=duration_minutes,
                status=SessionStatus.SCHEDULED.value,
                **fields,
            )
            self.db.commit()
        except IntegrityError:
            # Lost a race with another booking for the same mentor instant.
            self.db.rollback()
            raise ConflictError(
                "This slot is already booked",
                code=errors.SLOT_ALREADY_BOOKED,
                details={"scheduled_start": scheduled_start.isoformat()},
            )
        self.db.refresh(session)

        logger.info(
            "Session %s booked: student=%s mentor=%s start=%s",
            session.id,
            student_id,
            mentor_id,
            scheduled_start.isoformat(),
        )
        self._safe_notify(notification_service.SESSION_BOOKED, session, actor_id=student_id)
        return session

    # ======================
    # CANCELLATION
    # ======================

    def request_cancellation(
        self,
        session_id: int,
        actor_role: str,
        reason: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> SessionModel:
        session = self._require_session(session_id)
        if actor_id is not None:
            owner_id = {
                policy.ROLE_STUDENT: session.student_id,
                policy.ROLE_MENTOR: session.mentor_id,
            }.get(actor_role)
            if owner_id is not None and owner_id != actor_id:
                raise PermissionDenied(
                    "Not authorized to cancel this session",
                    code=errors.NOT_SESSION_PARTICIPANT,
                    details={"session_id": session_id},
                )

        now = self._now()
        # A session already past its completion point is completed, not cancelled.
        if self.sweep_auto_completions([session], now=now):
            self.db.refresh(session)

        policy.ensure_can_cancel(
            session.scheduled_start,
            now,
            actor_role,
            session.status,
            timedelta(hours=self.config.STUDENT_CANCEL_NOTICE_HOURS),
        )

        changed = session_crud.conditional_status_update(
            self.db,
            session_id,
            policy.CANCELLABLE_STATUSES,
            {
                "status": SessionStatus.CANCELLED.value,
                "cancelled_at": now,
                "cancelled_by": actor_role,
                "cancellation_reason": (reason or "").strip() or DEFAULT_CANCELLATION_REASON,
            },
        )
        if not changed:
            self.db.rollback()
            raise ConflictError(
                "Session status changed before the cancellation was applied",
                code=errors.STATUS_CHANGED,
                details={"session_id": session_id},
            )
        self._commit()
        self.db.refresh(session)

        logger.info("Session %s cancelled by %s", session_id, actor_role)
        self._safe_notify(notification_service.SESSION_CANCELLED, session, actor_id=actor_id)
        return session

    # ======================
    # LIFECYCLE
    # ======================

    def start_session(self, session_id: int, actor_id: int) -> SessionModel:
        session = self._require_session(session_id)
        if session.mentor_id != actor_id:
            raise PolicyViolation(
                "Only the assigned mentor can start this session",
                code=errors.NOT_SESSION_MENTOR,
                details={"session_id": session_id},
            )

        now = self._now()
        # A session already past its completion point is completed, not started.
        self.sweep_auto_completions([session], now=now)
        self.db.refresh(session)

        lifecycle.ensure_can_start(
            session.status,
            session.scheduled_start,
            now,
            self.config.EARLY_START_WINDOW_MINUTES,
        )
        changed = session_crud.conditional_status_update(
            self.db,
            session_id,
            STARTABLE,
            {"status": SessionStatus.IN_PROGRESS.value},
        )
        if not changed:
            self.db.rollback()
            raise ConflictError(
                "Session status changed before it could be started",
                code=errors.STATUS_CHANGED,
                details={"session_id": session_id},
            )
        self._commit()
        self.db.refresh(session)

        logger.info("Session %s started by mentor %s", session_id, actor_id)
        self._safe_notify(notification_service.SESSION_STARTED, session, actor_id=actor_id)
        return session

    def mark_no_show(self, session_id: int) -> SessionModel:
        """Administrative override for a session nobody attended."""
        session = self._require_session(session_id)
        now = self._now()
        if SessionStatus(session.status) not in NO_SHOW_ELIGIBLE:
            raise PolicyViolation(
                f"Cannot mark a '{session.status}' session as no-show",
                code=errors.INVALID_STATUS,
                details={"status": session.status},
            )
        if now < session.scheduled_start:
            raise PolicyViolation(
                "A session cannot be marked no-show before it starts",
                code=errors.SESSION_NOT_STARTED,
                details={"scheduled_start": session.scheduled_start.isoformat()},
            )

        changed = session_crud.conditional_status_update(
            self.db,
            session_id,
            NO_SHOW_ELIGIBLE,
            {"status": SessionStatus.NO_SHOW.value},
        )
        if not changed:
            self.db.rollback()
            raise ConflictError(
                "Session status changed before it could be marked no-show",
                code=errors.STATUS_CHANGED,
                details={"session_id": session_id},
            )
        self._commit()
        self.db.refresh(session)

        logger.info("Session %s marked no-show", session_id)
        self._safe_notify(notification_service.SESSION_NO_SHOW, session)
        return session

    def sweep_auto_completions(
        self,
        sessions: Optional[Iterable[SessionModel]] = None,
        now: Optional[datetime] = None,
    ) -> List[int]:
        """
        Complete every session of the working set whose end plus buffer has passed.

        Uses a conditional update per session, so re-running it, or running it
        concurrently with another sweep or a cancellation, is a no-op for
        sessions that already left the open states. Returns the ids this call
        actually transitioned.
        """
        now = (now or self._now()).astimezone(UTC)
        if sessions is None:
            sessions = session_crud.list_open_sessions(self.db, started_before=now)

        buffer_minutes = self.config.AUTO_COMPLETE_BUFFER_MINUTES
        due_ids = [
            session.id
            for session in sessions
            if lifecycle.is_due_for_completion(
                session.status,
                session.scheduled_start,
                session.duration_minutes,
                now,
                buffer_minutes,
            )
        ]

        completed: List[int] = []
        for session_id in due_ids:
            if session_crud.conditional_status_update(
                self.db,
                session_id,
                AUTO_COMPLETABLE,
                {"status": SessionStatus.COMPLETED.value, "completed_at": now},
            ):
                completed.append(session_id)
            else:
                logger.info("Session %s already left the open states; skipping", session_id)

        if not completed:
            return completed

        self._commit()
        logger.info("Auto-completed %d session(s): %s", len(completed), completed)
        for session in session_crud.get_sessions_by_ids(self.db, completed):
            self._safe_notify(notification_service.SESSION_COMPLETED, session)
        return completed

    def _sweep_for_user(self, user_id: int) -> List[int]:
        now = self._now()
        open_sessions = session_crud.list_open_sessions(self.db, user_id=user_id, started_before=now)
        return self.sweep_auto_completions(open_sessions, now=now)

    # ======================
    # OUTCOME & DETAILS
    # ======================

    def attach_outcome(
        self,
        session_id: int,
        rating: Optional[int],
        feedback: Optional[str] = None,
        actor_id: Optional[int] = None,
    ) -> SessionModel:
        session = self._require_session(session_id)
        if actor_id is not None and actor_id != session.student_id:
            raise PermissionDenied(
                "Only the student of this session can rate it",
                code=errors.NOT_SESSION_PARTICIPANT,
                details={"session_id": session_id},
            )

        self.sweep_auto_completions([session])
        self.db.refresh(session)

        if SessionStatus(session.status) is not SessionStatus.COMPLETED:
            raise PolicyViolation(
                "Ratings and feedback can only be attached to completed sessions",
                code=errors.INVALID_STATUS,
                details={"status": session.status},
            )
        if isinstance(rating, bool) or not isinstance(rating, int) or not 1 <= rating <= 5:
            raise ValidationError(
                "Rating must be between 1 and 5",
                code=errors.INVALID_RATING,
                details={"rating": rating},
            )

        cleaned_feedback = feedback.strip() if feedback else None
        session_crud.update_fields(
            self.db,
            session,
            rating=rating,
            feedback=cleaned_feedback or None,
        )
        self._commit()
        self.db.refresh(session)
        logger.info("Outcome attached to session %s (rating=%s)", session_id, rating)
        return session

    def update_session_details(
        self,
        session_id: int,
        actor_id: Optional[int],
        notes: Optional[str] = None,
        meeting_link: Optional[str] = None,
    ) -> SessionModel:
        session = self._require_session(session_id)
        self._require_participant(session, actor_id)

        changes: Dict[str, Any] = {}
        if notes is not None:
            changes["notes"] = notes.strip() or None
        if meeting_link is not None:
            changes["meeting_link"] = meeting_link.strip() or None
        if changes:
            session_crud.update_fields(self.db, session, **changes)
            self._commit()
            self.db.refresh(session)
        return session

    # ======================
    # READ PATHS
    # ======================

    def get_session(self, session_id: int, actor_id: Optional[int] = None) -> SessionModel:
        session = self._require_session(session_id)
        self._require_participant(session, actor_id)
        if self.sweep_auto_completions([session]):
            self.db.refresh(session)
        return session

    def list_sessions_for_user(
        self,
        user_id: int,
        status: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> List[SessionModel]:
        statuses = None
        if status:
            try:
                wanted = lifecycle.normalize_status(status)
            except ValueError:
                raise ValidationError(
                    f"Unknown session status '{status}'",
                    code=errors.INVALID_STATUS,
                    details={"allowed": [item.value for item in SessionStatus]},
                )
            statuses = [wanted]
            if wanted is SessionStatus.SCHEDULED:
                statuses.append(SessionStatus.UPCOMING)

        self._sweep_for_user(user_id)
        return session_crud.list_sessions_for_user(self.db, user_id, statuses=statuses, limit=limit)

    def dashboard(self, user_id: int, completed_limit: int = 10) -> Dict[str, Any]:
        self._sweep_for_user(user_id)
        now = self._now()

        upcoming = session_crud.list_sessions_for_user(
            self.db,
            user_id,
            statuses=[SessionStatus.SCHEDULED, SessionStatus.UPCOMING, SessionStatus.IN_PROGRESS],
            ascending=True,
        )
        upcoming = [
            session
            for session in upcoming
            if lifecycle.session_end(session.scheduled_start, session.duration_minutes) >= now
        ]
        completed = session_crud.list_sessions_for_user(
            self.db,
            user_id,
            statuses=[SessionStatus.COMPLETED],
            limit=completed_limit,
        )
        counterpart_ids = {
            session.mentor_id if session.student_id == user_id else session.student_id
            for session in upcoming + completed
        }
        return {
            "upcoming_sessions": upcoming,
            "completed_sessions": completed,
            "quick_stats": {
                "upcoming_sessions": len(upcoming),
                "completed_sessions": len(completed),
                "total_connections": len(counterpart_ids),
                "total_sessions": session_crud.count_sessions_for_user(self.db, user_id),
                "average_rating": round(session_crud.average_rating_for_user(self.db, user_id), 2),
            },
        }
