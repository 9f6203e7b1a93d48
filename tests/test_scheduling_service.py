from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from mentorhub import errors
from mentorhub.config import Settings
from mentorhub.crud import session as session_crud
from mentorhub.errors import (
    ConflictError,
    NotFoundError,
    PermissionDenied,
    PolicyViolation,
    ValidationError,
)
from mentorhub.models.connection import Connection
from mentorhub.models.notification import Notification
from mentorhub.models.session import Session as SessionModel
from mentorhub.services import notification_service
from mentorhub.services.scheduling_service import SchedulingService

from conftest import NOW, make_weekly

# Monday 2026-03-02 in Asia/Kolkata
MON_9 = datetime(2026, 3, 2, 3, 30, tzinfo=UTC)
MON_10 = datetime(2026, 3, 2, 4, 30, tzinfo=UTC)
MONDAY = date(2026, 3, 2)


def _book(service, student, mentor, start=MON_10, **kwargs):
    return service.book_session(student.id, mentor.id, start, **kwargs)


# ======================
# AVAILABILITY
# ======================

def test_unknown_mentor_has_no_availability(service, student):
    with pytest.raises(NotFoundError) as exc_info:
        service.get_availability(student.id)
    assert exc_info.value.code == errors.MENTOR_NOT_FOUND


def test_mentor_without_record_gets_default_week(service, mentor):
    snapshot = service.availability_snapshot(mentor.id)
    assert snapshot.version == 0
    assert snapshot.last_updated is None
    assert not any(day.available for day in snapshot.weekly.days.values())


def test_put_availability_persists_and_bumps_version(service, mentor, clock):
    first = service.put_availability(mentor.id, make_weekly(monday=[("09:00", "11:00")]))
    assert first.version == 1
    assert first.last_updated == NOW

    clock.advance(hours=1)
    second = service.put_availability(mentor.id, make_weekly(tuesday=[("14:00", "15:00")]))
    assert second.version == 2
    assert second.last_updated == NOW + timedelta(hours=1)

    stored = service.get_availability(mentor.id)
    assert not stored.day("monday").available
    assert stored.day("tuesday").slots[0].start == "14:00"


def test_invalid_availability_leaves_stored_record_untouched(service, monday_mentor):
    with pytest.raises(ValidationError):
        service.put_availability(monday_mentor.id, make_weekly(monday=[("11:00", "09:00")]))

    snapshot = service.availability_snapshot(monday_mentor.id)
    assert snapshot.version == 1
    assert snapshot.weekly.day("monday").slots[0].end == "11:00"


def test_resolve_bookable_slots_can_hide_booked_starts(service, student, monday_mentor):
    assert service.resolve_bookable_slots(monday_mentor.id, MONDAY) == [MON_9, MON_10]

    _book(service, student, monday_mentor, start=MON_9)
    assert service.resolve_bookable_slots(monday_mentor.id, MONDAY, exclude_booked=True) == [MON_10]
    assert service.resolve_bookable_slots(monday_mentor.id, MONDAY) == [MON_9, MON_10]


# ======================
# BOOKING
# ======================

def test_book_session_persists_scheduled_session(service, student, monday_mentor, notifier):
    session = _book(
        service,
        student,
        monday_mentor,
        metadata={"title": "Resume review", "session_type": "Career Guidance"},
    )

    assert session.id is not None
    assert session.status == "scheduled"
    assert session.scheduled_start == MON_10
    assert session.duration_minutes == 60
    assert session.title == "Resume review"
    assert session.session_type == "Career Guidance"
    assert notifier.events == [("session_booked", session.id, student.id)]


@pytest.mark.parametrize(
    "requested",
    [
        "2026-03-02T10:00:00+05:30",
        "2026-03-02T04:30:00Z",
        "2026-03-02T10:00:00",
        datetime(2026, 3, 2, 10, 0),
    ],
)
def test_requested_start_is_normalized_to_utc(service, student, monday_mentor, requested):
    session = _book(service, student, monday_mentor, start=requested)
    assert session.scheduled_start == MON_10


def test_default_title_and_type(service, student, monday_mentor):
    session = _book(service, student, monday_mentor)
    assert session.title == "Mentoring Session"
    assert session.session_type == "Video Call"


@pytest.mark.parametrize(
    "kwargs,exc_type,code",
    [
        ({"start": None}, ValidationError, errors.MISSING_FIELD),
        ({"start": "next monday"}, ValidationError, errors.INVALID_START),
        ({"duration_minutes": 0}, ValidationError, errors.INVALID_DURATION),
        ({"duration_minutes": -30}, ValidationError, errors.INVALID_DURATION),
        ({"metadata": {"session_type": "Carrier Pigeon"}}, ValidationError, errors.INVALID_SESSION_TYPE),
        ({"start": datetime(2026, 3, 2, 5, 0, tzinfo=UTC)}, PolicyViolation, errors.SLOT_NOT_AVAILABLE),
        ({"start": datetime(2026, 3, 3, 4, 30, tzinfo=UTC)}, PolicyViolation, errors.SLOT_NOT_AVAILABLE),
    ],
)
def test_book_session_rejections(service, student, monday_mentor, kwargs, exc_type, code):
    with pytest.raises(exc_type) as exc_info:
        _book(service, student, monday_mentor, **kwargs)
    assert exc_info.value.code == code
    assert service.db.query(SessionModel).count() == 0


def test_booking_in_the_past_is_rejected(service, student, monday_mentor, clock):
    clock.set(MON_10 + timedelta(minutes=1))
    with pytest.raises(ValidationError) as exc_info:
        _book(service, student, monday_mentor, start=MON_9)
    assert exc_info.value.code == errors.INVALID_START


def test_booking_requires_real_student_and_mentor(service, make_user, monday_mentor, student):
    other_mentor = make_user("mentor")
    with pytest.raises(NotFoundError) as not_student:
        service.book_session(other_mentor.id, monday_mentor.id, MON_10)
    assert not_student.value.code == errors.STUDENT_NOT_FOUND

    with pytest.raises(NotFoundError) as not_mentor:
        service.book_session(student.id, student.id + 999, MON_10)
    assert not_mentor.value.code == errors.MENTOR_NOT_FOUND

    inactive = make_user("mentor", is_active=False)
    with pytest.raises(NotFoundError):
        service.book_session(student.id, inactive.id, MON_10)


def test_cannot_book_with_yourself(service, monday_mentor):
    with pytest.raises(ValidationError) as exc_info:
        service.book_session(monday_mentor.id, monday_mentor.id, MON_10)
    assert exc_info.value.code == errors.SELF_BOOKING


def test_double_booking_same_mentor_instant_is_rejected(service, make_user, student, monday_mentor):
    first = _book(service, student, monday_mentor)
    second_student = make_user("student")

    with pytest.raises(ConflictError) as exc_info:
        _book(service, second_student, monday_mentor)
    assert exc_info.value.code == errors.SLOT_ALREADY_BOOKED

    service.request_cancellation(first.id, "mentor")
    rebooked = _book(service, second_student, monday_mentor)
    assert rebooked.status == "scheduled"


def test_unique_index_catches_booking_race(service, make_user, student, monday_mentor, monkeypatch):
    _book(service, student, monday_mentor)
    # Both requests passed the pre-check before either committed.
    monkeypatch.setattr(session_crud, "find_active_at", lambda *args, **kwargs: None)

    with pytest.raises(ConflictError) as exc_info:
        _book(service, make_user("student"), monday_mentor)
    assert exc_info.value.code == errors.SLOT_ALREADY_BOOKED
    assert service.db.query(SessionModel).count() == 1


def test_connection_requirement(db_session, clock, notifier, student, mentor):
    config = Settings(_env_file=None, REQUIRE_CONNECTION_FOR_BOOKING=True)
    service = SchedulingService(db_session, clock=clock, notifier=notifier, config=config)
    service.put_availability(mentor.id, make_weekly(monday=[("09:00", "11:00")]))

    with pytest.raises(PolicyViolation) as exc_info:
        _book(service, student, mentor)
    assert exc_info.value.code == errors.NOT_CONNECTED

    db_session.add(Connection(student_id=student.id, mentor_id=mentor.id, status="accepted"))
    db_session.commit()
    assert _book(service, student, mentor).status == "scheduled"


def test_notification_failure_does_not_undo_booking(db_session, clock, test_settings, student, mentor):
    def broken_notifier(*args, **kwargs):
        raise RuntimeError("SMTP down")

    service = SchedulingService(db_session, clock=clock, notifier=broken_notifier, config=test_settings)
    service.put_availability(mentor.id, make_weekly(monday=[("09:00", "11:00")]))

    session = _book(service, student, mentor)
    assert db_session.query(SessionModel).filter(SessionModel.id == session.id).one().status == "scheduled"


def test_default_notifier_records_in_app_notifications(db_session, clock, test_settings, student, mentor, monkeypatch):
    monkeypatch.setattr(notification_service, "is_email_enabled", lambda: False)
    service = SchedulingService(db_session, clock=clock, config=test_settings)
    service.put_availability(mentor.id, make_weekly(monday=[("09:00", "11:00")]))

    session = _book(service, student, mentor)
    service.request_cancellation(session.id, "mentor", reason="Conflict", actor_id=mentor.id)

    rows = db_session.query(Notification).order_by(Notification.id).all()
    assert [(n.recipient_id, n.event_type) for n in rows] == [
        (mentor.id, "session_booked"),
        (student.id, "session_cancelled"),
    ]
    assert "Conflict" in rows[1].message


# ======================
# CANCELLATION
# ======================

def test_student_cancels_with_enough_notice(service, student, monday_mentor, notifier):
    session = _book(service, student, monday_mentor, start=MON_10)
    cancelled = service.request_cancellation(session.id, "student", actor_id=student.id)

    assert cancelled.status == "cancelled"
    assert cancelled.cancelled_by == "student"
    assert cancelled.cancelled_at == NOW
    assert cancelled.cancellation_reason == "No reason provided"
    assert notifier.of("session_cancelled") == [("session_cancelled", session.id, student.id)]


def test_student_cannot_cancel_at_exactly_24_hours(service, student, monday_mentor):
    session = _book(service, student, monday_mentor, start=MON_9)  # NOW is MON_9 - 24h
    with pytest.raises(PolicyViolation) as exc_info:
        service.request_cancellation(session.id, "student", actor_id=student.id)
    assert exc_info.value.code == errors.CANCELLATION_WINDOW_CLOSED
    assert service.get_session(session.id).status == "scheduled"


def test_mentor_may_cancel_until_start(service, student, monday_mentor, clock):
    session = _book(service, student, monday_mentor, start=MON_9)
    clock.set(MON_9 - timedelta(seconds=1))
    assert service.request_cancellation(session.id, "mentor", reason="Sick").cancellation_reason == "Sick"

    other = _book(service, student, monday_mentor, start=MON_10)
    clock.set(MON_10)
    with pytest.raises(PolicyViolation):
        service.request_cancellation(other.id, "mentor")


def test_only_participants_may_cancel(service, make_user, student, monday_mentor):
    session = _book(service, student, monday_mentor)
    stranger = make_user("student")
    with pytest.raises(PermissionDenied):
        service.request_cancellation(session.id, "student", actor_id=stranger.id)


def test_cancel_unknown_session(service):
    with pytest.raises(NotFoundError) as exc_info:
        service.request_cancellation(404, "system")
    assert exc_info.value.code == errors.SESSION_NOT_FOUND


def test_second_cancellation_is_a_policy_violation(service, student, monday_mentor):
    session = _book(service, student, monday_mentor)
    service.request_cancellation(session.id, "system")
    with pytest.raises(PolicyViolation) as exc_info:
        service.request_cancellation(session.id, "system")
    assert exc_info.value.code == errors.INVALID_STATUS


def test_admin_cannot_cancel_a_session_past_its_completion_point(
    service, student, monday_mentor, clock, notifier
):
    session = _book(service, student, monday_mentor, start=MON_9)
    clock.set(MON_9 + timedelta(hours=3))

    with pytest.raises(PolicyViolation) as exc_info:
        service.request_cancellation(session.id, "system")
    assert exc_info.value.code == errors.INVALID_STATUS

    stored = service.get_session(session.id)
    assert stored.status == "completed"
    assert stored.completed_at == MON_9 + timedelta(hours=3)
    assert stored.cancelled_at is None
    assert notifier.of(notification_service.SESSION_CANCELLED) == []


def test_cancellation_losing_a_race_raises_conflict(service, db_session, student, monday_mentor):
    session = _book(service, student, monday_mentor)
    # Another writer completes the row after this request read it.
    db_session.query(SessionModel).filter(SessionModel.id == session.id).update(
        {"status": "completed"}, synchronize_session=False
    )

    with pytest.raises(ConflictError) as exc_info:
        service.request_cancellation(session.id, "system")
    assert exc_info.value.code == errors.STATUS_CHANGED


# ======================
# START / NO-SHOW
# ======================

def test_start_session_rules(service, student, monday_mentor, clock, notifier):
    session = _book(service, student, monday_mentor, start=MON_9)

    with pytest.raises(PolicyViolation) as not_mentor:
        service.start_session(session.id, student.id)
    assert not_mentor.value.code == errors.NOT_SESSION_MENTOR

    with pytest.raises(PolicyViolation) as too_early:
        service.start_session(session.id, monday_mentor.id)
    assert too_early.value.code == errors.TOO_EARLY_TO_START

    clock.set(MON_9 - timedelta(minutes=10))
    started = service.start_session(session.id, monday_mentor.id)
    assert started.status == "in-progress"
    assert started.completed_at is None
    assert notifier.of("session_started") == [("session_started", session.id, monday_mentor.id)]

    with pytest.raises(PolicyViolation) as again:
        service.start_session(session.id, monday_mentor.id)
    assert again.value.code == errors.INVALID_STATUS


def test_start_after_completion_point_completes_instead(service, student, monday_mentor, clock):
    session = _book(service, student, monday_mentor, start=MON_9)
    clock.set(MON_9 + timedelta(minutes=70))
    with pytest.raises(PolicyViolation) as exc_info:
        service.start_session(session.id, monday_mentor.id)
    assert exc_info.value.code == errors.INVALID_STATUS
    assert service.get_session(session.id).status == "completed"


def test_mark_no_show(service, student, monday_mentor, clock):
    session = _book(service, student, monday_mentor, start=MON_9)

    with pytest.raises(PolicyViolation) as early:
        service.mark_no_show(session.id)
    assert early.value.code == errors.SESSION_NOT_STARTED

    clock.set(MON_9 + timedelta(minutes=15))
    assert service.mark_no_show(session.id).status == "no-show"

    clock.advance(days=1)
    assert service.sweep_auto_completions() == []
    assert service.get_session(session.id).status == "no-show"

    with pytest.raises(PolicyViolation) as again:
        service.mark_no_show(session.id)
    assert again.value.code == errors.INVALID_STATUS


# ======================
# AUTO-COMPLETION
# ======================

def test_sweep_is_idempotent(service, student, monday_mentor, clock, notifier):
    early = _book(service, student, monday_mentor, start=MON_9)
    late = _book(service, student, monday_mentor, start=MON_10)

    clock.set(MON_10 + timedelta(minutes=70))
    assert service.sweep_auto_completions() == [early.id, late.id]
    assert service.sweep_auto_completions() == []

    for session_id in (early.id, late.id):
        session = service.get_session(session_id)
        assert session.status == "completed"
        assert session.completed_at == MON_10 + timedelta(minutes=70)
    assert len(notifier.of("session_completed")) == 2


def test_sweep_respects_buffer(service, student, monday_mentor, clock):
    session = _book(service, student, monday_mentor, start=MON_9)
    clock.set(MON_9 + timedelta(minutes=69))
    assert service.sweep_auto_completions() == []
    clock.advance(minutes=1)
    assert service.sweep_auto_completions() == [session.id]


def test_in_progress_sessions_are_auto_completed(service, student, monday_mentor, clock):
    session = _book(service, student, monday_mentor, start=MON_9)
    clock.set(MON_9)
    service.start_session(session.id, monday_mentor.id)
    clock.set(MON_9 + timedelta(hours=2))
    assert service.sweep_auto_completions() == [session.id]


def test_cancelled_sessions_are_never_completed(service, student, monday_mentor, clock):
    session = _book(service, student, monday_mentor)
    service.request_cancellation(session.id, "student", actor_id=student.id)

    clock.advance(days=30)
    assert service.sweep_auto_completions() == []
    assert service.get_session(session.id).status == "cancelled"


def test_resweeping_the_same_working_set_is_a_noop(service, student, monday_mentor, clock):
    session = _book(service, student, monday_mentor, start=MON_9)
    clock.set(MON_9 + timedelta(hours=2))
    working_set = [session]

    assert service.sweep_auto_completions(working_set) == [session.id]
    assert service.sweep_auto_completions(working_set) == []


def test_sweep_racing_cancellation_has_one_winner(service, db_session, student, monday_mentor, clock):
    session = _book(service, student, monday_mentor, start=MON_9)
    clock.set(MON_9 + timedelta(hours=2))
    # A cancellation landed after the sweep read its working set.
    db_session.query(SessionModel).filter(SessionModel.id == session.id).update(
        {"status": "cancelled"}, synchronize_session=False
    )
    db_session.commit()

    stale = SessionModel(
        id=session.id,
        status="scheduled",
        scheduled_start=MON_9,
        duration_minutes=60,
    )
    assert service.sweep_auto_completions([stale]) == []
    assert service.get_session(session.id).status == "cancelled"


# ======================
# OUTCOME & DETAILS
# ======================

def test_outcome_requires_completion(service, student, monday_mentor, clock):
    session = _book(service, student, monday_mentor, start=MON_9)
    with pytest.raises(PolicyViolation) as exc_info:
        service.attach_outcome(session.id, 5, "Great", actor_id=student.id)
    assert exc_info.value.code == errors.INVALID_STATUS

    clock.set(MON_9 + timedelta(hours=2))
    rated = service.attach_outcome(session.id, 5, "  Great  ", actor_id=student.id)
    assert rated.status == "completed"
    assert (rated.rating, rated.feedback) == (5, "Great")

    rerated = service.attach_outcome(session.id, 3, None, actor_id=student.id)
    assert (rerated.rating, rerated.feedback) == (3, None)


@pytest.mark.parametrize("rating", [0, 6, None, True])
def test_outcome_rating_range(service, student, monday_mentor, clock, rating):
    session = _book(service, student, monday_mentor, start=MON_9)
    clock.set(MON_9 + timedelta(hours=2))
    with pytest.raises(ValidationError) as exc_info:
        service.attach_outcome(session.id, rating, actor_id=student.id)
    assert exc_info.value.code == errors.INVALID_RATING


def test_only_student_rates(service, student, monday_mentor, clock):
    session = _book(service, student, monday_mentor, start=MON_9)
    clock.set(MON_9 + timedelta(hours=2))
    with pytest.raises(PermissionDenied):
        service.attach_outcome(session.id, 4, actor_id=monday_mentor.id)


def test_update_session_details(service, make_user, student, monday_mentor):
    session = _book(service, student, monday_mentor)
    updated = service.update_session_details(
        session.id,
        monday_mentor.id,
        notes="Bring your resume",
        meeting_link="https://meet.example.com/abc",
    )
    assert updated.notes == "Bring your resume"
    assert updated.meeting_link == "https://meet.example.com/abc"
    assert updated.status == "scheduled"

    cleared = service.update_session_details(session.id, student.id, notes="  ")
    assert cleared.notes is None
    assert cleared.meeting_link == "https://meet.example.com/abc"

    with pytest.raises(PermissionDenied):
        service.update_session_details(session.id, make_user("student").id, notes="hi")


# ======================
# READ PATHS
# ======================

def test_listing_sweeps_lazily_and_filters(service, student, monday_mentor, clock):
    early = _book(service, student, monday_mentor, start=MON_9)
    late = _book(service, student, monday_mentor, start=MON_10)

    clock.set(MON_9 + timedelta(minutes=75))
    listed = service.list_sessions_for_user(student.id)
    assert [s.id for s in listed] == [late.id, early.id]
    assert {s.id: s.status for s in listed} == {early.id: "completed", late.id: "scheduled"}

    assert [s.id for s in service.list_sessions_for_user(monday_mentor.id, status="upcoming")] == [late.id]
    assert [s.id for s in service.list_sessions_for_user(student.id, status="completed")] == [early.id]

    with pytest.raises(ValidationError):
        service.list_sessions_for_user(student.id, status="pending")


def test_dashboard(service, student, monday_mentor, clock):
    early = _book(service, student, monday_mentor, start=MON_9)
    late = _book(service, student, monday_mentor, start=MON_10)

    clock.set(MON_9 + timedelta(minutes=75))
    service.attach_outcome(early.id, 4, "Helpful", actor_id=student.id)

    dashboard = service.dashboard(student.id)
    assert [s.id for s in dashboard["upcoming_sessions"]] == [late.id]
    assert [s.id for s in dashboard["completed_sessions"]] == [early.id]
    assert dashboard["quick_stats"] == {
        "upcoming_sessions": 1,
        "completed_sessions": 1,
        "total_connections": 1,
        "total_sessions": 2,
        "average_rating": 4.0,
    }


def test_get_session_checks_participation(service, make_user, student, monday_mentor):
    session = _book(service, student, monday_mentor)
    assert service.get_session(session.id, actor_id=monday_mentor.id).id == session.id
    with pytest.raises(PermissionDenied):
        service.get_session(session.id, actor_id=make_user("mentor").id)


# ======================
# END TO END
# ======================

def test_book_complete_then_cancel_is_rejected(service, student, mentor, clock):
    service.put_availability(mentor.id, make_weekly(monday=[("10:00", "12:00")]))

    session = service.book_session(student.id, mentor.id, "2026-03-02T10:00:00+05:30", 60)
    assert session.status == "scheduled"

    clock.set(MON_10 + timedelta(minutes=60 + 10))
    assert service.sweep_auto_completions() == [session.id]
    assert service.get_session(session.id).status == "completed"

    with pytest.raises(PolicyViolation):
        service.request_cancellation(session.id, "student", actor_id=student.id)
