"""Pytest bootstrap and shared fixtures."""

from datetime import UTC, datetime
from pathlib import Path
import sys

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Ensure project root is on sys.path so `import mentorhub` works
PROJECT_ROOT = Path(__file__).resolve().parents[1]
project_root_str = str(PROJECT_ROOT)
if project_root_str not in sys.path:
    sys.path.insert(0, project_root_str)

from mentorhub.config import Settings  # noqa: E402
from mentorhub.database import Base  # noqa: E402
from mentorhub.models.user import User  # noqa: E402
from mentorhub.scheduling.availability import (  # noqa: E402
    WEEKDAYS,
    DayAvailability,
    TimeSlot,
    WeeklyAvailability,
)
from mentorhub.scheduling.lifecycle import FixedClock  # noqa: E402
from mentorhub.services.scheduling_service import SchedulingService  # noqa: E402

# Sunday 2026-03-01 09:00 in Asia/Kolkata
NOW = datetime(2026, 3, 1, 3, 30, tzinfo=UTC)


class RecordingNotifier:
    """Collects (event, session_id, actor_id) instead of writing notifications."""

    def __init__(self):
        self.events = []

    def __call__(self, db, event, session, *, actor_id=None):
        self.events.append((event, session.id, actor_id))

    def of(self, event):
        return [entry for entry in self.events if entry[0] == event]


def make_weekly(**days) -> WeeklyAvailability:
    """
    make_weekly(monday=[("09:00", "11:00")]) builds a full week where only the
    named days are available with the given (start, end) slots.
    """
    built = {}
    for day in WEEKDAYS:
        ranges = days.get(day, [])
        built[day] = DayAvailability(
            available=bool(ranges),
            slots=tuple(
                TimeSlot(id=f"{day}-{index}", start=start, end=end)
                for index, (start, end) in enumerate(ranges)
            ),
        )
    return WeeklyAvailability(days=built)


@pytest.fixture
def db_session():
    # One shared connection so TestClient worker threads see the same database
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    SessionLocal = sessionmaker(bind=engine)
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
        engine.dispose()


@pytest.fixture
def make_user(db_session):
    counter = {"n": 0}

    def _make_user(role: str = "student", name: str = None, email: str = None, is_active: bool = True) -> User:
        counter["n"] += 1
        user = User(
            name=name or f"{role.title()} {counter['n']}",
            email=email or f"{role}{counter['n']}@test.edu",
            password_hash="hash",
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make_user


@pytest.fixture
def student(make_user):
    return make_user("student", name="Asha Student")


@pytest.fixture
def mentor(make_user):
    return make_user("mentor", name="Ravi Mentor")


@pytest.fixture
def admin(make_user):
    return make_user("admin", name="Platform Admin")


@pytest.fixture
def clock():
    return FixedClock(NOW)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def test_settings():
    return Settings(_env_file=None, PLATFORM_TIMEZONE="Asia/Kolkata")


@pytest.fixture
def service(db_session, clock, notifier, test_settings):
    return SchedulingService(db_session, clock=clock, notifier=notifier, config=test_settings)


@pytest.fixture
def monday_mentor(service, mentor):
    """Mentor available Mondays 09:00-11:00 IST (03:30-05:30 UTC)."""
    service.put_availability(mentor.id, make_weekly(monday=[("09:00", "11:00")]))
    return mentor
