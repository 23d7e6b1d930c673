import pytest
import os
from datetime import date, timedelta
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["ENABLE_API_KEY_SECURITY"] = "false"

from app.core.config import settings
from app.core.rate_limit import RateLimiter, get_rate_limiter
from app.core.time_of_day import TimeOfDay
from app.database import Base, get_db
from app.main import app
from app.models.company import Company
from app.models.job_seeker import JobSeeker
from app.models.schedule import InterviewType, Schedule, ScheduleStatus
from app.models.user import User
from app.services.notification import get_notifier
from fastapi.testclient import TestClient


class RecordingNotifier:
    """Stands in for NotificationService; remembers what it was asked to send."""

    def __init__(self):
        self.sent = []

    def send_booking_notifications(self, notification):
        self.sent.append(notification)
        return {"in_app": True, "email": False, "slack_webhook": False, "slack_dm": False}


@pytest.fixture(scope="function")
def engine():
    """A fresh in-memory database per test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(scope="function")
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def rate_limiter():
    return RateLimiter(storage_uri="memory://")


@pytest.fixture(scope="function")
def block_settings():
    """Restores the buffer defaults after tests that change them."""
    original = settings.schedule_block.model_copy()
    yield settings.schedule_block
    settings.schedule_block = original


@pytest.fixture(scope="function")
def client(db_session, notifier, rate_limiter):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    app.dependency_overrides[get_rate_limiter] = lambda: rate_limiter
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
def staff_user(db_session):
    user = User(email="recruiter@example.com", full_name="Rei Recruiter", slack_user_id="U123")
    db_session.add(user)
    db_session.commit()
    return user


@pytest.fixture(scope="function")
def job_seeker(db_session, staff_user):
    seeker = JobSeeker(name="Taro Yamada", registered_by_id=staff_user.id)
    db_session.add(seeker)
    db_session.commit()
    return seeker


@pytest.fixture(scope="function")
def company(db_session):
    company = Company(name="Acme Corp", contact_name="Hana", contact_email="hana@acme.example")
    db_session.add(company)
    db_session.commit()
    return company


@pytest.fixture(scope="function")
def interview_day():
    return date.today() + timedelta(days=7)


@pytest.fixture(scope="function")
def make_slot(db_session, job_seeker, interview_day):
    """Factory for availability slots on the interview day."""
    def _make_slot(start, end, interview_type=InterviewType.online,
                   status=ScheduleStatus.available, day=None, seeker=None):
        slot = Schedule(
            job_seeker_id=(seeker or job_seeker).id,
            date=day or interview_day,
            start_time=TimeOfDay.parse(start),
            end_time=TimeOfDay.parse(end),
            interview_type=interview_type,
            status=status,
        )
        db_session.add(slot)
        db_session.commit()
        return slot
    return _make_slot


@pytest.fixture(scope="function")
def slots_of(db_session):
    """Current (start, end, type, status) tuples of a job seeker on a day, ordered by start."""
    def _slots_of(seeker, day):
        db_session.expire_all()
        rows = db_session.query(Schedule).filter(
            Schedule.job_seeker_id == seeker.id,
            Schedule.date == day,
        ).order_by(Schedule.start_time.asc(), Schedule.interview_type.asc()).all()
        return [(str(s.start_time), str(s.end_time), s.interview_type.value, s.status.value) for s in rows]
    return _slots_of
