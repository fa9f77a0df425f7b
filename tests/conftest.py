import os
from datetime import datetime, timedelta, timezone

# settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("AUTO_CREATE_TABLES", "false")
os.environ.setdefault("LOCK_BACKEND", "local")

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from config.database import Base
import api.attendance.attendance_records_model  # noqa: F401
import api.presence.presence_model  # noqa: F401
import api.guard_sessions.guard_sessions_model  # noqa: F401
import api.manual_decisions.manual_decisions_model  # noqa: F401
import api.external_visitors.external_visitors_model  # noqa: F401
from utils.lock_utils import LocalKeyLocks

T0 = datetime(2026, 3, 2, 13, 0, tzinfo=timezone.utc)


class FakeClock:
    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now = self.now + timedelta(**kwargs)
        return self.now


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def locks():
    return LocalKeyLocks(wait_seconds=1.0, lease_seconds=5.0)


@pytest.fixture
def scan():
    """Builds a valid scan payload; keyword arguments override fields."""
    def _scan(**overrides):
        payload = {
            "person_dni": "70123456",
            "first_name": "Ana",
            "last_name": "Quispe",
            "university_code": "20201234",
            "faculty_code": "FIIS",
            "school_code": "SIS",
            "type": "entry",
            "checkpoint": "Puerta 1",
            "guard_id": "G1",
            "guard_name": "Carlos Ramos",
        }
        payload.update(overrides)
        return payload
    return _scan
