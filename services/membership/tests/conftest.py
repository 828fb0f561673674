"""
Pytest configuration and fixtures.

Every test gets a fresh in-memory SQLite database; the API client shares the
test's session so assertions see exactly what the routes wrote.
"""
import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["NOTIFICATION_SERVICE_URL"] = ""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.core.config import settings
from app.core.database import Base
from app.dependencies import get_db
from app.main import app as fastapi_app
from app.models import Membership, Trainer
from app.models.statuses import MembershipStatus
from app.services.notifications import NotificationEmitter

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)
USER_ID = 101
OTHER_USER_ID = 202
ADMIN_ID = 1


class RecordingClient:
    """Stands in for the notification service and keeps what it was sent."""

    def __init__(self):
        self.sent = []

    def send_intent(self, payload):
        self.sent.append(payload)
        return True


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
def db_session(engine):
    TestingSession = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSession()
    yield session
    session.close()


@pytest.fixture
def recording_client():
    return RecordingClient()


@pytest.fixture
def emitter(db_session, recording_client):
    return NotificationEmitter(db_session, client=recording_client)


@pytest.fixture
def trainer_factory(db_session):
    def _create(**overrides):
        values = {"name": "Arjun", "price": Decimal("2000"), "is_active": True}
        values.update(overrides)
        trainer = Trainer(**values)
        db_session.add(trainer)
        db_session.commit()
        db_session.refresh(trainer)
        return trainer

    return _create


@pytest.fixture
def membership_factory(db_session):
    def _create(**overrides):
        values = {
            "user_id": USER_ID,
            "plan_name": "basic",
            "plan_type": "online",
            "plan_mode": "online",
            "duration_months": 3,
            "price": Decimal("3000"),
            "status": MembershipStatus.AWAITING_PAYMENT,
            "trainer_assigned": False,
            "trainer_addon": False,
            "created_at": NOW - timedelta(days=1),
        }
        values.update(overrides)
        if "membership_end_date" in overrides and "end_date" not in overrides:
            values["end_date"] = overrides["membership_end_date"]
        if "membership_start_date" in overrides and "start_date" not in overrides:
            values["start_date"] = overrides["membership_start_date"]
        membership = Membership(**values)
        db_session.add(membership)
        db_session.commit()
        db_session.refresh(membership)
        return membership

    return _create


def make_token(user_id, role="user"):
    return jwt.encode(
        {"sub": str(user_id), "role": role},
        settings.SECRET_KEY,
        algorithm=settings.ALGORITHM,
    )


def auth_headers(user_id=USER_ID, role="user"):
    return {"Authorization": f"Bearer {make_token(user_id, role)}"}


@pytest.fixture
def client(db_session):
    def _override_get_db():
        yield db_session

    fastapi_app.dependency_overrides[get_db] = _override_get_db
    with TestClient(fastapi_app) as test_client:
        yield test_client
    fastapi_app.dependency_overrides.clear()
