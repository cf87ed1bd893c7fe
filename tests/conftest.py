# ruff: noqa: E402
import os

import pytest

# Set testing environment flags before importing the app or settings
os.environ["APP_ENV"] = "test"
os.environ["DISABLE_EXTERNAL_NOTIFICATIONS"] = "1"

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app import models
from app.core.app_factory import create_app
from app.core.config import settings
from app.models.base import Base
from app.modules.notifications.devices import DeviceTokenStore
from app.modules.notifications.history import HistoryRecorder
from app.modules.notifications.models import OrganizationRole
from app.modules.notifications.push import PushDispatcher
from tests.doubles import FakeSender
from tests.testclient import TestClient

# One shared in-memory connection so the app thread and the test see the same rows.
engine = create_engine(
    "sqlite://",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

models.load_all()

object.__setattr__(settings, "environment", "test")
object.__setattr__(settings, "log_dir", None)


@pytest.fixture(autouse=True, scope="function")
def _schema():
    """Fresh tables for every test."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def session_factory():
    return TestingSessionLocal


@pytest.fixture(scope="function")
def session(session_factory):
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def fake_sender():
    return FakeSender()


@pytest.fixture(scope="function")
def dispatcher(fake_sender):
    return PushDispatcher(enabled=True, sender=fake_sender)


@pytest.fixture(scope="function")
def recorder(session_factory):
    return HistoryRecorder(session_factory)


@pytest.fixture(scope="function")
def device_store(session_factory):
    return DeviceTokenStore(session_factory)


@pytest.fixture(scope="function")
def add_roles(session):
    """Insert `(user_id, org_id, role)` membership rows."""

    def _add(*memberships):
        session.add_all(
            OrganizationRole(user_id=user_id, organization_id=org_id, role=role)
            for user_id, org_id, role in memberships
        )
        session.commit()

    return _add


@pytest.fixture(scope="function")
def app(session_factory, dispatcher):
    return create_app(settings=settings, session_factory=session_factory, dispatcher=dispatcher)


@pytest.fixture(scope="function")
def client(app):
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture(scope="function")
def auth_headers():
    def _headers(user_id="carer-1", org_id="org-1"):
        headers = {"X-User-Id": user_id}
        if org_id is not None:
            headers["X-Organization-Id"] = org_id
        return headers

    return _headers
