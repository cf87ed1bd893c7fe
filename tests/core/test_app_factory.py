import pytest

from app.core.app_factory import build_delivery_stack, create_app, shutdown_delivery_stack
from app.core.config import settings
from app.modules.notifications.push import PushDispatcher
from tests.testclient import TestClient


def test_livez(client):
    assert client.get("/livez").json() == {"status": "ok"}


def test_readyz_reports_database_and_sockets(client):
    res = client.get("/readyz")

    assert res.status_code == 200
    details = res.json()["details"]
    assert details["database"] == "connected"
    assert details["delivery"]["sockets"] == {"chat": 0, "tasks": 0, "timesheet": 0}


def test_request_id_header_is_echoed(client):
    res = client.get("/livez", headers={"X-Request-ID": "req-123"})
    assert res.headers["X-Request-ID"] == "req-123"


def test_lifespan_builds_and_tears_down_stack(app):
    with TestClient(app):
        assert app.state.orchestrator is not None
        assert app.state.push_dispatcher.enabled is True
    assert app.state.orchestrator is None


def test_push_disabled_when_firebase_unavailable(session_factory, monkeypatch):
    from app.core import app_factory

    monkeypatch.setattr(app_factory, "initialize_firebase", lambda settings: False)
    monkeypatch.setattr(settings, "push_notifications_enabled", True)
    app = create_app(settings=settings, session_factory=session_factory)

    with TestClient(app):
        assert app.state.push_dispatcher.enabled is False


def test_services_unavailable_before_startup(session_factory):
    app = create_app(settings=settings, session_factory=session_factory)
    client = TestClient(app)

    res = client.get(
        "/notifications/history/unread/count",
        headers={"X-User-Id": "u1", "X-Organization-Id": "o1"},
    )

    assert res.status_code == 503
    assert res.json()["error"]["code"] == "service_unavailable"


@pytest.mark.asyncio
async def test_shutdown_drains_batcher(session_factory, fake_sender):
    from fastapi import FastAPI

    app = FastAPI()
    orchestrator = build_delivery_stack(
        app,
        settings=settings,
        session_factory=session_factory,
        dispatcher=PushDispatcher(sender=fake_sender),
    )
    orchestrator.batcher.enqueue(
        "u1",
        {"date": "2026-03-02", "homeId": "h1", "shiftPatternId": "p1", "count": 1},
        False,
        "Home",
    )

    await shutdown_delivery_stack(app)

    assert orchestrator.batcher.pending_count() == 0
    assert app.state.orchestrator is None
