from datetime import datetime, timezone

import pytest
from fastapi import status
from starlette.websockets import WebSocketDisconnect

from app.modules.notifications.schemas import TimesheetResult, TimesheetScan


def _task_frame(org_id="o1"):
    return {
        "type": "taskUpdate",
        "data": {
            "taskId": "t1",
            "residentId": "r1",
            "orgId": org_id,
            "status": "completed",
            "updatedBy": "nurse-a",
        },
    }


def _ready(ws):
    """Round-trip a ping so the server has registered the socket."""
    ws.send_json({"type": "ping"})
    assert ws.receive_json() == {"type": "pong"}


def test_task_socket_requires_org(client):
    with pytest.raises(WebSocketDisconnect) as exc_info:
        with client.websocket_connect("/ws-tasks?userId=nurse-a"):
            pass
    assert exc_info.value.code == status.WS_1008_POLICY_VIOLATION


def test_chat_socket_requires_user(client):
    with pytest.raises(WebSocketDisconnect):
        with client.websocket_connect("/ws-chat"):
            pass


def test_task_update_fans_out_within_org(client):
    with client.websocket_connect("/ws-tasks?userId=nurse-a&orgId=o1") as a, \
            client.websocket_connect("/ws-tasks?userId=nurse-b&orgId=o1") as b:
        _ready(a)
        _ready(b)

        a.send_json(_task_frame())

        assert a.receive_json()["data"]["taskId"] == "t1"
        received = b.receive_json()
        assert received["type"] == "taskUpdate"
        assert received["data"]["orgId"] == "o1"


def test_unknown_frames_are_ignored(client):
    with client.websocket_connect("/ws-chat?userId=u1") as ws:
        ws.send_text("definitely not json")
        ws.send_json({"type": "selfDestruct"})
        _ready(ws)


def test_timesheet_socket_greets_and_receives_scans(client, app):
    with client.websocket_connect("/timesheet-ws?userId=admin&orgId=o1") as ws:
        greeting = ws.receive_json()
        assert greeting["type"] == "CONNECTION_ESTABLISHED"
        assert greeting["payload"]["clientId"] == "admin:o1"

        scan = TimesheetScan(
            barcode="B-1",
            carer_id="c1",
            org_id="o1",
            timestamp=datetime(2026, 3, 2, tzinfo=timezone.utc),
            status="scanned",
        )
        sent = client.portal.call(app.state.orchestrator.timesheet_scanned, scan)

        assert sent == 1
        frame = ws.receive_json()
        assert frame["type"] == "TIMESHEET_SCAN"
        assert frame["payload"]["carerId"] == "c1"


def test_timesheet_processed_reaches_carer_and_admin(client, app):
    with client.websocket_connect("/timesheet-ws?userId=c1&orgId=o1") as carer, \
            client.websocket_connect("/timesheet-ws?userId=admin&orgId=o1") as admin:
        carer.receive_json()
        admin.receive_json()

        result = TimesheetResult(
            barcode="B-1",
            carer_id="c1",
            org_id="o1",
            timestamp=datetime(2026, 3, 2, tzinfo=timezone.utc),
            timesheet_id="ts-1",
            status="success",
        )
        client.portal.call(app.state.orchestrator.timesheet_processed, result)

        assert carer.receive_json()["type"] == "TIMESHEET_PROCESSED"
        assert admin.receive_json()["type"] == "TIMESHEET_ADMIN_NOTIFICATION"


def test_disconnect_unregisters_socket(client, app):
    with client.websocket_connect("/ws-chat?userId=u1") as ws:
        _ready(ws)
        assert len(app.state.chat_registry) == 1

    client.portal.call(_settle)
    assert len(app.state.chat_registry) == 0


async def _settle():
    import asyncio

    for _ in range(10):
        await asyncio.sleep(0.01)
