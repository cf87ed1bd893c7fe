from datetime import datetime, timezone

import pytest

from app.modules.notifications.channels import (
    ChatRegistry,
    TaskRegistry,
    TimesheetRegistry,
)
from app.modules.notifications.messages import parse_inbound
from app.modules.notifications.realtime import ClientKey
from app.modules.notifications.schemas import (
    ChatMessage,
    TaskUpdate,
    TimesheetResult,
    TimesheetScan,
)
from tests.doubles import FakeWebSocket

NOW = datetime(2026, 3, 2, 8, 30, tzinfo=timezone.utc)


def _connect(registry, user_id, org_id=None):
    ws = FakeWebSocket().open()
    registry.register(ClientKey(user_id, org_id), ws)
    return ws


def _update(org_id="o1", **overrides):
    data = dict(
        task_id="t1",
        resident_id="r1",
        org_id=org_id,
        status="completed",
        updated_by="carer-1",
    )
    data.update(overrides)
    return TaskUpdate(**data)


@pytest.mark.asyncio
async def test_task_update_reaches_only_same_org():
    registry = TaskRegistry()
    a1, a2 = _connect(registry, "a1", "o1"), _connect(registry, "a2", "o1")
    b1 = _connect(registry, "b1", "o2")

    sent = await registry.broadcast_task_update(_update())

    assert sent == 2
    for ws in (a1, a2):
        assert ws.frames == [
            {
                "type": "taskUpdate",
                "data": {
                    "taskId": "t1",
                    "residentId": "r1",
                    "orgId": "o1",
                    "status": "completed",
                    "updatedBy": "carer-1",
                },
            }
        ]
    assert b1.sent == []


@pytest.mark.asyncio
async def test_inbound_task_frame_is_pinned_to_sender_org():
    registry = TaskRegistry()
    sender = _connect(registry, "a1", "o1")
    foreign = _connect(registry, "b1", "o2")
    frame = parse_inbound(
        '{"type": "taskUpdate", "data": {"taskId": "t9", "residentId": "r1",'
        ' "orgId": "o2", "status": "missed", "updatedBy": "a1"}}'
    )

    await registry.handle_frame(ClientKey("a1", "o1"), sender, frame)

    assert foreign.sent == []
    assert sender.frames[0]["data"]["orgId"] == "o1"


@pytest.mark.asyncio
async def test_resident_summary_is_org_scoped():
    registry = TaskRegistry()
    ws = _connect(registry, "a1", "o1")
    _connect(registry, "b1", "o2")

    assert await registry.send_resident_task_summary("o1", "r1", {"completed": 3}) == 1
    assert ws.frames == [
        {
            "type": "residentTaskSummary",
            "data": {"residentId": "r1", "summary": {"completed": 3}},
        }
    ]


@pytest.mark.asyncio
async def test_chat_message_delivered_to_receiver_key():
    registry = ChatRegistry()
    receiver = _connect(registry, "u2", "o1")
    message = ChatMessage(
        id="m1", org_id="o1", sender_id="u1", sender_name="Ada", receiver_id="u2", content="hi"
    )

    assert await registry.send_chat_message(message) is True
    assert receiver.frames[0]["type"] == "chatMessage"
    assert receiver.frames[0]["data"]["content"] == "hi"


@pytest.mark.asyncio
async def test_chat_message_to_offline_receiver_returns_false():
    registry = ChatRegistry()
    message = ChatMessage(sender_id="u1", sender_name="Ada", receiver_id="u2", content="hi")
    assert await registry.send_chat_message(message) is False


@pytest.mark.asyncio
async def test_chat_frame_with_spoofed_sender_is_dropped():
    registry = ChatRegistry()
    sender = _connect(registry, "u1")
    receiver = _connect(registry, "u2")
    frame = parse_inbound(
        '{"type": "chatMessage", "data": {"senderId": "mallory", "senderName": "M",'
        ' "receiverId": "u2", "content": "x"}}'
    )

    await registry.handle_frame(ClientKey("u1"), sender, frame)

    assert receiver.sent == []


@pytest.mark.asyncio
async def test_chat_frame_relayed_to_receiver():
    registry = ChatRegistry()
    sender = _connect(registry, "u1")
    receiver = _connect(registry, "u2")
    frame = parse_inbound(
        '{"type": "chatMessage", "data": {"senderId": "u1", "senderName": "Ada",'
        ' "receiverId": "u2", "content": "see you at 8"}}'
    )

    await registry.handle_frame(ClientKey("u1"), sender, frame)

    assert receiver.frames[0]["data"]["content"] == "see you at 8"


@pytest.mark.asyncio
async def test_chat_broadcast_without_org_reaches_everyone():
    registry = ChatRegistry()
    a, b = _connect(registry, "a", "o1"), _connect(registry, "b")
    message = ChatMessage(sender_id="a", sender_name="Ada", content="all hands")

    assert await registry.broadcast_chat_message(message) == 2
    assert a.sent and b.sent


@pytest.mark.asyncio
async def test_timesheet_on_connect_sends_connection_established():
    registry = TimesheetRegistry()
    ws = FakeWebSocket().open()

    await registry.on_connect(ClientKey("c1", "o1"), ws)

    frame = ws.frames[0]
    assert frame["type"] == "CONNECTION_ESTABLISHED"
    assert frame["payload"]["clientId"] == "c1:o1"
    assert frame["payload"]["timestamp"].endswith("Z")


@pytest.mark.asyncio
async def test_timesheet_scan_broadcast_to_org():
    registry = TimesheetRegistry()
    ws = _connect(registry, "admin", "o1")
    other = _connect(registry, "admin", "o2")
    scan = TimesheetScan(
        barcode="B-1", carer_id="c1", org_id="o1", timestamp=NOW, status="scanned"
    )

    assert await registry.broadcast_timesheet_scan(scan) == 1
    assert ws.frames[0]["type"] == "TIMESHEET_SCAN"
    assert ws.frames[0]["payload"]["barcode"] == "B-1"
    assert other.sent == []


@pytest.mark.asyncio
async def test_timesheet_processed_notifies_carer_then_admins():
    registry = TimesheetRegistry()
    carer = _connect(registry, "c1", "o1")
    admin = _connect(registry, "admin", "o1")
    result = TimesheetResult(
        barcode="B-1",
        carer_id="c1",
        org_id="o1",
        timestamp=NOW,
        timesheet_id="ts-1",
        status="success",
    )

    assert await registry.notify_timesheet_processed(result) == 1
    assert [f["type"] for f in carer.frames] == ["TIMESHEET_PROCESSED"]
    assert [f["type"] for f in admin.frames] == ["TIMESHEET_ADMIN_NOTIFICATION"]


@pytest.mark.asyncio
async def test_timesheet_admins_notified_when_carer_offline():
    registry = TimesheetRegistry()
    admin = _connect(registry, "admin", "o1")
    result = TimesheetResult(
        barcode="B-1",
        carer_id="c1",
        org_id="o1",
        timestamp=NOW,
        timesheet_id="ts-1",
        status="rejected",
        error="Barcode expired",
    )

    assert await registry.notify_timesheet_processed(result) == 1
    assert admin.frames[0]["payload"]["error"] == "Barcode expired"
