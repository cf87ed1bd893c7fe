"""WebSocket frame shapes.

Inbound frames are JSON text `{type, data}` parsed into a tagged union; the
outbound builders produce the envelopes the web and mobile clients listen for.
"""

from __future__ import annotations

from typing import Annotated, Any, Dict, Literal, Optional, Union

import orjson
from pydantic import BaseModel, Field, TypeAdapter, ValidationError

from .common import iso_timestamp, logger
from .schemas import ChatMessage, TaskUpdate


class TaskUpdateFrame(BaseModel):
    type: Literal["taskUpdate"]
    data: TaskUpdate


class ChatMessageFrame(BaseModel):
    type: Literal["chatMessage"]
    data: ChatMessage


class PingFrame(BaseModel):
    type: Literal["ping"]
    data: Optional[Any] = None


InboundFrame = Annotated[
    Union[TaskUpdateFrame, ChatMessageFrame, PingFrame],
    Field(discriminator="type"),
]

_inbound_adapter: TypeAdapter = TypeAdapter(InboundFrame)


def parse_inbound(raw: str | bytes, *, client: str = "") -> Optional[BaseModel]:
    """Parse a client frame; unknown or malformed frames are logged and dropped."""
    try:
        return _inbound_adapter.validate_json(raw)
    except ValidationError as exc:
        logger.warning(
            "Ignoring unrecognised frame from %s: %s",
            client or "client",
            exc.errors(include_url=False)[:1],
        )
        return None


def encode(payload: Dict[str, Any]) -> str:
    """Serialise an outbound payload (datetimes become ISO strings)."""
    return orjson.dumps(payload, option=orjson.OPT_NON_STR_KEYS).decode("utf-8")


def _dump(model: BaseModel) -> Dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def pong() -> Dict[str, Any]:
    return {"type": "pong"}


def task_update(update: TaskUpdate) -> Dict[str, Any]:
    return {"type": "taskUpdate", "data": _dump(update)}


def resident_task_summary(resident_id: str, summary: Any) -> Dict[str, Any]:
    return {
        "type": "residentTaskSummary",
        "data": {"residentId": resident_id, "summary": summary},
    }


def chat_message(message: ChatMessage) -> Dict[str, Any]:
    return {"type": "chatMessage", "data": _dump(message)}


def connection_established(client_id: str) -> Dict[str, Any]:
    return {
        "type": "CONNECTION_ESTABLISHED",
        "payload": {"clientId": client_id, "timestamp": iso_timestamp()},
    }


def timesheet_event(kind: str, event: BaseModel) -> Dict[str, Any]:
    """`TIMESHEET_SCAN`, `TIMESHEET_PROCESSED` or `TIMESHEET_ADMIN_NOTIFICATION`."""
    return {"type": kind, "payload": _dump(event)}


TIMESHEET_SCAN = "TIMESHEET_SCAN"
TIMESHEET_PROCESSED = "TIMESHEET_PROCESSED"
TIMESHEET_ADMIN_NOTIFICATION = "TIMESHEET_ADMIN_NOTIFICATION"


__all__ = [
    "TaskUpdateFrame",
    "ChatMessageFrame",
    "PingFrame",
    "InboundFrame",
    "parse_inbound",
    "encode",
    "pong",
    "task_update",
    "resident_task_summary",
    "chat_message",
    "connection_established",
    "timesheet_event",
    "TIMESHEET_SCAN",
    "TIMESHEET_PROCESSED",
    "TIMESHEET_ADMIN_NOTIFICATION",
]
