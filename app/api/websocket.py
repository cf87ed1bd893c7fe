"""WebSocket endpoints for the real-time channels.

Paths (configurable through settings):
- chat (`/ws-chat`): `?userId=` required, `orgId` optional.
- tasks (`/ws-tasks`) and timesheet (`/timesheet-ws`): `?userId=&orgId=` required.

Behavior:
- Missing identity closes the handshake with a policy-violation code.
- Inbound frames are parsed into the tagged frame union; anything else is logged and ignored.
- On disconnect or error the socket is unregistered, unless a newer connection
  has already replaced it under the same key.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status

from app.core.config import settings
from app.core.logging_config import bind_request_context, reset_request_context
from app.modules.notifications.messages import parse_inbound
from app.modules.notifications.realtime import ConnectionRegistry, is_open

router = APIRouter()
logger = logging.getLogger(__name__)


async def _safe_close(websocket: WebSocket, *, code: int) -> None:
    """Close a websocket that may already be gone."""
    if not is_open(websocket):
        return
    try:
        await websocket.close(code=code)
    except Exception:
        logger.debug("Ignoring websocket close error")


async def serve_socket(websocket: WebSocket, registry: ConnectionRegistry) -> None:
    """Accept, register and pump frames for one client of `registry`."""
    key = await registry.accept(websocket)
    if key is None:
        return

    tokens = bind_request_context(user_id=key.user_id, org_id=key.org_id)
    registry.register(key, websocket)
    reason = "client_disconnected"
    try:
        await registry.on_connect(key, websocket)
        while True:
            raw = await websocket.receive_text()
            frame = parse_inbound(raw, client=f"{registry.channel}:{key}")
            if frame is not None:
                await registry.handle_frame(key, websocket, frame)
    except WebSocketDisconnect as exc:
        reason = f"disconnect:{getattr(exc, 'code', 'unknown')}"
    except Exception as exc:
        reason = "error"
        logger.exception("%s socket error for %s: %s", registry.channel, key, exc)
        await _safe_close(websocket, code=status.WS_1011_INTERNAL_ERROR)
    finally:
        registry.unregister(key, websocket, reason=reason)
        reset_request_context(tokens)


def _registry(websocket: WebSocket, name: str) -> ConnectionRegistry:
    return getattr(websocket.app.state, name)


@router.websocket(settings.ws_chat_path)
async def chat_socket(websocket: WebSocket):
    await serve_socket(websocket, _registry(websocket, "chat_registry"))


@router.websocket(settings.ws_tasks_path)
async def tasks_socket(websocket: WebSocket):
    await serve_socket(websocket, _registry(websocket, "task_registry"))


@router.websocket(settings.ws_timesheet_path)
async def timesheet_socket(websocket: WebSocket):
    await serve_socket(websocket, _registry(websocket, "timesheet_registry"))


__all__ = ["router", "serve_socket"]
