"""WebSocket connection registry for real-time delivery.

One registry exists per socket channel (chat, tasks, timesheet). Each keeps a
single live socket per `ClientKey`; a reconnect under the same key replaces the
previous entry. Map mutations are synchronous so they cannot interleave with
other coroutines on the event loop; only the sends themselves are awaited.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional, Tuple

from cachetools import TTLCache
from fastapi import WebSocket, status
from starlette.websockets import WebSocketState

from .common import logger
from .messages import encode, pong


@dataclass(frozen=True)
class ClientKey:
    """Identity of a socket client within one channel."""

    user_id: str
    org_id: Optional[str] = None

    def __str__(self) -> str:
        return f"{self.user_id}:{self.org_id}" if self.org_id else self.user_id


KeyPredicate = Callable[[ClientKey], bool]


def in_org(org_id: Optional[str], *, exclude_user: Optional[str] = None) -> KeyPredicate:
    """Predicate matching clients of `org_id` (everyone when `org_id` is None)."""

    def _match(key: ClientKey) -> bool:
        if exclude_user is not None and key.user_id == exclude_user:
            return False
        return org_id is None or key.org_id == org_id

    return _match


def is_open(websocket: Any) -> bool:
    """True while both sides of the socket are connected."""
    connected = WebSocketState.CONNECTED
    return (
        getattr(websocket, "application_state", connected) == connected
        and getattr(websocket, "client_state", connected) == connected
    )


class ConnectionRegistry:
    """Tracks the live socket for each client key of a channel.

    Send failures are logged and swallowed; a broken socket stays registered until
    its own receive loop ends and unregisters it.
    """

    channel = "default"
    require_org = False

    def __init__(
        self,
        channel: Optional[str] = None,
        *,
        disconnect_history: int = 1024,
        disconnect_ttl: float = 3600,
    ) -> None:
        if channel is not None:
            self.channel = channel
        self._connections: Dict[ClientKey, WebSocket] = {}
        # Recent disconnect reasons by client key, bounded in size and age.
        self.last_disconnect_reason: TTLCache = TTLCache(
            maxsize=disconnect_history, ttl=disconnect_ttl
        )

    # -------------------------------------------------------------- lifecycle
    async def accept(self, websocket: WebSocket) -> Optional[ClientKey]:
        """Validate handshake identity and accept the upgrade.

        Missing identity closes with a policy-violation code and returns None.
        """
        user_id = (websocket.query_params.get("userId") or "").strip()
        org_id = (websocket.query_params.get("orgId") or "").strip() or None
        if not user_id or (self.require_org and not org_id):
            logger.warning(
                "Rejecting %s socket without required identity (userId=%r, orgId=%r)",
                self.channel,
                user_id or None,
                org_id,
                extra={"channel": self.channel},
            )
            try:
                await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            except Exception as exc:
                logger.debug("Client left before %s rejection: %s", self.channel, exc)
            return None

        await websocket.accept()
        return ClientKey(user_id=user_id, org_id=org_id)

    def register(self, key: ClientKey, websocket: WebSocket) -> None:
        previous = self._connections.get(key)
        self._connections[key] = websocket
        if previous is not None and previous is not websocket:
            logger.info(
                "%s socket for %s superseded by a new connection",
                self.channel,
                key,
                extra={"channel": self.channel, "client_key": str(key)},
            )
        logger.info(
            "%s socket connected: %s (active=%s)",
            self.channel,
            key,
            len(self._connections),
            extra={"channel": self.channel, "client_key": str(key)},
        )

    def unregister(
        self, key: ClientKey, websocket: WebSocket, *, reason: str = "client_disconnected"
    ) -> bool:
        """Remove the mapping only if it still points at `websocket`."""
        if self._connections.get(key) is not websocket:
            logger.debug(
                "%s socket for %s already replaced, leaving registry untouched",
                self.channel,
                key,
            )
            return False
        del self._connections[key]
        self.last_disconnect_reason[str(key)] = reason
        logger.info(
            "%s socket disconnected: %s (reason=%s, active=%s)",
            self.channel,
            key,
            reason,
            len(self._connections),
            extra={"channel": self.channel, "client_key": str(key)},
        )
        return True

    async def on_connect(self, key: ClientKey, websocket: WebSocket) -> None:
        """Hook run once a client is registered."""

    async def handle_frame(self, key: ClientKey, websocket: WebSocket, frame) -> None:
        """React to a parsed inbound frame; channels override for their own types."""
        if frame.type == "ping":
            await self._send(key, websocket, pong())
            return
        logger.debug(
            "%s channel ignores %s frames from %s", self.channel, frame.type, key
        )

    # ------------------------------------------------------------------ sends
    async def _send(self, key: ClientKey, websocket: WebSocket, payload: dict) -> None:
        try:
            await websocket.send_text(encode(payload))
        except Exception as exc:
            logger.warning(
                "Failed to send %s frame to %s: %s",
                self.channel,
                key,
                exc,
                extra={"channel": self.channel, "client_key": str(key)},
            )

    async def send_to(self, key: ClientKey, payload: dict) -> bool:
        """Send to one client. True iff an open socket existed and a send was attempted."""
        websocket = self._connections.get(key)
        if websocket is None or not is_open(websocket):
            logger.debug("%s client %s not connected", self.channel, key)
            return False
        await self._send(key, websocket, payload)
        return True

    async def broadcast(self, predicate: KeyPredicate, payload: dict) -> int:
        """Send concurrently to every open client whose key matches; returns sends attempted."""
        targets: List[Tuple[ClientKey, WebSocket]] = [
            (key, websocket)
            for key, websocket in list(self._connections.items())
            if predicate(key) and is_open(websocket)
        ]
        if not targets:
            return 0
        await asyncio.gather(
            *(self._send(key, websocket, payload) for key, websocket in targets)
        )
        return len(targets)

    # ---------------------------------------------------------------- queries
    def get(self, key: ClientKey) -> Optional[WebSocket]:
        return self._connections.get(key)

    def keys(self) -> List[ClientKey]:
        return list(self._connections)

    def __len__(self) -> int:
        return len(self._connections)

    def __contains__(self, key: object) -> bool:
        return key in self._connections

    def metrics(self) -> dict:
        """Snapshot suitable for logging and the readiness check."""
        return {
            "channel": self.channel,
            "active_clients": len(self._connections),
            "clients": sorted(str(key) for key in self._connections),
            "last_disconnect_reason": dict(self.last_disconnect_reason),
        }

    async def close_all(self, code: int = status.WS_1001_GOING_AWAY) -> None:
        """Close every socket on shutdown and empty the registry."""
        connections = list(self._connections.items())
        self._connections.clear()
        for key, websocket in connections:
            try:
                await websocket.close(code=code)
            except Exception as exc:
                logger.debug("Ignoring close error for %s: %s", key, exc)
        if connections:
            logger.info("Closed %s %s sockets", len(connections), self.channel)


__all__ = ["ClientKey", "ConnectionRegistry", "KeyPredicate", "in_org", "is_open"]
