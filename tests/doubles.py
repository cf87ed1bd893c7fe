"""Test doubles shared by the notification tests."""

from typing import Dict, List, Optional

import orjson
from starlette.websockets import WebSocketDisconnect, WebSocketState


class FakeWebSocket:
    """Records sent frames; `fail_sends` and `fail_close` make those calls raise."""

    def __init__(
        self, query: Optional[Dict[str, str]] = None, *, fail_sends=False, fail_close=False
    ):
        self.query_params = dict(query or {})
        self.application_state = WebSocketState.CONNECTING
        self.client_state = WebSocketState.CONNECTED
        self.fail_sends = fail_sends
        self.fail_close = fail_close
        self.sent: List[str] = []
        self.close_codes: List[int] = []
        self.inbox: List[str] = []

    async def accept(self):
        self.application_state = WebSocketState.CONNECTED

    async def send_text(self, text: str):
        if self.fail_sends:
            raise RuntimeError("socket write failed")
        self.sent.append(text)

    async def receive_text(self) -> str:
        if self.inbox:
            return self.inbox.pop(0)
        raise WebSocketDisconnect(code=1000)

    async def close(self, code: int = 1000, reason: str = ""):
        if self.fail_close:
            raise RuntimeError("client already gone")
        self.close_codes.append(code)
        self.application_state = WebSocketState.DISCONNECTED

    def open(self) -> "FakeWebSocket":
        self.application_state = WebSocketState.CONNECTED
        return self

    @property
    def frames(self) -> List[dict]:
        return [orjson.loads(text) for text in self.sent]


class FakeSender:
    """Stands in for `messaging.send`; `errors` maps a token to the exception to raise."""

    def __init__(self, errors: Optional[Dict[str, Exception]] = None):
        self.errors = dict(errors or {})
        self.messages = []

    def __call__(self, message) -> str:
        error = self.errors.get(message.token)
        if error is not None:
            raise error
        self.messages.append(message)
        return f"projects/test/messages/{len(self.messages)}"

    @property
    def tokens(self) -> List[str]:
        return [message.token for message in self.messages]
