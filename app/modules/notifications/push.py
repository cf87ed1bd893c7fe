"""Push delivery over Firebase Cloud Messaging.

`PushDispatcher` never raises. Every failure is classified so callers can tell a
stale device token from a broken service account or a throttled project.
"""

from __future__ import annotations

import asyncio
import enum
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple

from firebase_admin import exceptions as firebase_exceptions
from firebase_admin import messaging
from starlette.concurrency import run_in_threadpool

from app.firebase_config import build_message, send_message

from .common import logger, stringify_data
from .models import NotificationStatus


class PushFailureKind(str, enum.Enum):
    UNREGISTERED = "unregistered"
    AUTH = "auth"
    RATE_LIMITED = "rate_limited"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class PushPayload:
    title: str
    body: str
    data: Dict[str, Any] = field(default_factory=dict)

    def string_data(self) -> Dict[str, str]:
        return stringify_data(self.data)


@dataclass(frozen=True)
class PushResult:
    token: str
    success: bool
    message_id: Optional[str] = None
    kind: Optional[PushFailureKind] = None
    error: Optional[str] = None


class PushFailure(NamedTuple):
    token: str
    kind: PushFailureKind
    error: str


@dataclass
class PushBatchResult:
    success_count: int = 0
    failures: List[PushFailure] = field(default_factory=list)

    @property
    def failure_count(self) -> int:
        return len(self.failures)

    @property
    def unregistered_tokens(self) -> List[str]:
        """Tokens FCM reported as gone; candidates for upstream deletion."""
        return [f.token for f in self.failures if f.kind is PushFailureKind.UNREGISTERED]

    def history_status(self) -> Tuple[NotificationStatus, Optional[str]]:
        """Status and error to store with the history row for this send.

        Nothing attempted is PENDING; every attempt failing is FAILED.
        """
        if self.success_count:
            return NotificationStatus.SENT, None
        if self.failures:
            errors = "; ".join(f"{f.kind.value}: {f.error}" for f in self.failures)
            return NotificationStatus.FAILED, errors
        return NotificationStatus.PENDING, "no device tokens"


_UNREGISTERED_ERRORS = (messaging.UnregisteredError, messaging.SenderIdMismatchError)
_AUTH_ERRORS = (
    messaging.ThirdPartyAuthError,
    firebase_exceptions.UnauthenticatedError,
    firebase_exceptions.PermissionDeniedError,
)
_RATE_LIMIT_ERRORS = (
    messaging.QuotaExceededError,
    firebase_exceptions.ResourceExhaustedError,
)

_MESSAGE_HINTS = (
    ("not registered", PushFailureKind.UNREGISTERED),
    ("not a valid fcm registration token", PushFailureKind.UNREGISTERED),
    ("requested entity was not found", PushFailureKind.UNREGISTERED),
    ("authentication error", PushFailureKind.AUTH),
    ("invalid_grant", PushFailureKind.AUTH),
    ("message rate exceeded", PushFailureKind.RATE_LIMITED),
    ("quota exceeded", PushFailureKind.RATE_LIMITED),
)


def classify_push_error(exc: BaseException) -> PushFailureKind:
    """Map a provider exception onto a `PushFailureKind`."""
    if isinstance(exc, _UNREGISTERED_ERRORS):
        return PushFailureKind.UNREGISTERED
    if isinstance(exc, _AUTH_ERRORS):
        return PushFailureKind.AUTH
    if isinstance(exc, _RATE_LIMIT_ERRORS):
        return PushFailureKind.RATE_LIMITED
    text = str(exc).lower()
    for hint, kind in _MESSAGE_HINTS:
        if hint in text:
            return kind
    return PushFailureKind.UNKNOWN


def _log_failure(token: str, kind: PushFailureKind, exc: BaseException) -> None:
    short_token = token[:12]
    if kind is PushFailureKind.UNREGISTERED:
        logger.info("Push token %s... is no longer registered: %s", short_token, exc)
    elif kind is PushFailureKind.AUTH:
        logger.error("Push provider rejected our credentials: %s", exc)
    elif kind is PushFailureKind.RATE_LIMITED:
        logger.warning("Push rate limited for token %s...: %s", short_token, exc)
    else:
        logger.error("Push to token %s... failed: %s", short_token, exc)


class PushDispatcher:
    """Deliver push notifications to device tokens.

    Each blocking FCM call runs in the threadpool; fan-out across tokens is concurrent.
    With `enabled=False` sends short-circuit to success without touching Firebase.
    """

    def __init__(
        self,
        *,
        enabled: bool = True,
        sender: Optional[Callable[[messaging.Message], str]] = None,
    ) -> None:
        self.enabled = enabled
        self._sender = sender or send_message

    async def send_to_one(self, token: str, payload: PushPayload) -> PushResult:
        if not self.enabled:
            logger.debug("Push disabled, skipping token %s...", token[:12])
            return PushResult(token=token, success=True)
        try:
            message = build_message(
                token, payload.title, payload.body, payload.string_data()
            )
            message_id = await run_in_threadpool(self._sender, message)
        except Exception as exc:
            kind = classify_push_error(exc)
            _log_failure(token, kind, exc)
            return PushResult(token=token, success=False, kind=kind, error=str(exc))
        return PushResult(token=token, success=True, message_id=message_id)

    async def send_to_many(
        self, tokens: Iterable[str], payload: PushPayload
    ) -> PushBatchResult:
        unique_tokens = list(dict.fromkeys(t for t in tokens if t))
        if not unique_tokens:
            return PushBatchResult()

        results = await asyncio.gather(
            *(self.send_to_one(token, payload) for token in unique_tokens)
        )
        batch = PushBatchResult()
        for result in results:
            if result.success:
                batch.success_count += 1
            else:
                batch.failures.append(
                    PushFailure(
                        result.token,
                        result.kind or PushFailureKind.UNKNOWN,
                        result.error or "",
                    )
                )
        logger.info(
            "Push '%s' sent: %s ok, %s failed",
            payload.title,
            batch.success_count,
            batch.failure_count,
        )
        return batch


__all__ = [
    "PushFailureKind",
    "PushPayload",
    "PushResult",
    "PushFailure",
    "PushBatchResult",
    "PushDispatcher",
    "classify_push_error",
]
