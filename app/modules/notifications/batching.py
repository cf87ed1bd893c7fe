"""Batching of shift notifications.

Bursts of shift writes (a rota published for a whole week, say) are collected per
recipient and delivered as one push per user when a shared timer fires. The window
is fixed: the first enqueue arms the timer and later enqueues never push it back,
so the window is also the longest a notification can wait.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Set, Tuple

from .common import canonical_json, logger
from .history import HistoryRecorder
from .models import NotificationPriority, NotificationStatus, NotificationType
from .push import PushBatchResult, PushDispatcher, PushPayload
from .schemas import Recipients

TokenLookup = Callable[[Iterable[str]], Awaitable[Dict[str, List[str]]]]
TokenPruner = Callable[[Iterable[str]], Awaitable[int]]


@dataclass(frozen=True)
class PendingNotification:
    recipient_user_id: str
    payload: Dict[str, Any]
    is_agency: bool
    sender_name: str

    @property
    def dedupe_key(self) -> str:
        return canonical_json(
            {**self.payload, "isAgency": self.is_agency, "senderName": self.sender_name}
        )

    @property
    def count(self) -> int:
        try:
            return max(int(self.payload.get("count", 1)), 0)
        except (TypeError, ValueError):
            return 1


@dataclass
class AggregatedShiftNotification:
    """One user's pending events folded into a single message."""

    user_id: str
    type: str
    title: str
    body: str
    sender_name: str
    org_id: str
    shifts: List[Dict[str, Any]] = field(default_factory=list)
    total_shift_count: int = 0

    @property
    def event_count(self) -> int:
        return len(self.shifts)

    @property
    def metadata(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "senderName": self.sender_name,
            "shiftsData": self.shifts,
            "totalShiftCount": self.total_shift_count,
            "eventCount": self.event_count,
        }

    def push_payload(self) -> PushPayload:
        # Non-string values are JSON encoded by the dispatcher.
        return PushPayload(title=self.title, body=self.body, data=self.metadata)


def aggregate_shift_events(
    user_id: str, events: List[PendingNotification]
) -> AggregatedShiftNotification:
    """Fold a user's pending shift events; agency flag and sender come from the first."""
    first = events[0]
    total = sum(event.count for event in events)
    if first.is_agency:
        title = "New Shifts Published"
        body = f"{first.sender_name} has published {total} new shift"
        notification_type = NotificationType.NEW_SHIFTS_PUBLISHED.value
    else:
        title = "New Shifts Assigned"
        body = f"You have been assigned to {total} new shift{'s' if total > 1 else ''}."
        notification_type = NotificationType.NEW_SHIFTS_ASSIGNED.value

    shifts = [
        {
            "date": event.payload.get("date"),
            "homeId": str(event.payload.get("homeId", "")),
            "shiftPatternId": str(event.payload.get("shiftPatternId", "")),
            "count": event.count,
        }
        for event in events
    ]
    return AggregatedShiftNotification(
        user_id=user_id,
        type=notification_type,
        title=title,
        body=body,
        sender_name=first.sender_name,
        org_id=shifts[0]["homeId"],
        shifts=shifts,
        total_shift_count=total,
    )


class NotificationBatcher:
    """Per-user pending sets flushed together on one shared timer."""

    def __init__(
        self,
        dispatcher: PushDispatcher,
        recorder: HistoryRecorder,
        token_lookup: TokenLookup,
        *,
        window: float = 1.0,
        token_pruner: Optional[TokenPruner] = None,
    ) -> None:
        self.dispatcher = dispatcher
        self.recorder = recorder
        self.window = window
        self._token_lookup = token_lookup
        self._token_pruner = token_pruner
        # user id -> dedupe key -> event; dicts keep insertion order.
        self._pending: Dict[str, Dict[str, PendingNotification]] = {}
        self._timer: Optional[asyncio.TimerHandle] = None
        self._flushing = False
        self._tasks: Set[asyncio.Task] = set()
        self._closed = False

    # ---------------------------------------------------------------- intake
    def enqueue(
        self,
        user_id: str,
        payload: Dict[str, Any],
        is_agency: bool,
        sender_name: str,
    ) -> None:
        if self._closed:
            logger.warning("Batcher closed, dropping shift notification for %s", user_id)
            return
        event = PendingNotification(user_id, dict(payload), is_agency, sender_name)
        self._pending.setdefault(user_id, {}).setdefault(event.dedupe_key, event)
        self.schedule_flush()

    def schedule_flush(self) -> None:
        """Arm the shared timer unless one is already pending."""
        if self._timer is not None or self._closed:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning("No running event loop; pending shift notifications wait for close()")
            return
        self._timer = loop.call_later(self.window, self._on_timer)

    def _on_timer(self) -> None:
        self._timer = None
        task = asyncio.ensure_future(self.flush())
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    # ----------------------------------------------------------------- flush
    async def flush(self) -> int:
        """Deliver everything pending; returns the number of users flushed."""
        if self._flushing:
            # Picked up by the next window once the running flush finishes.
            self.schedule_flush()
            return 0
        if not self._pending:
            return 0

        self._flushing = True
        pending, self._pending = self._pending, {}
        try:
            tokens = await self._lookup_tokens(pending.keys())
            await asyncio.gather(
                *(
                    self._deliver(user_id, list(events.values()), tokens.get(user_id, []))
                    for user_id, events in pending.items()
                )
            )
        finally:
            self._flushing = False
        logger.info("Flushed shift notifications for %s user(s)", len(pending))
        return len(pending)

    async def _lookup_tokens(self, user_ids: Iterable[str]) -> Dict[str, List[str]]:
        try:
            return await self._token_lookup(list(user_ids))
        except Exception:
            logger.exception("Device token lookup failed; recording history only")
            return {}

    async def _deliver(
        self, user_id: str, events: List[PendingNotification], tokens: List[str]
    ) -> None:
        try:
            message = aggregate_shift_events(user_id, events)
        except Exception:
            logger.exception("Failed to aggregate shift notifications for %s", user_id)
            return

        status, error = await self._push(user_id, message, tokens)
        await self.recorder.record(
            org_id=message.org_id,
            type=message.type,
            priority=NotificationPriority.MEDIUM,
            title=message.title,
            content=message.body,
            metadata=message.metadata,
            recipients=Recipients(users=[user_id]),
            created_by=message.sender_name,
            status=status,
            error=error,
        )
        logger.info(
            "Shift notification for %s (%s shift(s)): %s",
            user_id,
            message.total_shift_count,
            status.value,
        )

    async def _push(
        self, user_id: str, message: AggregatedShiftNotification, tokens: List[str]
    ) -> Tuple[NotificationStatus, Optional[str]]:
        if not tokens:
            logger.info("No device tokens for user %s, skipping push", user_id)
            return PushBatchResult().history_status()
        try:
            result = await self.dispatcher.send_to_many(tokens, message.push_payload())
        except Exception as exc:
            logger.exception("Push dispatch failed for %s", user_id)
            return NotificationStatus.FAILED, str(exc) or type(exc).__name__

        if result.unregistered_tokens and self._token_pruner is not None:
            try:
                await self._token_pruner(result.unregistered_tokens)
            except Exception:
                logger.exception("Failed to prune stale device tokens for %s", user_id)
        return result.history_status()

    # --------------------------------------------------------------- queries
    def pending_count(self) -> int:
        """Number of distinct events waiting across all users."""
        return sum(len(events) for events in self._pending.values())

    def pending_users(self) -> List[str]:
        return list(self._pending)

    async def close(self) -> None:
        """Cancel the timer, wait for running flushes and drain what is left."""
        self._closed = True
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        await self.flush()


__all__ = [
    "PendingNotification",
    "AggregatedShiftNotification",
    "aggregate_shift_events",
    "NotificationBatcher",
]
