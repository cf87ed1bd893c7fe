"""Delivery orchestration: the single entry point business services call.

Each public method fans a business event out to sockets, push and history. None of
them raise; a failed delivery is logged and the caller's own operation carries on.
"""

from __future__ import annotations

from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from .batching import NotificationBatcher
from .channels import ChatRegistry, TaskRegistry, TimesheetRegistry
from .common import logger, swallow_delivery_errors
from .devices import DeviceTokenStore
from .history import HistoryRecorder
from .models import NotificationPriority, NotificationStatus, NotificationType
from .push import PushBatchResult, PushDispatcher, PushPayload
from .schemas import (
    ChatMessage,
    Recipients,
    ShiftEvent,
    TaskUpdate,
    TimesheetResult,
    TimesheetScan,
)


class DeliveryOrchestrator:
    """Routes business events to the registries, the batcher, push and history."""

    def __init__(
        self,
        *,
        chat: ChatRegistry,
        tasks: TaskRegistry,
        timesheet: TimesheetRegistry,
        batcher: NotificationBatcher,
        dispatcher: PushDispatcher,
        recorder: HistoryRecorder,
        devices: DeviceTokenStore,
        frontend_url: str = "",
        chat_body_limit: int = 100,
        admin_roles: Sequence[str] = ("admin",),
    ) -> None:
        self.chat = chat
        self.tasks = tasks
        self.timesheet = timesheet
        self.batcher = batcher
        self.dispatcher = dispatcher
        self.recorder = recorder
        self.devices = devices
        self.frontend_url = frontend_url.rstrip("/")
        self.chat_body_limit = chat_body_limit
        self.admin_roles = list(admin_roles)

    async def _push_to_users(
        self, user_ids: Iterable[str], payload: PushPayload
    ) -> PushBatchResult:
        user_ids = list(dict.fromkeys(user_ids))
        if not user_ids:
            return PushBatchResult()
        tokens_by_user = await self.devices.tokens_for_users(user_ids)
        tokens = [token for uid in user_ids for token in tokens_by_user.get(uid, [])]
        if not tokens:
            logger.info("No device tokens for %s user(s), skipping '%s'", len(user_ids), payload.title)
            return PushBatchResult()
        result = await self.dispatcher.send_to_many(tokens, payload)
        if result.unregistered_tokens:
            await self.devices.prune(result.unregistered_tokens)
        return result

    async def _push_for_history(
        self, user_ids: Iterable[str], payload: PushPayload
    ) -> Tuple[NotificationStatus, Optional[str]]:
        """Push, then report the outcome as a history status; never raises."""
        try:
            result = await self._push_to_users(user_ids, payload)
        except Exception as exc:
            logger.exception("Push '%s' failed", payload.title)
            return NotificationStatus.FAILED, str(exc) or type(exc).__name__
        return result.history_status()

    # ----------------------------------------------------------------- shifts
    @swallow_delivery_errors
    async def shift_published(
        self, shift: ShiftEvent, assigned_user_ids: Sequence[str], home_name: str
    ) -> int:
        """Queue batched notifications for assignees and, for agency shifts, agency admins."""
        payload = shift.batch_payload()
        is_agency = shift.agent_id is not None
        queued = 0
        for user_id in dict.fromkeys(assigned_user_ids):
            self.batcher.enqueue(user_id, payload, is_agency, home_name)
            queued += 1

        if shift.agent_id:
            admins = await self.recorder.users_with_roles(shift.agent_id, self.admin_roles)
            for admin_id in admins:
                self.batcher.enqueue(admin_id, payload, True, home_name)
                queued += 1
            if not admins:
                logger.warning("Agency %s has no admins to notify", shift.agent_id)
        return queued

    @swallow_delivery_errors
    async def shift_unassigned(
        self, user_ids: Sequence[str], shift: Optional[ShiftEvent] = None
    ) -> PushBatchResult:
        data: Dict[str, Any] = {"type": NotificationType.SHIFT_CANCELLED.value}
        if shift is not None:
            data.update(
                {"shiftId": shift.id, "date": shift.date, "homeId": shift.home_id}
            )
        return await self._push_to_users(
            user_ids,
            PushPayload(
                title="Shift Cancelled",
                body="You have been unassigned from a shift",
                data=data,
            ),
        )

    # ------------------------------------------------------------- timesheets
    @swallow_delivery_errors
    async def timesheet_scanned(self, scan: TimesheetScan) -> int:
        return await self.timesheet.broadcast_timesheet_scan(scan)

    @swallow_delivery_errors
    async def timesheet_processed(self, result: TimesheetResult) -> int:
        return await self.timesheet.notify_timesheet_processed(result)

    # ------------------------------------------------------------------- chat
    @swallow_delivery_errors
    async def chat_message_sent(self, message: ChatMessage) -> bool:
        """Live socket delivery plus an always-on push and history entry for the receiver."""
        if not message.receiver_id:
            logger.warning("Chat message from %s has no receiver", message.sender_id)
            return False
        delivered = await self.chat.send_chat_message(message)

        title = f"New message from {message.sender_name}"
        body = message.content[: self.chat_body_limit]
        data = {
            "type": NotificationType.NEW_MESSAGE.value,
            "senderId": message.sender_id,
            "senderName": message.sender_name,
            "messageContent": message.content,
        }
        status, error = await self._push_for_history(
            [message.receiver_id], PushPayload(title=title, body=body, data=data)
        )
        if message.org_id:
            await self.recorder.record(
                org_id=message.org_id,
                type=NotificationType.NEW_MESSAGE.value,
                priority=NotificationPriority.MEDIUM,
                title=title,
                content=body,
                metadata={**data, "recipientIds": [message.receiver_id]},
                recipients=Recipients(users=[message.receiver_id]),
                created_by=message.sender_id,
                status=status,
                error=error,
            )
        return delivered

    @swallow_delivery_errors
    async def chat_broadcast(
        self, message: ChatMessage, recipient_ids: Sequence[str]
    ) -> int:
        sent = await self.chat.broadcast_chat_message(message)
        title = "Broadcast Message"
        body = f"{message.sender_name} sent a broadcast message"
        data = {
            "type": NotificationType.BROADCAST_MESSAGE.value,
            "senderId": message.sender_id,
            "orgId": message.org_id or "",
        }
        status, error = await self._push_for_history(
            [uid for uid in recipient_ids if uid != message.sender_id],
            PushPayload(title=title, body=body, data=data),
        )
        if message.org_id:
            await self.recorder.record(
                org_id=message.org_id,
                type=NotificationType.BROADCAST_MESSAGE.value,
                title=title,
                content=body,
                metadata={**data, "messageContent": message.content},
                recipients=Recipients(everyone=True),
                created_by=message.sender_id,
                status=status,
                error=error,
            )
        return sent

    # ---------------------------------------------------------- join requests
    @swallow_delivery_errors
    async def join_request_created(
        self, org_id: str, org_name: str, requester_id: str, requester_name: str
    ) -> Optional[int]:
        title = "New Join Request"
        body = f"{requester_name} has requested to join {org_name}."
        data = {
            "organizationId": org_id,
            "requestingUserId": requester_id,
            "type": NotificationType.NEW_JOIN_REQUEST.value,
            "url": self.frontend_url,
        }
        history_id = await self.recorder.record(
            org_id=org_id,
            type=NotificationType.NEW_JOIN_REQUEST.value,
            title=title,
            content=body,
            metadata=data,
            recipients=Recipients(roles=list(self.admin_roles)),
            created_by=requester_id,
        )
        admins = await self.recorder.users_with_roles(org_id, self.admin_roles)
        if not admins:
            logger.warning("No admins found for organization %s", org_id)
        await self._push_to_users(admins, PushPayload(title=title, body=body, data=data))
        return history_id

    @swallow_delivery_errors
    async def join_request_accepted(
        self, user_id: str, org_id: str, org_name: str
    ) -> PushBatchResult:
        await self.recorder.delete_by_type_and_creator(
            NotificationType.NEW_JOIN_REQUEST.value, user_id, org_id
        )
        return await self._push_to_users(
            [user_id],
            PushPayload(
                title="Join Request Accepted",
                body=f"Your request to join {org_name} has been accepted!",
                data={
                    "organizationId": org_id,
                    "type": NotificationType.JOIN_REQUEST_ACCEPTED.value,
                    "url": f"{self.frontend_url}/organization/{org_id}",
                },
            ),
        )

    # ------------------------------------------------------------------ tasks
    @swallow_delivery_errors
    async def task_updated(self, update: TaskUpdate) -> int:
        return await self.tasks.broadcast_task_update(update)

    @swallow_delivery_errors
    async def resident_task_summary(
        self, org_id: str, resident_id: str, summary: Any
    ) -> int:
        return await self.tasks.send_resident_task_summary(org_id, resident_id, summary)

    # ---------------------------------------------------------------- status
    def metrics(self) -> Dict[str, Any]:
        registries: List = [self.chat, self.tasks, self.timesheet]
        return {
            "sockets": {r.channel: r.metrics()["active_clients"] for r in registries},
            "pending_shift_notifications": self.batcher.pending_count(),
            "push_enabled": self.dispatcher.enabled,
        }


__all__ = ["DeliveryOrchestrator"]
