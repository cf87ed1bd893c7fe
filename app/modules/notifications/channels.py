"""Channel-specific registries: chat, resident tasks and timesheet scans."""

from __future__ import annotations

from typing import Any

from fastapi import WebSocket

from . import messages
from .common import logger
from .realtime import ClientKey, ConnectionRegistry, in_org
from .schemas import ChatMessage, TaskUpdate, TimesheetResult, TimesheetScan


class ChatRegistry(ConnectionRegistry):
    """Chat sockets; `orgId` is optional so personal chats work outside an org."""

    channel = "chat"
    require_org = False

    async def broadcast_chat_message(self, message: ChatMessage) -> int:
        """Org-scoped when the message carries an org, otherwise to every client."""
        return await self.broadcast(in_org(message.org_id), messages.chat_message(message))

    async def send_chat_message(self, message: ChatMessage) -> bool:
        if not message.receiver_id:
            logger.warning("Chat message %s has no receiver", message.id)
            return False
        key = ClientKey(message.receiver_id, message.org_id)
        delivered = await self.send_to(key, messages.chat_message(message))
        if not delivered:
            logger.info("Chat recipient %s not connected", key)
        return delivered

    async def handle_frame(self, key: ClientKey, websocket: WebSocket, frame) -> None:
        if frame.type == "chatMessage":
            message = frame.data
            if message.sender_id != key.user_id:
                logger.warning(
                    "Dropping chat frame from %s claiming sender %s",
                    key,
                    message.sender_id,
                )
                return
            if message.org_id is None and key.org_id is not None:
                message = message.model_copy(update={"org_id": key.org_id})
            await self.send_chat_message(message)
            return
        await super().handle_frame(key, websocket, frame)


class TaskRegistry(ConnectionRegistry):
    """Resident task sockets, always scoped to an organisation."""

    channel = "tasks"
    require_org = True

    async def broadcast_task_update(self, update: TaskUpdate) -> int:
        sent = await self.broadcast(in_org(update.org_id), messages.task_update(update))
        logger.info(
            "Task %s update (%s) sent to %s clients of org %s",
            update.task_id,
            update.status,
            sent,
            update.org_id,
        )
        return sent

    async def send_resident_task_summary(
        self, org_id: str, resident_id: str, summary: Any
    ) -> int:
        return await self.broadcast(
            in_org(org_id), messages.resident_task_summary(resident_id, summary)
        )

    async def handle_frame(self, key: ClientKey, websocket: WebSocket, frame) -> None:
        if frame.type == "taskUpdate":
            update = frame.data
            if update.org_id != key.org_id:
                # Clients may only publish into their own organisation.
                update = update.model_copy(update={"org_id": key.org_id})
            await self.broadcast_task_update(update)
            return
        await super().handle_frame(key, websocket, frame)


class TimesheetRegistry(ConnectionRegistry):
    """Timesheet barcode-scan sockets."""

    channel = "timesheet"
    require_org = True

    async def on_connect(self, key: ClientKey, websocket: WebSocket) -> None:
        await self._send(key, websocket, messages.connection_established(str(key)))

    async def broadcast_timesheet_scan(self, scan: TimesheetScan) -> int:
        return await self.broadcast(
            in_org(scan.org_id),
            messages.timesheet_event(messages.TIMESHEET_SCAN, scan),
        )

    async def notify_timesheet_processed(self, result: TimesheetResult) -> int:
        """Tell the carer, then every other client of the org (even if the carer is offline)."""
        carer_key = ClientKey(result.carer_id, result.org_id)
        if not await self.send_to(
            carer_key, messages.timesheet_event(messages.TIMESHEET_PROCESSED, result)
        ):
            logger.warning(
                "No active timesheet connection for carer %s", result.carer_id
            )
        admins = await self.broadcast(
            in_org(result.org_id, exclude_user=result.carer_id),
            messages.timesheet_event(messages.TIMESHEET_ADMIN_NOTIFICATION, result),
        )
        logger.info(
            "Timesheet %s admin notifications sent: %s", result.timesheet_id, admins
        )
        return admins


__all__ = ["ChatRegistry", "TaskRegistry", "TimesheetRegistry"]
