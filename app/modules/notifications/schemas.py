"""Pydantic schemas dedicated to the notifications domain.

Client-facing payloads use camelCase on the wire (`populate_by_name` keeps the
snake_case names usable from Python).
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .models import DeviceType, NotificationPriority, NotificationStatus


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# --------------------------------------------------------------- recipients
class Recipients(CamelModel):
    users: List[str] = Field(default_factory=list)
    roles: List[str] = Field(default_factory=list)
    everyone: bool = False


# ------------------------------------------------------------------ history
class NotificationHistoryCreate(CamelModel):
    """Body of the manual "create notification" endpoint."""

    type: str = Field(min_length=1, max_length=64)
    title: str = Field(min_length=1, max_length=200)
    content: str = Field(min_length=1)
    priority: NotificationPriority = NotificationPriority.MEDIUM
    metadata: Optional[Dict[str, Any]] = None
    recipients: Recipients = Field(default_factory=Recipients)


class NotificationHistoryOut(CamelModel):
    id: int
    organization_id: str
    type: str
    priority: NotificationPriority
    title: str
    content: str
    metadata: Optional[Dict[str, Any]] = None
    recipients: Recipients
    read_by: List[str] = Field(default_factory=list)
    is_read: bool = False
    created_by: str
    created_at: datetime
    status: NotificationStatus = NotificationStatus.SENT
    error: Optional[str] = None


class NotificationHistoryPage(CamelModel):
    notifications: List[NotificationHistoryOut]
    total_count: int
    next_cursor: Optional[int] = None


class UnreadCountOut(CamelModel):
    count: int


class MarkAllReadOut(CamelModel):
    updated: int


# ------------------------------------------------------------------ devices
class DeviceRegistration(CamelModel):
    token: str = Field(min_length=1)
    device_type: DeviceType
    device_identifier: str = Field(min_length=1)
    device_model: Optional[str] = None
    os_version: Optional[str] = None
    app_version: Optional[str] = None


class DeviceTokenOut(CamelModel):
    id: int
    user_id: str
    token: str
    device_type: DeviceType
    device_identifier: str
    device_model: Optional[str] = None
    os_version: Optional[str] = None
    app_version: Optional[str] = None
    updated_at: datetime

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True
    )


class DeviceTokenDelete(CamelModel):
    token: Optional[str] = None
    device_identifier: Optional[str] = None


# ------------------------------------------------------------ domain events
class ShiftEvent(CamelModel):
    """A shift write the scheduling service reports to the delivery pipeline."""

    id: Optional[str] = None
    date: str
    home_id: str
    shift_pattern_id: str
    agent_id: Optional[str] = None
    count: int = Field(default=1, ge=1)

    def batch_payload(self) -> Dict[str, Any]:
        """Per-event payload held by the batcher and echoed in `shiftsData`."""
        return {
            "date": self.date,
            "homeId": self.home_id,
            "shiftPatternId": self.shift_pattern_id,
            "count": self.count,
        }


class ChatMessage(CamelModel):
    id: Optional[str] = None
    org_id: Optional[str] = None
    sender_id: str
    sender_name: str
    receiver_id: Optional[str] = None
    content: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="allow"
    )


class TaskUpdate(CamelModel):
    task_id: str
    resident_id: str
    org_id: str
    status: Literal["upcoming", "pending", "completed", "overdue", "missed", "idle"]
    updated_by: str
    summary: Optional[Any] = None


class TimesheetScan(CamelModel):
    barcode: str
    carer_id: str
    org_id: str
    timestamp: datetime
    status: Literal["scanned", "processed", "error"]
    error: Optional[str] = None


class TimesheetResult(CamelModel):
    barcode: str
    carer_id: str
    org_id: str
    timestamp: datetime
    timesheet_id: str
    status: Literal["success", "error", "rejected", "processing"]
    error: Optional[str] = None


__all__ = [
    "CamelModel",
    "Recipients",
    "NotificationHistoryCreate",
    "NotificationHistoryOut",
    "NotificationHistoryPage",
    "UnreadCountOut",
    "MarkAllReadOut",
    "DeviceRegistration",
    "DeviceTokenOut",
    "DeviceTokenDelete",
    "ShiftEvent",
    "ChatMessage",
    "TaskUpdate",
    "TimesheetScan",
    "TimesheetResult",
]
