"""Notifications domain package: socket registries, shift batching, push and history."""

from .batching import NotificationBatcher
from .channels import ChatRegistry, TaskRegistry, TimesheetRegistry
from .devices import DeviceTokenStore
from .history import HistoryRecorder
from .models import (
    DeviceToken,
    NotificationHistory,
    NotificationPriority,
    NotificationRead,
    NotificationRecipient,
    NotificationStatus,
    NotificationType,
    OrganizationRole,
)
from .orchestrator import DeliveryOrchestrator
from .push import PushBatchResult, PushDispatcher, PushFailureKind, PushPayload
from .realtime import ClientKey, ConnectionRegistry

__all__ = [
    "ClientKey",
    "ConnectionRegistry",
    "ChatRegistry",
    "TaskRegistry",
    "TimesheetRegistry",
    "NotificationBatcher",
    "PushDispatcher",
    "PushPayload",
    "PushBatchResult",
    "PushFailureKind",
    "HistoryRecorder",
    "DeviceTokenStore",
    "DeliveryOrchestrator",
    "NotificationHistory",
    "NotificationRecipient",
    "NotificationRead",
    "NotificationPriority",
    "NotificationStatus",
    "NotificationType",
    "DeviceToken",
    "OrganizationRole",
]
