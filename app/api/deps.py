"""Shared FastAPI dependencies.

Authentication happens upstream: the gateway forwards the caller's identity in the
`X-User-Id` and `X-Organization-Id` headers. Delivery services live on `app.state`
(built by the app factory lifespan) and are resolved per request from there.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from fastapi import Header, Request

from app.core.exceptions import MissingIdentityException, ServiceUnavailableException
from app.core.middleware.logging_middleware import ORG_HEADER, USER_HEADER
from app.modules.notifications.devices import DeviceTokenStore
from app.modules.notifications.history import HistoryRecorder


@dataclass(frozen=True)
class Identity:
    user_id: str
    org_id: str


def get_user_id(
    x_user_id: Optional[str] = Header(None, alias=USER_HEADER),
) -> str:
    if not x_user_id or not x_user_id.strip():
        raise MissingIdentityException(USER_HEADER)
    return x_user_id.strip()


def get_identity(
    x_user_id: Optional[str] = Header(None, alias=USER_HEADER),
    x_organization_id: Optional[str] = Header(None, alias=ORG_HEADER),
) -> Identity:
    user_id = get_user_id(x_user_id)
    if not x_organization_id or not x_organization_id.strip():
        raise MissingIdentityException(ORG_HEADER)
    return Identity(user_id=user_id, org_id=x_organization_id.strip())


def _state_service(request: Request, name: str, label: str):
    service = getattr(request.app.state, name, None)
    if service is None:
        raise ServiceUnavailableException(label)
    return service


def get_history_recorder(request: Request) -> HistoryRecorder:
    return _state_service(request, "history_recorder", "Notification history")


def get_device_store(request: Request) -> DeviceTokenStore:
    return _state_service(request, "device_store", "Device registry")


__all__ = [
    "Identity",
    "get_user_id",
    "get_identity",
    "get_history_recorder",
    "get_device_store",
]
