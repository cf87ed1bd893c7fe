"""Notification history router: feed, unread count, read markers and manual create."""

from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status

from app.api.deps import Identity, get_history_recorder, get_identity
from app.core.middleware.rate_limit import limiter
from app.modules.notifications.history import HistoryRecorder
from app.modules.notifications.schemas import (
    MarkAllReadOut,
    NotificationHistoryCreate,
    NotificationHistoryOut,
    NotificationHistoryPage,
    UnreadCountOut,
)

router = APIRouter(prefix="/notifications/history", tags=["Notifications"])


@router.get("/", response_model=NotificationHistoryPage)
async def list_notifications(
    cursor: Optional[int] = Query(None, ge=1, description="Id of the last item seen"),
    limit: Optional[int] = Query(None, ge=1, le=100),
    identity: Identity = Depends(get_identity),
    recorder: HistoryRecorder = Depends(get_history_recorder),
):
    """Notifications addressed to the caller, newest first."""
    return await recorder.list(identity.user_id, identity.org_id, cursor, limit)


@router.get("/unread/count", response_model=UnreadCountOut)
async def unread_count(
    identity: Identity = Depends(get_identity),
    recorder: HistoryRecorder = Depends(get_history_recorder),
):
    count = await recorder.get_unread_count(identity.user_id, identity.org_id)
    return UnreadCountOut(count=count)


@router.put("/read-all", response_model=MarkAllReadOut)
@limiter.limit("10/minute")
async def mark_all_read(
    request: Request,
    identity: Identity = Depends(get_identity),
    recorder: HistoryRecorder = Depends(get_history_recorder),
):
    updated = await recorder.mark_all_read(identity.user_id, identity.org_id)
    return MarkAllReadOut(updated=updated)


@router.put("/{notification_id}/read", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("100/minute")
async def mark_read(
    request: Request,
    notification_id: int,
    identity: Identity = Depends(get_identity),
    recorder: HistoryRecorder = Depends(get_history_recorder),
):
    await recorder.mark_read(notification_id, identity.user_id, identity.org_id)


@router.delete("/{notification_id}", status_code=status.HTTP_204_NO_CONTENT)
@limiter.limit("50/minute")
async def delete_notification(
    request: Request,
    notification_id: int,
    identity: Identity = Depends(get_identity),
    recorder: HistoryRecorder = Depends(get_history_recorder),
):
    """Only the creator may delete a notification."""
    await recorder.delete(notification_id, identity.user_id, identity.org_id)


@router.post(
    "/", response_model=NotificationHistoryOut, status_code=status.HTTP_201_CREATED
)
@limiter.limit("30/minute")
async def create_notification(
    request: Request,
    payload: NotificationHistoryCreate,
    identity: Identity = Depends(get_identity),
    recorder: HistoryRecorder = Depends(get_history_recorder),
):
    return await recorder.create(
        org_id=identity.org_id, created_by=identity.user_id, data=payload
    )
