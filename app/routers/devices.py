"""Device token router used by the mobile and web clients to enable push."""

from typing import List

from fastapi import APIRouter, Depends, status

from app.api.deps import get_device_store, get_user_id
from app.modules.notifications.devices import DeviceTokenStore
from app.modules.notifications.schemas import (
    DeviceRegistration,
    DeviceTokenDelete,
    DeviceTokenOut,
)

router = APIRouter(prefix="/notifications/devices", tags=["Devices"])


@router.post("/register", response_model=DeviceTokenOut)
async def register_device(
    payload: DeviceRegistration,
    user_id: str = Depends(get_user_id),
    store: DeviceTokenStore = Depends(get_device_store),
):
    """Create or refresh the token for this user's device."""
    return await store.register(user_id, payload)


@router.get("/tokens", response_model=List[DeviceTokenOut])
async def list_tokens(
    user_id: str = Depends(get_user_id),
    store: DeviceTokenStore = Depends(get_device_store),
):
    return await store.list_for_user(user_id)


@router.delete("/token")
async def delete_token(
    payload: DeviceTokenDelete,
    user_id: str = Depends(get_user_id),
    store: DeviceTokenStore = Depends(get_device_store),
):
    deleted = await store.remove(
        user_id, token=payload.token, device_identifier=payload.device_identifier
    )
    return {"deleted": deleted}
