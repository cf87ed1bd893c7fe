"""Device token registration and lookup for push delivery."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional

from sqlalchemy.orm import Session, sessionmaker

from app.core.exceptions import ValidationException

from .common import logger
from .repository import DeviceTokenRepository
from .schemas import DeviceRegistration, DeviceTokenOut


class DeviceTokenStore:
    """Upserts device tokens by `(user_id, device_identifier)` and resolves push targets."""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        finally:
            db.close()

    async def register(self, user_id: str, device: DeviceRegistration) -> DeviceTokenOut:
        with self._session() as db:
            row = DeviceTokenRepository(db).upsert(user_id, **device.model_dump())
            logger.info(
                "Registered %s device %s for user %s",
                device.device_type.value,
                device.device_identifier,
                user_id,
            )
            return DeviceTokenOut.model_validate(row)

    async def list_for_user(self, user_id: str) -> List[DeviceTokenOut]:
        with self._session() as db:
            rows = DeviceTokenRepository(db).list_for_user(user_id)
            return [DeviceTokenOut.model_validate(row) for row in rows]

    async def remove(
        self,
        user_id: str,
        *,
        token: Optional[str] = None,
        device_identifier: Optional[str] = None,
    ) -> int:
        if not token and not device_identifier:
            raise ValidationException(
                "Either token or deviceIdentifier is required", field="token"
            )
        with self._session() as db:
            return DeviceTokenRepository(db).delete_for_user(
                user_id, token=token, device_identifier=device_identifier
            )

    async def tokens_for_users(self, user_ids: Iterable[str]) -> Dict[str, List[str]]:
        with self._session() as db:
            return DeviceTokenRepository(db).tokens_for_users(user_ids)

    async def prune(self, tokens: Iterable[str]) -> int:
        """Drop tokens FCM reported as unregistered. Best effort."""
        values = list(tokens)
        if not values:
            return 0
        try:
            with self._session() as db:
                deleted = DeviceTokenRepository(db).delete_tokens(values)
        except Exception:
            logger.exception("Failed to prune %s stale device tokens", len(values))
            return 0
        if deleted:
            logger.info("Pruned %s unregistered device tokens", deleted)
        return deleted


__all__ = ["DeviceTokenStore"]
