"""Durable notification history with per-user read tracking.

`record` is the best-effort path used by the delivery pipeline: failures are logged
and reported as `None`, never raised. The remaining operations back the HTTP API
and raise `AppException` subclasses.
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Union

from cachetools import TTLCache
from sqlalchemy.orm import Session, sessionmaker

from app.core.exceptions import ResourceNotFoundException

from .common import logger
from .models import NotificationHistory, NotificationPriority, NotificationStatus
from .repository import NotificationRepository, OrganizationRoleRepository
from .schemas import NotificationHistoryCreate, NotificationHistoryOut, Recipients

PriorityLike = Union[NotificationPriority, str]


def to_history_out(row: NotificationHistory, user_id: str) -> NotificationHistoryOut:
    return NotificationHistoryOut(
        id=row.id,
        organization_id=row.organization_id,
        type=row.type,
        priority=row.priority,
        title=row.title,
        content=row.content,
        metadata=row.notification_metadata,
        recipients=Recipients(
            users=row.recipient_users,
            roles=row.recipient_roles,
            everyone=bool(row.recipients_everyone),
        ),
        read_by=row.read_by,
        is_read=row.is_read_by(user_id),
        created_by=row.created_by,
        created_at=row.created_at,
        status=row.status,
        error=row.error,
    )


class HistoryRecorder:
    """Persist and query notification history.

    Holds a session factory rather than a session: the recorder outlives requests and
    is shared by the batcher's flush tasks.
    """

    def __init__(
        self,
        session_factory: sessionmaker,
        *,
        default_page_size: int = 10,
        max_page_size: int = 100,
        role_cache_ttl: int = 60,
    ) -> None:
        self._session_factory = session_factory
        self.default_page_size = default_page_size
        self.max_page_size = max_page_size
        self._role_cache: TTLCache = TTLCache(maxsize=2048, ttl=role_cache_ttl)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        db = self._session_factory()
        try:
            yield db
        except Exception:
            db.rollback()
            raise
        finally:
            db.close()

    # ----------------------------------------------------------------- roles
    def roles_for(self, db: Session, user_id: str, org_id: str) -> List[str]:
        cache_key = (user_id, org_id)
        roles = self._role_cache.get(cache_key)
        if roles is None:
            roles = OrganizationRoleRepository(db).roles_for(user_id, org_id)
            self._role_cache[cache_key] = roles
        return roles

    async def users_with_roles(self, org_id: str, roles: List[str]) -> List[str]:
        with self._session() as db:
            return OrganizationRoleRepository(db).users_with_roles(org_id, roles)

    def invalidate_roles(self) -> None:
        self._role_cache.clear()

    # ---------------------------------------------------------------- writes
    async def record(
        self,
        *,
        org_id: str,
        type: str,
        title: str,
        content: str,
        recipients: Recipients,
        created_by: str,
        priority: PriorityLike = NotificationPriority.MEDIUM,
        metadata: Optional[Dict[str, Any]] = None,
        status: NotificationStatus = NotificationStatus.SENT,
        error: Optional[str] = None,
    ) -> Optional[int]:
        """Insert a history row; returns its id, or None if the write failed."""
        try:
            with self._session() as db:
                row = NotificationRepository(db).create(
                    organization_id=org_id,
                    type=type,
                    title=title,
                    content=content,
                    created_by=created_by,
                    recipients=recipients,
                    priority=NotificationPriority(priority),
                    metadata=metadata,
                    status=status,
                    error=error,
                )
                return row.id
        except Exception:
            logger.exception(
                "Failed to record %s notification for org %s",
                type,
                org_id,
                extra={"notification_type": type},
            )
            return None

    async def create(
        self, *, org_id: str, created_by: str, data: NotificationHistoryCreate
    ) -> NotificationHistoryOut:
        """Strict variant of `record` for the manual create endpoint; errors propagate."""
        with self._session() as db:
            row = NotificationRepository(db).create(
                organization_id=org_id,
                type=data.type,
                title=data.title,
                content=data.content,
                created_by=created_by,
                recipients=data.recipients,
                priority=data.priority,
                metadata=data.metadata,
            )
            logger.info("Notification %s created by %s", row.id, created_by)
            return to_history_out(row, created_by)

    async def mark_read(self, notification_id: int, user_id: str, org_id: str) -> bool:
        """Idempotent. Returns True if this call added the read marker."""
        with self._session() as db:
            repo = NotificationRepository(db)
            if repo.get(notification_id, org_id) is None:
                raise ResourceNotFoundException("Notification", notification_id)
            return repo.add_read(notification_id, user_id)

    async def mark_all_read(self, user_id: str, org_id: str) -> int:
        with self._session() as db:
            repo = NotificationRepository(db)
            roles = self.roles_for(db, user_id, org_id)
            unread_ids = [
                nid
                for (nid,) in repo.visible_query(
                    user_id=user_id, organization_id=org_id, roles=roles
                )
                .filter(repo.unread_filter(user_id))
                .with_entities(NotificationHistory.id)
                .all()
            ]
            return repo.add_reads(unread_ids, user_id)

    async def delete(self, notification_id: int, user_id: str, org_id: str) -> None:
        """Only the creator may delete; anyone else sees a 404."""
        with self._session() as db:
            repo = NotificationRepository(db)
            row = repo.get(notification_id, org_id)
            if row is None or row.created_by != user_id:
                raise ResourceNotFoundException("Notification", notification_id)
            repo.delete(row)
            logger.info("Notification %s deleted by %s", notification_id, user_id)

    async def delete_by_type_and_creator(
        self, type: str, created_by: str, org_id: Optional[str] = None
    ) -> int:
        with self._session() as db:
            deleted = NotificationRepository(db).delete_by_type_and_creator(
                type, created_by, org_id
            )
        if deleted:
            logger.info("Removed %s %s notification(s) from %s", deleted, type, created_by)
        return deleted

    # --------------------------------------------------------------- queries
    async def list(
        self,
        user_id: str,
        org_id: str,
        cursor: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Page of notifications visible to the user, newest first."""
        limit = min(max(1, limit or self.default_page_size), self.max_page_size)
        with self._session() as db:
            repo = NotificationRepository(db)
            roles = self.roles_for(db, user_id, org_id)
            query = repo.visible_query(
                user_id=user_id, organization_id=org_id, roles=roles
            )
            total_count = repo.count(query)
            rows, next_cursor = repo.page(query, cursor=cursor, limit=limit)
            return {
                "notifications": [to_history_out(row, user_id) for row in rows],
                "total_count": total_count,
                "next_cursor": next_cursor,
            }

    async def get_unread_count(self, user_id: str, org_id: str) -> int:
        with self._session() as db:
            repo = NotificationRepository(db)
            roles = self.roles_for(db, user_id, org_id)
            query = repo.visible_query(
                user_id=user_id, organization_id=org_id, roles=roles
            ).filter(repo.unread_filter(user_id))
            return repo.count(query)


__all__ = ["HistoryRecorder", "to_history_out"]
