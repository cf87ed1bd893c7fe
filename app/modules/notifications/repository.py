"""Data-access helpers for the notifications domain."""

from __future__ import annotations

from collections import defaultdict
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, exists, or_
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Query, Session

from app.modules.notifications import models as notification_models
from app.modules.notifications.schemas import Recipients

History = notification_models.NotificationHistory
Recipient = notification_models.NotificationRecipient
Read = notification_models.NotificationRead
DeviceToken = notification_models.DeviceToken
OrganizationRole = notification_models.OrganizationRole
RecipientKind = notification_models.RecipientKind


class NotificationRepository:
    """Encapsulate notification-history database operations."""

    def __init__(self, db: Session):
        self.db = db

    # ----------------------------------------------------------------- writes
    def create(
        self,
        *,
        organization_id: str,
        type: str,
        title: str,
        content: str,
        created_by: str,
        recipients: Recipients,
        priority: notification_models.NotificationPriority = notification_models.NotificationPriority.MEDIUM,
        metadata: Optional[Dict[str, Any]] = None,
        status: notification_models.NotificationStatus = notification_models.NotificationStatus.SENT,
        error: Optional[str] = None,
    ) -> History:
        row = History(
            organization_id=organization_id,
            type=type,
            priority=priority,
            title=title,
            content=content,
            notification_metadata=metadata,
            recipients_everyone=recipients.everyone,
            created_by=created_by,
            status=status,
            error=error,
        )
        row.recipients = [
            Recipient(kind=RecipientKind.USER, value=user_id)
            for user_id in dict.fromkeys(recipients.users)
        ] + [
            Recipient(kind=RecipientKind.ROLE, value=role)
            for role in dict.fromkeys(recipients.roles)
        ]
        self.db.add(row)
        self.db.commit()
        self.db.refresh(row)
        return row

    def add_read(self, notification_id: int, user_id: str) -> bool:
        """Insert a read marker; False when it already existed."""
        if self._has_read(notification_id, user_id):
            return False
        self.db.add(Read(notification_id=notification_id, user_id=user_id))
        try:
            self.db.commit()
        except IntegrityError:
            # Concurrent mark-read for the same pair.
            self.db.rollback()
            return False
        return True

    def add_reads(self, notification_ids: Iterable[int], user_id: str) -> int:
        ids = list(notification_ids)
        if not ids:
            return 0
        self.db.add_all(
            [Read(notification_id=nid, user_id=user_id) for nid in ids]
        )
        try:
            self.db.commit()
        except IntegrityError:
            self.db.rollback()
            return sum(1 for nid in ids if self.add_read(nid, user_id))
        return len(ids)

    def delete(self, row: History) -> None:
        self.db.delete(row)
        self.db.commit()

    def delete_by_type_and_creator(
        self, type: str, created_by: str, organization_id: Optional[str] = None
    ) -> int:
        query = self.db.query(History).filter(
            History.type == type, History.created_by == created_by
        )
        if organization_id is not None:
            query = query.filter(History.organization_id == organization_id)
        rows = query.all()
        for row in rows:
            self.db.delete(row)
        self.db.commit()
        return len(rows)

    # ---------------------------------------------------------------- queries
    def get(self, notification_id: int, organization_id: str) -> Optional[History]:
        return (
            self.db.query(History)
            .filter(
                History.id == notification_id,
                History.organization_id == organization_id,
            )
            .first()
        )

    def _has_read(self, notification_id: int, user_id: str) -> bool:
        return self.db.query(
            exists().where(
                and_(Read.notification_id == notification_id, Read.user_id == user_id)
            )
        ).scalar()

    def visible_query(
        self, *, user_id: str, organization_id: str, roles: Sequence[str]
    ) -> Query:
        """History rows addressed to the user directly, to one of their roles, or to everyone."""
        recipient_match = [
            and_(Recipient.kind == RecipientKind.USER, Recipient.value == user_id)
        ]
        if roles:
            recipient_match.append(
                and_(Recipient.kind == RecipientKind.ROLE, Recipient.value.in_(list(roles)))
            )
        addressed = exists().where(
            and_(Recipient.notification_id == History.id, or_(*recipient_match))
        )
        return self.db.query(History).filter(
            History.organization_id == organization_id,
            or_(History.recipients_everyone.is_(True), addressed),
        )

    def unread_filter(self, user_id: str):
        return ~exists().where(
            and_(Read.notification_id == History.id, Read.user_id == user_id)
        )

    def page(
        self, query: Query, *, cursor: Optional[int], limit: int
    ) -> Tuple[List[History], Optional[int]]:
        """Keyset page in descending id order; returns rows and the next cursor."""
        if cursor is not None:
            query = query.filter(History.id < cursor)
        rows = query.order_by(History.id.desc()).limit(limit + 1).all()
        next_cursor = None
        if len(rows) > limit:
            rows = rows[:limit]
            next_cursor = rows[-1].id
        return rows, next_cursor

    @staticmethod
    def count(query: Query) -> int:
        return query.order_by(None).count()


class DeviceTokenRepository:
    """Device registration tokens keyed by `(user_id, device_identifier)`."""

    def __init__(self, db: Session):
        self.db = db

    def upsert(self, user_id: str, **fields: Any) -> DeviceToken:
        device_identifier = fields["device_identifier"]
        row = (
            self.db.query(DeviceToken)
            .filter(
                DeviceToken.user_id == user_id,
                DeviceToken.device_identifier == device_identifier,
            )
            .first()
        )
        if row is None:
            row = DeviceToken(user_id=user_id, **fields)
            self.db.add(row)
        else:
            for name, value in fields.items():
                setattr(row, name, value)
        self.db.commit()
        self.db.refresh(row)
        return row

    def list_for_user(self, user_id: str) -> List[DeviceToken]:
        return (
            self.db.query(DeviceToken)
            .filter(DeviceToken.user_id == user_id)
            .order_by(DeviceToken.updated_at.desc())
            .all()
        )

    def tokens_for_users(self, user_ids: Iterable[str]) -> Dict[str, List[str]]:
        ids = list(dict.fromkeys(user_ids))
        if not ids:
            return {}
        grouped: Dict[str, List[str]] = defaultdict(list)
        rows = (
            self.db.query(DeviceToken.user_id, DeviceToken.token)
            .filter(DeviceToken.user_id.in_(ids))
            .all()
        )
        for owner, token in rows:
            if token not in grouped[owner]:
                grouped[owner].append(token)
        return dict(grouped)

    def delete_for_user(
        self,
        user_id: str,
        *,
        token: Optional[str] = None,
        device_identifier: Optional[str] = None,
    ) -> int:
        query = self.db.query(DeviceToken).filter(DeviceToken.user_id == user_id)
        if token:
            query = query.filter(DeviceToken.token == token)
        if device_identifier:
            query = query.filter(DeviceToken.device_identifier == device_identifier)
        deleted = query.delete(synchronize_session=False)
        self.db.commit()
        return deleted

    def delete_tokens(self, tokens: Iterable[str]) -> int:
        values = list(set(tokens))
        if not values:
            return 0
        deleted = (
            self.db.query(DeviceToken)
            .filter(DeviceToken.token.in_(values))
            .delete(synchronize_session=False)
        )
        self.db.commit()
        return deleted


class OrganizationRoleRepository:
    """Read access to organisation membership roles."""

    def __init__(self, db: Session):
        self.db = db

    def roles_for(self, user_id: str, organization_id: str) -> List[str]:
        rows = (
            self.db.query(OrganizationRole.role)
            .filter(
                OrganizationRole.user_id == user_id,
                OrganizationRole.organization_id == organization_id,
            )
            .all()
        )
        return [role for (role,) in rows]

    def users_with_roles(self, organization_id: str, roles: Sequence[str]) -> List[str]:
        if not roles:
            return []
        rows = (
            self.db.query(OrganizationRole.user_id)
            .filter(
                OrganizationRole.organization_id == organization_id,
                OrganizationRole.role.in_(list(roles)),
            )
            .order_by(OrganizationRole.id)
            .all()
        )
        return list(dict.fromkeys(user_id for (user_id,) in rows))


__all__ = [
    "NotificationRepository",
    "DeviceTokenRepository",
    "OrganizationRoleRepository",
]
