"""SQLAlchemy models and enums for the notifications domain."""

from __future__ import annotations

import enum
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Enum as SAEnum,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import relationship

from app.core.db_defaults import timestamp_default
from app.models.base import Base

# JSONB on Postgres, plain JSON elsewhere (SQLite in tests).
JSONType = JSON().with_variant(JSONB(), "postgresql")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _value_enum(enum_cls, name: str) -> SAEnum:
    """Persist enum *values* (``"medium"``) rather than member names."""
    return SAEnum(
        enum_cls,
        name=name,
        native_enum=False,
        validate_strings=True,
        values_callable=lambda members: [member.value for member in members],
    )


class NotificationPriority(str, enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class NotificationStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


class RecipientKind(str, enum.Enum):
    USER = "user"
    ROLE = "role"


class DeviceType(str, enum.Enum):
    IOS = "ios"
    ANDROID = "android"
    WEB = "web"


class NotificationType(str, enum.Enum):
    """Types the delivery pipeline emits; manual notifications may use any string."""

    NEW_SHIFTS_PUBLISHED = "NEW_SHIFTS_PUBLISHED"
    NEW_SHIFTS_ASSIGNED = "NEW_SHIFTS_ASSIGNED"
    SHIFT_CANCELLED = "SHIFT_CANCELLED"
    NEW_MESSAGE = "NEW_MESSAGE"
    BROADCAST_MESSAGE = "BROADCAST_MESSAGE"
    NEW_JOIN_REQUEST = "NEW_JOIN_REQUEST"
    JOIN_REQUEST_ACCEPTED = "JOIN_REQUEST_ACCEPTED"
    GENERAL = "GENERAL"


class NotificationHistory(Base):
    """Append-only audit record of a delivered (or attempted) notification.

    Recipients live in `notification_recipients`; per-user read markers in
    `notification_reads`. The integer primary key doubles as the pagination cursor.
    """

    __tablename__ = "notification_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    organization_id = Column(String, nullable=False, index=True)
    type = Column(String, nullable=False)
    priority = Column(
        _value_enum(NotificationPriority, "notification_priority"),
        nullable=False,
        default=NotificationPriority.MEDIUM,
    )
    title = Column(String, nullable=False)
    content = Column(Text, nullable=False)
    notification_metadata = Column("metadata", JSONType, nullable=True)
    recipients_everyone = Column(Boolean, nullable=False, default=False)
    created_by = Column(String, nullable=False)
    created_at = Column(
        DateTime(timezone=True),
        nullable=False,
        default=_utcnow,
        server_default=timestamp_default(),
    )
    status = Column(
        _value_enum(NotificationStatus, "notification_status"),
        nullable=False,
        default=NotificationStatus.SENT,
    )
    error = Column(Text, nullable=True)

    recipients = relationship(
        "NotificationRecipient",
        back_populates="notification",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )
    reads = relationship(
        "NotificationRead",
        back_populates="notification",
        cascade="all, delete-orphan",
        passive_deletes=True,
        lazy="selectin",
    )

    __table_args__ = (
        Index("idx_notification_history_org_id", "organization_id", "id"),
        Index("idx_notification_history_type_creator", "type", "created_by"),
    )

    @property
    def recipient_users(self) -> list[str]:
        return [r.value for r in self.recipients if r.kind == RecipientKind.USER]

    @property
    def recipient_roles(self) -> list[str]:
        return [r.value for r in self.recipients if r.kind == RecipientKind.ROLE]

    @property
    def read_by(self) -> list[str]:
        return [r.user_id for r in self.reads]

    def is_read_by(self, user_id: str) -> bool:
        return any(r.user_id == user_id for r in self.reads)


class NotificationRecipient(Base):
    """One entry of a notification's `users` or `roles` recipient list."""

    __tablename__ = "notification_recipients"

    id = Column(Integer, primary_key=True, autoincrement=True)
    notification_id = Column(
        Integer,
        ForeignKey("notification_history.id", ondelete="CASCADE"),
        nullable=False,
    )
    kind = Column(_value_enum(RecipientKind, "recipient_kind"), nullable=False)
    value = Column(String, nullable=False)

    notification = relationship("NotificationHistory", back_populates="recipients")

    __table_args__ = (
        Index("idx_notification_recipients_lookup", "kind", "value"),
        Index("idx_notification_recipients_notification", "notification_id"),
    )


class NotificationRead(Base):
    """Marks that a user has read a notification."""

    __tablename__ = "notification_reads"

    id = Column(Integer, primary_key=True, autoincrement=True)
    notification_id = Column(
        Integer,
        ForeignKey("notification_history.id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(String, nullable=False)
    read_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    notification = relationship("NotificationHistory", back_populates="reads")

    __table_args__ = (
        UniqueConstraint(
            "notification_id", "user_id", name="uq_notification_reads_user"
        ),
        Index("idx_notification_reads_user", "user_id"),
    )


class DeviceToken(Base):
    """FCM registration token for one of a user's devices."""

    __tablename__ = "device_tokens"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False, index=True)
    token = Column(String, nullable=False)
    device_type = Column(_value_enum(DeviceType, "device_type"), nullable=False)
    device_identifier = Column(String, nullable=False)
    device_model = Column(String, nullable=True)
    os_version = Column(String, nullable=True)
    app_version = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)
    updated_at = Column(
        DateTime(timezone=True), nullable=False, default=_utcnow, onupdate=_utcnow
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "device_identifier", name="uq_device_tokens_user_device"
        ),
        Index("idx_device_tokens_token", "token"),
    )


class OrganizationRole(Base):
    """Read model of a user's role within an organisation.

    Written by the organisation services; consumed here to resolve role
    recipients and organisation admins.
    """

    __tablename__ = "organization_roles"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String, nullable=False)
    organization_id = Column(String, nullable=False)
    role = Column(String, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "user_id", "organization_id", name="uq_organization_roles_member"
        ),
        Index("idx_organization_roles_org_role", "organization_id", "role"),
    )


__all__ = [
    "JSONType",
    "NotificationPriority",
    "NotificationStatus",
    "RecipientKind",
    "DeviceType",
    "NotificationType",
    "NotificationHistory",
    "NotificationRecipient",
    "NotificationRead",
    "DeviceToken",
    "OrganizationRole",
]
