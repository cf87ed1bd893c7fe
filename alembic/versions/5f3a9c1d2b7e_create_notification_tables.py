"""create_notification_tables

Revision ID: 5f3a9c1d2b7e
Revises:
Create Date: 2026-10-17 09:12:44.318210

"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = "5f3a9c1d2b7e"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

JSON_TYPE = sa.JSON().with_variant(postgresql.JSONB(), "postgresql")


def _enum(name: str, *values: str) -> sa.Enum:
    return sa.Enum(*values, name=name, native_enum=False)


def upgrade() -> None:
    """History, recipients, read markers, device tokens and the role read model."""
    op.create_table(
        "notification_history",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("organization_id", sa.String(), nullable=False),
        sa.Column("type", sa.String(), nullable=False),
        sa.Column(
            "priority",
            _enum("notification_priority", "low", "medium", "high"),
            nullable=False,
        ),
        sa.Column("title", sa.String(), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("metadata", JSON_TYPE, nullable=True),
        sa.Column("recipients_everyone", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.String(), nullable=False),
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            server_default=sa.text("CURRENT_TIMESTAMP"),
            nullable=False,
        ),
        sa.Column(
            "status",
            _enum("notification_status", "pending", "sent", "failed"),
            nullable=False,
        ),
        sa.Column("error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_notification_history_organization_id",
        "notification_history",
        ["organization_id"],
    )
    op.create_index(
        "idx_notification_history_org_id",
        "notification_history",
        ["organization_id", "id"],
    )
    op.create_index(
        "idx_notification_history_type_creator",
        "notification_history",
        ["type", "created_by"],
    )

    op.create_table(
        "notification_recipients",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("notification_id", sa.Integer(), nullable=False),
        sa.Column("kind", _enum("recipient_kind", "user", "role"), nullable=False),
        sa.Column("value", sa.String(), nullable=False),
        sa.ForeignKeyConstraint(
            ["notification_id"], ["notification_history.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "idx_notification_recipients_lookup",
        "notification_recipients",
        ["kind", "value"],
    )
    op.create_index(
        "idx_notification_recipients_notification",
        "notification_recipients",
        ["notification_id"],
    )

    op.create_table(
        "notification_reads",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("notification_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["notification_id"], ["notification_history.id"], ondelete="CASCADE"
        ),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "notification_id", "user_id", name="uq_notification_reads_user"
        ),
    )
    op.create_index("idx_notification_reads_user", "notification_reads", ["user_id"])

    op.create_table(
        "device_tokens",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("token", sa.String(), nullable=False),
        sa.Column(
            "device_type", _enum("device_type", "ios", "android", "web"), nullable=False
        ),
        sa.Column("device_identifier", sa.String(), nullable=False),
        sa.Column("device_model", sa.String(), nullable=True),
        sa.Column("os_version", sa.String(), nullable=True),
        sa.Column("app_version", sa.String(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "device_identifier", name="uq_device_tokens_user_device"
        ),
    )
    op.create_index("ix_device_tokens_user_id", "device_tokens", ["user_id"])
    op.create_index("idx_device_tokens_token", "device_tokens", ["token"])

    op.create_table(
        "organization_roles",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("user_id", sa.String(), nullable=False),
        sa.Column("organization_id", sa.String(), nullable=False),
        sa.Column("role", sa.String(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "organization_id", name="uq_organization_roles_member"
        ),
    )
    op.create_index(
        "idx_organization_roles_org_role",
        "organization_roles",
        ["organization_id", "role"],
    )


def downgrade() -> None:
    op.drop_index("idx_organization_roles_org_role", table_name="organization_roles")
    op.drop_table("organization_roles")
    op.drop_index("idx_device_tokens_token", table_name="device_tokens")
    op.drop_index("ix_device_tokens_user_id", table_name="device_tokens")
    op.drop_table("device_tokens")
    op.drop_index("idx_notification_reads_user", table_name="notification_reads")
    op.drop_table("notification_reads")
    op.drop_index(
        "idx_notification_recipients_notification",
        table_name="notification_recipients",
    )
    op.drop_index(
        "idx_notification_recipients_lookup", table_name="notification_recipients"
    )
    op.drop_table("notification_recipients")
    op.drop_index(
        "idx_notification_history_type_creator", table_name="notification_history"
    )
    op.drop_index("idx_notification_history_org_id", table_name="notification_history")
    op.drop_index(
        "ix_notification_history_organization_id", table_name="notification_history"
    )
    op.drop_table("notification_history")
