"""initial schema

Revision ID: 3f9c2a7d1e04
Revises:
Create Date: 2026-03-01 09:00:00.000000+00:00

"""

from __future__ import annotations

from collections.abc import Sequence

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op
from calendar_notifier.core.database.types import StringArray, UTCDateTime

# revision identifiers, used by Alembic.
revision: str = "3f9c2a7d1e04"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def _json() -> sa.types.TypeEngine:
    return postgresql.JSONB(astext_type=sa.Text()).with_variant(sa.JSON(), "sqlite")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            UTCDateTime(),
            server_default=sa.func.now(),
            nullable=False,
            comment="Timestamp of record creation",
        ),
        sa.Column(
            "updated_at",
            UTCDateTime(),
            server_default=sa.func.now(),
            nullable=False,
            comment="Timestamp of last update",
        ),
    ]


def upgrade() -> None:
    """Upgrade database schema."""
    op.create_table(
        "calendar_events",
        sa.Column("id", sa.String(length=255), nullable=False),
        sa.Column("title", sa.String(length=200), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("start_time", UTCDateTime(), nullable=False),
        sa.Column("end_time", UTCDateTime(), nullable=True),
        sa.Column("timezone", sa.String(length=64), nullable=True),
        sa.Column("owner_id", sa.String(length=255), nullable=False),
        sa.Column(
            "participant_ids",
            StringArray(),
            nullable=False,
            comment="Group members / invitees besides the owner",
        ),
        sa.Column("status", sa.String(length=20), nullable=False),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_calendar_events")),
    )
    op.create_index(
        op.f("ix_calendar_events_status_start"),
        "calendar_events",
        ["status", "start_time"],
        unique=False,
    )

    op.create_table(
        "notifications",
        sa.Column("id", sa.Uuid(), nullable=False, comment="UUID v7 primary key (time-sortable)"),
        sa.Column("user_id", sa.String(length=255), nullable=False, comment="Recipient user identifier"),
        sa.Column(
            "event_id",
            sa.String(length=255),
            nullable=False,
            comment="Calendar event the notification refers to",
        ),
        sa.Column(
            "kind",
            sa.String(length=32),
            nullable=False,
            comment="advance_reminder, start_reminder, snooze_reminder, cancellation",
        ),
        sa.Column("title", sa.String(length=200), nullable=False, comment="Short headline"),
        sa.Column("message", sa.Text(), nullable=False, comment="Body text"),
        sa.Column("priority", sa.String(length=10), nullable=False, comment="low, medium, high, urgent"),
        sa.Column(
            "scheduled_time",
            UTCDateTime(),
            nullable=False,
            comment="Instant at which delivery should be attempted",
        ),
        sa.Column(
            "status",
            sa.String(length=20),
            nullable=False,
            comment="pending, sent, failed, acknowledged, cancelled",
        ),
        sa.Column(
            "channels",
            StringArray(),
            nullable=False,
            comment="Delivery channels to attempt (push, email, realtime)",
        ),
        sa.Column("retry_count", sa.Integer(), nullable=False),
        sa.Column("max_retries", sa.Integer(), nullable=False),
        sa.Column(
            "error_message",
            sa.Text(),
            nullable=True,
            comment="Reason of the last total delivery failure",
        ),
        sa.Column(
            "user_action",
            sa.String(length=20),
            nullable=True,
            comment="confirmed, snooze, ready or dismissed",
        ),
        sa.Column("sent_at", UTCDateTime(), nullable=True),
        sa.Column("failed_at", UTCDateTime(), nullable=True),
        sa.Column("acknowledged_at", UTCDateTime(), nullable=True),
        sa.Column("read_at", UTCDateTime(), nullable=True),
        sa.Column(
            "metadata",
            _json(),
            nullable=False,
            comment="Free-form data (offsets, offered actions, snooze chain)",
        ),
        sa.Column(
            "delivery_receipt",
            _json(),
            nullable=True,
            comment="Per-channel outcome of the last dispatch",
        ),
        *_timestamps(),
        sa.CheckConstraint(
            "retry_count <= max_retries", name=op.f("ck_notifications_retry_bound")
        ),
        sa.CheckConstraint(
            "max_retries >= 0 AND max_retries <= 5",
            name=op.f("ck_notifications_max_retries_range"),
        ),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_notifications")),
    )
    op.create_index(
        op.f("ix_notifications_status_scheduled_time"),
        "notifications",
        ["status", "scheduled_time"],
        unique=False,
    )
    op.create_index(
        op.f("ix_notifications_event_user_kind"),
        "notifications",
        ["event_id", "user_id", "kind"],
        unique=False,
    )
    op.create_index(
        op.f("ix_notifications_user_created"),
        "notifications",
        ["user_id", "created_at"],
        unique=False,
    )

    op.create_table(
        "notification_preferences",
        sa.Column("id", sa.Uuid(), nullable=False, comment="UUID v7 primary key (time-sortable)"),
        sa.Column("user_id", sa.String(length=255), nullable=False, comment="User identifier"),
        sa.Column(
            "email",
            sa.String(length=255),
            nullable=True,
            comment="Address used by the email channel",
        ),
        sa.Column(
            "enabled_channels",
            StringArray(),
            nullable=False,
            comment="Enabled delivery channels",
        ),
        sa.Column(
            "advance_offsets",
            _json(),
            nullable=False,
            comment="Minutes before the event start at which to remind",
        ),
        sa.Column("quiet_hours_enabled", sa.Boolean(), nullable=False),
        sa.Column("quiet_hours_start", sa.String(length=5), nullable=False),
        sa.Column("quiet_hours_end", sa.String(length=5), nullable=False),
        sa.Column("timezone", sa.String(length=64), nullable=False, comment="IANA timezone name"),
        *_timestamps(),
        sa.PrimaryKeyConstraint("id", name=op.f("pk_notification_preferences")),
        sa.UniqueConstraint("user_id", name=op.f("uq_notification_preferences_user_id")),
    )


def downgrade() -> None:
    """Downgrade database schema."""
    op.drop_table("notification_preferences")
    op.drop_index(op.f("ix_notifications_user_created"), table_name="notifications")
    op.drop_index(op.f("ix_notifications_event_user_kind"), table_name="notifications")
    op.drop_index(op.f("ix_notifications_status_scheduled_time"), table_name="notifications")
    op.drop_table("notifications")
    op.drop_index(op.f("ix_calendar_events_status_start"), table_name="calendar_events")
    op.drop_table("calendar_events")
