"""SQLAlchemy models for the notifications feature."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum
from typing import Any

from sqlalchemy import JSON, Boolean, CheckConstraint, Index, Integer, String, Text
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from calendar_notifier.core.database import (
    Base,
    StringArray,
    TimestampMixin,
    UTCDateTime,
    UUIDv7PKMixin,
)


class NotificationKind(StrEnum):
    ADVANCE_REMINDER = "advance_reminder"
    START_REMINDER = "start_reminder"
    SNOOZE_REMINDER = "snooze_reminder"
    CANCELLATION = "cancellation"


class NotificationStatus(StrEnum):
    """Lifecycle states of a notification.

    ``pending`` is the only state the ticker dispatches from; ``cancelled``
    and ``acknowledged`` are final.
    """

    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"
    ACKNOWLEDGED = "acknowledged"
    CANCELLED = "cancelled"


class NotificationPriority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    URGENT = "urgent"


class DeliveryChannel(StrEnum):
    PUSH = "push"
    EMAIL = "email"
    REALTIME = "realtime"


class UserAction(StrEnum):
    """Responses a user can give to an advance reminder."""

    CONFIRMED = "confirmed"
    SNOOZE = "snooze"
    READY = "ready"
    DISMISSED = "dismissed"


# Statuses the retention sweeper may delete
TERMINAL_STATUSES = frozenset(
    {
        NotificationStatus.SENT,
        NotificationStatus.ACKNOWLEDGED,
        NotificationStatus.FAILED,
        NotificationStatus.CANCELLED,
    }
)

ALLOWED_TRANSITIONS: dict[str, frozenset[str]] = {
    NotificationStatus.PENDING: frozenset(
        {
            NotificationStatus.SENT,
            NotificationStatus.FAILED,
            NotificationStatus.ACKNOWLEDGED,
            NotificationStatus.CANCELLED,
        }
    ),
    NotificationStatus.SENT: frozenset({NotificationStatus.ACKNOWLEDGED}),
    NotificationStatus.FAILED: frozenset({NotificationStatus.PENDING}),
    NotificationStatus.ACKNOWLEDGED: frozenset(),
    NotificationStatus.CANCELLED: frozenset(),
}


class Notification(Base, UUIDv7PKMixin, TimestampMixin):
    """One scheduled delivery of a reminder to one user.

    Rows are created by the materializer (advance and start reminders), by
    the acknowledgment handler (snooze follow-ups) and by the event
    cancellation flow. ``scheduled_time`` never changes after insert; a
    snooze creates a new row instead.

    Indexes:
        - (status, scheduled_time) for the due ticker and retry scans
        - (event_id, user_id, kind) for sibling lookups ("ready" cancels the
          start reminder) and the event scan's coverage check
        - (user_id, created_at) for the user's notification list
    """

    __tablename__ = "notifications"

    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Recipient user identifier",
    )
    event_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        comment="Calendar event the notification refers to",
    )
    kind: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        comment="advance_reminder, start_reminder, snooze_reminder, cancellation",
    )

    title: Mapped[str] = mapped_column(String(200), nullable=False, comment="Short headline")
    message: Mapped[str] = mapped_column(Text(), nullable=False, comment="Body text")
    priority: Mapped[str] = mapped_column(
        String(10),
        nullable=False,
        default=NotificationPriority.MEDIUM,
        comment="low, medium, high, urgent",
    )

    scheduled_time: Mapped[datetime] = mapped_column(
        UTCDateTime(),
        nullable=False,
        comment="Instant at which delivery should be attempted",
    )
    status: Mapped[str] = mapped_column(
        String(20),
        nullable=False,
        default=NotificationStatus.PENDING,
        comment="pending, sent, failed, acknowledged, cancelled",
    )
    channels: Mapped[list[str]] = mapped_column(
        StringArray(),
        nullable=False,
        default=list,
        comment="Delivery channels to attempt (push, email, realtime)",
    )

    retry_count: Mapped[int] = mapped_column(Integer(), nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(Integer(), nullable=False, default=3)
    error_message: Mapped[str | None] = mapped_column(
        Text(), nullable=True, comment="Reason of the last total delivery failure"
    )
    user_action: Mapped[str | None] = mapped_column(
        String(20), nullable=True, comment="confirmed, snooze, ready or dismissed"
    )

    sent_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    acknowledged_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)
    read_at: Mapped[datetime | None] = mapped_column(UTCDateTime(), nullable=True)

    # "metadata" is reserved on declarative classes
    extra_metadata: Mapped[dict[str, Any]] = mapped_column(
        "metadata",
        JSONB().with_variant(JSON(), "sqlite"),
        nullable=False,
        default=dict,
        comment="Free-form data (offsets, offered actions, snooze chain)",
    )
    delivery_receipt: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB().with_variant(JSON(), "sqlite"),
        nullable=True,
        comment="Per-channel outcome of the last dispatch",
    )

    __table_args__ = (
        Index("ix_notifications_status_scheduled_time", "status", "scheduled_time"),
        Index("ix_notifications_event_user_kind", "event_id", "user_id", "kind"),
        Index("ix_notifications_user_created", "user_id", "created_at"),
        CheckConstraint("retry_count <= max_retries", name="retry_bound"),
        CheckConstraint("max_retries >= 0 AND max_retries <= 5", name="max_retries_range"),
    )

    def can_transition(self, target: str) -> bool:
        return target in ALLOWED_TRANSITIONS.get(self.status, frozenset())

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def minutes_before(self) -> int | None:
        return (self.extra_metadata or {}).get("minutes_before")

    def __repr__(self) -> str:
        return (
            f"<Notification(id={self.id}, kind={self.kind}, user={self.user_id}, "
            f"event={self.event_id}, status={self.status})>"
        )


class UserNotificationPreference(Base, UUIDv7PKMixin, TimestampMixin):
    """Per-user delivery preferences read by the preference resolver.

    Quiet hours are wall-clock ``HH:MM`` strings interpreted in ``timezone``
    (or the event's timezone when it has one).
    """

    __tablename__ = "notification_preferences"

    user_id: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
        unique=True,
        comment="User identifier",
    )
    email: Mapped[str | None] = mapped_column(
        String(255), nullable=True, comment="Address used by the email channel"
    )
    enabled_channels: Mapped[list[str]] = mapped_column(
        StringArray(),
        nullable=False,
        default=lambda: [DeliveryChannel.PUSH.value, DeliveryChannel.EMAIL.value],
        comment="Enabled delivery channels",
    )
    advance_offsets: Mapped[list[int]] = mapped_column(
        JSONB().with_variant(JSON(), "sqlite"),
        nullable=False,
        default=lambda: [15, 60],
        comment="Minutes before the event start at which to remind",
    )
    quiet_hours_enabled: Mapped[bool] = mapped_column(Boolean(), nullable=False, default=False)
    quiet_hours_start: Mapped[str] = mapped_column(String(5), nullable=False, default="22:00")
    quiet_hours_end: Mapped[str] = mapped_column(String(5), nullable=False, default="08:00")
    timezone: Mapped[str] = mapped_column(
        String(64), nullable=False, default="UTC", comment="IANA timezone name"
    )
