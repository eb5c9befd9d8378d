"""Shared test doubles and factories.

Usage:
    from tests.utils import FakePushSender, make_event, make_notification
"""

from __future__ import annotations

import asyncio
from datetime import timedelta
from typing import TYPE_CHECKING, Any

from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from calendar_notifier.features.events.models import CalendarEvent
from calendar_notifier.features.notifications.channels import DeliveryResult
from calendar_notifier.features.notifications.models import (
    Notification,
    NotificationKind,
    NotificationPriority,
    NotificationStatus,
    UserNotificationPreference,
)
from calendar_notifier.infra.email import EmailDeliveryResult
from calendar_notifier.infra.push import PushDeliveryResult

if TYPE_CHECKING:
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from calendar_notifier.features.notifications.channels import DeliveryContext


# ============================================================================
# Channel transports
# ============================================================================


class FakePushSender:
    """Records every push; ``succeed`` decides the outcome."""

    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.sent: list[dict[str, Any]] = []

    async def send_push(
        self, user_id: str, title: str, body: str, data: dict[str, Any]
    ) -> PushDeliveryResult:
        self.sent.append({"user_id": user_id, "title": title, "body": body, "data": data})
        if self.succeed:
            return PushDeliveryResult(success=True, status_code=200, response_time_ms=1)
        return PushDeliveryResult(
            success=False, status_code=503, response_time_ms=1, error_message="HTTP 503"
        )


class FakeEmailSender:
    def __init__(self, succeed: bool = True) -> None:
        self.succeed = succeed
        self.sent: list[dict[str, Any]] = []

    async def send_email(
        self,
        to: str,
        subject: str,
        body: str,
        headers: dict[str, str] | None = None,
    ) -> EmailDeliveryResult:
        self.sent.append({"to": to, "subject": subject, "body": body, "headers": headers or {}})
        if self.succeed:
            return EmailDeliveryResult(success=True, message_id=f"<{len(self.sent)}@test>")
        return EmailDeliveryResult(success=False, error_message="SMTP error: 554")


class FakeRealtimeSender:
    """Pretends the user has ``connections`` open sockets."""

    def __init__(self, connections: int = 0) -> None:
        self.connections = connections
        self.messages: list[tuple[str, dict[str, Any]]] = []

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> int:
        self.messages.append((user_id, message))
        return self.connections


class SlowChannel:
    """Channel that never answers within any reasonable timeout."""

    def __init__(self, name: str = "push", delay: float = 5.0) -> None:
        self.name = name
        self.delay = delay

    async def send(self, notification: Notification, context: DeliveryContext) -> DeliveryResult:
        await asyncio.sleep(self.delay)
        return DeliveryResult(success=True)


class BrokenChannel:
    def __init__(self, name: str = "push") -> None:
        self.name = name

    async def send(self, notification: Notification, context: DeliveryContext) -> DeliveryResult:
        raise ConnectionResetError("gateway hung up")


class FakeWebSocket:
    """Stands in for a starlette WebSocket inside the connection manager."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.accepted = False
        self.closed = False
        self.sent: list[dict[str, Any]] = []

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, message: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(message)

    async def close(self) -> None:
        self.closed = True


class InFlightPushSender(FakePushSender):
    """Push sender that holds each send briefly and records peak parallelism."""

    def __init__(self, delay: float = 0.01) -> None:
        super().__init__()
        self.delay = delay
        self.in_flight = 0
        self.peak = 0

    async def send_push(
        self, user_id: str, title: str, body: str, data: dict[str, Any]
    ) -> PushDeliveryResult:
        self.in_flight += 1
        self.peak = max(self.peak, self.in_flight)
        try:
            await asyncio.sleep(self.delay)
            return await super().send_push(user_id, title, body, data)
        finally:
            self.in_flight -= 1


class UnavailableSessionFactory:
    """Session factory whose sessions fail to open, like a database that is down."""

    def __init__(self) -> None:
        self.calls = 0

    def __call__(self) -> UnavailableSessionFactory:
        self.calls += 1
        return self

    async def __aenter__(self) -> AsyncSession:
        raise OperationalError("SELECT 1", {}, Exception("unable to open database file"))

    async def __aexit__(self, *exc_info: object) -> None:
        return None


# ============================================================================
# Row factories
# ============================================================================


def make_event(
    start: datetime,
    *,
    event_id: str = "evt-1",
    title: str = "Standup",
    owner_id: str = "user-1",
    participant_ids: list[str] | None = None,
    timezone: str | None = "UTC",
    location: str | None = "Room 4",
    status: str = "published",
) -> CalendarEvent:
    return CalendarEvent(
        id=event_id,
        title=title,
        start_time=start,
        end_time=start + timedelta(minutes=30),
        timezone=timezone,
        location=location,
        owner_id=owner_id,
        participant_ids=participant_ids or [],
        status=status,
        created_at=start - timedelta(days=1),
        updated_at=start - timedelta(days=1),
    )


def make_notification(
    scheduled_time: datetime,
    *,
    user_id: str = "user-1",
    event_id: str = "evt-1",
    kind: str = NotificationKind.ADVANCE_REMINDER,
    status: str = NotificationStatus.PENDING,
    priority: str = NotificationPriority.MEDIUM,
    channels: list[str] | None = None,
    max_retries: int = 3,
    created_at: datetime | None = None,
    failed_at: datetime | None = None,
    metadata: dict[str, Any] | None = None,
) -> Notification:
    created = created_at or scheduled_time
    return Notification(
        user_id=user_id,
        event_id=event_id,
        kind=kind,
        title="Upcoming: Standup",
        message="Standup starts in 15 minutes.",
        priority=priority,
        scheduled_time=scheduled_time,
        status=status,
        channels=channels if channels is not None else ["push"],
        retry_count=0,
        max_retries=max_retries,
        failed_at=failed_at,
        extra_metadata=metadata
        if metadata is not None
        else {"event_title": "Standup", "minutes_before": 15, "source": "materializer"},
        created_at=created,
        updated_at=created,
    )


def make_preferences(
    user_id: str = "user-1",
    *,
    channels: list[str] | None = None,
    email: str | None = "user-1@example.com",
    offsets: list[int] | None = None,
    quiet_hours: tuple[str, str] | None = None,
    timezone: str = "UTC",
) -> UserNotificationPreference:
    return UserNotificationPreference(
        user_id=user_id,
        email=email,
        enabled_channels=channels if channels is not None else ["push", "email"],
        advance_offsets=offsets or [15, 60],
        quiet_hours_enabled=quiet_hours is not None,
        quiet_hours_start=quiet_hours[0] if quiet_hours else "22:00",
        quiet_hours_end=quiet_hours[1] if quiet_hours else "08:00",
        timezone=timezone,
    )


async def add_all(session_factory: async_sessionmaker[AsyncSession], *rows: Any) -> None:
    """Persist rows in a throwaway session."""
    async with session_factory() as session:
        session.add_all(rows)
        await session.commit()


async def load(
    session_factory: async_sessionmaker[AsyncSession], notification_id: Any
) -> Notification:
    """Fresh copy of a notification, bypassing any session identity map."""
    async with session_factory() as session:
        notification = await session.get(Notification, notification_id)
        assert notification is not None
        return notification


async def status_counts(session_factory: async_sessionmaker[AsyncSession]) -> dict[str, int]:
    """Notification count per status."""
    async with session_factory() as session:
        rows = await session.execute(
            select(Notification.status, func.count()).group_by(Notification.status)
        )
        return {str(status): count for status, count in rows.all()}
