"""Composition of the notification engine.

``NotificationEngine`` wires the resolver, channels, dispatcher and the
periodic components around a session factory and a clock. The API, the
scheduler jobs and the tests all go through one instance.
"""

from __future__ import annotations

import logging
from datetime import timedelta
from typing import TYPE_CHECKING

from calendar_notifier.core.clock import SystemClock
from calendar_notifier.features.notifications import messages
from calendar_notifier.features.notifications.acknowledgment import (
    AcknowledgmentHandler,
    AcknowledgmentResult,
)
from calendar_notifier.features.notifications.channels import (
    ChannelRegistry,
    Dispatcher,
    EmailChannel,
    PushChannel,
    RealtimeChannel,
)
from calendar_notifier.features.notifications.guard import DuplicateDeliveryGuard
from calendar_notifier.features.notifications.materializer import (
    Materializer,
    event_metadata,
    event_start_utc,
)
from calendar_notifier.features.notifications.metrics import notification_created_total
from calendar_notifier.features.notifications.models import (
    Notification,
    NotificationKind,
    NotificationPriority,
    NotificationStatus,
)
from calendar_notifier.features.notifications.preferences import (
    DatabasePreferenceResolver,
    resolve_timezone,
)
from calendar_notifier.features.notifications.repository import NotificationRepository
from calendar_notifier.features.notifications.retention import RetentionSweeper
from calendar_notifier.features.notifications.retry import RetryCoordinator
from calendar_notifier.features.notifications.scanner import EventScanner
from calendar_notifier.features.notifications.service import NotificationService
from calendar_notifier.features.notifications.ticker import Ticker

if TYPE_CHECKING:
    from collections.abc import Iterable
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from calendar_notifier.core.clock import Clock
    from calendar_notifier.core.settings import NotificationSettings
    from calendar_notifier.features.events.models import EventLike
    from calendar_notifier.features.notifications.channels import RealtimeSender
    from calendar_notifier.features.notifications.preferences import PreferenceResolver
    from calendar_notifier.infra.email import EmailSender
    from calendar_notifier.infra.push import PushSender

logger = logging.getLogger(__name__)


def _attendees(event: EventLike) -> list[str]:
    attendees = getattr(event, "attendee_ids", None)
    if attendees:
        return list(attendees)
    owner = getattr(event, "owner_id", None)
    if owner is None:
        raise ValueError(f"Event {event.id} has no attendees; pass user_ids explicitly")
    return [owner]


class NotificationEngine:
    """Entry point to every notification operation.

    Example:
        engine = NotificationEngine(
            AsyncSessionLocal,
            settings=get_notification_settings(),
            push_sender=ConsolePushSender(),
            email_sender=ConsoleEmailSender(),
            realtime_sender=get_connection_manager(),
        )
        async with AsyncSessionLocal() as session:
            await engine.schedule_event(session, event)
        await engine.ticker.tick()
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        settings: NotificationSettings,
        push_sender: PushSender,
        email_sender: EmailSender,
        realtime_sender: RealtimeSender,
        clock: Clock | None = None,
        resolver: PreferenceResolver | None = None,
    ) -> None:
        self.settings = settings
        self.clock = clock or SystemClock()
        self.session_factory = session_factory
        self.resolver = resolver or DatabasePreferenceResolver(settings)
        self.repository = NotificationRepository()

        self.registry = ChannelRegistry(
            [
                PushChannel(push_sender),
                EmailChannel(email_sender),
                RealtimeChannel(realtime_sender),
            ]
        )
        self.dispatcher = Dispatcher(
            self.registry,
            self.resolver,
            self.clock,
            channel_timeout=settings.channel_timeout_seconds,
        )
        self.materializer = Materializer(settings, self.resolver, self.clock, self.repository)
        self.ticker = Ticker(
            session_factory,
            self.dispatcher,
            self.clock,
            concurrency=settings.dispatch_concurrency,
            repository=self.repository,
        )
        self.retry = RetryCoordinator(
            session_factory,
            self.dispatcher,
            self.clock,
            window=timedelta(minutes=settings.retry_window_minutes),
            batch_size=settings.retry_batch_size,
            repository=self.repository,
        )
        self.sweeper = RetentionSweeper(
            session_factory,
            self.clock,
            retention=timedelta(days=settings.retention_days),
            repository=self.repository,
        )
        self.guard = DuplicateDeliveryGuard(
            self.clock, ttl=timedelta(minutes=settings.dedup_ttl_minutes)
        )
        self.scanner = EventScanner(
            session_factory,
            self.dispatcher,
            self.resolver,
            self.guard,
            self.clock,
            offsets=settings.event_scan_offsets,
            window=timedelta(seconds=settings.event_scan_window_seconds),
            max_retries=settings.default_max_retries,
            repository=self.repository,
        )
        self.acknowledgments = AcknowledgmentHandler(
            settings, self.clock, realtime_sender, self.repository
        )
        self.service = NotificationService(self.clock, self.repository)

    async def schedule_event(
        self,
        session: AsyncSession,
        event: EventLike,
        user_ids: Iterable[str] | None = None,
        *,
        allow_user_actions: bool = True,
    ) -> list[Notification]:
        """Materialize reminders for an event and commit them.

        ``user_ids`` defaults to the event's attendees (owner first, then
        participants) when the event exposes them.
        """
        if user_ids is None:
            user_ids = _attendees(event)
        created = await self.materializer.materialize(
            session, event, user_ids, allow_user_actions=allow_user_actions
        )
        await session.commit()
        return created

    async def cancel_event(
        self,
        session: AsyncSession,
        event: EventLike,
        user_ids: Iterable[str] | None = None,
    ) -> list[Notification]:
        """Cancel pending reminders and notify every attendee that the event is off.

        Returns the ``cancellation`` notifications created (already dispatched).
        """
        if user_ids is None:
            user_ids = _attendees(event)

        now = self.clock.now()
        start = event_start_utc(event)
        created: list[Notification] = []
        cancelled_total = 0

        for user_id in dict.fromkeys(user_ids):
            cancelled_total += await self.repository.cancel_pending_for_event(
                session, event.id, user_id
            )
            prefs = await self.resolver.get_preferences(session, user_id)
            if not prefs.channels:
                continue

            zone = resolve_timezone(event.timezone, prefs.timezone)
            title, body = messages.cancellation(event.title, messages.format_local(start, zone))
            notification = Notification(
                user_id=user_id,
                event_id=event.id,
                kind=NotificationKind.CANCELLATION,
                title=title,
                message=body,
                priority=NotificationPriority.HIGH,
                scheduled_time=now,
                status=NotificationStatus.PENDING,
                channels=list(prefs.channels),
                retry_count=0,
                max_retries=self.settings.default_max_retries,
                extra_metadata={**event_metadata(event), "source": "cancellation"},
                created_at=now,
                updated_at=now,
            )
            await self.repository.create(session, notification)
            notification_created_total.labels(
                kind=notification.kind, priority=notification.priority
            ).inc()
            created.append(notification)

        await session.commit()

        for notification in created:
            await self.dispatcher.dispatch(session, notification)
            await session.commit()

        logger.info(
            "Event cancelled",
            extra={
                "event_id": event.id,
                "cancelled_pending": cancelled_total,
                "cancellation_notices": len(created),
            },
        )
        return created

    async def acknowledge(
        self,
        session: AsyncSession,
        notification_id: UUID,
        user_id: str,
        action: str | None,
        snooze_minutes: int | None = None,
    ) -> AcknowledgmentResult:
        return await self.acknowledgments.acknowledge(
            session, notification_id, user_id, action, snooze_minutes
        )

    def clear_guard(self) -> int:
        cleared = self.guard.clear()
        logger.info("Duplicate-delivery guard cleared", extra={"entries": cleared})
        return cleared


_engine: NotificationEngine | None = None


def get_notification_engine() -> NotificationEngine:
    """Process-wide engine built from settings and the configured transports."""
    global _engine
    if _engine is None:
        from calendar_notifier.core.settings import get_channel_settings, get_notification_settings
        from calendar_notifier.infra.database import AsyncSessionLocal
        from calendar_notifier.infra.email import build_email_sender
        from calendar_notifier.infra.push import build_push_sender
        from calendar_notifier.infra.realtime import get_connection_manager

        settings = get_notification_settings()
        channel_settings = get_channel_settings()
        _engine = NotificationEngine(
            AsyncSessionLocal,
            settings=settings,
            push_sender=build_push_sender(channel_settings, settings.channel_timeout_seconds),
            email_sender=build_email_sender(channel_settings),
            realtime_sender=get_connection_manager(),
        )
    return _engine


def reset_notification_engine() -> None:
    global _engine
    _engine = None
