"""Fallback scan over upcoming events.

Runs every minute and looks for published events starting ``offset``
minutes from now. Users who already have reminders from the materializer
are left alone; anyone else gets an advance reminder created and
dispatched on the spot. The duplicate-delivery guard stops the same
``(event, user, offset)`` being sent on consecutive runs.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from calendar_notifier.features.events.repository import EventRepository
from calendar_notifier.features.notifications import messages
from calendar_notifier.features.notifications.guard import GuardKey
from calendar_notifier.features.notifications.materializer import event_metadata
from calendar_notifier.features.notifications.metrics import (
    notification_created_total,
    notification_event_scan_total,
)
from calendar_notifier.features.notifications.models import (
    Notification,
    NotificationKind,
    NotificationPriority,
    NotificationStatus,
)
from calendar_notifier.features.notifications.repository import NotificationRepository

if TYPE_CHECKING:
    from collections.abc import Sequence
    from datetime import datetime

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from calendar_notifier.core.clock import Clock
    from calendar_notifier.features.events.models import CalendarEvent
    from calendar_notifier.features.notifications.channels import Dispatcher
    from calendar_notifier.features.notifications.guard import DuplicateDeliveryGuard
    from calendar_notifier.features.notifications.preferences import PreferenceResolver

logger = logging.getLogger(__name__)

SCAN_SOURCE = "event_scan"


@dataclass
class ScanResult:
    events: int = 0
    sent: int = 0
    failed: int = 0
    covered: int = 0
    deduplicated: int = 0
    no_channels: int = 0


class EventScanner:
    """Safety net for events whose reminders were never materialized."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: Dispatcher,
        resolver: PreferenceResolver,
        guard: DuplicateDeliveryGuard,
        clock: Clock,
        *,
        offsets: Sequence[int] = (15, 60, 1440),
        window: timedelta = timedelta(seconds=30),
        max_retries: int = 3,
        events: EventRepository | None = None,
        repository: NotificationRepository | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._resolver = resolver
        self._guard = guard
        self._clock = clock
        self._offsets = tuple(offsets)
        self._window = window
        self._max_retries = max_retries
        self._events = events or EventRepository()
        self._repository = repository or NotificationRepository()

    async def scan(self) -> ScanResult:
        now = self._clock.now()
        result = ScanResult()
        try:
            async with self._session_factory() as session:
                for offset in self._offsets:
                    target = now + timedelta(minutes=offset)
                    events = await self._events.list_starting_between(
                        session, target - self._window, target + self._window
                    )
                    result.events += len(events)
                    for event in events:
                        for user_id in event.attendee_ids:
                            outcome = await self._handle(session, event, user_id, offset, now)
                            setattr(result, outcome, getattr(result, outcome) + 1)
                            notification_event_scan_total.labels(outcome=outcome).inc()
        except SQLAlchemyError:
            logger.exception("Event scan aborted, will retry next run")
            return result

        if result.sent or result.failed:
            logger.info(
                "Event scan sent fallback reminders",
                extra={"sent": result.sent, "failed": result.failed, "covered": result.covered},
            )
        return result

    async def _handle(
        self,
        session: AsyncSession,
        event: CalendarEvent,
        user_id: str,
        offset: int,
        now: datetime,
    ) -> str:
        key = GuardKey(event.id, user_id, offset)
        if self._guard.seen(key):
            return "deduplicated"

        existing = await self._repository.list_for_event_user(session, event.id, user_id)
        if any(self._covers(n, offset) for n in existing):
            self._guard.mark(key)
            return "covered"

        prefs = await self._resolver.get_preferences(session, user_id)
        if not prefs.channels:
            self._guard.mark(key)
            return "no_channels"

        title, body = messages.advance_reminder(event.title, offset, event.location)
        notification = Notification(
            user_id=user_id,
            event_id=event.id,
            kind=NotificationKind.ADVANCE_REMINDER,
            title=title,
            message=body,
            priority=NotificationPriority.MEDIUM,
            scheduled_time=now,
            status=NotificationStatus.PENDING,
            channels=list(prefs.channels),
            retry_count=0,
            max_retries=self._max_retries,
            extra_metadata={
                **event_metadata(event),
                "source": SCAN_SOURCE,
                "minutes_before": offset,
                "allow_user_actions": True,
                "actions": list(messages.ADVANCE_REMINDER_ACTIONS),
            },
            created_at=now,
            updated_at=now,
        )
        await self._repository.create(session, notification)
        notification_created_total.labels(kind=notification.kind, priority=notification.priority).inc()

        outcome = await self._dispatcher.dispatch(session, notification)
        await session.commit()
        if outcome.sent:
            self._guard.mark(key)
            return "sent"
        return "failed"

    @staticmethod
    def _covers(notification: Notification, offset: int) -> bool:
        """A materialized row of any kind, or a scan row for the same offset."""
        source = (notification.extra_metadata or {}).get("source")
        if source != SCAN_SOURCE:
            return True
        return notification.minutes_before == offset
