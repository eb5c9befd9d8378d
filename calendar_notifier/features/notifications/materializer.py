"""Turn an event plus user preferences into concrete notification rows.

For every attendee the materializer computes ``start - offset`` for each
advance offset, plus one reminder at the start itself, and discards times
that are already past or fall inside the user's quiet hours. Surviving
times are inserted as ``pending`` rows; nothing is delivered here.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any

from calendar_notifier.features.notifications import messages
from calendar_notifier.features.notifications.metrics import (
    notification_created_total,
    notification_materialize_skipped_total,
)
from calendar_notifier.features.notifications.models import (
    Notification,
    NotificationKind,
    NotificationPriority,
    NotificationStatus,
)
from calendar_notifier.features.notifications.preferences import resolve_timezone
from calendar_notifier.features.notifications.repository import NotificationRepository

if TYPE_CHECKING:
    from collections.abc import Iterable

    from sqlalchemy.ext.asyncio import AsyncSession

    from calendar_notifier.core.clock import Clock
    from calendar_notifier.core.settings import NotificationSettings
    from calendar_notifier.features.events.models import EventLike
    from calendar_notifier.features.notifications.preferences import (
        NotificationPreferences,
        PreferenceResolver,
    )

logger = logging.getLogger(__name__)


def event_start_utc(event: EventLike) -> datetime:
    start = event.start_time
    if start.tzinfo is None:
        return start.replace(tzinfo=UTC)
    return start.astimezone(UTC)


def event_metadata(event: EventLike) -> dict[str, Any]:
    """Event fields copied onto every notification so replies need no event lookup."""
    return {
        "event_title": event.title,
        "event_start": event_start_utc(event).isoformat(),
        "location": event.location,
    }


class Materializer:
    """Computes and persists reminder rows for an event.

    Re-running for the same event is safe: offsets that already have a
    pending advance reminder, and a user who already has a pending start
    reminder, are skipped.
    """

    def __init__(
        self,
        settings: NotificationSettings,
        resolver: PreferenceResolver,
        clock: Clock,
        repository: NotificationRepository | None = None,
    ) -> None:
        self._settings = settings
        self._resolver = resolver
        self._clock = clock
        self._repository = repository or NotificationRepository()

    async def materialize(
        self,
        session: AsyncSession,
        event: EventLike,
        user_ids: Iterable[str],
        *,
        allow_user_actions: bool = True,
    ) -> list[Notification]:
        """Create pending reminders for every user in ``user_ids``.

        Args:
            session: Open session; the caller commits.
            event: Event being scheduled.
            user_ids: Owner and participants. Duplicates are ignored.
            allow_user_actions: Offer confirmed/snooze/ready on advance reminders.

        Returns:
            The notifications inserted (flushed, ids populated).
        """
        now = self._clock.now()
        created: list[Notification] = []

        for user_id in dict.fromkeys(user_ids):
            prefs = await self._resolver.get_preferences(session, user_id)
            if not prefs.channels:
                notification_materialize_skipped_total.labels(reason="no_channels").inc()
                logger.info(
                    "User has no enabled channels, nothing to schedule",
                    extra={"event_id": event.id, "user_id": user_id},
                )
                continue
            created.extend(
                await self._plan_for_user(session, event, prefs, now, allow_user_actions)
            )

        if created:
            await self._repository.create_many(session, created)
            for notification in created:
                notification_created_total.labels(
                    kind=notification.kind, priority=notification.priority
                ).inc()

        logger.info(
            "Materialized event reminders",
            extra={
                "event_id": event.id,
                "created": len(created),
                "advance": sum(1 for n in created if n.kind == NotificationKind.ADVANCE_REMINDER),
                "start": sum(1 for n in created if n.kind == NotificationKind.START_REMINDER),
            },
        )
        return created

    async def _plan_for_user(
        self,
        session: AsyncSession,
        event: EventLike,
        prefs: NotificationPreferences,
        now: datetime,
        allow_user_actions: bool,
    ) -> list[Notification]:
        start = event_start_utc(event)
        zone = resolve_timezone(event.timezone, prefs.timezone)

        existing = await self._repository.list_for_event_user(
            session,
            event.id,
            prefs.user_id,
            kinds=(NotificationKind.ADVANCE_REMINDER, NotificationKind.START_REMINDER),
        )
        pending = [n for n in existing if n.status == NotificationStatus.PENDING]
        pending_offsets = {
            n.minutes_before for n in pending if n.kind == NotificationKind.ADVANCE_REMINDER
        }
        has_pending_start = any(n.kind == NotificationKind.START_REMINDER for n in pending)

        planned: list[Notification] = []
        for offset in prefs.advance_offsets:
            scheduled = start - timedelta(minutes=offset)
            if not self._accept(scheduled, now, prefs, zone, event.id, offset):
                continue
            if offset in pending_offsets:
                notification_materialize_skipped_total.labels(reason="duplicate").inc()
                continue
            title, body = messages.advance_reminder(event.title, offset, event.location)
            metadata = {
                **event_metadata(event),
                "source": "materializer",
                "minutes_before": offset,
                "allow_user_actions": allow_user_actions,
                "actions": list(messages.ADVANCE_REMINDER_ACTIONS) if allow_user_actions else [],
            }
            planned.append(
                self._build(
                    event, prefs, NotificationKind.ADVANCE_REMINDER, scheduled, title, body, metadata, now
                )
            )

        if self._accept(start, now, prefs, zone, event.id, 0):
            if has_pending_start:
                notification_materialize_skipped_total.labels(reason="duplicate").inc()
            else:
                title, body = messages.start_reminder(event.title, event.location)
                metadata = {**event_metadata(event), "source": "materializer", "minutes_before": 0}
                planned.append(
                    self._build(
                        event, prefs, NotificationKind.START_REMINDER, start, title, body, metadata, now
                    )
                )

        return planned

    def _accept(
        self,
        scheduled: datetime,
        now: datetime,
        prefs: NotificationPreferences,
        zone: Any,
        event_id: str,
        offset: int,
    ) -> bool:
        if scheduled < now:
            notification_materialize_skipped_total.labels(reason="past").inc()
            return False
        if prefs.quiet_hours.contains_instant(scheduled, zone):
            notification_materialize_skipped_total.labels(reason="quiet_hours").inc()
            logger.debug(
                "Reminder falls in quiet hours",
                extra={
                    "event_id": event_id,
                    "user_id": prefs.user_id,
                    "minutes_before": offset,
                    "scheduled_time": scheduled.isoformat(),
                },
            )
            return False
        return True

    def _build(
        self,
        event: EventLike,
        prefs: NotificationPreferences,
        kind: NotificationKind,
        scheduled: datetime,
        title: str,
        body: str,
        metadata: dict[str, Any],
        now: datetime,
    ) -> Notification:
        return Notification(
            user_id=prefs.user_id,
            event_id=event.id,
            kind=kind,
            title=title,
            message=body,
            priority=NotificationPriority.MEDIUM,
            scheduled_time=scheduled,
            status=NotificationStatus.PENDING,
            channels=list(prefs.channels),
            retry_count=0,
            max_retries=self._settings.default_max_retries,
            extra_metadata=metadata,
            created_at=now,
            updated_at=now,
        )
