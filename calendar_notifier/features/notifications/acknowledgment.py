"""User responses to delivered reminders.

An acknowledgment always finalizes the notification it targets. On an
advance reminder the chosen action may also touch a sibling row:

- ``confirmed``: nothing else, the start reminder still fires
- ``snooze``: a new ``snooze_reminder`` is scheduled ``snooze_minutes`` from now
- ``ready``: the pending ``start_reminder`` for the same event and user is cancelled
- ``dismissed`` (or anything unrecognised): nothing else
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import TYPE_CHECKING, Any
from uuid import UUID

from calendar_notifier.core.exceptions import ValidationException
from calendar_notifier.features.notifications import messages
from calendar_notifier.features.notifications.exceptions import (
    InvalidStatusTransitionError,
    NotificationAccessDeniedError,
    NotificationNotFoundError,
)
from calendar_notifier.features.notifications.metrics import (
    notification_acknowledged_total,
    notification_created_total,
    notification_start_reminder_cancelled_total,
)
from calendar_notifier.features.notifications.models import (
    Notification,
    NotificationKind,
    NotificationPriority,
    NotificationStatus,
    UserAction,
)
from calendar_notifier.features.notifications.repository import (
    NotificationRepository,
    notification_summary,
)

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from calendar_notifier.core.clock import Clock
    from calendar_notifier.core.settings import NotificationSettings
    from calendar_notifier.features.notifications.channels import RealtimeSender

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AcknowledgmentResult:
    message: str
    action: str
    notification_id: UUID
    timestamp: datetime
    follow_up_id: UUID | None = None
    cancelled_id: UUID | None = None


def normalize_action(action: str | None) -> UserAction:
    """Map free-form input onto a known action; unknown values mean dismissed."""
    try:
        return UserAction((action or "").strip().lower())
    except ValueError:
        return UserAction.DISMISSED


class AcknowledgmentHandler:
    """Applies a user's response to one notification.

    The handler commits its own writes. For ``ready`` the acknowledgment
    and the start reminder cancellation are two sequential commits; a
    start reminder dispatched between them is tolerated.
    """

    def __init__(
        self,
        settings: NotificationSettings,
        clock: Clock,
        realtime: RealtimeSender | None = None,
        repository: NotificationRepository | None = None,
    ) -> None:
        self._settings = settings
        self._clock = clock
        self._realtime = realtime
        self._repository = repository or NotificationRepository()

    async def acknowledge(
        self,
        session: AsyncSession,
        notification_id: UUID,
        user_id: str,
        action: str | None,
        snooze_minutes: int | None = None,
    ) -> AcknowledgmentResult:
        """Acknowledge ``notification_id`` on behalf of ``user_id``.

        Raises:
            NotificationNotFoundError: No such notification.
            NotificationAccessDeniedError: It belongs to another user.
            InvalidStatusTransitionError: It is not ``pending`` or ``sent``.
            ValidationException: ``snooze_minutes`` is not positive.
        """
        notification = await self._repository.get(session, notification_id)
        if notification is None:
            raise NotificationNotFoundError(notification_id)
        if notification.user_id != user_id:
            logger.warning(
                "Acknowledgment for another user's notification rejected",
                extra={"notification_id": str(notification_id), "user_id": user_id},
            )
            raise NotificationAccessDeniedError(notification_id)
        if not notification.can_transition(NotificationStatus.ACKNOWLEDGED):
            raise InvalidStatusTransitionError(
                notification_id, notification.status, NotificationStatus.ACKNOWLEDGED
            )
        if snooze_minutes is not None and snooze_minutes <= 0:
            raise ValidationException(
                detail="snooze_minutes must be positive",
                extra={"field": "snooze_minutes", "value": snooze_minutes},
            )

        resolved = normalize_action(action)
        now = self._clock.now()
        event_title = (notification.extra_metadata or {}).get("event_title") or notification.title

        if notification.kind != NotificationKind.ADVANCE_REMINDER:
            self._mark_acknowledged(notification, resolved, now)
            await session.commit()
            result = AcknowledgmentResult(
                message=messages.GENERIC_ACKNOWLEDGMENT,
                action=resolved.value,
                notification_id=notification.id,
                timestamp=now,
            )
            await self._finish(notification, result)
            return result

        follow_up: Notification | None = None
        cancelled: Notification | None = None
        minutes = snooze_minutes or self._settings.default_snooze_minutes

        if resolved == UserAction.SNOOZE:
            follow_up = self._build_snooze(notification, event_title, minutes, now)
            await self._repository.create(session, follow_up)
            notification_created_total.labels(
                kind=follow_up.kind, priority=follow_up.priority
            ).inc()

        self._mark_acknowledged(notification, resolved, now)
        await session.commit()

        if resolved == UserAction.READY:
            cancelled = await self._cancel_start_reminder(session, notification, now)

        result = AcknowledgmentResult(
            message=messages.acknowledgment_reply(resolved, event_title, minutes),
            action=resolved.value,
            notification_id=notification.id,
            timestamp=now,
            follow_up_id=follow_up.id if follow_up else None,
            cancelled_id=cancelled.id if cancelled else None,
        )
        await self._finish(notification, result)
        return result

    def _mark_acknowledged(self, notification: Notification, action: UserAction, now: datetime) -> None:
        notification.status = NotificationStatus.ACKNOWLEDGED
        notification.user_action = action.value
        notification.acknowledged_at = now
        notification.read_at = notification.read_at or now
        notification.updated_at = now

    def _build_snooze(
        self,
        original: Notification,
        event_title: str,
        minutes: int,
        now: datetime,
    ) -> Notification:
        metadata = original.extra_metadata or {}
        snooze_count = int(metadata.get("snooze_count", 0)) + 1
        title, body = messages.snooze_reminder(event_title, snooze_count)
        return Notification(
            user_id=original.user_id,
            event_id=original.event_id,
            kind=NotificationKind.SNOOZE_REMINDER,
            title=title,
            message=body,
            priority=original.priority or NotificationPriority.MEDIUM,
            scheduled_time=now + timedelta(minutes=minutes),
            status=NotificationStatus.PENDING,
            channels=list(original.channels or []),
            retry_count=0,
            max_retries=original.max_retries,
            extra_metadata={
                "event_title": event_title,
                "event_start": metadata.get("event_start"),
                "location": metadata.get("location"),
                "original_notification_id": str(original.id),
                "snooze_count": snooze_count,
                "snooze_minutes": minutes,
            },
            created_at=now,
            updated_at=now,
        )

    async def _cancel_start_reminder(
        self,
        session: AsyncSession,
        notification: Notification,
        now: datetime,
    ) -> Notification | None:
        start_reminder = await self._repository.find_pending_start_reminder(
            session, notification.event_id, notification.user_id
        )
        if start_reminder is None:
            logger.info(
                "No pending start reminder to cancel",
                extra={"event_id": notification.event_id, "user_id": notification.user_id},
            )
            return None

        start_reminder.status = NotificationStatus.CANCELLED
        start_reminder.updated_at = now
        await session.commit()

        notification_start_reminder_cancelled_total.inc()
        logger.info("Start reminder cancelled", extra=notification_summary(start_reminder))
        return start_reminder

    async def _finish(self, notification: Notification, result: AcknowledgmentResult) -> None:
        notification_acknowledged_total.labels(kind=notification.kind, action=result.action).inc()
        logger.info(
            "Notification acknowledged",
            extra={**notification_summary(notification), "action": result.action},
        )
        if self._realtime is None:
            return

        payload: dict[str, Any] = {
            "type": "notification_response",
            "data": {
                "notification_id": str(result.notification_id),
                "action": result.action,
                "message": result.message,
                "timestamp": result.timestamp.isoformat(),
            },
        }
        # The acknowledgment is already committed; a realtime failure only loses the echo
        try:
            await self._realtime.send_to_user(notification.user_id, payload)
        except Exception:
            logger.warning(
                "Could not push acknowledgment response",
                extra={"notification_id": str(result.notification_id)},
                exc_info=True,
            )
