"""Read-side operations behind the notifications API."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from calendar_notifier.features.notifications.exceptions import (
    NotificationAccessDeniedError,
    NotificationNotFoundError,
)
from calendar_notifier.features.notifications.models import Notification, NotificationStatus
from calendar_notifier.features.notifications.repository import NotificationRepository

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession

    from calendar_notifier.core.clock import Clock
    from calendar_notifier.core.database import SearchResult

logger = logging.getLogger(__name__)


@dataclass
class NotificationStats:
    period_days: int
    since: datetime
    total: int = 0
    by_status: dict[str, int] = field(default_factory=dict)
    by_kind: dict[str, int] = field(default_factory=dict)
    breakdown: list[dict[str, str | int]] = field(default_factory=list)


class NotificationService:
    """Listing, read marking, statistics and deletion for one user's notifications.

    Read marking moves ``pending`` rows to ``acknowledged`` and stamps
    ``read_at``; rows in any other state only get ``read_at``. Methods that
    write commit the session.
    """

    def __init__(self, clock: Clock, repository: NotificationRepository | None = None) -> None:
        self._clock = clock
        self._repository = repository or NotificationRepository()

    async def list_notifications(
        self,
        session: AsyncSession,
        user_id: str,
        *,
        page: int = 1,
        limit: int = 20,
        kind: str | None = None,
        status: str | None = None,
        priority: str | None = None,
        unread_only: bool = False,
    ) -> SearchResult[Notification]:
        stmt = self._repository.build_user_query(
            user_id, kind=kind, status=status, priority=priority, unread_only=unread_only
        )
        return await self._repository.search(
            session, stmt, limit=limit, offset=(page - 1) * limit
        )

    async def unread_count(self, session: AsyncSession, user_id: str) -> int:
        return await self._repository.count_pending_for_user(session, user_id)

    async def get_owned(self, session: AsyncSession, notification_id: UUID, user_id: str) -> Notification:
        """Load a notification, rejecting ids that are unknown or owned by someone else."""
        notification = await self._repository.get(session, notification_id)
        if notification is None:
            raise NotificationNotFoundError(notification_id)
        if notification.user_id != user_id:
            raise NotificationAccessDeniedError(notification_id)
        return notification

    async def mark_read(self, session: AsyncSession, notification_id: UUID, user_id: str) -> Notification:
        notification = await self.get_owned(session, notification_id, user_id)
        now = self._clock.now()
        if notification.status == NotificationStatus.PENDING:
            notification.status = NotificationStatus.ACKNOWLEDGED
            notification.acknowledged_at = now
        notification.read_at = notification.read_at or now
        notification.updated_at = now
        await session.commit()
        return notification

    async def mark_all_read(self, session: AsyncSession, user_id: str) -> int:
        updated = await self._repository.acknowledge_all_pending(session, user_id, self._clock.now())
        await session.commit()
        logger.info("Marked all notifications read", extra={"user_id": user_id, "updated": updated})
        return updated

    async def stats(self, session: AsyncSession, user_id: str, days: int = 30) -> NotificationStats:
        since = self._clock.now() - timedelta(days=days)
        rows = await self._repository.stats_for_user(session, user_id, since)

        stats = NotificationStats(period_days=days, since=since)
        for status, kind, count in rows:
            stats.total += count
            stats.by_status[status] = stats.by_status.get(status, 0) + count
            stats.by_kind[kind] = stats.by_kind.get(kind, 0) + count
            stats.breakdown.append({"status": status, "type": kind, "count": count})
        return stats

    async def delete(self, session: AsyncSession, notification_id: UUID, user_id: str) -> None:
        notification = await self.get_owned(session, notification_id, user_id)
        await self._repository.delete(session, notification)
        await session.commit()
