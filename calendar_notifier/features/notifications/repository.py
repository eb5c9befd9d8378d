"""Notification record store.

Pure data access over the ``notifications`` and ``notification_preferences``
tables. Status policy lives in the engine components; the repository only
expresses the queries they need.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any

from sqlalchemy import Select, delete, func, select, update

from calendar_notifier.core.database import BaseRepository
from calendar_notifier.features.notifications.models import (
    TERMINAL_STATUSES,
    Notification,
    NotificationKind,
    NotificationStatus,
    UserNotificationPreference,
)

if TYPE_CHECKING:
    from collections.abc import Iterable, Sequence
    from datetime import datetime
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession


class NotificationRepository(BaseRepository[Notification]):
    """Queries used by the ticker, retry coordinator, sweeper and API."""

    def __init__(self) -> None:
        super().__init__(Notification)

    async def get_for_update(self, session: AsyncSession, notification_id: UUID) -> Notification | None:
        """Load a row with a row lock where the backend supports it."""
        stmt = (
            select(Notification)
            .where(Notification.id == notification_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_due_ids(
        self,
        session: AsyncSession,
        now: datetime,
        *,
        limit: int | None = None,
    ) -> Sequence[UUID]:
        """Ids of pending notifications whose scheduled time has arrived, oldest first."""
        stmt = (
            select(Notification.id)
            .where(
                Notification.status == NotificationStatus.PENDING,
                Notification.scheduled_time <= now,
            )
            .order_by(Notification.scheduled_time)
        )
        if limit is not None:
            stmt = stmt.limit(limit)
        result = await session.execute(stmt)
        return result.scalars().all()

    async def list_retryable_ids(
        self,
        session: AsyncSession,
        failed_since: datetime,
        *,
        limit: int,
    ) -> Sequence[UUID]:
        """Ids of failed notifications with retries left that failed after ``failed_since``."""
        stmt = (
            select(Notification.id)
            .where(
                Notification.status == NotificationStatus.FAILED,
                Notification.retry_count < Notification.max_retries,
                Notification.failed_at >= failed_since,
            )
            .order_by(Notification.failed_at)
            .limit(limit)
        )
        result = await session.execute(stmt)
        return result.scalars().all()

    async def find_pending_start_reminder(
        self,
        session: AsyncSession,
        event_id: str,
        user_id: str,
    ) -> Notification | None:
        stmt = (
            select(Notification)
            .where(
                Notification.event_id == event_id,
                Notification.user_id == user_id,
                Notification.kind == NotificationKind.START_REMINDER,
                Notification.status == NotificationStatus.PENDING,
            )
            .order_by(Notification.scheduled_time)
            .limit(1)
        )
        result = await session.execute(stmt)
        return result.scalar_one_or_none()

    async def list_for_event_user(
        self,
        session: AsyncSession,
        event_id: str,
        user_id: str,
        *,
        kinds: Iterable[str] | None = None,
    ) -> Sequence[Notification]:
        stmt = select(Notification).where(
            Notification.event_id == event_id,
            Notification.user_id == user_id,
        )
        if kinds is not None:
            stmt = stmt.where(Notification.kind.in_(list(kinds)))
        result = await session.execute(stmt.order_by(Notification.scheduled_time))
        return result.scalars().all()

    async def cancel_pending_for_event(
        self,
        session: AsyncSession,
        event_id: str,
        user_id: str,
    ) -> int:
        """Cancel every pending notification of one user for one event."""
        stmt = (
            update(Notification)
            .where(
                Notification.event_id == event_id,
                Notification.user_id == user_id,
                Notification.status == NotificationStatus.PENDING,
            )
            .values(status=NotificationStatus.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount or 0

    async def delete_terminal_before(self, session: AsyncSession, cutoff: datetime) -> int:
        stmt = delete(Notification).where(
            Notification.status.in_([str(s) for s in TERMINAL_STATUSES]),
            Notification.created_at < cutoff,
        ).execution_options(synchronize_session=False)
        result = await session.execute(stmt)
        deleted: int = result.rowcount or 0
        if deleted > 10:
            self._logger.warning(
                "Bulk delete executed",
                extra={"entity": "Notification", "deleted": deleted, "operation": "db.delete_terminal_before"},
            )
        return deleted

    async def count_by_status(self, session: AsyncSession) -> dict[str, int]:
        stmt = select(Notification.status, func.count()).group_by(Notification.status)
        result = await session.execute(stmt)
        return {status: count for status, count in result.all()}

    # ------------------------------------------------------------------
    # User-facing queries
    # ------------------------------------------------------------------

    def build_user_query(
        self,
        user_id: str,
        *,
        kind: str | None = None,
        status: str | None = None,
        priority: str | None = None,
        unread_only: bool = False,
    ) -> Select[tuple[Notification]]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if kind:
            stmt = stmt.where(Notification.kind == kind)
        if unread_only:
            stmt = stmt.where(Notification.status == NotificationStatus.PENDING)
        elif status:
            stmt = stmt.where(Notification.status == status)
        if priority:
            stmt = stmt.where(Notification.priority == priority)
        return stmt.order_by(Notification.created_at.desc(), Notification.id.desc())

    async def count_pending_for_user(self, session: AsyncSession, user_id: str) -> int:
        stmt = select(func.count()).where(
            Notification.user_id == user_id,
            Notification.status == NotificationStatus.PENDING,
        )
        return (await session.execute(stmt)).scalar_one()

    async def acknowledge_all_pending(self, session: AsyncSession, user_id: str, now: datetime) -> int:
        stmt = (
            update(Notification)
            .where(
                Notification.user_id == user_id,
                Notification.status == NotificationStatus.PENDING,
            )
            .values(
                status=NotificationStatus.ACKNOWLEDGED,
                acknowledged_at=now,
                read_at=now,
            )
            .execution_options(synchronize_session=False)
        )
        result = await session.execute(stmt)
        return result.rowcount or 0

    async def stats_for_user(
        self,
        session: AsyncSession,
        user_id: str,
        since: datetime,
    ) -> list[tuple[str, str, int]]:
        """(status, kind, count) triples for notifications created after ``since``."""
        stmt = (
            select(Notification.status, Notification.kind, func.count())
            .where(Notification.user_id == user_id, Notification.created_at >= since)
            .group_by(Notification.status, Notification.kind)
            .order_by(Notification.status, Notification.kind)
        )
        result = await session.execute(stmt)
        return [(status, kind, count) for status, kind, count in result.all()]


class PreferenceRepository(BaseRepository[UserNotificationPreference]):
    def __init__(self) -> None:
        super().__init__(UserNotificationPreference)

    async def get_for_user(self, session: AsyncSession, user_id: str) -> UserNotificationPreference | None:
        return await self.get_by(session, UserNotificationPreference.user_id, user_id)

    async def get_many(
        self,
        session: AsyncSession,
        user_ids: Iterable[str],
    ) -> dict[str, UserNotificationPreference]:
        ids = list(user_ids)
        if not ids:
            return {}
        stmt = select(UserNotificationPreference).where(UserNotificationPreference.user_id.in_(ids))
        result = await session.execute(stmt)
        return {pref.user_id: pref for pref in result.scalars().all()}


def notification_summary(notification: Notification) -> dict[str, Any]:
    """Compact dict used in log ``extra`` payloads."""
    return {
        "notification_id": str(notification.id),
        "kind": notification.kind,
        "user_id": notification.user_id,
        "event_id": notification.event_id,
        "status": notification.status,
    }
