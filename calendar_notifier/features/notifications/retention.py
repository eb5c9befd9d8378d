"""Deletes old notifications in terminal states."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import timedelta
from typing import TYPE_CHECKING

from calendar_notifier.features.notifications.metrics import notification_retention_deleted_total
from calendar_notifier.features.notifications.repository import NotificationRepository

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from calendar_notifier.core.clock import Clock

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SweepResult:
    deleted: int
    remaining: dict[str, int] = field(default_factory=dict)


class RetentionSweeper:
    """Removes sent, acknowledged, failed and cancelled rows older than ``retention``.

    Pending rows are never deleted, whatever their age.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Clock,
        *,
        retention: timedelta = timedelta(days=30),
        repository: NotificationRepository | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock
        self._retention = retention
        self._repository = repository or NotificationRepository()

    async def sweep(self) -> SweepResult:
        cutoff = self._clock.now() - self._retention
        async with self._session_factory() as session:
            deleted = await self._repository.delete_terminal_before(session, cutoff)
            await session.commit()
            remaining = await self._repository.count_by_status(session)

        notification_retention_deleted_total.inc(deleted)
        logger.info(
            "Retention sweep finished",
            extra={"deleted": deleted, "cutoff": cutoff.isoformat(), "remaining": remaining},
        )
        return SweepResult(deleted=deleted, remaining=remaining)
