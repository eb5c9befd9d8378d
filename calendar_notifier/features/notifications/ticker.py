"""Periodic pass that dispatches due notifications."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from calendar_notifier.features.notifications.models import NotificationStatus
from calendar_notifier.features.notifications.repository import NotificationRepository
from calendar_notifier.infra.logging import log_context

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from calendar_notifier.core.clock import Clock
    from calendar_notifier.features.notifications.channels import Dispatcher

logger = logging.getLogger(__name__)


class Ticker:
    """Finds ``pending`` notifications whose time has come and dispatches them.

    Each notification is handled in its own session and transaction: the
    row is re-read (with a row lock where supported) and re-checked before
    dispatch, so a concurrent acknowledgment or cancellation wins. Dispatch
    runs with at most ``concurrency`` notifications in flight.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: Dispatcher,
        clock: Clock,
        *,
        concurrency: int = 10,
        repository: NotificationRepository | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._clock = clock
        self._concurrency = concurrency
        self._repository = repository or NotificationRepository()

    async def tick(self) -> int:
        """Dispatch everything due now. Returns how many were dispatched."""
        now = self._clock.now()
        try:
            async with self._session_factory() as session:
                due_ids = await self._repository.list_due_ids(session, now)
        except SQLAlchemyError:
            logger.exception("Could not load due notifications, will retry next tick")
            return 0

        if not due_ids:
            return 0

        semaphore = asyncio.Semaphore(self._concurrency)

        async def bounded(notification_id: UUID) -> bool:
            async with semaphore:
                return await self._process(notification_id)

        results = await asyncio.gather(*(bounded(nid) for nid in due_ids))
        processed = sum(results)
        logger.info(
            "Ticker pass finished",
            extra={"due": len(due_ids), "processed": processed},
        )
        return processed

    async def _process(self, notification_id: UUID) -> bool:
        with log_context(notification_id=str(notification_id)):
            try:
                async with self._session_factory() as session:
                    notification = await self._repository.get_for_update(session, notification_id)
                    if notification is None or notification.status != NotificationStatus.PENDING:
                        logger.debug("Notification no longer pending, skipping")
                        return False
                    await self._dispatcher.dispatch(session, notification)
                    await session.commit()
                    return True
            except SQLAlchemyError:
                logger.exception("Dispatch of due notification failed")
                return False
