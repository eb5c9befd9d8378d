"""Re-queues recent delivery failures."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy.exc import SQLAlchemyError

from calendar_notifier.features.notifications.metrics import notification_retry_total
from calendar_notifier.features.notifications.models import NotificationStatus
from calendar_notifier.features.notifications.repository import NotificationRepository
from calendar_notifier.infra.logging import log_context

if TYPE_CHECKING:
    from uuid import UUID

    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from calendar_notifier.core.clock import Clock
    from calendar_notifier.features.notifications.channels import Dispatcher

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryResult:
    selected: int = 0
    sent: int = 0
    failed: int = 0


class RetryCoordinator:
    """Gives failed notifications another dispatch while retries remain.

    Only failures newer than ``window`` are considered; older ones stay
    ``failed`` until the retention sweeper removes them. Each retry bumps
    ``retry_count`` before dispatching, so ``retry_count`` never exceeds
    ``max_retries``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        dispatcher: Dispatcher,
        clock: Clock,
        *,
        window: timedelta = timedelta(hours=1),
        batch_size: int = 50,
        repository: NotificationRepository | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._dispatcher = dispatcher
        self._clock = clock
        self._window = window
        self._batch_size = batch_size
        self._repository = repository or NotificationRepository()

    async def run(self) -> RetryResult:
        now = self._clock.now()
        try:
            async with self._session_factory() as session:
                ids = await self._repository.list_retryable_ids(
                    session, now - self._window, limit=self._batch_size
                )
        except SQLAlchemyError:
            logger.exception("Could not load failed notifications, will retry next run")
            return RetryResult()

        sent = failed = 0
        for notification_id in ids:
            outcome = await self._retry_one(notification_id)
            if outcome == NotificationStatus.SENT:
                sent += 1
            elif outcome == NotificationStatus.FAILED:
                failed += 1

        result = RetryResult(selected=len(ids), sent=sent, failed=failed)
        if ids:
            logger.info(
                "Retry pass finished",
                extra={"selected": result.selected, "sent": result.sent, "failed": result.failed},
            )
        return result

    async def _retry_one(self, notification_id: UUID) -> str | None:
        with log_context(notification_id=str(notification_id)):
            try:
                async with self._session_factory() as session:
                    notification = await self._repository.get_for_update(session, notification_id)
                    if (
                        notification is None
                        or notification.status != NotificationStatus.FAILED
                        or notification.retry_count >= notification.max_retries
                    ):
                        return None

                    notification.retry_count += 1
                    notification.status = NotificationStatus.PENDING
                    notification.updated_at = self._clock.now()
                    await session.commit()

                    outcome = await self._dispatcher.dispatch(session, notification)
                    await session.commit()
            except SQLAlchemyError:
                logger.exception("Retry of failed notification errored")
                return None

            notification_retry_total.labels(outcome=outcome.status).inc()
            logger.info(
                "Notification retried",
                extra={
                    "retry_count": notification.retry_count,
                    "max_retries": notification.max_retries,
                    "status": outcome.status,
                },
            )
            return outcome.status
