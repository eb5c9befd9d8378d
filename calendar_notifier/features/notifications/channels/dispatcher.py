"""Multi-channel dispatcher.

Attempts every channel listed on a notification, each attempt isolated from
the others and bounded by a timeout, then records the per-channel outcome
in ``delivery_receipt`` and moves the notification to ``sent`` (any channel
succeeded) or ``failed`` (none did). Retrying is not done here.
"""

from __future__ import annotations

import asyncio
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from calendar_notifier.features.notifications.channels.base import DeliveryContext, DeliveryResult
from calendar_notifier.features.notifications.metrics import (
    notification_channel_delivery_total,
    notification_channel_duration_seconds,
    notification_dispatch_duration_seconds,
    notification_dispatch_total,
)
from calendar_notifier.features.notifications.models import NotificationStatus
from calendar_notifier.features.notifications.repository import notification_summary
from calendar_notifier.infra.logging import get_lazy_logger

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession

    from calendar_notifier.core.clock import Clock
    from calendar_notifier.features.notifications.channels.registry import ChannelRegistry
    from calendar_notifier.features.notifications.models import Notification
    from calendar_notifier.features.notifications.preferences import PreferenceResolver

logger = logging.getLogger(__name__)
lazy_logger = get_lazy_logger(__name__)

ALL_CHANNELS_FAILED = "All delivery channels failed"


@dataclass
class DispatchOutcome:
    """What a single ``dispatch`` call did."""

    status: str
    attempted: bool
    results: dict[str, DeliveryResult] = field(default_factory=dict)

    @property
    def sent(self) -> bool:
        return self.status == NotificationStatus.SENT


class Dispatcher:
    """Delivers one notification through its configured channels."""

    def __init__(
        self,
        registry: ChannelRegistry,
        resolver: PreferenceResolver,
        clock: Clock,
        *,
        channel_timeout: float = 10.0,
    ) -> None:
        self._registry = registry
        self._resolver = resolver
        self._clock = clock
        self._channel_timeout = channel_timeout

    async def dispatch(self, session: AsyncSession, notification: Notification) -> DispatchOutcome:
        """Attempt delivery and update the notification's status.

        Only ``pending`` notifications are attempted; anything else is
        returned untouched. The session is flushed, not committed.
        """
        if notification.status != NotificationStatus.PENDING:
            notification_dispatch_total.labels(kind=notification.kind, outcome="skipped").inc()
            lazy_logger.debug(
                lambda: f"dispatch skipped: notification_id={notification.id}, status={notification.status}"
            )
            return DispatchOutcome(status=notification.status, attempted=False)

        start_time = time.perf_counter()
        prefs = await self._resolver.get_preferences(session, notification.user_id)
        context = DeliveryContext(email=prefs.email, timezone=prefs.timezone)

        channels = list(dict.fromkeys(notification.channels or []))
        results = await asyncio.gather(
            *(self._attempt(name, notification, context) for name in channels)
        )
        by_channel = dict(zip(channels, results, strict=True))

        now = self._clock.now()
        notification.delivery_receipt = {
            name: _receipt_entry(result, now.isoformat()) for name, result in by_channel.items()
        }
        notification.updated_at = now

        if any(result.success for result in results):
            notification.status = NotificationStatus.SENT
            notification.sent_at = now
            notification.error_message = None
        else:
            notification.status = NotificationStatus.FAILED
            notification.failed_at = now
            notification.error_message = ALL_CHANNELS_FAILED if channels else "No delivery channels"

        await session.flush()

        notification_dispatch_total.labels(kind=notification.kind, outcome=notification.status).inc()
        notification_dispatch_duration_seconds.observe(time.perf_counter() - start_time)

        log = logger.info if notification.status == NotificationStatus.SENT else logger.warning
        log(
            "Notification dispatched",
            extra={
                **notification_summary(notification),
                "channels": {name: result.success for name, result in by_channel.items()},
            },
        )
        return DispatchOutcome(status=notification.status, attempted=True, results=by_channel)

    async def _attempt(
        self,
        name: str,
        notification: Notification,
        context: DeliveryContext,
    ) -> DeliveryResult:
        channel = self._registry.get(name)
        if channel is None:
            logger.warning(
                "No channel registered",
                extra={"channel": name, "notification_id": str(notification.id)},
            )
            notification_channel_delivery_total.labels(channel=name, outcome="error").inc()
            return DeliveryResult(
                success=False,
                error_message=f"Unknown channel: {name}",
                error_category="unknown_channel",
            )

        start_time = time.perf_counter()
        try:
            result = await asyncio.wait_for(
                channel.send(notification, context), timeout=self._channel_timeout
            )
        except TimeoutError:
            logger.warning(
                "Channel send timed out",
                extra={
                    "channel": name,
                    "notification_id": str(notification.id),
                    "timeout_seconds": self._channel_timeout,
                },
            )
            notification_channel_delivery_total.labels(channel=name, outcome="timeout").inc()
            return DeliveryResult(
                success=False,
                response_time_ms=int((time.perf_counter() - start_time) * 1000),
                error_message=f"Timed out after {self._channel_timeout}s",
                error_category="timeout",
            )
        except Exception as e:
            logger.exception(
                "Channel send raised",
                extra={"channel": name, "notification_id": str(notification.id)},
            )
            notification_channel_delivery_total.labels(channel=name, outcome="error").inc()
            return DeliveryResult(
                success=False,
                response_time_ms=int((time.perf_counter() - start_time) * 1000),
                error_message=str(e) or type(e).__name__,
                error_category="exception",
            )
        finally:
            notification_channel_duration_seconds.labels(channel=name).observe(
                time.perf_counter() - start_time
            )

        notification_channel_delivery_total.labels(
            channel=name, outcome="success" if result.success else "failure"
        ).inc()
        return result


def _receipt_entry(result: DeliveryResult, attempted_at: str) -> dict[str, Any]:
    entry: dict[str, Any] = {
        "success": result.success,
        "error": result.error_message,
        "attempted_at": attempted_at,
    }
    if result.error_category:
        entry["error_category"] = result.error_category
    if result.response_time_ms is not None:
        entry["response_time_ms"] = result.response_time_ms
    if result.status_code is not None:
        entry["status_code"] = result.status_code
    if result.metadata:
        entry["metadata"] = result.metadata
    return entry
