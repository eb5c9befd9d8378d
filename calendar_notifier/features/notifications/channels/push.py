"""Push channel adapter."""

from __future__ import annotations

from typing import TYPE_CHECKING

from calendar_notifier.features.notifications.channels.base import (
    DeliveryContext,
    DeliveryResult,
    notification_payload,
)
from calendar_notifier.features.notifications.models import DeliveryChannel

if TYPE_CHECKING:
    from calendar_notifier.features.notifications.models import Notification
    from calendar_notifier.infra.push import PushSender


class PushChannel:
    name = DeliveryChannel.PUSH.value

    def __init__(self, sender: PushSender) -> None:
        self._sender = sender

    async def send(self, notification: Notification, context: DeliveryContext) -> DeliveryResult:
        result = await self._sender.send_push(
            notification.user_id,
            notification.title,
            notification.message,
            notification_payload(notification),
        )
        return DeliveryResult(
            success=result.success,
            status_code=result.status_code,
            response_time_ms=result.response_time_ms,
            error_message=result.error_message,
            error_category=None if result.success else "transport",
        )
