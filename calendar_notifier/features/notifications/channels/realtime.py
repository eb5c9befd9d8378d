"""Realtime (websocket) channel adapter.

Delivery counts as successful only when at least one live connection of
the user received the message.
"""

from __future__ import annotations

import time
from typing import TYPE_CHECKING, Any, Protocol

from calendar_notifier.features.notifications.channels.base import (
    DeliveryContext,
    DeliveryResult,
    notification_payload,
)
from calendar_notifier.features.notifications.models import DeliveryChannel

if TYPE_CHECKING:
    from calendar_notifier.features.notifications.models import Notification


class RealtimeSender(Protocol):
    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> int: ...


class RealtimeChannel:
    name = DeliveryChannel.REALTIME.value

    def __init__(self, sender: RealtimeSender) -> None:
        self._sender = sender

    async def send(self, notification: Notification, context: DeliveryContext) -> DeliveryResult:
        start_time = time.time()
        message = {
            "type": "notification",
            "event": notification.kind,
            "data": notification_payload(notification),
        }
        delivered = await self._sender.send_to_user(notification.user_id, message)
        response_time_ms = int((time.time() - start_time) * 1000)

        if delivered == 0:
            return DeliveryResult(
                success=False,
                response_time_ms=response_time_ms,
                error_message="No active connections for user",
                error_category="no_recipient",
                metadata={"connections": 0},
            )
        return DeliveryResult(
            success=True,
            response_time_ms=response_time_ms,
            metadata={"connections": delivered},
        )
