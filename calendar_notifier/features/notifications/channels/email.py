"""Email channel adapter."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from calendar_notifier.features.notifications.channels.base import DeliveryContext, DeliveryResult
from calendar_notifier.features.notifications.models import DeliveryChannel, NotificationPriority

if TYPE_CHECKING:
    from calendar_notifier.features.notifications.models import Notification
    from calendar_notifier.infra.email import EmailSender

logger = logging.getLogger(__name__)

_SUBJECT_PREFIX = {
    NotificationPriority.HIGH: "[Important] ",
    NotificationPriority.URGENT: "[URGENT] ",
}


def email_subject(notification: Notification) -> str:
    return f"{_SUBJECT_PREFIX.get(notification.priority, '')}{notification.title}"


def email_body(notification: Notification) -> str:
    lines = [notification.message]
    actions = (notification.extra_metadata or {}).get("actions") or []
    if actions:
        lines.append("")
        lines.append("You can respond in the app:")
        lines.extend(f"  - {action['label']}: {action['description']}" for action in actions)
    return "\n".join(lines)


class EmailChannel:
    name = DeliveryChannel.EMAIL.value

    def __init__(self, sender: EmailSender) -> None:
        self._sender = sender

    async def send(self, notification: Notification, context: DeliveryContext) -> DeliveryResult:
        if not context.email:
            logger.warning(
                "No email address for user",
                extra={"user_id": notification.user_id, "notification_id": str(notification.id)},
            )
            return DeliveryResult(
                success=False,
                error_message="No email address on file",
                error_category="no_recipient",
            )

        headers = {"X-Notification-ID": str(notification.id)}
        if notification.priority in _SUBJECT_PREFIX:
            headers["X-Priority"] = "1"
        result = await self._sender.send_email(
            context.email,
            email_subject(notification),
            email_body(notification),
            headers,
        )
        return DeliveryResult(
            success=result.success,
            response_time_ms=result.response_time_ms,
            error_message=result.error_message,
            error_category=None if result.success else "transport",
            metadata={"message_id": result.message_id} if result.message_id else None,
        )
