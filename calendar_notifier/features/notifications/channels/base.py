"""Base protocol and types for delivery channels."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

if TYPE_CHECKING:
    from calendar_notifier.features.notifications.models import Notification


@dataclass
class DeliveryResult:
    """Result of a channel delivery attempt.

    Attributes:
        success: Whether delivery succeeded
        status_code: Transport status code (HTTP for push) or None
        response_time_ms: Time taken for delivery in milliseconds
        error_message: Error description if failed
        error_category: Error classification (transport, no_recipient, timeout, exception)
        metadata: Channel-specific metadata
    """

    success: bool
    status_code: int | None = None
    response_time_ms: int | None = None
    error_message: str | None = None
    error_category: str | None = None
    metadata: dict[str, Any] | None = None


@dataclass(frozen=True)
class DeliveryContext:
    """Recipient details a channel may need beyond the notification row."""

    email: str | None = None
    timezone: str = "UTC"


class Channel(Protocol):
    """Protocol implemented by every delivery channel.

    A channel performs one attempt and reports the outcome. It never
    changes the notification's status; the dispatcher does that.
    """

    name: str

    async def send(self, notification: Notification, context: DeliveryContext) -> DeliveryResult:
        """Attempt delivery of ``notification`` through this channel."""
        ...


def notification_payload(notification: Notification) -> dict[str, Any]:
    """Serialisable view of a notification shared by push and realtime."""
    metadata = notification.extra_metadata or {}
    return {
        "notification_id": str(notification.id),
        "event_id": notification.event_id,
        "kind": notification.kind,
        "priority": notification.priority,
        "title": notification.title,
        "message": notification.message,
        "scheduled_time": notification.scheduled_time.isoformat(),
        "actions": metadata.get("actions", []),
    }
