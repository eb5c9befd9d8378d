"""Notification domain errors with stable reason codes."""

from __future__ import annotations

from typing import Any

from calendar_notifier.core.exceptions import ConflictException, ForbiddenException, NotFoundException


class NotificationNotFoundError(NotFoundException):
    def __init__(self, notification_id: Any) -> None:
        super().__init__(
            detail=f"Notification {notification_id} not found",
            type="notification-not-found",
            extra={"notification_id": str(notification_id)},
        )


class NotificationAccessDeniedError(ForbiddenException):
    """The notification exists but belongs to another user."""

    def __init__(self, notification_id: Any) -> None:
        super().__init__(
            detail=f"Notification {notification_id} does not belong to the caller",
            type="notification-not-owned",
            extra={"notification_id": str(notification_id)},
        )


class InvalidStatusTransitionError(ConflictException):
    def __init__(self, notification_id: Any, current: str, target: str) -> None:
        super().__init__(
            detail=f"Notification {notification_id} cannot move from {current} to {target}",
            type="invalid-status-transition",
            extra={"notification_id": str(notification_id), "status": current, "target": target},
        )
