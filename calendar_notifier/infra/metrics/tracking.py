"""Helpers that record error and query metrics alongside debug logs."""

from __future__ import annotations

import logging
from typing import Any

from calendar_notifier.infra.metrics import business
from calendar_notifier.infra.metrics.prometheus import database_slow_queries_total

logger = logging.getLogger(__name__)


def track_error(
    error_type: str,
    endpoint: str,
    status_code: int,
    extra: dict[str, Any] | None = None,
) -> None:
    """Track an error occurrence.

    Args:
        error_type: Stable reason code (e.g. 'notification-not-found')
        endpoint: API path where the error occurred
        status_code: HTTP status code
        extra: Additional context for logging

    Example:
        track_error("notification-not-owned", "/notifications/abc/acknowledge", 403)
    """
    business.errors_total.labels(
        error_type=error_type,
        endpoint=endpoint,
        status_code=str(status_code),
    ).inc()

    logger.debug(
        "Tracked error: %s",
        error_type,
        extra={"endpoint": endpoint, "status_code": status_code, **(extra or {})},
    )


def track_validation_error(endpoint: str, field: str) -> None:
    """Track a request validation error for a specific field."""
    business.validation_errors_total.labels(endpoint=endpoint, field=field).inc()


def track_unhandled_exception(exception_type: str, endpoint: str) -> None:
    """Track an exception that reached the generic 500 handler."""
    business.exceptions_unhandled_total.labels(
        exception_type=exception_type,
        endpoint=endpoint,
    ).inc()


def track_slow_query(operation: str) -> None:
    """Track a query that took longer than the slow-query threshold."""
    database_slow_queries_total.labels(operation=operation).inc()
