"""Logging infrastructure.

Provides structured logging with:
- JSONL format for log aggregation
- Automatic context injection (job, notification_id, user_id, ...)
- QueueHandler + QueueListener for non-blocking I/O
- Lazy evaluation for expensive debug output
- OpenTelemetry trace correlation

Basic usage:
    from calendar_notifier.infra.logging import set_log_context
    import logging

    logger = logging.getLogger(__name__)

    set_log_context(job="process_due_notifications")
    logger.info("Tick started")  # Includes job=...
"""

from calendar_notifier.infra.logging.config import (
    complete,
    configure_logging,
    setup_logging,
    shutdown,
)
from calendar_notifier.infra.logging.context import (
    ContextBoundLogger,
    ContextInjectingFilter,
    clear_log_context,
    get_logger,
    log_context,
    set_log_context,
)
from calendar_notifier.infra.logging.formatters import JSONFormatter
from calendar_notifier.infra.logging.lazy import LazyLoggerAdapter, get_lazy_logger

__all__ = [
    "ContextBoundLogger",
    "ContextInjectingFilter",
    "JSONFormatter",
    "LazyLoggerAdapter",
    "clear_log_context",
    "complete",
    "configure_logging",
    "get_lazy_logger",
    "get_logger",
    "log_context",
    "set_log_context",
    "setup_logging",
    "shutdown",
]
