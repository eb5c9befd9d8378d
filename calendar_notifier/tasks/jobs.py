"""Periodic notification jobs.

| job                          | schedule                 |
|------------------------------|--------------------------|
| process_due_notifications    | every tick interval (60s) |
| retry_failed_notifications   | every retry interval (5m) |
| sweep_expired_notifications  | daily, 00:00 UTC          |
| scan_upcoming_events         | every 60s (if enabled)    |
| clear_dedup_guard            | hourly                    |
| health_check                 | every 30m                 |
"""

from __future__ import annotations

import logging
import resource
import sys
from typing import TYPE_CHECKING, Any

from apscheduler.triggers.cron import CronTrigger
from apscheduler.triggers.interval import IntervalTrigger

from calendar_notifier.infra.database import check_database

if TYPE_CHECKING:
    from collections.abc import Awaitable, Callable

    from calendar_notifier.core.settings import NotificationSettings
    from calendar_notifier.features.notifications.engine import NotificationEngine
    from calendar_notifier.tasks.scheduler import JobScheduler

logger = logging.getLogger(__name__)


def max_rss_mb() -> float:
    """Peak resident set size of this process in MiB."""
    usage = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports KiB, macOS reports bytes
    divisor = 1024 * 1024 if sys.platform == "darwin" else 1024
    return round(usage / divisor, 1)


async def health_check(ping: Callable[[], Awaitable[bool]] = check_database) -> dict[str, Any]:
    """Ping the database and log process memory."""
    database_ok = await ping()
    report = {"database": "ok" if database_ok else "unavailable", "max_rss_mb": max_rss_mb()}
    if database_ok:
        logger.info("Health check passed", extra=report)
    else:
        logger.warning("Health check failed", extra=report)
    return report


def register_notification_jobs(
    scheduler: JobScheduler,
    engine: NotificationEngine,
    settings: NotificationSettings,
    *,
    ping: Callable[[], Awaitable[bool]] = check_database,
) -> None:
    """Register every periodic job of the notification engine."""
    scheduler.register(
        "process_due_notifications",
        engine.ticker.tick,
        IntervalTrigger(seconds=settings.tick_interval_seconds, timezone="UTC"),
        description="Dispatch due notifications",
    )
    scheduler.register(
        "retry_failed_notifications",
        engine.retry.run,
        IntervalTrigger(seconds=settings.retry_interval_seconds, timezone="UTC"),
        description="Retry recent delivery failures",
    )
    scheduler.register(
        "sweep_expired_notifications",
        engine.sweeper.sweep,
        CronTrigger(hour=settings.retention_hour_utc, minute=0, timezone="UTC"),
        description="Delete old terminal notifications",
    )
    if settings.event_scan_enabled:
        scheduler.register(
            "scan_upcoming_events",
            engine.scanner.scan,
            IntervalTrigger(seconds=60, timezone="UTC"),
            description="Fallback reminders for upcoming events",
        )
    scheduler.register(
        "clear_dedup_guard",
        engine.clear_guard,
        IntervalTrigger(hours=1, timezone="UTC"),
        description="Reset the duplicate-delivery guard",
    )

    async def _health() -> dict[str, Any]:
        return await health_check(ping)

    scheduler.register(
        "health_check",
        _health,
        IntervalTrigger(minutes=settings.health_check_interval_minutes, timezone="UTC"),
        description="Database ping and memory report",
    )
    logger.info("Scheduled notification jobs", extra={"jobs": scheduler.job_names})
