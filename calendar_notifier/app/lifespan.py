"""Application lifespan: startup and shutdown in dependency order."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING

from calendar_notifier.core.settings import (
    get_app_settings,
    get_logging_settings,
    get_notification_settings,
)
from calendar_notifier.features.events import models as _event_models  # noqa: F401
from calendar_notifier.features.notifications import models as _notification_models  # noqa: F401
from calendar_notifier.features.notifications.engine import (
    get_notification_engine,
    reset_notification_engine,
)
from calendar_notifier.infra.database import close_database, init_database
from calendar_notifier.infra.logging import setup_logging
from calendar_notifier.infra.logging import shutdown as shutdown_logging
from calendar_notifier.infra.metrics.prometheus import application_info
from calendar_notifier.infra.realtime import start_connection_manager, stop_connection_manager
from calendar_notifier.tasks.jobs import register_notification_jobs
from calendar_notifier.tasks.scheduler import JobScheduler

if TYPE_CHECKING:
    from collections.abc import AsyncIterator

    from fastapi import FastAPI

logger = logging.getLogger(__name__)


async def _startup_core() -> None:
    """Configure logging and publish the application info metric."""
    app_settings = get_app_settings()
    setup_logging(log_settings=get_logging_settings(), force=True)
    logger.info(
        "Application starting",
        extra={"service": app_settings.service_name, "environment": app_settings.environment},
    )
    application_info.labels(
        version=app_settings.version,
        service=app_settings.service_name,
        environment=app_settings.environment,
    ).set(1)


def _startup_scheduler(app: FastAPI) -> JobScheduler | None:
    settings = get_notification_settings()
    if not settings.scheduler_enabled:
        logger.info("Scheduler disabled, periodic jobs will not run")
        return None

    scheduler = JobScheduler()
    register_notification_jobs(scheduler, get_notification_engine(), settings)
    scheduler.start()
    app.state.scheduler = scheduler
    return scheduler


async def _shutdown_realtime() -> None:
    """Close websocket connections and drop the engine bound to this manager.

    The engine's realtime channel and acknowledgment echo hold the manager
    they were built with; the next startup must build both afresh.
    """
    await stop_connection_manager()
    reset_notification_engine()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Manage application lifecycle.

    Startup: logging, database, websocket manager, then the job scheduler.
    Shutdown runs in reverse order.
    """
    await _startup_core()
    await init_database()
    await start_connection_manager()
    scheduler = _startup_scheduler(app)

    app_settings = get_app_settings()
    logger.info(
        "Application startup complete - listening on %s:%s",
        app_settings.host,
        app_settings.port,
        extra={
            "service": app_settings.service_name,
            "version": app_settings.version,
            "scheduler_enabled": scheduler is not None,
        },
    )

    yield

    logger.info("Application shutting down", extra={"service": app_settings.service_name})

    if scheduler is not None:
        scheduler.shutdown()
        app.state.scheduler = None
    await _shutdown_realtime()
    await close_database()

    logger.info("Application shutdown complete")
    shutdown_logging()
