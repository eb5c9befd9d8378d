"""Router registry and setup."""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from calendar_notifier.core.settings import get_app_settings
from calendar_notifier.features.health.router import router as health_router
from calendar_notifier.features.metrics.router import router as metrics_router
from calendar_notifier.features.notifications.router import router as notifications_router
from calendar_notifier.features.realtime.router import router as realtime_router

if TYPE_CHECKING:
    from fastapi import FastAPI

    from calendar_notifier.core.settings import AppSettings

logger = logging.getLogger(__name__)


def setup_routers(app: FastAPI, app_settings: AppSettings | None = None) -> None:
    """Register all feature routers with the application.

    Args:
        app: FastAPI application instance.
        app_settings: Optional settings override for the API prefix.
    """
    app_settings = app_settings or get_app_settings()
    api_prefix = app_settings.api_prefix

    # Metrics and health checks stay at fixed paths for scrapers and orchestrators
    app.include_router(metrics_router)
    app.include_router(health_router)

    app.include_router(notifications_router, prefix=api_prefix, tags=["notifications"])
    app.include_router(realtime_router, prefix=api_prefix, tags=["realtime"])

    logger.debug("Routers registered", extra={"api_prefix": api_prefix or "/"})
