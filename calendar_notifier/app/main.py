"""FastAPI application factory."""

from __future__ import annotations

from fastapi import FastAPI

from calendar_notifier.app.exception_handlers import configure_exception_handlers
from calendar_notifier.app.lifespan import lifespan
from calendar_notifier.app.middleware import configure_middleware
from calendar_notifier.app.router import setup_routers
from calendar_notifier.core.settings import get_app_settings


def create_app() -> FastAPI:
    """Create and configure the FastAPI application.

    Returns:
        Configured FastAPI application instance.
    """
    app_settings = get_app_settings()

    app = FastAPI(
        title=app_settings.title,
        description=app_settings.description,
        version=app_settings.version,
        debug=app_settings.debug,
        lifespan=lifespan,
        **app_settings.get_docs_urls(),
    )
    app.state.scheduler = None

    # Exception handlers must be registered before middleware
    configure_exception_handlers(app)
    configure_middleware(app)
    setup_routers(app, app_settings)

    return app


# Application instance for uvicorn
app = create_app()
