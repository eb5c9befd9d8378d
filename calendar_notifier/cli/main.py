"""Main CLI entry point for calendar-notifier.

    calendar-notifier serve                       # run the API and scheduler
    calendar-notifier jobs list                   # registered periodic jobs
    calendar-notifier jobs run process_due_notifications
    calendar-notifier config show                 # effective settings
    calendar-notifier db upgrade                  # apply alembic migrations
"""

from __future__ import annotations

import json
import sys
from typing import TYPE_CHECKING

import click
from pydantic import SecretStr
from sqlalchemy.engine import make_url

from calendar_notifier.cli.utils import coro, error, header, info, success, warning
from calendar_notifier.core.settings import (
    get_app_settings,
    get_channel_settings,
    get_db_settings,
    get_logging_settings,
    get_notification_settings,
)
from calendar_notifier.infra.logging import setup_logging

if TYPE_CHECKING:
    from calendar_notifier.tasks.scheduler import JobScheduler


@click.group()
@click.version_option(version="0.1.0", prog_name="calendar-notifier")
def cli() -> None:
    """Calendar notifier: reminder scheduling, delivery and acknowledgment."""


@cli.command()
@click.option("--host", default=None, help="Host to bind (default: from settings)")
@click.option("--port", default=None, type=int, help="Port to bind (default: from settings)")
@click.option("--reload/--no-reload", default=False, help="Enable auto-reload on code changes")
def serve(host: str | None, port: int | None, reload: bool) -> None:
    """Run the HTTP API with the job scheduler."""
    import uvicorn

    settings = get_app_settings()
    host = host or settings.host
    port = port or settings.port
    info(f"Server will run at: http://{host}:{port}")

    uvicorn.run(
        "calendar_notifier.app.main:app",
        host=host,
        port=port,
        reload=reload,
        access_log=settings.debug,
        log_level=get_logging_settings().level.lower(),
    )


@cli.group()
def jobs() -> None:
    """Periodic job commands."""


def _build_scheduler() -> JobScheduler:
    from calendar_notifier.features.events import models as _event_models  # noqa: F401
    from calendar_notifier.features.notifications.engine import get_notification_engine
    from calendar_notifier.tasks.jobs import register_notification_jobs
    from calendar_notifier.tasks.scheduler import JobScheduler

    scheduler = JobScheduler()
    register_notification_jobs(scheduler, get_notification_engine(), get_notification_settings())
    return scheduler


@jobs.command(name="list")
@coro
async def list_jobs() -> None:
    """List the periodic jobs this configuration registers."""
    header("Scheduled Jobs")
    scheduler = _build_scheduler()
    for job in scheduler.get_job_status():
        click.echo(f"{job['id']:<32} {job['trigger']:<45} {job['name']}")
    success(f"Total: {len(scheduler.job_names)} jobs")


@jobs.command(name="run")
@click.argument("name")
@coro
async def run_job(name: str) -> None:
    """Run one periodic job once, outside the scheduler."""
    from calendar_notifier.infra.database import close_database, init_database

    scheduler = _build_scheduler()
    if name not in scheduler.job_names:
        error(f"Unknown job {name!r}. Known jobs: {', '.join(scheduler.job_names)}")
        sys.exit(1)

    await init_database()
    try:
        outcome = await scheduler.run_job(name)
    finally:
        await close_database()

    if outcome == "success":
        success(f"{name} finished")
    else:
        warning(f"{name} finished with outcome {outcome}")
        sys.exit(1)


@cli.group()
def db() -> None:
    """Schema migration commands."""


@db.command()
@click.argument("revision", default="head")
@coro
async def upgrade(revision: str) -> None:
    """Apply migrations up to REVISION (default: head)."""
    from calendar_notifier.infra.database.migrations import current_revision, run_migrations

    try:
        await run_migrations(revision)
    except Exception as e:
        error(f"Failed to upgrade database: {e}")
        sys.exit(1)
    success(f"Database at {await current_revision() or 'base'}")


@db.command()
@click.argument("revision", default="-1")
@click.confirmation_option(prompt="Downgrade the database schema?")
@coro
async def downgrade(revision: str) -> None:
    """Revert migrations down to REVISION (default: one step)."""
    from calendar_notifier.infra.database.migrations import current_revision, rollback_migrations

    try:
        await rollback_migrations(revision)
    except Exception as e:
        error(f"Failed to downgrade database: {e}")
        sys.exit(1)
    success(f"Database at {await current_revision() or 'base'}")


@cli.group()
def config() -> None:
    """Configuration commands."""


@config.command(name="show")
def show_config() -> None:
    """Print the effective settings as JSON, secrets masked."""
    sections = {
        "app": get_app_settings(),
        "database": get_db_settings(),
        "logging": get_logging_settings(),
        "notifications": get_notification_settings(),
        "channels": get_channel_settings(),
    }
    rendered = {
        name: {
            key: "**********" if isinstance(value, SecretStr) else value
            for key, value in dict(settings).items()
        }
        for name, settings in sections.items()
    }
    rendered["database"]["url"] = make_url(sections["database"].url).render_as_string(
        hide_password=True
    )
    click.echo(json.dumps(rendered, indent=2, default=str))


def main() -> None:
    """Entry point for CLI."""
    setup_logging()
    cli(obj={})


if __name__ == "__main__":
    main()
