"""Programmatic access to the alembic migrations.

``create_tables`` (metadata.create_all) is the quick path for development
and tests; deployments apply the versioned scripts under ``alembic/``
instead, either with ``alembic upgrade head`` or ``calendar-notifier db upgrade``.
"""

from __future__ import annotations

import asyncio
import io
import logging
from pathlib import Path

from alembic.config import Config
from sqlalchemy.engine import make_url

from alembic import command

logger = logging.getLogger(__name__)


def get_alembic_config(url: str | None = None, *, stdout: io.StringIO | None = None) -> Config:
    """Build the alembic Config for this project.

    Args:
        url: Database URL to migrate; defaults to ``DB_URL`` via alembic/env.py.
        stdout: Buffer receiving command output.

    Raises:
        FileNotFoundError: When alembic.ini is not next to the package.
    """
    project_root = Path(__file__).parent.parent.parent.parent
    alembic_ini_path = project_root / "alembic.ini"

    if not alembic_ini_path.exists():
        raise FileNotFoundError(f"alembic.ini not found at {alembic_ini_path}")

    config = Config(str(alembic_ini_path), stdout=stdout or io.StringIO())
    config.attributes["configure_logger"] = False
    if url is not None:
        config.set_main_option("sqlalchemy.url", url.replace("%", "%%"))
    return config


def _display(url: str | None) -> str:
    return make_url(url).render_as_string(hide_password=True) if url else "DB_URL"


async def run_migrations(target: str = "head", *, url: str | None = None) -> None:
    """Upgrade the database to ``target``.

    env.py drives the async engine with ``asyncio.run``, so the command runs
    in a worker thread that has no event loop of its own.
    """
    logger.info("Upgrading database", extra={"target": target, "url": _display(url)})
    config = get_alembic_config(url)

    try:
        await asyncio.to_thread(command.upgrade, config, target)
    except Exception:
        logger.exception("Migration failed", extra={"target": target})
        raise

    logger.info("Database upgraded", extra={"target": target})


async def rollback_migrations(target: str = "-1", *, url: str | None = None) -> None:
    """Downgrade the database to ``target`` (one revision back by default)."""
    logger.warning("Downgrading database", extra={"target": target, "url": _display(url)})
    config = get_alembic_config(url)

    try:
        await asyncio.to_thread(command.downgrade, config, target)
    except Exception:
        logger.exception("Rollback failed", extra={"target": target})
        raise

    logger.info("Database downgraded", extra={"target": target})


async def current_revision(url: str | None = None) -> str:
    """Return alembic's ``current`` output for the database."""
    output = io.StringIO()
    config = get_alembic_config(url, stdout=output)
    await asyncio.to_thread(command.current, config)
    return output.getvalue().strip()
