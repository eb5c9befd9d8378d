"""Alembic migration environment for the async SQLAlchemy engine.

- Batch mode is switched on for SQLite so ALTERs become table rebuilds
- Custom column types render with an import of ``calendar_notifier.core.database.types``
- The alembic_version table is never part of autogenerate
- Autogenerate runs that detect no change write no revision file

The CLI (``alembic upgrade head``) reads the URL from ``DB_URL``. The
programmatic runner in ``calendar_notifier.infra.database.migrations`` sets
``sqlalchemy.url`` itself and passes flags via ``config.attributes``.
"""

from __future__ import annotations

import asyncio
from logging.config import fileConfig
from typing import TYPE_CHECKING, Any

from sqlalchemy import pool
from sqlalchemy.ext.asyncio import async_engine_from_config

from alembic import context

# Importing the model modules registers their tables on Base.metadata
from calendar_notifier.core.database import Base
from calendar_notifier.core.database.types import StringArray, UTCDateTime
from calendar_notifier.core.settings import get_db_settings
from calendar_notifier.features.events import models as _event_models  # noqa: F401
from calendar_notifier.features.notifications import models as _notification_models  # noqa: F401

if TYPE_CHECKING:
    from collections.abc import Iterable

    from alembic.autogenerate.api import AutogenContext
    from alembic.operations.ops import MigrationScript
    from alembic.runtime.migration import MigrationContext
    from sqlalchemy.engine import Connection

config = context.config

# The application owns logging when migrations run in-process
if config.config_file_name is not None and config.attributes.get("configure_logger", True):
    fileConfig(config.config_file_name, disable_existing_loggers=False)

target_metadata = Base.metadata

if not config.get_main_option("sqlalchemy.url"):
    # configparser interpolation treats "%" specially
    config.set_main_option("sqlalchemy.url", get_db_settings().url.replace("%", "%%"))

RENDER_AS_BATCH = config.attributes.get("render_as_batch", False)


def include_object(
    obj: Any,
    name: str | None,
    type_: str,
    reflected: bool,
    compare_to: Any,
) -> bool:
    """Keep alembic's own bookkeeping table out of autogenerate."""
    _ = obj, reflected, compare_to
    return not (type_ == "table" and name == "alembic_version")


def render_item(type_: str, obj: Any, autogen_context: AutogenContext) -> str | bool:
    """Render the package's column types with the import they need."""
    if type_ == "type" and isinstance(obj, (StringArray, UTCDateTime)):
        autogen_context.imports.add(
            f"from calendar_notifier.core.database.types import {type(obj).__name__}"
        )
        return f"{type(obj).__name__}()"
    return False


def process_revision_directives(
    context: MigrationContext,
    revision: str | tuple[str, ...] | Iterable[str | None] | Iterable[str],
    directives: list[MigrationScript],
) -> None:
    """Drop the revision when autogenerate found nothing to change."""
    _ = context, revision
    if getattr(config.cmd_opts, "autogenerate", False) and directives:
        script = directives[0]
        if script.upgrade_ops is not None and script.upgrade_ops.is_empty():
            directives[:] = []
            print("No changes detected, skipping migration creation")


def run_migrations_offline() -> None:
    """Emit SQL to stdout instead of executing it."""
    context.configure(
        url=config.get_main_option("sqlalchemy.url"),
        target_metadata=target_metadata,
        literal_binds=True,
        dialect_opts={"paramstyle": "named"},
        compare_type=True,
        include_object=include_object,
        render_item=render_item,
    )

    with context.begin_transaction():
        context.run_migrations()


def do_run_migrations(connection: Connection) -> None:
    context.configure(
        connection=connection,
        target_metadata=target_metadata,
        compare_type=True,
        include_object=include_object,
        render_item=render_item,
        render_as_batch=connection.dialect.name == "sqlite" or RENDER_AS_BATCH,
        process_revision_directives=process_revision_directives,
    )

    with context.begin_transaction():
        context.run_migrations()


async def run_async_migrations() -> None:
    connectable = async_engine_from_config(
        config.get_section(config.config_ini_section, {}),
        prefix="sqlalchemy.",
        poolclass=pool.NullPool,
    )

    async with connectable.connect() as connection:
        await connection.run_sync(do_run_migrations)

    await connectable.dispose()


def run_migrations_online() -> None:
    asyncio.run(run_async_migrations())


if context.is_offline_mode():
    run_migrations_offline()
else:
    run_migrations_online()
