"""Database session management for the async SQLAlchemy engine."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from typing import TYPE_CHECKING, Any

from opentelemetry import trace
from sqlalchemy import event, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from calendar_notifier.core.database import Base
from calendar_notifier.core.settings import get_app_settings, get_db_settings
from calendar_notifier.infra.metrics.prometheus import database_query_duration_seconds
from calendar_notifier.infra.metrics.tracking import track_slow_query

if TYPE_CHECKING:
    from collections.abc import AsyncGenerator

logger = logging.getLogger(__name__)

db_settings = get_db_settings()
app_settings = get_app_settings()

_SQL_OPERATIONS = ("SELECT", "INSERT", "UPDATE", "DELETE", "BEGIN", "COMMIT", "ROLLBACK")


def _engine_kwargs() -> dict[str, Any]:
    kwargs: dict[str, Any] = {"echo": db_settings.echo or app_settings.debug}
    # SQLite pools (StaticPool / NullPool) reject sizing arguments
    if not db_settings.is_sqlite:
        kwargs.update(
            pool_size=db_settings.pool_size,
            max_overflow=db_settings.max_overflow,
            pool_pre_ping=db_settings.pool_pre_ping,
        )
    return kwargs


engine: AsyncEngine = create_async_engine(db_settings.url, **_engine_kwargs())

AsyncSessionLocal = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autoflush=False,
)


def instrument_engine(target: AsyncEngine) -> None:
    """Attach query-duration metrics to an engine."""

    @event.listens_for(target.sync_engine, "before_cursor_execute")
    def _before_cursor_execute(
        conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: Any
    ) -> None:
        context._query_start_time = time.perf_counter()

    @event.listens_for(target.sync_engine, "after_cursor_execute")
    def _after_cursor_execute(
        conn: Any, cursor: Any, statement: str, parameters: Any, context: Any, executemany: Any
    ) -> None:
        duration = time.perf_counter() - context._query_start_time

        operation = "UNKNOWN"
        statement_upper = (statement or "").lstrip().upper()
        for candidate in _SQL_OPERATIONS:
            if statement_upper.startswith(candidate):
                operation = candidate
                break

        span = trace.get_current_span()
        if span and span.get_span_context().is_valid:
            trace_id = format(span.get_span_context().trace_id, "032x")
            database_query_duration_seconds.labels(operation=operation).observe(
                duration, exemplar={"trace_id": trace_id}
            )
        else:
            database_query_duration_seconds.labels(operation=operation).observe(duration)

        if duration > 1.0:
            track_slow_query(operation)


instrument_engine(engine)


@asynccontextmanager
async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """Get async database session.

    Yields:
        Database session that is automatically closed.

    Example:
        async with get_async_session() as session:
            result = await session.execute(select(Notification))
    """
    async with AsyncSessionLocal() as session:
        yield session


async def init_database() -> None:
    """Verify connectivity and create missing tables when configured to.

    Raises:
        Exception: Driver errors are logged and re-raised so startup fails loudly.
    """
    try:
        async with engine.begin() as conn:
            await conn.execute(text("SELECT 1"))
            if db_settings.create_tables:
                await conn.run_sync(Base.metadata.create_all)
    except Exception as e:
        logger.error(
            "Failed to connect to database",
            extra={"url": engine.url.render_as_string(hide_password=True), "error": str(e)},
        )
        raise

    logger.info(
        "Database connection established",
        extra={
            "url": engine.url.render_as_string(hide_password=True),
            "create_tables": db_settings.create_tables,
        },
    )


async def check_database() -> bool:
    """Return True if a trivial query succeeds."""
    try:
        async with engine.connect() as conn:
            await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.warning("Database ping failed", extra={"error": str(e)})
        return False
    return True


async def close_database() -> None:
    """Dispose of the engine's connection pool. Called during shutdown."""
    logger.info("Closing database connection")
    await engine.dispose()
