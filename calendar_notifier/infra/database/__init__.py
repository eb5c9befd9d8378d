"""Database infrastructure: async engine, session factory and lifecycle hooks.

Example:
    from calendar_notifier.infra.database import get_async_session

    async with get_async_session() as session:
        result = await session.execute(select(Notification))
"""

from calendar_notifier.infra.database.session import (
    AsyncSessionLocal,
    check_database,
    close_database,
    engine,
    get_async_session,
    init_database,
)

__all__ = [
    "AsyncSessionLocal",
    "check_database",
    "close_database",
    "engine",
    "get_async_session",
    "init_database",
]
