"""Pytest configuration and shared fixtures.

Organization:
    - Environment: settings that keep tests off real infrastructure
    - Clock: a ManualClock every engine component reads
    - Database: a temp-file aiosqlite engine and session factory
    - Channels: fake push/email/realtime senders (see tests/utils.py)
    - Engine: a NotificationEngine wired to all of the above
"""

from __future__ import annotations

import os
from collections.abc import AsyncGenerator
from datetime import UTC, datetime
from typing import TYPE_CHECKING

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# Ensure tests run without external infrastructure
os.environ.setdefault("DB_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DB_CREATE_TABLES", "false")
os.environ.setdefault("NOTIFY_SCHEDULER_ENABLED", "false")
os.environ.setdefault("LOG_JSON_LOGS", "false")
os.environ.setdefault("CHANNEL_PUSH_PROVIDER", "console")
os.environ.setdefault("CHANNEL_EMAIL_PROVIDER", "console")

from calendar_notifier.core.clock import ManualClock  # noqa: E402
from calendar_notifier.core.database import Base  # noqa: E402
from calendar_notifier.core.settings import NotificationSettings, clear_all_caches  # noqa: E402
from calendar_notifier.features.events import models as _event_models  # noqa: E402, F401
from calendar_notifier.features.notifications import models as _notification_models  # noqa: E402, F401
from calendar_notifier.features.notifications.engine import NotificationEngine  # noqa: E402
from tests.utils import FakeEmailSender, FakePushSender, FakeRealtimeSender  # noqa: E402

if TYPE_CHECKING:
    from pathlib import Path

    from sqlalchemy.ext.asyncio import AsyncEngine

# Monday 2026-03-02 09:00 UTC
START = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


@pytest.fixture(autouse=True)
def _reset_settings_cache():
    """Settings getters are lru-cached; environment changes must not leak between tests."""
    clear_all_caches()
    yield
    clear_all_caches()


# ============================================================================
# Clock
# ============================================================================


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock(START)


# ============================================================================
# Database Fixtures
# ============================================================================


@pytest.fixture
async def db_engine(tmp_path: Path) -> AsyncGenerator[AsyncEngine]:
    """Async engine on a fresh SQLite file with every table created.

    A file rather than ``:memory:`` so sessions opened by the periodic
    components each get their own connection to the same database.
    """
    engine = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'notifications.db'}",
        connect_args={"timeout": 30},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield engine
    finally:
        await engine.dispose()


@pytest.fixture
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    async with session_factory() as session:
        yield session


# ============================================================================
# Channel transports
# ============================================================================


@pytest.fixture
def push_sender() -> FakePushSender:
    return FakePushSender()


@pytest.fixture
def email_sender() -> FakeEmailSender:
    return FakeEmailSender()


@pytest.fixture
def realtime_sender() -> FakeRealtimeSender:
    return FakeRealtimeSender()


# ============================================================================
# Engine
# ============================================================================


@pytest.fixture
def notification_settings() -> NotificationSettings:
    return NotificationSettings(
        default_advance_offsets=[15, 60],
        default_max_retries=3,
        default_snooze_minutes=10,
        dispatch_concurrency=1,
        channel_timeout_seconds=0.5,
        retry_window_minutes=60,
        retention_days=30,
        event_scan_offsets=[15, 60, 1440],
        event_scan_window_seconds=30,
        dedup_ttl_minutes=60,
    )


@pytest.fixture
def engine(
    session_factory: async_sessionmaker[AsyncSession],
    notification_settings: NotificationSettings,
    push_sender: FakePushSender,
    email_sender: FakeEmailSender,
    realtime_sender: FakeRealtimeSender,
    clock: ManualClock,
) -> NotificationEngine:
    return NotificationEngine(
        session_factory,
        settings=notification_settings,
        push_sender=push_sender,
        email_sender=email_sender,
        realtime_sender=realtime_sender,
        clock=clock,
    )
