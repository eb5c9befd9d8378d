"""Fixtures for driving the HTTP application in-process.

The app is built with ``create_app()`` and its dependencies are overridden
so requests use the test database, the test engine and a stubbed database
ping. ``ASGITransport`` does not run the lifespan, so no scheduler starts.
"""

from __future__ import annotations

from collections.abc import AsyncGenerator

from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
import pytest

from calendar_notifier.app.main import create_app
from calendar_notifier.core.dependencies.database import get_db_session
from calendar_notifier.features.health.router import get_database_ping
from calendar_notifier.features.notifications.engine import get_notification_engine


class PingStub:
    """Database ping whose answer a test can flip."""

    def __init__(self) -> None:
        self.healthy = True

    async def __call__(self) -> bool:
        return self.healthy


@pytest.fixture
def database_ping() -> PingStub:
    return PingStub()


@pytest.fixture
def app(engine, session_factory, database_ping: PingStub) -> FastAPI:
    application = create_app()

    async def override_session() -> AsyncGenerator:
        async with session_factory() as session:
            yield session

    application.dependency_overrides[get_db_session] = override_session
    application.dependency_overrides[get_notification_engine] = lambda: engine
    application.dependency_overrides[get_database_ping] = lambda: database_ping
    return application


@pytest.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac


@pytest.fixture
def user_headers() -> dict[str, str]:
    return {"X-User-ID": "user-1"}
