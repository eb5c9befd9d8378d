"""Tests for the websocket connection manager."""

from __future__ import annotations

import pytest

from calendar_notifier.infra.realtime import ConnectionManager
from tests.utils import FakeWebSocket


@pytest.mark.unit
class TestConnectionManager:
    async def test_send_to_every_connection_of_a_user(self) -> None:
        manager = ConnectionManager()
        phone, laptop, other = FakeWebSocket(), FakeWebSocket(), FakeWebSocket()
        await manager.connect(phone, "user-1")
        await manager.connect(laptop, "user-1")
        await manager.connect(other, "user-2")

        delivered = await manager.send_to_user("user-1", {"type": "notification"})

        assert delivered == 2
        assert phone.sent == laptop.sent == [{"type": "notification"}]
        assert other.sent == []
        assert manager.connection_count == 3

    async def test_user_without_connections(self) -> None:
        assert await ConnectionManager().send_to_user("user-1", {"type": "x"}) == 0

    async def test_failing_connection_is_dropped(self) -> None:
        manager = ConnectionManager()
        broken = FakeWebSocket(fail=True)
        await manager.connect(broken, "user-1")

        assert await manager.send_to_user("user-1", {"type": "x"}) == 0
        assert manager.user_connection_count("user-1") == 0
        assert broken.closed

    async def test_connection_limit(self) -> None:
        manager = ConnectionManager(max_connections=1)
        await manager.connect(FakeWebSocket(), "user-1")

        with pytest.raises(ConnectionRefusedError):
            await manager.connect(FakeWebSocket(), "user-2")

    async def test_disconnect_and_close_all(self) -> None:
        manager = ConnectionManager()
        connection_id = await manager.connect(FakeWebSocket(), "user-1")
        await manager.connect(FakeWebSocket(), "user-2")

        await manager.disconnect(connection_id)
        await manager.disconnect(connection_id)
        assert manager.connection_count == 1

        await manager.close_all()
        assert manager.connection_count == 0
