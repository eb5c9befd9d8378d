"""Tests for the realtime websocket endpoint."""

from __future__ import annotations

from fastapi.testclient import TestClient
import pytest
from starlette.websockets import WebSocketDisconnect

from calendar_notifier.app.main import create_app
from calendar_notifier.infra.realtime import manager as manager_module
from calendar_notifier.infra.realtime.manager import ConnectionManager


@pytest.fixture
def connection_manager(monkeypatch: pytest.MonkeyPatch) -> ConnectionManager:
    manager = ConnectionManager(max_connections=2)
    monkeypatch.setattr(manager_module, "_manager", manager)
    return manager


@pytest.fixture
def ws_client() -> TestClient:
    return TestClient(create_app())


@pytest.mark.integration
class TestWebSocket:
    def test_connect_ping_and_errors(
        self, ws_client: TestClient, connection_manager: ConnectionManager
    ) -> None:
        with ws_client.websocket_connect("/ws?user_id=user-1") as ws:
            connected = ws.receive_json()
            assert connected["type"] == "connected"
            assert connection_manager.user_connection_count("user-1") == 1

            ws.send_json({"type": "ping"})
            assert ws.receive_json() == {"type": "pong"}

            ws.send_text("not json")
            assert ws.receive_json()["code"] == "invalid_json"

            ws.send_json({"type": "subscribe"})
            assert ws.receive_json()["code"] == "unknown_type"

    def test_connection_limit_closes_with_try_again_later(
        self, ws_client: TestClient, connection_manager: ConnectionManager
    ) -> None:
        with ws_client.websocket_connect("/ws?user_id=user-1") as first:
            first.receive_json()
            with ws_client.websocket_connect("/ws?user_id=user-2") as second:
                second.receive_json()
                with pytest.raises(WebSocketDisconnect) as exc_info:
                    with ws_client.websocket_connect("/ws?user_id=user-3"):
                        pass

        assert exc_info.value.code == 1013

    def test_user_id_is_required(self, ws_client: TestClient, connection_manager) -> None:
        with pytest.raises(WebSocketDisconnect):
            with ws_client.websocket_connect("/ws"):
                pass
