"""In-process websocket connection manager.

Tracks live connections per user so notification payloads can be pushed to
every session a user has open. Delivery is local to this process; a
connection that fails a send is dropped.
"""

from __future__ import annotations

import contextlib
import logging
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any
from uuid import uuid4

from calendar_notifier.infra.metrics.prometheus import websocket_connections_active

if TYPE_CHECKING:
    from fastapi import WebSocket

logger = logging.getLogger(__name__)


@dataclass
class ConnectionInfo:
    """Metadata about a websocket connection."""

    connection_id: str
    websocket: WebSocket
    user_id: str
    connected_at: float = field(default_factory=time.time)
    last_seen: float = field(default_factory=time.time)


class ConnectionManager:
    """Manages websocket connections keyed by user.

    Example:
        manager = get_connection_manager()
        connection_id = await manager.connect(websocket, user_id="user-1")
        try:
            async for message in websocket.iter_text():
                ...
        finally:
            await manager.disconnect(connection_id)

        delivered = await manager.send_to_user("user-1", {"type": "notification"})
    """

    def __init__(self, max_connections: int = 10_000) -> None:
        self._max_connections = max_connections
        self._connections: dict[str, ConnectionInfo] = {}
        self._user_connections: dict[str, set[str]] = defaultdict(set)

    async def connect(self, websocket: WebSocket, user_id: str) -> str:
        """Accept a websocket and register it for ``user_id``.

        Raises:
            ConnectionRefusedError: If the connection limit is reached.
        """
        if len(self._connections) >= self._max_connections:
            logger.warning(
                "Connection refused: max connections reached",
                extra={"max": self._max_connections},
            )
            raise ConnectionRefusedError("Maximum connections reached")

        await websocket.accept()

        connection_id = str(uuid4())
        self._connections[connection_id] = ConnectionInfo(
            connection_id=connection_id,
            websocket=websocket,
            user_id=user_id,
        )
        self._user_connections[user_id].add(connection_id)
        self._update_connection_metrics()

        logger.info(
            "WebSocket connected",
            extra={
                "connection_id": connection_id,
                "user_id": user_id,
                "total_connections": len(self._connections),
            },
        )
        return connection_id

    async def disconnect(self, connection_id: str) -> None:
        conn_info = self._connections.pop(connection_id, None)
        if conn_info is None:
            return

        user_connections = self._user_connections.get(conn_info.user_id)
        if user_connections is not None:
            user_connections.discard(connection_id)
            if not user_connections:
                del self._user_connections[conn_info.user_id]

        # The socket may already be closed by the peer
        with contextlib.suppress(RuntimeError):
            await conn_info.websocket.close()

        self._update_connection_metrics()
        logger.info(
            "WebSocket disconnected",
            extra={
                "connection_id": connection_id,
                "user_id": conn_info.user_id,
                "duration_seconds": time.time() - conn_info.connected_at,
                "total_connections": len(self._connections),
            },
        )

    async def send_to_connection(self, connection_id: str, message: dict[str, Any]) -> bool:
        conn_info = self._connections.get(connection_id)
        if conn_info is None:
            return False

        try:
            await conn_info.websocket.send_json(message)
        except Exception as e:
            logger.warning(
                "Failed to send message to connection",
                extra={"connection_id": connection_id, "error": str(e)},
            )
            await self.disconnect(connection_id)
            return False
        return True

    async def send_to_user(self, user_id: str, message: dict[str, Any]) -> int:
        """Send ``message`` to every connection of ``user_id``.

        Returns:
            Number of connections the message reached.
        """
        count = 0
        for connection_id in list(self._user_connections.get(user_id, ())):
            if await self.send_to_connection(connection_id, message):
                count += 1
        return count

    def touch(self, connection_id: str) -> None:
        conn_info = self._connections.get(connection_id)
        if conn_info is not None:
            conn_info.last_seen = time.time()

    def get_connection(self, connection_id: str) -> ConnectionInfo | None:
        return self._connections.get(connection_id)

    def user_connection_count(self, user_id: str) -> int:
        return len(self._user_connections.get(user_id, ()))

    @property
    def connection_count(self) -> int:
        """Total number of active connections."""
        return len(self._connections)

    async def close_all(self) -> None:
        for connection_id in list(self._connections):
            await self.disconnect(connection_id)

    def _update_connection_metrics(self) -> None:
        websocket_connections_active.set(len(self._connections))


# Global manager instance
_manager: ConnectionManager | None = None


def get_connection_manager() -> ConnectionManager:
    """Return the process-wide manager, creating it on first use."""
    global _manager
    if _manager is None:
        from calendar_notifier.core.settings import get_channel_settings

        _manager = ConnectionManager(get_channel_settings().realtime_max_connections)
    return _manager


async def start_connection_manager() -> ConnectionManager:
    manager = get_connection_manager()
    logger.info("Connection manager started in local-only mode")
    return manager


async def stop_connection_manager() -> None:
    """Close every connection and drop the global manager."""
    global _manager

    if _manager is not None:
        await _manager.close_all()
        _manager = None
        logger.info("Connection manager stopped")
