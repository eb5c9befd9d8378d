"""WebSocket router for realtime notification delivery.

Message protocol:
    Client -> Server:
    - {"type": "ping"}
    - {"type": "pong"}

    Server -> Client:
    - {"type": "connected", "connection_id": "..."}
    - {"type": "pong"}
    - {"type": "notification", "data": {...}}
    - {"type": "notification_response", "data": {...}}
    - {"type": "error", "code": "...", "message": "..."}
"""

from __future__ import annotations

import json
import logging
from typing import TYPE_CHECKING, Annotated

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status

from calendar_notifier.infra.realtime import get_connection_manager

if TYPE_CHECKING:
    from calendar_notifier.infra.realtime import ConnectionManager

logger = logging.getLogger(__name__)
router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    user_id: Annotated[str, Query(min_length=1, max_length=255, description="User identifier")],
) -> None:
    """Register the socket for ``user_id`` and keep it alive until the client leaves."""
    manager = get_connection_manager()
    connection_id: str | None = None

    try:
        connection_id = await manager.connect(websocket, user_id)
        await websocket.send_json({"type": "connected", "connection_id": connection_id})
        await _handle_messages(websocket, connection_id, manager)

    except ConnectionRefusedError as e:
        logger.warning("WebSocket connection refused", extra={"reason": str(e)})
        await websocket.close(code=status.WS_1013_TRY_AGAIN_LATER, reason=str(e))

    except WebSocketDisconnect:
        logger.debug("WebSocket client disconnected normally")

    finally:
        if connection_id is not None:
            await manager.disconnect(connection_id)


async def _handle_messages(
    websocket: WebSocket,
    connection_id: str,
    manager: ConnectionManager,
) -> None:
    async for raw_message in websocket.iter_text():
        try:
            message = json.loads(raw_message)
        except json.JSONDecodeError:
            await websocket.send_json(
                {"type": "error", "code": "invalid_json", "message": "Invalid JSON message"}
            )
            continue

        msg_type = message.get("type") if isinstance(message, dict) else None
        if msg_type == "ping":
            manager.touch(connection_id)
            await websocket.send_json({"type": "pong"})
        elif msg_type == "pong":
            manager.touch(connection_id)
        else:
            await websocket.send_json(
                {
                    "type": "error",
                    "code": "unknown_type",
                    "message": f"Unknown message type: {msg_type}",
                }
            )
