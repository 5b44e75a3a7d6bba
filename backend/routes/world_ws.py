from __future__ import annotations

import logging

from fastapi import APIRouter, WebSocket
from starlette.websockets import WebSocketState

from services.fanout import FanoutRouter

router = APIRouter(tags=["world"])
logger = logging.getLogger(__name__)

# normal closure, going away, no status received
CLEAN_CLOSE_CODES = frozenset({1000, 1001, 1005})


@router.websocket("/")
@router.websocket("/ws")
async def ws_world(websocket: WebSocket) -> None:
    """
    One player's socket. Inbound frames are JSON objects with a `type` of
    "join" or "update"; outbound frames are "init", "player_joined",
    "player_update" and "player_left".
    """
    fanout: FanoutRouter = websocket.app.state.fanout
    try:
        await websocket.accept()
    except Exception as e:
        logger.warning("[world_ws] accept() failed: %s", e)
        return
    logger.info("[world_ws] New client connected: %s", websocket.client)
    connection = fanout.open_connection(websocket)
    error: Exception | None = None
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                code = message.get("code", 1000)
                server_closed = websocket.application_state == WebSocketState.DISCONNECTED
                if code not in CLEAN_CLOSE_CODES and not server_closed:
                    error = ConnectionError(f"connection closed abnormally (code {code})")
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes")
            if raw is None:
                continue
            await fanout.handle_message(connection, raw)
    except Exception as e:
        error = e
    finally:
        await fanout.disconnect(connection, error=error)
