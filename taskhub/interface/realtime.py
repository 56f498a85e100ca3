"""WebSocket endpoint for real-time events."""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from taskhub.core.config import Constants
from taskhub.core.errors import AuthError
from taskhub.services.connection_registry import ConnectionRegistry, close_transport


logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

# Sent once after a successful handshake; clients hydrate after seeing it
CONNECTED_EVENT = "connected"


@router.websocket("/ws")
async def realtime_endpoint(websocket: WebSocket) -> None:
    """Authenticate with a ``{"token": ...}`` first frame, then stream events.

    The socket is closed with code 4401 if the first frame is missing,
    malformed or carries a rejected token.
    """
    registry: ConnectionRegistry = websocket.app.state.registry
    await websocket.accept()

    try:
        hello = await asyncio.wait_for(websocket.receive_json(), timeout=Constants.WS_AUTH_TIMEOUT_SECONDS)
    except WebSocketDisconnect:
        return
    except (TimeoutError, ValueError) as e:
        logger.warning("WebSocket handshake failed", extra={"error": type(e).__name__})
        await close_transport(websocket, Constants.WS_CLOSE_AUTH_FAILED)
        return

    token = hello.get("token") if isinstance(hello, dict) else None
    try:
        connection_id = await registry.register(token, websocket)
    except AuthError:
        return

    try:
        connection = registry.get(connection_id)
        if connection is not None:
            connection.enqueue({"event": CONNECTED_EVENT, "data": {"connection_id": connection_id}})
        # Inbound frames carry nothing; reading them is how a disconnect is noticed
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug("WebSocket disconnected", extra={"connection_id": connection_id})
    except RuntimeError:
        # Reading after the server dropped the connection
        logger.debug("WebSocket closed by server", extra={"connection_id": connection_id})
    finally:
        registry.unregister(connection_id)
