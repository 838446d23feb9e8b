"""WebSocket endpoint connecting customers, agents and dashboards to the relay."""

import json
import logging
import uuid

from fastapi import WebSocket, WebSocketDisconnect

from livechat.dependencies import get_coordinator, get_hub
from livechat.models.events import ERROR

logger = logging.getLogger(__name__)


async def websocket_chat(websocket: WebSocket) -> None:
    """Handle one duplex chat connection.

    Protocol:
        Client sends JSON: {"event": "customer:join"|"agent:join"|"message:send",
                            "data": {...}}
        Server sends JSON: {"event": "chat:joined"|"chat:updated"|
                            "message:received"|"error", "data": {...}}

    Events from one connection are handled one at a time, in arrival order.
    """
    connection_id = str(uuid.uuid4())
    await websocket.accept()

    hub = get_hub()
    coordinator = get_coordinator()
    hub.register(connection_id, websocket)
    logger.info("Client connected: %s", connection_id)

    try:
        while True:
            ws_message = await websocket.receive()

            if ws_message.get("type") == "websocket.disconnect":
                break

            raw = ws_message.get("text")
            if not raw:
                await hub.send(connection_id, ERROR, {"reason": "Unsupported frame"})
                continue

            try:
                frame = json.loads(raw)
            except json.JSONDecodeError:
                await hub.send(connection_id, ERROR, {"reason": "Invalid JSON"})
                continue

            if not isinstance(frame, dict):
                await hub.send(connection_id, ERROR, {"reason": "Invalid frame"})
                continue

            await coordinator.handle_event(
                connection_id, frame.get("event"), frame.get("data", {})
            )

    except WebSocketDisconnect:
        pass
    except Exception:
        logger.exception("WebSocket error for connection %s", connection_id)
    finally:
        hub.unregister(connection_id)
        coordinator.disconnect(connection_id)
