import json
import logging
import uuid
from typing import Any

from fastapi import WebSocket, WebSocketDisconnect

from studyhub.config import settings
from studyhub.core import events
from studyhub.websocket.hub import RealtimeHub

logger = logging.getLogger(__name__)


async def realtime_ws_handler(websocket: WebSocket, hub: RealtimeHub) -> None:
    """Full lifecycle handler for the /ws endpoint.

    Frames from one socket are handled strictly one after another; frames
    from different sockets interleave only where a handler awaits.
    """
    await websocket.accept()
    connection_id = uuid.uuid4().hex
    hub.lifecycle.open(connection_id, websocket)

    try:
        await hub.manager.send_to(connection_id, {"type": events.CONNECTED, "socketId": connection_id})

        while True:
            raw = await websocket.receive_text()
            if len(raw.encode()) > settings.WS_MAX_FRAME_BYTES:
                await hub.manager.send_error(connection_id, "Frame too large")
                continue
            try:
                data: Any = json.loads(raw)
            except json.JSONDecodeError:
                logger.debug("Ignoring non-JSON frame from %s", connection_id)
                continue
            if not isinstance(data, dict):
                continue

            await hub.dispatch(connection_id, data)

    except WebSocketDisconnect:
        pass
    except Exception as exc:
        logger.exception("realtime_ws_handler: unexpected error on %s: %s", connection_id, exc)
    finally:
        await hub.lifecycle.close(connection_id)
