"""WebSocket endpoint for live transaction and alert events."""

import structlog
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from src.realtime.hub import EventHub

logger = structlog.get_logger()
router = APIRouter(tags=["realtime"])


@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket) -> None:
    hub: EventHub = websocket.app.state.hub
    conn = await hub.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            await hub.handle_message(conn, raw)
    except WebSocketDisconnect as exc:
        logger.debug("ws_client_closed", client_id=conn.client_id, code=exc.code)
    finally:
        await hub.disconnect(conn)
