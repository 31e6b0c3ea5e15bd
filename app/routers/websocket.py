"""WebSocket endpoint for live automation updates."""

import logging
from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from app.services.broadcaster import get_broadcaster

logger = logging.getLogger(__name__)
router = APIRouter()


@router.websocket("/ws")
async def automation_updates(websocket: WebSocket):
    """
    Clients subscribe with {"type": "subscribe_to_automation", "automationId": ...}
    and then receive automation_update frames for that id.
    """
    broadcaster = get_broadcaster()
    await broadcaster.connect(websocket)
    try:
        while True:
            raw = await websocket.receive_text()
            await broadcaster.handle_message(websocket, raw)
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.disconnect(websocket)
