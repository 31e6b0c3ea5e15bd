"""WebSocket registry pushing automation updates to subscribed clients."""

import json
import logging
from typing import Any, Dict, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class AutomationBroadcaster:
    """
    Tracks connected clients and the automation each one follows.

    Delivery is best effort: there is no replay, and a client whose send
    fails is dropped.
    """

    def __init__(self):
        self._subscriptions: Dict[WebSocket, Optional[str]] = {}

    @property
    def connection_count(self) -> int:
        return len(self._subscriptions)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        self._subscriptions[websocket] = None
        logger.info(f"WebSocket client connected ({self.connection_count} open)")

    def disconnect(self, websocket: WebSocket):
        if websocket in self._subscriptions:
            del self._subscriptions[websocket]
            logger.info(f"WebSocket client disconnected ({self.connection_count} open)")

    def subscribe(self, websocket: WebSocket, automation_id: str):
        self._subscriptions[websocket] = automation_id

    async def handle_message(self, websocket: WebSocket, raw: str):
        """Process one client frame."""
        try:
            message = json.loads(raw)
            message_type = message["type"]
        except (ValueError, TypeError, KeyError):
            await websocket.send_json({"error": "Invalid message format"})
            return

        if message_type == "subscribe_to_automation" and message.get("automationId"):
            automation_id = str(message["automationId"])
            self.subscribe(websocket, automation_id)
            logger.debug(f"WebSocket client subscribed to {automation_id}")
            await websocket.send_json({"type": "subscribed", "automationId": automation_id})
        else:
            await websocket.send_json({"error": "Unknown message type"})

    async def broadcast_automation_update(self, automation_id: str, update: Dict[str, Any]) -> int:
        """
        Send an update to every client subscribed to the automation.

        Returns:
            Number of clients reached
        """
        message = {"type": "automation_update", "automationId": automation_id, **update}
        delivered = 0
        dead = []

        for websocket, subscribed_id in list(self._subscriptions.items()):
            if subscribed_id != automation_id:
                continue
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                logger.debug(f"Dropping WebSocket client: {e}")
                dead.append(websocket)

        for websocket in dead:
            self._subscriptions.pop(websocket, None)

        return delivered


_broadcaster = AutomationBroadcaster()


def get_broadcaster() -> AutomationBroadcaster:
    """Get global broadcaster instance."""
    return _broadcaster
