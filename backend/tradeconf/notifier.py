
import logging
from typing import List
from fastapi import WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


class BreakStream:
    """Fan-out of store events to connected websocket clients."""

    def __init__(self):
        self.clients: List[WebSocket] = []

    async def connect(self, ws: WebSocket):
        self.clients.append(ws)
        await ws.accept()
        logger.info("Websocket client connected (%d total)", len(self.clients))

    def disconnect(self, ws: WebSocket):
        if ws in self.clients:
            self.clients.remove(ws)
        logger.info("Websocket client disconnected (%d left)", len(self.clients))

    async def broadcast(self, event: dict):
        data = jsonable_encoder(event)
        for ws in list(self.clients):
            try:
                await ws.send_json(data)
            except (WebSocketDisconnect, RuntimeError, OSError) as e:
                logger.warning("Dropping websocket client: %s", e)
                self.disconnect(ws)
