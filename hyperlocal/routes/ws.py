# hyperlocal/routes/ws.py
import logging
from typing import Any, List

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)

ws_router = APIRouter(tags=["Realtime"])


class ConnectionManager:
    """Broadcast channel over every connected WebSocket client."""

    def __init__(self):
        self.active_connections: List[WebSocket] = []

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.active_connections.append(websocket)
        logger.info("Client connected (%d open)", len(self.active_connections))

    def disconnect(self, websocket: WebSocket) -> None:
        if websocket in self.active_connections:
            self.active_connections.remove(websocket)
            logger.info("Client disconnected (%d open)", len(self.active_connections))

    async def emit(self, event: str, payload: Any) -> int:
        """Send ``{event, data}`` to all clients; returns how many got it."""
        message = {"event": event, "data": jsonable_encoder(payload)}
        delivered = 0
        for websocket in list(self.active_connections):
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as exc:
                logger.warning("Dropping websocket after failed send: %s", exc)
                self.disconnect(websocket)
        return delivered


@ws_router.websocket("/bookings")
async def booking_updates(websocket: WebSocket):
    manager: ConnectionManager = websocket.app.state.realtime
    await manager.connect(websocket)
    try:
        while True:
            # Clients only listen; inbound frames keep the socket alive.
            await websocket.receive_text()
    except WebSocketDisconnect:
        manager.disconnect(websocket)
