"""
Real-time fan-out over WebSockets.

Routers schedule ``broadcaster.broadcast`` as a background task once the write
is committed. Delivery is best effort: a client that fails to receive is
dropped, and nothing is retried or rolled back.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Set

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder


logger = logging.getLogger(__name__)


class EventBroadcaster:
    """Holds connected clients and pushes ``{"event", "data", "timestamp"}`` to each."""

    def __init__(self):
        self._clients: Set[WebSocket] = set()
        self._lock = asyncio.Lock()

    @property
    def client_count(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        async with self._lock:
            self._clients.add(websocket)
        logger.info("Event client connected (%d total)", self.client_count)

    async def disconnect(self, websocket: WebSocket) -> None:
        async with self._lock:
            self._clients.discard(websocket)
        logger.info("Event client disconnected (%d total)", self.client_count)

    async def broadcast(self, event: str, data: Any) -> int:
        """Send to every client; returns how many deliveries succeeded."""
        message = {
            "event": event,
            "data": jsonable_encoder(data),
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        async with self._lock:
            clients = list(self._clients)

        delivered = 0
        stale = []
        for websocket in clients:
            try:
                await websocket.send_json(message)
                delivered += 1
            except (WebSocketDisconnect, RuntimeError, ConnectionError) as exc:
                logger.warning("Dropping event client after failed send of %s: %s", event, exc)
                stale.append(websocket)

        if stale:
            async with self._lock:
                for websocket in stale:
                    self._clients.discard(websocket)

        logger.debug("Broadcast %s to %d/%d clients", event, delivered, len(clients))
        return delivered


broadcaster = EventBroadcaster()

router = APIRouter(tags=["events"])


@router.websocket("/ws/events")
async def events_stream(websocket: WebSocket):
    await broadcaster.connect(websocket)
    try:
        while True:
            # Clients may send pings; nothing else is expected inbound
            text = await websocket.receive_text()
            if text == "ping":
                await websocket.send_json({"event": "pong"})
    except WebSocketDisconnect:
        pass
    finally:
        await broadcaster.disconnect(websocket)
