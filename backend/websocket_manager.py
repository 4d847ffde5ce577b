"""
Mind-map change feed over WebSockets.

Clients receive `mindmap_updated` and `mindmap_closed` events and fetch the
new state over the REST API. A client that sends `subscribe <id>` only hears
about the mind maps it subscribed to; a client with no subscriptions hears
about all of them.
"""
from enum import Enum
from typing import Optional
import asyncio
import logging

from fastapi import WebSocket
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    MINDMAP_UPDATED = "mindmap_updated"
    MINDMAP_CLOSED = "mindmap_closed"
    PONG = "pong"


class MindMapEvent(BaseModel):
    """One message on the change feed."""
    type: EventType
    mindmap_id: Optional[str] = None


class WebSocketManager:
    """Tracks connected clients and the mind maps each one follows."""

    def __init__(self):
        # websocket -> subscribed mind map ids (empty = everything)
        self._subscriptions: dict[WebSocket, set[str]] = {}
        self._lock = asyncio.Lock()

    @property
    def connection_count(self) -> int:
        return len(self._subscriptions)

    async def connect(self, websocket: WebSocket):
        await websocket.accept()
        async with self._lock:
            self._subscriptions[websocket] = set()
        logger.info("WebSocket connected (%d open)", self.connection_count)

    async def disconnect(self, websocket: WebSocket):
        async with self._lock:
            self._subscriptions.pop(websocket, None)
        logger.info("WebSocket disconnected (%d open)", self.connection_count)

    async def handle_message(self, websocket: WebSocket, text: str):
        """
        Handle one client message.

        Supported commands:
        - `ping` replies with a pong event
        - `subscribe <id>` / `unsubscribe <id>` narrow or widen the feed
        """
        command, _, argument = text.strip().partition(" ")
        argument = argument.strip()

        if command == "ping":
            await self._send(websocket, MindMapEvent(type=EventType.PONG))
        elif command in ("subscribe", "unsubscribe") and argument:
            async with self._lock:
                subscribed = self._subscriptions.get(websocket)
                if subscribed is None:
                    return
                if command == "subscribe":
                    subscribed.add(argument)
                else:
                    subscribed.discard(argument)
        else:
            logger.debug("Ignoring WebSocket message %r", text)

    def _wants(self, websocket: WebSocket, mindmap_id: Optional[str]) -> bool:
        subscribed = self._subscriptions.get(websocket)
        return not subscribed or mindmap_id in subscribed

    async def publish(self, event: MindMapEvent):
        """Send an event to every interested client, dropping clients that fail."""
        async with self._lock:
            targets = [ws for ws in self._subscriptions if self._wants(ws, event.mindmap_id)]
        if not targets:
            return

        results = await asyncio.gather(
            *(self._send(ws, event) for ws in targets), return_exceptions=True
        )
        dead = [ws for ws, result in zip(targets, results) if isinstance(result, Exception)]
        if dead:
            async with self._lock:
                for websocket in dead:
                    self._subscriptions.pop(websocket, None)
            logger.debug("Dropped %d unreachable WebSocket clients", len(dead))

    async def _send(self, websocket: WebSocket, event: MindMapEvent):
        await websocket.send_text(event.model_dump_json(exclude_none=True))

    async def notify_mindmap_updated(self, mindmap_id: str):
        await self.publish(MindMapEvent(type=EventType.MINDMAP_UPDATED, mindmap_id=mindmap_id))

    async def notify_mindmap_closed(self, mindmap_id: str):
        await self.publish(MindMapEvent(type=EventType.MINDMAP_CLOSED, mindmap_id=mindmap_id))


ws_manager = WebSocketManager()
