from typing import Any, Dict, Protocol

from fastapi import WebSocket, WebSocketDisconnect

from agent_relay.core.logging import logger
from agent_relay.schemas.events import RelayEvent


class RelayChannel(Protocol):
    async def send(self, event: RelayEvent) -> None: ...


class WebSocketChannel:
    """Send-only view of one client socket."""

    def __init__(self, websocket: WebSocket) -> None:
        self.websocket = websocket
        self.closed = False

    async def send(self, event: RelayEvent) -> None:
        if self.closed:
            return
        try:
            await self.websocket.send_json(event.to_message())
        except (RuntimeError, WebSocketDisconnect) as exc:
            self.closed = True
            logger.warning("dropping %s event, websocket closed: %s", event.type, exc)


class WebSocketManager:
    def __init__(self) -> None:
        self.connections: set[WebSocket] = set()

    async def connect(self, websocket: WebSocket) -> WebSocketChannel:
        await websocket.accept()
        self.connections.add(websocket)
        return WebSocketChannel(websocket)

    def disconnect(self, websocket: WebSocket) -> None:
        self.connections.discard(websocket)

    async def broadcast(self, payload: Dict[str, Any]) -> None:
        dead: list[WebSocket] = []
        for conn in self.connections:
            try:
                await conn.send_json(payload)
            except RuntimeError:
                dead.append(conn)
        for conn in dead:
            self.connections.discard(conn)


manager = WebSocketManager()
