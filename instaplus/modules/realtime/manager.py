from typing import Any, Dict, Optional, Set
import logging

from fastapi import WebSocket, WebSocketDisconnect

from instaplus.modules.realtime.schemas import Envelope

logger = logging.getLogger(__name__)

class ConnectionManager:
    """Room membership and fan-out for realtime connections.

    Rooms are keyed by conversation id. A connection may sit in any number of
    rooms; membership is dropped when the connection goes away.
    """

    def __init__(self):
        self.rooms: Dict[str, Set[WebSocket]] = {}
        self.memberships: Dict[WebSocket, Set[str]] = {}

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self.memberships[websocket] = set()

    def disconnect(self, websocket: WebSocket) -> None:
        for room in self.memberships.pop(websocket, set()):
            members = self.rooms.get(room)
            if members is None:
                continue
            members.discard(websocket)
            if not members:
                self.rooms.pop(room, None)

    def join(self, websocket: WebSocket, room: str) -> None:
        self.rooms.setdefault(room, set()).add(websocket)
        self.memberships.setdefault(websocket, set()).add(room)

    def leave(self, websocket: WebSocket, room: str) -> None:
        members = self.rooms.get(room)
        if members is not None:
            members.discard(websocket)
            if not members:
                self.rooms.pop(room, None)
        self.memberships.get(websocket, set()).discard(room)

    def in_room(self, websocket: WebSocket, room: str) -> bool:
        return websocket in self.rooms.get(room, set())

    async def send(self, websocket: WebSocket, event: str, data: Dict[str, Any]) -> None:
        await websocket.send_json(Envelope(event=event, data=data).model_dump())

    async def broadcast(
        self,
        room: str,
        event: str,
        data: Dict[str, Any],
        exclude: Optional[WebSocket] = None,
    ) -> int:
        """Send to every member of the room except the publisher; returns the count reached"""
        delivered = 0
        for member in list(self.rooms.get(room, set())):
            if member is exclude:
                continue
            try:
                await self.send(member, event, data)
                delivered += 1
            except (RuntimeError, WebSocketDisconnect) as e:
                # Socket already closed; forget it
                logger.warning(f"Dropping dead connection from room {room}: {e}")
                self.disconnect(member)
        return delivered

# Global instance for app-wide usage
manager = ConnectionManager()
