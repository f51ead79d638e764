import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Set

from fastapi import WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

logger = logging.getLogger(__name__)


class ConnectionManager:
    """Named rooms of connected sockets.

    A socket joins its owner's personal room on connect and any number of
    post rooms on request. Emitting to a room only reaches its current
    members; nothing is queued for sockets that are not connected.
    """

    def __init__(self):
        self._rooms: Dict[str, Set[WebSocket]] = defaultdict(set)
        self._memberships: Dict[WebSocket, Set[str]] = defaultdict(set)

    @staticmethod
    def user_room(user_id: Any) -> str:
        return f"user_{user_id}"

    @staticmethod
    def post_room(post_id: Any) -> str:
        return f"post_{post_id}"

    async def connect(self, websocket: WebSocket, user_id: Any) -> None:
        await websocket.accept()
        self.join(websocket, self.user_room(user_id))

    def join(self, websocket: WebSocket, room: str) -> None:
        self._rooms[room].add(websocket)
        self._memberships[websocket].add(room)

    def leave(self, websocket: WebSocket, room: str) -> None:
        members = self._rooms.get(room)
        if members is not None:
            members.discard(websocket)
            if not members:
                del self._rooms[room]

        rooms = self._memberships.get(websocket)
        if rooms is not None:
            rooms.discard(room)

    def disconnect(self, websocket: WebSocket) -> None:
        for room in list(self._memberships.pop(websocket, ())):
            members = self._rooms.get(room)
            if members is not None:
                members.discard(websocket)
                if not members:
                    del self._rooms[room]

    def members(self, room: str) -> Set[WebSocket]:
        return set(self._rooms.get(room, ()))

    def rooms_of(self, websocket: WebSocket) -> Set[str]:
        return set(self._memberships.get(websocket, ()))

    async def emit(self, room: str, event: str, data: Any) -> int:
        """Send ``event`` to every member of ``room``; returns how many got it."""
        members = self.members(room)
        if not members:
            return 0

        message = {"event": event, "data": jsonable_encoder(data)}
        delivered = await asyncio.gather(*(self._send(ws, message) for ws in members))
        return sum(delivered)

    async def _send(self, websocket: WebSocket, message: Dict[str, Any]) -> bool:
        try:
            await websocket.send_json(message)
            return True
        except (WebSocketDisconnect, RuntimeError, OSError) as e:
            logger.warning("Dropping socket after failed send of %s: %s", message["event"], e)
            self.disconnect(websocket)
            return False
