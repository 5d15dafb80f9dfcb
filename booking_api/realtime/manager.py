# booking_api/realtime/manager.py
import asyncio
import logging
from collections import defaultdict
from typing import Any, Dict, Iterable, Optional, Set

from fastapi import WebSocket
from fastapi.requests import HTTPConnection

logger = logging.getLogger(__name__)

class ConnectionManager:
    """
    Tracks open notification sockets by room.

    One instance is created with the application and reached through
    ``app.state.connections``; nothing imports it as a module global.
    A socket whose send fails is dropped from every room it joined.
    """

    def __init__(self):
        self._rooms: Dict[str, Set[WebSocket]] = defaultdict(set)
        self._memberships: Dict[WebSocket, Set[str]] = {}
        # Created on first use so it belongs to the serving event loop
        self._lock: Optional[asyncio.Lock] = None

    @property
    def _guard(self) -> asyncio.Lock:
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    async def connect(self, websocket: WebSocket, rooms: Iterable[str]):
        await websocket.accept()
        async with self._guard:
            joined = set(rooms)
            self._memberships[websocket] = joined
            for room in joined:
                self._rooms[room].add(websocket)
        logger.info(f"Realtime client joined {sorted(joined)}")

    async def disconnect(self, websocket: WebSocket):
        async with self._guard:
            for room in self._memberships.pop(websocket, set()):
                members = self._rooms.get(room)
                if members is None:
                    continue
                members.discard(websocket)
                if not members:
                    del self._rooms[room]

    def room_size(self, room: str) -> int:
        return len(self._rooms.get(room, ()))

    @property
    def active_connections(self) -> int:
        return len(self._memberships)

    async def send_to_room(self, room: str, message: Dict[str, Any]) -> int:
        """Send a JSON message to everyone in a room; returns how many received it"""
        async with self._guard:
            targets = list(self._rooms.get(room, ()))
        return await self._send_all(targets, message)

    async def broadcast(self, message: Dict[str, Any]) -> int:
        async with self._guard:
            targets = list(self._memberships)
        return await self._send_all(targets, message)

    async def _send_all(self, targets, message: Dict[str, Any]) -> int:
        delivered = 0
        for websocket in targets:
            try:
                await websocket.send_json(message)
                delivered += 1
            except Exception as e:
                logger.warning(f"Dropping dead realtime connection: {e}")
                await self.disconnect(websocket)
        return delivered

def get_connection_manager(connection: HTTPConnection) -> ConnectionManager:
    """Works for both HTTP requests and websockets"""
    return connection.app.state.connections
