from __future__ import annotations

import logging
from collections import defaultdict
from typing import Any, Dict, Optional, Set

from fastapi import WebSocket

logger = logging.getLogger(__name__)


class LiveHub:
    """
    In-process fan-out of "something changed" messages to connected websocket clients.

    Delivery is fire-and-forget: no acknowledgement, no ordering relative to the
    HTTP response of the request that triggered it. publish() never raises.
    """

    def __init__(self) -> None:
        self._connections: Set[WebSocket] = set()
        self._rooms: Dict[str, Set[WebSocket]] = defaultdict(set)

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def connect(self, ws: WebSocket) -> None:
        await ws.accept()
        self._connections.add(ws)
        logger.info("[live] client connected (total=%d)", len(self._connections))

    def disconnect(self, ws: WebSocket) -> None:
        self._connections.discard(ws)
        for members in self._rooms.values():
            members.discard(ws)
        logger.info("[live] client disconnected (total=%d)", len(self._connections))

    def join(self, ws: WebSocket, room: str) -> None:
        self._rooms[room].add(ws)

    def leave(self, ws: WebSocket, room: str) -> None:
        self._rooms[room].discard(ws)

    async def publish(self, channel: str, payload: Any, room: Optional[str] = None) -> int:
        targets = set(self._rooms.get(room, ())) if room else set(self._connections)
        message = {"channel": channel, "payload": payload}

        delivered = 0
        dead = []
        for ws in targets:
            try:
                await ws.send_json(message)
                delivered += 1
            except Exception:
                logger.warning("[live] dropping connection after failed send on %s", channel, exc_info=True)
                dead.append(ws)

        for ws in dead:
            self.disconnect(ws)

        return delivered


hub = LiveHub()


async def broadcast(channel: str, payload: Any, room: Optional[str] = None) -> None:
    try:
        await hub.publish(channel, payload, room=room)
    except Exception:
        logger.exception("[live] broadcast failed channel=%s", channel)
