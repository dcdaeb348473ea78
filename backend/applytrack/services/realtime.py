"""
Process-local real-time channel registry.

Each user has a room: the set of live WebSocket connections opened with that
user's token. Events are pushed to every connection in the room; nothing is
queued or replayed, so a user with no open connection simply misses the event.

The registry is owned by the application (created in the lifespan, stored on
app.state) rather than living at module level, so a pub/sub backed
implementation with the same join/leave/publish surface can replace it.
"""
from __future__ import annotations

import asyncio
import logging
import threading
from typing import Any, Protocol

logger = logging.getLogger(__name__)

NOTIFICATION_EVENT = "notification"


class Connection(Protocol):
    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


class ConnectionRegistry:
    def __init__(self) -> None:
        self._rooms: dict[int, list[Connection]] = {}
        self._lock = threading.Lock()
        self._loop: asyncio.AbstractEventLoop | None = None

    # -------------------------
    # Lifecycle
    # -------------------------
    def bind(self, loop: asyncio.AbstractEventLoop) -> None:
        """Attach the event loop that owns the WebSocket connections."""
        self._loop = loop

    async def close(self) -> None:
        with self._lock:
            rooms = self._rooms
            self._rooms = {}
        for user_id, conns in rooms.items():
            for conn in conns:
                try:
                    await conn.close(code=1001)
                except Exception:  # noqa: BLE001 - connection may already be gone
                    logger.debug("Close failed for connection in room %s", user_id)
        self._loop = None

    # -------------------------
    # Rooms
    # -------------------------
    def join(self, user_id: int, connection: Connection) -> None:
        with self._lock:
            self._rooms.setdefault(user_id, []).append(connection)
            size = len(self._rooms[user_id])
        logger.info("Realtime join: user_id=%s connections=%s", user_id, size)

    def leave(self, user_id: int, connection: Connection) -> None:
        with self._lock:
            conns = self._rooms.get(user_id)
            if not conns:
                return
            try:
                conns.remove(connection)
            except ValueError:
                return
            if not conns:
                del self._rooms[user_id]
        logger.info("Realtime leave: user_id=%s", user_id)

    def room_size(self, user_id: int) -> int:
        with self._lock:
            return len(self._rooms.get(user_id, ()))

    def _snapshot(self, user_id: int) -> list[Connection]:
        with self._lock:
            return list(self._rooms.get(user_id, ()))

    # -------------------------
    # Delivery
    # -------------------------
    async def broadcast(self, user_id: int, data: dict, *, event: str = NOTIFICATION_EVENT) -> int:
        """
        Send one frame to every connection in the room. Returns how many
        connections accepted it. Connections that fail are dropped.
        """
        frame = {"event": event, "data": data}
        delivered = 0
        for conn in self._snapshot(user_id):
            try:
                await conn.send_json(frame)
                delivered += 1
            except Exception:  # noqa: BLE001 - any send failure means the socket is dead
                logger.warning("Realtime send failed; dropping connection: user_id=%s", user_id)
                self.leave(user_id, conn)
        return delivered

    def publish(self, user_id: int, data: dict, *, event: str = NOTIFICATION_EVENT) -> bool:
        """
        Fire-and-forget broadcast, safe to call from request worker threads.
        Returns False when the event was dropped without scheduling.
        """
        loop = self._loop
        if loop is None or loop.is_closed():
            logger.debug("Realtime registry not bound; dropping %s for user_id=%s", event, user_id)
            return False
        if not self.room_size(user_id):
            logger.debug("No live connections; dropping %s for user_id=%s", event, user_id)
            return False
        asyncio.run_coroutine_threadsafe(self.broadcast(user_id, data, event=event), loop)
        return True
