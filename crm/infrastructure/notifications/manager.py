"""Connection management helpers for notification websockets."""

from __future__ import annotations

import asyncio
import logging
import threading
from collections import defaultdict
from typing import Any, DefaultDict, Set

from fastapi import WebSocket

from crm.config import get_settings

logger = logging.getLogger(__name__)


class NotificationConnectionManager:
    """Manage active websocket connections grouped by user.

    The registry is shared between the event loop and the worker threads that
    run sync route handlers, so every read and mutation goes through a lock.
    """

    def __init__(self, send_timeout: float | None = None) -> None:
        self._connections: DefaultDict[int, Set[WebSocket]] = defaultdict(set)
        self._lock = threading.Lock()
        if send_timeout is None:
            send_timeout = get_settings().realtime_send_timeout_seconds
        self._send_timeout = send_timeout

    async def connect(self, user_id: int, websocket: WebSocket) -> None:
        """Accept the websocket connection and register it for ``user_id``."""

        await websocket.accept()
        self.register(user_id, websocket)

    def register(self, user_id: int, websocket: WebSocket) -> None:
        with self._lock:
            self._connections[user_id].add(websocket)
        logger.debug("Registered websocket for user %s", user_id)

    def disconnect(self, user_id: int, websocket: WebSocket) -> None:
        """Remove ``websocket`` from the pool for ``user_id``."""

        with self._lock:
            connections = self._connections.get(user_id)
            if connections is None:
                return
            connections.discard(websocket)
            if not connections:
                self._connections.pop(user_id, None)

    def connection_count(self, user_id: int) -> int:
        with self._lock:
            return len(self._connections.get(user_id, ()))

    def is_connected(self, user_id: int) -> bool:
        return self.connection_count(user_id) > 0

    async def send_to_user(self, user_id: int, message: dict[str, Any]) -> int:
        """Send ``message`` to every active connection for ``user_id``.

        Returns the number of connections that accepted the message. A
        connection that fails or exceeds the send timeout is dropped.
        """

        with self._lock:
            connections = list(self._connections.get(user_id, ()))

        reached = 0
        for connection in connections:
            try:
                await asyncio.wait_for(
                    connection.send_json(message), timeout=self._send_timeout
                )
            except asyncio.TimeoutError:
                logger.warning(
                    "Websocket send to user %s timed out after %.1fs; dropping connection",
                    user_id,
                    self._send_timeout,
                )
                self.disconnect(user_id, connection)
            except Exception:
                logger.exception("Websocket send to user %s failed", user_id)
                self.disconnect(user_id, connection)
            else:
                reached += 1
        return reached


notification_manager = NotificationConnectionManager()


__all__ = ["NotificationConnectionManager", "notification_manager"]
