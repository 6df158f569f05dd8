"""
Real-time notification channel
Pushes swap events to every live WebSocket session of a user.
Delivery is best-effort: no queuing, no retries, failures are only logged.
"""

import logging
from collections import defaultdict
from threading import Lock
from typing import Any, Callable

from fastapi import BackgroundTasks, WebSocket

logger = logging.getLogger(__name__)

# Event names pushed to clients
SWAP_REQUEST_RECEIVED = "swap-request-received"
SWAP_REQUEST_ACCEPTED = "swap-request-accepted"
SWAP_REQUEST_REJECTED = "swap-request-rejected"

Dispatcher = Callable[[str, str, dict], None]


class ConnectionManager:
    """Process-wide registry of user id -> connected WebSocket sessions"""

    def __init__(self):
        self._connections: dict[str, list[WebSocket]] = defaultdict(list)
        self._lock = Lock()

    async def connect(self, user_id: str, websocket: WebSocket) -> None:
        await websocket.accept()
        with self._lock:
            self._connections[user_id].append(websocket)
        logger.info(f"🔌 User {user_id} connected ({self.connection_count(user_id)} session(s))")

    def disconnect(self, user_id: str, websocket: WebSocket) -> None:
        with self._lock:
            sockets = self._connections.get(user_id)
            if not sockets:
                return
            if websocket in sockets:
                sockets.remove(websocket)
            # Remove user entry if no more sockets
            if not sockets:
                del self._connections[user_id]
        logger.info(f"🔌 User {user_id} disconnected")

    def connection_count(self, user_id: str) -> int:
        with self._lock:
            return len(self._connections.get(user_id, []))

    async def notify_user(self, user_id: str, event: str, data: dict[str, Any]) -> int:
        """
        Send an event to all sessions of a user

        Returns:
            Number of sessions the event was delivered to
        """
        with self._lock:
            sockets = list(self._connections.get(user_id, []))

        if not sockets:
            logger.debug(f"ℹ️ No live sessions for user {user_id}, dropping {event}")
            return 0

        delivered = 0
        for websocket in sockets:
            try:
                await websocket.send_json({"event": event, "data": data})
                delivered += 1
            except Exception as e:
                logger.warning(f"⚠️ Failed to send {event} to user {user_id}: {e}")
                self.disconnect(user_id, websocket)

        logger.info(f"📨 Sent {event} to user {user_id} ({delivered}/{len(sockets)} session(s))")
        return delivered


manager = ConnectionManager()


def background_dispatcher(
    background_tasks: BackgroundTasks, connections: ConnectionManager = manager
) -> Dispatcher:
    """Dispatcher that defers delivery until after the HTTP response is sent"""

    def dispatch(user_id: str, event: str, data: dict) -> None:
        background_tasks.add_task(connections.notify_user, user_id, event, data)

    return dispatch
