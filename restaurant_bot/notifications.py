"""
Notification bus for live chat connections.

Keeps the registry of open WebSocket connections and pushes messages to
them. The bus lives on the application context, so both the WebSocket route
and the payment callback route reach the same registry without globals.

Delivery is best-effort: a failed send is logged and dropped, never raised
back into the code that triggered it (an order that was just paid stays
paid even if no browser hears about it).

Each registered connection carries:
- the session token it is currently bound to (updated on regenerate)
- an ``asyncio.Lock`` that serializes its turns, so a clear-session signal
  never lands in the middle of a half-finished turn
- an ``on_clear`` coroutine that resets the connection's session
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, List, Optional, Set

from .schemas.chat import BOT_MESSAGE, CLEAR_SESSION, REDIRECT, OutboundEvent

logger = logging.getLogger(__name__)

SendFunc = Callable[[Dict[str, Any]], Awaitable[None]]
ClearFunc = Callable[[str], Awaitable[None]]


@dataclass
class LiveConnection:
    connection_id: str
    send_json: SendFunc
    session_token: str
    on_clear: Optional[ClearFunc] = None
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)


class NotificationBus:
    """Registry of live connections plus send/broadcast helpers."""

    def __init__(self):
        self._connections: Dict[str, LiveConnection] = {}
        self._tasks: Set[asyncio.Task] = set()

    def register(
        self,
        connection_id: str,
        send_json: SendFunc,
        session_token: str,
        on_clear: Optional[ClearFunc] = None,
    ) -> LiveConnection:
        connection = LiveConnection(
            connection_id=connection_id,
            send_json=send_json,
            session_token=session_token,
            on_clear=on_clear,
        )
        self._connections[connection_id] = connection
        logger.debug("Registered connection %s (session %s)", connection_id, session_token)
        return connection

    def unregister(self, connection_id: str) -> None:
        if self._connections.pop(connection_id, None) is not None:
            logger.debug("Unregistered connection %s", connection_id)

    def bind(self, connection_id: str, session_token: str) -> None:
        """Point a connection at a new session token."""
        connection = self._connections.get(connection_id)
        if connection is not None:
            connection.session_token = session_token

    def get(self, connection_id: str) -> Optional[LiveConnection]:
        return self._connections.get(connection_id)

    def connections_for(self, session_token: str) -> List[LiveConnection]:
        return [
            connection
            for connection in self._connections.values()
            if connection.session_token == session_token
        ]

    async def send(self, connection_id: str, event: str, data: str) -> bool:
        """
        Deliver one event to one connection.

        Returns:
            True if the frame was written; False if the connection is gone or
            the write failed.
        """
        connection = self._connections.get(connection_id)
        if connection is None:
            logger.debug("Dropping %s for closed connection %s", event, connection_id)
            return False

        frame = OutboundEvent(event=event, data=data).model_dump()
        try:
            await connection.send_json(frame)
        except Exception:
            logger.warning("Failed to deliver %s to connection %s", event, connection_id, exc_info=True)
            return False
        return True

    async def send_message(self, connection_id: str, text: str) -> bool:
        return await self.send(connection_id, BOT_MESSAGE, text)

    async def send_redirect(self, connection_id: str, url: str) -> bool:
        return await self.send(connection_id, REDIRECT, url)

    def broadcast_clear(self, session_token: str) -> int:
        """
        Tell every connection bound to ``session_token`` to reset.

        Runs in the background; the caller does not wait for delivery.

        Returns:
            Number of connections the signal was scheduled for.
        """
        targets = self.connections_for(session_token)
        for connection in targets:
            task = asyncio.create_task(self._deliver_clear(connection, session_token))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        logger.info("Clear-session for %s scheduled to %d connection(s)", session_token, len(targets))
        return len(targets)

    async def _deliver_clear(self, connection: LiveConnection, session_token: str) -> None:
        await self.send(connection.connection_id, CLEAR_SESSION, session_token)
        if connection.on_clear is None:
            return
        try:
            await connection.on_clear(session_token)
        except Exception:
            logger.exception("Connection %s failed to clear session %s", connection.connection_id, session_token)

    async def drain(self) -> None:
        """Wait for scheduled broadcasts to finish (used at shutdown and in tests)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
