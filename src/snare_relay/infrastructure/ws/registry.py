"""Connection registry shared by all WebSocket handlers and the liveness monitor."""
from __future__ import annotations

import asyncio
import logging

from snare_relay.application.exceptions import ConnectionClosed, RecipientNotConnected
from snare_relay.domain.value_objects.ids import ConnectionId, UserId
from snare_relay.infrastructure.ws.connection import Connection

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """Live connections plus the user → connection directory.

    Every read/modify/write goes through a single ``asyncio.Lock``. A user
    maps to at most one connection: the most recent registration wins and
    the superseded connection stays open but is no longer addressable.
    """

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._live: dict[ConnectionId, Connection] = {}
        self._by_user: dict[UserId, Connection] = {}

    @property
    def connection_count(self) -> int:
        return len(self._live)

    @property
    def registered_count(self) -> int:
        return len(self._by_user)

    async def add(self, connection: Connection) -> None:
        async with self._lock:
            self._live[connection.id] = connection
        logger.debug("WS connected: %s (total=%d)", connection.id, len(self._live))

    async def register(self, user_id: UserId, connection: Connection) -> Connection | None:
        """Bind ``user_id`` to ``connection`` and return the connection it replaced."""
        async with self._lock:
            if connection.closed:
                raise ConnectionClosed(f"Cannot register closed connection {connection.id}")
            self._live[connection.id] = connection
            if (
                connection.user_id is not None
                and connection.user_id != user_id
                and self._by_user.get(connection.user_id) is connection
            ):
                del self._by_user[connection.user_id]
            previous = self._by_user.get(user_id)
            self._by_user[user_id] = connection
            connection.user_id = user_id

        if previous is connection:
            return None
        if previous is not None:
            logger.info(
                "User %s re-registered: %s supersedes %s",
                user_id,
                connection.id,
                previous.id,
            )
        return previous

    async def unregister(self, connection: Connection) -> bool:
        """Forget ``connection``. Returns False when it was already gone."""
        async with self._lock:
            removed = self._live.pop(connection.id, None) is not None
            if connection.user_id is not None and self._by_user.get(connection.user_id) is connection:
                del self._by_user[connection.user_id]
                removed = True
        if removed:
            logger.debug("WS unregistered: %s (user=%s)", connection.id, connection.user_id)
        return removed

    async def lookup(self, user_id: UserId) -> Connection:
        async with self._lock:
            connection = self._by_user.get(user_id)
        if connection is None or connection.closed:
            raise RecipientNotConnected(user_id)
        return connection

    async def snapshot(self) -> list[Connection]:
        async with self._lock:
            return list(self._live.values())
