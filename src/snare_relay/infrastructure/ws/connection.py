"""A single accepted WebSocket session."""
from __future__ import annotations

import asyncio
import logging
import uuid
from datetime import datetime

from snare_relay.application.dto.principal import Principal
from snare_relay.application.exceptions import ConnectionClosed
from snare_relay.application.ports.transport import Transport
from snare_relay.domain.value_objects.enums import CloseCode
from snare_relay.domain.value_objects.ids import ConnectionId, UserId

logger = logging.getLogger(__name__)


class Connection:
    """Transport session with its own bounded outbound queue.

    Frames are written by a dedicated writer task, so a slow peer only ever
    fills its own queue. When the queue is full new frames are dropped.
    """

    def __init__(
        self,
        transport: Transport,
        *,
        principal: Principal | None = None,
        queue_size: int = 100,
        connection_id: ConnectionId | None = None,
    ) -> None:
        if queue_size < 1:
            raise ValueError("queue_size must be at least 1")
        self.id = connection_id or ConnectionId(uuid.uuid4().hex)
        self.principal = principal
        self.user_id: UserId | None = None
        self.is_alive = True
        self.last_pong_at: datetime | None = None
        self.pending_ping: int | None = None
        self._transport = transport
        self._queue: asyncio.Queue[str] = asyncio.Queue(maxsize=queue_size)
        self._writer: asyncio.Task[None] | None = None
        self._closed = False
        self._peer_closed = False

    def __repr__(self) -> str:
        return f"Connection(id={self.id!r}, user_id={self.user_id!r})"

    @property
    def closed(self) -> bool:
        return self._closed

    def start(self) -> None:
        self._writer = asyncio.create_task(self._drain(), name=f"ws-writer-{self.id}")

    def enqueue(self, frame: str) -> bool:
        """Queue a frame for sending. Returns False if it was dropped."""
        if self._closed:
            raise ConnectionClosed(f"Connection {self.id} is closed")
        try:
            self._queue.put_nowait(frame)
        except asyncio.QueueFull:
            logger.warning(
                "Outbound queue full on %s (user=%s), dropping frame",
                self.id,
                self.user_id,
            )
            return False
        return True

    def mark_alive(self, at: datetime) -> None:
        self.is_alive = True
        self.last_pong_at = at
        self.pending_ping = None

    def mark_peer_closed(self) -> None:
        self._peer_closed = True

    async def flush(self) -> None:
        """Wait until every queued frame has been handed to the transport."""
        await self._queue.join()

    async def close(self, code: int = CloseCode.NORMAL, reason: str = "") -> None:
        if self._closed:
            return
        self._closed = True
        await self._stop_writer()
        if self._peer_closed:
            return
        try:
            await self._transport.close(code=code, reason=reason)
        except (RuntimeError, OSError):
            logger.debug("Transport for %s already closed", self.id, exc_info=True)

    async def _stop_writer(self) -> None:
        if self._writer is not None:
            self._writer.cancel()
            try:
                await self._writer
            except asyncio.CancelledError:
                pass
            self._writer = None
        self._discard_pending()

    def _discard_pending(self) -> None:
        while True:
            try:
                self._queue.get_nowait()
            except asyncio.QueueEmpty:
                return
            self._queue.task_done()

    async def _drain(self) -> None:
        while True:
            frame = await self._queue.get()
            try:
                await self._transport.send_text(frame)
            except Exception:
                logger.debug("Send failed on %s, stopping writer", self.id, exc_info=True)
                self._closed = True
                self._discard_pending()
                return
            finally:
                self._queue.task_done()
