"""Periodic ping/pong liveness probing."""
from __future__ import annotations

import asyncio
import itertools
import logging

from snare_relay.application.exceptions import LivenessTimeout
from snare_relay.domain.value_objects.enums import CloseCode, ControlFrameType
from snare_relay.infrastructure.ws.connection import Connection
from snare_relay.infrastructure.ws.protocol import control_frame
from snare_relay.infrastructure.ws.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class LivenessMonitor:
    """Background task that pings every live connection once per interval.

    Each tick clears a connection's liveness flag and sends ``ping``. A
    connection whose flag is still clear at the next tick is unregistered
    and closed with 4008, so a silent peer survives at most two intervals.
    """

    def __init__(self, registry: ConnectionRegistry, *, interval: float) -> None:
        self._registry = registry
        self._interval = interval
        self._nonces = itertools.count(1)
        self._task: asyncio.Task[None] | None = None

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run(), name="ws-liveness-monitor")
        logger.info("Liveness monitor started (interval=%.1fs)", self._interval)

    async def stop(self) -> None:
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
            logger.info("Liveness monitor stopped")

    async def tick(self) -> list[Connection]:
        """Probe once. Returns the connections that were terminated."""
        dead: list[Connection] = []
        for connection in await self._registry.snapshot():
            if connection.closed or not connection.is_alive:
                dead.append(connection)
                continue
            connection.is_alive = False
            connection.pending_ping = next(self._nonces)
            connection.enqueue(
                control_frame(ControlFrameType.PING, nonce=connection.pending_ping)
            )

        if dead:
            await asyncio.gather(*(self._terminate(c) for c in dead))
        return dead

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self._interval)
            try:
                await self.tick()
            except Exception:
                logger.exception("Liveness tick failed")

    async def _terminate(self, connection: Connection) -> None:
        await self._registry.unregister(connection)
        if connection.closed:
            logger.debug("Pruned closed connection %s", connection.id)
            return
        timeout = LivenessTimeout(
            f"No pong from {connection.id} (user={connection.user_id}) "
            f"within {self._interval:g}s"
        )
        logger.warning("Terminating connection: %s", timeout.detail)
        await connection.close(code=CloseCode.LIVENESS_TIMEOUT, reason=timeout.code)
