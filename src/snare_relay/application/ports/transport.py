from __future__ import annotations

from typing import Protocol


class Transport(Protocol):
    """The subset of ``starlette.websockets.WebSocket`` a connection writes to."""

    async def send_text(self, data: str) -> None: ...

    async def close(self, code: int = 1000, reason: str | None = None) -> None: ...
