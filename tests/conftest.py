"""Shared test fixtures."""
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator

import pytest
import pytest_asyncio

from snare_relay.application.dto.principal import Principal
from snare_relay.domain.value_objects.ids import UserId
from snare_relay.infrastructure.ws.connection import Connection
from snare_relay.infrastructure.ws.registry import ConnectionRegistry
from snare_relay.infrastructure.ws.router import MessageRouter


@dataclass
class FakeTransport:
    """Records what a Connection writes to the wire."""

    sent: list[str] = field(default_factory=list)
    closed_with: tuple[int, str | None] | None = None
    fail_sends: bool = False

    async def send_text(self, data: str) -> None:
        if self.fail_sends:
            raise RuntimeError("socket is gone")
        self.sent.append(data)

    async def close(self, code: int = 1000, reason: str | None = None) -> None:
        self.closed_with = (code, reason)

    def frames(self) -> list[dict[str, Any]]:
        return [json.loads(raw) for raw in self.sent]


@dataclass
class FakeClock:
    current: datetime = field(
        default_factory=lambda: datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)
    )

    def now(self) -> datetime:
        return self.current

    def advance(self, seconds: float) -> None:
        self.current += timedelta(seconds=seconds)


@dataclass
class ConnectionFactory:
    """Builds started connections and closes them all at teardown."""

    created: list[tuple[Connection, FakeTransport]] = field(default_factory=list)

    def __call__(
        self,
        *,
        principal: Principal | None = None,
        queue_size: int = 100,
        start: bool = True,
    ) -> tuple[Connection, FakeTransport]:
        transport = FakeTransport()
        connection = Connection(transport, principal=principal, queue_size=queue_size)
        if start:
            connection.start()
        self.created.append((connection, transport))
        return connection, transport

    async def aclose(self) -> None:
        for connection, _ in self.created:
            await connection.close()


@pytest_asyncio.fixture
async def make_connection() -> AsyncIterator[ConnectionFactory]:
    factory = ConnectionFactory()
    yield factory
    await factory.aclose()


@pytest.fixture
def registry() -> ConnectionRegistry:
    return ConnectionRegistry()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def message_router(registry: ConnectionRegistry, clock: FakeClock) -> MessageRouter:
    return MessageRouter(registry, clock=clock)


def alice() -> Principal:
    return Principal(user_id=UserId("user-a"), email="a@example.com")
