from __future__ import annotations

from dataclasses import dataclass

from snare_relay.domain.value_objects.ids import UserId


@dataclass(frozen=True, slots=True)
class Principal:
    """Authenticated caller identity resolved at WebSocket upgrade."""

    user_id: UserId
    role: str = "authenticated"
    email: str | None = None
