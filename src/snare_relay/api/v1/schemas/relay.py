from __future__ import annotations

from datetime import datetime

from pydantic import BaseModel


class RelayStatsOut(BaseModel):
    connections: int
    registered_users: int
    ping_interval_seconds: float


class PresenceOut(BaseModel):
    user_id: str
    connection_id: str
    last_pong_at: datetime | None
