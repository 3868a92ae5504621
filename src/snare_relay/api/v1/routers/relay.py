"""Read-only views of relay state for operators and the REST layer."""
from __future__ import annotations

from fastapi import APIRouter

from snare_relay.api.deps import CurrentPrincipal, LivenessDep, RegistryDep
from snare_relay.api.v1.schemas.relay import PresenceOut, RelayStatsOut
from snare_relay.domain.value_objects.ids import UserId

router = APIRouter(prefix="/api/v1/relay", tags=["relay"])


@router.get("/stats", response_model=RelayStatsOut)
async def relay_stats(registry: RegistryDep, liveness: LivenessDep) -> RelayStatsOut:
    return RelayStatsOut(
        connections=registry.connection_count,
        registered_users=registry.registered_count,
        ping_interval_seconds=liveness.interval,
    )


@router.get("/presence/{user_id}", response_model=PresenceOut)
async def presence(
    user_id: str,
    registry: RegistryDep,
    _principal: CurrentPrincipal,
) -> PresenceOut:
    """Whether a dm to ``user_id`` would be delivered live right now.

    Responds 404 when the user has no registered connection, so callers can
    fall back to notifications.
    """
    connection = await registry.lookup(UserId(user_id))
    return PresenceOut(
        user_id=user_id,
        connection_id=connection.id,
        last_pong_at=connection.last_pong_at,
    )
