from __future__ import annotations

from fastapi import APIRouter
from fastapi.responses import JSONResponse

from snare_relay.api.deps import LivenessDep

router = APIRouter(tags=["health"])


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(liveness: LivenessDep) -> JSONResponse:
    if not liveness.running:
        return JSONResponse(
            status_code=503,
            content={"status": "unavailable", "errors": ["liveness monitor not running"]},
        )
    return JSONResponse(content={"status": "ready"})
