from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from snare_relay.api.v1.routers import health, relay, ws
from snare_relay.application.exceptions import (
    AppError,
    AuthenticationError,
    ForbiddenError,
    MalformedEnvelope,
    RecipientNotConnected,
)
from snare_relay.config import settings
from snare_relay.domain.value_objects.enums import CloseCode
from snare_relay.infrastructure.ws.liveness import LivenessMonitor
from snare_relay.infrastructure.ws.registry import ConnectionRegistry
from snare_relay.infrastructure.ws.router import MessageRouter

logger = logging.getLogger(__name__)

_STATUS_BY_ERROR: dict[type[AppError], int] = {
    AuthenticationError: 401,
    ForbiddenError: 403,
    RecipientNotConnected: 404,
    MalformedEnvelope: 422,
}


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Startup / shutdown lifecycle."""
    liveness: LivenessMonitor = app.state.liveness
    await liveness.start()

    yield

    await liveness.stop()
    registry: ConnectionRegistry = app.state.registry
    remaining = await registry.snapshot()
    for connection in remaining:
        await registry.unregister(connection)
        await connection.close(code=CloseCode.GOING_AWAY, reason="server shutdown")
    logger.info("Relay stopped, closed %d connections", len(remaining))


def create_app() -> FastAPI:
    app = FastAPI(
        title="Snare Relay",
        version="0.1.0",
        lifespan=lifespan,
    )

    registry = ConnectionRegistry()
    app.state.registry = registry
    app.state.message_router = MessageRouter(registry)
    app.state.liveness = LivenessMonitor(
        registry, interval=settings.WS_PING_INTERVAL_SECONDS,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    _register_exception_handlers(app)

    app.include_router(health.router)
    app.include_router(relay.router)
    app.include_router(ws.router)

    return app


def _register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def _app_error(_req: Request, exc: AppError) -> JSONResponse:
        status_code = next(
            (code for cls, code in _STATUS_BY_ERROR.items() if isinstance(exc, cls)),
            400,
        )
        return JSONResponse(
            status_code=status_code,
            content={"detail": exc.detail, "code": exc.code},
        )
