from __future__ import annotations

import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect

from snare_relay.api.deps import MessageRouterDep, RegistryDep, VerifierDep
from snare_relay.application.dto.principal import Principal
from snare_relay.application.exceptions import (
    ConnectionClosed,
    ForbiddenError,
    MalformedEnvelope,
)
from snare_relay.application.ports.auth import TokenVerifier
from snare_relay.config import settings
from snare_relay.domain.value_objects.enums import CloseCode, ControlFrameType
from snare_relay.infrastructure.ws.connection import Connection
from snare_relay.infrastructure.ws.protocol import control_frame, parse_envelope
from snare_relay.infrastructure.ws.router import MessageRouter

logger = logging.getLogger(__name__)
router = APIRouter(tags=["websocket"])


async def _authenticate(verifier: TokenVerifier, token: str | None) -> Principal | None:
    if not token:
        return None
    try:
        return await verifier.verify(token)
    except Exception:
        logger.debug("WS auth failed", exc_info=True)
        return None


@router.websocket("/ws")
async def ws_relay(
    websocket: WebSocket,
    verifier: VerifierDep,
    registry: RegistryDep,
    message_router: MessageRouterDep,
    token: str | None = Query(None),
) -> None:
    principal: Principal | None = None
    if verifier is not None:
        principal = await _authenticate(verifier, token)
        if principal is None:
            await websocket.close(code=CloseCode.AUTH_FAILED, reason="Authentication failed")
            return

    await websocket.accept()
    connection = Connection(
        websocket, principal=principal, queue_size=settings.WS_OUTBOUND_QUEUE_SIZE,
    )
    connection.start()
    await registry.add(connection)

    try:
        await _read_loop(websocket, connection, message_router)
    except WebSocketDisconnect:
        connection.mark_peer_closed()
    except ConnectionClosed:
        logger.debug("Connection %s was closed by the relay", connection.id)
    except Exception:
        logger.exception("WS error on %s (user=%s)", connection.id, connection.user_id)
        await registry.unregister(connection)
        await connection.close(code=CloseCode.INTERNAL_ERROR, reason="internal error")
    finally:
        await registry.unregister(connection)
        await connection.close()


async def _read_loop(
    ws: WebSocket,
    connection: Connection,
    message_router: MessageRouter,
) -> None:
    while True:
        message = await ws.receive()
        if message["type"] == "websocket.disconnect":
            raise WebSocketDisconnect(message.get("code", CloseCode.NORMAL))

        raw = message.get("text")
        if raw is None:
            raw = message.get("bytes") or b""

        try:
            envelope = parse_envelope(raw, max_bytes=settings.WS_MAX_ENVELOPE_BYTES)
            await message_router.route(envelope, connection)
        except (MalformedEnvelope, ForbiddenError) as exc:
            logger.debug("Rejected frame on %s: %s", connection.id, exc.detail)
            connection.enqueue(
                control_frame(ControlFrameType.ERROR, code=exc.code, detail=exc.detail)
            )
