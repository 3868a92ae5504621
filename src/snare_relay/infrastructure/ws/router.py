"""Dispatch of validated inbound envelopes."""
from __future__ import annotations

import logging

from snare_relay.application.exceptions import (
    ConnectionClosed,
    ForbiddenError,
    RecipientNotConnected,
)
from snare_relay.application.ports.clock import Clock, SystemClock
from snare_relay.domain.value_objects.enums import ControlFrameType, DeliveryStatus
from snare_relay.domain.value_objects.ids import UserId
from snare_relay.infrastructure.ws.connection import Connection
from snare_relay.infrastructure.ws.protocol import (
    ConnectEnvelope,
    DmEnvelope,
    Envelope,
    PingEnvelope,
    PongEnvelope,
    control_frame,
)
from snare_relay.infrastructure.ws.registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class MessageRouter:
    """Routes envelopes arriving on ``origin``.

    A ``dm`` reaches the registered recipient's connection and nothing else.
    Unknown recipients are reported back as RECIPIENT_NOT_CONNECTED; the
    envelope is not sent anywhere.
    """

    def __init__(self, registry: ConnectionRegistry, clock: Clock | None = None) -> None:
        self._registry = registry
        self._clock = clock or SystemClock()

    async def route(self, envelope: Envelope, origin: Connection) -> DeliveryStatus:
        if isinstance(envelope, DmEnvelope):
            return await self._forward(envelope, origin)
        if isinstance(envelope, ConnectEnvelope):
            return await self._register(envelope, origin)
        if isinstance(envelope, PongEnvelope):
            self._acknowledge_pong(envelope, origin)
            return DeliveryStatus.HANDLED
        if isinstance(envelope, PingEnvelope):
            origin.enqueue(control_frame(ControlFrameType.PONG))
            return DeliveryStatus.HANDLED
        raise TypeError(f"Unsupported envelope {type(envelope).__name__}")

    async def _register(self, envelope: ConnectEnvelope, origin: Connection) -> DeliveryStatus:
        principal = origin.principal
        if principal is not None and principal.user_id != envelope.sender:
            raise ForbiddenError("connect sender does not match the authenticated user")

        user_id = UserId(envelope.sender)
        previous = await self._registry.register(user_id, origin)
        if previous is not None and not previous.closed:
            previous.enqueue(
                control_frame(ControlFrameType.SESSION_REPLACED, user_id=user_id)
            )
        origin.enqueue(control_frame(ControlFrameType.REGISTERED, user_id=user_id))
        logger.info("Registered user %s on %s", user_id, origin.id)
        return DeliveryStatus.REGISTERED

    async def _forward(self, envelope: DmEnvelope, origin: Connection) -> DeliveryStatus:
        if origin.user_id is None:
            raise ForbiddenError("send connect before dm")
        if envelope.sender != origin.user_id:
            raise ForbiddenError("dm sender does not match the registered user")

        try:
            target = await self._registry.lookup(UserId(envelope.recipient))
        except RecipientNotConnected as exc:
            logger.info("Dropping dm from %s: %s", envelope.sender, exc.detail)
            return DeliveryStatus.RECIPIENT_NOT_CONNECTED

        if envelope.timestamp is None:
            envelope = envelope.stamped(self._clock.now())

        try:
            accepted = target.enqueue(envelope.to_wire())
        except ConnectionClosed:
            logger.info("Dropping dm from %s: recipient connection closed", envelope.sender)
            return DeliveryStatus.RECIPIENT_NOT_CONNECTED
        return DeliveryStatus.DELIVERED if accepted else DeliveryStatus.DROPPED

    def _acknowledge_pong(self, envelope: PongEnvelope, origin: Connection) -> None:
        nonce = envelope.nonce
        if nonce is not None and origin.pending_ping is not None and nonce != origin.pending_ping:
            logger.debug(
                "Stale pong on %s (got %s, expected %s)", origin.id, nonce, origin.pending_ping,
            )
            return
        origin.mark_alive(self._clock.now())
