from __future__ import annotations

from enum import IntEnum, StrEnum


class EnvelopeType(StrEnum):
    CONNECT = "connect"
    DM = "dm"
    PING = "ping"
    PONG = "pong"


class ControlFrameType(StrEnum):
    """Frames originated by the relay itself."""

    REGISTERED = "registered"
    SESSION_REPLACED = "session.replaced"
    PING = "ping"
    PONG = "pong"
    ERROR = "error"


class DeliveryStatus(StrEnum):
    REGISTERED = "registered"
    DELIVERED = "delivered"
    RECIPIENT_NOT_CONNECTED = "recipient_not_connected"
    DROPPED = "dropped"
    HANDLED = "handled"


class CloseCode(IntEnum):
    NORMAL = 1000
    GOING_AWAY = 1001
    INTERNAL_ERROR = 1011
    AUTH_FAILED = 4001
    LIVENESS_TIMEOUT = 4008
