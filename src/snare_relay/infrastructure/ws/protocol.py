"""Relay wire protocol.

Client frames are flat JSON objects discriminated on ``type``. Frames the
relay originates itself keep the ``{"type": ..., "data": {...}}`` shape.
"""
from __future__ import annotations

from datetime import datetime
from typing import Annotated, Any, Literal, Union

from pydantic import (
    AfterValidator,
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    StrictFloat,
    StrictInt,
    StrictStr,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    model_validator,
)

from snare_relay.application.exceptions import MalformedEnvelope
from snare_relay.domain.value_objects.enums import ControlFrameType


def _not_blank(value: str) -> str:
    if not value.strip():
        raise ValueError("must not be blank")
    return value


def _check_timestamp(value: str | int | float) -> str | int | float:
    # Accept ISO 8601 text or epoch milliseconds; the value itself is kept as sent.
    if isinstance(value, str):
        try:
            datetime.fromisoformat(value)
        except ValueError as exc:
            raise ValueError("timestamp must be ISO 8601 or epoch milliseconds") from exc
    return value


UserIdStr = Annotated[str, StringConstraints(min_length=1, max_length=128), AfterValidator(_not_blank)]
WireTimestamp = Annotated[Union[StrictStr, StrictInt, StrictFloat], AfterValidator(_check_timestamp)]


def format_timestamp(at: datetime) -> str:
    """Render ``at`` the way browsers do with ``Date.toISOString()``."""
    return at.isoformat(timespec="milliseconds").replace("+00:00", "Z")


class ConnectEnvelope(BaseModel):
    """Client → Server. Binds the connection to a user identity."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["connect"]
    # Older clients send {"type": "connect", "userId": ...}
    sender: UserIdStr = Field(validation_alias=AliasChoices("sender", "userId"))


class DmEnvelope(BaseModel):
    """Client → Server → Client. Forwarded to the recipient as received."""

    model_config = ConfigDict(frozen=True, extra="allow")

    type: Literal["dm"]
    sender: UserIdStr
    recipient: UserIdStr
    payload: Any
    timestamp: WireTimestamp | None = None

    # Frame text as it arrived; None for envelopes built in code.
    _raw: str | None = PrivateAttr(default=None)

    @model_validator(mode="after")
    def _not_self_addressed(self) -> DmEnvelope:
        if self.recipient == self.sender:
            raise ValueError("recipient must differ from sender")
        return self

    def stamped(self, at: datetime) -> DmEnvelope:
        envelope = self.model_copy(update={"timestamp": format_timestamp(at)})
        envelope._raw = None
        return envelope

    def to_wire(self) -> str:
        if self._raw is not None:
            return self._raw
        return self.model_dump_json()


class PingEnvelope(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["ping"]


class PongEnvelope(BaseModel):
    """Answer to a relay ``ping``; ``data`` echoes the ping's data."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    type: Literal["pong"]
    data: dict[str, Any] = {}

    @property
    def nonce(self) -> int | None:
        value = self.data.get("nonce")
        return value if isinstance(value, int) else None


Envelope = Annotated[
    Union[ConnectEnvelope, DmEnvelope, PingEnvelope, PongEnvelope],
    Field(discriminator="type"),
]

_envelope_adapter: TypeAdapter[Envelope] = TypeAdapter(Envelope)


class ControlFrame(BaseModel):
    """Server → Client."""

    type: ControlFrameType
    data: dict[str, Any] = {}


def control_frame(frame_type: ControlFrameType, **data: Any) -> str:
    return ControlFrame(type=frame_type, data=data).model_dump_json()


def parse_envelope(raw: str | bytes, *, max_bytes: int | None = None) -> Envelope:
    """Validate one inbound frame.

    Raises MalformedEnvelope for oversized frames, invalid JSON, unknown
    ``type`` values and missing or empty required fields. A ``dm`` keeps
    the frame text so it can be forwarded unchanged.
    """
    size = len(raw.encode()) if isinstance(raw, str) else len(raw)
    if max_bytes is not None and size > max_bytes:
        raise MalformedEnvelope(f"Envelope of {size} bytes exceeds limit of {max_bytes}")
    try:
        envelope = _envelope_adapter.validate_json(raw)
    except ValidationError as exc:
        raise MalformedEnvelope(_describe(exc)) from exc
    if isinstance(envelope, DmEnvelope):
        envelope._raw = raw if isinstance(raw, str) else raw.decode()
    return envelope


def _describe(exc: ValidationError) -> str:
    first = exc.errors()[0]
    loc = ".".join(str(part) for part in first["loc"])
    return f"{loc}: {first['msg']}" if loc else first["msg"]
