from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from snare_relay.application.exceptions import MalformedEnvelope
from snare_relay.domain.value_objects.enums import ControlFrameType
from snare_relay.infrastructure.ws.protocol import (
    ConnectEnvelope,
    DmEnvelope,
    PingEnvelope,
    PongEnvelope,
    control_frame,
    parse_envelope,
)


def test_parse_connect():
    envelope = parse_envelope('{"type": "connect", "sender": "userA"}')
    assert isinstance(envelope, ConnectEnvelope)
    assert envelope.sender == "userA"


def test_parse_connect_accepts_legacy_user_id_field():
    envelope = parse_envelope('{"type": "connect", "userId": "userA"}')
    assert isinstance(envelope, ConnectEnvelope)
    assert envelope.sender == "userA"


def test_parse_dm_keeps_extra_fields():
    raw = json.dumps({
        "type": "dm",
        "sender": "userA",
        "recipient": "userB",
        "payload": {"content": "hi"},
        "conversationId": "c-1",
    })
    envelope = parse_envelope(raw)

    assert isinstance(envelope, DmEnvelope)
    assert envelope.timestamp is None
    dumped = json.loads(envelope.model_dump_json())
    assert dumped["payload"] == {"content": "hi"}
    assert dumped["conversationId"] == "c-1"


def test_parse_dm_from_bytes():
    envelope = parse_envelope(b'{"type": "dm", "sender": "a", "recipient": "b", "payload": "hi"}')
    assert isinstance(envelope, DmEnvelope)
    assert envelope.payload == "hi"


@pytest.mark.parametrize("timestamp", ["2026-01-01T12:34:56.789Z", 1767270896789])
def test_dm_timestamp_is_kept_as_sent(timestamp):
    raw = json.dumps({"type": "dm", "sender": "a", "recipient": "b", "payload": "hi", "timestamp": timestamp})

    envelope = parse_envelope(raw)

    assert envelope.timestamp == timestamp
    assert type(envelope.timestamp) is type(timestamp)
    assert envelope.to_wire() == raw


def test_dm_user_ids_are_not_rewritten():
    envelope = parse_envelope('{"type": "dm", "sender": " a ", "recipient": "b", "payload": "hi"}')
    assert envelope.sender == " a "


def test_dm_built_in_code_serializes_its_fields():
    envelope = DmEnvelope(type="dm", sender="a", recipient="b", payload=[1, 2])
    assert json.loads(envelope.to_wire())["payload"] == [1, 2]


def test_stamped_dm_carries_iso_timestamp():
    envelope = parse_envelope('{"type": "dm", "sender": "a", "recipient": "b", "payload": "hi"}')

    stamped = envelope.stamped(datetime(2026, 1, 1, 12, 34, 56, 789000, tzinfo=timezone.utc))

    assert json.loads(stamped.to_wire())["timestamp"] == "2026-01-01T12:34:56.789Z"
    assert envelope.timestamp is None


def test_parse_ping_and_pong():
    assert isinstance(parse_envelope('{"type": "ping"}'), PingEnvelope)
    pong = parse_envelope('{"type": "pong", "data": {"nonce": 7}}')
    assert isinstance(pong, PongEnvelope)
    assert pong.nonce == 7


def test_pong_without_nonce():
    pong = parse_envelope('{"type": "pong"}')
    assert isinstance(pong, PongEnvelope)
    assert pong.nonce is None


@pytest.mark.parametrize(
    "raw",
    [
        "not json",
        "[1, 2, 3]",
        '{"sender": "userA"}',
        '{"type": "broadcast", "sender": "userA"}',
        '{"type": "connect"}',
        '{"type": "connect", "sender": "   "}',
        '{"type": "dm", "sender": "userA", "payload": "hi"}',
        '{"type": "dm", "sender": "userA", "recipient": "userB"}',
        '{"type": "dm", "sender": "userA", "recipient": "userA", "payload": "hi"}',
        '{"type": "dm", "sender": "userA", "recipient": "userB", "payload": "hi", "timestamp": "yesterday"}',
        '{"type": "dm", "sender": "userA", "recipient": "userB", "payload": "hi", "timestamp": true}',
    ],
)
def test_malformed_envelopes_are_rejected(raw):
    with pytest.raises(MalformedEnvelope) as exc_info:
        parse_envelope(raw)
    assert exc_info.value.code == "malformed_envelope"
    assert exc_info.value.detail


def test_oversized_envelope_is_rejected():
    raw = json.dumps({"type": "dm", "sender": "a", "recipient": "b", "payload": "x" * 200})
    with pytest.raises(MalformedEnvelope, match="exceeds limit"):
        parse_envelope(raw, max_bytes=64)


def test_control_frame_shape():
    frame = json.loads(control_frame(ControlFrameType.PING, nonce=3))
    assert frame == {"type": "ping", "data": {"nonce": 3}}
