# DevinRelay/tests/test_protocol.py
"""Unit tests for the wire codec: outbound frame shapes and inbound classification."""
from __future__ import annotations

import json

import pytest

from devin_relay.errors import ProtocolParseError
from devin_relay.protocol import (
    DevinMessageEvent,
    PingFrame,
    SubscribeFrame,
    UserMessageEvent,
    UserMessageFrame,
    parse_inbound,
)


class TestOutboundFrames:
    def test_subscribe_shape(self):
        assert json.loads(SubscribeFrame().to_wire()) == {"type": "subscribe_devin"}

    def test_ping_shape(self):
        assert json.loads(PingFrame().to_wire()) == {"type": "ping"}

    def test_user_message_shape(self):
        frame = json.loads(UserMessageFrame(message="great job").to_wire())
        assert frame["type"] == "user_message"
        assert frame["message"] == "great job"
        assert frame["origin"] == "web"
        assert frame["ensure_awake"] is True
        assert frame["event_id"].startswith("event-")
        assert len(frame["event_id"]) == len("event-") + 36

    def test_event_ids_distinct_for_identical_text(self):
        ids = {UserMessageFrame(message="same").event_id for _ in range(50)}
        assert len(ids) == 50


class TestParseInbound:
    def test_devin_message(self):
        raw = json.dumps({
            "type": "devin_event",
            "event": {"type": "devin_message", "timestamp": "T1", "message": "hi", "acus_to_refund": 0.5},
        })
        event = parse_inbound(raw)
        assert isinstance(event, DevinMessageEvent)
        assert event.timestamp == "T1"
        assert event.message == "hi"
        assert event.refund_units == 0.5

    def test_user_message_prefers_username(self):
        raw = json.dumps({
            "type": "devin_event",
            "event": {"type": "user_message", "timestamp": "T2", "message": "yo", "username": "alice", "user_id": 7},
        })
        event = parse_inbound(raw)
        assert isinstance(event, UserMessageEvent)
        assert event.user_label == "alice"

    def test_user_message_falls_back_to_user_id(self):
        raw = json.dumps({
            "type": "devin_event",
            "event": {"type": "user_message", "timestamp": "T2", "message": "yo", "user_id": 7},
        })
        assert parse_inbound(raw).user_label == "7"

    @pytest.mark.parametrize("event_type", ["devin_message", "user_message"])
    @pytest.mark.parametrize("timestamp, expected", [(1718000000, "1718000000"), (1718000000.5, "1718000000.5"), (None, "")])
    def test_non_string_timestamp_is_kept_as_text(self, event_type, timestamp, expected):
        raw = json.dumps({
            "type": "devin_event",
            "event": {"type": event_type, "timestamp": timestamp, "message": "still handled"},
        })
        event = parse_inbound(raw)
        assert event.message == "still handled"
        assert event.timestamp == expected

    def test_accepts_bytes(self):
        raw = json.dumps({"type": "devin_event", "event": {"type": "devin_message", "message": "b"}}).encode()
        assert parse_inbound(raw).message == "b"

    @pytest.mark.parametrize("payload", [
        {"type": "pong"},
        {"type": "devin_event", "event": {"type": "status_update"}},
        {"type": "devin_event"},
        [1, 2, 3],
        "just a string",
    ])
    def test_unknown_frames_return_none(self, payload):
        assert parse_inbound(json.dumps(payload)) is None

    def test_malformed_json_raises(self):
        with pytest.raises(ProtocolParseError):
            parse_inbound("{not json")

    def test_devin_message_without_text_raises(self):
        raw = json.dumps({"type": "devin_event", "event": {"type": "devin_message", "timestamp": "T1"}})
        with pytest.raises(ProtocolParseError):
            parse_inbound(raw)
