"""Tests for the VR Sync message codec."""

import logging

from vr_sync_bridge.codec import MessageCodec
from vr_sync_bridge.models import (
    CalibrateMessage,
    CommandHistory,
    CommandMessage,
    ErrorMessage,
    LegacyAuthError,
    MediaUpdate,
    PingMessage,
    PlaylistItem,
    ServerPing,
    StatusUpdate,
    TextMessage,
    UnknownMessage,
)

_NOW_MS = 1_700_000_000_123


def _codec(**kwargs) -> MessageCodec:
    return MessageCodec(license_code="LICENSE-123", clock=lambda: _NOW_MS, **kwargs)


_OUTBOUND = [
    PingMessage(),
    CalibrateMessage(),
    CommandMessage(playlist=(PlaylistItem("CloudVideo", "7", 5000),), loop=True),
    CommandMessage(),
    TextMessage(text="Please sit down"),
]


def test_every_outbound_message_gets_envelope() -> None:
    codec = _codec()
    for message in _OUTBOUND:
        wire = codec.encode(message)
        assert wire["type"] == message.TYPE
        assert wire["sender"] == "Admin"
        assert wire["licenseCode"] == "LICENSE-123"
        assert wire["protocolVersion"] == 2
        assert wire["sentUnixTimestampMs"] == _NOW_MS


def test_decoded_envelope_survives_round_trip() -> None:
    codec = _codec()
    for message in _OUTBOUND:
        decoded = codec.decode(codec.encode(message))
        assert decoded.sender == "Admin"
        assert decoded.license_code == "LICENSE-123"
        assert decoded.protocol_version == 2
        assert decoded.sent_unix_timestamp_ms == _NOW_MS


def test_default_clock_is_wall_time_in_ms() -> None:
    wire = MessageCodec(license_code="x").encode(PingMessage())
    # Any plausible wall-clock value in milliseconds (after 2020)
    assert wire["sentUnixTimestampMs"] > 1_577_836_800_000


def test_command_wire_shape() -> None:
    wire = _codec().encode(
        CommandMessage(playlist=(PlaylistItem("LocalVideo", "12", 250),), loop=True)
    )
    assert wire["currentTime"] == 0
    assert wire["playlist"] == [{"type": "LocalVideo", "identifier": "12", "playDelayMs": 250}]
    assert wire["loop"] is True
    assert wire["deviceUIDs"] == ["all"]


def test_text_and_bare_messages_wire_shape() -> None:
    codec = _codec()

    text = codec.encode(TextMessage(text="hello"))
    assert text["text"] == "hello"
    assert text["lengthInMs"] == 5000
    assert text["currentTime"] == 0
    assert text["deviceUIDs"] == ["all"]

    for message in (PingMessage(), CalibrateMessage()):
        wire = codec.encode(message)
        assert set(wire) == {"type", "sender", "licenseCode", "protocolVersion", "sentUnixTimestampMs"}


def test_decode_server_ping() -> None:
    message = _codec().decode(
        {
            "type": "Ping",
            "sender": "Server",
            "isTrial": True,
            "userLimit": 10,
            "serverVersion": "3.1.0",
            "minimumVersion": "2.0.0",
            "preferredVersion": "3.0.0",
        }
    )
    assert isinstance(message, ServerPing)
    assert message.is_trial is True
    assert message.user_limit == 10
    assert message.server_version == "3.1.0"
    assert message.minimum_version == "2.0.0"
    assert message.preferred_version == "3.0.0"


def test_ping_from_other_sender_is_not_liveness() -> None:
    message = _codec().decode({"type": "Ping", "sender": "Admin"})
    assert isinstance(message, UnknownMessage)


def test_decode_media_update() -> None:
    message = _codec().decode(
        {
            "type": "MediaUpdate",
            "media": [
                {"type": "Video", "identifier": "1", "mediaName": "Intro"},
                {"type": "Image", "identifier": "2", "mediaName": "Poster"},
            ],
        }
    )
    assert isinstance(message, MediaUpdate)
    assert [m.label for m in message.media] == ["Video 1: Intro", "Image 2: Poster"]


def test_decode_tolerates_unknown_and_odd_payloads() -> None:
    codec = _codec()
    assert isinstance(codec.decode({"type": "StatusUpdate"}), StatusUpdate)
    assert isinstance(codec.decode({"type": "CommandHistory"}), CommandHistory)
    assert isinstance(codec.decode({"type": "Error"}), ErrorMessage)
    assert isinstance(codec.decode("not authenticated"), LegacyAuthError)
    assert isinstance(codec.decode({"type": "SomethingNew"}), UnknownMessage)
    assert isinstance(codec.decode({"no": "type"}), UnknownMessage)
    assert isinstance(codec.decode({"type": ["list"]}), UnknownMessage)
    assert isinstance(codec.decode(42), UnknownMessage)
    assert isinstance(codec.decode("some other text"), UnknownMessage)


def test_outgoing_log_only_when_enabled(caplog) -> None:
    caplog.set_level(logging.INFO, logger="vr_sync_bridge.codec")

    _codec().encode(PingMessage())
    assert "Sending message" not in caplog.text

    _codec(log_outgoing=True).encode(PingMessage())
    assert "Sending message" in caplog.text
    assert "LICENSE-123" in caplog.text


def test_incoming_log_only_when_enabled(caplog) -> None:
    caplog.set_level(logging.INFO, logger="vr_sync_bridge.codec")

    _codec().decode({"type": "Error"})
    assert "Received message" not in caplog.text

    _codec(log_incoming=True).decode({"type": "Error"})
    assert "Received message" in caplog.text
