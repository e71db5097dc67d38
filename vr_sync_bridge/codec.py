"""Wire codec for VR Sync JSON messages.

Outbound messages are stamped with the admin envelope (sender, license code,
protocol version and send time) regardless of their type. Inbound objects are
mapped onto the closed set of message classes in `models`; anything the
bridge does not understand becomes an `UnknownMessage` rather than an error.
"""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, Optional

from .models import (
    LEGACY_NOT_AUTHENTICATED,
    PROTOCOL_VERSION,
    SENDER_ADMIN,
    SENDER_SERVER,
    CommandHistory,
    ErrorMessage,
    InboundMessage,
    LegacyAuthError,
    MediaEntry,
    MediaUpdate,
    OutboundMessage,
    ServerPing,
    StatusUpdate,
    UnknownMessage,
)

_LOGGER = logging.getLogger(__name__)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _decode_ping(data: Dict[str, Any]) -> InboundMessage:
    # Our own pings echoed back (or pings from other admins) are not liveness
    if data.get("sender") != SENDER_SERVER:
        return UnknownMessage(raw=data)
    return ServerPing(
        raw=data,
        is_trial=data.get("isTrial"),
        user_limit=data.get("userLimit"),
        server_version=data.get("serverVersion"),
        minimum_version=data.get("minimumVersion"),
        preferred_version=data.get("preferredVersion"),
    )


def _decode_media_update(data: Dict[str, Any]) -> InboundMessage:
    media = data.get("media") or []
    entries = tuple(MediaEntry.from_wire(m) for m in media if isinstance(m, dict))
    return MediaUpdate(raw=data, media=entries)


_DECODERS: Dict[str, Callable[[Dict[str, Any]], InboundMessage]] = {
    "Ping": _decode_ping,
    "MediaUpdate": _decode_media_update,
    "StatusUpdate": lambda data: StatusUpdate(raw=data),
    "CommandHistory": lambda data: CommandHistory(raw=data),
    "Error": lambda data: ErrorMessage(raw=data),
}


class MessageCodec:
    """Encode/decode VR Sync messages for one configured license."""

    def __init__(
        self,
        *,
        license_code: str,
        log_outgoing: bool = False,
        log_incoming: bool = False,
        clock: Optional[Callable[[], int]] = None,
    ) -> None:
        self.license_code = license_code
        self.log_outgoing = log_outgoing
        self.log_incoming = log_incoming
        self._clock = clock or _now_ms

    def encode(self, message: OutboundMessage) -> Dict[str, Any]:
        wire = message.to_wire()
        wire["sender"] = SENDER_ADMIN
        wire["licenseCode"] = self.license_code
        wire["protocolVersion"] = PROTOCOL_VERSION
        wire["sentUnixTimestampMs"] = self._clock()

        if self.log_outgoing:
            # Contains the license key; only enabled on request
            _LOGGER.info("Sending message: %s", json.dumps(wire))

        return wire

    def decode(self, wire: Any) -> InboundMessage:
        if self.log_incoming:
            _LOGGER.info("Received message: %s", json.dumps(wire, default=str))

        if wire == LEGACY_NOT_AUTHENTICATED:
            return LegacyAuthError(raw=wire)

        if not isinstance(wire, dict):
            return UnknownMessage(raw=wire)

        tag = wire.get("type")
        decoder = _DECODERS.get(tag) if isinstance(tag, str) else None
        if decoder is None:
            return UnknownMessage(raw=wire)
        return decoder(wire)
