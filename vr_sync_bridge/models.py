"""Domain models shared between the codec, dispatcher and command layers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, ClassVar, Dict, List, Optional, Tuple

# Fixed envelope values stamped on every outbound message
SENDER_ADMIN = "Admin"
SENDER_SERVER = "Server"
PROTOCOL_VERSION = 2

# Commands always target every connected headset
ALL_DEVICES: Tuple[str, ...] = ("all",)
TEXT_LENGTH_MS = 5000

LEGACY_NOT_AUTHENTICATED = "not authenticated"


class MediaType(str, Enum):
    """Media type labels understood by the server."""

    LOCAL_VIDEO = "LocalVideo"
    LOCAL_IMAGE = "LocalImage"
    CLOUD_VIDEO = "CloudVideo"
    CLOUD_IMAGE = "CloudImage"


# Index order matches the Media Type dropdown of the Play action
MEDIA_TYPES: Tuple[MediaType, ...] = (
    MediaType.LOCAL_VIDEO,
    MediaType.LOCAL_IMAGE,
    MediaType.CLOUD_VIDEO,
    MediaType.CLOUD_IMAGE,
)


def media_type_from_index(index: Any) -> MediaType:
    """Resolve a dropdown index ("0".."3" or 0..3); IndexError when out of range."""
    idx = int(index)
    if idx < 0:
        raise IndexError(f"media type index out of range: {idx}")
    return MEDIA_TYPES[idx]


class DisconnectReason(str, Enum):
    CLIENT = "client_disconnect"
    SERVER = "server_disconnect"
    TRANSPORT_CLOSE = "transport_close"
    TRANSPORT_ERROR = "transport_error"


class ConnectionState(str, Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    RECONNECTING = "reconnecting"


# -----------------------------------------------------------------------------
# Session
# -----------------------------------------------------------------------------

@dataclass
class MediaEntry:
    type: Any = None
    identifier: Any = None
    media_name: Any = None

    @classmethod
    def from_wire(cls, data: Dict[str, Any]) -> "MediaEntry":
        return cls(
            type=data.get("type"),
            identifier=data.get("identifier"),
            media_name=data.get("mediaName"),
        )

    @property
    def label(self) -> str:
        return f"{self.type} {self.identifier}: {self.media_name}"


@dataclass
class Session:
    """Live connectivity and derived state for the current transport session."""

    connected: bool = False
    server_version: Optional[str] = None
    minimum_version: Optional[str] = None
    preferred_version: Optional[str] = None
    is_trial: Optional[bool] = None
    user_limit: Optional[int] = None
    media: List[MediaEntry] = field(default_factory=list)


# -----------------------------------------------------------------------------
# Outbound messages
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class PlaylistItem:
    type: str
    identifier: str
    play_delay_ms: int = 0

    def to_wire(self) -> Dict[str, Any]:
        return {
            "type": self.type,
            "identifier": self.identifier,
            "playDelayMs": self.play_delay_ms,
        }


@dataclass(frozen=True)
class OutboundMessage:
    TYPE: ClassVar[str] = ""

    def payload(self) -> Dict[str, Any]:
        return {}

    def to_wire(self) -> Dict[str, Any]:
        wire: Dict[str, Any] = {"type": self.TYPE}
        wire.update(self.payload())
        return wire


@dataclass(frozen=True)
class PingMessage(OutboundMessage):
    TYPE: ClassVar[str] = "Ping"


@dataclass(frozen=True)
class CalibrateMessage(OutboundMessage):
    TYPE: ClassVar[str] = "Calibrate"


@dataclass(frozen=True)
class CommandMessage(OutboundMessage):
    """Play/stop command; an empty playlist means stop."""

    TYPE: ClassVar[str] = "Command"

    playlist: Tuple[PlaylistItem, ...] = ()
    loop: bool = False
    device_uids: Tuple[str, ...] = ALL_DEVICES
    current_time: int = 0

    def payload(self) -> Dict[str, Any]:
        return {
            "currentTime": self.current_time,
            "playlist": [item.to_wire() for item in self.playlist],
            "loop": self.loop,
            "deviceUIDs": list(self.device_uids),
        }


@dataclass(frozen=True)
class TextMessage(OutboundMessage):
    TYPE: ClassVar[str] = "Text"

    text: str = ""
    length_ms: int = TEXT_LENGTH_MS
    device_uids: Tuple[str, ...] = ALL_DEVICES
    current_time: int = 0

    def payload(self) -> Dict[str, Any]:
        return {
            "text": self.text,
            "lengthInMs": self.length_ms,
            "currentTime": self.current_time,
            "deviceUIDs": list(self.device_uids),
        }


# -----------------------------------------------------------------------------
# Inbound messages
# -----------------------------------------------------------------------------

@dataclass(frozen=True)
class InboundMessage:
    """Base of every decoded message; keeps the untouched wire object."""

    raw: Any

    def _field(self, key: str) -> Any:
        if isinstance(self.raw, dict):
            return self.raw.get(key)
        return None

    @property
    def type(self) -> Optional[str]:
        return self._field("type")

    @property
    def sender(self) -> Optional[str]:
        return self._field("sender")

    @property
    def license_code(self) -> Optional[str]:
        return self._field("licenseCode")

    @property
    def protocol_version(self) -> Optional[int]:
        return self._field("protocolVersion")

    @property
    def sent_unix_timestamp_ms(self) -> Optional[int]:
        return self._field("sentUnixTimestampMs")


@dataclass(frozen=True)
class ServerPing(InboundMessage):
    is_trial: Optional[bool] = None
    user_limit: Optional[int] = None
    server_version: Optional[str] = None
    minimum_version: Optional[str] = None
    preferred_version: Optional[str] = None


@dataclass(frozen=True)
class MediaUpdate(InboundMessage):
    media: Tuple[MediaEntry, ...] = ()


@dataclass(frozen=True)
class StatusUpdate(InboundMessage):
    """Connected headset information; not consumed yet."""


@dataclass(frozen=True)
class CommandHistory(InboundMessage):
    """Latest command sent by the server; not consumed yet."""


@dataclass(frozen=True)
class ErrorMessage(InboundMessage):
    pass


@dataclass(frozen=True)
class LegacyAuthError(InboundMessage):
    """Plain-string "not authenticated" sent by older servers."""


@dataclass(frozen=True)
class UnknownMessage(InboundMessage):
    pass
