from __future__ import annotations

import logging
from typing import Any, Callable, Dict, Type

from .codec import MessageCodec
from .event_bus import EventBus
from .models import (
    CommandHistory,
    ErrorMessage,
    InboundMessage,
    LegacyAuthError,
    MediaUpdate,
    ServerPing,
    Session,
    StatusUpdate,
)

_LOGGER = logging.getLogger(__name__)


class ProtocolDispatcher:
    """Routes decoded server messages to handlers that update the Session."""

    def __init__(self, *, event_bus: EventBus, codec: MessageCodec) -> None:
        self._event_bus = event_bus
        self._codec = codec
        self._handlers: Dict[Type[InboundMessage], Callable[[Any, Session], None]] = {
            ServerPing: self._on_server_ping,
            MediaUpdate: self._on_media_update,
            StatusUpdate: self._on_status_update,
            CommandHistory: self._on_command_history,
            ErrorMessage: self._on_protocol_error,
            LegacyAuthError: self._on_protocol_error,
        }

    def on_message(self, wire: Any, session: Session) -> InboundMessage:
        message = self._codec.decode(wire)
        handler = self._handlers.get(type(message))
        if handler is None:
            _LOGGER.debug("Ignoring message type=%r", message.type)
        else:
            handler(message, session)
        return message

    # ------------------------------------------------------------------
    # Handlers
    # ------------------------------------------------------------------

    def _on_server_ping(self, message: ServerPing, session: Session) -> None:
        session.is_trial = message.is_trial
        session.user_limit = message.user_limit
        session.server_version = message.server_version
        session.minimum_version = message.minimum_version
        session.preferred_version = message.preferred_version

        if not session.connected:
            session.connected = True
            _LOGGER.info("Server ping received; session marked connected")
            self._event_bus.publish("check_feedbacks")

    def _on_media_update(self, message: MediaUpdate, session: Session) -> None:
        session.media = list(message.media)
        labels = [entry.label for entry in session.media]
        _LOGGER.debug("Media list updated (%d item(s))", len(labels))
        self._event_bus.publish("variables_updated", {"values": {"media": labels}})

    def _on_status_update(self, message: StatusUpdate, session: Session) -> None:
        # Connected headset details; nothing on the surface consumes them yet
        _LOGGER.debug("StatusUpdate received (not handled)")

    def _on_command_history(self, message: CommandHistory, session: Session) -> None:
        # Would let the surface recover playback status after a reconnect
        _LOGGER.debug("CommandHistory received (not handled)")

    def _on_protocol_error(self, message: InboundMessage, session: Session) -> None:
        # No status change; operators can subscribe to protocol_error for visibility
        self._event_bus.publish(
            "protocol_error",
            {"kind": type(message).__name__, "message": message.raw},
        )
