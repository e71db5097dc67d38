from __future__ import annotations

import logging
import uuid
from typing import Any

from .connection import ConnectionManager
from .event_bus import EventBus
from .models import (
    CalibrateMessage,
    CommandMessage,
    PlaylistItem,
    TextMessage,
    media_type_from_index,
)

_LOGGER = logging.getLogger(__name__)


class CommandFacade:
    """High level operations issued by the control surface."""

    def __init__(self, *, connection: ConnectionManager, event_bus: EventBus) -> None:
        self._connection = connection
        self._event_bus = event_bus

    def play(self, media_id: Any, media_type: str, loop: bool, play_delay_ms: int) -> None:
        """
        Play one media item on all devices.

        The playStartedTrigger variable gets a fresh token once the delay has
        elapsed (immediately when the delay is 0), so automations can follow
        the actual start rather than the request.
        """
        play_delay_ms = int(play_delay_ms)
        media_type = getattr(media_type, "value", media_type)
        _LOGGER.info(
            "Playing media id=%s type=%s loop=%s delay_ms=%s",
            media_id,
            media_type,
            loop,
            play_delay_ms,
        )

        item = PlaylistItem(type=str(media_type), identifier=str(media_id), play_delay_ms=play_delay_ms)
        self._connection.send(CommandMessage(playlist=(item,), loop=bool(loop)))

        timer = self._connection.play_started_timer
        timer.cancel()
        if play_delay_ms > 0:
            timer.schedule(play_delay_ms / 1000.0, self._play_started)
        else:
            self._play_started()

    def play_by_index(self, media_id: Any, type_index: Any, loop: bool, play_delay_ms: int) -> None:
        """Same as play() with the media type given as a dropdown index."""
        self.play(media_id, media_type_from_index(type_index).value, loop, play_delay_ms)

    def stop(self) -> None:
        _LOGGER.info("Stopping media")
        # A stop is a command with an empty playlist
        self._connection.send(CommandMessage(playlist=(), loop=False))
        self._connection.play_started_timer.cancel()

    def send_text(self, text: Any) -> None:
        _LOGGER.info("Sending text message: %s", text)
        self._connection.send(TextMessage(text=str(text)))

    def calibrate(self) -> None:
        _LOGGER.info("Calibrating viewpoint")
        self._connection.send(CalibrateMessage())

    def _play_started(self) -> None:
        token = str(uuid.uuid4())
        _LOGGER.debug("Play started (trigger=%s)", token)
        self._event_bus.publish("variables_updated", {"values": {"playStartedTrigger": token}})
