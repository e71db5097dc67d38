"""Control surface: actions, feedbacks and variables.

This is the layer a button panel talks to. Actions call into the command
facade, the connection feedback reads the live Session, and variables
collect the values the core publishes on the event bus.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from .codec import MessageCodec
from .commands import CommandFacade
from .config import Config
from .connection import ConnectionManager, Endpoint
from .dispatcher import ProtocolDispatcher
from .event_bus import EventBus, EventHandler, subscribe

_LOGGER = logging.getLogger(__name__)

CONNECTION_FEEDBACK_ID = "ChannelState"

# -----------------------------------------------------------------------------
# Variables
# -----------------------------------------------------------------------------


class VariableStore(EventHandler):
    """Holds the published variable values (media, playStartedTrigger)."""

    def __init__(self, event_bus: EventBus) -> None:
        self.values: Dict[str, Any] = {"media": [], "playStartedTrigger": None}
        super().__init__(event_bus)

    def get(self, name: str) -> Any:
        return self.values.get(name)

    @subscribe
    def variables_updated(self, data: dict) -> None:
        for name, value in (data.get("values") or {}).items():
            self.values[name] = value
            self.event_bus.publish("variable_changed", {"name": name, "value": value})


# -----------------------------------------------------------------------------
# Feedbacks
# -----------------------------------------------------------------------------


class ConnectionStatusFeedback(EventHandler):
    """Boolean feedback that follows Session.connected."""

    def __init__(self, event_bus: EventBus, connection: ConnectionManager) -> None:
        self._connection = connection
        self.value: Optional[bool] = None
        super().__init__(event_bus)

    def evaluate(self) -> bool:
        return bool(self._connection.session.connected)

    @subscribe
    def check_feedbacks(self, _data: Optional[dict] = None) -> None:
        value = self.evaluate()
        _LOGGER.debug("Updating connection status feedback: %s", value)
        if value == self.value:
            return
        self.value = value
        self.event_bus.publish(
            "feedback_changed",
            {"feedback_id": CONNECTION_FEEDBACK_ID, "value": value},
        )


# -----------------------------------------------------------------------------
# Actions
# -----------------------------------------------------------------------------


@dataclass(frozen=True)
class ActionDefinition:
    name: str
    callback: Callable[[CommandFacade, Dict[str, Any]], None]
    defaults: Dict[str, Any] = field(default_factory=dict)


_TRUE_STRINGS = ("true", "1", "yes", "on")
_FALSE_STRINGS = ("false", "0", "no", "off", "")


def _parse_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, int) and value in (0, 1):
        return bool(value)
    if isinstance(value, str):
        text = value.strip().lower()
        if text in _TRUE_STRINGS:
            return True
        if text in _FALSE_STRINGS:
            return False
    raise ValueError(f"Not a boolean: {value!r}")


def _play(commands: CommandFacade, options: Dict[str, Any]) -> None:
    # The server wants the media type label, not the dropdown index
    commands.play_by_index(
        options["id"],
        options["type"],
        _parse_bool(options["loop"]),
        int(options["playDelayMs"]),
    )


ACTIONS: Dict[str, ActionDefinition] = {
    "play_action": ActionDefinition(
        name="Play",
        callback=_play,
        defaults={
            "id": "0",
            "type": "2",  # CloudVideo
            "loop": False,
            "playDelayMs": 5000,
        },
    ),
    "stop_action": ActionDefinition(
        name="Stop",
        callback=lambda commands, _options: commands.stop(),
    ),
    "sendTextMessage_action": ActionDefinition(
        name="Send Text Message",
        callback=lambda commands, options: commands.send_text(options["message"]),
        defaults={"message": ""},
    ),
    "calibrate_action": ActionDefinition(
        name="Calibrate Viewpoint",
        callback=lambda commands, _options: commands.calibrate(),
    ),
}


def run_action(commands: CommandFacade, action_id: str, options: Optional[Dict[str, Any]] = None) -> None:
    """Run one action with its defaults filled in. Unknown ids raise KeyError."""
    action = ACTIONS[action_id]
    merged = dict(action.defaults)
    merged.update(options or {})
    _LOGGER.debug("Running action %s (%s)", action_id, action.name)
    action.callback(commands, merged)


# -----------------------------------------------------------------------------
# Bridge instance
# -----------------------------------------------------------------------------


class BridgeInstance:
    """Wires the core components to the control surface for one config."""

    def __init__(
        self,
        *,
        loop: asyncio.AbstractEventLoop,
        event_bus: EventBus,
        config: Config,
        client_factory: Optional[Callable[[], Any]] = None,
    ) -> None:
        self.loop = loop
        self.event_bus = event_bus
        self.config = config

        self.codec = MessageCodec(license_code=config.server.license_key)
        self._apply_logging_flags(config)

        self.dispatcher = ProtocolDispatcher(event_bus=event_bus, codec=self.codec)
        self.connection = ConnectionManager(
            loop=loop,
            event_bus=event_bus,
            codec=self.codec,
            dispatcher=self.dispatcher,
            endpoint=self._endpoint(config),
            heartbeat_interval_s=config.heartbeat.interval_seconds,
            server_timeout_s=config.heartbeat.server_timeout_seconds,
            open_timeout_s=config.server.open_timeout_seconds,
            reconnect_delay_max_s=config.server.reconnect_delay_max_seconds,
            socketio_path=config.server.socketio_path,
            client_factory=client_factory,
        )
        self.commands = CommandFacade(connection=self.connection, event_bus=event_bus)

        self.variables = VariableStore(event_bus)
        self.connection_feedback = ConnectionStatusFeedback(event_bus, self.connection)

    @staticmethod
    def _endpoint(config: Config) -> Endpoint:
        return Endpoint(host=config.server.host, port=config.server.port)

    def _apply_logging_flags(self, config: Config) -> None:
        self.codec.license_code = config.server.license_key
        self.codec.log_incoming = config.server.log_incoming_messages
        self.codec.log_outgoing = config.server.log_outgoing_messages

    def start(self) -> None:
        self.connection.open()

    async def stop(self) -> None:
        await self.connection.close()
        self.variables.detach()
        self.connection_feedback.detach()
        _LOGGER.debug("Bridge stopped")

    async def config_updated(self, config: Config) -> None:
        """Drop the current session and reconnect with the new settings."""
        _LOGGER.info("Configuration updated; reconnecting")
        await self.connection.close()
        self.config = config
        self._apply_logging_flags(config)
        self.connection.open(self._endpoint(config))

    def run_action(self, action_id: str, options: Optional[Dict[str, Any]] = None) -> None:
        run_action(self.commands, action_id, options)

    def action_ids(self) -> List[str]:
        return list(ACTIONS)
