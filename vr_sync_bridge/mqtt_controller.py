import json
import logging
from typing import Any, Callable, Dict, Optional

import paho.mqtt.client as mqtt

from .config import MqttConfig
from .event_bus import EventBus, EventHandler, subscribe

_LOGGER = logging.getLogger(__name__)


def slugify_device_id(name: str) -> str:
    return name.strip().lower().replace(" ", "_")


class MqttController(EventHandler):
    """Exposes the bridge actions, connection feedback and variables over MQTT."""

    def __init__(
        self,
        *,
        loop: Any,
        event_bus: EventBus,
        config: MqttConfig,
        app_name: str,
        run_action: Callable[[str, Optional[Dict[str, Any]]], None],
        client: Optional[Any] = None,
    ):
        self._loop = loop
        self._config = config
        self._run_action = run_action

        self._device_id = slugify_device_id(app_name)
        self._topic_prefix = f"vrsync/{self._device_id}"
        self._action_prefix = f"{self._topic_prefix}/action/"
        self.topics = {
            "availability": f"{self._topic_prefix}/availability",
            "connected": f"{self._topic_prefix}/connected",
            "status": f"{self._topic_prefix}/status",
            "action": f"{self._action_prefix}+/set",
        }

        if client is None:
            client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)
        self._client = client
        self._client.on_connect = self._on_connect
        self._client.on_message = self._on_message

        super().__init__(event_bus)

    def start(self):
        try:
            if self._config.username:
                self._client.username_pw_set(self._config.username, self._config.password)

            # Retained "offline" if the bridge dies without a clean stop
            self._client.will_set(self.topics["availability"], "offline", retain=True)

            _LOGGER.debug("Connecting to MQTT broker at %s:%s", self._config.host, self._config.port)
            self._client.connect(self._config.host, self._config.port, 60)
            self._client.loop_start()
        except Exception:
            _LOGGER.exception("Failed to connect to MQTT broker")

    def stop(self):
        self.detach()
        self._client.publish(self.topics["availability"], "offline", retain=True)
        self._client.loop_stop()
        self._client.disconnect()
        _LOGGER.debug("Disconnected from MQTT broker")

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        if getattr(reason_code, "is_failure", reason_code != 0):
            _LOGGER.error("Failed to connect to MQTT, reason code %s", reason_code)
            return

        _LOGGER.info("Connected to MQTT broker")
        client.subscribe(self.topics["action"])
        client.publish(self.topics["availability"], "online", retain=True)

    def _on_message(self, client, userdata, msg):
        topic = msg.topic
        _LOGGER.debug("Received MQTT message on topic %s", topic)

        if not (topic.startswith(self._action_prefix) and topic.endswith("/set")):
            return

        action_id = topic[len(self._action_prefix):-len("/set")]
        payload_str = msg.payload.decode() if msg.payload else ""

        options: Dict[str, Any] = {}
        if payload_str.strip():
            try:
                options = json.loads(payload_str)
            except json.JSONDecodeError:
                _LOGGER.warning("Ignoring action %s with invalid JSON options: %s", action_id, payload_str)
                return
            if not isinstance(options, dict):
                _LOGGER.warning("Ignoring action %s: options must be a JSON object", action_id)
                return

        # paho runs callbacks on its own thread
        self._loop.call_soon_threadsafe(self._dispatch_action, action_id, options)

    def _dispatch_action(self, action_id: str, options: Dict[str, Any]) -> None:
        try:
            self._run_action(action_id, options)
        except KeyError:
            _LOGGER.warning("Unknown action requested over MQTT: %s", action_id)
        except (IndexError, ValueError, TypeError) as e:
            _LOGGER.warning("Action %s rejected: %s", action_id, e)

    @subscribe
    def feedback_changed(self, data: dict):
        self._client.publish(self.topics["connected"], "ON" if data.get("value") else "OFF", retain=True)

    @subscribe
    def connection_status(self, data: dict):
        self._client.publish(self.topics["status"], data.get("state", "unknown"), retain=True)

    @subscribe
    def variable_changed(self, data: dict):
        name = data.get("name")
        value = data.get("value")
        if not name:
            return
        if not isinstance(value, str):
            value = json.dumps(value)
        self._client.publish(f"{self._topic_prefix}/variable/{name}", value, retain=True)
