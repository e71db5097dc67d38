"""Configuration models for the bridge."""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

import logging
_LOGGER = logging.getLogger(__name__)

# -----------------------------------------------------------------------------
# Configuration Dataclasses
# -----------------------------------------------------------------------------

@dataclass
class ServerConfig:
    """Settings for the VR Sync server connection."""
    host: str = "http://172.28.1.9"  # default VR Sync Box address
    port: int = 7327
    license_key: str = ""
    log_incoming_messages: bool = False
    # Outgoing messages contain the license key
    log_outgoing_messages: bool = False
    open_timeout_seconds: float = 6.0
    reconnect_delay_max_seconds: float = 10.0
    socketio_path: str = "socket.io"


@dataclass
class HeartbeatConfig:
    """Keep-alive timing; the interval must stay well inside the server timeout."""
    interval_seconds: float = 3.0
    server_timeout_seconds: float = 5.0


@dataclass
class MqttConfig:
    """Settings for the MQTT control surface."""
    enabled: bool = False
    host: Optional[str] = None
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None


@dataclass
class AppConfig:
    """General application settings."""
    name: str
    debug: bool = False


@dataclass
class Config:
    """Main configuration object."""
    app: AppConfig
    server: ServerConfig = field(default_factory=ServerConfig)
    heartbeat: HeartbeatConfig = field(default_factory=HeartbeatConfig)
    mqtt: MqttConfig = field(default_factory=MqttConfig)

# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def _parse_port(value) -> int:
    port = int(value)
    if not 1 <= port <= 65535:
        raise ValueError(f"Port out of range: {port}")
    return port


def config_from_dict(raw_data: dict) -> Config:
    """Builds a Config from already-parsed JSON data."""
    if "app" not in raw_data:
        raise ValueError(
            "Configuration file must contain an 'app' section with a 'name'."
        )

    app_config = AppConfig(**raw_data.get("app", {}))
    server_config = ServerConfig(**raw_data.get("server", {}))
    heartbeat_config = HeartbeatConfig(**raw_data.get("heartbeat", {}))
    mqtt_config = MqttConfig(**raw_data.get("mqtt", {}))

    # Companion-style configs hand the port over as text
    server_config.port = _parse_port(server_config.port)
    mqtt_config.port = _parse_port(mqtt_config.port)

    if mqtt_config.host:
        mqtt_config.enabled = True

    return Config(
        app=app_config,
        server=server_config,
        heartbeat=heartbeat_config,
        mqtt=mqtt_config,
    )


def load_config_from_json(config_path: Path) -> Config:
    """Loads configuration from a JSON file and populates dataclasses."""
    try:
        with open(config_path, "r", encoding="utf-8") as f:
            raw_data = json.load(f)
    except FileNotFoundError:
        _LOGGER.critical("Configuration file not found at: %s", config_path)
        raise
    except json.JSONDecodeError as e:
        _LOGGER.critical("Error parsing configuration file: %s", e)
        raise

    return config_from_dict(raw_data)
