#!/usr/bin/env python3
import argparse
import asyncio
import logging
from pathlib import Path
from typing import Optional, Tuple

from .config import Config, load_config_from_json
from .event_bus import EventBus
from .mqtt_controller import MqttController
from .surface import BridgeInstance

_LOGGER = logging.getLogger(__name__)
_MODULE_DIR = Path(__file__).parent


# -----------------------------------------------------------------------------
# Main Application
# -----------------------------------------------------------------------------

async def main() -> None:
    # --- 1. Load Basics ---
    config, loop, event_bus = _init_basics()

    # --- 2. Build the bridge ---
    bridge = BridgeInstance(loop=loop, event_bus=event_bus, config=config)

    # --- 3. Optional MQTT control surface ---
    mqtt_controller = _init_mqtt(loop, event_bus, config, bridge)

    # --- 4. Connect and run until interrupted ---
    bridge.start()
    try:
        await asyncio.Event().wait()
    finally:
        _LOGGER.debug("Shutting down...")
        await bridge.stop()
        if mqtt_controller is not None:
            _LOGGER.debug("Stopping MQTT controller...")
            mqtt_controller.stop()

# -----------------------------------------------------------------------------
# Helper Functions
# -----------------------------------------------------------------------------

def _init_basics() -> Tuple[Config, asyncio.AbstractEventLoop, EventBus]:
    """Loads config, sets up logging, and creates loop/event bus."""
    parser = argparse.ArgumentParser(prog="vr_sync_bridge")
    parser.add_argument(
        "-c", "--config", type=Path, required=False,
        default=_MODULE_DIR / "config.json",
        help="Path to configuration.json file"
    )
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    config_path = args.config
    if not config_path.is_absolute():
        config_path = Path.cwd() / config_path
    config = load_config_from_json(config_path)

    if args.debug:
        config.app.debug = True

    logging.basicConfig(
        level=logging.DEBUG if config.app.debug else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    _LOGGER.info("Loading configuration from: %s", config_path)

    loop = asyncio.get_running_loop()
    event_bus = EventBus()

    return config, loop, event_bus


def _init_mqtt(
    loop: asyncio.AbstractEventLoop,
    event_bus: EventBus,
    config: Config,
    bridge: BridgeInstance,
) -> Optional[MqttController]:
    if not config.mqtt.enabled:
        return None

    mqtt_controller = MqttController(
        loop=loop,
        event_bus=event_bus,
        config=config.mqtt,
        app_name=config.app.name,
        run_action=bridge.run_action,
    )
    mqtt_controller.start()
    return mqtt_controller


def run() -> None:
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    run()
