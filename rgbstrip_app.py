"""Host application: runs the light strip accessory and exposes it over MQTT."""

import asyncio
import json
import logging
import os
from typing import Any, Dict, Optional

import yaml

import rgb_strip
from constants import (
    ACCESSORY_NAME,
    CONFIG_ENV_VAR,
    DEFAULT_BASE_TOPIC,
    DEFAULT_CONFIG_FILE,
    DEFAULT_POLL_INTERVAL,
    FIELD_BRIGHTNESS,
    FIELD_POWER,
    MQTT_PAYLOAD_OFF,
    MQTT_PAYLOAD_OFFLINE,
    MQTT_PAYLOAD_ON,
    MQTT_PAYLOAD_ONLINE,
)
from hap_model import (
    AccessoryAPI,
    Characteristic,
    CharacteristicReadError,
    CharacteristicWriteError,
    Service,
)
from models import AccessoryConfig, MqttCommand
from mqtt_bridge import MqttBridge
from topics import (
    ha_discovery_topic,
    slugify,
    topic_available,
    topic_command,
    topic_state,
)

logger = logging.getLogger(__name__)


def load_config(path: Optional[str] = None) -> Dict[str, Any]:
    """Load and validate configuration file."""
    path = path or os.environ.get(CONFIG_ENV_VAR, DEFAULT_CONFIG_FILE)
    if not os.path.exists(path):
        raise FileNotFoundError(
            f"Configuration file '{path}' not found. "
            f"Please copy '{DEFAULT_CONFIG_FILE}.example' to '{path}' "
            f"and update with your settings."
        )

    try:
        with open(path, "r") as f:
            config = yaml.safe_load(f)
    except yaml.YAMLError as e:
        raise ValueError(f"Invalid YAML in '{path}': {e}")

    if not config:
        raise ValueError(f"'{path}' is empty")

    # Validate required sections
    if "mqtt" not in config:
        raise ValueError("Missing 'mqtt' section in configuration")
    if "accessory" not in config:
        raise ValueError("Missing 'accessory' section in configuration")

    # Validate required keys
    mqtt_config = config.get("mqtt") or {}
    if "host" not in mqtt_config:
        raise ValueError("Missing 'mqtt.host' in configuration")
    if "port" not in mqtt_config:
        raise ValueError("Missing 'mqtt.port' in configuration")

    accessory_config = config.get("accessory") or {}
    for key in ("name", "ip", "port"):
        if key not in accessory_config:
            raise ValueError(f"Missing 'accessory.{key}' in configuration")

    return config


def format_value(characteristic: str, value: Any) -> str:
    """MQTT payload for a characteristic value."""
    if characteristic == FIELD_POWER:
        return MQTT_PAYLOAD_ON if value else MQTT_PAYLOAD_OFF
    return str(value)


class RGBStripBridge:
    """Main bridge application."""

    def __init__(self, config: Dict[str, Any]):
        self.loop = asyncio.get_running_loop()
        self.cmd_queue: asyncio.Queue[MqttCommand] = asyncio.Queue()

        mqtt_config = config["mqtt"]
        self.accessory_config = AccessoryConfig.from_dict(config["accessory"])
        self.slug = slugify(self.accessory_config.name)
        self.base_topic = mqtt_config.get("base_topic", DEFAULT_BASE_TOPIC)
        self.poll_interval = int(config.get("poll_interval", DEFAULT_POLL_INTERVAL))

        self.mqtt = MqttBridge(
            self.loop,
            self.cmd_queue,
            mqtt_config["host"],
            int(mqtt_config["port"]),
            self.base_topic,
            self.slug,
        )

        self.api = AccessoryAPI()
        rgb_strip.register(self.api)
        self.accessory = self.api.create(
            ACCESSORY_NAME,
            logging.getLogger(f"rgbstrip.{self.slug}"),
            self.accessory_config,
        )
        light = next(s for s in self.accessory.get_services() if s.kind == Service.LIGHTBULB)
        self.characteristics: Dict[str, Characteristic] = {
            FIELD_POWER: light.get_characteristic(Characteristic.ON),
            FIELD_BRIGHTNESS: light.get_characteristic(Characteristic.BRIGHTNESS),
        }

        # Track last published values to avoid spamming
        self.last_state: Dict[str, Any] = {}
        self.last_avail: Optional[bool] = None

        self.running = True

    async def start(self):
        """Start the bridge."""
        self.mqtt.connect()
        logger.info("MQTT bridge connected")

        self.publish_ha_discovery()
        await self.refresh_state()

        self._tasks = [
            asyncio.create_task(self.periodic_refresh_task(), name="refresh"),
            asyncio.create_task(self.command_consumer_task(), name="cmd_consumer"),
        ]

        # Wait until tasks finish (they won't until stopped)
        await asyncio.gather(*self._tasks)

    async def stop(self):
        """Stop the bridge."""
        if not self.running:
            return
        self.running = False

        # Cancel tasks first
        tasks = getattr(self, "_tasks", [])
        for t in tasks:
            t.cancel()
        for t in tasks:
            try:
                await t
            except asyncio.CancelledError:
                pass
            except Exception as e:
                logger.debug(f"Task ended with error during shutdown: {e}")

        # Then close resources
        try:
            await self.accessory.close()
        except Exception as e:
            logger.warning(f"Error closing accessory: {e}")
        try:
            self.mqtt.close()
        except Exception as e:
            logger.warning(f"Error closing MQTT connection: {e}")

    def publish_ha_discovery(self):
        """Publish Home Assistant discovery message."""
        cfg = self.accessory_config
        payload = {
            "name": cfg.name,
            "unique_id": f"rgbstrip_{self.slug}",
            "command_topic": topic_command(self.base_topic, self.slug, FIELD_POWER),
            "state_topic": topic_state(self.base_topic, self.slug, FIELD_POWER),
            "brightness_command_topic": topic_command(self.base_topic, self.slug, FIELD_BRIGHTNESS),
            "brightness_state_topic": topic_state(self.base_topic, self.slug, FIELD_BRIGHTNESS),
            "brightness_scale": 100,
            "availability_topic": topic_available(self.base_topic, self.slug),
            "payload_available": MQTT_PAYLOAD_ONLINE,
            "payload_not_available": MQTT_PAYLOAD_OFFLINE,
            "payload_on": MQTT_PAYLOAD_ON,
            "payload_off": MQTT_PAYLOAD_OFF,
            "device": {
                "identifiers": [f"rgbstrip_{self.slug}"],
                "name": cfg.name,
                "manufacturer": cfg.manufacturer,
                "model": cfg.model,
                "serial_number": cfg.serial_number,
            },
        }

        self.mqtt.publish_retained(ha_discovery_topic(self.slug), json.dumps(payload))
        logger.debug(f"Home Assistant discovery published for {cfg.name}")

    def publish_value(self, characteristic: str, value: Any):
        """Publish a characteristic value if it changed."""
        if characteristic in self.last_state and self.last_state[characteristic] == value:
            return
        self.last_state[characteristic] = value
        payload = format_value(characteristic, value)
        self.mqtt.publish_retained(topic_state(self.base_topic, self.slug, characteristic), payload)
        logger.info(f"Published {characteristic} state: {payload}")

    def publish_availability(self, available: bool):
        """Publish availability if it changed."""
        if self.last_avail == available:
            return
        self.last_avail = available
        payload = MQTT_PAYLOAD_ONLINE if available else MQTT_PAYLOAD_OFFLINE
        self.mqtt.publish_retained(topic_available(self.base_topic, self.slug), payload)
        logger.info(f"Published availability: {payload}")

    async def read(self, characteristic: str):
        """Issue a GET event and publish the result."""
        try:
            value = await self.characteristics[characteristic].handle_get()
        except CharacteristicReadError as e:
            logger.warning(f"Reading {characteristic} failed: {e}")
            self.publish_availability(False)
            return
        self.publish_availability(True)
        self.publish_value(characteristic, value)

    async def write(self, characteristic: str, value: Any):
        """Issue a SET event and publish the requested value."""
        try:
            await self.characteristics[characteristic].handle_set(value)
        except CharacteristicWriteError as e:
            logger.error(f"Writing {characteristic} failed: {e}")
            return
        # Optimistically publish desired state
        self.publish_value(characteristic, value)

    async def refresh_state(self):
        """Read every characteristic once."""
        for characteristic in self.characteristics:
            await self.read(characteristic)

    async def periodic_refresh_task(self):
        """Periodically issue GET events for all characteristics."""
        if self.poll_interval <= 0:
            logger.info("Polling disabled")
            return
        while self.running:
            await asyncio.sleep(self.poll_interval)
            if not self.running:
                break
            try:
                await self.refresh_state()
            except Exception as e:
                logger.error(f"State refresh error: {e}", exc_info=True)

    async def handle_command(self, cmd: MqttCommand):
        """Route one MQTT command to the accessory."""
        logger.info(f"Processing MQTT command: {cmd.action} {cmd.characteristic} {cmd.value}")
        if cmd.action == "get":
            await self.read(cmd.characteristic)
        elif cmd.action == "set":
            await self.write(cmd.characteristic, cmd.value)
        else:
            logger.warning(f"Unknown command action: {cmd.action}")

    async def command_consumer_task(self):
        """Consume commands from MQTT queue and send them to the accessory."""
        while self.running:
            cmd = await self.cmd_queue.get()
            try:
                await self.handle_command(cmd)
            except Exception as e:
                logger.error(f"Failed to process command {cmd}: {e}", exc_info=True)
