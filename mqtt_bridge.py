"""MQTT bridge implementation."""

import asyncio
import logging
from typing import Optional

import paho.mqtt.client as mqtt

from constants import FIELD_BRIGHTNESS, FIELD_POWER, MQTT_KEEPALIVE, MQTT_QOS
from models import MqttCommand
from topics import topic_command, topic_get

logger = logging.getLogger(__name__)


def parse_command(characteristic: str, action: str, payload: str) -> Optional[MqttCommand]:
    """
    Turn one MQTT message into a command, or None if it makes no sense.
    Payload is expected stripped and upper-cased.
    """
    if characteristic not in (FIELD_POWER, FIELD_BRIGHTNESS):
        return None
    if action == "get":
        return MqttCommand(characteristic=characteristic, action="get")
    if action != "set":
        return None

    if characteristic == FIELD_POWER:
        if payload in ("ON", "1", "TRUE"):
            return MqttCommand(characteristic=characteristic, action="set", value=True)
        if payload in ("OFF", "0", "FALSE"):
            return MqttCommand(characteristic=characteristic, action="set", value=False)
        return None

    try:
        value = int(payload)
    except ValueError:
        return None
    return MqttCommand(characteristic=characteristic, action="set", value=value)


class MqttBridge:
    """Bridge between MQTT and asyncio event loop."""

    def __init__(
        self,
        loop: asyncio.AbstractEventLoop,
        cmd_queue: "asyncio.Queue[MqttCommand]",
        host: str,
        port: int,
        base_topic: str,
        slug: str,
    ):
        self.loop = loop
        self.cmd_queue = cmd_queue
        self.host = host
        self.port = port
        self.base_topic = base_topic
        self.slug = slug
        self.client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2)

        self.client.on_connect = self._on_connect
        self.client.on_message = self._on_message

    @property
    def subscriptions(self):
        return [
            topic_command(self.base_topic, self.slug, "+"),
            topic_get(self.base_topic, self.slug, "+"),
        ]

    def connect(self):
        """Connect to MQTT broker."""
        try:
            self.client.connect(self.host, self.port, keepalive=MQTT_KEEPALIVE)
            self.client.loop_start()
            logger.info(f"Connected to MQTT broker at {self.host}:{self.port}")
        except Exception as e:
            logger.error(f"Failed to connect to MQTT broker: {e}")
            raise

    def close(self):
        """Close MQTT connection."""
        try:
            self.client.loop_stop()
        finally:
            self.client.disconnect()

    def publish_retained(self, topic: str, payload: str):
        """Publish a retained message."""
        # retained so the hub sees the last state after a restart
        self.client.publish(topic, payload=payload, qos=MQTT_QOS, retain=True)
        logger.debug(f"Published to {topic}: {payload}")

    def _on_connect(self, client, userdata, flags, reason_code, properties):
        """Handle MQTT connection."""
        if reason_code == 0:
            logger.info("Connected to MQTT broker successfully")
        else:
            logger.warning(f"Connected to MQTT broker with code {reason_code}")
        for topic in self.subscriptions:
            client.subscribe(topic, qos=MQTT_QOS)
            logger.info(f"Subscribed to: {topic}")

    def _on_message(self, client, userdata, msg):
        """Handle incoming MQTT message."""
        try:
            topic = msg.topic  # <base>/<slug>/<characteristic>/<set|get>
            payload = (msg.payload or b"").decode("utf-8", errors="replace").strip().upper()

            parts = topic.split("/")
            if len(parts) != 4 or parts[0] != self.base_topic or parts[1] != self.slug:
                logger.debug(f"Ignoring malformed topic: {topic}")
                return

            cmd = parse_command(parts[2], parts[3], payload)
            if cmd is None:
                logger.warning(f"Unknown payload '{payload}' on {topic}")
                return

            logger.info(f"Received command from MQTT: {cmd.action} {cmd.characteristic} {cmd.value}")
            # push into asyncio loop safely from MQTT thread
            self.loop.call_soon_threadsafe(self.cmd_queue.put_nowait, cmd)

        except Exception as e:
            logger.error(f"Error handling MQTT message: {e}", exc_info=True)
