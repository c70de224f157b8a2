"""Topic utilities for MQTT."""

import re

from constants import HA_DISCOVERY_DEVICE_CLASS


def slugify(name: str) -> str:
    """Lowercase, with runs of anything but letters and digits collapsed to '_'."""
    slug = re.sub(r"[^a-z0-9]+", "_", name.strip().lower()).strip("_")
    return slug or "rgbstrip"


def topic_command(base: str, slug: str, characteristic: str) -> str:
    """Get MQTT topic for writing a characteristic."""
    return f"{base}/{slug}/{characteristic}/set"


def topic_get(base: str, slug: str, characteristic: str) -> str:
    """Get MQTT topic for requesting a fresh read."""
    return f"{base}/{slug}/{characteristic}/get"


def topic_state(base: str, slug: str, characteristic: str) -> str:
    """Get MQTT topic for characteristic state."""
    return f"{base}/{slug}/{characteristic}/state"


def topic_available(base: str, slug: str) -> str:
    """Get MQTT topic for accessory availability."""
    return f"{base}/{slug}/available"


def ha_discovery_topic(slug: str) -> str:
    """Get Home Assistant discovery topic for the accessory."""
    return f"homeassistant/{HA_DISCOVERY_DEVICE_CLASS}/rgbstrip_{slug}/config"
