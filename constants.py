"""Constants for the RGB light strip bridge."""

# Accessory registration
ACCESSORY_NAME = "RGBLightStrip"

# Device fields and paths
FIELD_POWER = "power"
FIELD_BRIGHTNESS = "brightness"
FIELD_VALUE_PATH = "/fieldValue"

# Initial state
DEFAULT_POWER_ON = False
DEFAULT_BRIGHTNESS = 0
DEFAULT_COLOR_TEMPERATURE = 8

# Accessory information defaults
DEFAULT_MANUFACTURER = "ESP8266"
DEFAULT_MODEL = "V1.0"
DEFAULT_SERIAL_NUMBER = "xxxxxx1"

# Default configuration paths
DEFAULT_CONFIG_FILE = "rgbstrip.yaml"
DEFAULT_CONFIG_EXAMPLE_FILE = "rgbstrip.yaml.example"
CONFIG_ENV_VAR = "RGBSTRIP_CONFIG"

# Timeouts
DEVICE_REQUEST_TIMEOUT_MS = 300

# Refresh interval (seconds), host side only
DEFAULT_POLL_INTERVAL = 30

# MQTT topics and payloads
DEFAULT_BASE_TOPIC = "rgbstrip"
MQTT_PAYLOAD_ON = "ON"
MQTT_PAYLOAD_OFF = "OFF"
MQTT_PAYLOAD_ONLINE = "online"
MQTT_PAYLOAD_OFFLINE = "offline"

# Home Assistant Discovery
HA_DISCOVERY_DEVICE_CLASS = "light"

# MQTT settings
MQTT_QOS = 1
MQTT_KEEPALIVE = 60
