"""Data models and dataclasses."""

from dataclasses import dataclass
from typing import Any, Dict, Optional, Union

from constants import (
    DEFAULT_BRIGHTNESS,
    DEFAULT_COLOR_TEMPERATURE,
    DEFAULT_MANUFACTURER,
    DEFAULT_MODEL,
    DEFAULT_POWER_ON,
    DEFAULT_SERIAL_NUMBER,
    DEVICE_REQUEST_TIMEOUT_MS,
)


@dataclass
class DeviceState:
    """Believed state of the light strip."""
    power_on: bool = DEFAULT_POWER_ON
    brightness: Union[int, float] = DEFAULT_BRIGHTNESS  # 0..100, not clamped
    color_temperature: int = DEFAULT_COLOR_TEMPERATURE  # never sent to the device


@dataclass(frozen=True)
class DeviceEndpoint:
    """Where the ESP8266 controller listens."""
    host: str
    port: str

    @property
    def base_url(self) -> str:
        return f"http://{self.host}:{self.port}"


@dataclass
class AccessoryConfig:
    """Configuration record handed to the accessory by the host."""
    name: str
    ip: str
    port: str
    timeout_ms: int = DEVICE_REQUEST_TIMEOUT_MS
    acknowledged_writes: bool = False
    manufacturer: str = DEFAULT_MANUFACTURER
    model: str = DEFAULT_MODEL
    serial_number: str = DEFAULT_SERIAL_NUMBER

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "AccessoryConfig":
        """Build from a config mapping; name, ip and port are required."""
        for key in ("name", "ip", "port"):
            if key not in data:
                raise ValueError(f"Missing 'accessory.{key}' in configuration")
        return cls(
            name=str(data["name"]),
            ip=str(data["ip"]),
            port=str(data["port"]),
            timeout_ms=int(data.get("timeout_ms", DEVICE_REQUEST_TIMEOUT_MS)),
            acknowledged_writes=bool(data.get("acknowledged_writes", False)),
            manufacturer=str(data.get("manufacturer", DEFAULT_MANUFACTURER)),
            model=str(data.get("model", DEFAULT_MODEL)),
            serial_number=str(data.get("serial_number", DEFAULT_SERIAL_NUMBER)),
        )

    @property
    def endpoint(self) -> DeviceEndpoint:
        return DeviceEndpoint(host=self.ip, port=self.port)


@dataclass
class MqttCommand:
    """Command received from MQTT."""
    characteristic: str  # "power" | "brightness"
    action: str  # "get" | "set"
    value: Optional[Union[bool, int]] = None
