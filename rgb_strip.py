"""RGB light strip accessory.

Answers GET/SET events for the On and Brightness characteristics by talking to
the ESP8266 controller. Reads always go to the device; writes update the cached
state right away and are sent without waiting for the device (unless
``acknowledged_writes`` is enabled).
"""

import logging
import math
from typing import Any, Callable, Dict, List, Optional, Tuple, Union

from constants import ACCESSORY_NAME, FIELD_BRIGHTNESS, FIELD_POWER
from esp_device import ESPDevice, MalformedResponseError, TransportError
from models import AccessoryConfig, DeviceState

Callback = Callable[..., None]


def decode_power(text: str) -> bool:
    """Only the literal "0" means off."""
    return text != "0"


def encode_power(on: bool) -> str:
    return f"{FIELD_POWER}?value={1 if on else 0}"


def decode_brightness(text: str) -> Union[int, float]:
    """
    Parse the brightness body. Numbers are passed through without clamping;
    anything that is not a finite number raises MalformedResponseError.
    """
    try:
        number = float(text)
    except ValueError:
        raise MalformedResponseError(f"Brightness is not a number: {text!r}") from None
    if not math.isfinite(number):
        raise MalformedResponseError(f"Brightness is not a finite number: {text!r}")
    return int(number) if number.is_integer() else number


def encode_brightness(value: Union[int, float]) -> str:
    return f"{FIELD_BRIGHTNESS}?value={value}"


def _describe_power(on: bool) -> str:
    return "ON" if on else "OFF"


# field -> (DeviceState attribute, decoder, describer)
_FIELDS: Dict[str, Tuple[str, Callable[[str], Any], Callable[[Any], str]]] = {
    FIELD_POWER: ("power_on", decode_power, _describe_power),
    FIELD_BRIGHTNESS: ("brightness", decode_brightness, str),
}


class RGBLightStrip:
    """Accessory for a single ESP8266 light strip."""

    def __init__(self, log: logging.Logger, config: Union[AccessoryConfig, Dict[str, Any]], api):
        self.log = log
        if not isinstance(config, AccessoryConfig):
            config = AccessoryConfig.from_dict(config)
        self.config = config
        self.name = config.name
        self.state = DeviceState()
        self.device = ESPDevice(config.endpoint, timeout_ms=config.timeout_ms, log=log)

        self.log.info("RGBLightStrip: constructor")
        self.log.info(f"IP: {config.ip}")
        self.log.info(f"Port: {config.port}")

        self._seed(FIELD_POWER)
        self._seed(FIELD_BRIGHTNESS)

        hap = api.hap
        self.light_service = hap.Service.lightbulb(self.name)
        (
            self.light_service.get_characteristic(hap.Characteristic.ON)
            .on_get(self.get_power)
            .on_set(self.set_power)
        )
        (
            self.light_service.get_characteristic(hap.Characteristic.BRIGHTNESS)
            .on_get(self.get_brightness)
            .on_set(self.set_brightness)
        )

        self.information_service = (
            hap.Service.accessory_information()
            .set_characteristic(hap.Characteristic.MANUFACTURER, config.manufacturer)
            .set_characteristic(hap.Characteristic.MODEL, config.model)
            .set_characteristic(hap.Characteristic.SERIAL_NUMBER, config.serial_number)
        )

        self.log.info("RGBLightStrip finished initializing!")

    # --- reads ---

    def _seed(self, field: str) -> None:
        """One-shot startup fetch; failures are only logged."""
        try:
            self.device.spawn(self._refresh, field, None, "Initial")
        except RuntimeError as e:
            self.log.error(f"exception during initial {field} http get: {e}")

    async def _refresh(self, field: str, callback: Optional[Callback] = None, label: str = "Current") -> None:
        attr, decode, describe = _FIELDS[field]
        try:
            value = decode(await self.device.fetch_field(field))
        except (TransportError, MalformedResponseError) as e:
            self.log.error(f"Following error occurred while reading {field}: {e}")
            if callback is not None:
                callback()
            return
        setattr(self.state, attr, value)
        self.log.info(f"{label} {field} was returned: {describe(value)}")
        if callback is not None:
            callback(None, value)

    def _get(self, field: str, callback: Callback) -> None:
        try:
            self.device.spawn(self._refresh, field, callback)
        except RuntimeError as e:
            self.log.error(f"exception during {field} http get: {e}")
            callback()

    def get_power(self, callback: Callback) -> None:
        self._get(FIELD_POWER, callback)

    def get_brightness(self, callback: Callback) -> None:
        self._get(FIELD_BRIGHTNESS, callback)

    # --- writes ---

    def _write(self, path: str, callback: Callback) -> None:
        if not self.config.acknowledged_writes:
            self.device.send_command(path)
            callback()
            return
        try:
            self.device.spawn(self._write_acknowledged, path, callback)
        except RuntimeError as e:
            self.log.error(f"exception during http post of {path}: {e}")
            callback(e)

    async def _write_acknowledged(self, path: str, callback: Callback) -> None:
        try:
            await self.device.post_command(path)
        except TransportError as e:
            self.log.error(f"Device did not acknowledge {path}: {e}")
            callback(e)
            return
        callback()

    def set_power(self, value: Any, callback: Callback) -> None:
        self.state.power_on = bool(value)
        self.log.info(f"Switch state was set to: {_describe_power(self.state.power_on)}")
        self._write(encode_power(self.state.power_on), callback)

    def set_brightness(self, value: Any, callback: Callback) -> None:
        self.state.brightness = value
        self.log.info(f"Brightness was set to: {value}")
        self._write(encode_brightness(value), callback)

    # --- lifecycle ---

    def identify(self) -> None:
        """Called by the host when asked to identify the accessory, typically while pairing."""
        self.log.info("RGBLightStrip Identify!")

    def get_services(self) -> List:
        self.log.info("RGBLightStrip: get_services()")
        return [self.information_service, self.light_service]

    async def wait_pending(self) -> None:
        await self.device.wait_pending()

    async def close(self) -> None:
        await self.device.close()


def register(api) -> None:
    """Plugin entry point, called once by the host when the module is loaded."""
    api.register_accessory(ACCESSORY_NAME, RGBLightStrip)
