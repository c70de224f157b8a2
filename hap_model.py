"""Accessory protocol object model.

Accessories never import this module directly; the host hands it to them as
``api.hap`` so services and characteristics are created through whatever the
host provides.
"""

import asyncio
import logging
from typing import Any, Callable, Dict, Optional, Type

logger = logging.getLogger(__name__)

GetHandler = Callable[[Callable[..., None]], None]
SetHandler = Callable[[Any, Callable[..., None]], None]


class CharacteristicReadError(Exception):
    """A GET handler completed without a value."""


class CharacteristicWriteError(Exception):
    """A SET handler completed with an error."""


class Characteristic:
    """A single readable/writable property of a service."""

    ON = "On"
    BRIGHTNESS = "Brightness"
    NAME = "Name"
    MANUFACTURER = "Manufacturer"
    MODEL = "Model"
    SERIAL_NUMBER = "SerialNumber"

    def __init__(self, kind: str, value: Any = None):
        self.kind = kind
        self.value = value
        self._get_handler: Optional[GetHandler] = None
        self._set_handler: Optional[SetHandler] = None

    def on_get(self, handler: GetHandler) -> "Characteristic":
        self._get_handler = handler
        return self

    def on_set(self, handler: SetHandler) -> "Characteristic":
        self._set_handler = handler
        return self

    async def handle_get(self) -> Any:
        """
        Fire a GET event. The handler answers through callback(error, value);
        a callback without a value means the read failed.
        """
        if self._get_handler is None:
            return self.value
        future = asyncio.get_running_loop().create_future()

        def callback(error: Optional[Any] = None, value: Any = None) -> None:
            if future.done():
                return
            if error is not None or value is None:
                reason = f": {error}" if error is not None else ""
                future.set_exception(CharacteristicReadError(f"{self.kind} read failed{reason}"))
            else:
                future.set_result(value)

        self._get_handler(callback)
        self.value = await future
        return self.value

    async def handle_set(self, value: Any) -> None:
        """Fire a SET event and wait for the handler's callback."""
        if self._set_handler is None:
            self.value = value
            return
        future = asyncio.get_running_loop().create_future()

        def callback(error: Optional[Any] = None) -> None:
            if future.done():
                return
            if error is not None:
                future.set_exception(CharacteristicWriteError(f"{self.kind} write failed: {error}"))
            else:
                future.set_result(None)

        self._set_handler(value, callback)
        await future
        self.value = value


class Service:
    """A named bundle of characteristics."""

    LIGHTBULB = "Lightbulb"
    ACCESSORY_INFORMATION = "AccessoryInformation"

    def __init__(self, kind: str, display_name: str = ""):
        self.kind = kind
        self.display_name = display_name
        self.characteristics: Dict[str, Characteristic] = {}

    @classmethod
    def lightbulb(cls, display_name: str) -> "Service":
        return cls(cls.LIGHTBULB, display_name)

    @classmethod
    def accessory_information(cls) -> "Service":
        return cls(cls.ACCESSORY_INFORMATION)

    def get_characteristic(self, kind: str) -> Characteristic:
        if kind not in self.characteristics:
            self.characteristics[kind] = Characteristic(kind)
        return self.characteristics[kind]

    def set_characteristic(self, kind: str, value: Any) -> "Service":
        self.get_characteristic(kind).value = value
        return self


class HAP:
    """Capability namespace passed to accessories as ``api.hap``."""

    Service = Service
    Characteristic = Characteristic


class AccessoryAPI:
    """Host handle: accessory type registry plus the HAP capability."""

    def __init__(self, hap: Optional[HAP] = None):
        self.hap = hap or HAP()
        self.accessory_types: Dict[str, Type] = {}

    def register_accessory(self, name: str, accessory_cls: Type) -> None:
        if name in self.accessory_types:
            raise ValueError(f"Accessory type '{name}' is already registered")
        self.accessory_types[name] = accessory_cls
        logger.info(f"Registered accessory type {name}")

    def create(self, name: str, log: logging.Logger, config: Any):
        """Construct an instance of a registered accessory type."""
        try:
            accessory_cls = self.accessory_types[name]
        except KeyError:
            raise ValueError(f"Unknown accessory type '{name}'") from None
        return accessory_cls(log, config, self)
