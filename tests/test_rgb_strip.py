"""Tests for the RGB light strip accessory."""

import asyncio
import logging

import pytest

from constants import ACCESSORY_NAME
from hap_model import Characteristic, CharacteristicReadError, CharacteristicWriteError, Service
from models import AccessoryConfig, DeviceState
from rgb_strip import RGBLightStrip, register


def _light(strip):
    return strip.get_services()[1]


class TestConstruction:

    @pytest.mark.asyncio
    async def test_seeds_state_from_device(self, fake_esp, api, log):
        strip = RGBLightStrip(log, fake_esp.config(), api)
        await strip.wait_pending()
        try:
            assert strip.state.power_on is True
            assert strip.state.brightness == 42
            assert strip.state.color_temperature == 8
        finally:
            await strip.close()

    @pytest.mark.asyncio
    async def test_seeds_each_field_once(self, fake_esp, api, log):
        strip = RGBLightStrip(log, fake_esp.config(), api)
        await strip.wait_pending()
        await asyncio.sleep(0.05)
        await strip.close()
        assert sorted(fake_esp.field_requests) == ["brightness", "power"]

    @pytest.mark.asyncio
    async def test_unreachable_device_keeps_defaults(self, dead_config, api, log, caplog):
        caplog.set_level(logging.ERROR)
        strip = RGBLightStrip(log, dead_config, api)
        await strip.wait_pending()
        await strip.close()
        assert strip.state == DeviceState()
        assert "while reading power" in caplog.text
        assert "while reading brightness" in caplog.text

    def test_construction_without_event_loop_does_not_raise(self, api, log, caplog):
        caplog.set_level(logging.ERROR)
        strip = RGBLightStrip(log, {"name": "Strip", "ip": "10.0.0.5", "port": "80"}, api)
        assert strip.state == DeviceState()
        assert strip.device.pending == 0
        assert "exception during initial power http get" in caplog.text

    def test_accepts_typed_config(self, api, log):
        config = AccessoryConfig(name="Strip", ip="10.0.0.5", port="80")
        strip = RGBLightStrip(log, config, api)
        assert strip.config is config
        assert strip.device.endpoint.base_url == "http://10.0.0.5:80"

    def test_missing_config_key(self, api, log):
        with pytest.raises(ValueError, match="accessory.ip"):
            RGBLightStrip(log, {"name": "Strip", "port": "80"}, api)


class TestServices:

    def test_services(self, api, log):
        strip = RGBLightStrip(log, {"name": "Strip", "ip": "10.0.0.5", "port": "80"}, api)
        info, light = strip.get_services()
        assert info.kind == Service.ACCESSORY_INFORMATION
        assert info.get_characteristic(Characteristic.MANUFACTURER).value == "ESP8266"
        assert info.get_characteristic(Characteristic.MODEL).value == "V1.0"
        assert info.get_characteristic(Characteristic.SERIAL_NUMBER).value == "xxxxxx1"
        assert light.kind == Service.LIGHTBULB
        assert light.display_name == "Strip"
        assert set(light.characteristics) == {Characteristic.ON, Characteristic.BRIGHTNESS}

    def test_identify_only_logs(self, api, log, caplog):
        caplog.set_level(logging.INFO)
        strip = RGBLightStrip(log, {"name": "Strip", "ip": "10.0.0.5", "port": "80"}, api)
        strip.identify()
        assert "RGBLightStrip Identify!" in caplog.text
        assert strip.state == DeviceState()

    def test_register(self, api):
        register(api)
        assert api.accessory_types[ACCESSORY_NAME] is RGBLightStrip
        with pytest.raises(ValueError):
            register(api)


class TestGet:

    @pytest.mark.asyncio
    async def test_get_power(self, fake_esp, api, log):
        strip = RGBLightStrip(log, fake_esp.config(), api)
        await strip.wait_pending()
        fake_esp.fields["power"] = "0"
        try:
            value = await _light(strip).get_characteristic(Characteristic.ON).handle_get()
        finally:
            await strip.close()
        assert value is False
        assert strip.state.power_on is False

    @pytest.mark.asyncio
    async def test_get_brightness(self, fake_esp, api, log):
        strip = RGBLightStrip(log, fake_esp.config(), api)
        await strip.wait_pending()
        fake_esp.fields["brightness"] = "57"
        try:
            value = await _light(strip).get_characteristic(Characteristic.BRIGHTNESS).handle_get()
        finally:
            await strip.close()
        assert value == 57
        assert strip.state.brightness == 57

    @pytest.mark.asyncio
    async def test_get_fetches_every_time(self, fake_esp, api, log):
        strip = RGBLightStrip(log, fake_esp.config(), api)
        await strip.wait_pending()
        on = _light(strip).get_characteristic(Characteristic.ON)
        try:
            await on.handle_get()
            await on.handle_get()
        finally:
            await strip.close()
        assert fake_esp.field_requests.count("power") == 3

    @pytest.mark.asyncio
    async def test_failed_get_leaves_state(self, dead_config, api, log, callback):
        strip = RGBLightStrip(log, dead_config, api)
        await strip.wait_pending()
        strip.state.power_on = True
        strip.state.brightness = 30
        try:
            strip.get_power(callback)
            strip.get_brightness(callback)
            await strip.wait_pending()
        finally:
            await strip.close()
        assert callback.calls == [(), ()]
        assert strip.state.power_on is True
        assert strip.state.brightness == 30

    @pytest.mark.asyncio
    async def test_failed_get_surfaces_read_error(self, dead_config, api, log):
        strip = RGBLightStrip(log, dead_config, api)
        try:
            with pytest.raises(CharacteristicReadError):
                await _light(strip).get_characteristic(Characteristic.ON).handle_get()
        finally:
            await strip.close()

    @pytest.mark.asyncio
    async def test_timed_out_get(self, fake_esp, api, log):
        fake_esp.delay = 0.6
        strip = RGBLightStrip(log, fake_esp.config(), api)
        strip.state.brightness = 10
        try:
            with pytest.raises(CharacteristicReadError):
                await _light(strip).get_characteristic(Characteristic.BRIGHTNESS).handle_get()
            await strip.wait_pending()
        finally:
            await strip.close()
        assert strip.state.brightness == 10

    @pytest.mark.asyncio
    async def test_malformed_brightness(self, fake_esp, api, log):
        strip = RGBLightStrip(log, fake_esp.config(), api)
        await strip.wait_pending()
        fake_esp.fields["brightness"] = "garbage"
        try:
            with pytest.raises(CharacteristicReadError):
                await _light(strip).get_characteristic(Characteristic.BRIGHTNESS).handle_get()
        finally:
            await strip.close()
        assert strip.state.brightness == 42

    def test_get_without_event_loop(self, api, log, callback):
        strip = RGBLightStrip(log, {"name": "Strip", "ip": "10.0.0.5", "port": "80"}, api)
        strip.get_power(callback)
        assert callback.calls == [()]


class TestSet:

    @pytest.mark.asyncio
    async def test_set_power_completes_immediately(self, fake_esp, api, log, callback):
        strip = RGBLightStrip(log, fake_esp.config(), api)
        await strip.wait_pending()
        strip.set_power(False, callback)
        # completion and cache update happen before the request goes out
        assert callback.calls == [()]
        assert strip.state.power_on is False
        assert fake_esp.commands == []
        try:
            await asyncio.wait_for(fake_esp.command_received.wait(), timeout=2)
        finally:
            await strip.close()
        assert fake_esp.commands == ["power?value=0"]

    @pytest.mark.asyncio
    async def test_set_power_on(self, fake_esp, api, log):
        strip = RGBLightStrip(log, fake_esp.config(), api)
        try:
            await _light(strip).get_characteristic(Characteristic.ON).handle_set(True)
            assert strip.state.power_on is True
            await strip.wait_pending()
        finally:
            await strip.close()
        assert fake_esp.commands == ["power?value=1"]

    @pytest.mark.asyncio
    async def test_seed_then_set_brightness(self, api, fake_esp, log, callback):
        strip = RGBLightStrip(log, fake_esp.config(), api)
        await strip.wait_pending()
        assert (strip.state.power_on, strip.state.brightness) == (True, 42)

        strip.set_brightness(75, callback)
        assert strip.state.brightness == 75
        assert callback.calls == [()]
        try:
            await asyncio.wait_for(fake_esp.command_received.wait(), timeout=2)
        finally:
            await strip.close()
        assert fake_esp.commands == ["brightness?value=75"]

    @pytest.mark.asyncio
    async def test_set_on_unreachable_device_still_succeeds(self, dead_config, api, log, callback, caplog):
        caplog.set_level(logging.ERROR)
        strip = RGBLightStrip(log, dead_config, api)
        strip.set_brightness(20, callback)
        assert callback.calls == [()]
        await strip.close()
        assert strip.state.brightness == 20
        assert "Command 'brightness?value=20' failed" in caplog.text

    def test_set_without_event_loop(self, api, log, callback):
        strip = RGBLightStrip(log, {"name": "Strip", "ip": "10.0.0.5", "port": "80"}, api)
        strip.set_power(True, callback)
        assert callback.calls == [()]
        assert strip.state.power_on is True


    @pytest.mark.asyncio
    async def test_late_seed_overwrites_set(self, fake_esp, api, log, callback):
        fake_esp.delay = 0.1
        strip = RGBLightStrip(log, fake_esp.config(), api)
        strip.set_brightness(75, callback)
        assert strip.state.brightness == 75
        try:
            await strip.wait_pending()
        finally:
            await strip.close()
        # last completion wins: the seed answered after the write went out
        assert fake_esp.commands == ["brightness?value=75"]
        assert strip.state.brightness == 42


class TestAcknowledgedWrites:

    @pytest.mark.asyncio
    async def test_waits_for_device(self, fake_esp, api, log):
        strip = RGBLightStrip(log, fake_esp.config(acknowledged_writes=True), api)
        try:
            await _light(strip).get_characteristic(Characteristic.BRIGHTNESS).handle_set(33)
            assert fake_esp.commands == ["brightness?value=33"]
        finally:
            await strip.close()

    @pytest.mark.asyncio
    async def test_reports_failure(self, dead_config, api, log):
        dead_config["acknowledged_writes"] = True
        strip = RGBLightStrip(log, dead_config, api)
        try:
            with pytest.raises(CharacteristicWriteError):
                await _light(strip).get_characteristic(Characteristic.ON).handle_set(True)
        finally:
            await strip.close()
        # the cache still holds the requested value
        assert strip.state.power_on is True
