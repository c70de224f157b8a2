"""Shared fixtures: a local stand-in for the ESP8266 controller."""

import asyncio
import logging
import socket

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from hap_model import AccessoryAPI


class FakeESP:
    """Serves /fieldValue and records every command POST."""

    def __init__(self):
        self.fields = {"power": "1", "brightness": "42"}
        self.field_requests = []
        self.commands = []
        self.delay = 0.0
        self.command_received = asyncio.Event()
        self.host = "127.0.0.1"
        self.port = None

    async def field_value(self, request: web.Request) -> web.Response:
        name = request.query.get("name")
        self.field_requests.append(name)
        if self.delay:
            await asyncio.sleep(self.delay)
        return web.Response(text=self.fields.get(name, ""))

    async def command(self, request: web.Request) -> web.Response:
        self.commands.append(request.path_qs.lstrip("/"))
        self.command_received.set()
        return web.Response(text="OK")

    def make_app(self) -> web.Application:
        app = web.Application()
        app.router.add_get("/fieldValue", self.field_value)
        app.router.add_post("/power", self.command)
        app.router.add_post("/brightness", self.command)
        return app

    def config(self, **overrides):
        config = {"name": "Test Strip", "ip": self.host, "port": str(self.port)}
        config.update(overrides)
        return config


@pytest_asyncio.fixture
async def fake_esp():
    esp = FakeESP()
    server = TestServer(esp.make_app())
    await server.start_server()
    esp.host = server.host
    esp.port = server.port
    yield esp
    await server.close()


@pytest.fixture
def dead_config():
    """Config pointing at a local port nothing listens on."""
    with socket.socket(socket.AF_INET, socket.SOCK_STREAM) as s:
        s.bind(("127.0.0.1", 0))
        port = s.getsockname()[1]
    return {"name": "Dead Strip", "ip": "127.0.0.1", "port": str(port)}


@pytest.fixture
def api():
    return AccessoryAPI()


@pytest.fixture
def log():
    return logging.getLogger("rgbstrip.test")


class RecordingCallback:
    """Stands in for the host's completion callback."""

    def __init__(self):
        self.calls = []

    def __call__(self, *args):
        self.calls.append(args)


@pytest.fixture
def callback():
    return RecordingCallback()
