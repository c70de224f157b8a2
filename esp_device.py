"""HTTP client for the ESP8266 light strip controller."""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional, Set

import aiohttp

from constants import DEVICE_REQUEST_TIMEOUT_MS, FIELD_VALUE_PATH
from models import DeviceEndpoint

logger = logging.getLogger(__name__)


class TransportError(Exception):
    """The device could not be reached or did not answer in time."""


class MalformedResponseError(ValueError):
    """The device answered with a body that cannot be decoded."""


class ESPDevice:
    """
    Plain HTTP exchanges with one controller:
      - GET  /fieldValue?name=<field>  -> body text
      - POST /<command>?value=<v>      -> body ignored
    """

    def __init__(
        self,
        endpoint: DeviceEndpoint,
        timeout_ms: int = DEVICE_REQUEST_TIMEOUT_MS,
        log: Optional[logging.Logger] = None,
    ):
        self.endpoint = endpoint
        self.timeout = aiohttp.ClientTimeout(total=timeout_ms / 1000)
        self.log = log or logger
        self.session: Optional[aiohttp.ClientSession] = None
        self._tasks: Set[asyncio.Task] = set()

    def _url(self, path: str) -> str:
        return f"{self.endpoint.base_url}/{path.lstrip('/')}"

    def _get_session(self) -> aiohttp.ClientSession:
        if self.session is None or self.session.closed:
            self.session = aiohttp.ClientSession(timeout=self.timeout)
        return self.session

    async def fetch_field(self, field: str) -> str:
        """Read one field and return the raw response body."""
        self.log.info(f"HTTP request for {field} state")
        try:
            session = self._get_session()
            async with session.get(self._url(FIELD_VALUE_PATH), params={"name": field}) as response:
                data = await response.text()
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Timed out reading '{field}' from {self.endpoint.base_url}"
            ) from e
        except (aiohttp.ClientError, OSError, ValueError) as e:
            raise TransportError(
                f"Failed to read '{field}' from {self.endpoint.base_url}: {e}"
            ) from e
        self.log.debug(f"Response for {field}: {data!r}")
        return data

    async def post_command(self, path: str) -> None:
        """POST an empty body to the command path and wait for the reply."""
        try:
            session = self._get_session()
            async with session.post(self._url(path), data=b"") as response:
                body = await response.text()
        except asyncio.TimeoutError as e:
            raise TransportError(
                f"Timed out posting '{path}' to {self.endpoint.base_url}"
            ) from e
        except (aiohttp.ClientError, OSError, ValueError) as e:
            raise TransportError(
                f"Failed to post '{path}' to {self.endpoint.base_url}: {e}"
            ) from e
        self.log.debug(f"Response: {body}")

    def send_command(self, path: str) -> None:
        """
        Fire-and-forget POST. Returns before the request is even written;
        failures only show up in the log.
        """
        self.log.info(f"POST {path} to ESP8266")
        try:
            self.spawn(self._post_and_log, path)
        except RuntimeError as e:
            self.log.error(f"Could not dispatch '{path}': {e}")

    async def _post_and_log(self, path: str) -> None:
        try:
            await self.post_command(path)
        except TransportError as e:
            self.log.error(f"Command '{path}' failed: {e}")

    def spawn(self, coro_fn: Callable[..., Awaitable[Any]], *args: Any) -> asyncio.Task:
        """
        Run coro_fn(*args) in the background and keep a reference until it ends.
        Raises RuntimeError when no event loop is running.
        """
        loop = asyncio.get_running_loop()
        task = loop.create_task(coro_fn(*args))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    @property
    def pending(self) -> int:
        return len(self._tasks)

    async def wait_pending(self) -> None:
        """Wait until every background request has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self):
        """Let outstanding requests finish, then close the HTTP session."""
        await self.wait_pending()
        if self.session and not self.session.closed:
            await self.session.close()
        self.session = None
