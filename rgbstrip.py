#!/usr/bin/env python3
"""ESP8266 RGB light strip to MQTT bridge."""

import asyncio
import logging
import signal

from rgbstrip_app import RGBStripBridge, load_config

logger = logging.getLogger(__name__)


async def main(config):
    """Main entry point."""
    app = RGBStripBridge(config)
    loop = asyncio.get_running_loop()
    stop_event = asyncio.Event()

    async def runner():
        try:
            await app.start()
        except asyncio.CancelledError:
            pass
        finally:
            await app.stop()
            stop_event.set()

    task = loop.create_task(runner())

    def _shutdown():
        if not task.done():
            logger.info("Shutting down...")
            task.cancel()

    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _shutdown)
        except NotImplementedError:
            pass

    await stop_event.wait()


def run():
    config = load_config()
    logging.basicConfig(
        level=str(config.get("log_level", "INFO")).upper(),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    asyncio.run(main(config))


if __name__ == "__main__":
    run()
