"""
Vibe display service (vibedisplay)

Subscribes to the device channel, resolves playback events into song and
vibe metadata and pushes them to the kiosk page over a websocket.

  ws://<host>:8765          display clients
  http://<host>:8780        control API (/display/event, /display/status)
"""

import argparse
import logging
import os

from aiohttp import web

from .display import WebSocketDisplay
from .http_api import create_app
from .lib import config
from .lib.transport import Transport
from .lookup import LookupStore
from .router import EventRouter

logger = logging.getLogger("vibedisplay")

HTTP_PORT = 8780


def parse_args(argv=None):
    parser = argparse.ArgumentParser(description="Now-playing vibe display")
    parser.add_argument("--config", help="path to config.json")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser.parse_args(argv)


def main(argv=None):
    args = parse_args(argv)
    level = logging.DEBUG if args.verbose else os.getenv("LOG_LEVEL", "INFO").upper()
    logging.basicConfig(
        level=level,
        format="[%(asctime)s] %(levelname)s %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )
    if args.config:
        config.reload_config(args.config)

    router = EventRouter(
        sink=WebSocketDisplay(),
        lookup=LookupStore(),
        transport=Transport(),
    )
    app = create_app(router)
    host = config.cfg("http", "host", default="0.0.0.0")
    port = int(config.cfg("http", "port", default=HTTP_PORT))
    web.run_app(app, host=host, port=port, print=lambda msg: logger.info(msg))


if __name__ == "__main__":
    main()
