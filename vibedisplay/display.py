"""
Presentation sinks.

PresentationSink is the interface the router drives.  WebSocketDisplay is
the production sink: it serves the kiosk page's websocket and broadcasts
one JSON message per presentation call:

    {"type": "now_playing",  "data": {song_name, artist, album_art, ..._link, unavailable}}
    {"type": "offline",      "data": {title, subtitle}}
    {"type": "error",        "data": {title, subtitle}}
    {"type": "vibe",         "data": {vibe_name, primary_colour, secondary_colour}}
    {"type": "device_state", "data": {device_id, state}}

A client that connects late is sent the current screen (song/offline/error,
vibe, device states) straight away.
"""

import asyncio
import json
import logging

import websockets

from .lib.config import cfg
from .models import MergedMetadata, VibeRecord

logger = logging.getLogger(__name__)

OFFLINE_SCREEN = {"title": "No music is playing", "subtitle": "Offline"}
ERROR_SCREEN = {"title": "Cannot find song that is playing", "subtitle": "Error"}


class PresentationSink:
    """Interface for whatever renders the now-playing screen."""

    async def start(self):
        pass

    async def stop(self):
        pass

    async def present_metadata(self, metadata: MergedMetadata):
        pass

    async def present_offline(self):
        pass

    async def present_error(self):
        pass

    async def present_vibe(self, vibe: VibeRecord):
        pass

    async def present_device_state(self, device_id: int, state: int):
        pass


class WebSocketDisplay(PresentationSink):
    """Broadcasts presentation events to every connected display client."""

    def __init__(self, host: str | None = None, port: int | None = None):
        self.host = host or cfg("display", "host", default="0.0.0.0")
        self.port = int(port if port is not None else cfg("display", "port", default=8765))
        self.clients = set()
        self._server = None
        self._screen: str | None = None     # last now_playing/offline/error message
        self._vibe: str | None = None
        self._device_states: dict[int, str] = {}

    async def start(self):
        self._server = await websockets.serve(self._handler, self.host, self.port)
        if self.port == 0:
            self.port = list(self._server.sockets)[0].getsockname()[1]
        logger.info("Display websocket listening on ws://%s:%d", self.host, self.port)

    async def stop(self):
        if self._server:
            self._server.close()
            await self._server.wait_closed()
            self._server = None
        logger.info("Display websocket stopped")

    async def _handler(self, ws, path=None):
        self.clients.add(ws)
        logger.info("Display client connected (%d total)", len(self.clients))
        try:
            for msg in self.snapshot():
                await ws.send(msg)
            await ws.wait_closed()
        finally:
            self.clients.discard(ws)
            logger.info("Display client disconnected (%d left)", len(self.clients))

    def snapshot(self) -> list[str]:
        """Messages that bring a new client up to the current screen."""
        msgs = [m for m in (self._screen, self._vibe) if m]
        msgs.extend(self._device_states[d] for d in sorted(self._device_states))
        return msgs

    async def broadcast(self, event_type: str, data: dict) -> str:
        msg = json.dumps({"type": event_type, "data": data})
        logger.debug("-> display: %s", msg)
        if self.clients:
            await asyncio.gather(
                *(ws.send(msg) for ws in list(self.clients)),
                return_exceptions=True,
            )
        return msg

    async def present_metadata(self, metadata: MergedMetadata):
        self._screen = await self.broadcast("now_playing", metadata.to_dict())

    async def present_offline(self):
        self._screen = await self.broadcast("offline", dict(OFFLINE_SCREEN))
        self._vibe = None   # offline screen shows no vibe

    async def present_error(self):
        self._screen = await self.broadcast("error", dict(ERROR_SCREEN))

    async def present_vibe(self, vibe: VibeRecord):
        self._vibe = await self.broadcast("vibe", vibe.to_dict())

    async def present_device_state(self, device_id: int, state: int):
        self._device_states[device_id] = await self.broadcast(
            "device_state", {"device_id": device_id, "state": state},
        )
