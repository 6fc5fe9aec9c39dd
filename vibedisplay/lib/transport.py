"""
Channel transport for device <-> display communication.

Supports an OOCSI websocket connection or MQTT, configurable via the
``channel.mode`` config value.  Both deliver the same thing to the
display: JSON payloads published on one shared channel.

Usage:
    transport = Transport()
    transport.set_message_handler(router.handle_message)
    transport.set_connection_handler(on_connection_change)
    await transport.start()
    await transport.publish({"ping_all": 1})
    await transport.stop()
"""

import asyncio
import json
import logging
import os
import uuid

from .config import cfg

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "dbsu10_serendipity"
DEFAULT_OOCSI_URL = "wss://oocsi.id.tue.nl/ws"

MAX_BACKOFF = 30  # seconds


def extract_payload(raw, channel: str | None = None) -> dict | None:
    """Decode one inbound frame into the message payload, or None to drop it.

    OOCSI frames carry the published data either flattened next to the
    routing fields (recipient, sender, timestamp) or nested under ``data``.
    Frames addressed to another recipient are dropped.
    """
    if isinstance(raw, bytes):
        raw = raw.decode(errors="replace")
    try:
        msg = json.loads(raw)
    except (json.JSONDecodeError, TypeError):
        if raw.strip() not in ("ping", "."):
            logger.warning("Channel frame is not JSON: %r", raw[:200])
        return None
    if not isinstance(msg, dict):
        logger.warning("Channel frame is not an object: %r", msg)
        return None
    recipient = msg.get("recipient")
    if channel and recipient and recipient != channel:
        return None
    inner = msg.get("data")
    if isinstance(inner, dict):
        return inner
    return msg


class Transport:
    """Subscribe/publish on the display channel with auto-reconnect."""

    def __init__(self):
        self.mode = str(cfg("channel", "mode", default="oocsi")).lower()  # oocsi | mqtt
        self.channel = cfg("channel", "name", default=DEFAULT_CHANNEL)
        self.url = cfg("channel", "url", default=DEFAULT_OOCSI_URL)
        self.handle = cfg("channel", "handle", default=f"vibedisplay_{uuid.uuid4().hex[:8]}")

        # MQTT config (broker from JSON, credentials from env secrets)
        self.mqtt_broker = cfg("channel", "mqtt_broker", default="localhost")
        self.mqtt_port = int(cfg("channel", "mqtt_port", default=1883))
        self.mqtt_user = os.getenv("MQTT_USER", "")
        self.mqtt_password = os.getenv("MQTT_PASSWORD", "")

        self._message_handler = None
        self._connection_handler = None
        self._client = None
        self._task: asyncio.Task | None = None
        self._running = False

    @property
    def connected(self) -> bool:
        return self._client is not None

    def set_message_handler(self, callback):
        """Register a callback for inbound channel payloads.

        Callback signature: def handler(data: dict) -> None.  It is called
        synchronously, one message at a time, in arrival order.
        """
        self._message_handler = callback

    def set_connection_handler(self, callback):
        """Register a callback for connect/disconnect: def handler(connected: bool)."""
        self._connection_handler = callback

    async def start(self):
        """Start the connection loop in the background."""
        if self.mode not in ("oocsi", "mqtt"):
            raise ValueError(f"unknown channel mode: {self.mode}")
        self._running = True
        loop = self._oocsi_loop if self.mode == "oocsi" else self._mqtt_loop
        self._task = asyncio.create_task(loop())
        logger.info("Transport starting (mode: %s, channel: %s)", self.mode, self.channel)

    async def stop(self):
        """Clean shutdown of the connection loop."""
        self._running = False
        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._set_client(None)
        logger.info("Transport stopped")

    async def publish(self, data: dict) -> bool:
        """Publish *data* on the channel.  Returns False if not connected."""
        if not self._client:
            logger.warning("Channel not connected, dropping outbound message: %s", data)
            return False
        try:
            if self.mode == "oocsi":
                await self._client.send(f"sendraw {self.channel} {json.dumps(data)}")
            else:
                await self._client.publish(self.channel, json.dumps(data), qos=0)
            logger.debug("Published on %s: %s", self.channel, data)
            return True
        except Exception as e:
            logger.warning("Channel publish error: %s", e)
            return False

    # --- Inbound dispatch -----------------------------------------------------

    def _dispatch(self, raw):
        payload = extract_payload(raw, self.channel)
        if payload is None:
            return
        logger.debug("Channel message: %s", payload)
        if not self._message_handler:
            return
        try:
            self._message_handler(payload)
        except Exception:
            logger.exception("Channel message handler error")

    def _set_client(self, client):
        was_connected = self._client is not None
        self._client = client
        now_connected = client is not None
        if was_connected != now_connected and self._connection_handler:
            try:
                self._connection_handler(now_connected)
            except Exception:
                logger.exception("Connection handler error")

    async def _wait_before_reconnect(self, backoff: int, error) -> int:
        self._set_client(None)
        logger.warning("Channel connection lost (%s), reconnecting in %ds", error, backoff)
        await asyncio.sleep(backoff)
        return min(backoff * 2, MAX_BACKOFF)

    # --- OOCSI websocket transport ---------------------------------------------

    async def _oocsi_loop(self):
        """Connect to the OOCSI server with auto-reconnect and exponential backoff."""
        import websockets

        backoff = 1
        while self._running:
            try:
                async with websockets.connect(self.url) as ws:
                    await ws.send(self.handle)
                    await ws.send(f"subscribe {self.channel}")
                    self._set_client(ws)
                    backoff = 1
                    logger.info("Connected to OOCSI %s as %s", self.url, self.handle)

                    async for frame in ws:
                        self._dispatch(frame)
                raise ConnectionError("server closed the connection")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                backoff = await self._wait_before_reconnect(backoff, e)

    # --- MQTT transport -------------------------------------------------------

    async def _mqtt_loop(self):
        """Connect to the MQTT broker with auto-reconnect and exponential backoff."""
        import aiomqtt

        backoff = 1
        while self._running:
            try:
                async with aiomqtt.Client(
                    hostname=self.mqtt_broker,
                    port=self.mqtt_port,
                    username=self.mqtt_user or None,
                    password=self.mqtt_password or None,
                ) as client:
                    await client.subscribe(self.channel)
                    self._set_client(client)
                    backoff = 1
                    logger.info("MQTT connected to %s:%d, subscribed to %s",
                                self.mqtt_broker, self.mqtt_port, self.channel)

                    async for message in client.messages:
                        if message.topic.matches(self.channel):
                            self._dispatch(message.payload)
                raise ConnectionError("broker closed the connection")
            except asyncio.CancelledError:
                raise
            except Exception as e:
                backoff = await self._wait_before_reconnect(backoff, e)
