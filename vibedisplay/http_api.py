"""
Local HTTP control API for the display.

  POST /display/event   — inject a channel payload as if a device sent it
  GET  /display/status  — router state and channel connection
"""

import asyncio
import json
import logging

from aiohttp import web

from .lib.watchdog import watchdog_loop
from .router import EventRouter

logger = logging.getLogger(__name__)

ROUTER_KEY = web.AppKey("router", EventRouter)


async def handle_event(request: web.Request) -> web.Response:
    """POST /display/event — route a playback payload."""
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return web.json_response({"error": "invalid json"}, status=400)
    if not isinstance(payload, dict):
        return web.json_response({"error": "payload must be an object"}, status=400)

    router = request.app[ROUTER_KEY]
    tasks = router.handle_message(payload)
    return web.json_response({
        "status": "ok",
        "started": len(tasks),
        "last_music_id": router.state.last_music_id,
    })


async def handle_status(request: web.Request) -> web.Response:
    """GET /display/status — return current routing state."""
    router = request.app[ROUTER_KEY]
    transport = router.transport
    return web.json_response({
        "last_music_id": router.state.last_music_id,
        "playing": router.state.playing,
        "generation": router.state.generation,
        "primary_device_id": router.primary_device_id,
        "discard_superseded": router.discard_superseded,
        "channel": transport.channel if transport else None,
        "channel_mode": transport.mode if transport else None,
        "connected": transport.connected if transport else False,
    })


# ---------------------------------------------------------------------------
# App lifecycle
# ---------------------------------------------------------------------------
async def on_startup(app: web.Application):
    router = app[ROUTER_KEY]
    await router.start()
    asyncio.create_task(watchdog_loop(status=router.status_line))


async def on_cleanup(app: web.Application):
    await app[ROUTER_KEY].stop()


def create_app(router: EventRouter, manage_router: bool = True) -> web.Application:
    """Build the HTTP app.  With manage_router the app starts/stops the router."""
    app = web.Application()
    app[ROUTER_KEY] = router
    app.router.add_post("/display/event", handle_event)
    app.router.add_get("/display/status", handle_status)
    if manage_router:
        app.on_startup.append(on_startup)
        app.on_cleanup.append(on_cleanup)
    return app
