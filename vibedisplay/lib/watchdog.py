"""Systemd watchdog heartbeat for the display service.

Sends WATCHDOG=1 (plus an optional STATUS= line, shown by
``systemctl status``) to the notify socket at regular intervals.
Silently no-ops when NOTIFY_SOCKET is unset (dev mode).

Usage:
    from vibedisplay.lib.watchdog import watchdog_loop
    asyncio.create_task(watchdog_loop(status=router.status_line))
"""

import asyncio
import logging
import os
import socket

logger = logging.getLogger(__name__)


def sd_notify(*fields: str) -> bool:
    """Send KEY=value fields to the systemd notify socket.

    Returns False when no notify socket is configured.
    """
    addr = os.environ.get("NOTIFY_SOCKET")
    if not addr:
        return False
    if addr[0] == "@":
        addr = "\0" + addr[1:]
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    try:
        sock.sendto("\n".join(fields).encode(), addr)
    finally:
        sock.close()
    return True


async def watchdog_loop(interval: int = 20, status=None):
    """Heartbeat every *interval* seconds.  Call as asyncio.create_task().

    Sends READY=1 first so systemd knows startup is done (Type=notify).
    *status* is an optional callable returning the current status line.
    """
    sd_notify("READY=1")
    logger.info("Watchdog started (interval=%ds)", interval)
    while True:
        fields = ["WATCHDOG=1"]
        if status is not None:
            fields.append(f"STATUS={status()}")
        sd_notify(*fields)
        await asyncio.sleep(interval)
