import asyncio
import socket

from vibedisplay.lib import watchdog


def test_no_notify_socket(monkeypatch):
    monkeypatch.delenv("NOTIFY_SOCKET", raising=False)
    assert watchdog.sd_notify("READY=1") is False


def _notify_socket(tmp_path, monkeypatch):
    path = str(tmp_path / "notify")
    sock = socket.socket(socket.AF_UNIX, socket.SOCK_DGRAM)
    sock.bind(path)
    sock.settimeout(5)
    monkeypatch.setenv("NOTIFY_SOCKET", path)
    return sock


def test_sd_notify_sends_fields(tmp_path, monkeypatch):
    sock = _notify_socket(tmp_path, monkeypatch)
    try:
        assert watchdog.sd_notify("WATCHDOG=1", "STATUS=Idle") is True
        assert sock.recv(256) == b"WATCHDOG=1\nSTATUS=Idle"
    finally:
        sock.close()


async def test_loop_reports_ready_then_status(tmp_path, monkeypatch):
    sock = _notify_socket(tmp_path, monkeypatch)
    task = asyncio.create_task(watchdog.watchdog_loop(interval=60, status=lambda: "Idle"))
    try:
        await asyncio.sleep(0.05)
        assert sock.recv(256) == b"READY=1"
        assert sock.recv(256) == b"WATCHDOG=1\nSTATUS=Idle"
    finally:
        task.cancel()
        sock.close()
