"""
Shared configuration loader for the vibe display.

Loads a single JSON config file.  Search order:
  1. $VIBEDISPLAY_CONFIG                (explicit override, e.g. --config)
  2. /etc/vibedisplay/config.json       (deployed install)
  3. config.json                        (CWD, for local dev)
  4. ../../config/default.json          (repo fallback)

Secrets (SPOTIFY_CLIENT_SECRET, RAPIDAPI_KEY, MQTT_PASSWORD, etc.) stay in
environment variables.

Usage:
    from vibedisplay.lib.config import cfg

    channel   = cfg("channel", "name", default="dbsu10_serendipity")
    primary   = cfg("router", "primary_device_id", default=1)
    catalogs  = cfg("catalogs")  # returns the whole dict
"""

import json
import logging
import os

logger = logging.getLogger(__name__)

_config: dict | None = None

_SEARCH_PATHS = [
    "/etc/vibedisplay/config.json",
    "config.json",
    os.path.join(os.path.dirname(__file__), "..", "..", "config", "default.json"),
]

TRANSPORT_MODES = ("oocsi", "mqtt")


def _search_paths() -> list[str]:
    override = os.getenv("VIBEDISPLAY_CONFIG")
    if override:
        return [override] + _SEARCH_PATHS
    return list(_SEARCH_PATHS)


def _validate(config: dict, path: str) -> None:
    """Warn about missing or suspicious config values."""
    channel = config.get("channel") or {}
    if not channel.get("name"):
        logger.warning("Config %s: missing channel.name, using default channel", path)
    mode = channel.get("mode", "oocsi")
    if mode not in TRANSPORT_MODES:
        logger.warning("Config %s: unknown channel.mode '%s'", path, mode)
    tables = config.get("tables") or {}
    for table in ("songs", "vibes"):
        if not tables.get(table):
            logger.warning("Config %s: missing tables.%s, using bundled table", path, table)


def _read(path: str) -> dict | None:
    """Parsed config at *path*, or None if it is missing or unusable."""
    try:
        with open(path) as f:
            data = json.load(f)
    except FileNotFoundError:
        return None
    except json.JSONDecodeError as e:
        logger.error("Invalid JSON in %s: %s", path, e)
        return None
    if not isinstance(data, dict):
        logger.error("Config %s: top level must be an object, got %s", path, type(data).__name__)
        return None
    return data


def load_config() -> dict:
    """First usable config on the search path, cached after the first call."""
    global _config
    if _config is None:
        for path in _search_paths():
            data = _read(path)
            if data is not None:
                logger.info("Config loaded from %s", path)
                _validate(data, path)
                _config = data
                break
        else:
            logger.warning("No usable config file found, using empty config")
            _config = {}
    return _config


def cfg(section: str, key: str | None = None, *, default=None):
    """Read a config value.

    cfg("tables")                             → {"songs": ..., "vibes": ...}
    cfg("channel", "mode")                    → "oocsi" or "mqtt"
    cfg("display", "port", default=8765)      → 8765 when unset
    """
    section_val = load_config().get(section)
    if key is None:
        return default if section_val is None else section_val
    if not isinstance(section_val, dict):
        return default
    return section_val.get(key, default)


def reload_config(path: str | None = None) -> dict:
    """Drop the cached config and load again, optionally from *path* first."""
    global _config
    if path:
        os.environ["VIBEDISPLAY_CONFIG"] = path
    _config = None
    return load_config()
