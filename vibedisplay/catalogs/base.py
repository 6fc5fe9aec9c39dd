"""
CatalogClient — shared plumbing for external music catalog lookups.

Subclass contract:

    class MyCatalog(CatalogClient):
        name = "mycatalog"        # config section under "catalogs"
        requires_login = True     # False skips login() entirely

        async def fetch_token(self, session) -> tuple[str, int]:
            '''Client-credentials exchange.  Return (token, expires_in).'''

        async def search(self, session, song_name, artist, token) -> CatalogResult:
            '''Top-1 search.  Raise on failure; return empty() on no match.'''

query() is the only entry point callers need.  It never raises: a failed
login or search degrades to an all-None CatalogResult so one catalog going
down never stops the others from being merged.
"""

import asyncio
import logging
import time

import aiohttp

from ..errors import CatalogError
from ..lib.config import cfg
from ..models import CatalogResult

log = logging.getLogger(__name__)

TOKEN_EXPIRY_MARGIN = 60  # seconds before expiry a cached token is refreshed


class CatalogClient:
    # ── Subclass must set these ──
    name: str = ""
    requires_login: bool = True

    def __init__(self, settings: dict | None = None):
        self.settings = settings if settings is not None else (cfg("catalogs", self.name) or {})
        self._access_token: str | None = None
        self._token_expiry = 0.0

    def setting(self, key, default=None):
        return self.settings.get(key, default)

    # ── Login ──

    async def login(self, session: aiohttp.ClientSession) -> str | None:
        """Return a bearer token, or None if this catalog cannot log in."""
        if not self.requires_login:
            return None
        if self._access_token and time.monotonic() < self._token_expiry:
            return self._access_token
        try:
            token, expires_in = await self.fetch_token(session)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning("%s login failed: %s", self.name, e)
            self._access_token = None
            return None
        self._access_token = token
        self._token_expiry = time.monotonic() + max(0, expires_in - TOKEN_EXPIRY_MARGIN)
        log.info("%s token acquired (expires in %ds)", self.name, expires_in)
        return token

    async def fetch_token(self, session: aiohttp.ClientSession) -> tuple[str, int]:
        raise NotImplementedError

    # ── Search ──

    async def query(self, session: aiohttp.ClientSession, song_name: str, artist: str) -> CatalogResult:
        """Best match for song/artist in this catalog; all-None on any failure."""
        token = None
        if self.requires_login:
            token = await self.login(session)
            if token is None:
                log.warning("%s: skipping search, no access token", self.name)
                return CatalogResult.empty()
        try:
            result = await self.search(session, song_name, artist, token)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            log.warning("Error querying %s for '%s' by %s: %s", self.name, song_name, artist, e)
            return CatalogResult.empty()
        if result.is_empty:
            log.info("%s: no match for '%s' by %s", self.name, song_name, artist)
        else:
            log.debug("%s: '%s' by %s -> %s", self.name, song_name, artist, result)
        return result

    async def search(self, session: aiohttp.ClientSession, song_name: str, artist: str,
                     token: str | None) -> CatalogResult:
        raise NotImplementedError

    # ── HTTP helpers ──

    @staticmethod
    async def get_json(session: aiohttp.ClientSession, url: str, **kwargs) -> dict:
        async with session.get(url, raise_for_status=True, **kwargs) as resp:
            # content_type=None: Tidal answers with application/vnd.tidal.v1+json
            return await resp.json(content_type=None)

    async def post_token(self, session: aiohttp.ClientSession, url: str, **kwargs) -> tuple[str, int]:
        """POST a client-credentials request and pull out (access_token, expires_in)."""
        async with session.post(url, raise_for_status=True, **kwargs) as resp:
            data = await resp.json(content_type=None)
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise CatalogError(f"{self.name}: token response has no access_token")
        return token, int(data.get("expires_in", 3600))
