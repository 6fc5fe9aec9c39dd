"""
Tidal Open API lookup (client-credentials flow, Basic-auth token request).

https://developer.tidal.com/documentation/authorization/authorization-client-credentials
"""

import base64
import os

from ..errors import CatalogError
from ..models import CatalogResult
from .base import CatalogClient

TOKEN_URL = "https://auth.tidal.com/v1/oauth2/token"
SEARCH_URL = "https://openapi.tidal.com/search"
TIDAL_JSON = "application/vnd.tidal.v1+json"

COVER_VARIANT = 1  # second imageCover entry, sized for the 320px album art slot


class TidalClient(CatalogClient):
    name = "tidal"

    def __init__(self, settings: dict | None = None):
        super().__init__(settings)
        self.client_id = os.getenv("TIDAL_CLIENT_ID", "")
        self.client_secret = os.getenv("TIDAL_CLIENT_SECRET", "")

    def _basic_auth(self) -> str:
        creds = f"{self.client_id}:{self.client_secret}"
        return base64.b64encode(creds.encode()).decode()

    async def fetch_token(self, session):
        if not self.client_id or not self.client_secret:
            raise CatalogError("TIDAL_CLIENT_ID / TIDAL_CLIENT_SECRET not set")
        return await self.post_token(
            session,
            self.setting("token_url", TOKEN_URL),
            data={"grant_type": "client_credentials"},
            headers={"Authorization": f"Basic {self._basic_auth()}"},
        )

    async def search(self, session, song_name, artist, token):
        data = await self.get_json(
            session,
            self.setting("search_url", SEARCH_URL),
            params={
                "query": f"{song_name} {artist}",
                "type": "TRACKS",
                "limit": 1,
                "countryCode": self.setting("country_code", "US"),
                "popularity": "WORLDWIDE",
            },
            headers={
                "Authorization": f"Bearer {token}",
                "Accept": TIDAL_JSON,
                "Content-Type": TIDAL_JSON,
            },
        )
        tracks = data.get("tracks") or []
        if not tracks:
            return CatalogResult.empty()
        song = tracks[0]["resource"]
        return CatalogResult(
            song_name=song["title"],
            artist=song["artists"][0]["name"],
            album_art=song["album"]["imageCover"][COVER_VARIANT]["url"],
            link=song["tidalUrl"],
        )
