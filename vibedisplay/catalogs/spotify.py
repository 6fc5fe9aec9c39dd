"""
Spotify Web API lookup (client-credentials flow).

https://developer.spotify.com/documentation/web-api/tutorials/client-credentials-flow
https://developer.spotify.com/documentation/web-api/reference/search
"""

import os

from ..errors import CatalogError
from ..models import CatalogResult
from .base import CatalogClient

TOKEN_URL = "https://accounts.spotify.com/api/token"
SEARCH_URL = "https://api.spotify.com/v1/search"


class SpotifyClient(CatalogClient):
    name = "spotify"

    def __init__(self, settings: dict | None = None):
        super().__init__(settings)
        self.client_id = os.getenv("SPOTIFY_CLIENT_ID", "")
        self.client_secret = os.getenv("SPOTIFY_CLIENT_SECRET", "")

    async def fetch_token(self, session):
        if not self.client_id or not self.client_secret:
            raise CatalogError("SPOTIFY_CLIENT_ID / SPOTIFY_CLIENT_SECRET not set")
        return await self.post_token(
            session,
            self.setting("token_url", TOKEN_URL),
            data={
                "grant_type": "client_credentials",
                "client_id": self.client_id,
                "client_secret": self.client_secret,
            },
        )

    async def search(self, session, song_name, artist, token):
        data = await self.get_json(
            session,
            self.setting("search_url", SEARCH_URL),
            params={
                "q": f"track:{song_name} artist:{artist}",
                "type": "track",
                "limit": 1,
                "market": self.setting("market", "US"),
            },
            headers={"Authorization": f"Bearer {token}"},
        )
        items = data.get("tracks", {}).get("items") or []
        if not items:
            return CatalogResult.empty()
        song = items[0]
        return CatalogResult(
            song_name=song["name"],
            artist=song["artists"][0]["name"],
            album_art=song["album"]["images"][0]["url"],
            link=song["external_urls"]["spotify"],
        )
