"""
Deezer lookup through RapidAPI.  No OAuth, so there is no login step.

https://rapidapi.com/deezerdevs/api/deezer-1
"""

import os

from ..errors import CatalogError
from ..models import CatalogResult
from .base import CatalogClient

RAPIDAPI_HOST = "deezerdevs-deezer.p.rapidapi.com"


class DeezerClient(CatalogClient):
    name = "deezer"
    requires_login = False

    def __init__(self, settings: dict | None = None):
        super().__init__(settings)
        self.api_key = os.getenv("RAPIDAPI_KEY", "")

    async def search(self, session, song_name, artist, token):
        if not self.api_key:
            raise CatalogError("RAPIDAPI_KEY not set")
        host = self.setting("rapidapi_host", RAPIDAPI_HOST)
        data = await self.get_json(
            session,
            self.setting("search_url", f"https://{host}/search"),
            params={"q": f'track:"{song_name}" artist:"{artist}"'},
            headers={
                "X-RapidAPI-Key": self.api_key,
                "X-RapidAPI-Host": host,
            },
        )
        matches = data.get("data") or []
        if not matches:
            return CatalogResult.empty()
        song = matches[0]
        return CatalogResult(
            song_name=song["title"],
            artist=song["artist"]["name"],
            album_art=song["album"]["cover_xl"],
            link=song["link"],
        )
