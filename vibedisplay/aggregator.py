"""
Cross-catalog metadata merge.

Spotify (A), Tidal (B) and Deezer (C) are queried concurrently and the
results merged field by field:

  song_name / artist / album_art   Tidal, falling back to Spotify
  spotify_link                     Spotify
  tidal_link                       Tidal
  deezer_link                      Deezer

Deezer only ever contributes its link.  All three queries are awaited; a
slow catalog delays the result rather than being dropped.
"""

import asyncio
import logging

import aiohttp

from .catalogs import CatalogClient, DeezerClient, SpotifyClient, TidalClient
from .models import CatalogResult, MergedMetadata

logger = logging.getLogger(__name__)


def merge_results(spotify: CatalogResult, tidal: CatalogResult, deezer: CatalogResult,
                  fallback_artist: str | None = None) -> MergedMetadata | None:
    """Merge the three catalog answers; None when neither Tidal nor Spotify knows the song."""
    song_name = tidal.song_name if tidal.song_name is not None else spotify.song_name
    if song_name is None:
        return None
    artist = tidal.artist if tidal.artist is not None else spotify.artist
    return MergedMetadata(
        song_name=song_name,
        artist=artist if artist is not None else fallback_artist or "",
        album_art=tidal.album_art if tidal.album_art is not None else spotify.album_art,
        spotify_link=spotify.link,
        tidal_link=tidal.link,
        deezer_link=deezer.link,
    )


class Aggregator:
    """Runs the catalog queries for one song and merges them."""

    def __init__(self, spotify: CatalogClient | None = None, tidal: CatalogClient | None = None,
                 deezer: CatalogClient | None = None, session: aiohttp.ClientSession | None = None):
        self.spotify = spotify or SpotifyClient()
        self.tidal = tidal or TidalClient()
        self.deezer = deezer or DeezerClient()
        self._session = session
        self._owns_session = session is None

    async def start(self):
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": "vibedisplay/1.0"},
            )
            self._owns_session = True

    async def close(self):
        if self._session and self._owns_session:
            await self._session.close()
        self._session = None

    @property
    def session(self) -> aiohttp.ClientSession | None:
        return self._session

    async def resolve(self, song_name: str, artist: str) -> MergedMetadata | None:
        """Merged metadata for a song, or None if no catalog has its name."""
        if self._session is None:
            await self.start()
        spotify, tidal, deezer = await asyncio.gather(
            self.spotify.query(self._session, song_name, artist),
            self.tidal.query(self._session, song_name, artist),
            self.deezer.query(self._session, song_name, artist),
        )
        logger.debug("Catalog answers: spotify=%s tidal=%s deezer=%s", spotify, tidal, deezer)

        merged = merge_results(spotify, tidal, deezer, fallback_artist=artist)
        if merged is None:
            logger.warning("No catalog found '%s' by %s", song_name, artist)
        else:
            logger.info("Resolved '%s' by %s (unavailable on: %s)", merged.song_name,
                        merged.artist, ", ".join(merged.unavailable) or "none")
        return merged
