"""
Lookup tables for music ids.

Two comma-separated tables map opaque integers to readable records:

  songs.csv   row <music_id>      -> _, song name, artist
  vibes.csv   row <vibe_id + 1>   -> _, vibe name, primary colour, secondary colour

Row 0 of each table is a header.  Tables are re-read on every lookup so an
edited file (or a re-published URL) is picked up without a restart.

Relative table paths resolve against $VIBEDISPLAY_BASE_PATH, which defaults
to the source checkout.  An installed (non-editable) package must set it to
the directory holding db/.
"""

import asyncio
import logging
import os

import aiohttp

from .errors import TableReadError
from .lib.config import cfg
from .models import GROUP_SIZE, SongRecord, VibeRecord

logger = logging.getLogger(__name__)

BASE_PATH = os.getenv(
    "VIBEDISPLAY_BASE_PATH",
    os.path.dirname(os.path.dirname(os.path.abspath(__file__))),
)
DEFAULT_SONG_TABLE = os.path.join(BASE_PATH, "db", "songs.csv")
DEFAULT_VIBE_TABLE = os.path.join(BASE_PATH, "db", "vibes.csv")

DELIMITER = ","
HEADER_ROW = 0
TABLE_TIMEOUT = aiohttp.ClientTimeout(total=5.0)


def vibe_id_for(music_id: int) -> int:
    """Vibe group of a music id: GROUP_SIZE consecutive ids share a vibe."""
    return music_id // GROUP_SIZE


def _resolve(source: str) -> str:
    if source.startswith(("http://", "https://")) or os.path.isabs(source):
        return source
    return os.path.join(BASE_PATH, source)


def _read_file(path: str) -> str:
    with open(path, encoding="utf-8") as f:
        return f.read()


class LookupStore:
    """Reads the song and vibe tables from disk or over HTTP."""

    def __init__(self, song_table: str | None = None, vibe_table: str | None = None,
                 session: aiohttp.ClientSession | None = None):
        self.song_table = _resolve(song_table or cfg("tables", "songs", default=DEFAULT_SONG_TABLE))
        self.vibe_table = _resolve(vibe_table or cfg("tables", "vibes", default=DEFAULT_VIBE_TABLE))
        self._session = session

    @property
    def session(self) -> aiohttp.ClientSession | None:
        return self._session

    def use_session(self, session: aiohttp.ClientSession | None):
        """Fetch URL tables with *session* (None: a short-lived session per read)."""
        self._session = session

    async def _read(self, source: str) -> str:
        if source.startswith(("http://", "https://")):
            return await self._fetch(source)
        try:
            loop = asyncio.get_running_loop()
            return await loop.run_in_executor(None, _read_file, source)
        except (OSError, UnicodeDecodeError) as e:
            raise TableReadError(source, e) from e

    async def _fetch(self, url: str) -> str:
        session = self._session
        owned = session is None
        if owned:
            session = aiohttp.ClientSession()
        try:
            async with session.get(url, raise_for_status=True, timeout=TABLE_TIMEOUT) as resp:
                return await resp.text()
        except (aiohttp.ClientError, asyncio.TimeoutError, UnicodeDecodeError) as e:
            raise TableReadError(url, e) from e
        finally:
            if owned:
                await session.close()

    async def _row(self, source: str, index: int, width: int) -> list[str] | None:
        """Fields of row *index*, or None when there is no usable data row."""
        text = await self._read(source)
        rows = text.split("\n")
        if index < 0 or index >= len(rows):
            logger.info("Row %d out of range for %s (%d rows)", index, source, len(rows))
            return None
        if index == HEADER_ROW:
            logger.info("Row %d of %s is the header, not data", index, source)
            return None
        fields = rows[index].rstrip("\r").split(DELIMITER)
        if len(fields) < width or not fields[1].strip():
            logger.warning("Malformed row %d in %s: %r", index, source, rows[index])
            return None
        return fields

    async def lookup_song(self, music_id: int) -> SongRecord | None:
        """Song for *music_id*, or None if the table has no such song.

        Raises TableReadError if the table itself cannot be read.
        """
        fields = await self._row(self.song_table, music_id, 3)
        if fields is None:
            return None
        song = SongRecord(song_name=fields[1], artist=fields[2])
        logger.debug("Song %d -> %s", music_id, song)
        return song

    async def lookup_vibe(self, vibe_id: int) -> VibeRecord | None:
        """Vibe for *vibe_id* (table row vibe_id + 1), or None."""
        fields = await self._row(self.vibe_table, vibe_id + 1, 4)
        if fields is None:
            return None
        vibe = VibeRecord(
            vibe_name=fields[1],
            primary_colour=fields[2],
            secondary_colour=fields[3],
        )
        logger.debug("Vibe %d -> %s", vibe_id, vibe)
        return vibe
