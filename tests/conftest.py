"""Shared fixtures: lookup tables on disk, a recording display, stub catalogs."""

import asyncio

import pytest

from vibedisplay.catalogs import CatalogClient
from vibedisplay.display import PresentationSink
from vibedisplay.lib import config
from vibedisplay.models import CatalogResult

SONG_Z = "21,Song Z,Artist Q"


@pytest.fixture(autouse=True)
def empty_config(monkeypatch):
    """Every test starts from an empty config so defaults apply."""
    monkeypatch.setattr(config, "_config", {})
    for var in ("SPOTIFY_CLIENT_ID", "SPOTIFY_CLIENT_SECRET", "TIDAL_CLIENT_ID",
                "TIDAL_CLIENT_SECRET", "RAPIDAPI_KEY", "VIBEDISPLAY_CONFIG"):
        monkeypatch.delenv(var, raising=False)


def song_rows(count=30):
    rows = ["music_id,song_name,artist"]
    for i in range(1, count):
        rows.append(SONG_Z if i == 21 else f"{i},Song {i},Artist {i}")
    return "\n".join(rows) + "\n"


VIBE_ROWS = (
    "vibe_id,vibe_name,primary_colour,secondary_colour\n"
    "1,Calm,#000000,#FFFFFF\n"
    "2,Chill,#112233,#445566\n"
)


@pytest.fixture
def tables(tmp_path):
    songs = tmp_path / "songs.csv"
    vibes = tmp_path / "vibes.csv"
    songs.write_text(song_rows())
    vibes.write_text(VIBE_ROWS)
    return str(songs), str(vibes)


class RecordingSink(PresentationSink):
    """Keeps every presentation call as (method, args) for assertions."""

    def __init__(self):
        self.calls = []

    def names(self):
        return [name for name, _ in self.calls]

    def of(self, name):
        return [args for n, args in self.calls if n == name]

    async def present_metadata(self, metadata):
        self.calls.append(("present_metadata", (metadata,)))

    async def present_offline(self):
        self.calls.append(("present_offline", ()))

    async def present_error(self):
        self.calls.append(("present_error", ()))

    async def present_vibe(self, vibe):
        self.calls.append(("present_vibe", (vibe,)))

    async def present_device_state(self, device_id, state):
        self.calls.append(("present_device_state", (device_id, state)))


@pytest.fixture
def sink():
    return RecordingSink()


class StubCatalog(CatalogClient):
    """Catalog answering from a fixed result, optionally gated per song."""

    requires_login = False

    def __init__(self, name, result=None, gates=None, results=None):
        self.name = name
        super().__init__(settings={})
        self.result = result or CatalogResult.empty()
        self.results = results or {}
        self.gates = gates or {}
        self.queries = []

    async def search(self, session, song_name, artist, token):
        self.queries.append((song_name, artist))
        gate = self.gates.get(song_name)
        if gate is not None:
            await gate.wait()
        return self.results.get(song_name, self.result)


class FailingCatalog(StubCatalog):
    async def search(self, session, song_name, artist, token):
        raise ConnectionError("catalog down")


@pytest.fixture
def catalogs():
    return (
        StubCatalog("spotify", CatalogResult("X", "Artist A", "art-a", "a")),
        StubCatalog("tidal", CatalogResult("Y", "Artist B", "art-b", "b")),
        StubCatalog("deezer", CatalogResult("Z", "Artist C", "art-c", "c")),
    )


async def settle(router):
    """Let every in-flight pipeline finish."""
    await asyncio.sleep(0)
    await router.wait_idle()
