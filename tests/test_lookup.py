import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from vibedisplay import lookup
from vibedisplay.aggregator import Aggregator
from vibedisplay.errors import TableReadError
from vibedisplay.lookup import LookupStore, vibe_id_for
from vibedisplay.models import SongRecord, VibeRecord
from vibedisplay.router import EventRouter

from conftest import VIBE_ROWS, RecordingSink, StubCatalog, song_rows


@pytest.fixture
def store(tables):
    songs, vibes = tables
    return LookupStore(song_table=songs, vibe_table=vibes)


async def test_song_row_is_resolved(store):
    assert await store.lookup_song(21) == SongRecord("Song Z", "Artist Q")
    assert await store.lookup_song(1) == SongRecord("Song 1", "Artist 1")


async def test_header_row_is_not_a_song(store):
    assert await store.lookup_song(0) is None


@pytest.mark.parametrize("music_id", [-1, -20, 30, 1000])
async def test_out_of_range_song(store, music_id):
    assert await store.lookup_song(music_id) is None


async def test_vibe_rows_are_offset_by_header(store):
    assert await store.lookup_vibe(1) == VibeRecord("Chill", "#112233", "#445566")
    assert await store.lookup_vibe(0) == VibeRecord("Calm", "#000000", "#FFFFFF")


async def test_vibe_header_and_range(store):
    # vibe -1 would be the header row
    assert await store.lookup_vibe(-1) is None
    assert await store.lookup_vibe(2) is None   # trailing empty line
    assert await store.lookup_vibe(10) is None


def test_vibe_id_groups_twenty_songs():
    assert vibe_id_for(0) == 0
    assert vibe_id_for(19) == 0
    assert vibe_id_for(20) == 1
    assert vibe_id_for(21) == 1
    assert vibe_id_for(40) == 2


async def test_malformed_rows(tmp_path):
    songs = tmp_path / "songs.csv"
    songs.write_text("header\n1,Only a title\n2,,Nobody\n3,Fine,Band\n")
    store = LookupStore(song_table=str(songs), vibe_table=str(songs))
    assert await store.lookup_song(1) is None
    assert await store.lookup_song(2) is None
    assert await store.lookup_song(3) == SongRecord("Fine", "Band")


async def test_crlf_tables(tmp_path):
    songs = tmp_path / "songs.csv"
    songs.write_bytes(b"header\r\n1,Title,Artist\r\n")
    store = LookupStore(song_table=str(songs), vibe_table=str(songs))
    assert await store.lookup_song(1) == SongRecord("Title", "Artist")


async def test_table_is_reread_per_call(tmp_path):
    songs = tmp_path / "songs.csv"
    songs.write_text("header\n1,Old,Artist\n")
    store = LookupStore(song_table=str(songs), vibe_table=str(songs))
    assert (await store.lookup_song(1)).song_name == "Old"
    songs.write_text("header\n1,New,Artist\n")
    assert (await store.lookup_song(1)).song_name == "New"


async def test_missing_table_is_a_read_error_not_not_found(tmp_path):
    store = LookupStore(song_table=str(tmp_path / "nope.csv"),
                        vibe_table=str(tmp_path / "nope.csv"))
    with pytest.raises(TableReadError):
        await store.lookup_song(1)
    with pytest.raises(TableReadError):
        await store.lookup_vibe(1)


@pytest.fixture
async def table_server():
    async def songs(request):
        agents.append(request.headers.get("User-Agent"))
        return web.Response(text=song_rows())

    async def vibes(request):
        agents.append(request.headers.get("User-Agent"))
        return web.Response(text=VIBE_ROWS)

    async def garbled(request):
        return web.Response(body=b"header\n1,\xff\xfe,Artist\n",
                            content_type="text/csv", charset="utf-8")

    agents = []
    app = web.Application()
    app.router.add_get("/db/garbled.csv", garbled)
    app.router.add_get("/db/songs.csv", songs)
    app.router.add_get("/db/vibes.csv", vibes)
    server = TestServer(app)
    server.agents = agents
    await server.start_server()
    yield server
    await server.close()


async def test_tables_over_http(table_server):
    store = LookupStore(
        song_table=str(table_server.make_url("/db/songs.csv")),
        vibe_table=str(table_server.make_url("/db/vibes.csv")),
    )
    assert await store.lookup_song(21) == SongRecord("Song Z", "Artist Q")
    assert await store.lookup_vibe(1) == VibeRecord("Chill", "#112233", "#445566")


async def test_http_error_is_a_read_error(table_server):
    store = LookupStore(
        song_table=str(table_server.make_url("/db/missing.csv")),
        vibe_table=str(table_server.make_url("/db/missing.csv")),
    )
    with pytest.raises(TableReadError):
        await store.lookup_song(21)


async def test_undecodable_table_is_a_read_error(table_server):
    store = LookupStore(
        song_table=str(table_server.make_url("/db/garbled.csv")),
        vibe_table=str(table_server.make_url("/db/garbled.csv")),
    )
    with pytest.raises(TableReadError):
        await store.lookup_vibe(0)


async def test_router_lends_its_session_to_url_tables(table_server):
    store = LookupStore(
        song_table=str(table_server.make_url("/db/songs.csv")),
        vibe_table=str(table_server.make_url("/db/vibes.csv")),
    )
    aggregator = Aggregator(StubCatalog("spotify"), StubCatalog("tidal"), StubCatalog("deezer"))
    router = EventRouter(sink=RecordingSink(), lookup=store, aggregator=aggregator,
                         primary_device_id=1)
    await router.start()
    try:
        assert store.session is aggregator.session
        session = store.session
        await store.lookup_song(21)
        await store.lookup_vibe(1)
        assert not session.closed
        assert table_server.agents == ["vibedisplay/1.0", "vibedisplay/1.0"]
    finally:
        await router.stop()
    assert store.session is None
    assert session.closed


def test_relative_tables_resolve_against_base_path(monkeypatch, tmp_path):
    monkeypatch.setattr(lookup, "BASE_PATH", str(tmp_path))
    store = LookupStore(song_table="db/songs.csv", vibe_table="https://tables.example/vibes.csv")
    assert store.song_table == str(tmp_path / "db" / "songs.csv")
    assert store.vibe_table == "https://tables.example/vibes.csv"
