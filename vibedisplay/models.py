"""Data model shared by the router, lookup store, catalogs and display."""

from dataclasses import asdict, dataclass

NO_MUSIC = -1       # last_music_id before anything has played
GROUP_SIZE = 20     # consecutive music ids per vibe


def _as_int(value) -> int | None:
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


@dataclass(frozen=True)
class PlaybackEvent:
    device_id: int | None
    music_id: int | None = None
    current_state: int | None = None

    @classmethod
    def from_message(cls, data: dict) -> "PlaybackEvent":
        """Build an event from a channel payload; unknown keys are ignored."""
        return cls(
            device_id=_as_int(data.get("device_id")),
            music_id=_as_int(data.get("music_id")),
            current_state=_as_int(data.get("current_state")),
        )


@dataclass(frozen=True)
class SongRecord:
    song_name: str
    artist: str


@dataclass(frozen=True)
class VibeRecord:
    vibe_name: str
    primary_colour: str
    secondary_colour: str

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CatalogResult:
    """One catalog's best match.  None fields mean "no answer", not an error."""

    song_name: str | None = None
    artist: str | None = None
    album_art: str | None = None
    link: str | None = None

    @classmethod
    def empty(cls) -> "CatalogResult":
        return cls()

    @property
    def is_empty(self) -> bool:
        return not any((self.song_name, self.artist, self.album_art, self.link))


@dataclass(frozen=True)
class MergedMetadata:
    song_name: str
    artist: str
    album_art: str | None = None
    spotify_link: str | None = None
    tidal_link: str | None = None
    deezer_link: str | None = None

    @property
    def unavailable(self) -> list[str]:
        """Services with no link for this track."""
        links = {
            "spotify": self.spotify_link,
            "tidal": self.tidal_link,
            "deezer": self.deezer_link,
        }
        return [name for name, link in links.items() if link is None]

    def to_dict(self) -> dict:
        data = asdict(self)
        data["unavailable"] = self.unavailable
        return data
