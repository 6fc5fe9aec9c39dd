"""External music catalogs queried for every resolved song."""

from .base import CatalogClient
from .deezer import DeezerClient
from .spotify import SpotifyClient
from .tidal import TidalClient

__all__ = ["CatalogClient", "DeezerClient", "SpotifyClient", "TidalClient"]
