"""Exceptions raised inside the metadata resolution pipeline."""


class VibeDisplayError(Exception):
    """Base class for display pipeline errors."""


class TableReadError(VibeDisplayError):
    """A lookup table could not be read (missing file, HTTP error, ...).

    Distinct from a lookup that simply finds no row: that returns None.
    """

    def __init__(self, source: str, reason):
        super().__init__(f"could not read table {source}: {reason}")
        self.source = source
        self.reason = reason


class CatalogError(VibeDisplayError):
    """A catalog login or search failed.  Never escapes CatalogClient.query()."""
