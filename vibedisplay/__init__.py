"""Now-playing display: resolves device playback events into song and vibe metadata."""

__version__ = "1.0.0"
