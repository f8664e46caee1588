"""GIF feed - paginated Reddit video feed with lazy per-item playback."""

__version__ = "0.1.0"
