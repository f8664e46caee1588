"""Per-item playback lifecycle."""

from gif_feed.player.controller import MediaElement, PlaybackController, PlaybackRegistry

__all__ = ["MediaElement", "PlaybackController", "PlaybackRegistry"]
