"""Mapping functions to convert raw Reddit listings to playable feed items."""

import logging
from typing import Iterable, List, Optional

from gif_feed.models.listing import FeedItem, RawListing, RedditVideo

logger = logging.getLogger(__name__)

DIRECT_VIDEO_EXTENSION = ".mp4"
CONVERTIBLE_EXTENSIONS = (".gifv", ".webm")
PLACEHOLDER_THUMBNAILS = ("default", "none", "nsfw")
IMAGE_EXTENSIONS = (".jpg", ".png")
DEFAULT_ASSET_DIR = "/assets"


def _embedded_videos(listing: RawListing) -> List[Optional[RedditVideo]]:
    return [
        listing.secure_media.reddit_video if listing.secure_media else None,
        listing.media.reddit_video if listing.media else None,
        listing.preview.reddit_video_preview if listing.preview else None,
    ]


def best_source(listing: RawListing) -> Optional[str]:
    """
    Pick the best playable source for a listing.

    The checks run in a fixed order and the first match wins: a direct
    ``.mp4`` link, a ``.gifv``/``.webm`` link rewritten to ``.mp4``, then the
    fallback URL of the secure media video, the media video and the preview
    video. A video object without a fallback URL (still transcoding) does
    not count as a match.

    Args:
        listing: Raw listing from the upstream API

    Returns:
        A playable URL, or None if the listing has no usable format
    """
    url = listing.url

    if url.endswith(DIRECT_VIDEO_EXTENSION):
        return url

    for extension in CONVERTIBLE_EXTENSIONS:
        if url.endswith(extension):
            return url[: -len(extension)] + DIRECT_VIDEO_EXTENSION

    for video in _embedded_videos(listing):
        if video is not None and video.fallback_url:
            return video.fallback_url

    return None


def resolve_thumbnail(thumbnail: str, asset_dir: str = DEFAULT_ASSET_DIR) -> str:
    """
    Resolve a raw thumbnail value to something displayable.

    Reddit's placeholder values map to a local asset of the same name; any
    other value that is not a jpg/png falls back to the generic default.
    """
    if thumbnail in PLACEHOLDER_THUMBNAILS:
        thumbnail = f"{asset_dir}/{thumbnail}.png"

    if not thumbnail.endswith(IMAGE_EXTENSIONS):
        return f"{asset_dir}/default.png"

    return thumbnail


def listing_to_item(listing: RawListing, asset_dir: str = DEFAULT_ASSET_DIR) -> Optional[FeedItem]:
    """
    Convert a RawListing to a FeedItem.

    Args:
        listing: Raw listing from the upstream API
        asset_dir: Directory prefix for local placeholder thumbnails

    Returns:
        The resolved FeedItem, or None if no playable source exists
    """
    thumbnail = resolve_thumbnail(listing.thumbnail, asset_dir)
    src = best_source(listing)
    if not src:
        logger.debug(f"Dropping {listing.name}: no playable source")
        return None

    return FeedItem(
        name=listing.name,
        title=listing.title,
        author=listing.author,
        permalink=listing.permalink,
        comments=listing.num_comments,
        thumbnail=thumbnail,
        src=src,
    )


def listings_to_items(
    listings: Iterable[RawListing],
    asset_dir: str = DEFAULT_ASSET_DIR,
) -> List[FeedItem]:
    """Convert listings in order, dropping the ones without a playable source."""
    items = []

    for listing in listings:
        item = listing_to_item(listing, asset_dir)
        if item is not None:
            items.append(item)

    return items
