"""Listing and feed item models."""

from gif_feed.models.listing import FeedItem, ListingPage, ListingResponse, RawListing
from gif_feed.models.mapping import best_source, listing_to_item, listings_to_items, resolve_thumbnail

__all__ = [
    "FeedItem",
    "ListingPage",
    "ListingResponse",
    "RawListing",
    "best_source",
    "listing_to_item",
    "listings_to_items",
    "resolve_thumbnail",
]
