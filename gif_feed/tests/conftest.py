"""Shared fixtures and fakes for the gif_feed tests."""

from typing import Dict, List, Optional, Sequence, Union

import pytest

from gif_feed.config import FeedConfig
from gif_feed.models.listing import ListingPage, RawListing


def make_listing(name: str, url: str = "https://example.com/post", **extra) -> RawListing:
    """Build a RawListing with sensible defaults."""
    data = {
        "name": name,
        "author": "test_user",
        "permalink": f"/r/gifs/comments/{name}/",
        "title": f"Post {name}",
        "num_comments": 3,
        "thumbnail": "https://example.com/thumb.jpg",
        "url": url,
    }
    data.update(extra)
    return RawListing.model_validate(data)


def make_page(prefix: str, playable: int, size: int = 6) -> List[RawListing]:
    """A page of `size` listings whose first `playable` entries have a direct video."""
    return [
        make_listing(
            f"t3_{prefix}{i}",
            url=f"https://i.example.com/{prefix}{i}.mp4" if i < playable else f"https://example.com/{prefix}{i}",
        )
        for i in range(size)
    ]


Page = Union[Sequence[RawListing], ListingPage, BaseException]


def as_page(listings: Sequence[RawListing]) -> ListingPage:
    """Wrap listings the way the client does when every child validated."""
    return ListingPage(listings=list(listings), cursor=listings[-1].name if listings else None)


class FakeSource:
    """
    Listing source replaying canned pages, optionally per subreddit.

    A page is a list of listings, a ready ListingPage (to control the cursor)
    or an exception to raise.
    """

    def __init__(self, pages: Optional[List[Page]] = None, by_subreddit: Optional[Dict[str, List[Page]]] = None):
        self.pages = list(pages or [])
        self.by_subreddit = {k: list(v) for k, v in (by_subreddit or {}).items()}
        self.calls = []

    async def fetch_listing(self, subreddit, after, limit):
        self.calls.append((subreddit, after, limit))
        queue = self.by_subreddit.get(subreddit, self.pages)
        if not queue:
            return ListingPage()
        page = queue.pop(0)
        if isinstance(page, BaseException):
            raise page
        if isinstance(page, ListingPage):
            return page
        return as_page(page)


class EndlessSource:
    """Listing source that always returns a full page of unusable listings."""

    def __init__(self):
        self.calls = []

    async def fetch_listing(self, subreddit, after, limit):
        self.calls.append((subreddit, after, limit))
        return as_page(make_page(f"x{len(self.calls)}_", playable=0, size=limit))


@pytest.fixture
def feed_config():
    """Feed config with no debounce delay to keep tests fast."""
    return FeedConfig(debounce_sec=0.0)
