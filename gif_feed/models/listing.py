"""Data models for Reddit listings and resolved feed items."""

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class RedditVideo(BaseModel):
    """
    Embedded video object; only the fallback URL is used.

    Videos that are still transcoding come without one.
    """
    model_config = ConfigDict(extra="ignore")

    fallback_url: Optional[str] = None


class MediaEmbed(BaseModel):
    """The `media` / `secure_media` objects of a post."""
    model_config = ConfigDict(extra="ignore")

    reddit_video: Optional[RedditVideo] = None


class Preview(BaseModel):
    """The `preview` object of a post."""
    model_config = ConfigDict(extra="ignore")

    reddit_video_preview: Optional[RedditVideo] = None


class RawListing(BaseModel):
    """
    One post as returned by the listing endpoint.

    `name` is the fullname (e.g. ``t3_abc123``) and doubles as the
    pagination cursor.
    """
    model_config = ConfigDict(extra="ignore")

    name: str
    author: str = "[deleted]"
    permalink: str = ""
    title: str = ""
    num_comments: int = 0
    thumbnail: str = ""
    url: str = ""
    secure_media: Optional[MediaEmbed] = None
    media: Optional[MediaEmbed] = None
    preview: Optional[Preview] = None


class ListingChild(BaseModel):
    model_config = ConfigDict(extra="ignore")

    kind: str = "t3"
    data: dict


class ListingData(BaseModel):
    model_config = ConfigDict(extra="ignore")

    after: Optional[str] = None
    children: List[ListingChild] = Field(default_factory=list)


class ListingResponse(BaseModel):
    """Envelope of a `/r/<subreddit>/<sort>/.json` response."""
    model_config = ConfigDict(extra="ignore")

    kind: str = "Listing"
    data: ListingData


class ListingPage(BaseModel):
    """
    One fetched page: the records that validated plus the pagination cursor.

    The cursor is taken from the raw children, so records skipped during
    parsing still advance it.
    """

    listings: List[RawListing] = Field(default_factory=list)
    cursor: Optional[str] = None


class FeedItem(BaseModel):
    """A resolved, playable feed entry."""
    model_config = ConfigDict(frozen=True)

    name: str
    title: str
    author: str
    permalink: str
    comments: int
    thumbnail: str
    src: str = Field(min_length=1)
