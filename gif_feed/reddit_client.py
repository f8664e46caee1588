"""Reddit listing client for the public, unauthenticated JSON endpoints."""

import asyncio
import logging
from typing import Any, Dict, Optional

import aiohttp
from aiohttp import ClientError
from pydantic import ValidationError

from gif_feed.collector.error_handler import UpstreamError, describe_error, with_exponential_backoff
from gif_feed.collector.rate_limiter import RateLimiter
from gif_feed.config import Config
from gif_feed.models.listing import ListingData, ListingPage, ListingResponse, RawListing

logger = logging.getLogger(__name__)

MALFORMED_RESPONSE_MESSAGE = "Malformed listing response"


def page_cursor(data: ListingData) -> Optional[str]:
    """Fullname of the last raw child, or the envelope's `after` if it has none."""
    if data.children:
        name = data.children[-1].data.get("name")
        if isinstance(name, str) and name:
            return name
    return data.after


def parse_listing(payload: Any) -> ListingPage:
    """
    Parse a listing response body into a ListingPage.

    Children that fail validation are skipped with a warning but still
    count for the cursor; an envelope that is not a listing at all raises
    UpstreamError.
    """
    try:
        response = ListingResponse.model_validate(payload)
    except ValidationError as e:
        raise UpstreamError(MALFORMED_RESPONSE_MESSAGE) from e

    listings = []
    for child in response.data.children:
        try:
            listings.append(RawListing.model_validate(child.data))
        except ValidationError as e:
            logger.warning(f"Skipping malformed listing {child.data.get('name')}: {e.error_count()} errors")

    return ListingPage(listings=listings, cursor=page_cursor(response.data))


class RedditListingClient:
    """Wrapper around an aiohttp session fetching subreddit listings."""

    def __init__(self, config: Config, session: Optional[aiohttp.ClientSession] = None):
        """
        Initialize the client with configuration.

        Args:
            config: Application configuration
            session: Optional externally managed session
        """
        self.config = config
        self.rate_limiter = RateLimiter(config.rate_limit)
        self._session = session
        self._owns_session = session is None
        self._get_json = with_exponential_backoff(
            max_retries=config.http.max_retries,
            rate_limiter=self.rate_limiter,
        )(self._request_json)

    async def initialize(self) -> aiohttp.ClientSession:
        """Create the HTTP session if one was not supplied."""
        if self._session is None:
            logger.info("Initializing listing client")
            self._session = aiohttp.ClientSession(
                headers={"User-Agent": self.config.http.user_agent},
                timeout=aiohttp.ClientTimeout(total=self.config.http.request_timeout_sec),
            )
            self._owns_session = True
        return self._session

    def listing_url(self, subreddit: str) -> str:
        base_url = self.config.http.base_url.rstrip("/")
        return f"{base_url}/r/{subreddit}/{self.config.feed.sort}/.json"

    async def _request_json(self, url: str, params: Dict[str, Any]) -> Any:
        session = await self.initialize()
        await self.rate_limiter.pre_request()

        async with session.get(url, params=params, raise_for_status=True) as response:
            self.rate_limiter.update_from_headers(response.headers)
            return await response.json(content_type=None)

    async def fetch_listing(
        self,
        subreddit: str,
        after: Optional[str] = None,
        limit: Optional[int] = None,
    ) -> ListingPage:
        """
        Fetch one page of listings.

        Args:
            subreddit: Name of the subreddit
            after: Fullname of the listing to continue after
            limit: Page size (defaults to the configured page size)

        Returns:
            The page's raw listings in upstream order and its cursor

        Raises:
            UpstreamError: If the request fails or the body is not a listing
        """
        url = self.listing_url(subreddit)
        params: Dict[str, Any] = {"limit": limit or self.config.feed.page_size}
        if after:
            params["after"] = after

        logger.debug(f"GET {url} params={params}")
        try:
            payload = await self._get_json(url, params)
        except (ClientError, asyncio.TimeoutError) as e:
            status = getattr(e, "status", None)
            message = describe_error(e)
            logger.warning(f"Listing request for r/{subreddit} failed: {message}")
            raise UpstreamError(message, status=status, url=url) from e
        except ValueError as e:
            logger.warning(f"Listing response for r/{subreddit} is not JSON: {e}")
            raise UpstreamError(MALFORMED_RESPONSE_MESSAGE, url=url) from e

        return parse_listing(payload)

    async def close(self) -> None:
        """Close the HTTP session if this client created it."""
        if self._session is not None and self._owns_session:
            logger.info("Closing listing client")
            await self._session.close()
        self._session = None

    async def __aenter__(self) -> "RedditListingClient":
        await self.initialize()
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()
