"""Error translation and retry logic for Reddit listing requests."""

import asyncio
import logging
from functools import wraps
from typing import Any, Awaitable, Callable, Optional, TypeVar, cast
from urllib.parse import urlparse

from aiohttp import ClientError
from aiohttp.client_exceptions import ClientResponseError

from gif_feed.collector.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

T = TypeVar("T")
AsyncFunc = Callable[..., Awaitable[T]]

TIMEOUT_MESSAGE = "Request timed out"
UNKNOWN_ERROR_MESSAGE = "Unknown Error"


class UpstreamError(Exception):
    """A listing request failed; `message` is ready to show to the user."""

    def __init__(self, message: str, status: Optional[int] = None, url: Optional[str] = None):
        self.message = message
        self.status = status
        self.url = url
        super().__init__(self.message)


def subreddit_from_url(url: str) -> Optional[str]:
    """
    Extract the subreddit name from a listing URL such as
    ``https://www.reddit.com/r/gifs/hot/.json``.

    The name is the path segment right after the first ``r`` segment, so a
    base URL with a path prefix (a proxy mount such as ``/reddit/r/gifs``)
    still resolves.
    """
    segments = [segment for segment in urlparse(url).path.split("/") if segment]
    for index, segment in enumerate(segments[:-1]):
        if segment == "r":
            return segments[index + 1]
    return None


def describe_error(exc: BaseException) -> str:
    """
    Translate a transport failure into a single human-readable message.

    A 404 on a ``/r/<name>/...json`` path becomes
    ``Failed to load for /r/<name>``; other HTTP errors use the response's
    status text.
    """
    if isinstance(exc, UpstreamError):
        return exc.message

    if isinstance(exc, ClientResponseError):
        url = str(exc.request_info.real_url) if exc.request_info else ""
        if exc.status == 404 and url:
            path = urlparse(url).path
            subreddit = subreddit_from_url(url)
            if subreddit and path.endswith(".json"):
                return f"Failed to load for /r/{subreddit}"
        return exc.message or UNKNOWN_ERROR_MESSAGE

    if isinstance(exc, asyncio.TimeoutError):
        return TIMEOUT_MESSAGE

    return UNKNOWN_ERROR_MESSAGE


def with_exponential_backoff(
    max_retries: int = 0,
    initial_backoff: float = 1.0,
    max_backoff: float = 32.0,
    backoff_factor: float = 2.0,
    rate_limiter: Optional[RateLimiter] = None,
) -> Callable[[AsyncFunc[T]], AsyncFunc[T]]:
    """
    Decorator for retrying async functions with exponential backoff.

    Every retry, including the ones caused by 429 responses, counts toward
    `max_retries`. With the default of 0 the first failure is re-raised.

    Args:
        max_retries: Maximum number of retry attempts
        initial_backoff: Initial backoff time in seconds
        max_backoff: Maximum backoff time in seconds
        backoff_factor: Multiplier for backoff time between retries
        rate_limiter: Optional rate limiter for handling 429 responses

    Returns:
        Decorator function
    """
    def decorator(func: AsyncFunc[T]) -> AsyncFunc[T]:
        @wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> T:
            retries = 0
            backoff = initial_backoff

            while True:
                try:
                    return await func(*args, **kwargs)

                except ClientResponseError as e:
                    if retries >= max_retries:
                        raise

                    # Handle rate limiting (429)
                    if e.status == 429 and rate_limiter:
                        logger.warning(f"Rate limited (429): {e}")
                        retry_after = e.headers.get("Retry-After") if e.headers else None
                        await rate_limiter.handle_429(retry_after)
                        retries += 1
                        continue

                    # Handle server errors (5xx)
                    if 500 <= e.status < 600:
                        logger.warning(
                            f"Server error {e.status}: {e}. "
                            f"Retrying in {backoff:.2f}s ({retries+1}/{max_retries})"
                        )
                        await asyncio.sleep(backoff)
                        retries += 1
                        backoff = min(backoff * backoff_factor, max_backoff)
                        continue

                    # Other client errors, just log and raise
                    logger.warning(f"Client error {e.status}: {e}")
                    raise

                except (ClientError, asyncio.TimeoutError) as e:
                    if retries >= max_retries:
                        raise

                    logger.warning(
                        f"Error: {e!r}. "
                        f"Retrying in {backoff:.2f}s ({retries+1}/{max_retries})"
                    )
                    await asyncio.sleep(backoff)
                    retries += 1
                    backoff = min(backoff * backoff_factor, max_backoff)

        return cast(AsyncFunc[T], wrapper)
    return decorator
