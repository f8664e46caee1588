"""Fetching, error handling and pagination of Reddit listings."""

from gif_feed.collector.error_handler import UpstreamError, describe_error, with_exponential_backoff
from gif_feed.collector.feed import FeedEngine
from gif_feed.collector.rate_limiter import RateLimiter

__all__ = ["FeedEngine", "RateLimiter", "UpstreamError", "describe_error", "with_exponential_backoff"]
