"""Request budget for the public listing endpoint."""

import asyncio
import logging
import time
from collections import deque
from typing import Any, Callable, Deque, Mapping, Optional

from gif_feed.config import RateLimitConfig

logger = logging.getLogger(__name__)

WINDOW_SEC = 60.0
DEFAULT_RETRY_AFTER_SEC = 60.0


class RateLimiter:
    """
    Rolling one-minute request budget.

    A chain issues its calls back to back, so requests are not paced
    individually: up to ``max_requests_per_minute`` may go out in any 60 s
    window, and only a request that would exceed that waits for the oldest
    one to age out. Every request is counted when it is sent, whether or not
    it succeeds.

    The ``x-ratelimit-remaining``/``x-ratelimit-reset`` headers Reddit sends
    tighten the budget: once fewer than ``min_remaining_calls`` are left the
    next request waits for the server-side reset.
    """

    def __init__(self, config: RateLimitConfig, clock: Callable[[], float] = time.monotonic):
        self.config = config
        self.clock = clock
        self.remaining_calls: Optional[int] = None
        self.reset_at: Optional[float] = None
        self._sent: Deque[float] = deque()

    @property
    def requests_in_window(self) -> int:
        self._expire(self.clock())
        return len(self._sent)

    def _expire(self, now: float) -> None:
        while self._sent and now - self._sent[0] >= WINDOW_SEC:
            self._sent.popleft()

    def _window_delay(self, now: float) -> float:
        self._expire(now)
        if len(self._sent) < self.config.max_requests_per_minute:
            return 0.0
        return self._sent[0] + WINDOW_SEC - now

    def _server_delay(self, now: float) -> float:
        if self.remaining_calls is None or self.reset_at is None:
            return 0.0
        if self.remaining_calls >= self.config.min_remaining_calls:
            return 0.0
        return max(0.0, self.reset_at - now + self.config.sleep_buffer_sec)

    async def pre_request(self) -> None:
        """Wait until the budget allows another request, then count it."""
        now = self.clock()
        window_delay = self._window_delay(now)
        server_delay = self._server_delay(now)

        delay = max(window_delay, server_delay)
        if delay > 0:
            reason = "server quota" if server_delay >= window_delay else "local budget"
            logger.info(f"Request budget spent ({reason}), waiting {delay:.2f}s")
            await asyncio.sleep(delay)
            now = self.clock()

        if server_delay > 0 or (self.reset_at is not None and now >= self.reset_at):
            self.remaining_calls = None
            self.reset_at = None

        self._sent.append(now)

    def update_from_headers(self, headers: Mapping[str, Any]) -> None:
        """Record the server-side quota reported on a response."""
        # aiohttp headers are case-insensitive, plain dicts in tests are not
        lowered = {str(key).lower(): value for key, value in headers.items()}

        try:
            if "x-ratelimit-remaining" in lowered:
                self.remaining_calls = int(float(lowered["x-ratelimit-remaining"]))
            if "x-ratelimit-reset" in lowered:
                self.reset_at = self.clock() + float(lowered["x-ratelimit-reset"])
        except (TypeError, ValueError):
            logger.warning(f"Ignoring unparseable rate limit headers: {lowered}")

    async def handle_429(self, retry_after: Optional[str] = None) -> None:
        """Wait out a 429 response, honouring Retry-After when it is a number of seconds."""
        try:
            delay = float(retry_after) if retry_after else DEFAULT_RETRY_AFTER_SEC
        except ValueError:
            delay = DEFAULT_RETRY_AFTER_SEC
        delay += self.config.sleep_buffer_sec

        logger.warning(f"Rate limited (429), retrying in {delay:.2f}s")
        await asyncio.sleep(delay)

        self.remaining_calls = None
        self.reset_at = None
