"""Feed pagination engine: query switching, debounce and fetch-until-satisfied chains."""

import asyncio
import logging
from dataclasses import replace
from typing import Callable, List, Optional, Protocol, Tuple

from gif_feed.collector.error_handler import UpstreamError, describe_error
from gif_feed.config import FeedConfig
from gif_feed.models.listing import FeedItem, ListingPage
from gif_feed.models.mapping import listings_to_items
from gif_feed.state import FeedState, PageFetchResult, StateStore

logger = logging.getLogger(__name__)


class ListingSource(Protocol):
    """Anything able to return one page of raw listings with its cursor."""

    async def fetch_listing(
        self,
        subreddit: str,
        after: Optional[str],
        limit: int,
    ) -> ListingPage:
        ...


class FeedEngine:
    """
    Owns the feed state for one view.

    All methods must be called from the event loop the engine runs on. At
    most one chain of upstream calls is alive at a time; a chain started for
    an older query or superseded by a newer chain never commits.
    """

    def __init__(self, source: ListingSource, config: Optional[FeedConfig] = None):
        """
        Initialize the engine.

        Args:
            source: Upstream listing source
            config: Pagination configuration
        """
        self.source = source
        self.config = config or FeedConfig()
        self._store: StateStore[FeedState] = StateStore(FeedState())
        self._query: Optional[str] = None
        self._generation = 0
        self._first_page_done = False
        self._debounce_task: Optional[asyncio.Task] = None
        self._chain_task: Optional[asyncio.Task] = None

    @property
    def state(self) -> FeedState:
        return self._store.state

    @property
    def items(self) -> Tuple[FeedItem, ...]:
        return self._store.state.items

    @property
    def loading(self) -> bool:
        return self._store.state.loading

    @property
    def error(self) -> Optional[str]:
        return self._store.state.error

    @property
    def cursor(self) -> Optional[str]:
        return self._store.state.cursor

    @property
    def query(self) -> Optional[str]:
        return self._query

    @property
    def chain_in_flight(self) -> bool:
        return self._chain_task is not None and not self._chain_task.done()

    def subscribe(self, callback: Callable[[FeedState], None]) -> Callable[[], None]:
        """Register a callback receiving every new FeedState."""
        return self._store.subscribe(callback)

    def normalize_query(self, text: Optional[str]) -> str:
        text = (text or "").strip()
        return text or self.config.default_subreddit

    def start(self, query: Optional[str] = None) -> None:
        """Apply the initial query (default collection if empty) without debounce."""
        self._apply_query(self.normalize_query(query))

    def set_query(self, text: Optional[str]) -> None:
        """
        Accept raw user input.

        Input is debounced: every call restarts the timer, and only the value
        present when it fires is applied.
        """
        if self._debounce_task is not None and not self._debounce_task.done():
            self._debounce_task.cancel()
        self._debounce_task = asyncio.create_task(self._debounce(text))

    async def _debounce(self, text: Optional[str]) -> None:
        await asyncio.sleep(self.config.debounce_sec)
        self._apply_query(self.normalize_query(text))

    def _apply_query(self, query: str) -> bool:
        if query == self._query:
            logger.debug(f"Query unchanged ({query}), not refetching")
            return False

        logger.info(f"Switching feed to r/{query}")
        self._cancel_chain()
        self._query = query
        self._first_page_done = False
        # Errors belong to the previous collection
        self._store.set(FeedState(items=(), error=None, loading=True, cursor=None, query=query))
        self._start_chain(None)
        return True

    def request_more(self) -> bool:
        """
        Fetch the next page from the current cursor.

        Returns:
            True if a chain was started, False if the call was a no-op
        """
        if self._query is None:
            logger.debug("request_more ignored: no query applied yet")
            return False

        if self.chain_in_flight:
            logger.debug("request_more ignored: a chain is already in flight")
            return False

        if self._first_page_done and self.cursor is None:
            logger.debug(f"request_more ignored: r/{self._query} is exhausted")
            return False

        self._start_chain(self.cursor)
        return True

    def _start_chain(self, cursor: Optional[str]) -> None:
        self._generation += 1
        self._store.set(replace(self._store.state, loading=True))
        self._chain_task = asyncio.create_task(
            self._run_chain(self._query, cursor, self._generation)
        )

    def _cancel_chain(self) -> None:
        if self.chain_in_flight:
            logger.debug("Cancelling in-flight chain")
            self._chain_task.cancel()
        self._chain_task = None

    async def _fetch_page(self, query: str, after: Optional[str], required: int) -> PageFetchResult:
        """Run one upstream call and resolve its listings."""
        page = await self.source.fetch_listing(query, after, self.config.page_size)
        items = listings_to_items(page.listings, self.config.asset_dir)

        logger.debug(
            f"r/{query} after={after}: {len(page.listings)} listings, "
            f"{len(items)} playable, {required} required"
        )
        return PageFetchResult(items=tuple(items), required=required, cursor=page.cursor)

    async def _run_chain(self, query: str, cursor: Optional[str], generation: int) -> None:
        """
        Keep calling upstream until the page quota is met.

        Stops when the quota is met, the cursor runs out, the attempt ceiling
        is reached or a call fails. Whatever was accumulated is committed in
        one step, unless a newer chain has started in the meantime.
        """
        quota = self.config.page_quota
        accumulated: List[FeedItem] = []
        error: Optional[str] = None
        succeeded = False
        attempts = 0

        while True:
            attempts += 1
            try:
                page = await self._fetch_page(query, cursor, quota - len(accumulated))
            except UpstreamError as e:
                error = e.message
                break
            except Exception as e:
                logger.exception(f"Unexpected failure fetching r/{query}")
                error = describe_error(e)
                break

            succeeded = True
            accumulated.extend(page.items)
            cursor = page.cursor

            if page.remaining <= 0 or cursor is None or attempts >= self.config.max_attempts:
                break

        if generation != self._generation:
            logger.debug(f"Discarding {len(accumulated)} items from a stale chain for r/{query}")
            return

        if error:
            logger.warning(f"Chain for r/{query} stopped after {attempts} calls: {error}")
        else:
            logger.info(
                f"Chain for r/{query} finished after {attempts} calls with "
                f"{len(accumulated)}/{quota} items"
            )

        if succeeded:
            self._first_page_done = True

        state = self._store.state
        self._store.set(replace(
            state,
            items=state.items + tuple(accumulated),
            error=error,
            loading=False,
            cursor=cursor,
        ))

    async def wait_idle(self) -> None:
        """Wait until no debounce timer or chain is pending."""
        while True:
            pending = [
                task for task in (self._debounce_task, self._chain_task)
                if task is not None and not task.done()
            ]
            if not pending:
                return
            await asyncio.wait(pending)

    async def aclose(self) -> None:
        """Cancel pending work and drop all subscribers."""
        tasks = [task for task in (self._debounce_task, self._chain_task) if task is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._debounce_task = None
        self._chain_task = None
        self._store.clear()
