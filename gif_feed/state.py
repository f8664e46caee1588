"""State snapshots and subscriber management shared by the engine and players."""

import logging
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Generic, List, Optional, Tuple, TypeVar

from gif_feed.models.listing import FeedItem

logger = logging.getLogger(__name__)

S = TypeVar("S")


@dataclass(frozen=True)
class FeedState:
    """Read-only snapshot of the aggregated feed."""

    items: Tuple[FeedItem, ...] = ()
    error: Optional[str] = None
    loading: bool = True
    cursor: Optional[str] = None
    query: Optional[str] = None


@dataclass(frozen=True)
class PageFetchResult:
    """Outcome of a single upstream call inside a chain."""

    items: Tuple[FeedItem, ...]
    required: int
    cursor: Optional[str]

    @property
    def remaining(self) -> int:
        return self.required - len(self.items)


class PlaybackStatus(str, Enum):
    INITIAL = "initial"
    LOADING = "loading"
    LOADED = "loaded"


@dataclass(frozen=True)
class PlaybackState:
    """Read-only snapshot of one player's state."""

    playing: bool = False
    status: PlaybackStatus = PlaybackStatus.INITIAL


class StateStore(Generic[S]):
    """
    Holds a single immutable state value and notifies subscribers on change.

    Subscribers are plain callables receiving the new snapshot. They run
    synchronously on the event loop thread, in subscription order.
    """

    def __init__(self, initial: S):
        self._state = initial
        self._subscribers: List[Callable[[S], None]] = []

    @property
    def state(self) -> S:
        return self._state

    def set(self, state: S) -> None:
        if state == self._state:
            return
        self._state = state
        for callback in list(self._subscribers):
            try:
                callback(state)
            except Exception:
                # Subscriber errors never reach the caller
                logger.exception("State subscriber raised")

    def subscribe(self, callback: Callable[[S], None]) -> Callable[[], None]:
        """
        Register a callback for state changes.

        Returns:
            A function that removes the subscription
        """
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def clear(self) -> None:
        self._subscribers.clear()
