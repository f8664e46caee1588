"""Playback lifecycle for a single feed item.

A controller stays idle until both an element is bound and the user asks
for playback; only then is the element told to load. Status moves
initial -> loading -> loaded and never goes back for the same element.
"""

import logging
from dataclasses import replace
from typing import Callable, Dict, Iterable, Optional, Protocol

from gif_feed.models.listing import FeedItem
from gif_feed.state import PlaybackState, PlaybackStatus, StateStore

logger = logging.getLogger(__name__)

LOAD_START_EVENT = "loadstart"
LOAD_COMPLETE_EVENT = "loadeddata"

EventCallback = Callable[[], None]


class MediaElement(Protocol):
    """The subset of a video element the controller drives."""

    def load(self) -> None: ...

    def play(self) -> None: ...

    def pause(self) -> None: ...

    def add_event_listener(self, event: str, callback: EventCallback) -> None: ...

    def remove_event_listener(self, event: str, callback: EventCallback) -> None: ...


class PlaybackController:
    """State machine for one displayed item's media element."""

    def __init__(self, src: str, thumbnail: str = ""):
        self.src = src
        self.thumbnail = thumbnail
        self.element: Optional[MediaElement] = None
        self._store: StateStore[PlaybackState] = StateStore(PlaybackState())
        self._listening_load_start = False
        self._closed = False

    @property
    def state(self) -> PlaybackState:
        return self._store.state

    @property
    def playing(self) -> bool:
        return self._store.state.playing

    @property
    def status(self) -> PlaybackStatus:
        return self._store.state.status

    def subscribe(self, callback: Callable[[PlaybackState], None]) -> Callable[[], None]:
        return self._store.subscribe(callback)

    def bind_element(self, element: MediaElement) -> None:
        """Attach the element once the view has created it."""
        if self._closed:
            raise RuntimeError("Controller has been closed")
        if element is self.element:
            return

        self._release_element()
        self.element = element
        element.add_event_listener(LOAD_COMPLETE_EVENT, self._on_load_complete)
        self._sync_load_start_listener()
        self._run_effect()

    def toggle_play(self) -> None:
        self._update(replace(self.state, playing=not self.playing))

    def _on_load_start(self) -> None:
        if self.status is PlaybackStatus.LOADED:
            return
        self._update(replace(self.state, status=PlaybackStatus.LOADING))

    def _on_load_complete(self) -> None:
        self._update(replace(self.state, status=PlaybackStatus.LOADED))

    def _update(self, state: PlaybackState) -> None:
        if state == self.state:
            return
        logger.debug(f"{self.src}: {self.state} -> {state}")
        self._store.set(state)
        self._sync_load_start_listener()
        self._run_effect()

    def _run_effect(self) -> None:
        element = self.element
        if element is None:
            return

        if self.playing and self.status is PlaybackStatus.INITIAL:
            element.load()

        if self.status is PlaybackStatus.LOADED:
            if self.playing:
                element.play()
            else:
                element.pause()

    def _sync_load_start_listener(self) -> None:
        """Listen for load start only while playback is requested."""
        if self.element is None:
            return

        if self.playing and not self._listening_load_start:
            self.element.add_event_listener(LOAD_START_EVENT, self._on_load_start)
            self._listening_load_start = True
        elif not self.playing and self._listening_load_start:
            self.element.remove_event_listener(LOAD_START_EVENT, self._on_load_start)
            self._listening_load_start = False

    def _release_element(self) -> None:
        element = self.element
        if element is None:
            return

        element.remove_event_listener(LOAD_COMPLETE_EVENT, self._on_load_complete)
        if self._listening_load_start:
            element.remove_event_listener(LOAD_START_EVENT, self._on_load_start)
            self._listening_load_start = False
        self.element = None

    def close(self) -> None:
        """Unbind the element and drop every subscription."""
        self._release_element()
        self._store.clear()
        self._closed = True


class PlaybackRegistry:
    """One controller per displayed feed item, keyed by item name."""

    def __init__(self) -> None:
        self._controllers: Dict[str, PlaybackController] = {}

    def __len__(self) -> int:
        return len(self._controllers)

    def __contains__(self, name: object) -> bool:
        return name in self._controllers

    def controller_for(self, item: FeedItem) -> PlaybackController:
        controller = self._controllers.get(item.name)
        if controller is None:
            controller = PlaybackController(item.src, item.thumbnail)
            self._controllers[item.name] = controller
        return controller

    def release(self, name: str) -> None:
        controller = self._controllers.pop(name, None)
        if controller is not None:
            controller.close()

    def sync(self, items: Iterable[FeedItem]) -> None:
        """Release controllers whose items are no longer in the feed."""
        live = {item.name for item in items}
        for name in [name for name in self._controllers if name not in live]:
            logger.debug(f"Releasing player for {name}")
            self.release(name)

    def close(self) -> None:
        for name in list(self._controllers):
            self.release(name)
