"""Media element contracts and event payloads.

The playback controller and the visualizer manager both observe one media
element. Concrete implementations (fake/VLC) translate engine-specific
behavior into these shared commands and events.
"""

from __future__ import annotations

from collections import deque
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Literal, Protocol, runtime_checkable

import numpy as np

ElementStatus = Literal["idle", "loading", "playing", "paused", "ended", "error"]


class PlaybackBlockedError(RuntimeError):
    """Raised when the element refuses to start playback (e.g. autoplay policy)."""


@dataclass(frozen=True)
class ElementEvent:
    """Marker base type for element-originated events."""

    pass


@dataclass(frozen=True)
class StateChanged(ElementEvent):
    """Element playback state transition."""

    status: ElementStatus


@dataclass(frozen=True)
class PositionUpdated(ElementEvent):
    """Periodic transport position update in milliseconds."""

    position_ms: int
    duration_ms: int


@dataclass(frozen=True)
class Seeked(ElementEvent):
    position_ms: int


@dataclass(frozen=True)
class ElementError(ElementEvent):
    """Element-reported load or decode failure for the current source."""

    message: str


ElementEventHandler = Callable[[ElementEvent], Awaitable[None]]


class SampleTap(Protocol):
    """Live PCM source feeding the visualizer analyser."""

    sample_rate: int

    def read(self, count: int) -> np.ndarray: ...

    def close(self) -> None: ...


@runtime_checkable
class SampleTapProvider(Protocol):
    """Optional capability for elements whose audio can be analysed live."""

    def open_sample_tap(self) -> SampleTap: ...


class MediaElement(Protocol):
    """Audio element protocol consumed by the controller and visualizer."""

    @property
    def src(self) -> str | None: ...

    def add_event_handler(self, handler: ElementEventHandler) -> None: ...

    def remove_event_handler(self, handler: ElementEventHandler) -> None: ...

    async def start(self) -> None: ...

    async def shutdown(self) -> None: ...

    async def load(self, src: str) -> None: ...

    async def play(self) -> None: ...

    async def pause(self) -> None: ...

    async def seek_ms(self, position_ms: int) -> None: ...

    async def get_state(self) -> ElementStatus: ...


class EventHandlers:
    """Ordered handler registry shared by element implementations."""

    def __init__(self) -> None:
        self._handlers: list[ElementEventHandler] = []
        self._pending: deque[ElementEvent] = deque()
        self._dispatching = False

    def add(self, handler: ElementEventHandler) -> None:
        if handler not in self._handlers:
            self._handlers.append(handler)

    def remove(self, handler: ElementEventHandler) -> None:
        if handler in self._handlers:
            self._handlers.remove(handler)

    async def emit(self, event: ElementEvent) -> None:
        """Deliver ``event`` to every handler in registration order.

        Events emitted while a delivery is in progress (for example a handler
        that loads the next track on ``ended``) are queued and delivered after
        the current event has reached every handler.
        """
        self._pending.append(event)
        if self._dispatching:
            return
        self._dispatching = True
        try:
            while self._pending:
                current = self._pending.popleft()
                for handler in list(self._handlers):
                    await handler(current)
        finally:
            self._dispatching = False
            self._pending.clear()
