"""Fake media elements for deterministic testing and offline demos."""

from __future__ import annotations

import asyncio
import math
from contextlib import suppress
from dataclasses import dataclass

import numpy as np

from .media_element import (
    ElementEvent,
    ElementEventHandler,
    ElementStatus,
    EventHandlers,
    PlaybackBlockedError,
    PositionUpdated,
    SampleTap,
    Seeked,
    StateChanged,
)


@dataclass
class _ElementState:
    status: ElementStatus = "idle"
    src: str | None = None
    position_ms: int = 0
    duration_ms: int = 0


class FakeMediaElement:
    """In-memory element that simulates playback progress.

    ``autoplay_blocked`` makes ``play()`` raise until cleared, mimicking a
    browser autoplay policy. This element has no sample tap.
    """

    def __init__(
        self,
        *,
        tick_interval_ms: int = 250,
        default_duration_ms: int = 180_000,
        autoplay_blocked: bool = False,
    ) -> None:
        self._tick_interval_ms = tick_interval_ms
        self._default_duration_ms = default_duration_ms
        self.autoplay_blocked = autoplay_blocked
        self.play_attempts = 0
        self.loaded: list[str] = []
        self._state = _ElementState()
        self._handlers = EventHandlers()
        self._lock = asyncio.Lock()
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def src(self) -> str | None:
        return self._state.src

    def add_event_handler(self, handler: ElementEventHandler) -> None:
        self._handlers.add(handler)

    def remove_event_handler(self, handler: ElementEventHandler) -> None:
        self._handlers.remove(handler)

    async def start(self) -> None:
        if self._task is not None:
            return
        self._stop_event.clear()
        self._task = asyncio.create_task(self._ticker_loop())

    async def shutdown(self) -> None:
        if self._task is None:
            return
        self._stop_event.set()
        self._task.cancel()
        with suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def load(self, src: str) -> None:
        async with self._lock:
            self._state.src = src
            self._state.status = "loading"
            self._state.position_ms = 0
            self._state.duration_ms = self._default_duration_ms
        self.loaded.append(src)
        await self._emit(StateChanged("loading"))

    async def play(self) -> None:
        self.play_attempts += 1
        if self.autoplay_blocked:
            raise PlaybackBlockedError("Playback was blocked by the autoplay policy.")
        async with self._lock:
            if self._state.src is None:
                raise PlaybackBlockedError("No media source is loaded.")
            if self._state.status == "playing":
                return
            if self._state.status == "ended":
                self._state.position_ms = 0
            self._state.status = "playing"
        await self._emit(StateChanged("playing"))

    async def pause(self) -> None:
        async with self._lock:
            if self._state.status != "playing":
                return
            self._state.status = "paused"
        await self._emit(StateChanged("paused"))

    async def seek_ms(self, position_ms: int) -> None:
        async with self._lock:
            position = max(0, min(position_ms, self._state.duration_ms))
            self._state.position_ms = position
        await self._emit(Seeked(position))

    async def get_state(self) -> ElementStatus:
        async with self._lock:
            return self._state.status

    async def get_position_ms(self) -> int:
        async with self._lock:
            return self._state.position_ms

    async def finish(self) -> None:
        """Jump to the end of the current source and report ``ended``."""
        async with self._lock:
            if self._state.src is None:
                return
            self._state.position_ms = self._state.duration_ms
            self._state.status = "ended"
        await self._emit(StateChanged("ended"))

    async def _ticker_loop(self) -> None:
        try:
            while not self._stop_event.is_set():
                await asyncio.sleep(self._tick_interval_ms / 1000)
                await self._tick()
        except asyncio.CancelledError:
            pass

    async def _tick(self) -> None:
        async with self._lock:
            if self._state.status != "playing":
                return
            duration = self._state.duration_ms
            if duration <= 0:
                return
            next_pos = min(duration, self._state.position_ms + self._tick_interval_ms)
            self._state.position_ms = next_pos
            if next_pos >= duration:
                self._state.status = "ended"
            status = self._state.status
        await self._emit(PositionUpdated(next_pos, duration))
        if status == "ended":
            await self._emit(StateChanged("ended"))

    async def _emit(self, event: ElementEvent) -> None:
        await self._handlers.emit(event)


class SyntheticSampleTap:
    """Sample tap producing a phase-continuous chord while the element plays."""

    def __init__(
        self,
        element: FakeMediaElement,
        *,
        sample_rate: int = 44_100,
        base_hz: float = 110.0,
    ) -> None:
        self.sample_rate = sample_rate
        self._element = element
        self._base_hz = base_hz
        self._offset = 0
        self.closed = False

    def read(self, count: int) -> np.ndarray:
        if self.closed or self._element._state.status != "playing":
            return np.zeros(count, dtype=np.float32)
        t = (np.arange(count) + self._offset) / self.sample_rate
        self._offset += count
        swell = 0.55 + 0.45 * math.sin(self._offset / self.sample_rate * 1.7)
        signal = (
            0.5 * np.sin(math.tau * self._base_hz * t)
            + 0.3 * swell * np.sin(math.tau * self._base_hz * 4.0 * t)
            + 0.15 * np.sin(math.tau * self._base_hz * 13.0 * t)
        )
        return signal.astype(np.float32)

    def close(self) -> None:
        self.closed = True


class FakeAudioElement(FakeMediaElement):
    """Fake element that also exposes a live sample tap for visualization.

    Set ``sample_tap_error`` to make opening the tap fail.
    """

    def __init__(self, *, sample_tap_error: Exception | None = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.sample_tap_error = sample_tap_error
        self.taps_opened = 0

    def open_sample_tap(self) -> SampleTap:
        if self.sample_tap_error is not None:
            raise self.sample_tap_error
        self.taps_opened += 1
        return SyntheticSampleTap(self)
