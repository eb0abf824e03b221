"""Frame and timer scheduling for the visualizer render loop.

Renderers run cooperatively on the event loop. A frame is requested only after
the previous frame's draw returns, so frames never pile up; a slow frame simply
delays the next one.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Protocol

FrameCallback = Callable[[float], None]
TimerCallback = Callable[[], None]


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class FrameScheduler(Protocol):
    """Host primitive for per-frame callbacks and one-shot timers."""

    def request_frame(self, callback: FrameCallback) -> Cancellable: ...

    def call_later(self, delay: float, callback: TimerCallback) -> Cancellable: ...


class AsyncioFrameScheduler:
    """Scheduler backed by ``loop.call_later`` at a fixed target frame rate."""

    def __init__(
        self,
        fps: float = 30.0,
        *,
        loop: asyncio.AbstractEventLoop | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._frame_interval = 1.0 / max(1.0, fps)
        self._loop = loop
        self._clock = clock

    def _get_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def request_frame(self, callback: FrameCallback) -> Cancellable:
        return self._get_loop().call_later(
            self._frame_interval, lambda: callback(self._clock())
        )

    def call_later(self, delay: float, callback: TimerCallback) -> Cancellable:
        return self._get_loop().call_later(max(0.0, delay), callback)


@dataclass
class _ManualEntry:
    callback: Callable[..., None]
    due: float = 0.0
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class ManualFrameScheduler:
    """Deterministic scheduler driven explicitly by tests and offline previews."""

    def __init__(self, start: float = 0.0) -> None:
        self.now = start
        self._frames: list[_ManualEntry] = []
        self._timers: list[_ManualEntry] = []

    @property
    def pending_frames(self) -> int:
        return sum(1 for entry in self._frames if not entry.cancelled)

    @property
    def pending_timers(self) -> int:
        return sum(1 for entry in self._timers if not entry.cancelled)

    def request_frame(self, callback: FrameCallback) -> Cancellable:
        entry = _ManualEntry(callback)
        self._frames.append(entry)
        return entry

    def call_later(self, delay: float, callback: TimerCallback) -> Cancellable:
        entry = _ManualEntry(callback, due=self.now + max(0.0, delay))
        self._timers.append(entry)
        return entry

    def advance(self, seconds: float) -> None:
        """Move the clock forward and fire every timer that became due."""
        target = self.now + seconds
        while True:
            due = [
                entry
                for entry in self._timers
                if not entry.cancelled and entry.due <= target
            ]
            if not due:
                break
            entry = min(due, key=lambda item: item.due)
            self._timers.remove(entry)
            self.now = max(self.now, entry.due)
            entry.callback()
        self._timers = [entry for entry in self._timers if not entry.cancelled]
        self.now = target

    def run_frame(self, delta: float = 1.0 / 60.0) -> int:
        """Advance by ``delta`` and invoke the frames requested so far."""
        self.advance(delta)
        frames, self._frames = self._frames, []
        fired = 0
        for entry in frames:
            if entry.cancelled:
                continue
            entry.callback(self.now)
            fired += 1
        return fired


class AnimationHandle:
    """Owned render loop; ``stop()`` is idempotent and cancels any pending frame."""

    def __init__(self, scheduler: FrameScheduler, step: FrameCallback) -> None:
        self._scheduler = scheduler
        self._step = step
        self._pending: Cancellable | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def start(self) -> None:
        if self._running:
            return
        self._running = True
        self._pending = self._scheduler.request_frame(self._on_frame)

    def stop(self) -> None:
        self._running = False
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None

    def _on_frame(self, timestamp: float) -> None:
        self._pending = None
        if not self._running:
            return
        self._step(timestamp)
        if self._running and self._pending is None:
            self._pending = self._scheduler.request_frame(self._on_frame)

    def __enter__(self) -> AnimationHandle:
        self.start()
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.stop()


class IntervalTimer:
    """Repeating timer built from one-shot ``call_later`` requests."""

    def __init__(self, scheduler: FrameScheduler) -> None:
        self._scheduler = scheduler
        self._pending: Cancellable | None = None
        self._interval = 0.0
        self._callback: TimerCallback | None = None

    @property
    def active(self) -> bool:
        return self._pending is not None

    def start(self, interval: float, callback: TimerCallback) -> None:
        self.stop()
        self._interval = interval
        self._callback = callback
        self._pending = self._scheduler.call_later(interval, self._fire)

    def stop(self) -> None:
        if self._pending is not None:
            self._pending.cancel()
            self._pending = None
        self._callback = None

    def _fire(self) -> None:
        callback = self._callback
        if callback is None:
            return
        self._pending = self._scheduler.call_later(self._interval, self._fire)
        callback()
