"""Media element backed by python-vlc, streaming track URLs."""

from __future__ import annotations

import asyncio
import queue
import threading
from collections.abc import Coroutine
from dataclasses import dataclass
from typing import Any, cast

from .media_element import (
    ElementError,
    ElementEvent,
    ElementEventHandler,
    ElementStatus,
    EventHandlers,
    PlaybackBlockedError,
    PositionUpdated,
    Seeked,
    StateChanged,
)


@dataclass
class _Command:
    name: str
    args: tuple[Any, ...]
    future: asyncio.Future[Any] | None


class VLCMediaElement:
    """Media element driven by a dedicated VLC thread.

    libVLC does not expose decoded PCM to Python here, so this element offers
    no sample tap and the visualizer reports itself unsupported.
    """

    def __init__(self, *, poll_interval_ms: int = 200) -> None:
        self._poll_interval = poll_interval_ms / 1000
        self._handlers = EventHandlers()
        self._src: str | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._queue: queue.Queue[_Command] = queue.Queue()
        self._thread: threading.Thread | None = None
        self._stop_event = threading.Event()

    @property
    def src(self) -> str | None:
        return self._src

    def add_event_handler(self, handler: ElementEventHandler) -> None:
        self._handlers.add(handler)

    def remove_event_handler(self, handler: ElementEventHandler) -> None:
        self._handlers.remove(handler)

    async def start(self) -> None:
        if self._thread is not None:
            return
        self._loop = asyncio.get_running_loop()
        ready_future: asyncio.Future[None] = self._loop.create_future()
        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._thread_main,
            args=(ready_future,),
            name="VLCMediaElementThread",
            daemon=True,
        )
        self._thread.start()
        await ready_future

    async def shutdown(self) -> None:
        if self._thread is None:
            return
        self._stop_event.set()
        self._queue.put(_Command("wake", (), None))
        self._thread.join(timeout=2.0)
        self._thread = None

    async def load(self, src: str) -> None:
        self._src = src
        await self._submit("load", src)

    async def play(self) -> None:
        started = await self._submit("play")
        if not started:
            raise PlaybackBlockedError("VLC refused to start playback.")

    async def pause(self) -> None:
        await self._submit("pause")

    async def seek_ms(self, position_ms: int) -> None:
        await self._submit("seek_ms", position_ms)

    async def get_state(self) -> ElementStatus:
        return await self._submit("get_state")

    async def _submit(self, name: str, *args: Any) -> Any:
        if self._loop is None:
            raise RuntimeError("VLC media element not started.")
        future: asyncio.Future[Any] = self._loop.create_future()
        self._queue.put(_Command(name, args, future))
        return await future

    def _thread_main(self, ready_future: asyncio.Future[None]) -> None:
        try:
            import vlc

            instance = vlc.Instance()
            player = instance.media_player_new()
        except Exception as exc:  # pragma: no cover - depends on VLC install
            self._notify_future_exception(
                ready_future,
                RuntimeError(
                    "VLC media element unavailable. Ensure VLC/libVLC is installed."
                ),
            )
            self._emit_event(ElementError(str(exc)))
            return

        self._notify_future_result(ready_future, None)
        last_pos = -1
        last_state: ElementStatus = "idle"

        while not self._stop_event.is_set():
            try:
                cmd = self._queue.get(timeout=self._poll_interval)
            except queue.Empty:
                cmd = None

            if cmd is not None and cmd.name != "wake":
                try:
                    result = self._handle_command(cmd, instance, player)
                    self._notify_future_result(cmd.future, result)
                except Exception as exc:  # pragma: no cover - backend safety net
                    self._notify_future_exception(cmd.future, exc)
                    self._emit_event(ElementError(str(exc)))

            state = _map_state(player)
            if state != last_state:
                last_state = state
                self._emit_event(StateChanged(state))
                if state == "error":
                    self._emit_event(ElementError("VLC could not play the source."))

            if state in {"playing", "paused"}:
                pos = max(player.get_time(), 0)
                duration = max(player.get_length(), 0)
                if pos != last_pos:
                    last_pos = pos
                    self._emit_event(PositionUpdated(pos, duration))

        player.stop()

    def _handle_command(self, cmd: _Command, instance: Any, player: Any) -> Any:
        name = cmd.name
        if name == "load":
            (src,) = cmd.args
            player.set_media(instance.media_new(src))
            return None
        if name == "play":
            return player.play() == 0
        if name == "pause":
            player.set_pause(1)
            return None
        if name == "seek_ms":
            (pos,) = cmd.args
            player.set_time(int(pos))
            self._emit_event(Seeked(int(pos)))
            return None
        if name == "get_state":
            return _map_state(player)
        raise ValueError(f"Unknown command {name}")

    def _emit_event(self, event: ElementEvent) -> None:
        if self._loop is None:
            return
        coro = self._handlers.emit(event)
        asyncio.run_coroutine_threadsafe(
            cast(Coroutine[Any, Any, None], coro), self._loop
        )

    def _notify_future_result(
        self, future: asyncio.Future[Any] | None, value: Any
    ) -> None:
        if future is None or self._loop is None:
            return
        self._loop.call_soon_threadsafe(future.set_result, value)

    def _notify_future_exception(
        self, future: asyncio.Future[Any] | None, exc: Exception
    ) -> None:
        if future is None or self._loop is None:
            return
        self._loop.call_soon_threadsafe(future.set_exception, exc)


def _map_state(player: Any) -> ElementStatus:
    try:
        state = player.get_state()
    except Exception:
        return "error"
    name = getattr(state, "name", "").lower()
    if name == "playing":
        return "playing"
    if name == "paused":
        return "paused"
    if name == "ended":
        return "ended"
    if name in {"opening", "buffering"}:
        return "loading"
    if name == "error":
        return "error"
    return "idle"
