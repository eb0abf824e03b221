"""Tests for the fake media elements."""

from __future__ import annotations

import asyncio

import numpy as np
import pytest

from ux_embed.services.fake_element import FakeAudioElement, FakeMediaElement
from ux_embed.services.media_element import (
    PlaybackBlockedError,
    PositionUpdated,
    SampleTapProvider,
    Seeked,
    StateChanged,
)


def _run(coro):
    return asyncio.run(coro)


def test_load_play_pause_emit_state_changes() -> None:
    element = FakeMediaElement()
    events = []

    async def _record(event) -> None:
        events.append(event)

    async def _scenario() -> str:
        element.add_event_handler(_record)
        await element.load("http://testserver/media/music/p1/intro.mp3")
        await element.play()
        await element.play()
        await element.pause()
        return await element.get_state()

    assert _run(_scenario()) == "paused"
    assert events == [
        StateChanged("loading"),
        StateChanged("playing"),
        StateChanged("paused"),
    ]
    assert element.src == "http://testserver/media/music/p1/intro.mp3"
    assert element.loaded == ["http://testserver/media/music/p1/intro.mp3"]
    assert element.play_attempts == 2


def test_play_without_source_is_blocked() -> None:
    element = FakeMediaElement()
    with pytest.raises(PlaybackBlockedError):
        _run(element.play())


def test_autoplay_block_until_cleared() -> None:
    element = FakeMediaElement(autoplay_blocked=True)

    async def _scenario() -> str:
        await element.load("a.mp3")
        with pytest.raises(PlaybackBlockedError):
            await element.play()
        element.autoplay_blocked = False
        await element.play()
        return await element.get_state()

    assert _run(_scenario()) == "playing"
    assert element.play_attempts == 2


def test_seek_is_clamped_to_duration() -> None:
    element = FakeMediaElement(default_duration_ms=1_000)
    events = []

    async def _record(event) -> None:
        events.append(event)

    async def _scenario() -> int:
        await element.load("a.mp3")
        element.add_event_handler(_record)
        await element.seek_ms(5_000)
        return await element.get_position_ms()

    assert _run(_scenario()) == 1_000
    assert events == [Seeked(1_000)]


def test_finish_reports_ended_and_replay_restarts() -> None:
    element = FakeMediaElement(default_duration_ms=2_000)
    events = []

    async def _record(event) -> None:
        events.append(event)

    async def _scenario() -> int:
        await element.load("a.mp3")
        await element.play()
        element.add_event_handler(_record)
        await element.finish()
        await element.play()
        return await element.get_position_ms()

    assert _run(_scenario()) == 0
    assert events == [StateChanged("ended"), StateChanged("playing")]


def test_ticker_advances_position_until_ended() -> None:
    element = FakeMediaElement(tick_interval_ms=10, default_duration_ms=20)
    events = []

    async def _record(event) -> None:
        events.append(event)

    async def _scenario() -> None:
        element.add_event_handler(_record)
        await element.start()
        await element.load("a.mp3")
        await element.play()
        for _ in range(50):
            if StateChanged("ended") in events:
                break
            await asyncio.sleep(0.01)
        await element.shutdown()

    _run(_scenario())
    positions = [e.position_ms for e in events if isinstance(e, PositionUpdated)]
    assert positions[-1] == 20
    assert events[-1] == StateChanged("ended")


def test_removed_handler_stops_receiving_events() -> None:
    element = FakeMediaElement()
    events = []

    async def _record(event) -> None:
        events.append(event)

    async def _scenario() -> None:
        element.add_event_handler(_record)
        element.add_event_handler(_record)
        await element.load("a.mp3")
        element.remove_event_handler(_record)
        await element.play()

    _run(_scenario())
    assert events == [StateChanged("loading")]


def test_events_emitted_by_a_handler_arrive_after_the_current_event() -> None:
    element = FakeMediaElement()
    seen = []

    async def _advance(event) -> None:
        if event == StateChanged("ended"):
            await element.load("next.mp3")
            await element.play()

    async def _record(event) -> None:
        seen.append(event)

    async def _scenario() -> str:
        await element.load("first.mp3")
        element.add_event_handler(_advance)
        element.add_event_handler(_record)
        await element.finish()
        return await element.get_state()

    assert _run(_scenario()) == "playing"
    assert seen == [
        StateChanged("ended"),
        StateChanged("loading"),
        StateChanged("playing"),
    ]


def test_audio_element_tap_produces_signal_only_while_playing() -> None:
    element = FakeAudioElement()
    assert isinstance(element, SampleTapProvider)
    assert not isinstance(FakeMediaElement(), SampleTapProvider)
    tap = element.open_sample_tap()
    assert element.taps_opened == 1

    silent = tap.read(256)
    assert silent.dtype == np.float32
    assert not silent.any()

    async def _scenario() -> None:
        await element.load("a.mp3")
        await element.play()

    _run(_scenario())
    loud = tap.read(256)
    assert float(np.abs(loud).max()) > 0.1
    assert float(np.abs(loud).max()) <= 1.0

    tap.close()
    assert not tap.read(16).any()


def test_audio_element_tap_error_is_raised() -> None:
    element = FakeAudioElement(sample_tap_error=RuntimeError("no audio graph"))
    with pytest.raises(RuntimeError, match="no audio graph"):
        element.open_sample_tap()
    assert element.taps_opened == 0
