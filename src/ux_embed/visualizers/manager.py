"""Visualizer manager: preset activation, audio graph and render loop lifecycle.

States move ``uninitialized -> ready -> active <-> paused``. ``error`` and
``unsupported`` are terminal: ``unsupported`` when no drawing surface or no
live-analysis capability exists, ``error`` when the analysis source fails to
open or a renderer raises.

The audio graph is built lazily on the first ``playing`` event. Nothing is
analysed before playback has started once.
"""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from typing import Literal

from ..services.media_element import (
    ElementEvent,
    ElementStatus,
    MediaElement,
    SampleTapProvider,
    StateChanged,
)
from .analysis import DEFAULT_SMOOTHING, Analyser, AudioGraph
from .presets import PresetCatalog, VisualizerPreset
from .renderers import AnalysisFrame, render_frame
from .renderers.common import DEFAULT_DELTA
from .scheduling import AnimationHandle, FrameScheduler, IntervalTimer
from .settings import VisualizerSettings, normalize_visualizer_settings
from .state import RuntimeState, create_runtime_state, number_option
from .surface import DrawingSurface

logger = logging.getLogger(__name__)

VisualizerStatus = Literal[
    "uninitialized", "ready", "active", "paused", "error", "unsupported"
]
SurfaceFactory = Callable[[int, int], "DrawingSurface | None"]

READY_MESSAGE = "Press play to start the visualizer."
PAUSED_MESSAGE = "Playback paused."
FINISHED_MESSAGE = "Playback finished."
PRESETS_UNAVAILABLE_MESSAGE = "Visualizer presets unavailable."
CANVAS_UNAVAILABLE_MESSAGE = "Visualizer canvas is unavailable on this device."
AUDIO_UNSUPPORTED_MESSAGE = "Audio visualization is not supported on this device."
AUDIO_ERROR_MESSAGE = "Unable to start the audio visualizer."
RENDER_ERROR_MESSAGE = "The visualizer stopped after a rendering error."
_TERMINAL: tuple[VisualizerStatus, ...] = ("error", "unsupported")


class VisualizerManager:
    """Drives one preset renderer from a media element's live audio."""

    def __init__(
        self,
        catalog: PresetCatalog,
        element: MediaElement,
        *,
        scheduler: FrameScheduler,
        surface_factory: SurfaceFactory,
        width: int = 0,
        height: int = 0,
        pixel_ratio: float = 1.0,
        settings: object = None,
        rng: random.Random | None = None,
        analyser_factory: Callable[[], Analyser] = Analyser,
        on_frame: Callable[[DrawingSurface], None] | None = None,
        on_status: Callable[[VisualizerStatus, str], None] | None = None,
    ) -> None:
        self._catalog = catalog
        self._element = element
        self._scheduler = scheduler
        self._surface_factory = surface_factory
        self._rng = rng or random.Random()
        self._analyser_factory = analyser_factory
        self._on_frame = on_frame
        self._on_status = on_status
        self._status: VisualizerStatus = "uninitialized"
        self._message = ""
        self._surface: DrawingSurface | None = None
        self._backing_size = (0, 0)
        self._pixel_ratio = pixel_ratio
        self._preset: VisualizerPreset | None = None
        self._requested_preset_id: str | None = None
        self._runtime_state: RuntimeState | None = None
        self._settings = normalize_visualizer_settings(settings, catalog)
        self._graph: AudioGraph | None = None
        self._animation = AnimationHandle(scheduler, self._on_animation_frame)
        self._rotation = IntervalTimer(scheduler)
        self._last_timestamp: float | None = None
        self._disposed = False
        self.frames_rendered = 0

        element.add_event_handler(self._handle_element_event)
        self.resize(width, height, pixel_ratio)
        if self._status == "uninitialized":
            self._set_status("ready", READY_MESSAGE)
        self.apply_settings(settings)

    @property
    def status(self) -> VisualizerStatus:
        return self._status

    @property
    def message(self) -> str:
        return self._message

    @property
    def settings(self) -> VisualizerSettings:
        return self._settings

    @property
    def active_preset(self) -> VisualizerPreset | None:
        return self._preset

    @property
    def runtime_state(self) -> RuntimeState | None:
        return self._runtime_state

    @property
    def surface(self) -> DrawingSurface | None:
        return self._surface

    @property
    def analyser(self) -> Analyser | None:
        return None if self._graph is None else self._graph.analyser

    @property
    def loop_running(self) -> bool:
        return self._animation.running

    @property
    def rotation_active(self) -> bool:
        return self._rotation.active

    @property
    def disposed(self) -> bool:
        return self._disposed

    def resize(self, width: int, height: int, pixel_ratio: float | None = None) -> None:
        """Resize the backing surface to ``css size * pixel_ratio``."""
        if self._disposed or self._status in _TERMINAL:
            return
        if pixel_ratio is not None and pixel_ratio > 0:
            self._pixel_ratio = pixel_ratio
        backing = (
            max(0, round(width * self._pixel_ratio)),
            max(0, round(height * self._pixel_ratio)),
        )
        if backing[0] <= 0 or backing[1] <= 0:
            return
        if self._surface is not None and backing == self._backing_size:
            return
        surface = self._surface_factory(*backing)
        if surface is None:
            self._surface = None
            self._stop_loop()
            self._set_status("unsupported", CANVAS_UNAVAILABLE_MESSAGE)
            return
        self._surface = surface
        self._backing_size = backing
        if self._preset is not None:
            self._runtime_state = create_runtime_state(self._preset, self._rng)
        elif self._requested_preset_id is not None:
            self.set_preset(self._requested_preset_id)

    def apply_settings(self, value: object) -> VisualizerSettings:
        """Normalize and apply settings, starting or cancelling random rotation."""
        settings = normalize_visualizer_settings(value, self._catalog)
        self._settings = settings
        self._rotation.stop()
        if self._disposed:
            return settings
        if self._catalog.is_empty:
            self._set_status("unsupported", PRESETS_UNAVAILABLE_MESSAGE)
            return settings
        if settings.is_random:
            self._activate_random_preset()
            self._rotation.start(
                settings.randomize_interval_seconds, self._activate_random_preset
            )
        else:
            self.set_preset(settings.mode)
        return settings

    def set_preset(self, preset_id: str) -> bool:
        """Swap in ``preset_id`` with fresh runtime state; no-op when unknown."""
        preset = self._catalog.get(preset_id)
        if preset is None or self._disposed:
            return False
        self._requested_preset_id = preset_id
        if self._surface is None:
            return False
        self._preset = preset
        self._runtime_state = create_runtime_state(preset, self._rng)
        self._configure_analyser()
        logger.info(
            "Visualizer preset activated",
            extra={
                "event": "visualizer_preset_activated",
                "preset_id": preset.id,
                "renderer": preset.type,
                "mode": self._settings.mode,
            },
        )
        return True

    def ensure_audio_graph(self) -> bool:
        """Open the element's sample tap once; return whether analysis is live."""
        if self._graph is not None:
            return True
        if self._disposed or self._status in _TERMINAL:
            return False
        if not isinstance(self._element, SampleTapProvider):
            self._set_status("unsupported", AUDIO_UNSUPPORTED_MESSAGE)
            return False
        try:
            tap = self._element.open_sample_tap()
        except Exception as exc:
            logger.error("Visualizer audio graph failed to start: %s", exc)
            self._set_status("error", AUDIO_ERROR_MESSAGE)
            return False
        self._graph = AudioGraph(tap, self._analyser_factory())
        self._configure_analyser()
        return True

    def handle_playback_status(self, status: ElementStatus) -> None:
        if self._disposed or self._status in _TERMINAL:
            return
        if status == "playing":
            if not self.ensure_audio_graph():
                return
            self._start_loop()
            self._set_status("active", "")
        elif status == "ended":
            self._stop_loop()
            self._set_status("paused", FINISHED_MESSAGE)
        elif status == "paused":
            self._stop_loop()
            self._set_status("paused", PAUSED_MESSAGE)
        else:
            self._stop_loop()
            self._set_status("ready", READY_MESSAGE)

    def render_once(self, timestamp: float, delta: float = DEFAULT_DELTA) -> bool:
        """Pull analysis data and draw a single frame."""
        surface = self._surface
        preset = self._preset
        if surface is None or preset is None or self._graph is None:
            return False
        frequency, waveform = self._graph.pull()
        frame = AnalysisFrame(
            surface=surface,
            width=surface.width,
            height=surface.height,
            frequency=frequency,
            waveform=waveform,
            delta=delta,
            time=timestamp,
            preset=preset,
            settings=self._settings,
            state=self._runtime_state,
        )
        try:
            self._runtime_state = render_frame(frame)
        except Exception:
            logger.exception("Visualizer preset '%s' failed to render.", preset.id)
            self._stop_loop()
            self._set_status("error", RENDER_ERROR_MESSAGE)
            return False
        self.frames_rendered += 1
        if self._on_frame is not None:
            self._on_frame(surface)
        return True

    def dispose(self) -> None:
        """Cancel the frame request and rotation timer and release the element."""
        if self._disposed:
            return
        self._disposed = True
        self._stop_loop()
        self._rotation.stop()
        self._element.remove_event_handler(self._handle_element_event)
        if self._graph is not None:
            self._graph.close()
        logger.debug("Visualizer manager disposed.")

    def __enter__(self) -> VisualizerManager:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.dispose()

    async def _handle_element_event(self, event: ElementEvent) -> None:
        if isinstance(event, StateChanged):
            self.handle_playback_status(event.status)

    def _activate_random_preset(self) -> None:
        ids = self._catalog.ids()
        if not ids:
            return
        current = self._preset.id if self._preset is not None else None
        candidates = [preset_id for preset_id in ids if preset_id != current] or ids
        self.set_preset(self._rng.choice(candidates))

    def _configure_analyser(self) -> None:
        if self._graph is None or self._preset is None:
            return
        self._graph.analyser.smoothing_time_constant = number_option(
            self._preset.options, "smoothing", DEFAULT_SMOOTHING
        )

    def _start_loop(self) -> None:
        self._last_timestamp = None
        self._animation.start()

    def _stop_loop(self) -> None:
        self._animation.stop()
        self._last_timestamp = None

    def _on_animation_frame(self, timestamp: float) -> None:
        previous = self._last_timestamp
        self._last_timestamp = timestamp
        delta = DEFAULT_DELTA if previous is None else timestamp - previous
        self.render_once(timestamp, delta)

    def _set_status(self, status: VisualizerStatus, message: str) -> None:
        if status == self._status and message == self._message:
            return
        previous = self._status
        self._status = status
        self._message = message
        logger.info(
            "Visualizer state changed",
            extra={
                "event": "visualizer_state_changed",
                "from_status": previous,
                "to_status": status,
                "status_message": message,
            },
        )
        if self._on_status is not None:
            self._on_status(status, message)
