"""Renderer dispatch keyed by preset type."""

from __future__ import annotations

from collections.abc import Callable

from ..state import RuntimeState
from .bars import render_bars
from .common import AnalysisFrame
from .dots import render_dots
from .grid import render_grid
from .radial import render_radial
from .waveform import render_waveform

Renderer = Callable[[AnalysisFrame], "RuntimeState | None"]

RENDERERS: dict[str, Renderer] = {
    "bars": render_bars,
    "waveform": render_waveform,
    "radial": render_radial,
    "grid": render_grid,
    "dots": render_dots,
}


def _render_noop(frame: AnalysisFrame) -> RuntimeState | None:
    return frame.state


def render_frame(frame: AnalysisFrame) -> RuntimeState | None:
    """Draw one frame and return the (possibly reallocated) runtime state."""
    renderer = RENDERERS.get(frame.preset.type, _render_noop)
    return renderer(frame)


__all__ = ["AnalysisFrame", "RENDERERS", "Renderer", "render_frame"]
