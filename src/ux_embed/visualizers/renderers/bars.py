"""Spectrum bars with optional peak hold and mirrored reflection."""

from __future__ import annotations

import numpy as np

from ..state import BarsState, bar_count, bool_option, number_option
from ..surface import LinearGradient
from .common import (
    AnalysisFrame,
    intensity_factor,
    paint_background,
    resolve_palette,
    sample_bands,
    smooth_levels,
    smoothing_factor,
)

DEFAULT_FADE_ALPHA = 0.85
AMPLITUDE_EXPONENT = 1.15
PEAK_THICKNESS = 2.0
_GRADIENT_CACHE_LIMIT = 8


def render_bars(frame: AnalysisFrame) -> BarsState:
    options = frame.options
    count = bar_count(options)
    state = frame.state
    if not isinstance(state, BarsState) or len(state.levels) != count:
        state = BarsState.sized(count)

    paint_background(frame, DEFAULT_FADE_ALPHA)
    width, height = frame.width, frame.height
    if width <= 0 or height <= 0:
        return state

    targets = np.clip(
        sample_bands(frame.frequency, count) * intensity_factor(frame.settings),
        0.0,
        1.0,
    )
    smooth_levels(state.levels, targets, smoothing_factor(options))

    peak_hold = bool_option(options, "peakHold")
    if peak_hold:
        decay = max(0.0, number_option(options, "peakDecay", 0.6))
        state.peaks = np.maximum(state.peaks - (decay * frame.delta), state.levels)
        np.clip(state.peaks, 0.0, 1.0, out=state.peaks)

    mirror = bool_option(options, "mirror")
    gap = max(0.0, number_option(options, "gap", 2.0))
    corner = max(0.0, number_option(options, "cornerRadius", 4.0))
    slot = width / count
    bar_width = max(1.0, slot - gap)
    baseline = height / 2.0 if mirror else float(height)
    max_height = baseline

    palette = resolve_palette(frame)
    gradient = _bar_gradient(frame, state, palette, baseline)
    amplitudes = np.power(np.clip(state.levels, 0.0, 1.0), AMPLITUDE_EXPONENT)

    for index in range(count):
        bar_height = float(amplitudes[index]) * max_height
        x = (index * slot) + ((slot - bar_width) / 2.0)
        radius = min(corner, bar_width / 2.0, bar_height / 2.0)
        frame.surface.fill_rounded_rect(
            x, baseline - bar_height, bar_width, bar_height, radius, gradient
        )
        if mirror:
            frame.surface.fill_rounded_rect(
                x, baseline, bar_width, bar_height, radius, gradient, alpha=0.55
            )
        if peak_hold:
            peak = float(state.peaks[index]) ** AMPLITUDE_EXPONENT
            peak_y = baseline - (peak * max_height) - PEAK_THICKNESS
            frame.surface.fill_rect(
                x, max(0.0, peak_y), bar_width, PEAK_THICKNESS, palette[-1], alpha=0.9
            )
    return state


def _bar_gradient(
    frame: AnalysisFrame, state: BarsState, palette: list[str], baseline: float
) -> LinearGradient:
    key = (frame.width, frame.height, tuple(palette))
    gradient = state.gradient_cache.get(key)
    if gradient is None:
        if len(state.gradient_cache) >= _GRADIENT_CACHE_LIMIT:
            state.gradient_cache.clear()
        gradient = frame.surface.create_linear_gradient(0, baseline, 0, 0, palette)
        state.gradient_cache[key] = gradient
    return gradient
