"""Rotating radial spokes driven by spectrum magnitude."""

from __future__ import annotations

import math

import numpy as np

from ..state import RadialState, bool_option, number_option, spoke_count
from .common import (
    AnalysisFrame,
    intensity_factor,
    paint_background,
    palette_color,
    resolve_palette,
    sample_bands,
    smooth_levels,
    smoothing_factor,
)

DEFAULT_FADE_ALPHA = 0.85
AMPLITUDE_EXPONENT = 1.1


def render_radial(frame: AnalysisFrame) -> RadialState:
    options = frame.options
    count = spoke_count(options)
    state = frame.state
    if not isinstance(state, RadialState) or len(state.levels) != count:
        state = RadialState.sized(count)

    # Rotation is time-scaled; level smoothing is per frame.
    speed = number_option(options, "rotationSpeed", 0.3)
    state.angle = (state.angle + (speed * frame.delta)) % math.tau

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

    cx, cy = width / 2.0, height / 2.0
    base = min(width, height) / 2.0
    inner = base * min(1.0, max(0.0, number_option(options, "innerRadius", 0.25)))
    outer = base * min(1.0, max(0.0, number_option(options, "outerRadius", 0.9)))
    outer = max(inner, outer)
    line_width = max(1.0, number_option(options, "lineWidth", 2.0))
    dots = bool_option(options, "dots")
    palette = resolve_palette(frame)
    amplitudes = np.power(np.clip(state.levels, 0.0, 1.0), AMPLITUDE_EXPONENT)

    for index in range(count):
        amplitude = float(amplitudes[index])
        theta = state.angle + (math.tau * index / count)
        cos_t, sin_t = math.cos(theta), math.sin(theta)
        length = inner + ((outer - inner) * amplitude)
        tip_x, tip_y = cx + (cos_t * length), cy + (sin_t * length)
        frame.surface.stroke_line(
            cx + (cos_t * inner),
            cy + (sin_t * inner),
            tip_x,
            tip_y,
            palette_color(palette, index, count),
            line_width=line_width,
            alpha=0.35 + (0.65 * amplitude),
        )
        if dots:
            frame.surface.fill_circle(
                tip_x, tip_y, line_width, palette[-1], alpha=amplitude
            )
    return state
