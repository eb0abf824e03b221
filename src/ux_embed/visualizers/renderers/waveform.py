"""Oscilloscope-style waveform trace."""

from __future__ import annotations

import random

import numpy as np

from ..state import WaveformState, bool_option, int_option, number_option
from .common import AnalysisFrame, intensity_factor, paint_background, resolve_palette

DEFAULT_FADE_ALPHA = 0.2
MIN_AMPLIFY = 0.2
MAX_AMPLIFY = 3.0
SPARKLE_ALPHA = 0.3
FILL_ALPHA = 0.25
MIRROR_ALPHA = 0.45
_MAX_POINTS_PER_PIXEL = 2


def render_waveform(frame: AnalysisFrame) -> WaveformState:
    options = frame.options
    state = frame.state
    if not isinstance(state, WaveformState):
        state = WaveformState(rng=random.Random())

    paint_background(frame, DEFAULT_FADE_ALPHA)
    width, height = frame.width, frame.height
    if width <= 0 or height <= 0:
        return state

    amplify = min(MAX_AMPLIFY, max(MIN_AMPLIFY, number_option(options, "amplify", 1.0)))
    gain = amplify * intensity_factor(frame.settings)
    mid = height / 2.0

    data = np.asarray(frame.waveform, dtype=np.float64)
    if data.size < 2:
        data = np.full(2, 128.0)
    point_count = max(2, min(data.size, int(width) * _MAX_POINTS_PER_PIXEL))
    indices = np.linspace(0, data.size - 1, point_count).astype(int)
    samples = (data[indices] - 128.0) / 128.0
    xs = np.linspace(0.0, float(width), point_count)
    ys = np.clip(mid - (samples * gain * mid), 0.0, float(height))
    points = list(zip(xs.tolist(), ys.tolist()))

    palette = resolve_palette(frame)
    stroke = frame.surface.create_linear_gradient(0, 0, width, 0, palette)
    line_width = max(1.0, number_option(options, "lineWidth", 2.0))

    if bool_option(options, "fill"):
        frame.surface.fill_polygon(
            [*points, (float(width), mid), (0.0, mid)], stroke, alpha=FILL_ALPHA
        )
    frame.surface.stroke_polyline(points, stroke, line_width=line_width)
    if bool_option(options, "mirror"):
        mirrored = [(x, (2.0 * mid) - y) for x, y in points]
        frame.surface.stroke_polyline(
            mirrored, stroke, line_width=line_width, alpha=MIRROR_ALPHA
        )

    sparkles = int_option(options, "sparkles", 0, minimum=0)
    for _ in range(sparkles):
        index = state.rng.randrange(point_count)
        x, y = points[index]
        radius = state.rng.uniform(1.0, 2.5)
        frame.surface.fill_circle(x, y, radius, palette[-1], alpha=SPARKLE_ALPHA)
    return state
