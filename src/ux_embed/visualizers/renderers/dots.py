"""Orbiting particles pushed outward by spectrum magnitude."""

from __future__ import annotations

import math
import random

import numpy as np

from ..state import DotsState, dot_count, number_option
from .common import (
    AnalysisFrame,
    intensity_factor,
    paint_background,
    resolve_palette,
    sample_bands,
    smooth_levels,
    smoothing_factor,
)

DEFAULT_FADE_ALPHA = 0.2


def render_dots(frame: AnalysisFrame) -> DotsState:
    options = frame.options
    count = dot_count(options)
    state = frame.state
    if not isinstance(state, DotsState) or len(state.particles) != count:
        state = DotsState.sized(count, random.Random())

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
    radius = number_option(options, "radius", 0.3)
    spread = number_option(options, "spread", 0.4)
    size = max(0.5, number_option(options, "size", 3.0))
    speed = number_option(options, "speed", 0.6)
    lift = min(1.0, max(0.0, number_option(options, "lift", 0.0)))
    palette = resolve_palette(frame)

    for index, particle in enumerate(state.particles):
        particle.angle = (
            particle.angle + (speed * particle.speed_offset * frame.delta)
        ) % math.tau
        magnitude = min(1.0, max(0.0, float(state.levels[index])))
        orbit = base * (radius + (spread * magnitude))
        vertical = 1.0 - (lift * magnitude)
        x = cx + (math.cos(particle.angle) * orbit)
        y = cy + (math.sin(particle.angle) * orbit * vertical)
        frame.surface.fill_circle(
            x,
            y,
            size * (0.6 + magnitude),
            palette[index % len(palette)],
            alpha=0.35 + (0.65 * magnitude),
        )
    return state
