"""Cell matrix whose brightness and scale follow per-cell energy."""

from __future__ import annotations

import math

import numpy as np

from ..state import GridState, grid_size, number_option
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
PULSE_SHAPES = ("vertical", "diagonal", "swirl", "radial")


def pulse_weights(shape: str, columns: int, rows: int, time: float) -> np.ndarray:
    """Return per-cell modulation in [0, 1], row-major."""
    cols = np.tile(np.arange(columns, dtype=np.float64), rows)
    rws = np.repeat(np.arange(rows, dtype=np.float64), columns)
    if shape == "diagonal":
        span = max(1.0, float(columns + rows - 2))
        return 0.35 + (0.65 * ((cols + rws) / span))
    if shape == "swirl":
        return 0.5 + (0.5 * np.sin((cols * 0.6) + (rws * 0.4) + (time * 2.0)))
    if shape == "radial":
        cx, cy = (columns - 1) / 2.0, (rows - 1) / 2.0
        reach = max(1e-6, math.hypot(cx, cy))
        return 1.0 - (0.7 * (np.hypot(cols - cx, rws - cy) / reach))
    span = max(1.0, float(columns - 1))
    return 0.35 + (0.65 * (cols / span))


def render_grid(frame: AnalysisFrame) -> GridState:
    options = frame.options
    columns, rows = grid_size(options)
    state = frame.state
    if (
        not isinstance(state, GridState)
        or state.columns != columns
        or state.rows != rows
        or len(state.energies) != columns * rows
    ):
        state = GridState.sized(columns, rows)

    paint_background(frame, DEFAULT_FADE_ALPHA)
    width, height = frame.width, frame.height
    if width <= 0 or height <= 0:
        return state

    cells = columns * rows
    targets = np.clip(
        sample_bands(frame.frequency, cells) * intensity_factor(frame.settings),
        0.0,
        1.0,
    )
    smooth_levels(state.energies, targets, smoothing_factor(options))

    shape = options.get("pulse")
    if shape not in PULSE_SHAPES:
        shape = "vertical"
    weights = np.clip(pulse_weights(shape, columns, rows, frame.time), 0.0, 1.0)
    energies = np.clip(state.energies, 0.0, 1.0)
    alphas = 0.12 + (0.88 * energies * weights)
    scales = 0.35 + (0.65 * np.minimum(1.0, energies * (0.5 + (0.5 * weights))))

    gap = max(0.0, number_option(options, "gap", 3.0))
    cell_w = width / columns
    cell_h = height / rows
    palette = resolve_palette(frame)
    for index in range(cells):
        row, col = divmod(index, columns)
        scale = float(scales[index])
        w = max(1.0, (cell_w - gap) * scale)
        h = max(1.0, (cell_h - gap) * scale)
        x = (col * cell_w) + ((cell_w - w) / 2.0)
        y = (row * cell_h) + ((cell_h - h) / 2.0)
        color = palette_color(palette, int(energies[index] * 100), 101)
        frame.surface.fill_rounded_rect(
            x, y, w, h, min(w, h) * 0.2, color, alpha=float(alphas[index])
        )
    return state
