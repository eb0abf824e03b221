"""Shared frame payload and conventions for the signal renderers."""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

import numpy as np

from ..presets import VisualizerPreset
from ..settings import VisualizerSettings
from ..state import RuntimeState, number_option
from ..surface import DrawingSurface

DEFAULT_DELTA = 1.0 / 60.0
DEFAULT_PALETTE = ("#38bdf8", "#6366f1", "#a855f7")
DEFAULT_BASE_COLOR = "#020617"
DEFAULT_SMOOTHING = 0.8
MAX_SMOOTHING = 0.99
INTENSITY_FACTORS = {"calm": 0.75, "balanced": 1.0, "dynamic": 1.35}
_OVERRIDE_SLOTS = ("primary", "secondary", "accent")


@dataclass(frozen=True)
class AnalysisFrame:
    """Everything a renderer needs for one draw call."""

    surface: DrawingSurface
    width: int
    height: int
    frequency: np.ndarray
    waveform: np.ndarray
    delta: float
    time: float
    preset: VisualizerPreset
    settings: VisualizerSettings
    state: RuntimeState | None = None

    def __post_init__(self) -> None:
        if not math.isfinite(self.delta) or self.delta < 0:
            object.__setattr__(self, "delta", DEFAULT_DELTA)

    @property
    def options(self) -> Mapping[str, Any]:
        return self.preset.options


def resolve_palette(frame: AnalysisFrame) -> list[str]:
    configured = frame.options.get("palette")
    palette: list[str] = []
    if isinstance(configured, list):
        palette = [color for color in configured if isinstance(color, str) and color]
    if not palette:
        palette = list(DEFAULT_PALETTE)
    overrides = frame.settings.overrides
    if overrides is None or overrides.palette is None:
        return palette
    for index, slot in enumerate(_OVERRIDE_SLOTS):
        color = getattr(overrides.palette, slot)
        if color is None:
            continue
        if index < len(palette):
            palette[index] = color
        else:
            palette.append(color)
    return palette


def resolve_background(frame: AnalysisFrame) -> str | None:
    overrides = frame.settings.overrides
    if overrides is not None and overrides.palette is not None:
        if overrides.palette.background is not None:
            return overrides.palette.background
    configured = frame.options.get("background")
    return configured if isinstance(configured, str) and configured else None


def intensity_factor(settings: VisualizerSettings) -> float:
    if settings.overrides is None or settings.overrides.intensity is None:
        return 1.0
    return INTENSITY_FACTORS.get(settings.overrides.intensity, 1.0)


def smoothing_factor(options: Mapping[str, Any]) -> float:
    value = number_option(options, "smoothing", DEFAULT_SMOOTHING)
    return max(0.0, min(MAX_SMOOTHING, value))


def paint_background(frame: AnalysisFrame, default_alpha: float) -> None:
    """Solid override fill, translucent ``backgroundAlpha`` fill, or default fade."""
    surface = frame.surface
    overrides = frame.settings.overrides
    if overrides is not None and overrides.palette is not None:
        if overrides.palette.background is not None:
            surface.fill_rect(0, 0, frame.width, frame.height, overrides.palette.background)
            return
    base = resolve_background(frame) or DEFAULT_BASE_COLOR
    if "backgroundAlpha" in frame.options:
        alpha = max(0.0, min(1.0, number_option(frame.options, "backgroundAlpha", 1.0)))
        if alpha <= 0:
            surface.clear()
            return
        surface.fill_rect(0, 0, frame.width, frame.height, base, alpha=alpha)
        return
    surface.fill_rect(0, 0, frame.width, frame.height, base, alpha=default_alpha)


def sample_bands(data: np.ndarray, count: int) -> np.ndarray:
    """Sample ``count`` magnitudes in [0, 1] at stride ``len(data) // count``."""
    if count <= 0:
        return np.zeros(0)
    if len(data) == 0:
        return np.zeros(count)
    stride = max(1, len(data) // count)
    indices = np.minimum(np.arange(count) * stride, len(data) - 1)
    return np.asarray(data, dtype=np.float64)[indices] / 255.0


def smooth_levels(levels: np.ndarray, targets: np.ndarray, smoothing: float) -> None:
    """Exponential moving average applied per frame, in place."""
    levels *= smoothing
    levels += targets * (1.0 - smoothing)


def palette_color(palette: list[str], index: int, count: int) -> str:
    if count <= 0:
        return palette[0]
    return palette[min(len(palette) - 1, (index * len(palette)) // count)]
