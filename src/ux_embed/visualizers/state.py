"""Per-session runtime state owned by the active renderer.

Each renderer kind has its own state variant. State is created fresh whenever
a preset is activated and is replaced, never merged, on preset change. When a
size-affecting option no longer matches, renderers reallocate their arrays.
"""

from __future__ import annotations

import math
import random
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal, Union

import numpy as np

from .presets import VisualizerPreset
from .surface import LinearGradient

DEFAULT_BAR_COUNT = 64
MIN_BAR_COUNT = 8
DEFAULT_SPOKE_COUNT = 64
MIN_SPOKE_COUNT = 8
DEFAULT_GRID_COLUMNS = 16
DEFAULT_GRID_ROWS = 9
DEFAULT_DOT_COUNT = 48


def number_option(options: Mapping[str, Any], key: str, default: float) -> float:
    """Read a finite numeric option, falling back to ``default``."""
    value = options.get(key)
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return default
    try:
        number = float(value)
    except OverflowError:
        return default
    return number if math.isfinite(number) else default


def int_option(
    options: Mapping[str, Any], key: str, default: int, *, minimum: int = 1
) -> int:
    return max(minimum, int(number_option(options, key, float(default))))


def bool_option(options: Mapping[str, Any], key: str, default: bool = False) -> bool:
    value = options.get(key)
    return value if isinstance(value, bool) else default


def bar_count(options: Mapping[str, Any]) -> int:
    return int_option(options, "barCount", DEFAULT_BAR_COUNT, minimum=MIN_BAR_COUNT)


def spoke_count(options: Mapping[str, Any]) -> int:
    return int_option(
        options, "spokeCount", DEFAULT_SPOKE_COUNT, minimum=MIN_SPOKE_COUNT
    )


def grid_size(options: Mapping[str, Any]) -> tuple[int, int]:
    return (
        int_option(options, "columns", DEFAULT_GRID_COLUMNS),
        int_option(options, "rows", DEFAULT_GRID_ROWS),
    )


def dot_count(options: Mapping[str, Any]) -> int:
    return int_option(options, "count", DEFAULT_DOT_COUNT)


@dataclass
class BarsState:
    levels: np.ndarray
    peaks: np.ndarray
    gradient_cache: dict[tuple[Any, ...], LinearGradient] = field(default_factory=dict)
    kind: Literal["bars"] = "bars"

    @classmethod
    def sized(cls, count: int) -> BarsState:
        return cls(levels=np.zeros(count), peaks=np.zeros(count))


@dataclass
class WaveformState:
    rng: random.Random
    kind: Literal["waveform"] = "waveform"


@dataclass
class RadialState:
    levels: np.ndarray
    angle: float = 0.0
    kind: Literal["radial"] = "radial"

    @classmethod
    def sized(cls, count: int) -> RadialState:
        return cls(levels=np.zeros(count))


@dataclass
class GridState:
    columns: int
    rows: int
    energies: np.ndarray
    kind: Literal["grid"] = "grid"

    @classmethod
    def sized(cls, columns: int, rows: int) -> GridState:
        return cls(columns=columns, rows=rows, energies=np.zeros(columns * rows))


@dataclass
class Particle:
    angle: float
    speed_offset: float


@dataclass
class DotsState:
    particles: list[Particle]
    levels: np.ndarray
    kind: Literal["dots"] = "dots"

    @classmethod
    def sized(cls, count: int, rng: random.Random) -> DotsState:
        particles = [
            Particle(
                angle=rng.uniform(0.0, math.tau),
                speed_offset=rng.uniform(0.6, 1.4),
            )
            for _ in range(count)
        ]
        return cls(particles=particles, levels=np.zeros(count))


RuntimeState = Union[BarsState, WaveformState, RadialState, GridState, DotsState]


def create_runtime_state(
    preset: VisualizerPreset, rng: random.Random | None = None
) -> RuntimeState | None:
    """Build fresh state sized to ``preset``'s options; ``None`` for unknown types."""
    rng = rng or random.Random()
    options = preset.options
    if preset.type == "bars":
        return BarsState.sized(bar_count(options))
    if preset.type == "waveform":
        return WaveformState(rng=rng)
    if preset.type == "radial":
        return RadialState.sized(spoke_count(options))
    if preset.type == "grid":
        return GridState.sized(*grid_size(options))
    if preset.type == "dots":
        return DotsState.sized(dot_count(options), rng)
    return None
