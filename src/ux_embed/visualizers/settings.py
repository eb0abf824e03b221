"""Per-endpoint visualizer settings and their normalization.

Settings arrive from untrusted sources (admin forms, API payloads, stored JSON)
so every read goes through `normalize_visualizer_settings`, which never fails
and always returns a fully-populated value.
"""

from __future__ import annotations

import math
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Literal

from .presets import PresetCatalog

Intensity = Literal["calm", "balanced", "dynamic"]

VISUALIZER_RANDOM_MODE = "random"
DEFAULT_RANDOMIZE_INTERVAL_SECONDS = 30
MIN_RANDOMIZE_INTERVAL_SECONDS = 10
MAX_RANDOMIZE_INTERVAL_SECONDS = 600
INTENSITIES: tuple[Intensity, ...] = ("calm", "balanced", "dynamic")
_PALETTE_FIELDS = ("primary", "secondary", "accent", "background")


@dataclass(frozen=True)
class PaletteOverrides:
    primary: str | None = None
    secondary: str | None = None
    accent: str | None = None
    background: str | None = None

    def to_dict(self) -> dict[str, str]:
        return {
            name: value
            for name in _PALETTE_FIELDS
            if (value := getattr(self, name)) is not None
        }


@dataclass(frozen=True)
class VisualizerOverrides:
    palette: PaletteOverrides | None = None
    intensity: Intensity | None = None

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {}
        if self.palette is not None:
            result["palette"] = self.palette.to_dict()
        if self.intensity is not None:
            result["intensity"] = self.intensity
        return result


@dataclass(frozen=True)
class VisualizerSettings:
    """Well-formed visualizer configuration for one endpoint."""

    mode: str
    randomize_interval_seconds: int = DEFAULT_RANDOMIZE_INTERVAL_SECONDS
    overrides: VisualizerOverrides | None = None

    @property
    def is_random(self) -> bool:
        return self.mode == VISUALIZER_RANDOM_MODE

    def to_dict(self) -> dict[str, Any]:
        """Serialize with the camelCase keys used on the wire."""
        result: dict[str, Any] = {
            "mode": self.mode,
            "randomizeIntervalSeconds": self.randomize_interval_seconds,
        }
        if self.overrides is not None:
            result["overrides"] = self.overrides.to_dict()
        return result


def default_visualizer_settings(catalog: PresetCatalog) -> VisualizerSettings:
    return VisualizerSettings(mode=catalog.default_id)


def normalize_visualizer_mode(value: object, catalog: PresetCatalog) -> str:
    if value == VISUALIZER_RANDOM_MODE:
        return VISUALIZER_RANDOM_MODE
    if isinstance(value, str) and value in catalog:
        return value
    return catalog.default_id


def normalize_visualizer_settings(
    value: object, catalog: PresetCatalog
) -> VisualizerSettings:
    """Coerce arbitrary input into valid settings; idempotent and total."""
    if isinstance(value, VisualizerSettings):
        value = value.to_dict()
    if not isinstance(value, Mapping):
        return default_visualizer_settings(catalog)
    overrides = _sanitize_overrides(value.get("overrides"))
    if "randomizeIntervalSeconds" in value:
        interval = clamp_interval(value["randomizeIntervalSeconds"])
    else:
        interval = DEFAULT_RANDOMIZE_INTERVAL_SECONDS
    return VisualizerSettings(
        mode=normalize_visualizer_mode(value.get("mode"), catalog),
        randomize_interval_seconds=interval,
        overrides=overrides,
    )


def clamp_interval(value: object) -> int:
    """Round and clamp a rotation interval; non-numeric input yields the default."""
    numeric = _to_number(value)
    if not math.isfinite(numeric):
        return DEFAULT_RANDOMIZE_INTERVAL_SECONDS
    # Half-up rounding, not banker's rounding.
    rounded = math.floor(numeric + 0.5)
    return max(
        MIN_RANDOMIZE_INTERVAL_SECONDS, min(MAX_RANDOMIZE_INTERVAL_SECONDS, rounded)
    )


def _to_number(value: object) -> float:
    # null and blank strings count as zero, so they clamp to the minimum.
    if value is None:
        return 0.0
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return 0.0
        try:
            return float(text)
        except ValueError:
            return math.nan
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return math.nan
    return math.nan


def _sanitize_palette(value: object) -> PaletteOverrides | None:
    if not isinstance(value, Mapping):
        return None
    fields: dict[str, str] = {}
    for name in _PALETTE_FIELDS:
        raw = value.get(name)
        if isinstance(raw, str) and raw.strip():
            fields[name] = raw.strip()
    if not fields:
        return None
    return PaletteOverrides(**fields)


def _sanitize_overrides(value: object) -> VisualizerOverrides | None:
    if not isinstance(value, Mapping):
        return None
    palette = _sanitize_palette(value.get("palette"))
    intensity = value.get("intensity")
    if intensity not in INTENSITIES:
        intensity = None
    if palette is None and intensity is None:
        return None
    return VisualizerOverrides(palette=palette, intensity=intensity)
