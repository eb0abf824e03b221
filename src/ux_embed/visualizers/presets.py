"""Visualizer preset catalog loading and lookup.

The catalog is an explicitly constructed object: callers load it once (from the
bundled JSON, a file path, or already-decoded entries) and hand it to the
settings normalizer and the visualizer manager. A catalog that fails to load
degrades to an empty catalog instead of aborting startup.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, Literal, cast

logger = logging.getLogger(__name__)

RendererType = Literal["bars", "waveform", "radial", "grid", "dots"]
RENDERER_TYPES: tuple[RendererType, ...] = ("bars", "waveform", "radial", "grid", "dots")
FALLBACK_PRESET_ID = "bars-classic"
_BUNDLED_RESOURCE = "visualizer-presets.json"


@dataclass(frozen=True)
class VisualizerPreset:
    """Named renderer configuration loaded from the catalog source."""

    id: str
    label: str
    group: str
    description: str
    type: RendererType
    options: Mapping[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "label": self.label,
            "group": self.group,
            "description": self.description,
            "type": self.type,
            "options": dict(self.options),
        }


@dataclass(frozen=True)
class VisualizerModeOption:
    """Selectable visualizer mode as presented to endpoint editors."""

    value: str
    label: str
    group: str
    description: str


def normalize_preset(entry: object) -> VisualizerPreset | None:
    """Validate one raw catalog entry; return ``None`` when it is malformed."""
    if not isinstance(entry, Mapping):
        return None
    values = [entry.get(key) for key in ("id", "label", "group", "description")]
    if not all(isinstance(value, str) for value in values):
        return None
    preset_type = entry.get("type")
    if preset_type not in RENDERER_TYPES:
        return None
    preset_id, label, group, description = cast(list[str], values)
    if not preset_id.strip():
        return None
    options = entry.get("options")
    option_map = dict(options) if isinstance(options, Mapping) else {}
    return VisualizerPreset(
        id=preset_id,
        label=label,
        group=group,
        description=description,
        type=cast(RendererType, preset_type),
        options=MappingProxyType(option_map),
    )


class PresetCatalog:
    """Read-only, ordered collection of presets keyed by unique ``id``."""

    def __init__(self, presets: Iterable[VisualizerPreset] = ()) -> None:
        ordered: dict[str, VisualizerPreset] = {}
        for preset in presets:
            if preset.id in ordered:
                logger.error(
                    "Duplicate visualizer preset id '%s'; keeping first entry",
                    preset.id,
                )
                continue
            ordered[preset.id] = preset
        self._presets = ordered

    def __len__(self) -> int:
        return len(self._presets)

    def __iter__(self) -> Iterator[VisualizerPreset]:
        return iter(self._presets.values())

    def __contains__(self, preset_id: object) -> bool:
        return isinstance(preset_id, str) and preset_id in self._presets

    @property
    def is_empty(self) -> bool:
        return not self._presets

    @property
    def default_id(self) -> str:
        """First catalog id, or the fixed fallback id for an empty catalog."""
        return next(iter(self._presets), FALLBACK_PRESET_ID)

    def ids(self) -> list[str]:
        return list(self._presets)

    def get(self, preset_id: str) -> VisualizerPreset | None:
        return self._presets.get(preset_id)

    def to_entries(self) -> list[dict[str, Any]]:
        return [preset.to_dict() for preset in self]

    @classmethod
    def from_entries(cls, entries: object) -> PresetCatalog:
        """Build a catalog from decoded JSON, silently dropping bad entries."""
        if not isinstance(entries, list):
            logger.warning("Visualizer preset source is not a JSON array.")
            return cls()
        presets = [preset for preset in map(normalize_preset, entries) if preset]
        dropped = len(entries) - len(presets)
        if dropped:
            logger.debug("Dropped %d malformed visualizer preset entries.", dropped)
        return cls(presets)

    @classmethod
    def load(cls, path: Path | None = None) -> PresetCatalog:
        """Load the catalog from ``path`` or the bundled JSON resource."""
        source = str(path) if path is not None else f"bundled:{_BUNDLED_RESOURCE}"
        try:
            if path is None:
                raw = (
                    resources.files("ux_embed.data")
                    .joinpath(_BUNDLED_RESOURCE)
                    .read_text(encoding="utf-8")
                )
            else:
                raw = Path(path).read_text(encoding="utf-8")
            entries = json.loads(raw)
        except (OSError, ValueError) as exc:
            logger.warning(
                "Visualizer preset catalog unavailable at %s: %s", source, exc
            )
            return cls()
        catalog = cls.from_entries(entries)
        logger.info(
            "Visualizer catalog loaded",
            extra={
                "event": "visualizer_catalog_loaded",
                "source": source,
                "preset_count": len(catalog),
                "preset_ids": catalog.ids(),
            },
        )
        return catalog


def visualizer_mode_options(catalog: PresetCatalog) -> list[VisualizerModeOption]:
    """Return the random-rotation option followed by one option per preset."""
    options = [
        VisualizerModeOption(
            value="random",
            label="Random rotation",
            group="Rotation",
            description="Rotate through visualizers every 30 seconds.",
        )
    ]
    options.extend(
        VisualizerModeOption(
            value=preset.id,
            label=preset.label,
            group=preset.group,
            description=preset.description,
        )
        for preset in catalog
    )
    return options
