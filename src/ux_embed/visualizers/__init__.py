"""Audio visualizer engine."""

from .manager import VisualizerManager
from .presets import PresetCatalog, VisualizerPreset
from .settings import VisualizerSettings, normalize_visualizer_settings

__all__ = [
    "PresetCatalog",
    "VisualizerManager",
    "VisualizerPreset",
    "VisualizerSettings",
    "normalize_visualizer_settings",
]
