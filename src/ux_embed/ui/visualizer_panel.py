"""Terminal host for the visualizer manager.

Each terminal cell holds two vertical pixels, so the panel reports its size as
``columns x rows * 2`` and the manager's surface factory hands back a
`CellSurface` of matching shape.
"""

from __future__ import annotations

from rich.text import Text
from textual.events import Resize
from textual.widgets import Static

from ux_embed.visualizers.manager import VisualizerManager
from ux_embed.visualizers.surface import CellSurface, DrawingSurface


def cell_surface_factory(width: int, height: int) -> CellSurface | None:
    """Build a half-block surface for a ``width x height`` pixel backing size."""
    if width <= 0 or height <= 1:
        return None
    return CellSurface(width, height // 2)


class VisualizerPanel(Static):
    DEFAULT_CSS = """
    VisualizerPanel {
        height: 1fr;
        min-height: 6;
        border: solid white;
        content-align: center middle;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__("", **kwargs)
        self._manager: VisualizerManager | None = None

    @property
    def manager(self) -> VisualizerManager | None:
        return self._manager

    def attach(self, manager: VisualizerManager | None) -> None:
        self._manager = manager
        if manager is None:
            self.update("")
            return
        self._sync_size()
        self.show_status(manager.message)

    def show_frame(self, surface: DrawingSurface) -> None:
        if isinstance(surface, CellSurface):
            self.update(surface.to_text())

    def show_status(self, message: str) -> None:
        if message:
            self.update(Text(message, style="dim"))

    def on_resize(self, event: Resize) -> None:
        self._sync_size()

    def _sync_size(self) -> None:
        if self._manager is None:
            return
        size = self.content_size
        self._manager.resize(size.width, size.height * 2, 1.0)
