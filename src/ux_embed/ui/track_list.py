"""Selectable track list for the standard player variants."""

from __future__ import annotations

from textual.widgets import Label, ListItem, ListView

from ux_embed.events import TrackSelected


class TrackList(ListView):
    DEFAULT_CSS = """
    TrackList {
        height: auto;
        max-height: 12;
        background: $panel;
    }

    TrackList > ListItem.--current {
        text-style: bold;
    }
    """

    def __init__(self, **kwargs) -> None:
        super().__init__(**kwargs)
        self._labels: tuple[str, ...] = ()

    async def set_tracks(self, labels: tuple[str, ...], current_index: int) -> None:
        if labels != self._labels:
            self._labels = labels
            await self.clear()
            await self.extend(ListItem(Label(label)) for label in labels)
        self.mark_current(current_index)

    def mark_current(self, index: int) -> None:
        for position, item in enumerate(self.children):
            item.set_class(position == index, "--current")

    def on_list_view_selected(self, event: ListView.Selected) -> None:
        event.stop()
        index = self.index
        if index is not None:
            self.post_message(TrackSelected(index))
