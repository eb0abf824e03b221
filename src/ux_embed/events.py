"""Textual message models routed between the embed controller and widgets."""

from __future__ import annotations

from typing import TYPE_CHECKING

from textual.message import Message

if TYPE_CHECKING:
    from ux_embed.player.views import EmbedSnapshot


class EmbedViewChanged(Message):
    """Controller produced a new snapshot to render."""

    def __init__(self, snapshot: EmbedSnapshot) -> None:
        super().__init__()
        self.snapshot = snapshot


class TrackSelected(Message):
    """UI message for activating a track row."""

    def __init__(self, index: int) -> None:
        super().__init__()
        self.index = index
