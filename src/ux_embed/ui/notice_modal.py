"""Modal notice for startup problems the player recovered from."""

from __future__ import annotations

from textual.app import ComposeResult
from textual.containers import Vertical
from textual.screen import ModalScreen
from textual.widgets import Button, Label


class NoticeModal(ModalScreen[None]):
    BINDINGS = [
        ("escape", "close", "Close"),
        ("enter", "close", "Close"),
    ]

    def __init__(self, title: str, message: str) -> None:
        super().__init__()
        self._title = title
        self._message = message

    def compose(self) -> ComposeResult:
        yield Vertical(
            Label(self._title, id="notice-title"),
            Label(self._message, id="notice-message"),
            Button("Dismiss", id="notice-dismiss"),
            id="modal-body",
        )

    def on_mount(self) -> None:
        self.query_one("#notice-dismiss", Button).focus()

    def on_button_pressed(self, event: Button.Pressed) -> None:
        event.stop()
        self.action_close()

    def action_close(self) -> None:
        self.dismiss(None)
