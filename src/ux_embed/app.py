"""Textual terminal embed player.

Hosts one `EmbedController` for a slug: fetches the stream from the embed
service, plays it through a media element and renders the controller's
snapshots. The large variant adds a visualizer panel.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable

from rich.text import Text
from textual.app import App, ComposeResult
from textual.containers import Vertical
from textual.widgets import Footer, Header, Static

from .events import EmbedViewChanged, TrackSelected
from .player.controller import EmbedController, StreamSource
from .player.views import (
    NOW_PLAYING_HEADING,
    BackgroundView,
    EmbedSnapshot,
    PlaybackView,
    StatusView,
)
from .services.fake_element import FakeAudioElement
from .services.media_element import MediaElement
from .services.stream_client import StreamClient
from .services.vlc_element import VLCMediaElement
from .ui.notice_modal import NoticeModal
from .ui.track_list import TrackList
from .ui.visualizer_panel import VisualizerPanel, cell_surface_factory
from .visualizers.manager import VisualizerManager, VisualizerStatus
from .visualizers.presets import PresetCatalog
from .visualizers.scheduling import AsyncioFrameScheduler

logger = logging.getLogger(__name__)

DEFAULT_VISUALIZER_FPS = 30


class EmbedPlayerApp(App):
    TITLE = "ux-embed"
    CSS = """
    Screen {
        layout: vertical;
    }

    #embed-body {
        height: 1fr;
        padding: 0 1;
    }

    #embed-status-title {
        text-style: bold;
    }

    #now-playing, #feedback, #artwork {
        height: auto;
    }

    #feedback {
        color: $warning;
    }

    ModalScreen {
        align: center middle;
    }

    #modal-body {
        padding: 1 2;
        border: solid white;
        width: 60%;
    }
    """
    BINDINGS = [
        ("space", "play", "Play"),
        ("x", "pause", "Pause"),
        ("q", "quit", "Quit"),
    ]

    def __init__(
        self,
        slug: str | None,
        *,
        base_url: str = "http://127.0.0.1:4000",
        element_name: str = "fake",
        source: StreamSource | None = None,
        element: MediaElement | None = None,
        visualizer_fps: int = DEFAULT_VISUALIZER_FPS,
        auto_init: bool = True,
    ) -> None:
        super().__init__()
        self._slug = slug
        self._element_name = element_name
        self._owned_client: StreamClient | None = None
        if source is None:
            self._owned_client = StreamClient(base_url)
            source = self._owned_client
        self._source = source
        self._element = element
        self._auto_init = auto_init
        self._scheduler = AsyncioFrameScheduler(fps=visualizer_fps)
        self.controller: EmbedController | None = None
        self.snapshot = EmbedSnapshot()

    def compose(self) -> ComposeResult:
        yield Header()
        yield Vertical(
            Static("", id="embed-subtitle"),
            Static("", id="embed-status-title"),
            Static("", id="embed-status-message"),
            Static("", id="now-playing"),
            Static("", id="feedback"),
            Static("", id="artwork"),
            VisualizerPanel(id="visualizer-panel"),
            TrackList(id="track-list"),
            id="embed-body",
        )
        yield Footer()

    def on_mount(self) -> None:
        self.query_one(VisualizerPanel).display = False
        self.query_one(TrackList).display = False
        if self._auto_init:
            asyncio.create_task(self._initialize())

    async def _initialize(self) -> None:
        try:
            if self._element is None:
                self._element = await self._start_element()
            self.controller = EmbedController(
                self._slug,
                self._source,
                self._element,
                scheduler=self._scheduler,
                visualizer_factory=self._build_visualizer,
                on_change=self._post_snapshot,
            )
            await self.controller.initialize()
        except Exception as exc:
            logger.exception("Failed to initialize embed player: %s", exc)
            await self.push_screen(
                NoticeModal(
                    "Embed player failed to start.",
                    "Likely cause: media element or embed service startup failure.\n"
                    "Next step: verify --base-url and review the log file.",
                )
            )

    async def _start_element(self) -> MediaElement:
        element = _build_element(self._element_name)
        try:
            await element.start()
            return element
        except Exception as exc:
            if self._element_name == "fake":
                raise
            logger.exception("Failed to start %s element: %s", self._element_name, exc)
            fallback = _build_element("fake")
            await fallback.start()
            await self.push_screen(
                NoticeModal(
                    "VLC element unavailable; using the simulated element.",
                    "Cause: VLC/libVLC runtime is not available.\n"
                    "Next step: install VLC/libVLC, then restart with --element vlc.",
                )
            )
            return fallback

    def _build_visualizer(
        self,
        catalog: PresetCatalog,
        element: MediaElement,
        settings: object,
        on_status: Callable[[VisualizerStatus, str], None],
    ) -> VisualizerManager:
        panel = self.query_one(VisualizerPanel)

        def _on_status(status: VisualizerStatus, message: str) -> None:
            on_status(status, message)
            panel.show_status(message)

        manager = VisualizerManager(
            catalog,
            element,
            scheduler=self._scheduler,
            surface_factory=cell_surface_factory,
            settings=settings,
            on_frame=panel.show_frame,
            on_status=_on_status,
        )
        panel.attach(manager)
        return manager

    def _post_snapshot(self, snapshot: EmbedSnapshot) -> None:
        self.post_message(EmbedViewChanged(snapshot))

    async def on_embed_view_changed(self, event: EmbedViewChanged) -> None:
        await self._render_snapshot(event.snapshot)

    async def on_track_selected(self, event: TrackSelected) -> None:
        if self.controller is not None:
            await self.controller.select_track(event.index)

    async def _render_snapshot(self, snapshot: EmbedSnapshot) -> None:
        self.snapshot = snapshot
        self.sub_title = snapshot.subtitle
        self.query_one("#embed-subtitle", Static).update(snapshot.subtitle)
        view = snapshot.view
        status_title = ""
        status_message = ""
        now_playing = ""
        feedback = ""
        artwork: Text | str = ""
        show_tracks = False
        show_panel = False
        if isinstance(view, StatusView):
            status_title, status_message = view.title, view.message
        elif isinstance(view, BackgroundView):
            now_playing = (
                f"Background playback {view.current_index + 1}/{view.track_count}"
            )
        elif isinstance(view, PlaybackView):
            now_playing = f"{NOW_PLAYING_HEADING}: {view.now_playing}"
            feedback = view.feedback.text if view.feedback is not None else ""
            if view.artwork is not None and view.artwork.url:
                artwork = Text(
                    f"Artwork: {view.artwork.url}",
                    style="" if view.artwork.revealed else "dim",
                )
            show_tracks = True
            show_panel = view.show_visualizer
            await self.query_one(TrackList).set_tracks(
                view.track_labels, view.current_index
            )
        self.query_one("#embed-status-title", Static).update(status_title)
        self.query_one("#embed-status-message", Static).update(status_message)
        self.query_one("#now-playing", Static).update(now_playing)
        self.query_one("#feedback", Static).update(feedback)
        self.query_one("#artwork", Static).update(artwork)
        self.query_one(TrackList).display = show_tracks
        self.query_one(VisualizerPanel).display = show_panel

    async def action_play(self) -> None:
        if self.controller is not None:
            await self.controller.play()

    async def action_pause(self) -> None:
        if self._element is not None:
            await self._element.pause()

    async def action_quit(self) -> None:
        self.exit()

    async def on_unmount(self) -> None:
        if self.controller is not None:
            self.controller.dispose()
        if self._element is not None:
            await self._element.shutdown()
        if self._owned_client is not None:
            await self._owned_client.aclose()


def _build_element(name: str) -> FakeAudioElement | VLCMediaElement:
    logger.info("Media element selected: %s", name)
    if name == "vlc":
        return VLCMediaElement()
    return FakeAudioElement()
