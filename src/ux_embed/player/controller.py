"""Embed playback controller.

Turns a stream payload into one of the terminal status views or a playback
session for the endpoint's player variant, then owns track advance, autoplay
retry hints, degraded-mode annotation and (for the large variant) the
visualizer and cover-art timers.

Standard variants stop after the last track; the background variant loops the
whole playlist.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Protocol

from ux_embed.player.views import (
    AUTOPLAY_HINT,
    DEGRADED_NOTICE,
    ENDPOINT_MISSING,
    LOADING,
    UNAVAILABLE,
    ArtworkState,
    BackgroundView,
    EmbedSnapshot,
    EmbedView,
    Feedback,
    PlaybackView,
    StatusView,
    format_subtitle,
    format_track_label,
    select_status_view,
)
from ux_embed.services.media_element import (
    ElementError,
    ElementEvent,
    MediaElement,
    PlaybackBlockedError,
    StateChanged,
)
from ux_embed.services.stream_client import EmbedStream, StreamUnavailableError
from ux_embed.visualizers.manager import VisualizerManager, VisualizerStatus
from ux_embed.visualizers.presets import PresetCatalog
from ux_embed.visualizers.scheduling import Cancellable, FrameScheduler

logger = logging.getLogger(__name__)

ARTWORK_DIM_DELAY_S = 6.0
VISUALIZER_VARIANTS = frozenset({"large"})


class StreamSource(Protocol):
    async def fetch_stream(self, slug: str) -> EmbedStream: ...

    async def fetch_presets(self) -> PresetCatalog: ...

    def resolve_url(self, path: str) -> str: ...


VisualizerFactory = Callable[
    [PresetCatalog, MediaElement, object, Callable[[VisualizerStatus, str], None]],
    VisualizerManager,
]


class EmbedController:
    """Drives one embed session for ``slug`` against a media element."""

    def __init__(
        self,
        slug: str | None,
        source: StreamSource,
        element: MediaElement,
        *,
        scheduler: FrameScheduler,
        visualizer_factory: VisualizerFactory | None = None,
        on_change: Callable[[EmbedSnapshot], None] | None = None,
        artwork_dim_delay_s: float = ARTWORK_DIM_DELAY_S,
    ) -> None:
        self._slug = (slug or "").strip() or None
        self._source = source
        self._element = element
        self._scheduler = scheduler
        self._visualizer_factory = visualizer_factory
        self._on_change = on_change
        self._artwork_dim_delay_s = artwork_dim_delay_s
        self._snapshot = EmbedSnapshot()
        self._stream: EmbedStream | None = None
        self._current_index = 0
        self._visualizer: VisualizerManager | None = None
        self._artwork_timer: Cancellable | None = None
        self._listening = False
        self._disposed = False

    @property
    def snapshot(self) -> EmbedSnapshot:
        return self._snapshot

    @property
    def view(self) -> EmbedView | None:
        return self._snapshot.view

    @property
    def current_index(self) -> int:
        return self._current_index

    @property
    def stream(self) -> EmbedStream | None:
        return self._stream

    @property
    def visualizer(self) -> VisualizerManager | None:
        return self._visualizer

    @property
    def disposed(self) -> bool:
        return self._disposed

    async def initialize(self) -> None:
        """Fetch the stream payload once and render the resulting view."""
        if self._slug is None:
            self._render_status(ENDPOINT_MISSING)
            return
        self._update(subtitle=f"Endpoint {self._slug}")
        self._render_status(LOADING)
        try:
            stream = await self._source.fetch_stream(self._slug)
        except StreamUnavailableError as exc:
            if self._disposed:
                return
            logger.warning("Embed stream for '%s' unavailable: %s", self._slug, exc)
            self._render_status(UNAVAILABLE)
            return
        if self._disposed:
            return
        self._stream = stream
        self._update(subtitle=format_subtitle(stream))

        status_view = select_status_view(stream)
        if status_view is not None:
            self._render_status(status_view)
            return

        if stream.player_variant == "background":
            await self._start_background(stream)
        else:
            await self._start_playback(stream)
        if self._disposed:
            return

        if stream.status == "degraded":
            logger.info(
                "Embed playing in degraded mode",
                extra={"event": "embed_degraded_mode", "slug": stream.slug},
            )
            if stream.player_variant == "background":
                logger.warning(DEGRADED_NOTICE)
            else:
                self._set_feedback(Feedback(DEGRADED_NOTICE, persistent=True))

    async def select_track(self, index: int) -> None:
        """User picked a track from the list."""
        stream = self._stream
        if stream is None or not 0 <= index < len(stream.tracks) or self._disposed:
            return
        await self._set_track(index)
        await self._try_play()

    async def play(self) -> None:
        """Explicit user play request (the hint's affordance)."""
        if self._stream is not None and not self._disposed:
            await self._try_play()

    def dispose(self) -> None:
        """Cancel timers, tear down the visualizer and stop observing the element."""
        if self._disposed:
            return
        self._disposed = True
        self._cancel_artwork_timer()
        if self._visualizer is not None:
            self._visualizer.dispose()
        if self._listening:
            self._element.remove_event_handler(self._handle_element_event)
            self._listening = False

    async def _start_playback(self, stream: EmbedStream) -> None:
        show_visualizer = stream.player_variant in VISUALIZER_VARIANTS
        self._set_view(
            PlaybackView(
                variant=stream.player_variant,
                track_labels=tuple(format_track_label(t) for t in stream.tracks),
                current_index=0,
                show_visualizer=show_visualizer,
            )
        )
        self._listen()
        if show_visualizer:
            await self._mount_visualizer(stream)
            if self._disposed:
                return
        await self._set_track(0)
        await self._try_play()

    async def _start_background(self, stream: EmbedStream) -> None:
        self._set_view(
            BackgroundView(track_count=len(stream.tracks), current_index=0)
        )
        self._listen()
        await self._set_track(0)
        await self._try_play()

    async def _mount_visualizer(self, stream: EmbedStream) -> None:
        if self._visualizer_factory is None:
            return
        catalog = await self._source.fetch_presets()
        if self._disposed:
            return
        self._visualizer = self._visualizer_factory(
            catalog, self._element, stream.visualizer, self._on_visualizer_status
        )
        self._update(
            visualizer_status=self._visualizer.status,
            visualizer_message=self._visualizer.message,
        )

    async def _set_track(self, index: int) -> None:
        stream = self._stream
        if stream is None:
            return
        self._current_index = index
        track = stream.tracks[index]
        await self._element.load(self._source.resolve_url(track.src))
        if self._disposed:
            return
        view = self._snapshot.view
        if isinstance(view, BackgroundView):
            self._set_view(replace(view, current_index=index))
            return
        if not isinstance(view, PlaybackView):
            return
        artwork = view.artwork
        if view.show_visualizer:
            url = self._source.resolve_url(track.artwork_url) if track.artwork_url else None
            artwork = ArtworkState(url=url, revealed=True)
            self._schedule_artwork_dim()
        self._set_view(replace(view, current_index=index, artwork=artwork))

    async def _try_play(self) -> None:
        try:
            await self._element.play()
        except PlaybackBlockedError as exc:
            if self._disposed:
                return
            logger.info("Playback did not start: %s", exc)
            self._show_autoplay_hint()
        except Exception as exc:
            if self._disposed:
                return
            logger.warning(
                "Playback attempt failed: %s",
                exc,
                extra={"event": "embed_play_failed", "slug": self._slug},
            )
            self._show_autoplay_hint()

    def _show_autoplay_hint(self) -> None:
        view = self._snapshot.view
        if not isinstance(view, PlaybackView):
            return
        if view.feedback is not None and view.feedback.persistent:
            return
        self._set_feedback(Feedback(AUTOPLAY_HINT, persistent=False))

    async def _handle_element_event(self, event: ElementEvent) -> None:
        if self._disposed:
            return
        if isinstance(event, ElementError):
            logger.warning("Media element error: %s", event.message)
            self._show_autoplay_hint()
            return
        if not isinstance(event, StateChanged):
            return
        if event.status == "playing":
            view = self._snapshot.view
            if isinstance(view, PlaybackView) and view.feedback is not None:
                if not view.feedback.persistent:
                    self._set_feedback(None)
        elif event.status == "ended":
            await self._advance()

    async def _advance(self) -> None:
        stream = self._stream
        if stream is None or not stream.tracks:
            return
        if isinstance(self._snapshot.view, BackgroundView):
            next_index = (self._current_index + 1) % len(stream.tracks)
        elif self._current_index < len(stream.tracks) - 1:
            next_index = self._current_index + 1
        else:
            return
        await self._set_track(next_index)
        await self._try_play()

    def _listen(self) -> None:
        if not self._listening:
            self._element.add_event_handler(self._handle_element_event)
            self._listening = True

    def _schedule_artwork_dim(self) -> None:
        self._cancel_artwork_timer()
        self._artwork_timer = self._scheduler.call_later(
            self._artwork_dim_delay_s, self._dim_artwork
        )

    def _cancel_artwork_timer(self) -> None:
        if self._artwork_timer is not None:
            self._artwork_timer.cancel()
            self._artwork_timer = None

    def _dim_artwork(self) -> None:
        self._artwork_timer = None
        view = self._snapshot.view
        if self._disposed or not isinstance(view, PlaybackView):
            return
        if view.artwork is None or not view.artwork.revealed:
            return
        self._set_view(replace(view, artwork=replace(view.artwork, revealed=False)))

    def _on_visualizer_status(self, status: VisualizerStatus, message: str) -> None:
        if self._disposed:
            return
        self._update(visualizer_status=status, visualizer_message=message)

    def _set_feedback(self, feedback: Feedback | None) -> None:
        view = self._snapshot.view
        if isinstance(view, PlaybackView):
            self._set_view(replace(view, feedback=feedback))

    def _render_status(self, view: StatusView) -> None:
        self._set_view(view)
        logger.info(
            "Embed view rendered",
            extra={
                "event": "embed_view_rendered",
                "slug": self._slug,
                "view": "status",
                "title": view.title,
            },
        )

    def _set_view(self, view: EmbedView) -> None:
        self._update(view=view)

    def _update(self, **changes: object) -> None:
        self._snapshot = replace(self._snapshot, **changes)
        if self._on_change is not None and not self._disposed:
            self._on_change(self._snapshot)
