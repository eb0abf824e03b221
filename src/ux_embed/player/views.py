"""View models rendered by the embed player front-ends.

The controller produces an `EmbedSnapshot` after every change; front-ends only
render snapshots and never inspect the stream payload themselves.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from ux_embed.services.stream_client import EmbedStream
from ux_embed.services.stream_resolver import Track

AUTOPLAY_HINT = "Press play to start the stream."
DEGRADED_NOTICE = "Streaming in degraded mode. Playback issues may occur."
NOW_PLAYING_HEADING = "Now playing"


@dataclass(frozen=True)
class StatusView:
    """Terminal message shown instead of the playback UI."""

    title: str
    message: str


ENDPOINT_MISSING = StatusView(
    "Endpoint missing.", "Unable to determine the requested playlist."
)
LOADING = StatusView("Loading stream.", "Fetching playlist metadata.")
UNAVAILABLE = StatusView(
    "Playback unavailable.",
    "The player could not reach the media service. Please try again later.",
)
DISABLED = StatusView(
    "Endpoint disabled.", "This endpoint has been deactivated in the admin console."
)
PLAYLIST_REQUIRED = StatusView(
    "Playlist required.", "Assign a playlist to this endpoint to start playback."
)
ACTIVATION_PENDING = StatusView(
    "Activation pending.",
    "Enable this endpoint from the admin console to begin streaming.",
)
NO_MEDIA = StatusView(
    "No media available.", "Upload ready tracks to the assigned playlist."
)


@dataclass(frozen=True)
class Feedback:
    text: str
    persistent: bool = False


@dataclass(frozen=True)
class ArtworkState:
    """Cover art shown beside the visualizer; ``revealed`` turns off when dimmed."""

    url: str | None
    revealed: bool = True


@dataclass(frozen=True)
class PlaybackView:
    variant: str
    track_labels: tuple[str, ...]
    current_index: int
    feedback: Feedback | None = None
    artwork: ArtworkState | None = None
    show_visualizer: bool = False

    @property
    def now_playing(self) -> str:
        return self.track_labels[self.current_index]


@dataclass(frozen=True)
class BackgroundView:
    """Invisible looping player: no controls, no track list."""

    track_count: int
    current_index: int


EmbedView = Union[StatusView, PlaybackView, BackgroundView]


@dataclass(frozen=True)
class EmbedSnapshot:
    subtitle: str = ""
    view: EmbedView | None = None
    visualizer_status: str | None = None
    visualizer_message: str = ""


def format_track_label(track: Track) -> str:
    return f"{track.title} — {track.artist}" if track.artist else track.title


def format_subtitle(stream: EmbedStream) -> str:
    if stream.has_playlist:
        return f"{stream.playlist_name} • {stream.name}"
    return stream.name


def select_status_view(stream: EmbedStream) -> StatusView | None:
    """Return the terminal view for ``stream``, or ``None`` to start playback.

    Order matters: disabled, missing playlist, pending, then empty tracks.
    """
    if stream.status == "disabled":
        return DISABLED
    if not stream.has_playlist:
        return PLAYLIST_REQUIRED
    if stream.status == "pending":
        return ACTIVATION_PENDING
    if not stream.tracks:
        return NO_MEDIA
    return None
