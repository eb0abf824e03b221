"""HTTP client for the embed stream payload and the preset catalog."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

import httpx

from ux_embed.runtime_config import normalize_player_variant
from ux_embed.services.stream_resolver import Track
from ux_embed.visualizers.presets import PresetCatalog

logger = logging.getLogger(__name__)

PRESETS_PATH = "/assets/data/visualizer-presets.json"
DEFAULT_TIMEOUT_S = 10.0


class StreamUnavailableError(RuntimeError):
    """Stream payload could not be fetched (network, non-2xx or malformed body)."""


@dataclass(frozen=True)
class EmbedStream:
    """Client-side view of a resolved stream payload."""

    name: str
    slug: str
    status: str
    last_sync: str | None
    player_variant: str
    visualizer: Mapping[str, Any] | None
    playlist_id: str | None
    playlist_name: str | None
    tracks: list[Track] = field(default_factory=list)

    @property
    def has_playlist(self) -> bool:
        return self.playlist_id is not None


def parse_stream_payload(data: object) -> EmbedStream:
    """Validate a decoded payload; raise `StreamUnavailableError` when malformed."""
    if not isinstance(data, Mapping):
        raise StreamUnavailableError("Stream payload is not an object.")
    endpoint = data.get("endpoint")
    playlist = data.get("playlist")
    tracks = data.get("tracks")
    if not isinstance(endpoint, Mapping) or not isinstance(tracks, list):
        raise StreamUnavailableError("Stream payload is missing endpoint or tracks.")
    if playlist is not None and not isinstance(playlist, Mapping):
        raise StreamUnavailableError("Stream payload playlist is malformed.")
    status = endpoint.get("status")
    if not isinstance(status, str):
        raise StreamUnavailableError("Stream payload endpoint status is missing.")
    visualizer = endpoint.get("visualizer")
    return EmbedStream(
        name=str(endpoint.get("name") or ""),
        slug=str(endpoint.get("slug") or ""),
        status=status,
        last_sync=endpoint.get("lastSync"),
        player_variant=normalize_player_variant(endpoint.get("playerVariant")),
        visualizer=visualizer if isinstance(visualizer, Mapping) else None,
        playlist_id=None if playlist is None else str(playlist.get("id")),
        playlist_name=None if playlist is None else playlist.get("name"),
        tracks=[_parse_track(entry) for entry in tracks],
    )


def _parse_track(entry: object) -> Track:
    if not isinstance(entry, Mapping):
        raise StreamUnavailableError("Stream payload track is malformed.")
    src = entry.get("src")
    title = entry.get("title")
    if not isinstance(src, str) or not isinstance(title, str):
        raise StreamUnavailableError("Stream payload track is missing src or title.")
    artist = entry.get("artist")
    artwork = entry.get("artworkUrl")
    return Track(
        id=str(entry.get("id") or src),
        title=title,
        artist=artist if isinstance(artist, str) and artist else None,
        src=src,
        artwork_url=artwork if isinstance(artwork, str) and artwork else None,
        mime_type=str(entry.get("mimeType") or ""),
    )


class StreamClient:
    """Fetches embed data from the media service; one request per call, no retry."""

    def __init__(
        self,
        base_url: str,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        timeout: float = DEFAULT_TIMEOUT_S,
    ) -> None:
        self._base_url = base_url.rstrip("/") + "/"
        self._client = httpx.AsyncClient(
            base_url=self._base_url, transport=transport, timeout=timeout
        )

    async def __aenter__(self) -> StreamClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    def resolve_url(self, path: str) -> str:
        """Resolve a payload-relative URL (track src, artwork) to an absolute one."""
        return str(httpx.URL(self._base_url).join(path))

    async def fetch_stream(self, slug: str) -> EmbedStream:
        try:
            response = await self._client.get(f"api/embed/{slug}/stream")
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            logger.warning("Stream request for '%s' failed: %s", slug, exc)
            raise StreamUnavailableError(str(exc)) from exc
        except ValueError as exc:
            raise StreamUnavailableError("Stream payload is not valid JSON.") from exc
        return parse_stream_payload(data)

    async def fetch_presets(self) -> PresetCatalog:
        """Load the preset catalog; any failure yields an empty catalog."""
        try:
            response = await self._client.get(PRESETS_PATH.lstrip("/"))
            response.raise_for_status()
            entries = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Visualizer presets unavailable: %s", exc)
            return PresetCatalog()
        return PresetCatalog.from_entries(entries)
