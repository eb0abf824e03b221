"""Endpoint stream resolution.

Decides what an embed visitor receives for a slug. The single gate
``status in {operational, degraded} and playlist assigned`` is the whole
availability model for public streaming: only then are the playlist's ready
assets exposed as tracks, in store order.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from ux_embed.services.library_store import AssetRecord, EndpointRecord, PlaylistRecord
from ux_embed.visualizers.presets import PresetCatalog
from ux_embed.visualizers.settings import normalize_visualizer_settings

logger = logging.getLogger(__name__)

STREAMING_STATUSES = frozenset({"operational", "degraded"})


class EndpointStore(Protocol):
    async def find_endpoint_by_slug(self, slug: str) -> EndpointRecord | None: ...


class PlaylistStore(Protocol):
    async def get_playlist(self, playlist_id: str) -> PlaylistRecord | None: ...


class AssetStore(Protocol):
    async def list_assets(
        self, playlist_id: str | None = None
    ) -> Sequence[AssetRecord]: ...


@dataclass(frozen=True)
class Track:
    id: str
    title: str
    artist: str | None
    src: str
    artwork_url: str | None
    mime_type: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "artist": self.artist,
            "src": self.src,
            "artworkUrl": self.artwork_url,
            "mimeType": self.mime_type,
        }


@dataclass(frozen=True)
class StreamPayload:
    """JSON contract returned by ``GET /api/embed/{slug}/stream``."""

    endpoint: dict[str, Any]
    playlist: dict[str, Any] | None
    tracks: list[Track]

    def to_dict(self) -> dict[str, Any]:
        return {
            "endpoint": dict(self.endpoint),
            "playlist": None if self.playlist is None else dict(self.playlist),
            "tracks": [track.to_dict() for track in self.tracks],
        }


def track_source_path(asset: AssetRecord) -> str:
    return f"/media/{asset.type}/{asset.playlist_id}/{asset.filename}"


def artwork_url(asset: AssetRecord) -> str | None:
    if not asset.artwork_filename:
        return None
    return f"/media/artwork/{asset.playlist_id}/{asset.artwork_filename}"


def asset_to_track(asset: AssetRecord) -> Track:
    return Track(
        id=asset.id,
        title=asset.title,
        artist=asset.artist,
        src=track_source_path(asset),
        artwork_url=artwork_url(asset),
        mime_type=asset.mime_type,
    )


class StreamResolver:
    """Resolves slugs against injected endpoint, playlist and asset stores."""

    def __init__(
        self,
        endpoints: EndpointStore,
        playlists: PlaylistStore,
        assets: AssetStore,
        catalog: PresetCatalog,
    ) -> None:
        self._endpoints = endpoints
        self._playlists = playlists
        self._assets = assets
        self._catalog = catalog

    async def resolve_stream(self, slug: str) -> StreamPayload | None:
        """Return the payload for ``slug`` or ``None`` when no endpoint matches."""
        endpoint = await self._endpoints.find_endpoint_by_slug(slug)
        if endpoint is None:
            logger.info(
                "Stream slug not found",
                extra={"event": "stream_resolved", "slug": slug, "found": False},
            )
            return None

        playlist = None
        if endpoint.playlist_id is not None:
            playlist = await self._playlists.get_playlist(endpoint.playlist_id)

        tracks: list[Track] = []
        should_stream = endpoint.status in STREAMING_STATUSES
        if should_stream and playlist is not None:
            assets = await self._assets.list_assets(playlist.id)
            tracks = [
                asset_to_track(asset)
                for asset in assets
                if asset.playlist_id == playlist.id and asset.status == "ready"
            ]

        settings = normalize_visualizer_settings(endpoint.visualizer, self._catalog)
        payload = StreamPayload(
            endpoint={
                "name": endpoint.name,
                "slug": endpoint.slug,
                "status": endpoint.status,
                "lastSync": endpoint.last_sync,
                "playerVariant": endpoint.player_variant,
                "visualizer": settings.to_dict(),
            },
            playlist=(
                None
                if playlist is None
                else {"id": playlist.id, "name": playlist.name, "type": playlist.type}
            ),
            tracks=tracks,
        )
        logger.info(
            "Stream resolved",
            extra={
                "event": "stream_resolved",
                "slug": slug,
                "found": True,
                "status": endpoint.status,
                "has_playlist": playlist is not None,
                "track_count": len(tracks),
            },
        )
        return payload
