"""Tests for endpoint stream resolution."""

from __future__ import annotations

import asyncio
import logging

import pytest

from ux_embed.services.library_store import (
    AssetRecord,
    EndpointRecord,
    LibraryStore,
    PlaylistRecord,
)
from ux_embed.services.stream_resolver import (
    StreamResolver,
    artwork_url,
    asset_to_track,
    track_source_path,
)


def _run(coro):
    return asyncio.run(coro)


class _MemoryStore:
    """Minimal in-memory store satisfying the resolver's store protocols."""

    def __init__(self) -> None:
        self.endpoints: dict[str, EndpointRecord] = {}
        self.playlists: dict[str, PlaylistRecord] = {}
        self.assets: list[AssetRecord] = []
        self.list_calls = 0

    async def find_endpoint_by_slug(self, slug: str) -> EndpointRecord | None:
        return self.endpoints.get(slug)

    async def get_playlist(self, playlist_id: str) -> PlaylistRecord | None:
        return self.playlists.get(playlist_id)

    async def list_assets(self, playlist_id: str | None = None) -> list[AssetRecord]:
        self.list_calls += 1
        return list(self.assets)


def _endpoint(status: str = "operational", playlist_id: str | None = "p1", **kw):
    values = dict(
        id="e1",
        name="Homepage hero",
        slug="abc123",
        playlist_id=playlist_id,
        status=status,
        player_variant="medium",
        visualizer=None,
        last_sync="2024-05-01T12:00:00.000Z",
    )
    values.update(kw)
    return EndpointRecord(**values)


def _asset(asset_id: str, status: str = "ready", playlist_id: str = "p1", **kw):
    values = dict(
        id=asset_id,
        playlist_id=playlist_id,
        type="music",
        title=asset_id.title(),
        artist=None,
        filename=f"{asset_id}.mp3",
        mime_type="audio/mpeg",
        status=status,
    )
    values.update(kw)
    return AssetRecord(**values)


def _memory(status: str = "operational", assets=(), **endpoint_kw) -> _MemoryStore:
    store = _MemoryStore()
    endpoint = _endpoint(status, **endpoint_kw)
    store.endpoints[endpoint.slug] = endpoint
    store.playlists["p1"] = PlaylistRecord(id="p1", name="Launch", type="music")
    store.assets = list(assets)
    return store


def _resolve(store: _MemoryStore, catalog, slug: str = "abc123"):
    return _run(StreamResolver(store, store, store, catalog).resolve_stream(slug))


def test_unknown_slug_resolves_to_none(catalog, caplog) -> None:
    caplog.set_level(logging.INFO)
    assert _resolve(_MemoryStore(), catalog, "missing") is None
    record = next(r for r in caplog.records if getattr(r, "event", "") == "stream_resolved")
    assert record.found is False


@pytest.mark.parametrize("status", ["pending", "disabled"])
def test_non_streaming_status_exposes_no_tracks(catalog, status) -> None:
    store = _memory(status, assets=[_asset("intro")])
    payload = _resolve(store, catalog)
    assert payload is not None
    assert payload.tracks == []
    assert payload.playlist == {"id": "p1", "name": "Launch", "type": "music"}
    assert payload.endpoint["status"] == status
    assert store.list_calls == 0


@pytest.mark.parametrize("status", ["operational", "degraded"])
def test_streaming_status_exposes_only_ready_tracks_in_order(catalog, status) -> None:
    store = _memory(
        status,
        assets=[_asset("first"), _asset("broken", status="error"), _asset("third")],
    )
    payload = _resolve(store, catalog)
    assert [track.id for track in payload.tracks] == ["first", "third"]


def test_processing_assets_are_hidden(catalog) -> None:
    store = _memory(assets=[_asset("wip", status="processing")])
    assert _resolve(store, catalog).tracks == []


def test_assets_from_other_playlists_are_ignored(catalog) -> None:
    store = _memory(assets=[_asset("mine"), _asset("theirs", playlist_id="p2")])
    assert [t.id for t in _resolve(store, catalog).tracks] == ["mine"]


def test_no_playlist_yields_null_playlist_and_no_tracks(catalog) -> None:
    store = _memory(playlist_id=None, assets=[_asset("intro")])
    payload = _resolve(store, catalog)
    assert payload.playlist is None
    assert payload.tracks == []
    assert payload.to_dict()["playlist"] is None


def test_missing_playlist_record_is_treated_as_unassigned(catalog) -> None:
    store = _memory(playlist_id="gone", assets=[_asset("intro")])
    payload = _resolve(store, catalog)
    assert payload.playlist is None
    assert payload.tracks == []


def test_payload_shape_and_visualizer_normalization(catalog) -> None:
    store = _memory(
        assets=[_asset("intro", artist="Crew", artwork_filename="intro.png")],
        player_variant="large",
        visualizer={"mode": "nope", "randomizeIntervalSeconds": 4},
    )
    data = _resolve(store, catalog).to_dict()
    assert data["endpoint"]["name"] == "Homepage hero"
    assert data["endpoint"]["slug"] == "abc123"
    assert data["endpoint"]["lastSync"] == "2024-05-01T12:00:00.000Z"
    assert data["endpoint"]["playerVariant"] == "large"
    visualizer = data["endpoint"]["visualizer"]
    assert visualizer == {"mode": catalog.default_id, "randomizeIntervalSeconds": 10}
    assert data["tracks"] == [
        {
            "id": "intro",
            "title": "Intro",
            "artist": "Crew",
            "src": "/media/music/p1/intro.mp3",
            "artworkUrl": "/media/artwork/p1/intro.png",
            "mimeType": "audio/mpeg",
        }
    ]


def test_track_paths() -> None:
    video = _asset("clip", type="video", filename="clip.mp4", mime_type="video/mp4")
    assert track_source_path(video) == "/media/video/p1/clip.mp4"
    assert artwork_url(video) is None
    assert asset_to_track(video).artwork_url is None


def test_resolves_against_library_store(tmp_path, catalog) -> None:
    store = LibraryStore(tmp_path / "library.sqlite")

    async def _scenario():
        await store.initialize()
        await store.create_playlist("Launch", playlist_id="p1")
        await store.add_asset(
            "p1", filename="intro.mp3", mime_type="audio/mpeg", title="Intro"
        )
        await store.add_asset(
            "p1", filename="skip.mp3", mime_type="audio/mpeg", status="error"
        )
        endpoint = await store.create_endpoint(
            "Hero", playlist_id="p1", slug="abc123"
        )
        pending = await StreamResolver(store, store, store, catalog).resolve_stream(
            "abc123"
        )
        await store.update_endpoint(endpoint.id, status="operational")
        live = await StreamResolver(store, store, store, catalog).resolve_stream(
            "abc123"
        )
        return pending, live

    pending, live = _run(_scenario())
    assert pending.tracks == []
    assert [track.title for track in live.tracks] == ["Intro"]
    assert live.endpoint["lastSync"] is not None
