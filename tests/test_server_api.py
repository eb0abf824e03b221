"""HTTP-level tests for the embed service."""

from __future__ import annotations

import asyncio

import httpx

from ux_embed.runtime_config import ServerConfig
from ux_embed.server.app import NOT_FOUND_BODY, SERVER_ERROR_BODY, create_app
from ux_embed.services.library_store import LibraryStore


def _run(coro):
    return asyncio.run(coro)


def _config(tmp_path) -> ServerConfig:
    return ServerConfig(
        db_path=tmp_path / "library.sqlite", media_root=tmp_path / "media"
    )


async def _seed(store: LibraryStore, *, status: str = "operational") -> None:
    await store.initialize()
    await store.create_playlist("Launch", playlist_id="p1")
    await store.add_asset(
        "p1",
        filename="intro.mp3",
        mime_type="audio/mpeg",
        title="Intro",
        asset_id="a1",
    )
    await store.add_asset(
        "p1",
        filename="draft.mp3",
        mime_type="audio/mpeg",
        status="processing",
        asset_id="a2",
    )
    endpoint = await store.create_endpoint(
        "Homepage hero", playlist_id="p1", slug="abc123"
    )
    await store.update_endpoint(endpoint.id, status=status)


async def _get(app, path: str, **client_kwargs) -> httpx.Response:
    transport = httpx.ASGITransport(app=app, **client_kwargs)
    async with httpx.AsyncClient(
        transport=transport, base_url="http://testserver"
    ) as client:
        return await client.get(path)


def test_stream_endpoint_returns_ready_tracks(tmp_path, catalog) -> None:
    config = _config(tmp_path)
    store = LibraryStore(config.db_path)
    app = create_app(config, store=store, catalog=catalog)

    async def _scenario() -> httpx.Response:
        await _seed(store)
        return await _get(app, "/api/embed/abc123/stream")

    response = _run(_scenario())
    assert response.status_code == 200
    data = response.json()
    assert data["endpoint"]["slug"] == "abc123"
    assert data["endpoint"]["status"] == "operational"
    assert data["endpoint"]["playerVariant"] == "medium"
    assert data["playlist"] == {"id": "p1", "name": "Launch", "type": "music"}
    assert [track["title"] for track in data["tracks"]] == ["Intro"]
    assert data["tracks"][0]["src"] == "/media/music/p1/intro.mp3"


def test_pending_endpoint_streams_nothing(tmp_path, catalog) -> None:
    config = _config(tmp_path)
    store = LibraryStore(config.db_path)
    app = create_app(config, store=store, catalog=catalog)

    async def _scenario() -> httpx.Response:
        await _seed(store, status="pending")
        return await _get(app, "/api/embed/abc123/stream")

    data = _run(_scenario()).json()
    assert data["endpoint"]["status"] == "pending"
    assert data["tracks"] == []


def test_unknown_slug_returns_not_found_body(tmp_path, catalog) -> None:
    config = _config(tmp_path)
    store = LibraryStore(config.db_path)
    app = create_app(config, store=store, catalog=catalog)

    async def _scenario() -> httpx.Response:
        await store.initialize()
        return await _get(app, "/api/embed/missing/stream")

    response = _run(_scenario())
    assert response.status_code == 404
    assert response.json() == NOT_FOUND_BODY


def test_store_failure_returns_generic_error(tmp_path, catalog, caplog) -> None:
    class _BrokenStore(LibraryStore):
        async def find_endpoint_by_slug(self, slug: str):
            raise RuntimeError("disk unplugged")

    config = _config(tmp_path)
    app = create_app(config, store=_BrokenStore(config.db_path), catalog=catalog)

    response = _run(
        _get(app, "/api/embed/abc123/stream", raise_app_exceptions=False)
    )
    assert response.status_code == 500
    assert response.json() == SERVER_ERROR_BODY
    assert "disk unplugged" not in response.text


def test_embed_shell_injects_slug(tmp_path, catalog) -> None:
    app = create_app(_config(tmp_path), catalog=catalog)
    response = _run(_get(app, "/embed/abc123"))
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/html")
    assert 'data-endpoint-slug="abc123"' in response.text
    assert "window.__UX_EMBED_SLUG__ = 'abc123';" in response.text


def test_embed_shell_rejects_invalid_slug(tmp_path, catalog) -> None:
    app = create_app(_config(tmp_path), catalog=catalog)
    assert _run(_get(app, "/embed/ab")).status_code == 404
    assert _run(_get(app, "/embed/bad_slug!")).status_code == 404


def test_presets_route_serves_catalog(tmp_path, catalog) -> None:
    app = create_app(_config(tmp_path), catalog=catalog)
    response = _run(_get(app, "/assets/data/visualizer-presets.json"))
    assert response.status_code == 200
    entries = response.json()
    assert [entry["id"] for entry in entries] == [preset.id for preset in catalog]


def test_media_files_are_served_from_media_root(tmp_path, catalog) -> None:
    config = _config(tmp_path)
    track = config.media_root / "music" / "p1" / "intro.mp3"
    track.parent.mkdir(parents=True)
    track.write_bytes(b"ID3fake")
    app = create_app(config, catalog=catalog)

    response = _run(_get(app, "/media/music/p1/intro.mp3"))
    assert response.status_code == 200
    assert response.content == b"ID3fake"
    assert _run(_get(app, "/media/music/p1/other.mp3")).status_code == 404
