"""Tests for the SQLite library store."""

from __future__ import annotations

import asyncio
import random
import sqlite3

import pytest

from ux_embed.services.library_store import (
    POS_STEP,
    LibraryNotFoundError,
    LibraryStore,
    LibraryValidationError,
    generate_slug,
)


def _run(coro):
    return asyncio.run(coro)


def _store(tmp_path) -> LibraryStore:
    store = LibraryStore(tmp_path / "library.sqlite")
    _run(store.initialize())
    return store


def test_initialize_creates_tables_and_wal(tmp_path) -> None:
    store = _store(tmp_path)
    conn = sqlite3.connect(store.db_path)
    try:
        tables = {
            row[0]
            for row in conn.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        journal_mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
    finally:
        conn.close()
    assert {"playlists", "assets", "endpoints"} <= tables
    assert journal_mode.lower() == "wal"


def test_initialize_is_idempotent(tmp_path) -> None:
    store = _store(tmp_path)
    _run(store.create_playlist("Launch", playlist_id="p1"))
    _run(store.initialize())
    assert _run(store.get_playlist("p1")) is not None


def test_create_playlist_validates_input(tmp_path) -> None:
    store = _store(tmp_path)
    with pytest.raises(LibraryValidationError):
        _run(store.create_playlist("   "))
    with pytest.raises(LibraryValidationError):
        _run(store.create_playlist("Clips", "podcast"))

    playlist = _run(store.create_playlist("  Launch  ", "video"))
    assert playlist.name == "Launch"
    assert playlist.type == "video"
    assert _run(store.get_playlist(playlist.id)) == playlist
    assert _run(store.get_playlist("missing")) is None


def test_assets_keep_insertion_order_and_inherit_type(tmp_path) -> None:
    store = _store(tmp_path)
    _run(store.create_playlist("Launch", "music", playlist_id="p1"))
    first = _run(
        store.add_asset("p1", filename="intro.mp3", mime_type="audio/mpeg")
    )
    second = _run(
        store.add_asset(
            "p1",
            filename="theme.mp3",
            mime_type="audio/mpeg",
            title="Theme",
            artist="  ",
            status="processing",
            artwork_filename="theme.png",
        )
    )

    assets = _run(store.list_assets("p1"))
    assert [asset.id for asset in assets] == [first.id, second.id]
    assert first.title == "intro"
    assert first.type == "music"
    assert second.artist is None
    assert second.status == "processing"
    assert second.artwork_filename == "theme.png"

    conn = sqlite3.connect(store.db_path)
    try:
        keys = [
            row[0]
            for row in conn.execute(
                "SELECT pos_key FROM assets WHERE playlist_id = 'p1' ORDER BY pos_key"
            )
        ]
    finally:
        conn.close()
    assert keys == [POS_STEP, 2 * POS_STEP]


def test_list_assets_filters_by_playlist(tmp_path) -> None:
    store = _store(tmp_path)
    _run(store.create_playlist("A", playlist_id="p1"))
    _run(store.create_playlist("B", playlist_id="p2"))
    _run(store.add_asset("p1", filename="a.mp3", mime_type="audio/mpeg"))
    _run(store.add_asset("p2", filename="b.mp3", mime_type="audio/mpeg"))

    assert [a.filename for a in _run(store.list_assets("p2"))] == ["b.mp3"]
    assert len(_run(store.list_assets())) == 2


def test_add_asset_rejects_unknown_playlist_and_status(tmp_path) -> None:
    store = _store(tmp_path)
    _run(store.create_playlist("Launch", playlist_id="p1"))
    with pytest.raises(LibraryNotFoundError):
        _run(store.add_asset("nope", filename="a.mp3", mime_type="audio/mpeg"))
    with pytest.raises(LibraryValidationError):
        _run(
            store.add_asset(
                "p1", filename="a.mp3", mime_type="audio/mpeg", status="queued"
            )
        )


def test_set_asset_status(tmp_path) -> None:
    store = _store(tmp_path)
    _run(store.create_playlist("Launch", playlist_id="p1"))
    asset = _run(
        store.add_asset(
            "p1", filename="a.mp3", mime_type="audio/mpeg", status="processing"
        )
    )
    _run(store.set_asset_status(asset.id, "ready"))
    assert _run(store.list_assets("p1"))[0].status == "ready"
    with pytest.raises(LibraryNotFoundError):
        _run(store.set_asset_status("missing", "ready"))
    with pytest.raises(LibraryValidationError):
        _run(store.set_asset_status(asset.id, "done"))


def test_create_endpoint_generates_nine_digit_slug(tmp_path) -> None:
    store = _store(tmp_path)
    endpoint = _run(store.create_endpoint("Homepage hero"))
    assert len(endpoint.slug) == 9
    assert endpoint.slug.isdigit()
    assert not endpoint.slug.startswith("0")
    assert endpoint.status == "pending"
    assert endpoint.player_variant == "medium"
    assert endpoint.playlist_id is None
    assert endpoint.last_sync is None


def test_create_endpoint_rejects_duplicate_slug(tmp_path) -> None:
    store = _store(tmp_path)
    _run(store.create_endpoint("One", slug="abc123"))
    with pytest.raises(LibraryValidationError, match="abc123"):
        _run(store.create_endpoint("Two", slug="abc123"))


def test_create_endpoint_normalizes_variant_and_keeps_visualizer(tmp_path) -> None:
    store = _store(tmp_path)
    _run(store.create_playlist("Launch", playlist_id="p1"))
    endpoint = _run(
        store.create_endpoint(
            "Hero",
            playlist_id="p1",
            player_variant="LARGE ",
            visualizer={"mode": "radial-halo", "randomizeIntervalSeconds": 45},
            slug="hero",
        )
    )
    assert endpoint.player_variant == "large"
    found = _run(store.find_endpoint_by_slug("hero"))
    assert found == endpoint
    assert found.visualizer == {"mode": "radial-halo", "randomizeIntervalSeconds": 45}
    assert _run(store.find_endpoint_by_slug("other")) is None


def test_create_endpoint_unknown_variant_falls_back(tmp_path) -> None:
    store = _store(tmp_path)
    endpoint = _run(store.create_endpoint("Hero", player_variant="jumbo"))
    assert endpoint.player_variant == "medium"


def test_create_endpoint_requires_existing_playlist(tmp_path) -> None:
    store = _store(tmp_path)
    with pytest.raises(LibraryNotFoundError):
        _run(store.create_endpoint("Hero", playlist_id="missing"))


def test_update_endpoint_operational_stamps_last_sync(tmp_path) -> None:
    store = _store(tmp_path)
    _run(store.create_playlist("Launch", playlist_id="p1"))
    endpoint = _run(store.create_endpoint("Hero", endpoint_id="e1"))

    updated = _run(store.update_endpoint("e1", status="operational", playlist_id="p1"))
    assert updated.status == "operational"
    assert updated.playlist_id == "p1"
    assert updated.last_sync is not None
    assert updated.last_sync.endswith("Z")
    assert updated.slug == endpoint.slug

    degraded = _run(store.update_endpoint("e1", status="degraded"))
    assert degraded.last_sync == updated.last_sync
    assert degraded.playlist_id == "p1"


def test_update_endpoint_can_unassign_and_clear_visualizer(tmp_path) -> None:
    store = _store(tmp_path)
    _run(store.create_playlist("Launch", playlist_id="p1"))
    _run(
        store.create_endpoint(
            "Hero", playlist_id="p1", visualizer={"mode": "random"}, endpoint_id="e1"
        )
    )
    updated = _run(store.update_endpoint("e1", playlist_id=None, visualizer=None))
    assert updated.playlist_id is None
    assert updated.visualizer is None


def test_update_endpoint_validation(tmp_path) -> None:
    store = _store(tmp_path)
    _run(store.create_endpoint("Hero", endpoint_id="e1"))
    with pytest.raises(LibraryValidationError):
        _run(store.update_endpoint("e1", status="archived"))
    with pytest.raises(LibraryNotFoundError):
        _run(store.update_endpoint("e1", playlist_id="missing"))
    with pytest.raises(LibraryNotFoundError):
        _run(store.update_endpoint("nope", name="Renamed"))


def test_list_endpoints_in_creation_order(tmp_path) -> None:
    store = _store(tmp_path)
    _run(store.create_endpoint("First", slug="first"))
    _run(store.create_endpoint("Second", slug="second"))
    assert [e.slug for e in _run(store.list_endpoints())] == ["first", "second"]


def test_malformed_visualizer_json_is_ignored(tmp_path, caplog) -> None:
    store = _store(tmp_path)
    _run(store.create_endpoint("Hero", slug="hero"))
    conn = sqlite3.connect(store.db_path)
    try:
        with conn:
            conn.execute(
                "UPDATE endpoints SET visualizer_json = '{not json' WHERE slug = 'hero'"
            )
    finally:
        conn.close()
    caplog.set_level("WARNING")
    assert _run(store.find_endpoint_by_slug("hero")).visualizer is None
    assert any("malformed visualizer" in r.getMessage() for r in caplog.records)


def test_generate_slug_skips_existing() -> None:
    first = generate_slug(set(), random.Random(7))
    second = generate_slug({first}, random.Random(7))
    assert second != first
    assert len(second) == 9
