"""SQLite-backed media library: playlists, assets and embed endpoints.

The public API is async but all DB work is synchronous and dispatched through
`run_blocking(...)` so the HTTP server and terminal player stay responsive.
Only the writes needed to stage data for stream resolution are provided.
"""

from __future__ import annotations

import json
import logging
import random
import sqlite3
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import datetime, timezone
from pathlib import Path, PurePosixPath
from typing import Any, Literal, cast

from ux_embed.db.schema import create_schema
from ux_embed.runtime_config import normalize_player_variant
from ux_embed.services.sqlite_retry import run_with_sqlite_lock_retry
from ux_embed.utils.async_utils import run_blocking

PlaylistType = Literal["music", "video"]
AssetStatus = Literal["ready", "processing", "error"]
EndpointStatus = Literal["operational", "degraded", "pending", "disabled"]

PLAYLIST_TYPES: tuple[PlaylistType, ...] = ("music", "video")
ASSET_STATUSES: tuple[AssetStatus, ...] = ("ready", "processing", "error")
ENDPOINT_STATUSES: tuple[EndpointStatus, ...] = (
    "operational",
    "degraded",
    "pending",
    "disabled",
)
POS_STEP = 10_000
_PERF_WARN_MS = 50.0
_UNSET: Any = object()
logger = logging.getLogger(__name__)


class LibraryValidationError(ValueError):
    """Rejected store input (blank names, unknown types or statuses)."""


class LibraryNotFoundError(LookupError):
    """Referenced playlist, asset or endpoint does not exist."""


@dataclass(frozen=True)
class PlaylistRecord:
    id: str
    name: str
    type: PlaylistType


@dataclass(frozen=True)
class AssetRecord:
    id: str
    playlist_id: str
    type: PlaylistType
    title: str
    artist: str | None
    filename: str
    mime_type: str
    status: AssetStatus
    artwork_filename: str | None = None


@dataclass(frozen=True)
class EndpointRecord:
    """Slug-addressed embed configuration."""

    id: str
    name: str
    slug: str
    playlist_id: str | None
    status: EndpointStatus
    player_variant: str
    visualizer: Mapping[str, Any] | None
    last_sync: str | None


def _now() -> str:
    return (
        datetime.now(timezone.utc)
        .isoformat(timespec="milliseconds")
        .replace("+00:00", "Z")
    )


def _required_text(value: str, field: str) -> str:
    text = value.strip() if isinstance(value, str) else ""
    if not text:
        raise LibraryValidationError(f"{field} is required.")
    return text


class LibraryStore:
    """SQLite-backed library store with async wrappers.

    Each async call uses a fresh SQLite connection to avoid cross-thread access.
    """

    def __init__(self, db_path: Path) -> None:
        self._db_path = Path(db_path)

    @property
    def db_path(self) -> Path:
        return self._db_path

    async def initialize(self) -> None:
        await run_blocking(self._initialize_sync)

    async def create_playlist(
        self, name: str, playlist_type: str = "music", *, playlist_id: str | None = None
    ) -> PlaylistRecord:
        return await run_blocking(
            self._create_playlist_sync, name, playlist_type, playlist_id
        )

    async def get_playlist(self, playlist_id: str) -> PlaylistRecord | None:
        return await run_blocking(self._get_playlist_sync, playlist_id)

    async def add_asset(
        self,
        playlist_id: str,
        *,
        filename: str,
        mime_type: str,
        title: str | None = None,
        artist: str | None = None,
        status: str = "ready",
        artwork_filename: str | None = None,
        asset_id: str | None = None,
    ) -> AssetRecord:
        return await run_blocking(
            self._add_asset_sync,
            playlist_id,
            filename,
            mime_type,
            title,
            artist,
            status,
            artwork_filename,
            asset_id,
        )

    async def set_asset_status(self, asset_id: str, status: str) -> None:
        await run_blocking(self._set_asset_status_sync, asset_id, status)

    async def list_assets(self, playlist_id: str | None = None) -> list[AssetRecord]:
        return await run_blocking(self._list_assets_sync, playlist_id)

    async def create_endpoint(
        self,
        name: str,
        *,
        playlist_id: str | None = None,
        player_variant: str | None = None,
        visualizer: Mapping[str, Any] | None = None,
        slug: str | None = None,
        endpoint_id: str | None = None,
    ) -> EndpointRecord:
        return await run_blocking(
            self._create_endpoint_sync,
            name,
            playlist_id,
            player_variant,
            visualizer,
            slug,
            endpoint_id,
        )

    async def update_endpoint(
        self,
        endpoint_id: str,
        *,
        name: str | None = None,
        status: str | None = None,
        playlist_id: str | None = _UNSET,
        player_variant: str | None = None,
        visualizer: Mapping[str, Any] | None = _UNSET,
    ) -> EndpointRecord:
        """Apply partial updates; pass ``playlist_id=None`` to unassign."""
        return await run_blocking(
            self._update_endpoint_sync,
            endpoint_id,
            name,
            status,
            playlist_id,
            player_variant,
            visualizer,
        )

    async def find_endpoint_by_slug(self, slug: str) -> EndpointRecord | None:
        return await run_blocking(self._find_endpoint_by_slug_sync, slug)

    async def list_endpoints(self) -> list[EndpointRecord]:
        return await run_blocking(self._list_endpoints_sync)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path, timeout=30)
        conn.row_factory = sqlite3.Row
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("PRAGMA foreign_keys=ON")
        conn.execute("PRAGMA synchronous=NORMAL")
        return conn

    def _initialize_sync(self) -> None:
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            create_schema(conn)
            journal_mode = conn.execute("PRAGMA journal_mode").fetchone()[0]
            logger.info(
                "Media library ready at %s (journal_mode=%s)",
                self._db_path,
                journal_mode,
            )

    def _create_playlist_sync(
        self, name: str, playlist_type: str, playlist_id: str | None
    ) -> PlaylistRecord:
        clean_name = _required_text(name, "Playlist name")
        if playlist_type not in PLAYLIST_TYPES:
            raise LibraryValidationError('Playlist type must be "music" or "video".')
        record = PlaylistRecord(
            id=playlist_id or str(uuid.uuid4()),
            name=clean_name,
            type=cast(PlaylistType, playlist_type),
        )
        timestamp = _now()

        def _op() -> None:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT INTO playlists (id, name, type, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?)
                    """,
                    (record.id, record.name, record.type, timestamp, timestamp),
                )

        run_with_sqlite_lock_retry(_op, op_name="library.create_playlist")
        return record

    def _get_playlist_sync(self, playlist_id: str) -> PlaylistRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT id, name, type FROM playlists WHERE id = ?", (playlist_id,)
            ).fetchone()
        if row is None:
            return None
        return PlaylistRecord(id=row["id"], name=row["name"], type=row["type"])

    def _add_asset_sync(
        self,
        playlist_id: str,
        filename: str,
        mime_type: str,
        title: str | None,
        artist: str | None,
        status: str,
        artwork_filename: str | None,
        asset_id: str | None,
    ) -> AssetRecord:
        clean_filename = _required_text(filename, "Asset filename")
        if status not in ASSET_STATUSES:
            raise LibraryValidationError(f"Unknown asset status '{status}'.")
        playlist = self._get_playlist_sync(playlist_id)
        if playlist is None:
            raise LibraryNotFoundError("Playlist not found.")
        record = AssetRecord(
            id=asset_id or str(uuid.uuid4()),
            playlist_id=playlist.id,
            type=playlist.type,
            title=(title or "").strip() or PurePosixPath(clean_filename).stem,
            artist=(artist or "").strip() or None,
            filename=clean_filename,
            mime_type=_required_text(mime_type, "Asset MIME type"),
            status=cast(AssetStatus, status),
            artwork_filename=artwork_filename or None,
        )
        timestamp = _now()

        def _op() -> None:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT MAX(pos_key) FROM assets WHERE playlist_id = ?",
                    (playlist.id,),
                ).fetchone()
                pos_key = (row[0] or 0) + POS_STEP
                conn.execute(
                    """
                    INSERT INTO assets (
                        id, playlist_id, pos_key, type, title, artist, filename,
                        mime_type, status, artwork_filename, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        record.playlist_id,
                        pos_key,
                        record.type,
                        record.title,
                        record.artist,
                        record.filename,
                        record.mime_type,
                        record.status,
                        record.artwork_filename,
                        timestamp,
                        timestamp,
                    ),
                )

        run_with_sqlite_lock_retry(_op, op_name="library.add_asset")
        return record

    def _set_asset_status_sync(self, asset_id: str, status: str) -> None:
        if status not in ASSET_STATUSES:
            raise LibraryValidationError(f"Unknown asset status '{status}'.")

        def _op() -> int:
            with self._connect() as conn:
                cursor = conn.execute(
                    "UPDATE assets SET status = ?, updated_at = ? WHERE id = ?",
                    (status, _now(), asset_id),
                )
                return cursor.rowcount

        if run_with_sqlite_lock_retry(_op, op_name="library.set_asset_status") == 0:
            raise LibraryNotFoundError("Asset not found.")

    def _list_assets_sync(self, playlist_id: str | None) -> list[AssetRecord]:
        start = time.perf_counter()
        query = """
            SELECT id, playlist_id, type, title, artist, filename, mime_type,
                   status, artwork_filename
            FROM assets
        """
        params: tuple[str, ...] = ()
        if playlist_id is not None:
            query += " WHERE playlist_id = ?"
            params = (playlist_id,)
        query += " ORDER BY playlist_id, pos_key, rowid"
        with self._connect() as conn:
            rows = conn.execute(query, params).fetchall()
        result = [
            AssetRecord(
                id=row["id"],
                playlist_id=row["playlist_id"],
                type=row["type"],
                title=row["title"],
                artist=row["artist"],
                filename=row["filename"],
                mime_type=row["mime_type"],
                status=row["status"],
                artwork_filename=row["artwork_filename"],
            )
            for row in rows
        ]
        _log_slow_db_op(
            "list_assets", start=start, playlist_id=playlist_id, rows=len(result)
        )
        return result

    def _create_endpoint_sync(
        self,
        name: str,
        playlist_id: str | None,
        player_variant: str | None,
        visualizer: Mapping[str, Any] | None,
        slug: str | None,
        endpoint_id: str | None,
    ) -> EndpointRecord:
        clean_name = _required_text(name, "Endpoint name")
        if playlist_id is not None and self._get_playlist_sync(playlist_id) is None:
            raise LibraryNotFoundError("Playlist not found.")
        timestamp = _now()

        def _op() -> EndpointRecord:
            with self._connect() as conn:
                existing = {
                    row["slug"] for row in conn.execute("SELECT slug FROM endpoints")
                }
                if slug is not None and slug in existing:
                    raise LibraryValidationError(f"Slug '{slug}' is already in use.")
                record = EndpointRecord(
                    id=endpoint_id or str(uuid.uuid4()),
                    name=clean_name,
                    slug=slug or generate_slug(existing),
                    playlist_id=playlist_id,
                    status="pending",
                    player_variant=normalize_player_variant(player_variant),
                    visualizer=dict(visualizer) if visualizer is not None else None,
                    last_sync=None,
                )
                conn.execute(
                    """
                    INSERT INTO endpoints (
                        id, name, slug, playlist_id, status, player_variant,
                        visualizer_json, last_sync, created_at, updated_at
                    )
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        record.id,
                        record.name,
                        record.slug,
                        record.playlist_id,
                        record.status,
                        record.player_variant,
                        _dump_visualizer(record.visualizer),
                        record.last_sync,
                        timestamp,
                        timestamp,
                    ),
                )
                return record

        return run_with_sqlite_lock_retry(_op, op_name="library.create_endpoint")

    def _update_endpoint_sync(
        self,
        endpoint_id: str,
        name: str | None,
        status: str | None,
        playlist_id: str | None,
        player_variant: str | None,
        visualizer: Mapping[str, Any] | None,
    ) -> EndpointRecord:
        assignments: dict[str, Any] = {}
        if name is not None:
            assignments["name"] = _required_text(name, "Endpoint name")
        if status is not None:
            if status not in ENDPOINT_STATUSES:
                raise LibraryValidationError(f"Unknown endpoint status '{status}'.")
            assignments["status"] = status
            if status == "operational":
                assignments["last_sync"] = _now()
        if playlist_id is not _UNSET:
            if playlist_id is not None and self._get_playlist_sync(playlist_id) is None:
                raise LibraryNotFoundError("Playlist not found.")
            assignments["playlist_id"] = playlist_id
        if player_variant is not None:
            assignments["player_variant"] = normalize_player_variant(player_variant)
        if visualizer is not _UNSET:
            assignments["visualizer_json"] = _dump_visualizer(visualizer)
        assignments["updated_at"] = _now()
        columns = ", ".join(f"{column} = ?" for column in assignments)

        def _op() -> sqlite3.Row | None:
            with self._connect() as conn:
                conn.execute(
                    f"UPDATE endpoints SET {columns} WHERE id = ?",
                    (*assignments.values(), endpoint_id),
                )
                return conn.execute(
                    "SELECT * FROM endpoints WHERE id = ?", (endpoint_id,)
                ).fetchone()

        row = run_with_sqlite_lock_retry(_op, op_name="library.update_endpoint")
        if row is None:
            raise LibraryNotFoundError("Endpoint not found.")
        return _endpoint_from_row(row)

    def _find_endpoint_by_slug_sync(self, slug: str) -> EndpointRecord | None:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM endpoints WHERE slug = ?", (slug,)
            ).fetchone()
        return None if row is None else _endpoint_from_row(row)

    def _list_endpoints_sync(self) -> list[EndpointRecord]:
        with self._connect() as conn:
            rows = conn.execute("SELECT * FROM endpoints ORDER BY created_at, rowid")
            return [_endpoint_from_row(row) for row in rows]


def generate_slug(existing: set[str], rng: random.Random | None = None) -> str:
    """Return a 9-digit numeric slug not present in ``existing``."""
    rng = rng or random.Random()
    while True:
        candidate = str(rng.randrange(100_000_000, 1_000_000_000))
        if candidate not in existing:
            return candidate


def _dump_visualizer(value: Mapping[str, Any] | None) -> str | None:
    if value is None:
        return None
    return json.dumps(dict(value), separators=(",", ":"))


def _endpoint_from_row(row: sqlite3.Row) -> EndpointRecord:
    visualizer: Mapping[str, Any] | None = None
    raw = row["visualizer_json"]
    if raw:
        try:
            decoded = json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed visualizer settings for %s", row["slug"])
        else:
            visualizer = decoded if isinstance(decoded, dict) else None
    return EndpointRecord(
        id=row["id"],
        name=row["name"],
        slug=row["slug"],
        playlist_id=row["playlist_id"],
        status=row["status"],
        player_variant=normalize_player_variant(row["player_variant"]),
        visualizer=visualizer,
        last_sync=row["last_sync"],
    )


def _log_slow_db_op(op: str, *, start: float, **context: object) -> None:
    elapsed_ms = (time.perf_counter() - start) * 1000.0
    if elapsed_ms < _PERF_WARN_MS:
        return
    logger.info(
        "LibraryStore operation exceeded perf threshold",
        extra={
            "event": "library_store_slow_query",
            "operation": op,
            "elapsed_ms": round(elapsed_ms, 2),
            **context,
        },
    )
