"""SQLite schema creation for the media library.

`PRAGMA user_version` is the source of truth for migration state. Migrations
are applied sequentially; each step is idempotent within its version.
"""

from __future__ import annotations

import sqlite3

SCHEMA_VERSION = 1

SCHEMA_V1_STATEMENTS = [
    """
    CREATE TABLE IF NOT EXISTS playlists (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        type TEXT NOT NULL CHECK (type IN ('music', 'video')),
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS assets (
        id TEXT PRIMARY KEY,
        playlist_id TEXT NOT NULL,
        pos_key INTEGER NOT NULL,
        type TEXT NOT NULL,
        title TEXT NOT NULL,
        artist TEXT,
        filename TEXT NOT NULL,
        mime_type TEXT NOT NULL,
        status TEXT NOT NULL CHECK (status IN ('ready', 'processing', 'error')),
        artwork_filename TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY(playlist_id) REFERENCES playlists(id) ON DELETE CASCADE
    )
    """,
    """
    CREATE TABLE IF NOT EXISTS endpoints (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        slug TEXT NOT NULL UNIQUE,
        playlist_id TEXT,
        status TEXT NOT NULL
            CHECK (status IN ('operational', 'degraded', 'pending', 'disabled')),
        player_variant TEXT NOT NULL DEFAULT 'medium',
        visualizer_json TEXT,
        last_sync TEXT,
        created_at TEXT NOT NULL,
        updated_at TEXT NOT NULL,
        FOREIGN KEY(playlist_id) REFERENCES playlists(id) ON DELETE SET NULL
    )
    """,
    "CREATE INDEX IF NOT EXISTS idx_assets_playlist_pos ON assets(playlist_id, pos_key)",
    "CREATE INDEX IF NOT EXISTS idx_endpoints_slug ON endpoints(slug)",
]


def create_schema(conn: sqlite3.Connection) -> None:
    """Create or migrate schema to `SCHEMA_VERSION` in the supplied connection."""
    version = conn.execute("PRAGMA user_version").fetchone()[0]
    if version > SCHEMA_VERSION:
        raise RuntimeError(
            "Unsupported media library schema version.\n"
            f"Likely cause: database version {version} is newer than supported version {SCHEMA_VERSION}.\n"
            "Next step: point UX_EMBED_DB_PATH at a compatible database or upgrade ux-embed."
        )
    if version == 0:
        for statement in SCHEMA_V1_STATEMENTS:
            conn.execute(statement)
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION}")
