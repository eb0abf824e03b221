"""Runtime configuration normalization helpers.

These helpers keep CLI flag and environment interpretation deterministic
across the server, the resolver command, and the terminal player.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from .paths import db_path, media_root

logger = logging.getLogger(__name__)

PLAYER_VARIANTS = ("large", "medium", "small", "background")
DEFAULT_PLAYER_VARIANT = "medium"
DEFAULT_HOST = "0.0.0.0"
DEFAULT_PORT = 4000


def resolve_log_level(*, verbose: bool, quiet: bool) -> str:
    """Resolve effective log level from CLI flags.

    Precedence is deterministic: --quiet overrides --verbose.
    """
    if quiet:
        return "WARNING"
    if verbose:
        return "DEBUG"
    return "INFO"


def normalize_player_variant(value: object) -> str:
    """Normalize a stored/requested variant to a supported player variant."""
    if isinstance(value, str):
        normalized = value.strip().lower()
        if normalized in PLAYER_VARIANTS:
            return normalized
    return DEFAULT_PLAYER_VARIANT


@dataclass(frozen=True)
class ServerConfig:
    """Effective settings for the embed HTTP service."""

    db_path: Path
    media_root: Path
    presets_path: Path | None = None
    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    cors_origins: tuple[str, ...] = ("*",)


def load_server_config(env: Mapping[str, str] | None = None) -> ServerConfig:
    """Build server settings from ``UX_EMBED_*`` environment variables."""
    source = os.environ if env is None else env

    def _path_or(name: str) -> Path | None:
        raw = source.get(name, "").strip()
        return Path(raw).expanduser() if raw else None

    port = DEFAULT_PORT
    raw_port = source.get("UX_EMBED_PORT", "").strip()
    if raw_port:
        try:
            port = int(raw_port)
        except ValueError:
            port = -1
        if not 0 < port < 65536:
            logger.warning(
                "Invalid UX_EMBED_PORT '%s'; using %d.", raw_port, DEFAULT_PORT
            )
            port = DEFAULT_PORT

    origins = tuple(
        part.strip()
        for part in source.get("UX_EMBED_CORS_ORIGINS", "*").split(",")
        if part.strip()
    )
    return ServerConfig(
        db_path=_path_or("UX_EMBED_DB_PATH") or db_path(),
        media_root=_path_or("UX_EMBED_MEDIA_ROOT") or media_root(),
        presets_path=_path_or("UX_EMBED_PRESETS_PATH"),
        host=source.get("UX_EMBED_HOST", "").strip() or DEFAULT_HOST,
        port=port,
        cors_origins=origins or ("*",),
    )
