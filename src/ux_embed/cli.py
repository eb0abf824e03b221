"""Command-line interface for ux-embed."""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import os
import sys
from dataclasses import replace
from pathlib import Path

import uvicorn
from rich.console import Console
from rich.table import Table

from . import __version__
from .app import EmbedPlayerApp
from .logging_utils import setup_logging
from .paths import log_dir
from .runtime_config import ServerConfig, load_server_config, resolve_log_level
from .server.app import create_app
from .services.fake_element import FakeAudioElement
from .services.library_store import LibraryStore
from .services.stream_resolver import StreamResolver
from .ui.visualizer_panel import cell_surface_factory
from .version import build_help_epilog
from .visualizers.manager import VisualizerManager
from .visualizers.presets import PresetCatalog
from .visualizers.scheduling import ManualFrameScheduler
from .visualizers.surface import CellSurface

logger = logging.getLogger(__name__)

ELEMENT_CHOICES = ("fake", "vlc")
DEFAULT_BASE_URL = "http://127.0.0.1:4000"


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ux-embed",
        description="Media playlist embed service and terminal player.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=build_help_epilog(),
    )
    parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    parser.add_argument("--verbose", action="store_true", help="Enable verbose output")
    parser.add_argument(
        "--quiet", action="store_true", help="Only show warnings and errors"
    )
    parser.add_argument("--log-file", help="Write logs to a file path")
    subparsers = parser.add_subparsers(dest="command", required=True)

    serve = subparsers.add_parser("serve", help="Run the embed HTTP service.")
    serve.add_argument("--host", help="Bind address (overrides UX_EMBED_HOST).")
    serve.add_argument("--port", type=int, help="Port (overrides UX_EMBED_PORT).")
    serve.add_argument("--db", help="SQLite library path (overrides UX_EMBED_DB_PATH).")
    serve.add_argument(
        "--media-root", help="Media directory (overrides UX_EMBED_MEDIA_ROOT)."
    )

    resolve = subparsers.add_parser(
        "resolve", help="Print the stream payload for an endpoint slug as JSON."
    )
    resolve.add_argument("slug")
    resolve.add_argument("--db", help="SQLite library path (overrides UX_EMBED_DB_PATH).")

    subparsers.add_parser("presets", help="List the visualizer preset catalog.")

    preview = subparsers.add_parser(
        "preview", help="Render a visualizer preset from a synthetic signal."
    )
    preview.add_argument("preset", help="Preset id (see `ux-embed presets`).")
    preview.add_argument("--frames", type=int, default=30, help="Frames to render.")
    preview.add_argument("--width", type=int, default=64, help="Columns.")
    preview.add_argument("--height", type=int, default=16, help="Rows.")

    play = subparsers.add_parser("play", help="Play an endpoint in the terminal.")
    play.add_argument("slug")
    play.add_argument(
        "--base-url",
        default=DEFAULT_BASE_URL,
        help=f"Embed service URL (default {DEFAULT_BASE_URL}).",
    )
    play.add_argument(
        "--element",
        choices=ELEMENT_CHOICES,
        default="fake",
        help="Media element to play through (fake or vlc).",
    )
    play.add_argument(
        "--visualizer-fps",
        type=int,
        default=30,
        help="Visualizer render cadence (clamped to 2-60 FPS).",
    )
    return parser


def server_config_from_args(
    args: argparse.Namespace, env: dict[str, str] | None = None
) -> ServerConfig:
    """Environment settings with CLI flags layered on top."""
    config = load_server_config(os.environ if env is None else env)
    changes: dict[str, object] = {}
    if getattr(args, "host", None):
        changes["host"] = args.host
    if getattr(args, "port", None):
        changes["port"] = args.port
    if getattr(args, "db", None):
        changes["db_path"] = Path(args.db).expanduser()
    if getattr(args, "media_root", None):
        changes["media_root"] = Path(args.media_root).expanduser()
    return replace(config, **changes) if changes else config


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    try:
        level = resolve_log_level(verbose=args.verbose, quiet=args.quiet)
        setup_logging(
            log_dir=log_dir(),
            level=level,
            log_file=Path(args.log_file) if args.log_file else None,
            console=args.command in {"serve", "resolve"},
        )
        logger.info("Starting ux-embed %s", args.command)
        if args.command == "serve":
            return _serve(server_config_from_args(args))
        if args.command == "resolve":
            return asyncio.run(_resolve(server_config_from_args(args), args.slug))
        if args.command == "presets":
            return _presets(server_config_from_args(args))
        if args.command == "preview":
            return _preview(
                server_config_from_args(args),
                args.preset,
                frames=args.frames,
                width=args.width,
                height=args.height,
            )
        return _play(args)
    except Exception as exc:  # pragma: no cover - top-level safety net
        logger.exception("Unhandled error: %s", exc)
        print("Unexpected error. Re-run with --verbose for details.", file=sys.stderr)
        return 1


def _serve(config: ServerConfig) -> int:
    uvicorn.run(create_app(config), host=config.host, port=config.port, log_config=None)
    return 0


async def _resolve(config: ServerConfig, slug: str) -> int:
    store = LibraryStore(config.db_path)
    await store.initialize()
    catalog = PresetCatalog.load(config.presets_path)
    payload = await StreamResolver(store, store, store, catalog).resolve_stream(slug)
    if payload is None:
        print(f"Endpoint '{slug}' not found.", file=sys.stderr)
        return 1
    print(json.dumps(payload.to_dict(), indent=2, ensure_ascii=False))
    return 0


def _presets(config: ServerConfig) -> int:
    catalog = PresetCatalog.load(config.presets_path)
    if catalog.is_empty:
        print("Visualizer presets unavailable.", file=sys.stderr)
        return 1
    table = Table(title="Visualizer presets")
    table.add_column("ID")
    table.add_column("Type")
    table.add_column("Group")
    table.add_column("Label")
    for preset in catalog:
        table.add_row(preset.id, preset.type, preset.group, preset.label)
    Console().print(table)
    return 0


def _preview(
    config: ServerConfig, preset_id: str, *, frames: int, width: int, height: int
) -> int:
    catalog = PresetCatalog.load(config.presets_path)
    if preset_id not in catalog:
        print(f"Unknown preset '{preset_id}'.", file=sys.stderr)
        return 1
    console = Console()
    scheduler = ManualFrameScheduler()
    element = FakeAudioElement()
    manager = VisualizerManager(
        catalog,
        element,
        scheduler=scheduler,
        surface_factory=cell_surface_factory,
        width=max(8, width),
        height=max(2, height) * 2,
        settings={"mode": preset_id},
    )

    async def _start() -> None:
        await element.load("synthetic://preview")
        await element.play()

    with manager:
        asyncio.run(_start())
        for _ in range(max(1, frames)):
            scheduler.run_frame()
        surface = manager.surface
        if manager.status != "active" or not isinstance(surface, CellSurface):
            print(manager.message or "Visualizer did not start.", file=sys.stderr)
            return 1
        console.print(surface.to_text())
    return 0


def _play(args: argparse.Namespace) -> int:
    app = EmbedPlayerApp(
        args.slug,
        base_url=args.base_url,
        element_name=args.element,
        visualizer_fps=max(2, min(args.visualizer_fps, 60)),
    )
    app.run()
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
