"""FastAPI application serving the embed stream API, embed shell and media."""

from __future__ import annotations

import logging
import re
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from fastapi.staticfiles import StaticFiles

from ux_embed.runtime_config import ServerConfig, load_server_config
from ux_embed.services.library_store import LibraryStore
from ux_embed.services.stream_resolver import StreamResolver
from ux_embed.version import __version__
from ux_embed.visualizers.presets import PresetCatalog

logger = logging.getLogger(__name__)

EMBED_SLUG_PATTERN = re.compile(r"^[A-Za-z0-9-]{3,64}$")
NOT_FOUND_BODY = {"message": "Endpoint not found."}
SERVER_ERROR_BODY = {"message": "Unexpected server error."}

_EMBED_SHELL = """<!doctype html>
<html lang="en">
  <head>
    <meta charset="utf-8" />
    <meta name="viewport" content="width=device-width, initial-scale=1" />
    <title>UX Embed Player</title>
    <link rel="stylesheet" href="/assets/styles/embed-player.css" />
  </head>
  <body>
    <main id="embed-root" data-endpoint-slug="{slug}"></main>
    <script>
      window.__UX_EMBED_SLUG__ = '{slug}';
    </script>
    <script type="module" src="/assets/scripts/embed-player.js"></script>
  </body>
</html>
"""


def render_embed_shell(slug: str) -> str:
    return _EMBED_SHELL.replace("{slug}", slug)


def create_app(
    config: ServerConfig | None = None,
    *,
    store: LibraryStore | None = None,
    catalog: PresetCatalog | None = None,
) -> FastAPI:
    """Build the embed service; stores and catalog may be injected for tests."""
    if config is None:
        config = load_server_config()
    library = store or LibraryStore(config.db_path)
    presets = catalog if catalog is not None else PresetCatalog.load(config.presets_path)
    resolver = StreamResolver(library, library, library, presets)

    @asynccontextmanager
    async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
        await library.initialize()
        config.media_root.mkdir(parents=True, exist_ok=True)
        logger.info(
            "Embed service started",
            extra={
                "event": "embed_service_started",
                "db_path": str(config.db_path),
                "media_root": str(config.media_root),
                "preset_count": len(presets),
            },
        )
        yield
        logger.info("Embed service stopped")

    application = FastAPI(title="UX Embed", version=__version__, lifespan=lifespan)
    application.state.resolver = resolver
    application.state.catalog = presets
    application.add_middleware(
        CORSMiddleware,
        allow_origins=list(config.cors_origins),
        allow_methods=["GET"],
        allow_headers=["*"],
    )

    @application.get("/api/embed/{slug}/stream")
    async def embed_stream(slug: str) -> JSONResponse:
        payload = await resolver.resolve_stream(slug)
        if payload is None:
            return JSONResponse(status_code=404, content=NOT_FOUND_BODY)
        return JSONResponse(content=payload.to_dict())

    @application.get("/embed/{slug}", response_class=HTMLResponse)
    async def embed_shell(slug: str) -> HTMLResponse:
        if not EMBED_SLUG_PATTERN.match(slug):
            return HTMLResponse(status_code=404, content="Not found")
        return HTMLResponse(content=render_embed_shell(slug))

    @application.get("/assets/data/visualizer-presets.json")
    async def visualizer_presets() -> JSONResponse:
        return JSONResponse(content=presets.to_entries())

    @application.exception_handler(Exception)
    async def _unhandled_exception(request: Request, exc: Exception) -> JSONResponse:
        logger.exception(
            "Unhandled exception",
            extra={"path": request.url.path, "method": request.method},
        )
        return JSONResponse(status_code=500, content=SERVER_ERROR_BODY)

    application.mount(
        "/media",
        StaticFiles(directory=config.media_root, check_dir=False),
        name="media",
    )
    return application
