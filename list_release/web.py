"""
aiohttp web front end.

Exposes ``POST /api/list-release`` (JSON in, JSON out) and ``GET /health``.
One ``HttpClient`` session is shared by all requests for the app's lifetime.
"""

import json
import logging
from typing import Optional

from aiohttp import web

from list_release import __version__
from list_release.scraper.http_client import HttpClient
from list_release.service import handle_request
from list_release.settings import Settings
from list_release.settings import get_settings

logger = logging.getLogger(__name__)

SETTINGS_KEY = web.AppKey("settings", Settings)
HTTP_KEY = web.AppKey("http", HttpClient)


async def list_release(request: web.Request) -> web.Response:
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        return web.json_response(
            {"ok": False, "error": "request body must be JSON"},
            status=400,
        )

    status, body = await handle_request(
        payload,
        settings=request.app[SETTINGS_KEY],
        http=request.app[HTTP_KEY],
    )
    return web.json_response(body, status=status)


async def health(request: web.Request) -> web.Response:
    settings = request.app[SETTINGS_KEY]
    return web.json_response({
        "status": "ok",
        "version": __version__,
        "tmdb_configured": settings.has_tmdb_credentials,
        "concurrency": settings.concurrency,
    })


async def _http_client_ctx(app: web.Application):
    async with HttpClient(app[SETTINGS_KEY]) as client:
        app[HTTP_KEY] = client
        yield


def create_app(settings: Optional[Settings] = None) -> web.Application:
    app = web.Application()
    app[SETTINGS_KEY] = settings or get_settings()
    app.cleanup_ctx.append(_http_client_ctx)
    app.router.add_post("/api/list-release", list_release)
    app.router.add_get("/health", health)
    return app


def run_app(settings: Optional[Settings] = None) -> None:
    settings = settings or get_settings()
    logger.info(f"Starting web server on {settings.host}:{settings.port}")
    web.run_app(create_app(settings), host=settings.host, port=settings.port)
