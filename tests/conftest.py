import asyncio
import json
from collections import defaultdict
from typing import Any
from typing import Callable
from typing import Dict
from typing import List
from typing import Tuple
from typing import Union

import pytest
import pytest_asyncio
from aiohttp import web
from aiohttp.test_utils import TestServer

from list_release.scraper.http_client import HttpClient
from list_release.settings import Settings

Route = Union[Tuple[int, str], Callable[[web.Request], Any]]


class FakeUpstream:
    """
    Local stand-in for the list site and TMDB.

    ``routes`` maps a path to ``(status, body)`` or to an async handler;
    unknown paths return 404. Every request is recorded.
    """

    def __init__(self) -> None:
        self.routes: Dict[str, Route] = {}
        self.requests: List[web.Request] = []
        self.hits: Dict[str, int] = defaultdict(int)
        self.server: TestServer = None

    def add(self, path: str, body: Any, status: int = 200) -> None:
        if not isinstance(body, str):
            body = json.dumps(body)
        self.routes[path] = (status, body)

    def url(self, path: str = "") -> str:
        """Absolute URL for ``path``; the bare root comes back without a trailing slash."""
        url = str(self.server.make_url(path or "/"))
        return url if path else url.rstrip("/")

    async def handle(self, request: web.Request) -> web.StreamResponse:
        self.requests.append(request)
        self.hits[request.path] += 1
        route = self.routes.get(request.path)
        if route is None:
            return web.Response(status=404, text="not found")
        if callable(route):
            return await route(request)
        status, body = route
        content_type = "application/json" if body[:1] in "{[" else "text/html"
        return web.Response(status=status, text=body, content_type=content_type)


@pytest_asyncio.fixture
async def upstream():
    fake = FakeUpstream()
    app = web.Application()
    app.router.add_route("GET", "/{tail:.*}", fake.handle)
    fake.server = TestServer(app)
    await fake.server.start_server()
    yield fake
    await fake.server.close()


class SleepRecorder:
    """Drop-in for asyncio.sleep that records delays and returns at once."""

    def __init__(self) -> None:
        self.delays: List[float] = []

    async def __call__(self, delay: float) -> None:
        self.delays.append(delay)
        await asyncio.sleep(0)


@pytest.fixture
def no_sleep() -> SleepRecorder:
    return SleepRecorder()


def make_settings(**overrides: Any) -> Settings:
    values = dict(
        tmdb_bearer="test-token",
        concurrency=2,
        request_timeout=2.0,
        max_retries=3,
        backoff_base=0.0,
        backoff_cap=0.0,
        backoff_jitter=0.0,
        page_delay_min=0.0,
        page_delay_max=0.0,
        item_delay_min=0.0,
        item_delay_max=0.0,
        relay_url=None,
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings_factory():
    return make_settings


@pytest_asyncio.fixture
async def make_client(no_sleep):
    """Factory for open HttpClients that share the no-op sleep."""
    clients: List[HttpClient] = []

    async def factory(settings: Settings, **kwargs: Any) -> HttpClient:
        kwargs.setdefault("sleep", no_sleep)
        client = HttpClient(settings, **kwargs)
        await client.open()
        clients.append(client)
        return client

    yield factory
    for client in clients:
        await client.close()


def list_page_html(slugs: List[str], pages: int = 0) -> str:
    posters = "\n".join(
        f'<li class="poster-container"><div class="react-component" data-item-slug="{slug}"></div></li>'
        for slug in slugs
    )
    pagination = ""
    if pages:
        items = "".join(f'<li class="paginate-page"><a href="page/{n}/">{n}</a></li>' for n in range(1, pages + 1))
        pagination = f'<div class="paginate-pages"><ul>{items}</ul></div>'
    return f"<html><body><ul class='poster-list'>{posters}</ul>{pagination}</body></html>"


def film_page_html(title: str, tmdb_id: Any = None) -> str:
    body = f'<body class="film" data-tmdb-id="{tmdb_id}">' if tmdb_id is not None else "<body>"
    return (
        f'<html><head><meta property="og:title" content="{title}"></head>'
        f"{body}<h1 class='headline-1'>{title}</h1></body></html>"
    )


def release_dates_payload(entries: Dict[str, List[Tuple[int, str]]]) -> dict:
    return {
        "id": 1,
        "results": [
            {
                "iso_3166_1": country,
                "release_dates": [
                    {"certification": "", "note": "", "release_date": f"{date}T00:00:00.000Z", "type": rtype}
                    for rtype, date in events
                ],
            }
            for country, events in entries.items()
        ],
    }
