"""
List release dates: earliest release dates for every film in a list.

Scrapes a public film list (or reads TMDB ids from a spreadsheet export),
resolves each film to its TMDB id, queries TMDB for release dates and
returns the films sorted by their earliest country or digital release.

Main Components:
- HttpClient: aiohttp fetcher with retry, backoff and header rotation
- Parsers: list page slugs and pagination, film page title and TMDB id
- TMDBClient / release_dates: release-date lookup and extraction
- ReleasePipeline: bounded-concurrency orchestration and sorting
- Web Server: aiohttp JSON API

Usage:
    # Run web server
    python -m list_release.main --mode web

    # Run one list
    python -m list_release.main --username dave --list favs --country GB

    # Programmatic use
    from list_release.service import handle_request

    status, body = await handle_request(
        {"username": "dave", "listname": "favs", "country": "GB"}
    )
"""

__version__ = "1.0.0"
__license__ = "MIT"

# Public API for external usage
from list_release.models import FilmResult
from list_release.models import ReleaseRequest
from list_release.models import ReleaseResponse
from list_release.pipeline import ReleasePipeline
from list_release.scraper.http_client import HttpClient
from list_release.sources import ListingScrapeSource
from list_release.sources import SpreadsheetSource

__all__ = [
    "FilmResult",
    "HttpClient",
    "ListingScrapeSource",
    "ReleasePipeline",
    "ReleaseRequest",
    "ReleaseResponse",
    "SpreadsheetSource",
]
