"""
TMDB API client for release-date lookups.
"""

import logging
from typing import Any
from typing import Optional

from list_release.scraper.http_client import HttpClient

logger = logging.getLogger(__name__)

TMDB_BASE_URL = "https://api.themoviedb.org/3"


class TMDBClient:
    """
    Thin client over the TMDB v3 REST API.

    Requests go through the shared ``HttpClient`` and inherit its retry,
    backoff and timeout behaviour.
    """

    def __init__(self, http: HttpClient, bearer: Optional[str], base_url: str = TMDB_BASE_URL) -> None:
        self.http = http
        self.bearer = bearer
        self.base_url = base_url.rstrip("/")

    @property
    def configured(self) -> bool:
        return bool(self.bearer)

    def release_dates_url(self, tmdb_id: int) -> str:
        return f"{self.base_url}/movie/{int(tmdb_id)}/release_dates"

    async def fetch_release_dates(self, tmdb_id: int) -> Any:
        """
        Return the raw release_dates JSON for a movie.

        Raises:
            RuntimeError: if no bearer token is configured
            FetchError: if the request keeps failing
        """
        if not self.configured:
            raise RuntimeError("TMDB bearer token is not configured")

        headers = {
            "Authorization": f"Bearer {self.bearer}",
            "Accept": "application/json",
        }
        data = await self.http.fetch_json(self.release_dates_url(tmdb_id), headers=headers)
        count = len(data.get("results") or []) if isinstance(data, dict) else 0
        logger.debug(f"[TMDB] id={tmdb_id} countries={count}")
        return data
