"""
Release pipeline orchestration.

Sequences one run: enumerate the source (scraping list pages or reading a
sheet), resolve every item under bounded concurrency (film page, then TMDB
release dates), sort, and hand back the results. Only a failure to read the
source at all aborts the run; everything else is recorded on the affected
row and the run carries on.
"""

import asyncio
import logging
import random
from datetime import datetime
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import List
from typing import Optional
from typing import Sequence
from typing import Tuple

from list_release.concurrency import run_with_concurrency
from list_release.exceptions import FetchError
from list_release.exceptions import SourceError
from list_release.models import FilmResult
from list_release.models import PipelineRun
from list_release.models import PipelineState
from list_release.models import RunStats
from list_release.models import SourceItem
from list_release.release_dates import NON_PREMIERE_TYPES
from list_release.release_dates import dmy_sort_key
from list_release.release_dates import extract_release_dates
from list_release.scraper.film_page import film_url
from list_release.scraper.film_page import parse_film_page
from list_release.scraper.http_client import HttpClient
from list_release.settings import Settings
from list_release.sources import FilmSource
from list_release.tmdb import TMDBClient

logger = logging.getLogger(__name__)

MISSING_TMDB_ID = "tmdb_id not found on film page"
MISSING_BEARER = "TMDB bearer token missing; skipped TMDB lookup"
MISSING_DIGITAL_DATE = "no digital release date on TMDB"

SleepFunc = Callable[[float], Awaitable[Any]]


def missing_country_date(country: str) -> str:
    return f"no {country.upper()} release date on TMDB"


def result_sort_key(result: FilmResult) -> Tuple:
    """
    Sort key: earlier of the country and digital dates first, rows with
    neither date last, then by name (case-insensitive, then exact) and
    finally by source identifier so the order is total.
    """
    dates = [
        key
        for key in (dmy_sort_key(result.country_release), dmy_sort_key(result.digital_release))
        if key is not None
    ]
    date_key = (0, min(dates)) if dates else (1, (0, 0, 0))
    name = result.film_name or ""
    return date_key, name.casefold(), name, result.film_query


def sort_results(results: Sequence[FilmResult]) -> List[FilmResult]:
    return sorted(results, key=result_sort_key)


class ReleasePipeline:
    """
    Drives a single request from source enumeration to sorted output.

    Args:
        settings: Process-wide configuration (concurrency, delays, TMDB)
        http: Open HttpClient shared by every stage
        tmdb: TMDB client; built from ``settings`` when omitted
        sleep: Sleep coroutine used for politeness delays
    """

    def __init__(
        self,
        settings: Settings,
        http: HttpClient,
        tmdb: Optional[TMDBClient] = None,
        sleep: SleepFunc = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self.http = http
        self.tmdb = tmdb or TMDBClient(http, settings.tmdb_bearer, settings.tmdb_base_url)
        self._sleep = sleep
        self.state: Optional[PipelineState] = None
        self.history: List[PipelineState] = []

    def _transition(self, state: PipelineState) -> None:
        self.state = state
        self.history.append(state)
        logger.info(f"[PIPELINE] state={state.value}")

    async def run(
        self,
        source: FilmSource,
        country: str,
        exclude_premieres: bool = False,
    ) -> PipelineRun:
        """
        Run the whole pipeline for one source.

        Raises:
            SourceError: if the source could not be read (first list page or
                sheet export unreachable after retries)
        """
        stats = RunStats(started_at=datetime.now())
        source.state_listener = self._transition

        try:
            items = await source.items(self.http)
        except SourceError:
            self._transition(PipelineState.FAILED)
            raise
        finally:
            stats.pages_fetched = source.progress.pages_fetched
            stats.pages_failed = source.progress.pages_failed
        stats.items_discovered = len(items)

        self._transition(PipelineState.RESOLVING_ITEMS)
        allowed_types = NON_PREMIERE_TYPES if exclude_premieres else None

        async def resolve(item: SourceItem) -> FilmResult:
            return await self.resolve_item(item, country, allowed_types)

        def failed(item: SourceItem, exc: BaseException) -> FilmResult:
            return FilmResult(film_query=item.identifier, error=[str(exc) or type(exc).__name__])

        results = await run_with_concurrency(items, self.settings.concurrency, resolve, on_error=failed)

        self._transition(PipelineState.SORTING)
        results = sort_results(results)

        self._transition(PipelineState.DONE)
        stats.completed_at = datetime.now()
        stats.record_results(results)
        logger.info(
            f"[PIPELINE] done items={stats.items_discovered} resolved={stats.items_resolved} "
            f"with_errors={stats.items_with_errors} pages={stats.pages_fetched} "
            f"pages_failed={stats.pages_failed} took={stats.duration_seconds:.1f}s"
        )
        return PipelineRun(results=results, stats=stats)

    async def resolve_item(
        self,
        item: SourceItem,
        country: str,
        allowed_types: Optional[Sequence[int]] = None,
    ) -> FilmResult:
        """
        Build the output row for one item.

        Film page and TMDB failures, a missing TMDB id and a missing
        credential are all recorded on the row instead of raised.
        """
        result = FilmResult(film_query=item.identifier, film_name=item.name, tmdb_id=item.tmdb_id)

        if item.needs_detail_lookup:
            await self._lookup_film_page(item, result)

        if result.tmdb_id is None:
            result.add_error(MISSING_TMDB_ID)
        elif not self.tmdb.configured:
            result.add_error(MISSING_BEARER)
        else:
            await self._lookup_release_dates(result, country, allowed_types)

        await self._sleep(random.uniform(self.settings.item_delay_min, self.settings.item_delay_max))
        return result

    async def _lookup_film_page(self, item: SourceItem, result: FilmResult) -> None:
        url = film_url(self.settings.letterboxd_base_url, item.slug)
        try:
            html = await self.http.fetch_text(url)
        except FetchError as e:
            message = f"failed fetching film page for {item.slug}: {e}"
            logger.warning(f"[FILM] {message}")
            result.add_error(message)
            return

        page = parse_film_page(html)
        if result.film_name is None:
            result.film_name = page.title
        if result.tmdb_id is None:
            result.tmdb_id = page.tmdb_id

    async def _lookup_release_dates(
        self,
        result: FilmResult,
        country: str,
        allowed_types: Optional[Sequence[int]],
    ) -> None:
        try:
            payload = await self.tmdb.fetch_release_dates(result.tmdb_id)
        except (FetchError, ValueError) as e:
            message = f"TMDB error for id {result.tmdb_id}: {e}"
            logger.warning(f"[TMDB] {message}")
            result.add_error(message)
            return

        result.apply_dates(extract_release_dates(payload, country, allowed_types))
        if result.country_release is None:
            result.add_error(missing_country_date(country))
        if result.digital_release is None:
            result.add_error(MISSING_DIGITAL_DATE)
