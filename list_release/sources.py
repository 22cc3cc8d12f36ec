"""
Film sources: where the items to resolve come from.

A source enumerates ``SourceItem`` rows; the pipeline does not care whether
they were scraped from a public list or read from a spreadsheet export.
"""

import asyncio
import csv
import io
import logging
import random
import re
from abc import ABC
from abc import abstractmethod
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Dict
from typing import List
from typing import Optional
from typing import Tuple

from list_release.exceptions import FetchError
from list_release.exceptions import SourceError
from list_release.models import PipelineState
from list_release.models import SourceItem
from list_release.scraper.http_client import HttpClient
from list_release.scraper.list_page import extract_identifiers
from list_release.scraper.list_page import extract_page_count
from list_release.scraper.list_page import list_url

logger = logging.getLogger(__name__)

GOOGLE_SHEET_RE = re.compile(r"docs\.google\.com/spreadsheets/d/([A-Za-z0-9_-]+)")
GID_RE = re.compile(r"[#&?]gid=(\d+)")

ID_COLUMNS = ("tmdb_id", "tmdb", "tmdbid", "id")
NAME_COLUMNS = ("film_name", "name", "title", "film")
SLUG_COLUMNS = ("slug", "letterboxd", "letterboxd_slug", "film_query")

SleepFunc = Callable[[float], Awaitable[Any]]


class SourceProgress:
    """Counters a source fills in while enumerating."""

    def __init__(self) -> None:
        self.pages_fetched = 0
        self.pages_failed = 0


class FilmSource(ABC):
    """Produces the de-duplicated items a pipeline run resolves."""

    description = "source"

    def __init__(self) -> None:
        self.progress = SourceProgress()
        self.state_listener: Optional[Callable[[PipelineState], None]] = None

    def _enter(self, state: PipelineState) -> None:
        if self.state_listener is not None:
            self.state_listener(state)

    @abstractmethod
    async def items(self, http: HttpClient) -> List[SourceItem]:
        """
        Enumerate items.

        Raises:
            SourceError: if nothing could be read from the source at all
        """
        raise NotImplementedError


class ListingScrapeSource(FilmSource):
    """
    Scrapes every page of a public list for film slugs.

    The first page is mandatory; later pages are fetched one at a time with
    a short random pause and are skipped if they keep failing.
    """

    description = "list first page"

    def __init__(
        self,
        username: str,
        listname: str,
        base_url: str = "https://letterboxd.com",
        page_delay: Tuple[float, float] = (0.15, 0.35),
        sleep: SleepFunc = asyncio.sleep,
        max_pages: int = 200,
    ) -> None:
        super().__init__()
        self.username = username
        self.listname = listname
        self.base_url = base_url
        self.page_delay = page_delay
        self.max_pages = max_pages
        self._sleep = sleep

    def page_url(self, page: int) -> str:
        return list_url(self.base_url, self.username, self.listname, page)

    async def items(self, http: HttpClient) -> List[SourceItem]:
        self._enter(PipelineState.FETCHING_FIRST_PAGE)
        first_url = self.page_url(1)
        try:
            first_html = await http.fetch_text(first_url)
        except FetchError as e:
            logger.error(f"[LIST] failed fetching first page {first_url}: {e}")
            raise SourceError(str(e)) from e
        self.progress.pages_fetched += 1

        self._enter(PipelineState.COUNTING_PAGES)
        page_count = extract_page_count(first_html)
        if page_count > self.max_pages:
            logger.warning(f"[LIST] pagination claims {page_count} pages, fetching the first {self.max_pages}")
            page_count = self.max_pages
        logger.info(f"[LIST] {self.username}/{self.listname} pages={page_count}")

        # dict keeps first-seen order and collapses slugs repeated across pages
        slugs: Dict[str, None] = dict.fromkeys(extract_identifiers(first_html))

        self._enter(PipelineState.FETCHING_REMAINING_PAGES)
        for page in range(2, page_count + 1):
            url = self.page_url(page)
            try:
                html = await http.fetch_text(url)
            except FetchError as e:
                self.progress.pages_failed += 1
                logger.warning(f"[LIST] page {page} fetch failed: {e}")
                continue
            self.progress.pages_fetched += 1
            for slug in extract_identifiers(html):
                slugs.setdefault(slug, None)
            await self._sleep(random.uniform(*self.page_delay))

        logger.info(f"[LIST] collected slugs={len(slugs)}")
        return [SourceItem(identifier=slug, slug=slug) for slug in slugs]


def sheet_export_url(url: str) -> str:
    """
    Turn a Google Sheets share/edit URL into its CSV export URL.

    Other URLs are assumed to already point at CSV and are returned unchanged.
    """
    match = GOOGLE_SHEET_RE.search(url)
    if not match:
        return url
    export = f"https://docs.google.com/spreadsheets/d/{match.group(1)}/export?format=csv"
    gid = GID_RE.search(url)
    if gid:
        export += f"&gid={gid.group(1)}"
    return export


def _parse_int(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    match = re.match(r"\s*(\d+)", value)
    return int(match.group(1)) if match else None


def _column(header: List[str], candidates: Tuple[str, ...]) -> Optional[int]:
    for name in candidates:
        if name in header:
            return header.index(name)
    return None


def parse_sheet_csv(text: str) -> List[SourceItem]:
    """
    Parse a sheet export into items.

    A header row naming id/name/slug columns is honoured; otherwise the first
    column is the TMDB id and the second the film name. Rows with neither an
    id nor a slug are skipped, and repeated identifiers keep the first row.
    """
    rows = [row for row in csv.reader(io.StringIO(text or "")) if any(cell.strip() for cell in row)]
    if not rows:
        return []

    header = [cell.strip().lower().replace(" ", "_") for cell in rows[0]]
    id_col = _column(header, ID_COLUMNS)
    name_col = _column(header, NAME_COLUMNS)
    slug_col = _column(header, SLUG_COLUMNS)

    if id_col is None and name_col is None and slug_col is None:
        id_col, name_col = 0, 1
        body = rows
    else:
        body = rows[1:]

    def cell(row: List[str], col: Optional[int]) -> Optional[str]:
        if col is None or col >= len(row):
            return None
        value = row[col].strip()
        return value or None

    items: Dict[str, SourceItem] = {}
    for row in body:
        tmdb_id = _parse_int(cell(row, id_col))
        slug = cell(row, slug_col)
        if tmdb_id is None and slug is None:
            logger.debug(f"[SHEET] skipping row without id or slug: {row}")
            continue
        identifier = slug or str(tmdb_id)
        if identifier in items:
            continue
        items[identifier] = SourceItem(
            identifier=identifier,
            slug=slug,
            name=cell(row, name_col),
            tmdb_id=tmdb_id,
        )
    return list(items.values())


class SpreadsheetSource(FilmSource):
    """Reads TMDB ids (and optionally names and slugs) from a CSV export."""

    description = "sheet export"

    def __init__(self, sheet_url: str) -> None:
        super().__init__()
        self.sheet_url = sheet_url

    async def items(self, http: HttpClient) -> List[SourceItem]:
        self._enter(PipelineState.FETCHING_FIRST_PAGE)
        url = sheet_export_url(self.sheet_url)
        try:
            text = await http.fetch_text(url, headers={"Accept": "text/csv,*/*;q=0.8"})
        except FetchError as e:
            logger.error(f"[SHEET] failed fetching {url}: {e}")
            raise SourceError(str(e)) from e
        self.progress.pages_fetched += 1

        items = parse_sheet_csv(text)
        logger.info(f"[SHEET] collected rows={len(items)}")
        return items
