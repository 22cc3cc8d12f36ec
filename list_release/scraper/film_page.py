"""
Parsing of film detail pages: display title and TMDB id.
"""

import logging
import re
from typing import Optional
from urllib.parse import quote

from bs4 import BeautifulSoup

from list_release.models import FilmPage

logger = logging.getLogger(__name__)

# "Heat (1995)" -> "Heat"
TRAILING_PAREN_RE = re.compile(r"\s*\([^)]*\)\s*$")


def film_url(base_url: str, slug: str) -> str:
    return f"{base_url.rstrip('/')}/film/{quote(slug, safe='')}/"


def _catalogue_id(soup: BeautifulSoup) -> Optional[int]:
    el = soup.select_one("[data-tmdb-id]")
    if el is None:
        return None
    raw = (el.get("data-tmdb-id") or "").strip()
    match = re.match(r"\d+", raw)
    if not match:
        return None
    return int(match.group(0))


def _title(soup: BeautifulSoup) -> Optional[str]:
    title = ""
    for selector in ('meta[property="og:title"]', 'meta[name="og:title"]'):
        meta = soup.select_one(selector)
        if meta is not None and (meta.get("content") or "").strip():
            title = meta["content"].strip()
            break

    if not title:
        for selector in ('h1[itemprop="name"]', "h1", "h2"):
            heading = soup.select_one(selector)
            if heading is not None:
                title = heading.get_text(strip=True)
                if title:
                    break

    title = TRAILING_PAREN_RE.sub("", title).strip()
    return title or None


def extract_catalogue_id(html: str) -> Optional[int]:
    """Return the TMDB id from the first ``data-tmdb-id`` attribute, if any."""
    return _catalogue_id(BeautifulSoup(html or "", "html.parser"))


def extract_title(html: str) -> Optional[str]:
    """
    Return the film's display title.

    Prefers the ``og:title`` meta value, falling back to the first heading.
    A trailing parenthesized suffix such as the release year is removed.
    """
    return _title(BeautifulSoup(html or "", "html.parser"))


def parse_film_page(html: str) -> FilmPage:
    """Extract title and TMDB id with a single parse of the page."""
    soup = BeautifulSoup(html or "", "html.parser")
    page = FilmPage(title=_title(soup), tmdb_id=_catalogue_id(soup))
    logger.debug(f"[FILM] parsed title={page.title!r} tmdb_id={page.tmdb_id}")
    return page
