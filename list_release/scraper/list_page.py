"""
Parsing of public list pages.

Best-effort extraction against third-party markup: missing or malformed
elements yield empty results, never exceptions.
"""

import logging
import re
from typing import List
from urllib.parse import quote

from bs4 import BeautifulSoup

logger = logging.getLogger(__name__)


def list_url(base_url: str, username: str, listname: str, page: int = 1) -> str:
    """Build the URL of ``page`` of a user's list."""
    url = f"{base_url.rstrip('/')}/{quote(username, safe='')}/list/{quote(listname, safe='')}/"
    if page > 1:
        url += f"page/{page}/"
    return url


def extract_identifiers(html: str) -> List[str]:
    """
    Return the film slugs on a list page, de-duplicated in first-seen order.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    slugs = []
    seen = set()
    for el in soup.select("[data-item-slug]"):
        value = (el.get("data-item-slug") or "").strip()
        if not value or value in seen:
            continue
        seen.add(value)
        slugs.append(value)
    logger.debug(f"[LIST] found {len(slugs)} slugs")
    return slugs


def extract_page_count(html: str) -> int:
    """
    Return the number of pages in the list, read from the last pagination
    entry. Defaults to 1 when there is no pagination or it can't be parsed.
    """
    soup = BeautifulSoup(html or "", "html.parser")
    items = soup.select("li.paginate-page")
    if not items:
        return 1

    last = items[-1]
    link = last.find("a")
    label = (link or last).get_text(strip=True)
    match = re.match(r"\d+", label)
    if not match:
        logger.debug(f"[LIST] unparseable pagination label {label!r}, assuming 1 page")
        return 1
    return max(int(match.group(0)), 1)
