"""
Release-date extraction from TMDB ``/movie/{id}/release_dates`` payloads.

Picks the earliest release in one country (optionally restricted to an
allow-list of release types) and, independently, the earliest digital
release in any country. The digital scan never applies the allow-list.
"""

import re
from enum import IntEnum
from typing import Any
from typing import Iterable
from typing import Iterator
from typing import Mapping
from typing import Optional
from typing import Tuple

from list_release.models import ExtractedDates

ISO_DATE_RE = re.compile(r"(\d{4})-(\d{2})-(\d{2})")


class ReleaseType(IntEnum):
    """TMDB release type codes."""

    PREMIERE = 1
    THEATRICAL_LIMITED = 2
    THEATRICAL = 3
    DIGITAL = 4
    PHYSICAL = 5
    TV = 6

    @classmethod
    def letter(cls, code: Optional[int]) -> str:
        """Short label shown next to a date in the results table."""
        if code is None:
            return ""
        return _LETTERS.get(code, str(code))


_LETTERS = {
    ReleaseType.THEATRICAL: "T",
    ReleaseType.DIGITAL: "D",
    ReleaseType.PHYSICAL: "P",
    ReleaseType.TV: "TV",
}

# Allow-list used when premieres are excluded from the country date
NON_PREMIERE_TYPES: Tuple[int, ...] = (
    ReleaseType.THEATRICAL,
    ReleaseType.DIGITAL,
    ReleaseType.PHYSICAL,
    ReleaseType.TV,
)


def iso_date(value: Any) -> Optional[str]:
    """Return the ``YYYY-MM-DD`` part of a TMDB timestamp, or None."""
    if not isinstance(value, str):
        return None
    match = ISO_DATE_RE.search(value)
    return match.group(0) if match else None


def iso_to_dmy(value: Optional[str]) -> Optional[str]:
    """``2021-04-10T00:00:00.000Z`` -> ``10-04-2021``."""
    if not value:
        return None
    match = ISO_DATE_RE.search(value)
    if not match:
        return None
    year, month, day = match.groups()
    return f"{day}-{month}-{year}"


def dmy_sort_key(value: Optional[str]) -> Optional[Tuple[int, int, int]]:
    """``DD-MM-YYYY`` -> ``(year, month, day)``; None for absent or malformed."""
    if not value:
        return None
    parts = value.split("-")
    if len(parts) != 3:
        return None
    try:
        day, month, year = (int(p) for p in parts)
    except ValueError:
        return None
    return year, month, day


def _release_type(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _dated_events(entry: Mapping[str, Any]) -> Iterator[Tuple[str, Optional[int]]]:
    """Yield ``(iso_date, type)`` for each usable event of a country entry."""
    events = entry.get("release_dates")
    if not isinstance(events, list):
        return
    for event in events:
        if not isinstance(event, Mapping):
            continue
        date = iso_date(event.get("release_date"))
        if date is None:
            continue
        yield date, _release_type(event.get("type"))


def _country_entries(payload: Any) -> list:
    if not isinstance(payload, Mapping):
        return []
    results = payload.get("results")
    if not isinstance(results, list):
        return []
    return [r for r in results if isinstance(r, Mapping)]


def earliest_country_release(
    payload: Any,
    country: str,
    allowed_types: Optional[Iterable[int]] = None,
) -> Tuple[Optional[str], Optional[int]]:
    """
    Earliest ``(iso_date, type)`` for ``country`` or ``(None, None)``.

    Events with a non-numeric type are not subject to the allow-list.
    """
    allowed = set(allowed_types) if allowed_types is not None else None
    target = country.strip().upper()

    entry = next(
        (r for r in _country_entries(payload) if str(r.get("iso_3166_1") or "").upper() == target),
        None,
    )
    if entry is None:
        return None, None

    best_date: Optional[str] = None
    best_type: Optional[int] = None
    for date, release_type in _dated_events(entry):
        if allowed is not None and release_type is not None and release_type not in allowed:
            continue
        # ISO dates compare chronologically as strings
        if best_date is None or date < best_date:
            best_date = date
            best_type = release_type
    return best_date, best_type


def earliest_digital_release(payload: Any) -> Optional[str]:
    """Earliest digital release date across every country, or None."""
    best: Optional[str] = None
    for entry in _country_entries(payload):
        for date, release_type in _dated_events(entry):
            if release_type != ReleaseType.DIGITAL:
                continue
            if best is None or date < best:
                best = date
    return best


def extract_release_dates(
    payload: Any,
    country: str,
    allowed_types: Optional[Iterable[int]] = None,
) -> ExtractedDates:
    """
    Compute the country and digital release dates for one film.

    Args:
        payload: Raw TMDB release_dates response
        country: ISO 3166-1 alpha-2 code, matched case-insensitively
        allowed_types: Release types counted for the country date; None
            accepts every type. Never applied to the digital date.

    Returns:
        ExtractedDates with both dates in DD-MM-YYYY form
    """
    country_date, country_type = earliest_country_release(payload, country, allowed_types)
    digital_date = earliest_digital_release(payload)

    return ExtractedDates(
        country_release=iso_to_dmy(country_date),
        country_release_type=country_type if country_date else None,
        digital_release=iso_to_dmy(digital_date),
        digital_release_type=int(ReleaseType.DIGITAL) if digital_date else None,
    )
