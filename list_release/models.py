"""
Data models for the list release service.

Defines Pydantic models for source items, parsed film pages, release-date
extraction results, the per-film output row and the inbound/outbound wire
payloads, with validation and serialization in one place.
"""

from datetime import datetime
from enum import Enum
from typing import Any
from typing import Dict
from typing import List
from typing import Optional

from pydantic import BaseModel
from pydantic import ConfigDict
from pydantic import Field
from pydantic import field_validator
from pydantic import model_validator


class PipelineState(str, Enum):
    """Stages of a pipeline run, in order; FAILED is terminal."""

    FETCHING_FIRST_PAGE = "fetching_first_page"
    COUNTING_PAGES = "counting_pages"
    FETCHING_REMAINING_PAGES = "fetching_remaining_pages"
    RESOLVING_ITEMS = "resolving_items"
    SORTING = "sorting"
    DONE = "done"
    FAILED = "failed"


class SourceItem(BaseModel):
    """
    One film to resolve, as produced by an item source.

    Listing scrapes only know the slug; spreadsheet imports may already
    carry the display name and the TMDB id.
    """

    identifier: str = Field(
        ...,
        min_length=1,
        description="Source identifier (list slug, or TMDB id for sheet rows without a slug)"
    )

    slug: Optional[str] = Field(
        default=None,
        description="Film slug on the list hosting site, when known"
    )

    name: Optional[str] = Field(default=None, description="Known display name")

    tmdb_id: Optional[int] = Field(default=None, description="Known TMDB id")

    @property
    def needs_detail_lookup(self) -> bool:
        return self.slug is not None and (self.name is None or self.tmdb_id is None)


class FilmPage(BaseModel):
    """Fields extracted from a film detail page."""

    title: Optional[str] = None
    tmdb_id: Optional[int] = None


class ExtractedDates(BaseModel):
    """Earliest country and digital release dates, already in DD-MM-YYYY form."""

    country_release: Optional[str] = None
    country_release_type: Optional[int] = None
    digital_release: Optional[str] = None
    digital_release_type: Optional[int] = None


class FilmResult(BaseModel):
    """
    Represents one output row: a film from the source with its earliest
    known release dates.

    Field names match the JSON wire format consumed by the front end.
    Non-fatal problems met while resolving the film are accumulated in
    ``error`` rather than raised.
    """

    film_query: str = Field(..., description="Source identifier the row was built from")

    film_name: Optional[str] = Field(default=None, description="Resolved display name")

    tmdb_id: Optional[int] = Field(default=None, description="TMDB movie id")

    country_release: Optional[str] = Field(
        default=None,
        description="Earliest release in the requested country (DD-MM-YYYY)"
    )

    country_release_type: Optional[int] = Field(
        default=None,
        description="Release type code of the country release"
    )

    digital_release: Optional[str] = Field(
        default=None,
        description="Earliest digital release in any country (DD-MM-YYYY)"
    )

    digital_release_type: Optional[int] = Field(
        default=None,
        description="Always the digital type code when digital_release is set"
    )

    error: List[str] = Field(
        default_factory=list,
        description="Accumulated non-fatal error messages"
    )

    @property
    def has_errors(self) -> bool:
        return len(self.error) > 0

    def add_error(self, message: str) -> None:
        """Append a non-fatal error message to this row."""
        self.error.append(message)

    def apply_dates(self, dates: ExtractedDates) -> None:
        self.country_release = dates.country_release
        self.country_release_type = dates.country_release_type
        self.digital_release = dates.digital_release
        self.digital_release_type = dates.digital_release_type

    def to_wire(self) -> Dict[str, Any]:
        """Serialize for the JSON response; ``error`` is omitted when empty."""
        payload = self.model_dump(exclude={"error"})
        if self.error:
            payload["error"] = list(self.error)
        return payload


class ReleaseRequest(BaseModel):
    """
    Inbound request body.

    Either ``username`` + ``listname`` (scrape a public list) or
    ``sheet_url`` (read ids from a spreadsheet export) must be given,
    together with a two-letter ``country`` code.
    """

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    username: Optional[str] = None
    listname: Optional[str] = None
    sheet_url: Optional[str] = Field(default=None, alias="sheetUrl")
    country: str = Field(..., min_length=2, max_length=2)
    exclude_premieres: bool = Field(default=False, alias="excludePremieres")

    @field_validator("username", "listname", "sheet_url", mode="before")
    @classmethod
    def blank_to_none(cls, v: Any) -> Any:
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("exclude_premieres", mode="before")
    @classmethod
    def null_means_false(cls, v: Any) -> Any:
        return False if v is None else v

    @field_validator("country", mode="before")
    @classmethod
    def normalize_country(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip().upper()
        return v

    @field_validator("country")
    @classmethod
    def validate_country(cls, v: str) -> str:
        if not v.isalpha():
            raise ValueError(f"country must be an ISO 3166-1 alpha-2 code, got {v!r}")
        return v

    @model_validator(mode="after")
    def require_source(self) -> "ReleaseRequest":
        if self.sheet_url:
            return self
        if not self.username or not self.listname:
            raise ValueError("username and listname (or sheetUrl) are required")
        return self

    @property
    def uses_sheet(self) -> bool:
        return self.sheet_url is not None


class ReleaseResponse(BaseModel):
    """Outbound response body: ``{ok, results, error?, detail?}``."""

    ok: bool
    results: List[FilmResult] = Field(default_factory=list)
    error: Optional[str] = None
    detail: Optional[str] = None

    @classmethod
    def failure(cls, error: str, detail: Optional[str] = None) -> "ReleaseResponse":
        return cls(ok=False, error=error, detail=detail)

    def to_wire(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "ok": self.ok,
            "results": [result.to_wire() for result in self.results],
        }
        if self.error is not None:
            payload["error"] = self.error
        if self.detail is not None:
            payload["detail"] = self.detail
        return payload


class RunStats(BaseModel):
    """
    Summary of a pipeline run with counters for logging.
    """

    started_at: datetime = Field(..., description="When the run started")

    completed_at: Optional[datetime] = Field(default=None, description="When the run finished")

    pages_fetched: int = Field(default=0, ge=0, description="Listing pages retrieved")

    pages_failed: int = Field(default=0, ge=0, description="Listing pages skipped after retries")

    items_discovered: int = Field(default=0, ge=0, description="Unique items from the source")

    items_resolved: int = Field(default=0, ge=0, description="Items that got a TMDB id")

    items_with_errors: int = Field(default=0, ge=0, description="Rows carrying error messages")

    @property
    def duration_seconds(self) -> Optional[float]:
        """Calculate run duration in seconds."""
        if not self.completed_at:
            return None

        delta = self.completed_at - self.started_at
        return delta.total_seconds()

    def record_results(self, results: List[FilmResult]) -> None:
        self.items_resolved = sum(1 for r in results if r.tmdb_id is not None)
        self.items_with_errors = sum(1 for r in results if r.has_errors)


class PipelineRun(BaseModel):
    """Sorted results of one pipeline run plus its counters."""

    results: List[FilmResult] = Field(default_factory=list)
    stats: RunStats
