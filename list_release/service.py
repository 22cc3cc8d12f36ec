"""
Request handling boundary.

Turns an inbound JSON body into a pipeline run and the run into the
``{ok, results, error?, detail?}`` response, mapping fatal errors to HTTP
status codes. Transport framing lives in ``list_release.web``.
"""

from typing import Any
from typing import Optional
from typing import Tuple

import structlog
from pydantic import ValidationError

from list_release.exceptions import RequestValidationError
from list_release.exceptions import SourceError
from list_release.models import ReleaseRequest
from list_release.models import ReleaseResponse
from list_release.pipeline import ReleasePipeline
from list_release.scraper.http_client import HttpClient
from list_release.settings import Settings
from list_release.settings import get_settings
from list_release.sources import FilmSource
from list_release.sources import ListingScrapeSource
from list_release.sources import SpreadsheetSource

logger = structlog.get_logger(__name__)


def parse_request(payload: Any) -> ReleaseRequest:
    """
    Validate an inbound body.

    Raises:
        RequestValidationError: with a readable summary of what is wrong
    """
    if not isinstance(payload, dict):
        raise RequestValidationError("request body must be a JSON object")
    try:
        return ReleaseRequest.model_validate(payload)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'body'}: {err['msg']}" for err in e.errors()
        )
        raise RequestValidationError(problems) from e


def build_source(request: ReleaseRequest, settings: Settings) -> FilmSource:
    if request.uses_sheet:
        return SpreadsheetSource(request.sheet_url)
    return ListingScrapeSource(
        request.username,
        request.listname,
        base_url=settings.letterboxd_base_url,
        page_delay=(settings.page_delay_min, settings.page_delay_max),
        max_pages=settings.max_list_pages,
    )


async def run_request(
    request: ReleaseRequest,
    settings: Settings,
    http: HttpClient,
    source: Optional[FilmSource] = None,
) -> ReleaseResponse:
    """Run the pipeline for an already validated request."""
    source = source or build_source(request, settings)
    pipeline = ReleasePipeline(settings, http)
    run = await pipeline.run(source, request.country, exclude_premieres=request.exclude_premieres)
    return ReleaseResponse(ok=True, results=run.results)


async def handle_request(
    payload: Any,
    settings: Optional[Settings] = None,
    http: Optional[HttpClient] = None,
) -> Tuple[int, dict]:
    """
    Handle one request body end to end.

    Returns:
        ``(http_status, response_body)``: 400 for invalid input, 502 when
        the list or sheet could not be fetched, 500 for anything unexpected
    """
    settings = settings or get_settings()

    try:
        request = parse_request(payload)
    except RequestValidationError as e:
        logger.warning("request rejected", reason=str(e))
        return 400, ReleaseResponse.failure(
            "username, listname (or sheetUrl) and country are required", detail=str(e)
        ).to_wire()

    log = logger.bind(
        source="sheet" if request.uses_sheet else f"{request.username}/{request.listname}",
        country=request.country,
        exclude_premieres=request.exclude_premieres,
        concurrency=settings.concurrency,
    )
    if not settings.has_tmdb_credentials:
        log.warning("TMDB bearer token missing; TMDB lookups skipped")
    log.info("request started")

    source = build_source(request, settings)
    try:
        if http is None:
            async with HttpClient(settings) as client:
                response = await run_request(request, settings, client, source)
        else:
            response = await run_request(request, settings, http, source)
    except SourceError as e:
        log.error("source unavailable", detail=str(e))
        return 502, ReleaseResponse.failure(f"Failed fetching {source.description}", detail=str(e)).to_wire()
    except Exception as e:
        log.exception("unexpected error")
        return 500, ReleaseResponse.failure("Unexpected server error", detail=str(e)).to_wire()

    log.info("request finished", results=len(response.results))
    return 200, response.to_wire()
