import pytest
from conftest import list_page_html

from list_release.exceptions import SourceError
from list_release.models import PipelineState
from list_release.sources import ListingScrapeSource
from list_release.sources import SpreadsheetSource
from list_release.sources import parse_sheet_csv
from list_release.sources import sheet_export_url


def listing_source(upstream, no_sleep, listname="favs"):
    return ListingScrapeSource("dave", listname, base_url=upstream.url(), page_delay=(0.0, 0.0), sleep=no_sleep)


@pytest.mark.asyncio
async def test_collects_slugs_across_pages_once(upstream, settings_factory, make_client, no_sleep):
    """Test that a slug repeated across pages is collected once."""
    upstream.add("/dave/list/favs/", list_page_html(["heat", "alien"], pages=3))
    upstream.add("/dave/list/favs/page/2/", list_page_html(["alien", "ran"], pages=3))
    upstream.add("/dave/list/favs/page/3/", list_page_html(["stalker", "heat"], pages=3))
    client = await make_client(settings_factory())
    source = listing_source(upstream, no_sleep)

    items = await source.items(client)

    assert [item.identifier for item in items] == ["heat", "alien", "ran", "stalker"]
    assert all(item.slug == item.identifier for item in items)
    assert all(item.needs_detail_lookup for item in items)
    assert source.progress.pages_fetched == 3
    assert source.progress.pages_failed == 0


@pytest.mark.asyncio
async def test_failed_secondary_page_is_skipped(upstream, settings_factory, make_client, no_sleep):
    """Test that a failing later page is counted and skipped."""
    upstream.add("/dave/list/favs/", list_page_html(["heat"], pages=3))
    upstream.add("/dave/list/favs/page/2/", "down", status=500)
    upstream.add("/dave/list/favs/page/3/", list_page_html(["ran"], pages=3))
    client = await make_client(settings_factory(max_retries=2))
    source = listing_source(upstream, no_sleep)

    items = await source.items(client)

    assert [item.identifier for item in items] == ["heat", "ran"]
    assert upstream.hits["/dave/list/favs/page/2/"] == 2
    assert source.progress.pages_fetched == 2
    assert source.progress.pages_failed == 1


@pytest.mark.asyncio
async def test_first_page_failure_raises(upstream, settings_factory, make_client, no_sleep):
    upstream.add("/dave/list/favs/", "blocked", status=403)
    client = await make_client(settings_factory(max_retries=2))
    source = listing_source(upstream, no_sleep)
    states = []
    source.state_listener = states.append

    with pytest.raises(SourceError) as excinfo:
        await source.items(client)

    assert "HTTP 403" in str(excinfo.value)
    assert states == [PipelineState.FETCHING_FIRST_PAGE]
    assert source.progress.pages_fetched == 0


@pytest.mark.asyncio
async def test_single_page_list_reports_states(upstream, settings_factory, make_client, no_sleep):
    upstream.add("/dave/list/favs/", list_page_html(["heat"]))
    client = await make_client(settings_factory())
    source = listing_source(upstream, no_sleep)
    states = []
    source.state_listener = states.append

    items = await source.items(client)

    assert [item.slug for item in items] == ["heat"]
    assert states == [
        PipelineState.FETCHING_FIRST_PAGE,
        PipelineState.COUNTING_PAGES,
        PipelineState.FETCHING_REMAINING_PAGES,
    ]
    assert len(upstream.requests) == 1


def test_sheet_export_url():
    assert sheet_export_url("https://docs.google.com/spreadsheets/d/abc_123-X/edit#gid=42") == \
        "https://docs.google.com/spreadsheets/d/abc_123-X/export?format=csv&gid=42"
    assert sheet_export_url("https://docs.google.com/spreadsheets/d/abc/edit?usp=sharing") == \
        "https://docs.google.com/spreadsheets/d/abc/export?format=csv"
    assert sheet_export_url("https://example.com/films.csv") == "https://example.com/films.csv"


def test_parse_sheet_csv_with_header():
    text = "Title,TMDB ID,Slug\nHeat,949,heat\nAlien,348,\n,,\nNo id,,\nHeat again,949,heat\n"
    items = parse_sheet_csv(text)

    assert [(i.identifier, i.name, i.tmdb_id, i.slug) for i in items] == [
        ("heat", "Heat", 949, "heat"),
        ("348", "Alien", 348, None),
    ]
    assert not items[0].needs_detail_lookup
    assert not items[1].needs_detail_lookup


def test_parse_sheet_csv_without_header():
    items = parse_sheet_csv("603,The Matrix\n 78 ,Blade Runner\nnot-a-number,Nope\n")
    assert [(i.identifier, i.tmdb_id, i.name) for i in items] == [
        ("603", 603, "The Matrix"),
        ("78", 78, "Blade Runner"),
    ]


def test_parse_sheet_csv_slug_only_rows_need_lookup():
    items = parse_sheet_csv("letterboxd\nthe-thing\n")
    assert len(items) == 1
    assert items[0].slug == "the-thing"
    assert items[0].needs_detail_lookup


def test_parse_sheet_csv_empty():
    assert parse_sheet_csv("") == []
    assert parse_sheet_csv("\n\n") == []


@pytest.mark.asyncio
async def test_spreadsheet_source_reads_export(upstream, settings_factory, make_client):
    upstream.add("/films.csv", "id,name\n949,Heat\n348,Alien\n")
    client = await make_client(settings_factory())
    source = SpreadsheetSource(upstream.url("/films.csv"))

    items = await source.items(client)

    assert [i.tmdb_id for i in items] == [949, 348]
    assert source.progress.pages_fetched == 1
    assert "text/csv" in upstream.requests[0].headers["Accept"]


@pytest.mark.asyncio
async def test_spreadsheet_source_failure_raises(upstream, settings_factory, make_client):
    upstream.add("/films.csv", "nope", status=404)
    client = await make_client(settings_factory(max_retries=1))

    with pytest.raises(SourceError):
        await SpreadsheetSource(upstream.url("/films.csv")).items(client)


@pytest.mark.asyncio
async def test_page_count_is_capped(upstream, settings_factory, make_client, no_sleep):
    """Test that an absurd pagination label does not trigger thousands of fetches."""
    upstream.add("/dave/list/favs/", list_page_html(["heat"], pages=0).replace(
        "</body>", "<ul><li class='paginate-page'><a>99999</a></li></ul></body>"
    ))
    upstream.add("/dave/list/favs/page/2/", list_page_html(["ran"]))
    client = await make_client(settings_factory(max_retries=1))
    source = ListingScrapeSource(
        "dave", "favs", base_url=upstream.url(), page_delay=(0.0, 0.0), sleep=no_sleep, max_pages=2
    )

    items = await source.items(client)

    assert [item.slug for item in items] == ["heat", "ran"]
    assert len(upstream.requests) == 2
