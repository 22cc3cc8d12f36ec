"""
Command-line entry point.

Usage:
    # Serve the JSON API
    python -m list_release.main --mode web

    # Resolve one list and print the response JSON
    python -m list_release.main --mode run --username dave --list watchlist-2024 --country GB

    # Resolve TMDB ids from a Google Sheet
    python -m list_release.main --mode run --sheet-url https://docs.google.com/spreadsheets/d/... --country US
"""

import argparse
import asyncio
import json
import logging
import sys
from typing import List
from typing import Optional

from list_release.service import handle_request
from list_release.settings import Settings
from list_release.settings import get_settings

logger = logging.getLogger(__name__)


def setup_argument_parser() -> argparse.ArgumentParser:
    """Set up command-line argument parser."""
    parser = argparse.ArgumentParser(
        description="Earliest country and digital release dates for every film in a list",
    )
    parser.add_argument(
        "--mode",
        choices=["web", "run"],
        default="run",
        help="Serve the HTTP API or run one request and exit (default: run)",
    )

    source_group = parser.add_argument_group("source options")
    source_group.add_argument("--username", help="List owner's username")
    source_group.add_argument("--list", dest="listname", help="List slug")
    source_group.add_argument("--sheet-url", help="Google Sheets (or CSV) URL with TMDB ids")

    parser.add_argument("--country", help="ISO 3166-1 alpha-2 country code, e.g. GB")
    parser.add_argument(
        "--exclude-premieres",
        action="store_true",
        help="Ignore premiere and limited releases for the country date",
    )
    parser.add_argument(
        "--concurrency",
        type=int,
        metavar="N",
        help="Films resolved concurrently (overrides LIST_CONCURRENCY)",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    return parser


def build_settings(args: argparse.Namespace) -> Settings:
    settings = get_settings()
    updates = {}
    if args.concurrency is not None:
        updates["concurrency"] = max(args.concurrency, 1)
    if args.verbose:
        updates["log_level"] = "DEBUG"
        updates["debug_mode"] = True
    if updates:
        settings = settings.model_copy(update=updates)
    return settings


def request_payload(args: argparse.Namespace) -> dict:
    return {
        "username": args.username,
        "listname": args.listname,
        "sheetUrl": args.sheet_url,
        "country": args.country,
        "excludePremieres": args.exclude_premieres,
    }


def main(argv: Optional[List[str]] = None) -> int:
    """Main CLI entry point."""
    parser = setup_argument_parser()
    args = parser.parse_args(argv)

    settings = build_settings(args)
    settings.setup_logging()

    if args.mode == "web":
        from list_release.web import run_app

        run_app(settings)
        return 0

    try:
        status, body = asyncio.run(handle_request(request_payload(args), settings=settings))
    except KeyboardInterrupt:
        print("\nInterrupted by user", file=sys.stderr)
        return 1

    print(json.dumps(body, indent=2, ensure_ascii=False))
    return 0 if body.get("ok") else 1


def cli() -> None:
    sys.exit(main())


if __name__ == "__main__":
    cli()
