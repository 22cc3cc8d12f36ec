"""
Web scraping components for the list release service.

This package contains all scraping-related functionality including:
- HTTP client with retry, backoff and relay support
- Pluggable identifying-header strategies
- List page and film page parsing
"""

from list_release.scraper.headers import RotatingHeaders
from list_release.scraper.headers import StaticHeaders
from list_release.scraper.http_client import HttpClient

__all__ = ["HttpClient", "RotatingHeaders", "StaticHeaders"]
