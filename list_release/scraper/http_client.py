"""
Resilient async HTTP client.

Wraps an aiohttp session with a per-attempt timeout, retry with exponential
backoff and jitter, pluggable identifying headers and optional routing
through a forwarding relay.
"""

import asyncio
import json
import logging
import random
from typing import Any
from typing import Awaitable
from typing import Callable
from typing import Mapping
from typing import NamedTuple
from typing import Optional
from urllib.parse import quote

import aiohttp
from multidict import CIMultiDict

from list_release.exceptions import FetchError
from list_release.scraper.headers import HeaderStrategy
from list_release.scraper.headers import RotatingHeaders
from list_release.settings import Settings
from list_release.settings import get_settings

logger = logging.getLogger(__name__)

# Statuses upstream hosts use to signal blocking or rate limiting
BLOCKING_STATUSES = frozenset({403, 429})
SNIPPET_LENGTH = 200

SleepFunc = Callable[[float], Awaitable[Any]]


class FetchResponse(NamedTuple):
    url: str
    status: int
    text: str

    def json(self) -> Any:
        return json.loads(self.text)


class HttpClient:
    """
    Async HTTP client with retry, backoff and identity rotation.

    Use as an async context manager; the underlying ``aiohttp.ClientSession``
    is created on entry and closed on exit unless one was passed in.
    """

    def __init__(
        self,
        settings: Optional[Settings] = None,
        header_strategy: Optional[HeaderStrategy] = None,
        session: Optional[aiohttp.ClientSession] = None,
        sleep: SleepFunc = asyncio.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self.settings = settings or get_settings()
        self.header_strategy = header_strategy or RotatingHeaders(
            self.settings.user_agents,
            accept_language=self.settings.accept_language,
            referer=self.settings.letterboxd_base_url.rstrip("/") + "/",
        )
        self._session = session
        self._owns_session = session is None
        self._sleep = sleep
        self._random = rng or random.Random()

    async def __aenter__(self) -> "HttpClient":
        await self.open()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()

    async def open(self) -> None:
        if self._session is None:
            self._session = aiohttp.ClientSession()
            self._owns_session = True

    async def close(self) -> None:
        """Close the session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    @property
    def session(self) -> aiohttp.ClientSession:
        if self._session is None:
            raise RuntimeError("HttpClient is not open; use 'async with HttpClient(...)'")
        return self._session

    def target_url(self, url: str) -> str:
        """Rewrite ``url`` to go through the relay when one is configured."""
        relay = self.settings.relay_url
        if not relay:
            return url
        separator = "&" if "?" in relay else "?"
        return f"{relay}{separator}url={quote(url, safe='')}"

    def backoff_delay(self, attempt: int) -> float:
        """Delay before the retry that follows failed ``attempt`` (1-based)."""
        base = min(self.settings.backoff_cap, self.settings.backoff_base * (2 ** attempt))
        return base + self._random.uniform(0, self.settings.backoff_jitter)

    async def fetch(
        self,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        max_attempts: Optional[int] = None,
    ) -> FetchResponse:
        """
        GET ``url`` and return its body, retrying on failure.

        Timeouts, connection errors and non-2xx statuses all count as failed
        attempts. Caller headers take precedence over the strategy's.

        Raises:
            FetchError: after ``max_attempts`` failed attempts; chained to the
                last transport exception when there was one
            ValueError: if ``max_attempts`` is below 1
        """
        attempts = self.settings.max_retries if max_attempts is None else max_attempts
        if attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {attempts}")
        target = self.target_url(url)
        timeout = aiohttp.ClientTimeout(total=self.settings.request_timeout)

        last_status: Optional[int] = None
        last_snippet: Optional[str] = None
        last_reason: Optional[str] = None
        last_exc: Optional[BaseException] = None

        for attempt in range(1, attempts + 1):
            # header names compare case-insensitively; caller values replace the strategy's
            request_headers = CIMultiDict(self.header_strategy.headers_for(attempt))
            if headers:
                request_headers.update(headers)

            try:
                async with self.session.get(target, headers=request_headers, timeout=timeout) as resp:
                    status = resp.status
                    text = await resp.text(errors="replace")
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_exc = e
                last_status = None
                last_snippet = None
                last_reason = f"{type(e).__name__}: {e}" if str(e) else type(e).__name__
                logger.warning(f"[FETCH] try={attempt}/{attempts} error={last_reason} url={url}")
            else:
                if 200 <= status < 300:
                    logger.debug(f"[FETCH] try={attempt} status={status} url={url}")
                    return FetchResponse(url=url, status=status, text=text)

                last_exc = None
                last_status = status
                last_snippet = text[:SNIPPET_LENGTH]
                last_reason = None
                if status in BLOCKING_STATUSES:
                    logger.warning(
                        f"[FETCH] try={attempt}/{attempts} status={status} (blocked/rate limited) "
                        f"url={url} ua={request_headers.get('User-Agent', '-')}"
                    )
                else:
                    logger.warning(f"[FETCH] try={attempt}/{attempts} status={status} url={url}")

            if attempt < attempts:
                delay = self.backoff_delay(attempt)
                logger.debug(f"[FETCH] sleeping {delay:.2f}s before retry url={url}")
                await self._sleep(delay)

        logger.error(f"[FETCH] giving up after {attempts} attempts url={url}")
        error = FetchError(url, attempts, status=last_status, snippet=last_snippet, reason=last_reason)
        if last_exc is not None:
            raise error from last_exc
        raise error

    async def fetch_text(self, url: str, headers: Optional[Mapping[str, str]] = None) -> str:
        response = await self.fetch(url, headers=headers)
        return response.text

    async def fetch_json(self, url: str, headers: Optional[Mapping[str, str]] = None) -> Any:
        response = await self.fetch(url, headers=headers)
        return response.json()
