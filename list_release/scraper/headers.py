"""
Header selection strategies for outbound requests.

The HTTP client asks its strategy for a header set on every attempt, so a
retry can present a different identity than the attempt that was blocked.
"""

from abc import ABC
from abc import abstractmethod
from typing import Dict
from typing import Mapping
from typing import Optional
from typing import Sequence

BROWSER_ACCEPT = "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8"


class HeaderStrategy(ABC):
    """Supplies identifying headers for a given attempt number (1-based)."""

    @abstractmethod
    def headers_for(self, attempt: int) -> Dict[str, str]:
        raise NotImplementedError


class StaticHeaders(HeaderStrategy):
    """Same headers on every attempt."""

    def __init__(self, headers: Mapping[str, str]) -> None:
        self._headers = dict(headers)

    def headers_for(self, attempt: int) -> Dict[str, str]:
        return dict(self._headers)


class RotatingHeaders(HeaderStrategy):
    """
    Browser-like headers with a User-Agent drawn round-robin from a pool.

    Attempt 1 uses the first agent, attempt 2 the second and so on,
    wrapping around when the pool is exhausted.
    """

    def __init__(
        self,
        user_agents: Sequence[str],
        accept_language: str = "en-US,en;q=0.9",
        referer: Optional[str] = None,
    ) -> None:
        if not user_agents:
            raise ValueError("user_agents must not be empty")
        self.user_agents = list(user_agents)
        self.accept_language = accept_language
        self.referer = referer

    def user_agent_for(self, attempt: int) -> str:
        return self.user_agents[(max(attempt, 1) - 1) % len(self.user_agents)]

    def headers_for(self, attempt: int) -> Dict[str, str]:
        headers = {
            "User-Agent": self.user_agent_for(attempt),
            "Accept": BROWSER_ACCEPT,
            "Accept-Language": self.accept_language,
            "Referer": self.referer,
            "Connection": "keep-alive",
        }
        return {k: v for k, v in headers.items() if v}
