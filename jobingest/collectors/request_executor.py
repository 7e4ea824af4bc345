from __future__ import annotations

import logging
import random
import time
from collections.abc import Callable, Mapping

import httpx

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENTS = [
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36",
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 (KHTML, like Gecko) Version/17.1 Safari/605.1.15",
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64; rv:121.0) Gecko/20100101 Firefox/121.0",
]

BROWSER_HEADERS = {
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "DNT": "1",
    "Upgrade-Insecure-Requests": "1",
    "Sec-Fetch-Dest": "document",
    "Sec-Fetch-Mode": "navigate",
    "Sec-Fetch-Site": "none",
    "Sec-Fetch-User": "?1",
    "Cache-Control": "max-age=0",
}

MAX_SESSION_REQUESTS = 100
MAX_SESSION_AGE_SECONDS = 30 * 60


class ScrapeError(Exception):
    """Base class for failures while scraping a source."""


class TransientNetworkError(ScrapeError):
    """Connection reset, DNS failure or timeout; safe to retry."""


class HttpStatusError(ScrapeError):
    def __init__(self, status: int, status_text: str, url: str = "") -> None:
        super().__init__(f"HTTP {status}: {status_text}")
        self.status = status
        self.status_text = status_text
        self.url = url


class RequestExecutor:
    """Browser-like GET client; rotates its session after a request or age budget."""

    def __init__(
        self,
        user_agents: list[str] | None = None,
        timeout: float = 30.0,
        extra_headers: Mapping[str, str] | None = None,
        transport: httpx.BaseTransport | None = None,
        clock: Callable[[], float] = time.monotonic,
        rng: random.Random | None = None,
    ) -> None:
        self.user_agents = list(user_agents or DEFAULT_USER_AGENTS)
        self.timeout = timeout
        self.extra_headers = dict(extra_headers or {})
        self._transport = transport
        self._clock = clock
        self._rng = rng or random.Random()
        self.user_agent = self._rng.choice(self.user_agents)
        self.session_started = self._clock()
        self.request_count = 0
        self._client = self._build_client()

    def fetch(self, url: str) -> httpx.Response:
        if self._should_rotate():
            self.rotate_session()
        self.request_count += 1
        try:
            response = self._client.get(url)
        except httpx.TimeoutException as exc:
            raise TransientNetworkError(f"timeout fetching {url}: {exc}") from exc
        except httpx.TransportError as exc:
            raise TransientNetworkError(f"network error fetching {url}: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ScrapeError(f"request failed for {url}: {exc}") from exc
        if not response.is_success:
            raise HttpStatusError(response.status_code, response.reason_phrase, url)
        return response

    def rotate_session(self) -> None:
        logger.debug("rotating_session", extra={"extra_fields": {"requests": self.request_count}})
        self._client.close()
        self.user_agent = self._rng.choice(self.user_agents)
        self.session_started = self._clock()
        self.request_count = 0
        self._client = self._build_client()

    def session_info(self) -> dict[str, object]:
        return {
            "session_age_seconds": self._clock() - self.session_started,
            "request_count": self.request_count,
            "cookie_count": len(self._client.cookies),
            "user_agent": self.user_agent,
        }

    def close(self) -> None:
        self._client.close()

    def _should_rotate(self) -> bool:
        age = self._clock() - self.session_started
        return age > MAX_SESSION_AGE_SECONDS or self.request_count >= MAX_SESSION_REQUESTS

    def _build_client(self) -> httpx.Client:
        headers = {**BROWSER_HEADERS, "User-Agent": self.user_agent, **self.extra_headers}
        return httpx.Client(
            headers=headers,
            timeout=self.timeout,
            follow_redirects=True,
            transport=self._transport,
        )
