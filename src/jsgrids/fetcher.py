"""Rate-limited HTTP fetching for the enrichment sources.

All outgoing requests go through one shared ``Throttle``: about ``limit``
requests may start per ``interval`` seconds, and at most ``concurrency`` may
be in flight at once, no matter which record or source issued them.
"""

import asyncio
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Protocol
from urllib.parse import urlparse

import httpx
from aiolimiter import AsyncLimiter
from loguru import logger

from jsgrids.errors import FetchError

_USER_AGENT = "jsgrids-data/1.0 (+https://jsgrids.statico.io)"


class Throttle:
    """Shared request throttle: an ``AsyncLimiter`` plus an in-flight cap.

    Use as an async context manager around each request::

        async with throttle:
            response = await client.get(url)
    """

    def __init__(self, limit: int, interval: float, concurrency: int | None = None):
        if limit < 1:
            raise ValueError("limit must be at least 1")
        if interval <= 0:
            raise ValueError("interval must be positive")
        self._limiter = AsyncLimiter(limit, interval)
        self._semaphore = asyncio.Semaphore(concurrency) if concurrency else None

    async def __aenter__(self) -> "Throttle":
        if self._semaphore is not None:
            await self._semaphore.acquire()
        try:
            if not self._limiter.has_capacity():
                logger.debug("Throttled, waiting for rate limit capacity")
            await self._limiter.acquire()
        except BaseException:
            if self._semaphore is not None:
                self._semaphore.release()
            raise
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        if self._semaphore is not None:
            self._semaphore.release()


@dataclass(frozen=True)
class FetchResult:
    """Decoded JSON body (``None`` when empty) and the response headers."""

    data: Any
    headers: Mapping[str, str]


class Fetcher(Protocol):
    async def fetch(self, url: str) -> FetchResult: ...


class HttpFetcher:
    """``Fetcher`` backed by a shared ``httpx.AsyncClient`` and ``Throttle``."""

    def __init__(
        self,
        throttle: Throttle,
        *,
        timeout: float = 30.0,
        github_token: str | None = None,
        client: httpx.AsyncClient | None = None,
    ):
        self._throttle = throttle
        self._github_token = github_token
        self._client = client or httpx.AsyncClient(
            timeout=timeout,
            follow_redirects=True,
            headers={"User-Agent": _USER_AGENT},
        )

    def _headers_for(self, url: str) -> dict[str, str]:
        """Return GitHub API headers, including auth token if available."""
        headers: dict[str, str] = {}
        if urlparse(url).hostname == "api.github.com":
            headers["Accept"] = "application/vnd.github+json"
            if self._github_token:
                headers["Authorization"] = f"token {self._github_token}"
        return headers

    async def fetch(self, url: str) -> FetchResult:
        """GET *url* and decode its JSON body.

        Raises:
            FetchError: on transport failure, a non-2xx status, or a body
                that is not JSON.
        """
        async with self._throttle:
            logger.debug(f"GET {url}")
            try:
                response = await self._client.get(url, headers=self._headers_for(url))
            except httpx.RequestError as e:
                raise FetchError(url, f"Request error: {e}") from e

        if not response.is_success:
            raise FetchError(
                url, f"HTTP error: {response.status_code}", status=response.status_code
            )

        data = None
        if response.content:
            try:
                data = response.json()
            except ValueError as e:
                raise FetchError(url, f"Invalid JSON response: {e}") from e
        return FetchResult(data=data, headers=response.headers)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def __aenter__(self) -> "HttpFetcher":
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()
