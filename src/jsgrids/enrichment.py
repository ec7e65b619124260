"""Enrichment: augment validated records with live statistics.

Three independent sources, each tried only when the record asks for it:

1. Repository statistics -- GitHub repo metadata + contributor count
   (when ``githubRepo`` is set)
2. Package downloads -- npm last-week download count
   (when ``npmPackage`` is set)
3. Bundle size -- Bundlephobia raw and gzip size
   (when ``npmPackage`` is set and ``ignoreBundlephobia`` is not true)

Every lookup checks the cache first and only falls back to the rate-limited
fetcher on a miss. Sources for one record, and records among themselves, run
concurrently; the fetcher's shared throttle is the only serialization.
"""

import asyncio
import re
from collections.abc import Awaitable
from typing import Any, TypeVar

from loguru import logger
from pydantic import BaseModel, ValidationError

from jsgrids.cache import CacheGateway
from jsgrids.errors import EnrichmentError, FetchError, RepositoryMovedError
from jsgrids.fetcher import Fetcher, FetchResult
from jsgrids.loader import SourceRecord
from jsgrids.schema import (
    BundleStats,
    GithubStats,
    LibraryRecord,
    NpmStats,
    describe_errors,
    validate_library,
)

GITHUB_API = "https://api.github.com"
NPM_DOWNLOADS_API = "https://api.npmjs.org/downloads/point/last-week"
BUNDLEPHOBIA_API = "https://bundlephobia.com/api/size"

CONTRIBUTORS_PAGE_SIZE = 100

# Names used in error messages
REPOSITORY_STATS = "repository statistics"
PACKAGE_DOWNLOADS = "package downloads"
BUNDLE_SIZE = "bundle size"

_PAGE_RE = re.compile(r"\bpage=(\d+)")

M = TypeVar("M", bound=BaseModel)
T = TypeVar("T")


def last_page_from_link(header: str) -> int | None:
    """Extract the ``rel="last"`` page number from a GitHub ``Link`` header."""
    for part in header.split(","):
        if 'rel="last"' in part:
            match = _PAGE_RE.search(part)
            return int(match.group(1)) if match else None
    return None


def estimate_contributors(page_size: int, last_page: int, last_page_count: int) -> int:
    """Approximate total: every page before the last is assumed full."""
    return page_size * (last_page - 1) + last_page_count


def _block(model: type[M], payload: Any, origin: str) -> M:
    """Validate a transformed payload into a statistics block."""
    try:
        return model.model_validate(payload)
    except ValidationError as e:
        raise FetchError(
            origin, f"Unexpected {model.__name__} shape: {describe_errors(e)}"
        ) from e


def _mapping(result: FetchResult, url: str) -> dict[str, Any]:
    if not isinstance(result.data, dict):
        raise FetchError(url, "Expected a JSON object in response")
    return result.data


def _entries(result: FetchResult, url: str) -> list[Any]:
    # GitHub answers 204 with no body for repositories without contributors.
    if result.data is None:
        return []
    if not isinstance(result.data, list):
        raise FetchError(url, "Expected a JSON array in response")
    return result.data


class Enricher:
    """Fills the ``github``, ``npm`` and ``bundlephobia`` blocks of records."""

    def __init__(self, cache: CacheGateway, fetcher: Fetcher):
        self._cache = cache
        self._fetcher = fetcher

    async def enrich(self, source: SourceRecord) -> LibraryRecord:
        """Run every applicable source for one record and re-validate it.

        Raises:
            EnrichmentError: naming the record and the source that failed.
            RecordValidationError: if the merged record is invalid.
        """
        record = source.record
        jobs: dict[str, Awaitable[BaseModel]] = {}
        if record.github_repo:
            jobs["github"] = self._attributed(
                source.id, REPOSITORY_STATS, self.github_stats(record.github_repo)
            )
        if record.npm_package:
            jobs["npm"] = self._attributed(
                source.id, PACKAGE_DOWNLOADS, self.npm_stats(record.npm_package)
            )
        if record.wants_bundle_size:
            jobs["bundlephobia"] = self._attributed(
                source.id, BUNDLE_SIZE, self.bundle_stats(record.npm_package)
            )

        blocks = await asyncio.gather(*jobs.values())

        merged = record.model_dump(by_alias=True, exclude_none=True)
        merged["id"] = source.id
        for name, block in zip(jobs, blocks):
            merged[name] = block.model_dump(by_alias=True)

        logger.debug(f"Enriched {source.id} with {', '.join(jobs) or 'nothing'}")
        return validate_library(merged, source.path)

    @staticmethod
    async def _attributed(record_id: str, source: str, job: Awaitable[T]) -> T:
        try:
            return await job
        except Exception as e:
            raise EnrichmentError(record_id, source, e) from e

    # --- Repository statistics ---

    async def github_stats(self, repo: str) -> GithubStats:
        info, contributors = await asyncio.gather(
            self.repo_info(repo), self.contributor_count(repo)
        )
        payload = {
            "url": info.get("html_url"),
            "stars": info.get("stargazers_count"),
            "forks": info.get("forks_count"),
            "openIssues": info.get("open_issues_count"),
            "watchers": info.get("watchers_count"),
            "subscribers": info.get("subscribers_count"),
            "network": info.get("network_count"),
            "contributors": contributors,
        }
        return _block(GithubStats, payload, f"{GITHUB_API}/repos/{repo}")

    async def repo_info(self, repo: str) -> dict[str, Any]:
        """Raw GitHub repository payload, cached under ``gh-{repo}-info``.

        Raises:
            RepositoryMovedError: if GitHub's ``full_name`` differs from
                *repo*. Nothing is cached in that case.
        """
        key = f"gh-{repo}-info"
        data = self._cache.get(key)
        if data is not None:
            return data

        url = f"{GITHUB_API}/repos/{repo}"
        data = _mapping(await self._fetcher.fetch(url), url)
        if data.get("full_name") != repo:
            raise RepositoryMovedError(repo, str(data.get("full_name")))

        self._cache.set(key, data)
        return data

    async def contributor_count(self, repo: str) -> int:
        """Contributor count, cached under ``gh-{repo}-contributors``.

        One page of ``CONTRIBUTORS_PAGE_SIZE`` entries is requested. A short
        page, or no pagination, means the count is exact. Otherwise the last
        page is fetched and the total estimated from its size.
        """
        key = f"gh-{repo}-contributors"
        stats = self._cache.get(key)
        if stats is not None:
            return stats["contributors"]

        url = f"{GITHUB_API}/repos/{repo}/contributors?per_page={CONTRIBUTORS_PAGE_SIZE}"
        first = await self._fetcher.fetch(url)
        entries = _entries(first, url)
        link = first.headers.get("link")
        last_page = last_page_from_link(link) if link else None

        if len(entries) < CONTRIBUTORS_PAGE_SIZE or last_page is None:
            count = len(entries)
        else:
            last_url = f"{url}&page={last_page}"
            last = _entries(await self._fetcher.fetch(last_url), last_url)
            count = estimate_contributors(CONTRIBUTORS_PAGE_SIZE, last_page, len(last))

        self._cache.set(key, {"contributors": count})
        return count

    # --- Package downloads ---

    async def npm_stats(self, name: str) -> NpmStats:
        key = f"npm-{name}"
        cached = self._cache.get(key)
        if cached is not None:
            return _block(NpmStats, cached, key)

        url = f"{NPM_DOWNLOADS_API}/{name}"
        data = _mapping(await self._fetcher.fetch(url), url)
        block = _block(
            NpmStats,
            {
                "url": f"https://www.npmjs.com/package/{name}",
                "downloads": data.get("downloads"),
            },
            url,
        )
        self._cache.set(key, block.model_dump(by_alias=True))
        return block

    # --- Bundle size ---

    async def bundle_stats(self, name: str) -> BundleStats:
        # Some packages break Bundlephobia's build step and always fail here.
        key = f"bundlephobia-{name}"
        cached = self._cache.get(key)
        if cached is not None:
            return _block(BundleStats, cached, key)

        url = f"{BUNDLEPHOBIA_API}?package={name}"
        try:
            result = await self._fetcher.fetch(url)
        except FetchError as e:
            if e.status is None:
                raise
            raise FetchError(
                url,
                f"Bundlephobia API returned {e.status} for package {name}",
                status=e.status,
            ) from e

        data = _mapping(result, url)
        block = _block(
            BundleStats,
            {
                "url": f"https://bundlephobia.com/result?p={name}",
                "rawSize": data.get("size"),
                "gzipSize": data.get("gzip"),
            },
            url,
        )
        self._cache.set(key, block.model_dump(by_alias=True))
        return block
