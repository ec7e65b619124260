"""Tests for src/jsgrids/enrichment.py - cached, attributed enrichment.

Covers the three sources, cache-first behaviour, repo-moved detection,
contributor estimation from the Link header, and error attribution.
"""

import pytest
from conftest import MemoryCache, ScriptedFetcher, github_repo_payload

from jsgrids.enrichment import (
    BUNDLE_SIZE,
    PACKAGE_DOWNLOADS,
    REPOSITORY_STATS,
    Enricher,
    estimate_contributors,
    last_page_from_link,
)
from jsgrids.errors import EnrichmentError, RepositoryMovedError
from jsgrids.loader import SourceRecord
from jsgrids.schema import validate_raw

REPO = "olifolkerd/tabulator"
PKG = "tabulator-tables"

INFO_URL = f"https://api.github.com/repos/{REPO}"
CONTRIB_URL = f"https://api.github.com/repos/{REPO}/contributors?per_page=100"
NPM_URL = f"https://api.npmjs.org/downloads/point/last-week/{PKG}"
BUNDLE_URL = f"https://bundlephobia.com/api/size?package={PKG}"


def _source(doc, id_="tabulator") -> SourceRecord:
    path = f"data/{id_}.yml"
    return SourceRecord(id=id_, path=path, record=validate_raw(doc, path))


def _doc(**fields):
    return {"title": "Tabulator", "description": "Tables", **fields}


def _full_responses(contributors=12):
    return {
        INFO_URL: github_repo_payload(REPO),
        CONTRIB_URL: [{"login": f"u{i}"} for i in range(contributors)],
        NPM_URL: {"downloads": 98765, "package": PKG},
        BUNDLE_URL: {"size": 412345, "gzip": 91234, "name": PKG},
    }


# -----------------------------------------------------------------------
# Link header parsing
# -----------------------------------------------------------------------


class TestLastPage:
    def test_github_link_header(self):
        header = (
            f'<{CONTRIB_URL}&page=2>; rel="next", '
            f'<{CONTRIB_URL}&page=7>; rel="last"'
        )
        assert last_page_from_link(header) == 7

    def test_no_last_relation(self):
        assert last_page_from_link(f'<{CONTRIB_URL}&page=1>; rel="prev"') is None

    def test_per_page_not_mistaken_for_page(self):
        header = '<https://api.github.com/x?per_page=100&page=4>; rel="last"'
        assert last_page_from_link(header) == 4

    def test_estimate(self):
        assert estimate_contributors(100, 3, 42) == 242


# -----------------------------------------------------------------------
# Full enrichment
# -----------------------------------------------------------------------


class TestEnrich:
    @pytest.mark.asyncio
    async def test_all_sources(self):
        fetcher = ScriptedFetcher(_full_responses())
        cache = MemoryCache()
        record = await Enricher(cache, fetcher).enrich(
            _source(_doc(githubRepo=REPO, npmPackage=PKG))
        )

        assert record.id == "tabulator"
        assert record.github.url == f"https://github.com/{REPO}"
        assert record.github.stars == 1200
        assert record.github.open_issues == 42
        assert record.github.contributors == 12
        assert record.npm.url == f"https://www.npmjs.com/package/{PKG}"
        assert record.npm.downloads == 98765
        assert record.bundlephobia.url == f"https://bundlephobia.com/result?p={PKG}"
        assert record.bundlephobia.raw_size == 412345
        assert record.bundlephobia.gzip_size == 91234

        assert sorted(cache.writes) == sorted(
            [
                f"gh-{REPO}-info",
                f"gh-{REPO}-contributors",
                f"npm-{PKG}",
                f"bundlephobia-{PKG}",
            ]
        )
        assert cache.entries[f"gh-{REPO}-info"] == github_repo_payload(REPO)
        assert cache.entries[f"gh-{REPO}-contributors"] == {"contributors": 12}

    @pytest.mark.asyncio
    async def test_no_sources_requested(self):
        fetcher = ScriptedFetcher()
        record = await Enricher(MemoryCache(), fetcher).enrich(_source(_doc()))
        assert record.github is None
        assert record.npm is None
        assert record.bundlephobia is None
        assert fetcher.calls == []

    @pytest.mark.asyncio
    async def test_warm_cache_skips_fetch(self):
        cache = MemoryCache(
            {
                f"gh-{REPO}-info": github_repo_payload(REPO, stargazers_count=5),
                f"gh-{REPO}-contributors": {"contributors": 3},
                f"npm-{PKG}": {
                    "url": f"https://www.npmjs.com/package/{PKG}",
                    "downloads": 10,
                },
                f"bundlephobia-{PKG}": {
                    "url": f"https://bundlephobia.com/result?p={PKG}",
                    "rawSize": 100,
                    "gzipSize": 40,
                },
            }
        )
        fetcher = ScriptedFetcher()
        record = await Enricher(cache, fetcher).enrich(
            _source(_doc(githubRepo=REPO, npmPackage=PKG))
        )

        assert fetcher.calls == []
        assert cache.writes == []
        assert record.github.stars == 5
        assert record.github.contributors == 3
        assert record.npm.model_dump(by_alias=True) == cache.entries[f"npm-{PKG}"]
        assert (
            record.bundlephobia.model_dump(by_alias=True)
            == cache.entries[f"bundlephobia-{PKG}"]
        )

    @pytest.mark.asyncio
    async def test_ignore_bundlephobia(self):
        fetcher = ScriptedFetcher(_full_responses())
        record = await Enricher(MemoryCache(), fetcher).enrich(
            _source(_doc(npmPackage=PKG, ignoreBundlephobia=True))
        )
        assert record.bundlephobia is None
        assert record.npm.downloads == 98765
        assert BUNDLE_URL not in fetcher.calls

    @pytest.mark.asyncio
    async def test_preserves_source_fields(self):
        fetcher = ScriptedFetcher(_full_responses())
        doc = _doc(
            npmPackage=PKG,
            frameworks={"react": "https://example.com/react"},
            features={"export": "CSV"},
        )
        record = await Enricher(MemoryCache(), fetcher).enrich(_source(doc))
        data = record.to_dict()
        assert data["frameworks"] == {"react": "https://example.com/react"}
        assert data["features"] == {"export": "CSV"}


# -----------------------------------------------------------------------
# Repository statistics
# -----------------------------------------------------------------------


class TestRepositoryStats:
    @pytest.mark.asyncio
    async def test_repo_moved(self):
        responses = _full_responses()
        responses[INFO_URL] = github_repo_payload("someone-else/tabulator")
        cache = MemoryCache()

        with pytest.raises(EnrichmentError) as exc_info:
            await Enricher(cache, ScriptedFetcher(responses)).enrich(
                _source(_doc(githubRepo=REPO))
            )

        err = exc_info.value
        assert err.source == REPOSITORY_STATS
        assert err.record_id == "tabulator"
        assert isinstance(err.cause, RepositoryMovedError)
        assert "has moved to someone-else/tabulator" in str(err)
        assert f"gh-{REPO}-info" not in cache.writes

    @pytest.mark.asyncio
    async def test_contributors_short_page(self):
        fetcher = ScriptedFetcher({CONTRIB_URL: [{}] * 37})
        assert await Enricher(MemoryCache(), fetcher).contributor_count(REPO) == 37
        assert fetcher.calls == [CONTRIB_URL]

    @pytest.mark.asyncio
    async def test_contributors_full_page_without_link(self):
        fetcher = ScriptedFetcher({CONTRIB_URL: [{}] * 100})
        assert await Enricher(MemoryCache(), fetcher).contributor_count(REPO) == 100

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "link",
        [
            f'<{CONTRIB_URL}&page=2>; rel="next"',
            '<https://api.github.com/repositories/1/contributors>; rel="last"',
        ],
    )
    async def test_contributors_full_page_unusable_link(self, link):
        # No usable last page: count what the first page returned
        fetcher = ScriptedFetcher({CONTRIB_URL: ([{}] * 100, {"link": link})})
        cache = MemoryCache()
        assert await Enricher(cache, fetcher).contributor_count(REPO) == 100
        assert fetcher.calls == [CONTRIB_URL]
        assert cache.entries[f"gh-{REPO}-contributors"] == {"contributors": 100}

    @pytest.mark.asyncio
    async def test_contributors_paginated(self):
        link = (
            f'<{CONTRIB_URL}&page=2>; rel="next", '
            f'<{CONTRIB_URL}&page=3>; rel="last"'
        )
        fetcher = ScriptedFetcher(
            {
                CONTRIB_URL: ([{}] * 100, {"link": link}),
                f"{CONTRIB_URL}&page=3": [{}] * 42,
            }
        )
        cache = MemoryCache()
        count = await Enricher(cache, fetcher).contributor_count(REPO)

        assert count == 242
        assert fetcher.calls == [CONTRIB_URL, f"{CONTRIB_URL}&page=3"]
        assert cache.entries[f"gh-{REPO}-contributors"] == {"contributors": 242}

    @pytest.mark.asyncio
    async def test_contributors_empty_repo(self):
        fetcher = ScriptedFetcher({CONTRIB_URL: None})
        assert await Enricher(MemoryCache(), fetcher).contributor_count(REPO) == 0

    @pytest.mark.asyncio
    async def test_repo_not_found(self):
        fetcher = ScriptedFetcher({CONTRIB_URL: []})
        with pytest.raises(EnrichmentError) as exc_info:
            await Enricher(MemoryCache(), fetcher).enrich(
                _source(_doc(githubRepo=REPO))
            )
        assert exc_info.value.source == REPOSITORY_STATS
        assert "404" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_unexpected_payload_shape(self):
        responses = _full_responses()
        responses[INFO_URL] = {"full_name": REPO}
        with pytest.raises(EnrichmentError, match="repository statistics"):
            await Enricher(MemoryCache(), ScriptedFetcher(responses)).enrich(
                _source(_doc(githubRepo=REPO))
            )


# -----------------------------------------------------------------------
# Package downloads and bundle size
# -----------------------------------------------------------------------


class TestPackageSources:
    @pytest.mark.asyncio
    async def test_npm_failure_attributed(self):
        responses = _full_responses()
        responses[NPM_URL] = 500
        with pytest.raises(EnrichmentError) as exc_info:
            await Enricher(MemoryCache(), ScriptedFetcher(responses)).enrich(
                _source(_doc(npmPackage=PKG, ignoreBundlephobia=True))
            )
        assert exc_info.value.source == PACKAGE_DOWNLOADS
        assert "tabulator" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_bundlephobia_error_status(self):
        responses = _full_responses()
        responses[BUNDLE_URL] = 500
        with pytest.raises(EnrichmentError) as exc_info:
            await Enricher(MemoryCache(), ScriptedFetcher(responses)).enrich(
                _source(_doc(npmPackage=PKG))
            )
        assert exc_info.value.source == BUNDLE_SIZE
        assert f"Bundlephobia API returned 500 for package {PKG}" in str(
            exc_info.value
        )

    @pytest.mark.asyncio
    async def test_npm_missing_downloads(self):
        responses = _full_responses()
        responses[NPM_URL] = {"error": "package not found"}
        with pytest.raises(EnrichmentError, match="package downloads"):
            await Enricher(MemoryCache(), ScriptedFetcher(responses)).enrich(
                _source(_doc(npmPackage=PKG, ignoreBundlephobia=True))
            )
