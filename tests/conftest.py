"""Pytest configuration and fixtures."""

from collections.abc import Callable
from pathlib import Path
from typing import Any

import pytest
import yaml

from jsgrids.errors import FetchError
from jsgrids.fetcher import FetchResult


class MemoryCache:
    """In-memory stand-in for ``ApiCache``; records every write."""

    def __init__(self, entries: dict[str, Any] | None = None):
        self.entries: dict[str, Any] = dict(entries or {})
        self.writes: list[str] = []

    def get(self, key: str) -> Any | None:
        return self.entries.get(key)

    def set(self, key: str, payload: Any) -> None:
        self.writes.append(key)
        self.entries[key] = payload


class ScriptedFetcher:
    """Fetcher answering from a url -> response table.

    A response is either ``(data, headers)``, a bare ``data`` value, or an
    int HTTP status which raises ``FetchError`` like the real fetcher.
    """

    def __init__(self, responses: dict[str, Any] | None = None):
        self.responses: dict[str, Any] = dict(responses or {})
        self.calls: list[str] = []

    async def fetch(self, url: str) -> FetchResult:
        self.calls.append(url)
        if url not in self.responses:
            raise FetchError(url, "HTTP error: 404", status=404)
        response = self.responses[url]
        if isinstance(response, int):
            raise FetchError(url, f"HTTP error: {response}", status=response)
        if isinstance(response, tuple):
            data, headers = response
            return FetchResult(data=data, headers=headers)
        return FetchResult(data=response, headers={})


def github_repo_payload(repo: str, **overrides: Any) -> dict[str, Any]:
    """GitHub /repos/{repo} response with the fields enrichment reads."""
    payload = {
        "full_name": repo,
        "html_url": f"https://github.com/{repo}",
        "stargazers_count": 1200,
        "forks_count": 150,
        "open_issues_count": 42,
        "watchers_count": 1200,
        "subscribers_count": 60,
        "network_count": 150,
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def memory_cache():
    return MemoryCache()


@pytest.fixture
def fetcher():
    return ScriptedFetcher()


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / "data"
    path.mkdir()
    return path


@pytest.fixture
def write_source(data_dir) -> Callable[..., Path]:
    """Write a library YAML document into ``data_dir``."""

    def _write(name: str, doc: dict[str, Any] | str) -> Path:
        path = data_dir / f"{name}.yml"
        text = doc if isinstance(doc, str) else yaml.safe_dump(doc, sort_keys=False)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def sample_doc() -> dict[str, Any]:
    """A complete, valid source document."""
    return {
        "title": "Tabulator",
        "description": "Interactive tables and data grids",
        "homeUrl": "https://tabulator.info",
        "demoUrl": "https://tabulator.info/examples",
        "githubRepo": "olifolkerd/tabulator",
        "npmPackage": "tabulator-tables",
        "license": "MIT",
        "revenueModel": "Free",
        "frameworks": {
            "vanilla": True,
            "react": "https://github.com/ngduc/react-tabulator",
            "angular": False,
        },
        "features": {
            "sorting": True,
            "filtering": True,
            "export": "CSV, JSON, XLSX and PDF",
        },
    }
