"""Aggregate pipeline: load every source document and enrich it.

``get_libraries`` is the core entry point and takes its collaborators as
arguments. ``aggregate`` wires the real ones (SQLite cache, throttled httpx
fetcher) from settings.
"""

import asyncio
import json
from collections.abc import Coroutine
from enum import Enum
from pathlib import Path
from typing import Any

from loguru import logger

from jsgrids.cache import ApiCache
from jsgrids.config import Settings, settings
from jsgrids.enrichment import Enricher
from jsgrids.errors import AggregationFailed, IncompleteDataError
from jsgrids.fetcher import HttpFetcher, Throttle
from jsgrids.loader import SourceRecord, list_source_paths, load_source
from jsgrids.schema import LibraryRecord


class FailurePolicy(str, Enum):
    """What to do when a record fails.

    FAIL_FAST: the first error aborts the run.
    COLLECT: every record runs to completion, then all errors are reported
        together in one ``AggregationFailed``.
    """

    FAIL_FAST = "fail-fast"
    COLLECT = "collect"


def load_sources(data_dir: Path) -> list[SourceRecord]:
    """Parse and validate every source document, without enrichment."""
    return [load_source(path) for path in list_source_paths(data_dir)]


async def _run_all(
    jobs: list[Coroutine[Any, Any, LibraryRecord]], policy: FailurePolicy
) -> list[LibraryRecord]:
    """Run every record job concurrently under *policy*.

    A failing job never cancels the others; under FAIL_FAST its error is
    raised as soon as it happens while the rest keep running.
    """
    if policy is FailurePolicy.FAIL_FAST:
        return list(await asyncio.gather(*jobs))

    outcomes = await asyncio.gather(*jobs, return_exceptions=True)
    items: list[LibraryRecord] = []
    errors: list[Exception] = []
    for outcome in outcomes:
        if isinstance(outcome, LibraryRecord):
            items.append(outcome)
        elif isinstance(outcome, Exception):
            logger.warning(f"Record failed: {outcome}")
            errors.append(outcome)
        else:
            raise outcome
    if errors:
        raise AggregationFailed(errors, sorted(items, key=lambda r: r.id))
    return items


async def get_libraries(
    data_dir: Path,
    enricher: Enricher,
    policy: FailurePolicy = FailurePolicy.FAIL_FAST,
) -> list[LibraryRecord]:
    """Get all the library data, fetching from APIs or using the cache.

    Records are returned sorted by id.

    Raises:
        DocumentParseError, RecordValidationError, EnrichmentError: under
            FAIL_FAST, the first one raised by any record.
        AggregationFailed: under COLLECT, if any record failed.
        IncompleteDataError: if fewer records than source files came back.
    """
    paths = list_source_paths(data_dir)
    logger.info(f"Aggregating {len(paths)} libraries from {data_dir}")

    async def _process(path: Path) -> LibraryRecord:
        return await enricher.enrich(load_source(path))

    items = await _run_all([_process(path) for path in paths], policy)

    # Just a quick sanity check here.
    if len(items) != len(paths):
        raise IncompleteDataError(len(paths), len(items))

    logger.info(f"Aggregated {len(items)} libraries")
    return sorted(items, key=lambda r: r.id)


async def aggregate(config: Settings = settings) -> list[LibraryRecord]:
    """Run ``get_libraries`` with the cache and fetcher described by *config*."""
    cache = ApiCache(config.get_cache_db_path(), ttls=config.cache_ttls())
    throttle = Throttle(
        config.request_limit,
        config.request_interval,
        concurrency=config.request_concurrency,
    )
    try:
        async with HttpFetcher(
            throttle,
            timeout=config.request_timeout,
            github_token=config.resolve_github_token(),
        ) as fetcher:
            return await get_libraries(
                config.get_data_dir(),
                Enricher(cache, fetcher),
                FailurePolicy(config.failure_policy),
            )
    finally:
        cache.close()


def dump_libraries(records: list[LibraryRecord]) -> str:
    """Serialize records as a JSON array using the YAML field names."""
    return json.dumps([r.to_dict() for r in records], ensure_ascii=False, indent=2)
