"""jsgrids command line entry point.

Usage:
    jsgrids aggregate [OUTPUT]   Validate, enrich and write JSON (stdout if no OUTPUT)
    jsgrids validate             Validate source documents only, no network
    jsgrids cache-stats          Show API cache statistics
    jsgrids cache-clear [KIND]   Clear the API cache (gh, npm, bundlephobia or all)
"""

import asyncio
import json
import sys
from pathlib import Path

from loguru import logger

from jsgrids.config import settings
from jsgrids.errors import JsgridsError


def _configure_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.log_level)


def _aggregate(output: str | None) -> None:
    from jsgrids.pipeline import aggregate, dump_libraries

    records = asyncio.run(aggregate(settings))
    text = dump_libraries(records)
    if output:
        Path(output).write_text(text + "\n", encoding="utf-8")
        logger.info(f"Wrote {len(records)} libraries to {output}")
    else:
        print(text)


def _validate() -> None:
    from jsgrids.pipeline import load_sources

    sources = load_sources(settings.get_data_dir())
    print(f"{len(sources)} source documents are valid.")


def _cache_stats() -> None:
    from jsgrids.cache import ApiCache

    cache = ApiCache(settings.get_cache_db_path(), ttls=settings.cache_ttls())
    try:
        print(json.dumps(cache.stats(), indent=2))
    finally:
        cache.close()


def _cache_clear(kind: str | None) -> None:
    from jsgrids.cache import ApiCache

    cache = ApiCache(settings.get_cache_db_path(), ttls=settings.cache_ttls())
    try:
        removed = cache.clear(kind)
    finally:
        cache.close()
    print(f"Removed {removed} cache entries.")


def _cli() -> None:
    """CLI dispatcher: aggregate (default), validate, cache-stats or cache-clear."""
    _configure_logging()
    command = sys.argv[1] if len(sys.argv) >= 2 else "aggregate"
    arg = sys.argv[2] if len(sys.argv) >= 3 else None

    try:
        if command == "aggregate":
            _aggregate(arg)
        elif command == "validate":
            _validate()
        elif command == "cache-stats":
            _cache_stats()
        elif command == "cache-clear":
            _cache_clear(arg)
        else:
            print(__doc__, file=sys.stderr)
            sys.exit(2)
    except JsgridsError as e:
        logger.error(str(e))
        sys.exit(1)


if __name__ == "__main__":
    _cli()
