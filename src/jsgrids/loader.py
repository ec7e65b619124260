"""Source record loading: one YAML document per library in the data dir."""

from pathlib import Path
from typing import Any, NamedTuple

import yaml
from loguru import logger

from jsgrids.errors import DocumentParseError, SourceError
from jsgrids.schema import RawRecord, validate_raw

SOURCE_SUFFIX = ".yml"


class SourceRecord(NamedTuple):
    id: str
    path: Path
    record: RawRecord


def list_source_paths(data_dir: Path) -> list[Path]:
    """Return every ``*.yml`` file directly inside *data_dir*, sorted by name."""
    if not data_dir.is_dir():
        raise SourceError(f"Data directory {data_dir} does not exist")
    paths = sorted(
        p for p in data_dir.iterdir() if p.suffix == SOURCE_SUFFIX and p.is_file()
    )
    logger.debug(f"Found {len(paths)} source documents in {data_dir}")
    return paths


def record_id(path: Path) -> str:
    """Record id is the file name without its extension."""
    return path.name.removesuffix(SOURCE_SUFFIX)


def parse_document(path: Path) -> dict[str, Any]:
    """Parse one YAML document into a mapping.

    Raises:
        DocumentParseError: if the file cannot be read, is not valid YAML, or
            its top level is not a mapping.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise DocumentParseError(path, str(e)) from e

    try:
        obj = yaml.safe_load(text)
    except yaml.YAMLError as e:
        raise DocumentParseError(path, str(e)) from e

    if not isinstance(obj, dict):
        raise DocumentParseError(
            path, f"expected a mapping at top level, got {type(obj).__name__}"
        )
    return obj


def load_source(path: Path) -> SourceRecord:
    """Parse and validate one source document."""
    obj = parse_document(path)
    return SourceRecord(id=record_id(path), path=path, record=validate_raw(obj, path))
