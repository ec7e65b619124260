"""Exceptions raised by the aggregation pipeline.

Every error is unrecoverable at the point of detection. Messages always name
the source file or record and, for enrichment, the sub-procedure that failed.
"""

from pathlib import Path


class JsgridsError(Exception):
    """Base class for all pipeline errors."""


class SourceError(JsgridsError):
    """The source data directory cannot be enumerated."""


class DocumentParseError(JsgridsError):
    """A source document is not well-formed YAML."""

    def __init__(self, path: Path | str, detail: str):
        self.path = Path(path)
        self.detail = detail
        super().__init__(f"{self.path} could not be parsed: {detail}")


class RecordValidationError(JsgridsError):
    """A parsed document violates the record schema."""

    def __init__(self, source: Path | str, detail: str):
        self.source = str(source)
        self.detail = detail
        super().__init__(f"{self.source} is not valid: {detail}")


class RepositoryMovedError(JsgridsError):
    """GitHub reports a canonical name different from the declared repo."""

    def __init__(self, declared: str, actual: str):
        self.declared = declared
        self.actual = actual
        super().__init__(f"GitHub repo {declared} has moved to {actual}")


class FetchError(JsgridsError):
    """An external request failed or returned an unexpected payload."""

    def __init__(self, url: str, detail: str, status: int | None = None):
        self.url = url
        self.detail = detail
        self.status = status
        super().__init__(f"{detail} ({url})")


class EnrichmentError(JsgridsError):
    """An enrichment sub-procedure failed for one record."""

    def __init__(self, record_id: str, source: str, cause: BaseException):
        self.record_id = record_id
        self.source = source
        self.cause = cause
        super().__init__(f"Error getting {source} for {record_id}: {cause}")


class IncompleteDataError(JsgridsError):
    """Fewer library records were produced than source files found."""

    def __init__(self, expected: int, actual: int):
        self.expected = expected
        self.actual = actual
        super().__init__(
            f"Incomplete data. Parsed {expected} YAML files "
            f"but only got {actual} info objects."
        )


class AggregationFailed(JsgridsError):
    """One or more records failed while running under the collect policy."""

    def __init__(self, errors: list[BaseException], records: list):
        self.errors = errors
        self.records = records
        lines = "\n".join(f"  - {e}" for e in errors)
        super().__init__(
            f"{len(errors)} record(s) failed, {len(records)} succeeded:\n{lines}"
        )
