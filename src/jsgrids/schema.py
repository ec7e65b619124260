"""Record schemas: validate and type the data loaded from the YAML files.

Two shapes are defined:

- ``RawRecord``: what a YAML document in ``data/`` may contain.
- ``LibraryRecord``: a raw record plus its ``id`` and the statistics blocks
  filled in by enrichment.

Several fields accept either a boolean flag or a string (a docs URL for
frameworks, a free-text note for features). Those values are validated into
a tagged variant (``Flag``, ``Link`` or ``Note``) and serialized back to the
plain YAML value, so dumping a record reproduces its input.

The ``frameworks`` and ``features`` mappings are generated from the closed
enumerations in :mod:`jsgrids.features`; unknown keys are rejected.
"""

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any

from pydantic import (
    AfterValidator,
    AnyHttpUrl,
    BaseModel,
    ConfigDict,
    NonNegativeInt,
    PlainSerializer,
    PlainValidator,
    StrictBool,
    StringConstraints,
    TypeAdapter,
    ValidationError,
    create_model,
)
from pydantic.alias_generators import to_camel

from jsgrids.errors import RecordValidationError
from jsgrids.features import FEATURES, FRAMEWORKS

# ---------------------------------------------------------------------------
# Field types
# ---------------------------------------------------------------------------

_http_url = TypeAdapter(AnyHttpUrl)
_GITHUB_REPO_RE = re.compile(r"^\S+/\S+$")


def _check_url(value: str) -> str:
    """Assert *value* is an absolute http(s) URL, keeping it verbatim."""
    try:
        _http_url.validate_python(value)
    except ValidationError:
        raise ValueError(f"must be a valid URL, got {value!r}") from None
    return value


def _check_github_repo(value: str) -> str:
    if not _GITHUB_REPO_RE.match(value):
        raise ValueError("Must be a username/repo pair")
    return value


Url = Annotated[str, AfterValidator(_check_url)]
GithubRepo = Annotated[str, AfterValidator(_check_github_repo)]
NonEmptyStr = Annotated[str, StringConstraints(min_length=1)]


@dataclass(frozen=True)
class Flag:
    """Supported (or explicitly not), with no further detail."""

    enabled: bool


@dataclass(frozen=True)
class Link:
    """Supported, with a link to the relevant docs."""

    url: str


@dataclass(frozen=True)
class Note:
    """Supported, with a qualifying note."""

    text: str


def _to_link_support(value: Any) -> Flag | Link:
    if isinstance(value, (Flag, Link)):
        return value
    if isinstance(value, str):
        return Link(_check_url(value))
    if isinstance(value, bool):
        return Flag(value)
    raise ValueError("must be a boolean or a URL string")


def _to_note_support(value: Any) -> Flag | Note:
    if isinstance(value, (Flag, Note)):
        return value
    if isinstance(value, str):
        return Note(value)
    if isinstance(value, bool):
        return Flag(value)
    raise ValueError("must be a boolean or a string")


def _support_value(value: Flag | Link | Note) -> bool | str:
    if isinstance(value, Flag):
        return value.enabled
    if isinstance(value, Link):
        return value.url
    return value.text


FrameworkSupport = Annotated[
    Flag | Link, PlainValidator(_to_link_support), PlainSerializer(_support_value)
]
FeatureSupport = Annotated[
    Flag | Note, PlainValidator(_to_note_support), PlainSerializer(_support_value)
]

# ---------------------------------------------------------------------------
# Generated mappings
# ---------------------------------------------------------------------------

_CLOSED = ConfigDict(extra="forbid")

Frameworks = create_model(
    "Frameworks",
    __config__=_CLOSED,
    **{name: (FrameworkSupport | None, None) for name in FRAMEWORKS},
)

Features = create_model(
    "Features",
    __config__=_CLOSED,
    **{name: (FeatureSupport | None, None) for name in FEATURES},
)

# ---------------------------------------------------------------------------
# Records
# ---------------------------------------------------------------------------


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, extra="forbid"
    )


class RawRecord(_CamelModel):
    """A library description as written in a YAML source document."""

    title: NonEmptyStr
    description: NonEmptyStr
    home_url: Url | None = None
    demo_url: Url | None = None
    github_repo: GithubRepo | None = None
    npm_package: str | None = None
    ignore_bundlephobia: StrictBool | None = None
    license: str | None = None
    revenue_model: str | None = None
    frameworks: Frameworks | None = None  # type: ignore[valid-type]
    features: Features | None = None  # type: ignore[valid-type]

    @property
    def wants_bundle_size(self) -> bool:
        return bool(self.npm_package) and self.ignore_bundlephobia is not True


class GithubStats(_CamelModel):
    url: Url
    stars: NonNegativeInt
    forks: NonNegativeInt
    open_issues: NonNegativeInt
    watchers: NonNegativeInt
    subscribers: NonNegativeInt
    network: NonNegativeInt
    contributors: NonNegativeInt


class NpmStats(_CamelModel):
    url: Url
    downloads: NonNegativeInt


class BundleStats(_CamelModel):
    url: Url
    raw_size: NonNegativeInt
    gzip_size: NonNegativeInt


class LibraryRecord(RawRecord):
    """A validated raw record plus its id and enrichment blocks."""

    id: NonEmptyStr
    github: GithubStats | None = None
    npm: NpmStats | None = None
    bundlephobia: BundleStats | None = None

    def to_dict(self) -> dict[str, Any]:
        """Plain JSON-ready dict using the YAML (camelCase) field names."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ---------------------------------------------------------------------------
# Validation entry points
# ---------------------------------------------------------------------------


def describe_errors(exc: ValidationError) -> str:
    """Flatten a pydantic error into ``loc: message`` clauses."""
    parts = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "<root>"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def validate_raw(obj: Any, source: Path | str) -> RawRecord:
    """Validate a parsed YAML document as a ``RawRecord``.

    Raises:
        RecordValidationError: naming *source* and every violated constraint.
    """
    try:
        return RawRecord.model_validate(obj)
    except ValidationError as e:
        raise RecordValidationError(source, describe_errors(e)) from e


def validate_library(obj: Any, source: Path | str) -> LibraryRecord:
    """Validate a raw record plus ``id`` and optional blocks."""
    try:
        return LibraryRecord.model_validate(obj)
    except ValidationError as e:
        raise RecordValidationError(source, describe_errors(e)) from e
