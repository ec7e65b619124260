"""jsgrids - data pipeline for the JavaScript data grid directory."""

from importlib.metadata import version

from jsgrids.pipeline import FailurePolicy, aggregate, get_libraries
from jsgrids.schema import LibraryRecord, RawRecord

__version__ = version("jsgrids")
__all__ = [
    "FailurePolicy",
    "LibraryRecord",
    "RawRecord",
    "aggregate",
    "get_libraries",
    "__version__",
]
