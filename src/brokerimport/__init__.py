"""Broker statement import — classify brokerage documents and extract activities."""

from brokerimport.parser import (
    filter_result_activities,
    find_implementation,
    parse_activities_from_pages,
    parse_file,
)
from brokerimport.schemas import (
    Activity,
    ActivityType,
    DocumentKind,
    LoadedDocument,
    Page,
    ParsedFile,
    ParserResult,
    ParserStatus,
)

__version__ = "0.1.0"

__all__ = [
    "Activity",
    "ActivityType",
    "DocumentKind",
    "LoadedDocument",
    "Page",
    "ParsedFile",
    "ParserResult",
    "ParserStatus",
    "filter_result_activities",
    "find_implementation",
    "parse_activities_from_pages",
    "parse_file",
]
