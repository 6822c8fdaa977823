"""Document dispatch — pages → matching handler → validated activities.

This is the main entry point for turning extracted document text into
activities. It is also the only place where faults raised during
extraction are turned into a status code.
"""

from __future__ import annotations

import logging
from pathlib import Path

from brokerimport.brokers.base import BrokerParser
from brokerimport.config import Settings
from brokerimport.loader import DocumentLoader
from brokerimport.registry import get_parsers
from brokerimport.schemas import Page, ParsedFile, ParserResult, ParserStatus

logger = logging.getLogger(__name__)

SUPPORTED_FILETYPES = {"pdf", "csv"}


def find_implementation(
    pages: list[Page],
    extension: str,
    parsers: list[BrokerParser] | None = None,
) -> list[BrokerParser]:
    """Return every handler that recognizes the document, in registry order."""
    if parsers is None:
        parsers = get_parsers()
    return [p for p in parsers if p.can_parse_document(pages, extension)]


def parse_activities_from_pages(
    pages: list[Page],
    extension: str,
    parsers: list[BrokerParser] | None = None,
) -> ParserResult:
    """Classify a document and extract its activities.

    Args:
        pages: Token pages of the document.
        extension: Lower-case file extension (``pdf`` or ``csv``).
        parsers: Handlers to consider; defaults to the registry.

    Returns:
        A ``ParserResult`` whose activities are either all valid or ``None``.
    """
    if not pages:
        return ParserResult(activities=None, status=ParserStatus.NO_ACTIVITIES)

    if extension not in SUPPORTED_FILETYPES:
        logger.warning("Unsupported file type '%s'", extension)
        return ParserResult(activities=None, status=ParserStatus.UNSUPPORTED_FILETYPE)

    implementations = find_implementation(pages, extension, parsers)

    if not implementations:
        logger.info("No handler recognized the document")
        return ParserResult(activities=None, status=ParserStatus.UNKNOWN_IMPLEMENTATION)

    if len(implementations) > 1:
        logger.warning(
            "Document recognized by several handlers: %s",
            ", ".join(p.name() for p in implementations),
        )
        return ParserResult(activities=None, status=ParserStatus.AMBIGUOUS_IMPLEMENTATION)

    implementation = implementations[0]
    logger.info("Parsing document with %s", implementation.name())
    try:
        result = implementation.parse_pages(pages)
    except Exception:
        logger.exception("%s failed to parse the document", implementation.name())
        return ParserResult(activities=None, status=ParserStatus.FATAL_ERROR)

    return filter_result_activities(result)


def filter_result_activities(result: ParserResult) -> ParserResult:
    """Reject partially valid results and flag empty ones.

    A single invalid candidate discards the whole document. An otherwise
    successful result without activities becomes ``NO_ACTIVITIES``.
    """
    if result.activities is None:
        return result

    if any(activity is None for activity in result.activities):
        return ParserResult(activities=None, status=ParserStatus.INVALID_ACTIVITY)

    if not result.activities and result.status == ParserStatus.SUCCESS:
        return ParserResult(activities=None, status=ParserStatus.NO_ACTIVITIES)

    return result


def parse_file(
    path: str | Path,
    settings: Settings | None = None,
    loader: DocumentLoader | None = None,
) -> ParsedFile:
    """Load a statement file and parse its activities."""
    settings = settings or Settings()
    loader = loader or DocumentLoader(settings.ingestion)
    path = Path(path)

    document = loader.load_file(path)
    result = parse_activities_from_pages(
        document.pages,
        document.extension,
        get_parsers(settings.parser),
    )

    return ParsedFile(
        file=path.name,
        activities=result.activities,
        status=result.status,
        successful=result.activities is not None and result.status == ParserStatus.SUCCESS,
        warnings=document.warnings,
    )
