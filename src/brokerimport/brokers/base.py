"""Abstract base class for all broker document handlers."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from typing import ClassVar

from brokerimport.config import ParserSettings
from brokerimport.extraction import ExtractionError
from brokerimport.schemas import (
    Activity,
    ActivityType,
    DocumentKind,
    Page,
    ParserResult,
    ParserStatus,
)
from brokerimport.validation import ActivityBuilder

logger = logging.getLogger(__name__)


def page_contains(page: Sequence[str], marker: str) -> bool:
    """True if any line of the page contains ``marker``."""
    return any(marker in line for line in page)


class BrokerParser(ABC):
    """Interface every broker handler implements.

    Subclasses declare the marker strings that identify their documents on
    the first page and implement ``classify`` and ``parse_activities``.
    """

    broker: ClassVar[str]
    extensions: ClassVar[frozenset[str]] = frozenset({"pdf"})
    # Every marker must occur somewhere on page 1.
    identification_markers: ClassVar[tuple[str, ...]] = ()
    # Markers of other institutions sharing this broker's templates.
    excluded_markers: ClassVar[tuple[str, ...]] = ()

    def __init__(self, settings: ParserSettings | None = None):
        self.settings = settings or ParserSettings()

    @abstractmethod
    def classify(self, first_page: Page) -> ActivityType | DocumentKind | None:
        """Return the document's activity type, ``IGNORED``, or ``None``."""

    @abstractmethod
    def parse_activities(
        self, pages: list[Page], activity_type: ActivityType
    ) -> list[Activity | None]:
        """Extract all activities of a classified document.

        ``None`` entries mark candidates that failed validation.
        """

    def recognizes(self, first_page: Page) -> bool:
        """Structural check run after the identification markers matched."""
        return self.classify(first_page) is not None

    def can_parse_document(self, pages: list[Page], extension: str) -> bool:
        if extension not in self.extensions or not pages:
            return False

        first_page = pages[0]
        if not all(page_contains(first_page, m) for m in self.identification_markers):
            return False
        if any(page_contains(first_page, m) for m in self.excluded_markers):
            return False
        return self.recognizes(first_page)

    def parse_pages(self, pages: list[Page]) -> ParserResult:
        kind = self.classify(pages[0])

        if kind is DocumentKind.IGNORED:
            logger.info("%s document is a known but unsupported kind", self.broker)
            return ParserResult(activities=[], status=ParserStatus.IGNORED_DOCUMENT)
        if kind is None:
            raise ExtractionError(f"{self.broker} cannot classify this document")

        activities = self.parse_activities(pages, kind)
        logger.debug("%s: %d %s candidate(s)", self.broker, len(activities), kind)
        return ParserResult(activities=activities, status=ParserStatus.SUCCESS)

    def new_activity(self, activity_type: ActivityType) -> ActivityBuilder:
        return ActivityBuilder(broker=self.broker, type=activity_type, settings=self.settings)

    @classmethod
    def name(cls) -> str:
        """Return the broker identifier."""
        return cls.broker
