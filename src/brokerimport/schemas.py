"""Data models for parsed broker documents."""

from __future__ import annotations

import datetime as dt
from dataclasses import asdict, dataclass, field
from enum import IntEnum, StrEnum

# One page of a source document: trimmed, non-empty text tokens in source order.
Page = list[str]


class ActivityType(StrEnum):
    """Activity kinds a document can be classified as."""

    BUY = "Buy"
    SELL = "Sell"
    DIVIDEND = "Dividend"
    TAX_DIVIDEND = "TaxDividend"


class DocumentKind(StrEnum):
    """Recognized document kinds that carry no activity."""

    IGNORED = "Ignored"


class ParserStatus(IntEnum):
    """Outcome codes attached to every parse attempt."""

    SUCCESS = 0
    UNKNOWN_IMPLEMENTATION = 1
    AMBIGUOUS_IMPLEMENTATION = 2
    FATAL_ERROR = 3
    UNSUPPORTED_FILETYPE = 4
    NO_ACTIVITIES = 5
    INVALID_ACTIVITY = 6
    IGNORED_DOCUMENT = 7


@dataclass(frozen=True)
class Activity:
    """A validated activity record.

    Monetary values are non-negative magnitudes in the settlement currency.
    ``foreign_currency`` and ``fx_rate`` are either both set or both absent.
    """

    broker: str
    type: ActivityType
    date: dt.date
    datetime: dt.datetime
    company: str | None
    amount: float
    fee: float = 0.0
    tax: float = 0.0
    isin: str | None = None
    wkn: str | None = None
    shares: float | None = None
    price: float | None = None
    foreign_currency: str | None = None
    fx_rate: float | None = None

    def to_dict(self) -> dict:
        """Plain dict with ISO formatted dates, absent optionals dropped."""
        data = asdict(self)
        data["type"] = str(self.type)
        data["date"] = self.date.isoformat()
        data["datetime"] = self.datetime.isoformat()
        return {k: v for k, v in data.items() if v is not None}


@dataclass
class ParserResult:
    """Result of parsing one document.

    ``activities`` holds ``None`` entries for candidates that failed
    validation until the result filter has run.
    """

    activities: list[Activity | None] | None
    status: ParserStatus


@dataclass
class ParsedFile:
    """Result of loading and parsing a single file."""

    file: str
    activities: list[Activity] | None
    status: ParserStatus
    successful: bool
    warnings: list[str] = field(default_factory=list)


@dataclass
class LoadedDocument:
    """Token pages materialized from one source file.

    Attributes:
        pages: One list of trimmed, non-empty lines per page.
        extension: Lower-case file extension without the dot.
        source_path: Filesystem path or upload name.
        warnings: Non-fatal issues encountered during loading.
    """

    pages: list[Page]
    extension: str
    source_path: str | None = None
    warnings: list[str] = field(default_factory=list)
