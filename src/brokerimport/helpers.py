"""Locale-aware token parsing shared by all broker handlers.

German statements use ``.`` as thousands separator and ``,`` as decimal
separator, print dates as ``DD.MM.YYYY`` and times as ``HH:MM``. All
monetary arithmetic is done on ``Decimal`` to avoid cent-level drift.
"""

from __future__ import annotations

import datetime as dt
import re
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from zoneinfo import ZoneInfo

from brokerimport.extraction import ExtractionError

DEFAULT_TIMEZONE = "Europe/Berlin"

GERMAN_DATE_RE = re.compile(r"([0-9]{2})\.([0-9]{2})\.([1-2][0-9]{3})")
TIME_RE = re.compile(r"([0-2][0-9]):([0-5][0-9])")

_NUMBER_RE = re.compile(r"^([+-]?)([0-9.]*[0-9](?:,[0-9]+)?|,[0-9]+)([+-]?)$")


# ---------------------------------------------------------------------------
# Numbers
# ---------------------------------------------------------------------------


def parse_german_num(text: str) -> Decimal:
    """Parse a German formatted number such as ``"2.380,88"`` or ``"12,50-"``.

    A leading sign or a trailing ``-``/``+`` marker sets the sign.

    Raises:
        ExtractionError: If the token is not a number.
    """
    match = _NUMBER_RE.match(text.strip())
    if match is None:
        raise ExtractionError(f"Not a German number: {text!r}")

    lead, digits, trail = match.groups()
    try:
        value = Decimal(digits.replace(".", "").replace(",", "."))
    except InvalidOperation:
        raise ExtractionError(f"Not a German number: {text!r}") from None

    if "-" in (lead, trail):
        value = -value
    return value


def format_german_num(value: Decimal | float, places: int = 2) -> str:
    """Format a number the way German statements print it."""
    quantum = Decimal(1).scaleb(-places)
    number = Decimal(str(value)).quantize(quantum, rounding=ROUND_HALF_UP)
    text = f"{number:,.{places}f}"
    return text.replace(",", "_").replace(".", ",").replace("_", ".")


def round_decimal(value: Decimal, places: int) -> Decimal:
    """Round half-up to ``places`` decimal places."""
    return value.quantize(Decimal(1).scaleb(-places), rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Dates and times
# ---------------------------------------------------------------------------


def find_german_date(line: str) -> str | None:
    """Return the first ``DD.MM.YYYY`` date in a line, or ``None``."""
    match = GERMAN_DATE_RE.search(line)
    return match.group(0) if match else None


def find_time(line: str) -> str | None:
    """Return the first ``HH:MM`` time of day in a line, or ``None``."""
    match = TIME_RE.search(line)
    return match.group(0) if match else None


def parse_german_date(text: str) -> dt.date:
    match = GERMAN_DATE_RE.search(text)
    if match is None:
        raise ExtractionError(f"No DD.MM.YYYY date in {text!r}")
    day, month, year = (int(g) for g in match.groups())
    try:
        return dt.date(year, month, day)
    except ValueError as exc:
        raise ExtractionError(f"Invalid date {match.group(0)!r}: {exc}") from None


def create_activity_datetime(
    date: str,
    time: str | None = None,
    timezone: str = DEFAULT_TIMEZONE,
) -> tuple[dt.date, dt.datetime]:
    """Combine a German date and an optional ``HH:MM`` time.

    Without a time the datetime falls on midnight in ``timezone``.

    Returns:
        ``(date, datetime)`` where ``datetime`` is timezone aware.
    """
    day = parse_german_date(date)
    hour, minute = 0, 0
    if time is not None:
        match = TIME_RE.search(time)
        if match is None:
            raise ExtractionError(f"No HH:MM time in {time!r}")
        hour, minute = int(match.group(1)), int(match.group(2))
        if hour > 23:
            raise ExtractionError(f"Invalid time {time!r}")

    moment = dt.datetime(day.year, day.month, day.day, hour, minute, tzinfo=ZoneInfo(timezone))
    return day, moment
