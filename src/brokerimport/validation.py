"""Activity assembly and validation.

Handlers collect extracted fields on an ``ActivityBuilder``. Only
``build()`` turns it into an immutable ``Activity``, and only when every
output invariant holds; otherwise the whole candidate is dropped and
``None`` is returned so the result filter can reject the document.
"""

from __future__ import annotations

import datetime as dt
import logging
import re
from dataclasses import dataclass, field
from decimal import Decimal
from zoneinfo import ZoneInfo

from brokerimport.config import ParserSettings
from brokerimport.helpers import create_activity_datetime, round_decimal
from brokerimport.schemas import Activity, ActivityType

logger = logging.getLogger(__name__)

_ISIN_RE = re.compile(r"^[A-Z]{2}[A-Z0-9]{9}[0-9]$")
_WKN_RE = re.compile(r"^[A-Z0-9]{6}$")


@dataclass
class ActivityBuilder:
    """Mutable collector for the fields of one activity."""

    broker: str
    type: ActivityType
    settings: ParserSettings = field(default_factory=ParserSettings)
    date: dt.date | None = None
    datetime: dt.datetime | None = None
    company: str | None = None
    isin: str | None = None
    wkn: str | None = None
    shares: Decimal | None = None
    price: Decimal | None = None
    amount: Decimal | None = None
    fee: Decimal = Decimal(0)
    tax: Decimal = Decimal(0)
    foreign_currency: str | None = None
    fx_rate: Decimal | None = None
    # Decimal places the price was rounded to, if it was.
    price_places: int | None = None

    def set_datetime(self, date: str, time: str | None = None) -> None:
        self.date, self.datetime = create_activity_datetime(
            date, time, timezone=self.settings.timezone
        )

    def set_fx(self, fx_rate: Decimal | None, foreign_currency: str | None) -> None:
        """Attach the FX rate and currency, only when both are known."""
        if fx_rate is not None and foreign_currency is not None:
            self.fx_rate = fx_rate
            self.foreign_currency = foreign_currency

    def derive_price(self, places: int | None = None) -> None:
        """Set ``price = amount / shares``, optionally rounded."""
        if self.amount is None or not self.shares:
            return
        price = self.amount / self.shares
        self.price = round_decimal(price, places) if places is not None else price
        self.price_places = places

    def build(self) -> Activity | None:
        return validate_activity(self, self.settings)


def validate_activity(
    candidate: ActivityBuilder,
    settings: ParserSettings | None = None,
) -> Activity | None:
    """Check a candidate against the output invariants.

    Returns:
        The finished ``Activity``, or ``None`` if any invariant is violated.
    """
    settings = settings or ParserSettings()
    problems = _find_problems(candidate, settings)
    if problems:
        for problem in problems:
            logger.error(
                "Rejected %s activity from %s: %s",
                candidate.type, candidate.broker, problem,
            )
        return None

    return Activity(
        broker=candidate.broker,
        type=candidate.type,
        date=candidate.date,
        datetime=candidate.datetime,
        company=candidate.company,
        amount=float(candidate.amount),
        fee=float(candidate.fee),
        tax=float(candidate.tax),
        isin=candidate.isin,
        wkn=candidate.wkn,
        shares=_optional_float(candidate.shares),
        price=_optional_float(candidate.price),
        foreign_currency=candidate.foreign_currency,
        fx_rate=_optional_float(candidate.fx_rate),
    )


def _find_problems(c: ActivityBuilder, settings: ParserSettings) -> list[str]:
    problems: list[str] = []

    if not c.broker:
        problems.append("broker is missing")
    if not isinstance(c.type, ActivityType):
        problems.append(f"unknown type {c.type!r}")
    if c.date is None or c.datetime is None:
        problems.append("date or datetime is missing")
    if c.amount is None:
        problems.append("amount is missing")

    if not (c.company or c.isin or c.wkn):
        problems.append("company, ISIN and WKN are all missing")
    if c.isin is not None and not _ISIN_RE.match(c.isin):
        problems.append(f"malformed ISIN {c.isin!r}")
    if c.wkn is not None and not _WKN_RE.match(c.wkn):
        problems.append(f"malformed WKN {c.wkn!r}")

    for name in ("amount", "fee", "tax"):
        value = getattr(c, name)
        if value is not None and value < 0:
            problems.append(f"{name} must not be negative, got {value}")

    if c.shares is not None and c.shares <= 0:
        problems.append(f"shares must be greater than 0, got {c.shares}")
    if c.price is not None and c.price < 0:
        problems.append(f"price must not be negative, got {c.price}")

    if c.price is not None and c.shares is not None and c.amount is not None:
        tolerance = Decimal(str(settings.price_tolerance))
        if c.price_places is not None:
            # A rounded price is off by up to half a unit in its last place per share.
            tolerance += c.shares * Decimal(5).scaleb(-c.price_places - 1)
        if abs(c.price * c.shares - c.amount) > tolerance:
            problems.append(
                f"price {c.price} * shares {c.shares} does not match amount {c.amount}"
            )

    if c.date is not None and c.datetime is not None:
        if c.date > c.datetime.date():
            problems.append(f"date {c.date} is after datetime {c.datetime}")
        today = dt.datetime.now(ZoneInfo(settings.timezone)).date()
        if settings.reject_future_dates and c.date > today:
            problems.append(f"date {c.date} is in the future")

    if (c.foreign_currency is None) != (c.fx_rate is None):
        problems.append("foreign currency and FX rate must be given together")
    if c.fx_rate is not None and c.fx_rate <= 0:
        problems.append(f"FX rate must be positive, got {c.fx_rate}")

    return problems


def _optional_float(value: Decimal | None) -> float | None:
    return None if value is None else float(value)
