"""comdirect bank securities settlement and dividend documents.

comdirect has printed three incompatible layouts over time:

- ``LABEL_PREFIXED``: header ``Wertpapier-Bezeichnung      WPKNR/ISIN``
  on one line, values in fixed columns.
- ``TERSE``: every label and value on its own line.
- ``TAX_INFO``: tax information sheets
  (``Steuerliche Behandlung: ...``).

The layout is detected once from page 1. Field positions that differ
between layouts live in the anchor tables below.
"""

from __future__ import annotations

import logging
import re
from decimal import Decimal
from enum import IntEnum

from brokerimport.brokers.base import BrokerParser
from brokerimport.extraction import (
    Anchor,
    ExtractionError,
    find_index,
    line_at,
    split_tokens,
    token_at,
)
from brokerimport.helpers import find_german_date, find_time, parse_german_num
from brokerimport.schemas import Activity, ActivityType, DocumentKind, Page

logger = logging.getLogger(__name__)

# Printed by onvista bank on documents generated from the comdirect template.
ONVISTA_IDENTIFICATION_STRING = "BELEGDRUCK=J"


class ComdirectFormat(IntEnum):
    LABEL_PREFIXED = 0
    TERSE = 1
    TAX_INFO = 2


# ---------------------------------------------------------------------------
# Anchor tables
# ---------------------------------------------------------------------------

_ISIN_HEADER = ("/ISIN", "/ ISIN")

# (ISIN anchor, WKN anchor) below the security header. ``None`` is the
# fallback for layouts without their own entry.
_SECURITY_ANCHORS: dict[tuple[ActivityType, ComdirectFormat | None], tuple[Anchor, Anchor]] = {
    (ActivityType.BUY, None): (
        Anchor(_ISIN_HEADER, line_offset=2, token=-1),
        Anchor(_ISIN_HEADER, line_offset=1, token=-1),
    ),
    (ActivityType.SELL, None): (
        Anchor(_ISIN_HEADER, line_offset=2, token=-1),
        Anchor(_ISIN_HEADER, line_offset=1, token=-1),
    ),
    (ActivityType.SELL, ComdirectFormat.TERSE): (
        Anchor(_ISIN_HEADER, line_offset=4, token=-1),
        Anchor(_ISIN_HEADER, line_offset=2, token=-1),
    ),
    (ActivityType.DIVIDEND, None): (
        Anchor(_ISIN_HEADER, line_offset=3, token=-1),
        Anchor(_ISIN_HEADER, line_offset=1, token=-1),
    ),
}

_COMPANY_ANCHORS: dict[ActivityType, Anchor] = {
    ActivityType.BUY: Anchor(_ISIN_HEADER, line_offset=1),
    ActivityType.SELL: Anchor(_ISIN_HEADER, line_offset=1),
    ActivityType.DIVIDEND: Anchor(_ISIN_HEADER, line_offset=2),
}

# Line holding the pre-tax total, relative to the "vor Steuern" label.
_PRE_TAX_ANCHORS: dict[ComdirectFormat | None, Anchor] = {
    ComdirectFormat.TERSE: Anchor("vor Steuern", line_offset=8, token=-1),
    None: Anchor("vor Steuern", line_offset=1, token=-1),
}

_LOCAL_TAX_ANCHORS: dict[ComdirectFormat | None, Anchor] = {
    ComdirectFormat.TERSE: Anchor("abgeführte Steuern", line_offset=2, exact=True),
    None: Anchor("abgeführte Steuern", line_offset=1, token=1, exact=True),
}

_DIVIDEND_DATE_ANCHORS: dict[ComdirectFormat | None, Anchor] = {
    ComdirectFormat.TAX_INFO: Anchor("Valuta", token=5),
    None: Anchor("Valuta", line_offset=1, token=-3),
}

_TRADE_DATE = Anchor("Geschäftstag")
_ORDER_TIME = Anchor("Handelszeit")
_NOMINAL = Anchor("Nennwert", line_offset=1)
_MARKET_VALUE = Anchor("Kurswert")
_SETTLEMENT_TOTAL = Anchor("Verrechnung über Konto", line_offset=1, token=-1)
_WITHHOLDING_TAX = Anchor(" Quellensteuer", token=4, exclude="Bei einbehaltener ")
_DIVIDEND_SHARES = Anchor("STK", token=1)
_GROSS_DIVIDEND = Anchor("Bruttobetrag", token=2)
_PRE_TAX_PAYOUT = Anchor("Zu Ihren Gunsten vor Steuern:", line_offset=1, token=1, exact=True)
_TAX_BASE = Anchor(
    "Steuerbemessungsgrundlage vor Verlustverrechnung", line_offset=1, token=1, exact=True
)
_PAYOUT_FX = Anchor("zum Devisenkurs:")
_PURCHASE_REDUCTION = Anchor("Reduktion Kaufaufschlag")

_SPLIT_ORDER_MARKER = "(ggf. gerundet)"
_MULTI_SPACE_RE = re.compile(r"\s{2,}")


def _lookup(table: dict, key):
    """Entry for ``key`` or, failing that, its fallback with ``None`` as layout."""
    if key in table:
        return table[key]
    if isinstance(key, tuple):
        return table[(*key[:-1], None)]
    return table[None]


def _read_num(anchor: Anchor, lines: list[str]) -> Decimal | None:
    value = anchor.read(lines)
    return None if value is None else parse_german_num(value)


# ---------------------------------------------------------------------------
# Handler
# ---------------------------------------------------------------------------


class ComdirectParser(BrokerParser):
    """Buy, sell and dividend documents of comdirect bank."""

    broker = "comdirect"
    # 'comdirect bank' is not printed on every document, 'comdirect' is.
    identification_markers = ("comdirect",)
    excluded_markers = (ONVISTA_IDENTIFICATION_STRING,)

    def classify(self, first_page: Page) -> ActivityType | DocumentKind | None:
        if "Wertpapierkauf" in first_page or "Wertpapierbezug" in first_page:
            return ActivityType.BUY
        if "Wertpapierverkauf" in first_page:
            return ActivityType.SELL
        if "Ertragsgutschrift" in first_page or "Dividendengutschrift" in first_page:
            return ActivityType.DIVIDEND
        if any(
            "Steuerliche Behandlung:" in line
            and ("Dividende" in line or "Investment-Ausschüttung" in line)
            for line in first_page
        ):
            return ActivityType.TAX_DIVIDEND
        if any("Kosteninformation" in line for line in first_page):
            return DocumentKind.IGNORED
        return None

    def recognizes(self, first_page: Page) -> bool:
        kind = self.classify(first_page)
        if kind is None:
            return False
        return kind is DocumentKind.IGNORED or detect_format(first_page) is not None

    def parse_activities(
        self, pages: list[Page], activity_type: ActivityType
    ) -> list[Activity | None]:
        fmt = detect_format(pages[0])
        if fmt is None:
            raise ExtractionError("Unknown comdirect document layout")

        # Details of one transaction (e.g. taxes of a sell) can spill onto
        # later pages, so the whole document is read as one line list.
        lines = [line for page in pages for line in page]
        logger.debug("comdirect %s document, layout %s", activity_type, fmt.name)

        assemble = {
            ActivityType.BUY: self._parse_buy,
            ActivityType.SELL: self._parse_sell,
            ActivityType.DIVIDEND: self._parse_dividend,
            ActivityType.TAX_DIVIDEND: self._parse_tax_dividend,
        }[activity_type]
        return [assemble(lines, fmt)]

    # ------------------------------------------------------------------
    # Per activity type assembly
    # ------------------------------------------------------------------

    def _parse_buy(self, lines: list[str], fmt: ComdirectFormat) -> Activity | None:
        activity = self.new_activity(ActivityType.BUY)

        date = find_trade_date(lines)
        time = find_order_time(lines)
        fx_rate, foreign_currency = find_order_fx(lines)
        activity.isin, activity.wkn = find_isin_wkn(lines, ActivityType.BUY, fmt)
        activity.company = find_company(lines, ActivityType.BUY, fmt)
        activity.amount = find_amount(lines, fx_rate, foreign_currency, fmt)
        activity.shares = find_shares(lines, fmt)
        activity.derive_price()
        activity.fee = find_fee(lines, activity.amount, is_sell=False, fmt=fmt)

        return self._finish(activity, date, time, fx_rate, foreign_currency)

    def _parse_sell(self, lines: list[str], fmt: ComdirectFormat) -> Activity | None:
        activity = self.new_activity(ActivityType.SELL)

        activity.isin, activity.wkn = find_isin_wkn(lines, ActivityType.SELL, fmt)
        activity.company = find_company(lines, ActivityType.SELL, fmt)
        date = find_trade_date(lines)
        time = find_order_time(lines)
        fx_rate, foreign_currency = find_order_fx(lines)
        activity.shares = find_shares(lines, fmt)
        activity.amount = find_amount(lines, fx_rate, foreign_currency, fmt)
        activity.derive_price()
        activity.fee = find_fee(lines, activity.amount, is_sell=True, fmt=fmt)
        activity.tax, _ = find_tax(lines, fx_rate, fmt)

        return self._finish(activity, date, time, fx_rate, foreign_currency)

    def _parse_dividend(self, lines: list[str], fmt: ComdirectFormat) -> Activity | None:
        activity = self.new_activity(ActivityType.DIVIDEND)

        # The payout is quoted in the foreign currency, so the rate comes first.
        fx_rate, foreign_currency = find_payout_fx(lines)
        activity.isin, activity.wkn = find_isin_wkn(lines, ActivityType.DIVIDEND, fmt)
        activity.company = find_company(lines, ActivityType.DIVIDEND, fmt)
        date = _DIVIDEND_DATE_ANCHORS[None].read(lines)
        activity.shares = _read_num(_DIVIDEND_SHARES, lines)
        activity.amount = find_gross_dividend(lines, fx_rate)
        activity.derive_price()
        activity.tax, _ = find_tax(lines, fx_rate, fmt)

        return self._finish(activity, date, None, fx_rate, foreign_currency)

    def _parse_tax_dividend(self, lines: list[str], fmt: ComdirectFormat) -> Activity | None:
        # Tax information sheets describe a dividend.
        activity = self.new_activity(ActivityType.DIVIDEND)

        activity.isin, activity.wkn, activity.company, activity.shares = (
            find_tax_info_security(lines)
        )
        date = _lookup(_DIVIDEND_DATE_ANCHORS, fmt).read(lines)
        local_and_withheld, withheld = find_tax(lines, None, fmt)
        payout, implied_withheld = find_pre_tax_payout(lines)

        local_tax = local_and_withheld - withheld
        if implied_withheld is not None and implied_withheld > withheld:
            withheld = implied_withheld
        activity.tax = local_tax + withheld
        activity.amount = None if payout is None else payout + withheld
        activity.derive_price()

        return self._finish(activity, date, None, None, None)

    def _finish(self, activity, date, time, fx_rate, foreign_currency) -> Activity | None:
        if date is not None:
            activity.set_datetime(date, time)
        activity.set_fx(fx_rate, foreign_currency)
        return activity.build()


# ---------------------------------------------------------------------------
# Format detection
# ---------------------------------------------------------------------------


def detect_format(page: Page) -> ComdirectFormat | None:
    """Detect the layout from page 1; the first matching marker wins."""
    if any("Wertpapier-Bezeichnung " in line for line in page):
        return ComdirectFormat.LABEL_PREFIXED
    if "Wertpapier-Bezeichnung" in page:
        return ComdirectFormat.TERSE
    if any(line.startswith("Steuerliche Behandlung: ") for line in page):
        return ComdirectFormat.TAX_INFO
    return None


# ---------------------------------------------------------------------------
# Field extractors
# ---------------------------------------------------------------------------


def find_isin_wkn(
    lines: list[str], activity_type: ActivityType, fmt: ComdirectFormat
) -> tuple[str | None, str | None]:
    isin_anchor, wkn_anchor = _lookup(_SECURITY_ANCHORS, (activity_type, fmt))
    return isin_anchor.read(lines), wkn_anchor.read(lines)


def find_company(lines: list[str], activity_type: ActivityType, fmt: ComdirectFormat) -> str | None:
    line = _COMPANY_ANCHORS[activity_type].read(lines)
    if line is None:
        return None
    if activity_type is ActivityType.BUY:
        # The WKN closes the company line.
        return " ".join(split_tokens(line)[:-1])
    if activity_type is ActivityType.SELL and fmt is ComdirectFormat.LABEL_PREFIXED:
        # "Arcimoto Inc.                       A2JN1H"
        return _MULTI_SPACE_RE.split(line)[0].strip()
    return line


def find_tax_info_security(
    lines: list[str],
) -> tuple[str | None, str | None, str | None, Decimal | None]:
    """ISIN, WKN, company and shares from the single security line of a tax sheet.

    ``STK 19,000 <company ...> Zahltag 11.03.2021 WKN /ISIN 870747 / US5949181045``
    """
    line = Anchor(_ISIN_HEADER).read(lines)
    if line is None:
        return None, None, None, None
    tokens = split_tokens(line)
    if len(tokens) < 10:
        raise ExtractionError(f"Unexpected security line {line!r}")
    company = " ".join(tokens[2:-7])
    return tokens[-1], tokens[-3], company, parse_german_num(tokens[1])


def find_trade_date(lines: list[str]) -> str | None:
    line = _TRADE_DATE.read(lines)
    return None if line is None else find_german_date(line)


def find_order_time(lines: list[str]) -> str | None:
    """Order time printed next to ``Handelszeit`` or two lines below it."""
    idx = _ORDER_TIME.locate(lines)
    if idx is None:
        return None
    for candidate in (idx, idx + 2):
        if candidate < len(lines):
            time = find_time(lines[candidate])
            if time is not None:
                return time
    return None


def find_shares(lines: list[str], fmt: ComdirectFormat) -> Decimal | None:
    # Orders executed in several parts print the total above the marker.
    split_idx = find_index(lines, lambda line: line == _SPLIT_ORDER_MARKER)
    if split_idx is not None:
        if fmt is ComdirectFormat.LABEL_PREFIXED:
            return parse_german_num(token_at(line_at(lines, split_idx - 1), 2))
        return parse_german_num(token_at(line_at(lines, split_idx - 3), -1))

    line = _NOMINAL.read(lines)
    if line is None:
        return None
    tokens = split_tokens(line)
    for idx, token in enumerate(tokens):
        if "St." in token and idx + 1 < len(tokens):
            return parse_german_num(tokens[idx + 1])
    return None


def find_amount(
    lines: list[str],
    fx_rate: Decimal | None,
    foreign_currency: str | None,
    fmt: ComdirectFormat,
) -> Decimal | None:
    """Market value of the order in the settlement currency.

    Split orders print their total above ``(ggf. gerundet)``. In the terse
    layout that total is taken as printed, without foreign-currency
    conversion.
    """
    in_foreign_currency = False
    split_idx = find_index(lines, lambda line: line == _SPLIT_ORDER_MARKER)

    if split_idx is not None:
        line = line_at(lines, split_idx - 1)
        if fmt is ComdirectFormat.LABEL_PREFIXED:
            tokens = split_tokens(line)
            amount = parse_german_num(tokens[-1])
            in_foreign_currency = len(tokens) > 1 and tokens[-2] == foreign_currency
        else:
            amount = parse_german_num(line)
    else:
        line = _MARKET_VALUE.read(lines)
        if line is None:
            return None
        tokens = split_tokens(line)
        amount = parse_german_num(tokens[-1])
        in_foreign_currency = len(tokens) > 1 and tokens[-2] == foreign_currency

        # A rate on the market value line means the amount is already
        # converted but the purchase surcharge reduction is not applied.
        if "Devisenkurs" in tokens:
            return amount + find_purchase_reduction(lines, fx_rate, foreign_currency)

    if in_foreign_currency and fx_rate:
        return amount / fx_rate
    return amount


def find_purchase_reduction(
    lines: list[str], fx_rate: Decimal | None, foreign_currency: str | None
) -> Decimal:
    line = _PURCHASE_REDUCTION.read(lines)
    if line is None:
        return Decimal(0)
    tokens = split_tokens(line)
    reduction = abs(parse_german_num(tokens[-1]))
    if foreign_currency is not None and foreign_currency in tokens and fx_rate:
        return reduction / fx_rate
    return reduction


def find_fee(
    lines: list[str],
    amount: Decimal | None,
    is_sell: bool,
    fmt: ComdirectFormat,
) -> Decimal:
    """Fee as the difference between the pre-tax total and the market value."""
    if amount is None:
        return Decimal(0)

    pre_tax = _read_num(_lookup(_PRE_TAX_ANCHORS, fmt), lines)
    if pre_tax is not None:
        return amount - pre_tax if is_sell else pre_tax - amount

    settled = _read_num(_SETTLEMENT_TOTAL, lines)
    if settled is not None:
        return settled - amount
    return Decimal(0)


def find_tax(
    lines: list[str], fx_rate: Decimal | None, fmt: ComdirectFormat
) -> tuple[Decimal, Decimal]:
    """Return ``(total tax, withholding tax)`` in the settlement currency."""
    withholding = Decimal(0)
    if fmt in (ComdirectFormat.LABEL_PREFIXED, ComdirectFormat.TAX_INFO):
        printed = _read_num(_WITHHOLDING_TAX, lines)
        if printed is not None:
            withholding = printed / fx_rate if fx_rate else printed

    local = _read_num(_lookup(_LOCAL_TAX_ANCHORS, fmt), lines)
    local = abs(local) if local is not None else Decimal(0)
    return withholding + local, withholding


def find_order_fx(lines: list[str]) -> tuple[Decimal | None, str | None]:
    """FX rate and currency of a buy or sell order, if it was not in EUR."""
    idx = find_index(lines, lambda line: "Umrechnung zum Devisenkurs " in line)
    if idx is not None:
        fx_rate = parse_german_num(token_at(lines[idx], 3))
        return fx_rate, token_at(line_at(lines, idx - 3), 2)

    idx = find_index(lines, lambda line: "Umrechn. zum Dev. kurs " in line)
    if idx is not None:
        fx_rate = parse_german_num(token_at(lines[idx], 4))
        foreign_currency = None
        nominal_idx = find_index(lines, lambda line: "St." in line)
        if nominal_idx is not None:
            after_pieces = lines[nominal_idx].split("St.", 1)[1]
            foreign_currency = token_at(after_pieces, 1)
        return fx_rate, foreign_currency

    return None, None


def find_payout_fx(lines: list[str]) -> tuple[Decimal | None, str | None]:
    """FX rate and currency of a dividend: ``zum Devisenkurs: EUR/USD 1,1000``."""
    line = _PAYOUT_FX.read(lines)
    if line is None:
        return None, None
    pair = token_at(line, 2)
    if "/" not in pair:
        raise ExtractionError(f"Unexpected currency pair {pair!r}")
    return parse_german_num(token_at(line, 3)), pair.split("/")[1]


def find_gross_dividend(lines: list[str], fx_rate: Decimal | None) -> Decimal | None:
    gross = _read_num(_GROSS_DIVIDEND, lines)
    if gross is None:
        return None
    return gross / fx_rate if fx_rate else gross


def find_pre_tax_payout(lines: list[str]) -> tuple[Decimal | None, Decimal | None]:
    """Pre-tax payout and the withholding tax it implies.

    Some sheets do not print the withholding tax. It is then the difference
    between the tax base before loss offset and the pre-tax payout.
    """
    payout = _read_num(_PRE_TAX_PAYOUT, lines)
    tax_base = _read_num(_TAX_BASE, lines)
    if payout is None or tax_base is None:
        return payout, None
    return payout, tax_base - payout
