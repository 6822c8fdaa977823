"""Fondsdepot Bank fund settlement documents.

Every page repeats a preamble with the fund identity followed by a
transaction table. Values are single tokens in table order, so fields of
a transaction are read by their position after the transaction keyword.
A purchase page can list several savings-plan purchases; each one yields
its own activity sharing the page's preamble.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from brokerimport.brokers.base import BrokerParser
from brokerimport.extraction import Anchor, ExtractionError, find_index
from brokerimport.helpers import parse_german_num
from brokerimport.schemas import Activity, ActivityType, DocumentKind, Page

logger = logging.getLogger(__name__)

# Fund valuations are printed with four decimal places.
PRICE_PLACES = 4

# Tokens that only appear on reinvestments or fund exchanges and shift
# the table columns without carrying a value.
_BLOCKLIST = frozenset({
    "1)",
    "2)",
    "Rabatt",
    "100 %",
    "gesamt",
    "für Tausch",
    "aus Tausch",
    "Ertrag",
})

_PURCHASE = "Kauf"
_REINVESTMENT = "Wiederanlage"
_SALE = "Verkauf"
_SECTION_END = "Konto-"
_PREAMBLE_START = "Depotabrechnung"
_PREAMBLE_END = "Transaktion"
_PAYOUT_MARKER = "Ausschüttung per "

# One purchase occupies this many tokens starting at its keyword.
_PURCHASE_WINDOW = 10

# Token positions inside a transaction, counted from its keyword.
_WINDOW_FIELDS: dict[ActivityType, dict[str, int]] = {
    ActivityType.BUY: {"amount": 1, "date": 4, "fee": 6, "shares": 7},
    ActivityType.SELL: {"amount": 1, "date": 2, "shares": 4},
}

_COMPANY = Anchor("Fondsbezeichnung:", line_offset=1, exact=True)
_ISIN_WKN = Anchor("ISIN/WKN:", line_offset=1, exact=True)
_PAYOUT_DATE = Anchor(_PAYOUT_MARKER, token=2)
_PAYOUT_AMOUNT = Anchor("Ausschüttungsbetrag", line_offset=2, exact=True)
_PAYOUT_SHARES = Anchor("Anteile ", token=1)
_TAX_COMPONENTS = (
    Anchor("Kapitalertragsteuer", line_offset=1, exact=True),
    Anchor("Solidaritätszuschlag", line_offset=1, exact=True),
    Anchor("Kirchensteuer ", line_offset=1),
)


class FondsdepotbankParser(BrokerParser):
    """Purchases, sales and distributions of Fondsdepot Bank."""

    broker = "fondsdepotbank"
    identification_markers = ("Fondsdepot Bank GmbH", _PREAMBLE_START)

    def classify(self, first_page: Page) -> ActivityType | DocumentKind | None:
        if "Anlagebetrag" in first_page:
            return ActivityType.BUY
        if "Abrechnungsbetrag" in first_page:
            return ActivityType.SELL
        if "Ausschüttungsbetrag" in first_page:
            return ActivityType.DIVIDEND
        if any("Kosteninformation" in line for line in first_page):
            return DocumentKind.IGNORED
        return None

    def parse_activities(
        self, pages: list[Page], activity_type: ActivityType
    ) -> list[Activity | None]:
        if activity_type not in (ActivityType.BUY, ActivityType.SELL, ActivityType.DIVIDEND):
            raise ExtractionError(f"fondsdepotbank has no {activity_type} documents")

        activities: list[Activity | None] = []
        for page_number, page in enumerate(pages, start=1):
            preamble = _preamble(page)
            section = _transaction_section(page, activity_type)
            if not section:
                logger.debug("Page %d holds no %s transaction", page_number, activity_type)
                continue

            if activity_type is ActivityType.BUY:
                for start in [i for i, token in enumerate(section) if token == _PURCHASE]:
                    window = section[start:start + _PURCHASE_WINDOW]
                    activities.append(self._parse_transaction(preamble, window, activity_type))
            else:
                activities.append(self._parse_transaction(preamble, section, activity_type))

        return activities

    def _parse_transaction(
        self,
        preamble: list[str],
        transaction: list[str],
        activity_type: ActivityType,
    ) -> Activity | None:
        activity = self.new_activity(activity_type)

        activity.company = _COMPANY.read(preamble)
        activity.isin, activity.wkn = find_isin_wkn(preamble)
        activity.set_datetime(find_date(transaction, activity_type))
        activity.shares = find_shares(transaction, activity_type)
        activity.fee = find_fee(transaction, activity_type)
        activity.amount = find_gross_amount(transaction, activity_type) - activity.fee
        activity.derive_price(places=PRICE_PLACES)
        activity.tax = find_taxes(transaction, activity_type)

        return activity.build()


# ---------------------------------------------------------------------------
# Page slicing
# ---------------------------------------------------------------------------


def _preamble(page: Page) -> list[str]:
    """Tokens from ``Depotabrechnung`` up to the transaction table."""
    start = find_index(page, lambda t: t == _PREAMBLE_START) or 0
    end = find_index(page, lambda t: t == _PREAMBLE_END, start)
    if end is None:
        end = find_index(page, lambda t: _PAYOUT_MARKER in t, start)
    return page[start:end]


def _transaction_section(page: Page, activity_type: ActivityType) -> list[str]:
    """Tokens of the transaction table with layout noise removed."""
    if activity_type is ActivityType.BUY:
        # Reinvested distributions are purchases as well.
        tokens = [t.replace(_REINVESTMENT, _PURCHASE) for t in page]
        start = find_index(tokens, lambda t: t == _PURCHASE)
    elif activity_type is ActivityType.SELL:
        tokens = list(page)
        start = find_index(tokens, lambda t: t == _SALE)
    else:
        tokens = list(page)
        start = find_index(tokens, lambda t: _PAYOUT_MARKER in t)

    if start is None:
        return []
    end = find_index(tokens, lambda t: t == _SECTION_END, start)
    return [t for t in tokens[start:end] if t not in _BLOCKLIST]


def _field(transaction: list[str], activity_type: ActivityType, name: str) -> str:
    position = _WINDOW_FIELDS[activity_type][name]
    if position >= len(transaction):
        raise ExtractionError(
            f"{activity_type} transaction too short for {name}: {transaction!r}"
        )
    return transaction[position]


def _required(anchor: Anchor, tokens: list[str]) -> str:
    value = anchor.read(tokens)
    if value is None:
        raise ExtractionError(f"Missing {anchor.label!r} in distribution")
    return value


# ---------------------------------------------------------------------------
# Field extractors
# ---------------------------------------------------------------------------


def find_isin_wkn(preamble: list[str]) -> tuple[str | None, str | None]:
    value = _ISIN_WKN.read(preamble)
    if value is None:
        return None, None
    isin, _, wkn = value.partition("/")
    return isin or None, wkn or None


def find_date(transaction: list[str], activity_type: ActivityType) -> str:
    if activity_type is ActivityType.DIVIDEND:
        return _required(_PAYOUT_DATE, transaction)
    return _field(transaction, activity_type, "date")


def find_shares(transaction: list[str], activity_type: ActivityType) -> Decimal:
    if activity_type is ActivityType.DIVIDEND:
        return parse_german_num(_required(_PAYOUT_SHARES, transaction))
    # Sales print the shares as a negative position change.
    return abs(parse_german_num(_field(transaction, activity_type, "shares")))


def find_gross_amount(transaction: list[str], activity_type: ActivityType) -> Decimal:
    if activity_type is ActivityType.DIVIDEND:
        return parse_german_num(_required(_PAYOUT_AMOUNT, transaction))
    return parse_german_num(_field(transaction, activity_type, "amount"))


def find_fee(transaction: list[str], activity_type: ActivityType) -> Decimal:
    if activity_type is ActivityType.BUY:
        return parse_german_num(_field(transaction, activity_type, "fee"))
    return Decimal(0)


def find_taxes(transaction: list[str], activity_type: ActivityType) -> Decimal:
    """Capital gains tax, solidarity surcharge and church tax combined."""
    if activity_type is ActivityType.BUY:
        return Decimal(0)
    total = Decimal(0)
    for anchor in _TAX_COMPONENTS:
        value = anchor.read(transaction)
        if value is not None:
            total += parse_german_num(value)
    return abs(total)
