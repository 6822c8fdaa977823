"""Tests for the Fondsdepot Bank handler."""

from __future__ import annotations

import datetime as dt
from zoneinfo import ZoneInfo

import pytest

from brokerimport.brokers.fondsdepotbank import FondsdepotbankParser, find_isin_wkn
from brokerimport.extraction import ExtractionError
from brokerimport.schemas import ActivityType, DocumentKind, ParserStatus
from tests.pages import (
    COMDIRECT_BUY,
    FDB_BUY_HEADER,
    FDB_BUY_WITH_REINVEST,
    FDB_COST_INFO,
    FDB_DIVIDEND,
    FDB_DIVIDEND_WITH_TAX,
    FDB_FOOTER,
    FDB_PREAMBLE,
    FDB_SAVINGS_PLAN,
    FDB_SELL_EXCHANGE,
    FDB_SELL_WITH_TAXES,
    FDB_SINGLE_BUY,
)

BERLIN = ZoneInfo("Europe/Berlin")


@pytest.fixture
def parser() -> FondsdepotbankParser:
    return FondsdepotbankParser()


def _parse(parser: FondsdepotbankParser, *pages):
    result = parser.parse_pages(list(pages))
    assert result.status == ParserStatus.SUCCESS
    assert all(a is not None for a in result.activities)
    return result.activities


# ---------------------------------------------------------------------------
# Recognition
# ---------------------------------------------------------------------------


class TestRecognition:
    @pytest.mark.parametrize(
        "page",
        [FDB_SINGLE_BUY, FDB_SELL_WITH_TAXES, FDB_DIVIDEND, FDB_COST_INFO],
    )
    def test_recognizes_own_documents(self, parser: FondsdepotbankParser, page):
        assert parser.can_parse_document([page], "pdf")

    def test_rejects_other_broker(self, parser: FondsdepotbankParser):
        assert not parser.can_parse_document([COMDIRECT_BUY], "pdf")

    def test_requires_every_marker(self, parser: FondsdepotbankParser):
        page = [t for t in FDB_SINGLE_BUY if t != "Depotabrechnung"]
        assert not parser.can_parse_document([page], "pdf")

    @pytest.mark.parametrize(
        ("page", "expected"),
        [
            (FDB_SINGLE_BUY, ActivityType.BUY),
            (FDB_SELL_WITH_TAXES, ActivityType.SELL),
            (FDB_DIVIDEND, ActivityType.DIVIDEND),
            (FDB_COST_INFO, DocumentKind.IGNORED),
            (FDB_PREAMBLE, None),
        ],
    )
    def test_classify(self, parser: FondsdepotbankParser, page, expected):
        assert parser.classify(page) == expected


# ---------------------------------------------------------------------------
# Purchases
# ---------------------------------------------------------------------------


class TestBuy:
    def test_single_buy(self, parser: FondsdepotbankParser):
        (activity,) = _parse(parser, FDB_SINGLE_BUY)
        assert activity.broker == "fondsdepotbank"
        assert activity.type == ActivityType.BUY
        assert activity.company == "Testfond"
        assert activity.isin == "DE1234512345"
        assert activity.wkn == "ABCDEF"
        assert activity.amount == 2380.88
        assert activity.fee == 119.12
        assert activity.tax == 0
        assert activity.shares == 11.867
        assert activity.price == 200.6303
        assert activity.date == dt.date(2018, 8, 22)
        assert activity.datetime == dt.datetime(2018, 8, 22, 0, 0, tzinfo=BERLIN)

    def test_savings_plan_yields_one_activity_per_purchase(self, parser: FondsdepotbankParser):
        activities = _parse(parser, FDB_SAVINGS_PLAN)
        assert len(activities) == 5
        assert all(a.isin == "DE1234512345" for a in activities)
        assert all(a.company == "Testfond" for a in activities)
        assert [a.date for a in activities] == [
            dt.date(2021, 2, 10),
            dt.date(2021, 3, 10),
            dt.date(2021, 4, 12),
            dt.date(2021, 5, 10),
            dt.date(2021, 6, 10),
        ]

        first = activities[0]
        assert first.amount == 42.75
        assert first.fee == 2.25
        assert first.shares == 0.196
        assert first.price == 218.1122

    def test_reinvestment_is_a_purchase(self, parser: FondsdepotbankParser):
        activities = _parse(parser, FDB_BUY_WITH_REINVEST)
        assert len(activities) == 3

        reinvest = activities[2]
        assert reinvest.type == ActivityType.BUY
        assert reinvest.amount == 99.38
        assert reinvest.fee == 0
        assert reinvest.shares == 0.477
        assert reinvest.price == 208.3438
        assert reinvest.date == dt.date(2020, 12, 22)

    def test_multi_page_document(self, parser: FondsdepotbankParser):
        second = (
            FDB_PREAMBLE
            + FDB_BUY_HEADER
            + ["Kauf", "45,00", "EUR", "10.03.2021", "10.03.2021", "0,0000",
               "2,25", "0,199", "0,196", "0,395"]
            + FDB_FOOTER
        )
        activities = _parse(parser, FDB_SINGLE_BUY, second, FDB_PREAMBLE)
        assert len(activities) == 2
        assert activities[1].date == dt.date(2021, 3, 10)

    def test_truncated_purchase_raises(self, parser: FondsdepotbankParser):
        page = FDB_PREAMBLE + FDB_BUY_HEADER + ["Kauf", "45,00", "EUR"] + FDB_FOOTER
        with pytest.raises(ExtractionError):
            parser.parse_pages([page])


# ---------------------------------------------------------------------------
# Sales
# ---------------------------------------------------------------------------


class TestSell:
    def test_sell_with_taxes(self, parser: FondsdepotbankParser):
        (activity,) = _parse(parser, FDB_SELL_WITH_TAXES)
        assert activity.type == ActivityType.SELL
        assert activity.amount == 17372.3
        assert activity.shares == 180.379
        assert activity.price == 96.31
        assert activity.fee == 0
        assert activity.tax == 139.57
        assert activity.date == dt.date(2020, 6, 30)

    def test_sell_for_exchange(self, parser: FondsdepotbankParser):
        (activity,) = _parse(parser, FDB_SELL_EXCHANGE)
        assert activity.amount == 3313.44
        assert activity.shares == 22.496
        assert activity.price == 147.2902
        assert activity.tax == 0
        assert activity.date == dt.date(2020, 5, 11)


# ---------------------------------------------------------------------------
# Distributions
# ---------------------------------------------------------------------------


class TestDividend:
    def test_dividend(self, parser: FondsdepotbankParser):
        (activity,) = _parse(parser, FDB_DIVIDEND)
        assert activity.type == ActivityType.DIVIDEND
        assert activity.company == "Testfond"
        assert activity.amount == 176.99
        assert activity.shares == 176.987
        assert activity.price == 1.0
        assert activity.tax == 0
        assert activity.date == dt.date(2018, 11, 15)

    def test_dividend_with_tax(self, parser: FondsdepotbankParser):
        (activity,) = _parse(parser, FDB_DIVIDEND_WITH_TAX)
        assert activity.tax == 8.55
        assert activity.amount == 176.99

    def test_missing_shares_raises(self, parser: FondsdepotbankParser):
        page = [t for t in FDB_DIVIDEND if not t.startswith("Anteile ")]
        with pytest.raises(ExtractionError):
            parser.parse_pages([page])


class TestIgnored:
    def test_cost_information(self, parser: FondsdepotbankParser):
        result = parser.parse_pages([FDB_COST_INFO])
        assert result.status == ParserStatus.IGNORED_DOCUMENT
        assert result.activities == []


def test_find_isin_wkn_absent():
    assert find_isin_wkn(["Fondsbezeichnung:", "Testfond"]) == (None, None)
