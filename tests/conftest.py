"""Shared fixtures for tests — synthetic statement pages, no real documents."""

from __future__ import annotations

from pathlib import Path

import pytest

from brokerimport.registry import clear_cache
from tests.pages import COMDIRECT_BUY, FDB_SINGLE_BUY

# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _fresh_registry():
    """Handler instances are cached per process; start every test clean."""
    clear_cache()
    yield
    clear_cache()


@pytest.fixture
def comdirect_buy() -> list[list[str]]:
    return [list(COMDIRECT_BUY)]


@pytest.fixture
def fdb_single_buy() -> list[list[str]]:
    return [list(FDB_SINGLE_BUY)]


@pytest.fixture
def unknown_document() -> list[list[str]]:
    return [["Musterbank AG", "Wertpapierkauf", "Geschäftstag : 01.02.2020"]]


@pytest.fixture
def comdirect_buy_pdf(tmp_path: Path) -> Path:
    """Create a single-page comdirect purchase PDF using fpdf2."""
    from fpdf import FPDF

    lines = [
        "comdirect bank AG",
        "Wertpapierkauf",
        "Geschäftstag : 07.08.2020 Ausführungsplatz : XETRA",
        "Handelszeit : 09:04 Uhr (MEZ/MESZ)",
        "Wertpapier-Bezeichnung WPKNR/ISIN",
        "Vanguard FTSE All-World U.ETF A1JX52",
        "Registered Shares USD Dis.oN IE00B3RBWM25",
        "Nennwert Zum Kurs von",
        "St. 3,00 EUR 87,88",
        "Kurswert : EUR 263,64",
        "IBAN Valuta Zu Ihren Lasten vor Steuern",
        "DE12 3456 7890 1234 5678 90 EUR 11.08.2020 EUR 273,54",
    ]

    pdf = FPDF()
    pdf.add_page()
    pdf.set_font("Helvetica", size=11)
    pdf.multi_cell(0, 10, text="\n".join(lines))

    p = tmp_path / "comdirect_buy.pdf"
    pdf.output(str(p))
    return p
