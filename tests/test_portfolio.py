from __future__ import annotations

import pytest

from models import Holding, Quote
from services.portfolio import (
    rate_to_base,
    summarize,
    total_gain_percent,
    total_value,
    unresolved_currencies,
)


AAPL = Quote("AAPL", "Apple", 200.0, 190.0, currency="USD")
VOD = Quote("VOD.L", "Vodafone", 7000.0, 6900.0, currency="GBp")
SAP = Quote("SAP.DE", "SAP", 100.0, 99.0, currency="EUR")


def test_single_currency_totals():
    holdings = {"AAPL": Holding(shares=10, cost_basis=150.0)}
    summary = summarize([AAPL], holdings, {"USD": 1.0}, "USD")

    assert summary.total_value == pytest.approx(2000.0)
    assert summary.total_cost == pytest.approx(1500.0)
    assert summary.total_gain == pytest.approx(500.0)
    assert summary.total_gain_percent == pytest.approx(33.333, abs=0.001)


def test_pence_holding_converted_to_base():
    # 100 shares at 70.00 GBP, cost 60.00 GBP, GBP->USD 1.25
    holdings = {"VOD.L": Holding(shares=100, cost_basis=60.0)}
    summary = summarize([VOD], holdings, {"GBP": 1.25, "USD": 1.0}, "USD")

    row = summary.holdings[0]
    assert row.price == pytest.approx(70.0)
    assert row.currency == "GBP"
    assert row.value == pytest.approx(7000.0)
    assert row.value_base == pytest.approx(8750.0)
    assert summary.total_cost == pytest.approx(7500.0)
    assert row.gain_percent == pytest.approx(16.667, abs=0.001)


def test_unheld_quotes_do_not_count():
    holdings = {"AAPL": Holding(shares=1, cost_basis=100.0)}
    assert total_value([AAPL, VOD, SAP], holdings, {}, "USD") == pytest.approx(200.0)


def test_zero_cost_gives_zero_percent():
    holdings = {"AAPL": Holding(shares=5, cost_basis=0.0)}
    assert total_gain_percent([AAPL], holdings, {}, "USD") == 0.0
    assert summarize([AAPL], holdings, {}, "USD").holdings[0].gain_percent == 0.0


def test_missing_rate_falls_back_to_one():
    holdings = {"SAP.DE": Holding(shares=2, cost_basis=90.0)}

    assert rate_to_base(SAP, {}, "USD") == 1.0
    assert total_value([SAP], holdings, {}, "USD") == pytest.approx(200.0)
    assert unresolved_currencies([SAP], holdings, {}, "USD") == ["EUR"]
    assert unresolved_currencies([SAP], holdings, {"EUR": 1.08}, "USD") == []


def test_base_currency_rate_is_always_one():
    assert rate_to_base(AAPL, {"USD": 3.0}, "USD") == 1.0


def test_summary_lists_currencies_without_a_rate():
    holdings = {
        "AAPL": Holding(shares=1, cost_basis=100.0),
        "VOD.L": Holding(shares=10, cost_basis=60.0),
        "SAP.DE": Holding(shares=2, cost_basis=90.0),
    }

    summary = summarize([AAPL, VOD, SAP], holdings, {"GBP": 1.25, "USD": 1.0}, "USD")

    assert summary.unresolved_currencies == ["EUR"]
    assert summarize([AAPL], holdings, {"USD": 1.0}, "USD").unresolved_currencies == []
