from __future__ import annotations

import pytest

from conftest import (
    SATURDAY_NOON_NY,
    FakeResponse,
    chart_payload,
    v7_payload,
)
from models import AlertDirection, Holding, Preferences
from repositories import MemoryPreferencesStore
from services.coordinator import REFRESH_TIMER, ROTATION_TIMER, QuoteCoordinator
from services.errors import ValidationError


PRICES = {
    "AAPL": (185.0, 183.0, "USD", "America/New_York"),
    "MSFT": (400.0, 398.0, "USD", "America/New_York"),
    "VOD.L": (7000.0, 6900.0, "GBp", "Europe/London"),
    "NVDA": (900.0, 880.0, "USD", "America/New_York"),
}


def route_quotes(http, prices=PRICES):
    for symbol, (price, prev, currency, tz) in prices.items():
        http.route(f"/v8/finance/chart/{symbol}",
                   FakeResponse(200, chart_payload(symbol, price, prev, currency=currency, timezone_name=tz)))
    return http


def make_coordinator(http, notifier, settings, clock, **prefs):
    store = MemoryPreferencesStore(Preferences(**prefs))
    return QuoteCoordinator(http=http, store=store, notifier=notifier, settings=settings, clock=clock)


def test_refresh_publishes_quotes_in_watchlist_order(http, notifier, settings, clock):
    route_quotes(http)
    coordinator = make_coordinator(http, notifier, settings, clock, watchlist=["VOD.L", "MSFT", "AAPL"])

    assert coordinator.refresh()

    assert [q.symbol for q in coordinator.quotes] == ["VOD.L", "MSFT", "AAPL"]
    assert coordinator.last_updated == clock()
    assert coordinator.error_message is None
    assert not coordinator.is_loading


def test_failed_symbols_are_omitted(http, notifier, settings, clock):
    route_quotes(http)
    http.route("/v8/finance/chart/MSFT", FakeResponse(404, text="Not Found"))
    coordinator = make_coordinator(http, notifier, settings, clock, watchlist=["AAPL", "MSFT"])

    assert coordinator.refresh()
    assert [q.symbol for q in coordinator.quotes] == ["AAPL"]


def test_refresh_merges_extended_fields(http, notifier, settings, clock):
    route_quotes(http)
    http.route("/v7/finance/quote", FakeResponse(200, v7_payload([
        {"symbol": "AAPL", "marketState": "POST", "postMarketPrice": 186.5},
    ])))
    coordinator = make_coordinator(http, notifier, settings, clock, watchlist=["AAPL"])

    coordinator.refresh()

    assert coordinator.quotes[0].post_market_price == 186.5


def test_nothing_fetched_sets_error_and_invalidates_auth(http, notifier, settings, clock):
    coordinator = make_coordinator(http, notifier, settings, clock, watchlist=["AAPL"])

    assert not coordinator.refresh()

    assert coordinator.error_message == "Unable to fetch quotes"
    assert coordinator.auth.token is None


def test_auth_failure_keeps_previous_quotes(http, notifier, settings, clock):
    route_quotes(http)
    coordinator = make_coordinator(http, notifier, settings, clock, watchlist=["AAPL"])
    coordinator.refresh()
    coordinator.auth.invalidate()
    http.route("/v1/test/getcrumb", FakeResponse(503, text="unavailable"))

    assert not coordinator.refresh()

    assert coordinator.error_message == "Authentication failed"
    assert [q.symbol for q in coordinator.quotes] == ["AAPL"]


def test_timer_refresh_skipped_when_markets_closed(http, notifier, settings):
    route_quotes(http)
    coordinator = make_coordinator(http, notifier, settings, lambda: SATURDAY_NOON_NY, watchlist=["AAPL"])

    assert not coordinator.refresh(timer_triggered=True)
    assert http.calls == []

    # Manual refreshes always run
    assert coordinator.refresh()


def test_timer_refresh_runs_when_market_hours_only_is_off(http, notifier, settings):
    route_quotes(http)
    coordinator = make_coordinator(http, notifier, settings, lambda: SATURDAY_NOON_NY,
                                   watchlist=["AAPL"], market_hours_only=False)
    assert coordinator.refresh(timer_triggered=True)


def test_overlapping_refresh_is_skipped(http, notifier, settings, clock):
    nested = []

    def chart(url, params):
        nested.append(coordinator.refresh())
        return FakeResponse(200, chart_payload("AAPL", 185.0, 183.0))

    http.route("/v8/finance/chart/AAPL", chart)
    coordinator = make_coordinator(http, notifier, settings, clock, watchlist=["AAPL"])

    assert coordinator.refresh()
    assert nested == [False]


def test_add_symbol_normalizes_and_ignores_duplicates(http, notifier, settings, clock):
    coordinator = make_coordinator(http, notifier, settings, clock, watchlist=["AAPL"])

    assert coordinator.add_symbol("  nvda ")
    assert not coordinator.add_symbol("NVDA")
    assert not coordinator.add_symbol("   ")

    assert coordinator.watchlist == ["AAPL", "NVDA"]
    assert coordinator.store.load().watchlist == ["AAPL", "NVDA"]


def test_remove_symbol_prunes_quote_alerts_and_holding(http, notifier, settings, clock):
    route_quotes(http)
    coordinator = make_coordinator(http, notifier, settings, clock, watchlist=["AAPL", "MSFT"])
    coordinator.refresh()
    coordinator.add_alert("MSFT", 500.0, "above")
    keep = coordinator.add_alert("AAPL", 100.0, "below")
    coordinator.set_holding("MSFT", 10, 300.0)

    assert coordinator.remove_symbol("msft")

    assert coordinator.watchlist == ["AAPL"]
    assert [q.symbol for q in coordinator.quotes] == ["AAPL"]
    assert coordinator.price_alerts == [keep]
    assert coordinator.holding_for("MSFT") is None
    assert not coordinator.remove_symbol("MSFT")


def test_move_symbol_reorders_quotes(http, notifier, settings, clock):
    route_quotes(http)
    coordinator = make_coordinator(http, notifier, settings, clock, watchlist=["AAPL", "MSFT", "NVDA"])
    coordinator.refresh()

    coordinator.move_symbol(2, 0)

    assert coordinator.watchlist == ["NVDA", "AAPL", "MSFT"]
    assert [q.symbol for q in coordinator.quotes] == ["NVDA", "AAPL", "MSFT"]


def test_add_validated_symbol(http, notifier, settings, clock):
    route_quotes(http)
    coordinator = make_coordinator(http, notifier, settings, clock, watchlist=["AAPL"])

    quote = coordinator.add_validated_symbol("nvda")

    assert quote.symbol == "NVDA"
    assert coordinator.watchlist == ["AAPL", "NVDA"]
    assert [q.symbol for q in coordinator.quotes] == ["AAPL", "NVDA"]


def test_add_validated_symbol_rejects_duplicates_and_unknowns(http, notifier, settings, clock):
    route_quotes(http)
    coordinator = make_coordinator(http, notifier, settings, clock, watchlist=["AAPL"])

    with pytest.raises(ValidationError, match="already in your watchlist"):
        coordinator.add_validated_symbol("aapl")
    with pytest.raises(ValidationError, match="ZZZZ is not a valid ticker symbol"):
        coordinator.add_validated_symbol("zzzz")
    assert coordinator.watchlist == ["AAPL"]


def test_validate_symbol_reports_auth_failure(http, notifier, settings, clock):
    http.route("/v1/test/getcrumb", FakeResponse(200, text="<html>blocked</html>"))
    coordinator = make_coordinator(http, notifier, settings, clock)

    with pytest.raises(ValidationError, match="auth failed"):
        coordinator.validate_symbol("AAPL")


def test_alert_arms_then_fires_on_later_cycle(http, notifier, settings, clock):
    route_quotes(http)
    coordinator = make_coordinator(http, notifier, settings, clock, watchlist=["AAPL"])
    alert = coordinator.add_alert("AAPL", 180.0, AlertDirection.ABOVE)

    coordinator.refresh()
    assert notifier.sent == []
    assert coordinator.store.load().price_alerts[0].armed

    coordinator.refresh()
    assert notifier.sent == [
        ("AAPL Price Alert", "AAPL is now $185.00, above your target of $180.00"),
    ]
    assert coordinator.price_alerts == []
    assert coordinator.store.load().price_alerts == []
    assert coordinator.remove_alert(alert.id) is False


def test_portfolio_converts_held_currencies(http, notifier, settings, clock):
    route_quotes(http)
    http.route("/v7/finance/quote", lambda url, params: FakeResponse(200, v7_payload(
        [{"symbol": "GBPUSD=X", "regularMarketPrice": 1.25}]
        if "GBPUSD=X" in params.get("symbols", "") else []
    )))
    coordinator = make_coordinator(
        http, notifier, settings, clock,
        watchlist=["AAPL", "VOD.L"],
        holdings={"AAPL": Holding(10, 150.0), "VOD.L": Holding(100, 60.0)},
    )

    coordinator.refresh()
    summary = coordinator.portfolio_summary()

    assert coordinator.exchange_rates == {"GBP": 1.25, "USD": 1.0}
    # 10 * 185 + 100 * 70.00 * 1.25
    assert summary.total_value == pytest.approx(1850.0 + 8750.0)
    assert summary.total_cost == pytest.approx(1500.0 + 7500.0)


def test_single_currency_portfolio_makes_no_rate_request(http, notifier, settings, clock):
    route_quotes(http)
    coordinator = make_coordinator(http, notifier, settings, clock,
                                   watchlist=["AAPL"], holdings={"AAPL": Holding(1, 100.0)})
    coordinator.refresh()

    rate_calls = [c for c in http.calls_to("/v7/finance/quote") if "=X" in c[1].get("symbols", "")]
    assert rate_calls == []
    assert coordinator.exchange_rates == {"USD": 1.0}


def test_set_holding_with_zero_shares_removes_it(http, notifier, settings, clock):
    coordinator = make_coordinator(http, notifier, settings, clock)
    coordinator.set_holding("aapl", 5, 100.0)
    assert coordinator.holding_for("AAPL") == Holding(5.0, 100.0)

    assert coordinator.set_holding("AAPL", 0, 100.0) is None
    assert coordinator.holding_for("AAPL") is None


def test_update_preferences_restarts_affected_timers(http, notifier, settings, clock):
    coordinator = make_coordinator(http, notifier, settings, clock)
    restarted = []
    coordinator.on_timer_change = restarted.append

    coordinator.update_preferences(refresh_interval=30.0)
    coordinator.update_preferences(rotation_enabled=False, compact_display=True)
    coordinator.update_preferences(compact_display=True)

    assert restarted == [REFRESH_TIMER, ROTATION_TIMER]
    assert coordinator.rotator.rotation_enabled is False
    assert coordinator.store.load().refresh_interval == 30.0


@pytest.mark.parametrize("changes", [
    {"refresh_interval": 0},
    {"rotation_speed": -1},
    {"base_currency": "XYZ"},
    {"watchlist": ["AAPL"]},
])
def test_update_preferences_rejects_bad_values(http, notifier, settings, clock, changes):
    coordinator = make_coordinator(http, notifier, settings, clock)
    with pytest.raises(ValueError):
        coordinator.update_preferences(**changes)


def test_ticker_text_follows_display_preferences(http, notifier, settings, clock):
    route_quotes(http)
    coordinator = make_coordinator(http, notifier, settings, clock, watchlist=["AAPL"])
    assert coordinator.ticker_text() == "Loading..."

    coordinator.refresh()
    assert coordinator.ticker_text() == "AAPL $185.00 ▲1.1%"

    coordinator.update_preferences(compact_display=True, show_percent_change=False)
    assert coordinator.ticker_text() == "AAPL 185.00 ▲"


def _rate_route(table):
    def respond(url, params):
        pairs = params.get("symbols", "").split(",")
        return FakeResponse(200, v7_payload([
            {"symbol": pair, "regularMarketPrice": table[pair]} for pair in pairs if pair in table
        ]))
    return respond


def test_base_currency_change_revalues_holdings(http, notifier, settings, clock):
    route_quotes(http)
    http.route("/v7/finance/quote", _rate_route({"GBPUSD=X": 1.25, "USDGBP=X": 0.8}))
    coordinator = make_coordinator(
        http, notifier, settings, clock,
        watchlist=["AAPL", "VOD.L"],
        holdings={"AAPL": Holding(10, 150.0), "VOD.L": Holding(100, 60.0)},
    )
    coordinator.refresh()
    assert coordinator.exchange_rates == {"GBP": 1.25, "USD": 1.0}

    coordinator.update_preferences(base_currency="gbp")

    assert coordinator.exchange_rates == {"USD": 0.8, "GBP": 1.0}
    # 10 * 185 * 0.8 + 100 * 70.00
    assert coordinator.portfolio_summary().total_value == pytest.approx(1480.0 + 7000.0)
    assert coordinator.base_currency_symbol == "£"


def test_base_currency_change_never_keeps_old_table(http, notifier, settings, clock):
    route_quotes(http)
    http.route("/v7/finance/quote", _rate_route({"GBPUSD=X": 1.25}))
    coordinator = make_coordinator(
        http, notifier, settings, clock,
        watchlist=["AAPL", "VOD.L"],
        holdings={"AAPL": Holding(10, 150.0), "VOD.L": Holding(100, 60.0)},
    )
    coordinator.refresh()

    coordinator.update_preferences(base_currency="GBP")

    # USDGBP=X is unavailable: only the base entry remains and USD is flagged
    assert coordinator.exchange_rates == {"GBP": 1.0}
    assert coordinator.portfolio_summary().unresolved_currencies == ["USD"]


def test_rates_from_a_cycle_under_the_old_base_are_discarded(http, notifier, settings, clock):
    route_quotes(http)

    def rates(url, params):
        if "=X" in params.get("symbols", ""):
            # Base changes while this cycle is resolving USD rates
            coordinator.prefs.base_currency = "GBP"
            coordinator.exchange_rates = {"GBP": 1.0}
        return _rate_route({"GBPUSD=X": 1.25})(url, params)

    http.route("/v7/finance/quote", rates)
    coordinator = make_coordinator(
        http, notifier, settings, clock,
        watchlist=["VOD.L"], holdings={"VOD.L": Holding(100, 60.0)},
    )

    coordinator.refresh()

    assert coordinator.exchange_rates == {"GBP": 1.0}
