"""
Portfolio valuation in the base currency.
Pure functions over quotes, holdings and an exchange-rate table.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Mapping, Optional

from models import Holding, Quote
from services.currency import currency_symbol, normalize_currency

logger = logging.getLogger(__name__)


@dataclass
class HoldingValue:
    """One position valued in both its own and the base currency."""
    symbol: str
    shares: float
    cost_basis: float
    price: float  # Display price, native currency
    currency: str
    exchange_rate: float
    value: float  # Native currency
    cost: float  # Native currency
    value_base: float
    cost_base: float

    @property
    def gain(self) -> float:
        return self.value - self.cost

    @property
    def gain_percent(self) -> float:
        return (self.gain / self.cost * 100) if self.cost > 0 else 0.0

    @property
    def gain_base(self) -> float:
        return self.value_base - self.cost_base


@dataclass
class PortfolioSummary:
    """Totals for all held instruments in the watchlist."""
    base_currency: str
    total_value: float
    total_cost: float
    total_gain: float
    total_gain_percent: float
    holdings: List[HoldingValue] = field(default_factory=list)
    unresolved_currencies: List[str] = field(default_factory=list)  # Valued at the 1.0 fallback


def rate_to_base(quote: Quote, rates: Mapping[str, float], base_currency: str) -> float:
    """
    Multiplier from a quote's currency to the base currency.

    Returns 1.0 for the base currency itself and for any rate that could not
    be resolved; the latter is an approximation, not a conversion.
    """
    currency = normalize_currency(quote.currency)
    if currency == base_currency:
        return 1.0
    return rates.get(currency, 1.0)


def _held(quotes: Iterable[Quote], holdings: Mapping[str, Holding]):
    for quote in quotes:
        holding = holdings.get(quote.symbol)
        if holding is not None:
            yield quote, holding


def total_value(quotes: Iterable[Quote], holdings: Mapping[str, Holding],
                rates: Mapping[str, float], base_currency: str) -> float:
    return sum(
        quote.display_price * holding.shares * rate_to_base(quote, rates, base_currency)
        for quote, holding in _held(quotes, holdings)
    )


def total_cost(quotes: Iterable[Quote], holdings: Mapping[str, Holding],
               rates: Mapping[str, float], base_currency: str) -> float:
    return sum(
        holding.cost_basis * holding.shares * rate_to_base(quote, rates, base_currency)
        for quote, holding in _held(quotes, holdings)
    )


def total_gain(quotes: Iterable[Quote], holdings: Mapping[str, Holding],
               rates: Mapping[str, float], base_currency: str) -> float:
    quotes = list(quotes)
    return (total_value(quotes, holdings, rates, base_currency)
            - total_cost(quotes, holdings, rates, base_currency))


def total_gain_percent(quotes: Iterable[Quote], holdings: Mapping[str, Holding],
                       rates: Mapping[str, float], base_currency: str) -> float:
    quotes = list(quotes)
    cost = total_cost(quotes, holdings, rates, base_currency)
    if cost <= 0:
        return 0.0
    return total_gain(quotes, holdings, rates, base_currency) / cost * 100


def holding_value(quote: Quote, holding: Holding,
                  rates: Mapping[str, float], base_currency: str) -> HoldingValue:
    rate = rate_to_base(quote, rates, base_currency)
    value = quote.display_price * holding.shares
    cost = holding.cost_basis * holding.shares
    return HoldingValue(
        symbol=quote.symbol,
        shares=holding.shares,
        cost_basis=holding.cost_basis,
        price=quote.display_price,
        currency=normalize_currency(quote.currency),
        exchange_rate=rate,
        value=value,
        cost=cost,
        value_base=value * rate,
        cost_base=cost * rate,
    )


def summarize(quotes: Iterable[Quote], holdings: Mapping[str, Holding],
              rates: Mapping[str, float], base_currency: str) -> PortfolioSummary:
    """
    Value every held instrument and total the portfolio.

    Args:
        quotes: Published quotes (only held symbols count)
        holdings: Symbol -> Holding
        rates: Currency -> units of base per unit
        base_currency: Currency of the totals

    Returns:
        PortfolioSummary with per-holding rows in quote order
    """
    quotes = list(quotes)
    rows = [holding_value(q, h, rates, base_currency) for q, h in _held(quotes, holdings)]
    value = sum(r.value_base for r in rows)
    cost = sum(r.cost_base for r in rows)
    gain = value - cost
    return PortfolioSummary(
        base_currency=base_currency,
        total_value=value,
        total_cost=cost,
        total_gain=gain,
        total_gain_percent=(gain / cost * 100) if cost > 0 else 0.0,
        holdings=rows,
        unresolved_currencies=unresolved_currencies(quotes, holdings, rates, base_currency),
    )


def currency_symbol_for(base_currency: str) -> str:
    return currency_symbol(base_currency)


def unresolved_currencies(quotes: Iterable[Quote], holdings: Mapping[str, Holding],
                          rates: Mapping[str, float], base_currency: str) -> List[str]:
    """Held currencies valued at the 1.0 fallback because no rate is known."""
    missing: Dict[str, None] = {}
    for quote, _ in _held(quotes, holdings):
        currency = normalize_currency(quote.currency)
        if currency != base_currency and currency not in rates:
            missing[currency] = None
    return list(missing)
