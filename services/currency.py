"""
Currency normalization and cross-rate resolution.

Some exchanges quote in 1/100 of the major unit (London in pence, Tel Aviv in
agorot). Those prices are divided by 100 for display and mapped to their ISO
major-unit code before any exchange-rate lookup.
"""

import logging
from typing import Dict, Iterable, List, Mapping, Optional, Set

from services.common import to_number
from services.errors import NetworkError

logger = logging.getLogger(__name__)


SUB_UNIT_DIVISOR = 100.0
DEFAULT_CURRENCY = "USD"

# Base currencies offered for portfolio conversion
SUPPORTED_BASE_CURRENCIES = ["USD", "GBP", "EUR", "JPY", "CAD", "AUD", "CHF"]

_CURRENCY_SYMBOLS = {
    "GBP": "£",
    "EUR": "€",
    "JPY": "¥",
    "CNY": "¥",
    "CNH": "¥",
    "HKD": "HK$",
    "CHF": "CHF ",
    "CAD": "C$",
    "AUD": "A$",
    "INR": "₹",
    "KRW": "₩",
}


def is_sub_unit_currency(currency: Optional[str]) -> bool:
    """
    Check whether a provider currency code is quoted in hundredths.

    "GBp" is case-sensitive (upper-casing it would read as pounds), GBX is
    accepted in any case, and ILA is the agorot code.
    """
    if not currency:
        return False
    return currency == "GBp" or currency.upper() == "GBX" or currency == "ILA"


def sub_unit_divisor(currency: Optional[str]) -> float:
    """Divisor that turns a raw provider price into major units."""
    return SUB_UNIT_DIVISOR if is_sub_unit_currency(currency) else 1.0


def normalize_currency(currency: Optional[str]) -> str:
    """
    Map a provider currency code to its ISO major-unit code.

    Examples:
        >>> normalize_currency("GBp")
        'GBP'
        >>> normalize_currency("ILA")
        'ILS'
        >>> normalize_currency(None)
        'USD'
    """
    raw = currency or DEFAULT_CURRENCY
    if raw == "GBp" or raw.upper() == "GBX":
        return "GBP"
    if raw == "ILA":
        return "ILS"
    return raw.upper()


def currency_symbol(currency: Optional[str]) -> str:
    """Display symbol for a currency code, "$" when unknown."""
    if not currency:
        return "$"
    if currency == "GBp":
        return "£"
    return _CURRENCY_SYMBOLS.get(currency.upper(), "$")


def rate_pair_symbol(source: str, base: str) -> str:
    """Provider symbol for a cross rate, e.g. ("GBP", "USD") -> "GBPUSD=X"."""
    return f"{source}{base}=X"


def needed_currencies(quotes: Iterable, holdings: Mapping, base_currency: str) -> Set[str]:
    """
    Normalized currencies of held instruments that differ from the base.

    Only quotes with a holding contribute; the result is deduplicated.
    """
    currencies = {
        normalize_currency(quote.currency)
        for quote in quotes
        if quote.symbol in holdings
    }
    return {c for c in currencies if c != base_currency}


def parse_rate_response(payload: dict) -> Dict[str, float]:
    """
    Extract rates from a batched quote response.

    The source currency is the first three characters of each result symbol
    ("GBPUSD=X" -> "GBP"); entries without a numeric price are skipped.
    """
    results = (payload or {}).get("quoteResponse", {}).get("result") or []
    rates: Dict[str, float] = {}
    for row in results:
        symbol = row.get("symbol")
        price = to_number(row.get("regularMarketPrice"))
        if not isinstance(symbol, str) or price is None:
            continue
        rates[symbol[:3]] = price
    return rates


def build_rate_table(resolved: Mapping[str, float], base_currency: str) -> Dict[str, float]:
    """Rate table with the base currency pinned to 1.0."""
    table = dict(resolved)
    table[base_currency] = 1.0
    return table


class RateResolver:
    """
    Resolves cross rates against the base currency with one batched request.
    """

    def __init__(self, http, api_base_url: str, timeout: float = 10.0):
        self.http = http
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout

    def fetch_rates(self, crumb: str, currencies: Iterable[str], base_currency: str) -> Dict[str, float]:
        """
        Fetch rates for the given source currencies.

        Returns an empty mapping on any failure; callers fall back to 1.0 for
        anything unresolved.
        """
        sources: List[str] = sorted(set(currencies) - {base_currency})
        if not sources:
            return {}

        pairs = ",".join(rate_pair_symbol(src, base_currency) for src in sources)
        url = f"{self.api_base_url}/v7/finance/quote"
        params = {"symbols": pairs, "formatted": "false", "crumb": crumb}

        try:
            response = self.http.get(url, params=params, timeout=self.timeout)
            if response.status_code != 200:
                raise NetworkError(f"rate request returned HTTP {response.status_code}")
            rates = parse_rate_response(response.json())
        except Exception as e:
            logger.warning(f"Error fetching exchange rates for {pairs}: {e}")
            return {}

        missing = [src for src in sources if src not in rates]
        if missing:
            logger.warning(f"No exchange rate for {', '.join(missing)} -> {base_currency}; using 1.0")
        return rates
