"""
Batch enrichment with extended-hours prices, market state and 52-week range.

A single batched quote request covers all symbols. Enrichment is best-effort:
if the request fails the cycle's quotes are published without these fields.
"""

import logging
from dataclasses import dataclass, replace
from typing import Dict, Iterable, List, Optional, Sequence

from models import MarketState, Quote
from services.common import to_number
from services.errors import NetworkError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ExtendedFields:
    """Fields only available from the batched quote endpoint."""
    pre_market_price: Optional[float] = None
    pre_market_change: Optional[float] = None
    post_market_price: Optional[float] = None
    post_market_change: Optional[float] = None
    market_state: Optional[MarketState] = None
    fifty_two_week_high: Optional[float] = None
    fifty_two_week_low: Optional[float] = None


def parse_extended_response(payload: dict) -> Dict[str, ExtendedFields]:
    """Map each result symbol to its extended fields."""
    results = (payload or {}).get("quoteResponse", {}).get("result") or []
    extended: Dict[str, ExtendedFields] = {}
    for row in results:
        symbol = row.get("symbol")
        if not isinstance(symbol, str):
            continue
        extended[symbol.upper()] = ExtendedFields(
            pre_market_price=to_number(row.get("preMarketPrice")),
            pre_market_change=to_number(row.get("preMarketChange")),
            post_market_price=to_number(row.get("postMarketPrice")),
            post_market_change=to_number(row.get("postMarketChange")),
            market_state=MarketState.parse(row.get("marketState")),
            fifty_two_week_high=to_number(row.get("fiftyTwoWeekHigh")),
            fifty_two_week_low=to_number(row.get("fiftyTwoWeekLow")),
        )
    return extended


def enrich(quotes: Iterable[Quote], extended: Dict[str, ExtendedFields]) -> List[Quote]:
    """Merge extended fields into quotes by symbol; unmatched quotes pass through."""
    merged = []
    for quote in quotes:
        extra = extended.get(quote.symbol)
        if extra is None:
            merged.append(quote)
            continue
        merged.append(replace(
            quote,
            pre_market_price=extra.pre_market_price,
            pre_market_change=extra.pre_market_change,
            post_market_price=extra.post_market_price,
            post_market_change=extra.post_market_change,
            market_state=extra.market_state,
            fifty_two_week_high=extra.fifty_two_week_high,
            fifty_two_week_low=extra.fifty_two_week_low,
        ))
    return merged


class BatchEnricher:
    """Fetches extended fields for a list of symbols in one request."""

    def __init__(self, http, api_base_url: str, timeout: float = 10.0):
        self.http = http
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout

    def fetch_extended(self, crumb: str, symbols: Sequence[str]) -> Dict[str, ExtendedFields]:
        """Returns an empty mapping on any failure."""
        if not symbols:
            return {}

        url = f"{self.api_base_url}/v7/finance/quote"
        params = {"symbols": ",".join(symbols), "formatted": "false", "crumb": crumb}
        try:
            response = self.http.get(url, params=params, timeout=self.timeout)
            if response.status_code != 200:
                raise NetworkError(f"batch quote returned HTTP {response.status_code}")
            return parse_extended_response(response.json())
        except Exception as e:
            logger.warning(f"Enrichment skipped this cycle: {e}")
            return {}

    def enrich_quotes(self, crumb: str, quotes: List[Quote]) -> List[Quote]:
        """Fetch and merge in one step."""
        extended = self.fetch_extended(crumb, [q.symbol for q in quotes])
        return enrich(quotes, extended)
