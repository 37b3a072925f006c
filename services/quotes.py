"""
Per-symbol quote retrieval and parsing.

Each symbol is fetched with its own chart request, all of them concurrently.
A failure for one symbol (bad ticker, 401/403, timeout, malformed payload)
only drops that symbol from the cycle.
"""

import json
import logging
from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Any, Dict, List, Optional, Sequence, Union
from urllib.parse import quote as url_quote

from models import Quote
from services.common import to_number
from services.errors import NetworkError, ParseError

logger = logging.getLogger(__name__)


UNAUTHORIZED_STATUSES = (401, 403)


def _text(value: Any) -> Optional[str]:
    if isinstance(value, str) and value:
        return value
    return None


def parse_quote_response(payload: Union[bytes, str, Dict]) -> Quote:
    """
    Decode a chart response into a Quote.

    Args:
        payload: Raw response body or already-decoded JSON

    Returns:
        Quote built from chart.result[0]

    Raises:
        ParseError: if the body is not JSON or symbol, regularMarketPrice or
            chartPreviousClose is missing.
    """
    if isinstance(payload, (bytes, str)):
        try:
            payload = json.loads(payload)
        except ValueError as e:
            raise ParseError(f"Quote payload is not JSON: {e}") from e

    if not isinstance(payload, dict):
        raise ParseError("Quote payload is not an object")

    chart = payload.get("chart")
    results = chart.get("result") if isinstance(chart, dict) else None
    if not isinstance(results, list) or not results or not isinstance(results[0], dict):
        raise ParseError("Quote payload has no chart result")

    result = results[0]
    meta = result.get("meta")
    if not isinstance(meta, dict):
        raise ParseError("Quote payload has no meta block")

    symbol = _text(meta.get("symbol"))
    price = to_number(meta.get("regularMarketPrice"))
    previous_close = to_number(meta.get("chartPreviousClose"))
    if symbol is None or price is None or previous_close is None:
        raise ParseError("Quote payload is missing symbol, price or previous close",
                         detail={'symbol': meta.get("symbol")})

    name = _text(meta.get("longName")) or _text(meta.get("shortName")) or symbol

    # Intraday closes for the sparkline; the provider pads gaps with null
    intraday: List[float] = []
    indicators = result.get("indicators")
    if isinstance(indicators, dict):
        quotes = indicators.get("quote")
        if isinstance(quotes, list) and quotes and isinstance(quotes[0], dict):
            closes = quotes[0].get("close")
            if isinstance(closes, list):
                intraday = [v for v in (to_number(c) for c in closes) if v is not None]

    return Quote(
        symbol=symbol.upper(),
        name=name,
        price=price,
        previous_close=previous_close,
        currency=_text(meta.get("currency")),
        exchange_timezone=_text(meta.get("exchangeTimezoneName")),
        intraday_prices=tuple(intraday),
        day_high=to_number(meta.get("regularMarketDayHigh")),
        day_low=to_number(meta.get("regularMarketDayLow")),
    )


class QuoteFetcher:
    """
    Fetches one-day quotes for many symbols in parallel.
    """

    def __init__(self, http, api_base_url: str, timeout: float = 10.0, max_workers: int = 8):
        self.http = http
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout
        self.max_workers = max_workers

    def chart_url(self, symbol: str) -> str:
        return f"{self.api_base_url}/v8/finance/chart/{url_quote(symbol, safe='')}"

    def request_quote(self, crumb: str, symbol: str) -> Quote:
        """
        Fetch and parse a single symbol.

        Raises:
            NetworkError: on transport failure or a non-2xx status
            ParseError: if the payload lacks required fields
        """
        params = {"interval": "5m", "range": "1d", "crumb": crumb}
        try:
            response = self.http.get(self.chart_url(symbol), params=params, timeout=self.timeout)
        except Exception as e:
            raise NetworkError(f"Request for {symbol} failed: {e}") from e

        if response.status_code in UNAUTHORIZED_STATUSES:
            raise NetworkError(f"{symbol}: HTTP {response.status_code} (unauthorized)",
                               detail={'status': response.status_code})
        if not 200 <= response.status_code < 300:
            raise NetworkError(f"{symbol}: HTTP {response.status_code}",
                               detail={'status': response.status_code})

        return parse_quote_response(response.content)

    def fetch_one(self, crumb: str, symbol: str) -> Optional[Quote]:
        """Fetch a single symbol, returning None instead of raising."""
        try:
            return self.request_quote(crumb, symbol)
        except (NetworkError, ParseError) as e:
            logger.warning(f"No quote for {symbol}: {e}")
            return None
        except Exception as e:
            # One bad payload must not abort the other symbols' fetches
            logger.error(f"Unexpected error fetching {symbol}: {e}")
            return None

    def fetch_all(self, crumb: str, symbols: Sequence[str]) -> List[Quote]:
        """
        Fetch every symbol concurrently and keep only the successes.

        The result order is completion order; callers re-sort to watchlist
        order.
        """
        if not symbols:
            return []

        quotes: List[Quote] = []
        workers = max(1, min(self.max_workers, len(symbols)))
        with ThreadPoolExecutor(max_workers=workers) as executor:
            future_to_symbol = {
                executor.submit(self.fetch_one, crumb, symbol): symbol
                for symbol in symbols
            }
            for future in as_completed(future_to_symbol):
                quote = future.result()
                if quote is not None:
                    quotes.append(quote)

        logger.info(f"Fetched {len(quotes)}/{len(symbols)} quotes")
        return quotes
