"""
Symbol search for add-symbol autocomplete, with a debounce.

Each new query cancels the pending one and is scheduled after a quiet period.
Only the most recent query's results are delivered.
"""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional

from apscheduler.jobstores.base import JobLookupError

from services.errors import NetworkError

logger = logging.getLogger(__name__)


SEARCH_JOB_ID = "symbol_search"
MAX_RESULTS = 6


@dataclass(frozen=True)
class SymbolSearchResult:
    symbol: str
    name: str
    exchange: str = ""


def parse_search_response(payload: dict) -> List[SymbolSearchResult]:
    """Entries need a symbol and a short or long name; exchange is optional."""
    quotes = (payload or {}).get("quotes") or []
    results = []
    for row in quotes:
        symbol = row.get("symbol")
        name = row.get("shortname") or row.get("longname")
        if not isinstance(symbol, str) or not isinstance(name, str):
            continue
        results.append(SymbolSearchResult(symbol=symbol, name=name, exchange=row.get("exchDisp") or ""))
    return results


class SymbolSearchClient:
    """Runs a single search request against the provider."""

    def __init__(self, http, api_base_url: str, timeout: float = 10.0):
        self.http = http
        self.api_base_url = api_base_url.rstrip("/")
        self.timeout = timeout

    def search(self, query: str) -> List[SymbolSearchResult]:
        """Returns [] for blank queries and on any failure."""
        trimmed = (query or "").strip()
        if not trimmed:
            return []

        url = f"{self.api_base_url}/v1/finance/search"
        params = {"q": trimmed, "quotesCount": MAX_RESULTS, "newsCount": 0, "listsCount": 0}
        try:
            response = self.http.get(url, params=params, timeout=self.timeout)
            if response.status_code != 200:
                raise NetworkError(f"search returned HTTP {response.status_code}")
            return parse_search_response(response.json())
        except Exception as e:
            logger.warning(f"Symbol search for {trimmed!r} failed: {e}")
            return []


class DebouncedSearch:
    """
    Search-as-you-type driver.

    Args:
        client: SymbolSearchClient (or anything with search(query))
        scheduler: Running APScheduler scheduler that executes the search job
        on_results: Callback receiving the latest query's results
        delay: Quiet period in seconds before a query is sent
    """

    def __init__(self, client, scheduler, on_results: Callable[[List[SymbolSearchResult]], None],
                 delay: float = 0.3):
        self.client = client
        self.scheduler = scheduler
        self.on_results = on_results
        self.delay = delay
        self._generation = 0
        self._lock = threading.RLock()

    def submit(self, query: str) -> int:
        """Schedule a search for query, superseding any earlier one."""
        with self._lock:
            self._generation += 1
            generation = self._generation

        if not (query or "").strip():
            self.cancel(bump=False)
            self.on_results([])
            return generation

        self.scheduler.add_job(
            self._execute,
            trigger='date',
            run_date=datetime.now() + timedelta(seconds=self.delay),
            args=[generation, query],
            id=SEARCH_JOB_ID,
            name='Symbol Search',
            replace_existing=True,
        )
        return generation

    def cancel(self, bump: bool = True) -> None:
        """Drop the pending search; a search already running is discarded."""
        if bump:
            with self._lock:
                self._generation += 1
        try:
            self.scheduler.remove_job(SEARCH_JOB_ID)
        except JobLookupError:
            pass

    def is_current(self, generation: int) -> bool:
        with self._lock:
            return generation == self._generation

    def _execute(self, generation: int, query: str) -> Optional[List[SymbolSearchResult]]:
        if not self.is_current(generation):
            return None
        results = self.client.search(query)
        # A newer keystroke may have arrived while the request was in flight
        with self._lock:
            if generation != self._generation:
                return None
            self.on_results(results)
        return results
