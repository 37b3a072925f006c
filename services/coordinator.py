"""
Refresh coordinator: owns the watchlist state and runs refresh cycles.

One cycle: ensure auth -> fetch every symbol concurrently -> batch-enrich ->
resolve exchange rates when holdings need them -> publish quotes in watchlist
order -> evaluate alerts.

All shared state (quotes, rates, alerts, holdings, watchlist, rotation
cursor) is mutated only while holding the coordinator lock. Network work runs
outside the lock on a snapshot and the results are merged in one step.
"""

import logging
import threading
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Union

from config import Settings, get_settings
from models import AlertDirection, Holding, Preferences, PriceAlert, Quote
from services.alerts import AlertEngine, alerts_for_symbol, find_alert
from services.auth import AuthSession
from services.common import create_http_session, normalize_symbol
from services.currency import (
    SUPPORTED_BASE_CURRENCIES,
    RateResolver,
    build_rate_table,
    needed_currencies,
)
from services.enrichment import BatchEnricher
from services.errors import AuthError, ValidationError
from services.market_hours import any_market_open
from services.notification import default_notifier
from services.portfolio import PortfolioSummary, currency_symbol_for, summarize
from services.quotes import QuoteFetcher
from services.rotation import DisplayRotator

logger = logging.getLogger(__name__)


REFRESH_TIMER = "refresh"
ROTATION_TIMER = "rotation"

# Preferences that can be changed through update_preferences()
_EDITABLE_PREFERENCES = {
    'refresh_interval',
    'rotation_enabled',
    'rotation_speed',
    'pinned_symbol',
    'market_hours_only',
    'show_percent_change',
    'compact_display',
    'base_currency',
}


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QuoteCoordinator:
    """
    Single owner of the live quote state.

    Args:
        http: requests.Session-like object shared by every provider call
        store: Preference store with load() and save(prefs)
        notifier: Alert notifier with notify(title, body)
        settings: Application settings (defaults to get_settings())
        clock: Callable returning the current aware datetime
    """

    def __init__(self, http=None, store=None, notifier=None,
                 settings: Optional[Settings] = None,
                 clock: Optional[Callable[[], datetime]] = None):
        settings = settings or get_settings()
        if store is None:
            from repositories import SqlPreferencesStore
            store = SqlPreferencesStore()

        self.settings = settings
        self.http = http if http is not None else create_http_session(settings)
        self.store = store
        self.clock = clock or _utc_now

        self.auth = AuthSession(self.http, settings.api_base_url, settings.cookie_url, settings.http_timeout)
        self.fetcher = QuoteFetcher(self.http, settings.api_base_url, settings.http_timeout,
                                    max_workers=settings.max_fetch_workers)
        self.enricher = BatchEnricher(self.http, settings.api_base_url, settings.http_timeout)
        self.rate_resolver = RateResolver(self.http, settings.api_base_url, settings.http_timeout)
        self.alert_engine = AlertEngine(notifier if notifier is not None else default_notifier())

        self.prefs: Preferences = store.load()
        self.rotator = DisplayRotator(
            rotation_enabled=self.prefs.rotation_enabled,
            pinned_symbol=self.prefs.pinned_symbol,
        )

        # Published state
        self.quotes: List[Quote] = []
        self.exchange_rates: Dict[str, float] = {}
        self.last_updated: Optional[datetime] = None
        self.error_message: Optional[str] = None
        self.is_loading: bool = False

        # Called with REFRESH_TIMER / ROTATION_TIMER when a cadence setting changes
        self.on_timer_change: Optional[Callable[[str], None]] = None

        self._lock = threading.RLock()
        self._in_flight = False

    # ==================== REFRESH CYCLE ====================

    def refresh(self, timer_triggered: bool = False) -> bool:
        """
        Run one refresh cycle.

        Timer-triggered cycles are skipped while every market is closed and
        market_hours_only is set. A cycle requested while another is still
        running is dropped.

        Returns:
            True if the cycle ran and fetched at least one quote
        """
        with self._lock:
            if self._in_flight:
                logger.info("Refresh already in progress, skipping")
                return False
            if timer_triggered and self.prefs.market_hours_only and not self.any_market_open():
                logger.debug("All markets closed, skipping timed refresh")
                return False

            self._in_flight = True
            self.is_loading = True
            self.error_message = None
            symbols = list(self.prefs.watchlist)
            holdings = dict(self.prefs.holdings)
            base_currency = self.prefs.base_currency

        fired = []
        try:
            ok, fired = self._run_cycle(symbols, holdings, base_currency)
            return ok
        finally:
            with self._lock:
                self._in_flight = False
                self.is_loading = False
            self.alert_engine.dispatch(fired)

    def _run_cycle(self, symbols: List[str], holdings: Dict[str, Holding], base_currency: str):
        try:
            token = self.auth.ensure()
        except AuthError as e:
            logger.error(f"Authentication failed: {e}")
            with self._lock:
                self.error_message = "Authentication failed"
            return False, []

        fetched = self.fetcher.fetch_all(token.crumb, symbols)
        enriched = self.enricher.enrich_quotes(token.crumb, fetched) if fetched else []

        rates = None
        if holdings:
            needed = needed_currencies(enriched, holdings, base_currency)
            if needed:
                resolved = self.rate_resolver.fetch_rates(token.crumb, needed, base_currency)
                rates = build_rate_table(resolved, base_currency)
            else:
                rates = {base_currency: 1.0}

        with self._lock:
            by_symbol = {q.symbol: q for q in enriched}
            # Current watchlist, not the snapshot: symbols removed mid-cycle stay removed
            self.quotes = [by_symbol[s] for s in self.prefs.watchlist if s in by_symbol]
            # Rates resolved against a base that changed mid-cycle are discarded
            if rates is not None and base_currency == self.prefs.base_currency:
                self.exchange_rates = rates
            self.last_updated = self.clock()

            result = self.alert_engine.evaluate(self.prefs.price_alerts, self.quotes)
            if result.changed:
                self.prefs.price_alerts = result.remaining
                self._save()

            if not fetched and symbols:
                self.error_message = "Unable to fetch quotes"
                # Likely an expired crumb; re-authenticate next cycle
                self.auth.invalidate()

        logger.info(f"Refresh complete: {len(self.quotes)} quotes, {len(result.fired)} alerts fired")
        return bool(fetched), result.fired

    # ==================== WATCHLIST ====================

    @property
    def watchlist(self) -> List[str]:
        with self._lock:
            return list(self.prefs.watchlist)

    def add_symbol(self, symbol: str) -> bool:
        """Append a symbol; empty input and duplicates are ignored."""
        normalized = normalize_symbol(symbol)
        with self._lock:
            if not normalized or normalized in self.prefs.watchlist:
                return False
            self.prefs.watchlist.append(normalized)
            self._save()
        logger.info(f"Added {normalized} to watchlist")
        return True

    def remove_symbol(self, symbol: str) -> bool:
        """Remove a symbol together with its quote, alerts and holding."""
        normalized = normalize_symbol(symbol)
        with self._lock:
            if normalized not in self.prefs.watchlist:
                return False
            self.prefs.watchlist = [s for s in self.prefs.watchlist if s != normalized]
            self.quotes = [q for q in self.quotes if q.symbol != normalized]
            self.prefs.price_alerts = [a for a in self.prefs.price_alerts if a.symbol != normalized]
            self.prefs.holdings.pop(normalized, None)
            self._save()
        logger.info(f"Removed {normalized} from watchlist")
        return True

    def move_symbol(self, source: int, destination: int) -> None:
        """Move the symbol at index source to index destination."""
        with self._lock:
            symbol = self.prefs.watchlist.pop(source)
            self.prefs.watchlist.insert(destination, symbol)
            by_symbol = {q.symbol: q for q in self.quotes}
            self.quotes = [by_symbol[s] for s in self.prefs.watchlist if s in by_symbol]
            self._save()

    def validate_symbol(self, symbol: str) -> Quote:
        """
        Check that the provider knows a symbol.

        Returns:
            The fetched quote

        Raises:
            ValidationError: if auth fails or the symbol returns no quote
        """
        normalized = normalize_symbol(symbol)
        try:
            token = self.auth.ensure()
        except AuthError as e:
            raise ValidationError("Unable to validate (auth failed)") from e

        quote = self.fetcher.fetch_one(token.crumb, normalized)
        if quote is None:
            raise ValidationError(f"{normalized} is not a valid ticker symbol",
                                  detail={'symbol': normalized})
        return quote

    def add_validated_symbol(self, symbol: str) -> Quote:
        """
        Validate, add and refresh, as the add-symbol flow does.

        Raises:
            ValidationError: if the symbol is blank, already present or unknown
        """
        normalized = normalize_symbol(symbol)
        if not normalized:
            raise ValidationError("Symbol is empty")
        if normalized in self.watchlist:
            raise ValidationError(f"{normalized} is already in your watchlist")

        quote = self.validate_symbol(normalized)
        self.add_symbol(normalized)
        self.refresh()
        return quote

    # ==================== ALERTS ====================

    @property
    def price_alerts(self) -> List[PriceAlert]:
        with self._lock:
            return list(self.prefs.price_alerts)

    def add_alert(self, symbol: str, target_price: float,
                  direction: Union[AlertDirection, str]) -> PriceAlert:
        """Create an unarmed alert."""
        alert = PriceAlert(
            symbol=normalize_symbol(symbol),
            target_price=float(target_price),
            direction=AlertDirection(direction.lower() if isinstance(direction, str) else direction),
        )
        with self._lock:
            self.prefs.price_alerts.append(alert)
            self._save()
        logger.info(f"Added alert {alert.symbol} {alert.direction_label} {alert.target_price:.2f}")
        return alert

    def remove_alert(self, alert_id: str) -> bool:
        with self._lock:
            alert = find_alert(self.prefs.price_alerts, alert_id)
            if alert is None:
                return False
            self.prefs.price_alerts = [a for a in self.prefs.price_alerts if a is not alert]
            self._save()
        logger.info(f"Removed alert {alert.symbol} {alert.direction_label} {alert.target_price:.2f}")
        return True

    def alerts_for(self, symbol: str) -> List[PriceAlert]:
        with self._lock:
            return alerts_for_symbol(self.prefs.price_alerts, normalize_symbol(symbol))

    # ==================== HOLDINGS ====================

    def set_holding(self, symbol: str, shares: float, cost_basis: float) -> Optional[Holding]:
        """Set a position; zero or negative shares delete it."""
        normalized = normalize_symbol(symbol)
        with self._lock:
            if shares > 0:
                holding = Holding(shares=float(shares), cost_basis=float(cost_basis))
                self.prefs.holdings[normalized] = holding
            else:
                holding = None
                self.prefs.holdings.pop(normalized, None)
            self._save()
        return holding

    def holding_for(self, symbol: str) -> Optional[Holding]:
        with self._lock:
            return self.prefs.holdings.get(normalize_symbol(symbol))

    def portfolio_summary(self) -> PortfolioSummary:
        with self._lock:
            return summarize(self.quotes, self.prefs.holdings, self.exchange_rates, self.prefs.base_currency)

    @property
    def base_currency_symbol(self) -> str:
        return currency_symbol_for(self.prefs.base_currency)

    # ==================== PREFERENCES ====================

    def update_preferences(self, **changes) -> Preferences:
        """
        Change display and cadence settings, save, and restart affected timers.

        A new base currency resets the rate table to {base: 1.0} and, when
        holdings exist, runs a refresh so they are revalued right away.

        Raises:
            ValueError: for unknown keys, non-positive intervals or an
                unsupported base currency
        """
        unknown = set(changes) - _EDITABLE_PREFERENCES
        if unknown:
            raise ValueError(f"Unknown preference(s): {', '.join(sorted(unknown))}")
        for key in ('refresh_interval', 'rotation_speed'):
            if key in changes and not changes[key] > 0:
                raise ValueError(f"{key} must be positive")
        if 'base_currency' in changes:
            changes['base_currency'] = str(changes['base_currency']).upper()
            if changes['base_currency'] not in SUPPORTED_BASE_CURRENCIES:
                raise ValueError(f"Unsupported base currency: {changes['base_currency']}")
        if 'pinned_symbol' in changes:
            changes['pinned_symbol'] = normalize_symbol(changes['pinned_symbol'])

        with self._lock:
            changed = {k for k, v in changes.items() if getattr(self.prefs, k) != v}
            for key in changed:
                setattr(self.prefs, key, changes[key])
            self.rotator.rotation_enabled = self.prefs.rotation_enabled
            self.rotator.pinned_symbol = self.prefs.pinned_symbol
            if 'base_currency' in changed:
                # Old cross rates are quoted against the previous base
                self.exchange_rates = {self.prefs.base_currency: 1.0}
            if changed:
                self._save()
            prefs = self.prefs
            revalue = 'base_currency' in changed and bool(self.prefs.holdings)

        if revalue:
            self.refresh()
        if self.on_timer_change is not None:
            if 'refresh_interval' in changed:
                self.on_timer_change(REFRESH_TIMER)
            if changed & {'rotation_enabled', 'rotation_speed'}:
                self.on_timer_change(ROTATION_TIMER)
        return prefs

    # ==================== DISPLAY ====================

    def any_market_open(self, now: Optional[datetime] = None) -> bool:
        with self._lock:
            return any_market_open(self.quotes, now or self.clock())

    def current_quote(self, now: Optional[datetime] = None) -> Optional[Quote]:
        with self._lock:
            return self.rotator.selected(self.quotes, now or self.clock())

    def advance_display(self, now: Optional[datetime] = None) -> int:
        with self._lock:
            return self.rotator.advance(self.quotes, now or self.clock())

    def ticker_text(self, now: Optional[datetime] = None) -> str:
        quote = self.current_quote(now)
        if quote is None:
            return "Loading..."
        return quote.ticker_text(compact=self.prefs.compact_display,
                                 show_percent=self.prefs.show_percent_change)

    # ==================== INTERNAL ====================

    def _save(self) -> None:
        try:
            self.store.save(self.prefs)
        except Exception as e:
            logger.error(f"Failed to save preferences: {e}")
