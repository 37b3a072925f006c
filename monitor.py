"""
Background quote monitor using APScheduler.
Refreshes the watchlist periodically, rotates the displayed ticker and sends
price alerts.
"""

import sys
import time
import logging
from dotenv import load_dotenv

from config import get_settings
from db_engine import init_db
from repositories import MemoryPreferencesStore, SqlPreferencesStore
from services.common import create_http_session
from services.coordinator import QuoteCoordinator
from services.scheduler import TickerScheduler
from services.search import SymbolSearchClient

# Load environment variables
load_dotenv()

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    logging.basicConfig(
        level=getattr(logging, get_settings().log_level.upper(), logging.INFO),
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


def build_coordinator(persist: bool = True) -> QuoteCoordinator:
    """Create a coordinator backed by the settings database (or memory)."""
    if persist:
        init_db()
        store = SqlPreferencesStore()
    else:
        store = MemoryPreferencesStore()
    return QuoteCoordinator(store=store)


def format_report(coordinator: QuoteCoordinator) -> str:
    """Plain-text table of the watchlist and portfolio totals."""
    lines = []
    for quote in coordinator.quotes:
        arrow = "▲" if quote.is_positive else "▼"
        lines.append(
            f"{quote.symbol:<10} {quote.currency_symbol}{quote.display_price:>10.2f} "
            f"{arrow} {abs(quote.display_change):.2f} ({abs(quote.change_percent):.1f}%)  {quote.name}"
        )

    if coordinator.error_message:
        lines.append(f"! {coordinator.error_message}")

    summary = coordinator.portfolio_summary()
    if summary.holdings:
        cur = coordinator.base_currency_symbol
        lines.append("")
        lines.append(
            f"Portfolio: {cur}{summary.total_value:,.2f} "
            f"(cost {cur}{summary.total_cost:,.2f}, "
            f"gain {cur}{summary.total_gain:,.2f} / {summary.total_gain_percent:.2f}%)"
        )
        if summary.unresolved_currencies:
            lines.append(
                f"! No exchange rate for {', '.join(summary.unresolved_currencies)}; "
                f"valued 1:1 in {summary.base_currency}"
            )
    return "\n".join(lines)


def run_one_time_check(persist: bool = True) -> QuoteCoordinator:
    """Run a single refresh cycle and print the result."""
    logger.info("Running one-time quote refresh...")
    coordinator = build_coordinator(persist)
    coordinator.refresh()
    print(format_report(coordinator))
    return coordinator


def run_symbol_search(query: str) -> list:
    """Look up symbols matching query and print them."""
    settings = get_settings()
    client = SymbolSearchClient(create_http_session(settings), settings.api_base_url, settings.http_timeout)
    results = client.search(query)
    for result in results:
        print(f"{result.symbol:<10} {result.name}  {result.exchange}")
    if not results:
        print(f"No symbols found for {query!r}")
    return results


def start_monitor() -> TickerScheduler:
    """
    Start the background scheduler for quote refresh and display rotation.
    """
    coordinator = build_coordinator()
    ticker = TickerScheduler(
        coordinator,
        on_display=lambda text: logger.info(f"Ticker: {text}")
    )
    ticker.start()
    logger.info(
        f"Monitoring {len(coordinator.watchlist)} symbols, refresh every "
        f"{coordinator.prefs.refresh_interval:g}s"
    )
    return ticker


if __name__ == "__main__":
    configure_logging()

    if len(sys.argv) > 1 and sys.argv[1] == "--once":
        # Run once and exit
        run_one_time_check(persist="--no-db" not in sys.argv)
    elif len(sys.argv) > 2 and sys.argv[1] == "--search":
        run_symbol_search(" ".join(sys.argv[2:]))
    else:
        # Run continuous scheduler
        ticker = start_monitor()
        try:
            print("\n" + "=" * 60)
            print("TickerWatch is running...")
            print("Press Ctrl+C to stop.")
            print("=" * 60 + "\n")

            # Keep the script running
            while True:
                time.sleep(1)

        except (KeyboardInterrupt, SystemExit):
            logger.info("Shutting down quote monitor...")
            ticker.shutdown()
            logger.info("Quote monitor stopped.")
