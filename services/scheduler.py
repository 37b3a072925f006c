"""
Periodic refresh and rotation triggers using APScheduler.

Two independent interval jobs drive the coordinator. Both run with
max_instances=1 so a slow refresh is skipped rather than overlapped, and
changing a cadence reschedules only the affected job.
"""

import logging
from typing import Callable, List, Optional

from apscheduler.jobstores.base import JobLookupError
from apscheduler.schedulers.background import BackgroundScheduler

from services.coordinator import QuoteCoordinator, REFRESH_TIMER, ROTATION_TIMER
from services.search import DebouncedSearch, SymbolSearchClient, SymbolSearchResult

logger = logging.getLogger(__name__)


REFRESH_JOB_ID = "quote_refresh"
ROTATION_JOB_ID = "display_rotation"
INITIAL_REFRESH_JOB_ID = "initial_refresh"


class TickerScheduler:
    """
    Owns the refresh and rotation timers for a coordinator.

    Args:
        coordinator: QuoteCoordinator to drive
        scheduler: APScheduler scheduler (defaults to a BackgroundScheduler)
        on_display: Optional callback receiving the ticker text after each rotation
    """

    def __init__(self, coordinator: QuoteCoordinator, scheduler=None,
                 on_display: Optional[Callable[[str], None]] = None):
        self.coordinator = coordinator
        self.scheduler = scheduler or BackgroundScheduler()
        self.on_display = on_display
        coordinator.on_timer_change = self.restart

    def start(self, initial_refresh: bool = True) -> None:
        """Schedule both timers, start the scheduler and kick off a first refresh."""
        self.schedule_refresh()
        self.schedule_rotation()
        if not self.scheduler.running:
            self.scheduler.start()

        if initial_refresh:
            # Runs immediately; not timer-triggered, so it ignores market hours
            self.scheduler.add_job(
                self.coordinator.refresh,
                id=INITIAL_REFRESH_JOB_ID,
                name='Initial Quote Refresh',
                replace_existing=True,
            )
        logger.info("Ticker scheduler started")

    def shutdown(self, wait: bool = False) -> None:
        if self.scheduler.running:
            self.scheduler.shutdown(wait=wait)
        logger.info("Ticker scheduler stopped")

    def schedule_refresh(self) -> None:
        interval = self.coordinator.prefs.refresh_interval
        self.scheduler.add_job(
            self.coordinator.refresh,
            trigger='interval',
            seconds=interval,
            kwargs={'timer_triggered': True},
            id=REFRESH_JOB_ID,
            name='Quote Refresh',
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"Refresh timer set to every {interval:g}s")

    def schedule_rotation(self) -> None:
        prefs = self.coordinator.prefs
        if not prefs.rotation_enabled:
            try:
                self.scheduler.remove_job(ROTATION_JOB_ID)
                logger.info("Rotation timer stopped")
            except JobLookupError:
                pass
            return

        self.scheduler.add_job(
            self.rotate,
            trigger='interval',
            seconds=prefs.rotation_speed,
            id=ROTATION_JOB_ID,
            name='Display Rotation',
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )
        logger.info(f"Rotation timer set to every {prefs.rotation_speed:g}s")

    def restart(self, timer: str) -> None:
        """Reschedule one timer after a settings change; in-flight work is not cancelled."""
        if timer == REFRESH_TIMER:
            self.schedule_refresh()
        elif timer == ROTATION_TIMER:
            self.schedule_rotation()
        else:
            logger.warning(f"Unknown timer {timer!r}")

    def rotate(self) -> None:
        self.coordinator.advance_display()
        text = self.coordinator.ticker_text()
        logger.debug(f"Showing {text}")
        if self.on_display is not None:
            self.on_display(text)

    def symbol_search(self, on_results: Callable[[List[SymbolSearchResult]], None]) -> DebouncedSearch:
        """Debounced symbol search that runs on this scheduler."""
        settings = self.coordinator.settings
        client = SymbolSearchClient(self.coordinator.http, settings.api_base_url, settings.http_timeout)
        return DebouncedSearch(client, self.scheduler, on_results, delay=settings.search_debounce_seconds)
