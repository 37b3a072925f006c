"""
Preferences model - user-editable state that survives restarts.
"""

from dataclasses import dataclass, field
from typing import Dict, List

from models.holding import Holding
from models.price_alert import PriceAlert


DEFAULT_WATCHLIST = ["AAPL", "GOOGL", "MSFT", "AMZN", "TSLA"]


@dataclass
class Preferences:
    """
    Watchlist, display settings, alerts and holdings.

    Loaded once at startup and saved through a store whenever it changes.
    """
    watchlist: List[str] = field(default_factory=lambda: list(DEFAULT_WATCHLIST))
    refresh_interval: float = 60.0  # seconds
    rotation_enabled: bool = True
    rotation_speed: float = 5.0  # seconds
    pinned_symbol: str = DEFAULT_WATCHLIST[0]
    market_hours_only: bool = True
    show_percent_change: bool = True
    compact_display: bool = False
    base_currency: str = "USD"
    price_alerts: List[PriceAlert] = field(default_factory=list)
    holdings: Dict[str, Holding] = field(default_factory=dict)
