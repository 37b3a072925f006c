"""
Domain and database models for TickerWatch.
The only SQLModel table is Setting; everything else is a plain dataclass.
"""

from models.quote import Quote, MarketState
from models.price_alert import PriceAlert, AlertDirection
from models.holding import Holding
from models.preferences import Preferences, DEFAULT_WATCHLIST
from models.setting import Setting

__all__ = [
    'Quote',
    'MarketState',
    'PriceAlert',
    'AlertDirection',
    'Holding',
    'Preferences',
    'DEFAULT_WATCHLIST',
    'Setting',
]
