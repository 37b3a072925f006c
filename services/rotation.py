"""
Chooses which quote the ticker shows and steps through the watchlist.
"""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional, Sequence

from models import Quote
from services.market_hours import is_market_open


@dataclass
class DisplayRotator:
    """
    Rotation cursor over the published quote list.

    When rotation is on, closed markets are skipped while at least one market
    is open. The override in selected() only changes what is shown; the
    cursor itself only moves in advance().
    """
    current_index: int = 0
    rotation_enabled: bool = True
    pinned_symbol: str = ""

    def selected(self, quotes: Sequence[Quote], now: Optional[datetime] = None) -> Optional[Quote]:
        if not quotes:
            return None

        if not self.rotation_enabled:
            for quote in quotes:
                if quote.symbol == self.pinned_symbol:
                    return quote
            return quotes[0]

        current = quotes[self.current_index % len(quotes)]
        if not is_market_open(current.exchange_timezone, now):
            for quote in quotes:
                if is_market_open(quote.exchange_timezone, now):
                    return quote
        return current

    def advance(self, quotes: Sequence[Quote], now: Optional[datetime] = None) -> int:
        """Move the cursor and return the new index."""
        if not quotes or not self.rotation_enabled:
            return self.current_index

        count = len(quotes)
        open_flags = [is_market_open(q.exchange_timezone, now) for q in quotes]

        if not any(open_flags):
            # Everything closed: plain round-robin
            self.current_index = (self.current_index + 1) % count
            return self.current_index

        for offset in range(1, count + 1):
            candidate = (self.current_index + offset) % count
            if open_flags[candidate]:
                self.current_index = candidate
                break
        return self.current_index
