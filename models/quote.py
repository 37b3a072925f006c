"""
Quote model - an immutable per-symbol price snapshot.
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Tuple

from services.currency import currency_symbol, is_sub_unit_currency, sub_unit_divisor


class MarketState(str, Enum):
    """Trading session reported by the provider."""
    PRE = "PRE"
    REGULAR = "REGULAR"
    POST = "POST"
    CLOSED = "CLOSED"

    @classmethod
    def parse(cls, raw: Optional[str]) -> Optional["MarketState"]:
        """Map a provider tag to a state; PREPRE/POSTPOST read as CLOSED."""
        if not raw:
            return None
        tag = raw.upper()
        if tag in ("PREPRE", "POSTPOST"):
            return cls.CLOSED
        try:
            return cls(tag)
        except ValueError:
            return None


@dataclass(frozen=True)
class Quote:
    """
    Latest quote for one instrument.

    Prices are stored exactly as the provider reports them. Instruments quoted
    in a sub-unit currency (pence, agorot) expose major-unit values through
    the display_* properties; raw fields are never rescaled.
    """
    symbol: str
    name: str
    price: float
    previous_close: float
    currency: Optional[str] = None
    exchange_timezone: Optional[str] = None
    intraday_prices: Tuple[float, ...] = field(default_factory=tuple)
    day_high: Optional[float] = None
    day_low: Optional[float] = None

    # Extended fields (filled by batch enrichment)
    pre_market_price: Optional[float] = None
    pre_market_change: Optional[float] = None
    post_market_price: Optional[float] = None
    post_market_change: Optional[float] = None
    market_state: Optional[MarketState] = None
    fifty_two_week_high: Optional[float] = None
    fifty_two_week_low: Optional[float] = None

    @property
    def change(self) -> float:
        return self.price - self.previous_close

    @property
    def change_percent(self) -> float:
        if self.previous_close == 0:
            return 0.0
        return self.change / self.previous_close * 100

    @property
    def is_positive(self) -> bool:
        return self.change >= 0

    @property
    def is_sub_unit(self) -> bool:
        return is_sub_unit_currency(self.currency)

    @property
    def currency_symbol(self) -> str:
        return currency_symbol(self.currency)

    def _scaled(self, value: Optional[float]) -> Optional[float]:
        if value is None:
            return None
        return value / sub_unit_divisor(self.currency)

    @property
    def display_price(self) -> float:
        return self.price / sub_unit_divisor(self.currency)

    @property
    def display_previous_close(self) -> float:
        return self.previous_close / sub_unit_divisor(self.currency)

    @property
    def display_change(self) -> float:
        return self.change / sub_unit_divisor(self.currency)

    @property
    def display_day_high(self) -> Optional[float]:
        return self._scaled(self.day_high)

    @property
    def display_day_low(self) -> Optional[float]:
        return self._scaled(self.day_low)

    @property
    def display_pre_market_price(self) -> Optional[float]:
        return self._scaled(self.pre_market_price)

    @property
    def display_pre_market_change(self) -> Optional[float]:
        return self._scaled(self.pre_market_change)

    @property
    def display_post_market_price(self) -> Optional[float]:
        return self._scaled(self.post_market_price)

    @property
    def display_post_market_change(self) -> Optional[float]:
        return self._scaled(self.post_market_change)

    @property
    def display_fifty_two_week_high(self) -> Optional[float]:
        return self._scaled(self.fifty_two_week_high)

    @property
    def display_fifty_two_week_low(self) -> Optional[float]:
        return self._scaled(self.fifty_two_week_low)

    @property
    def display_intraday_prices(self) -> Tuple[float, ...]:
        divisor = sub_unit_divisor(self.currency)
        return tuple(p / divisor for p in self.intraday_prices)

    def ticker_text(self, compact: bool = False, show_percent: bool = True) -> str:
        """
        One-line label for the rotating ticker.

        Normal: "AAPL $185.23 ▲1.2%", compact: "AAPL 185.23 ▲1.2%".
        """
        arrow = "▲" if self.is_positive else "▼"
        price = f"{self.display_price:.2f}"
        if not compact:
            price = f"{self.currency_symbol}{price}"
        text = f"{self.symbol} {price} {arrow}"
        if show_percent:
            text += f"{abs(self.change_percent):.1f}%"
        return text
