"""
PriceAlert model - a one-shot price threshold for a symbol.
"""

import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict


class AlertDirection(str, Enum):
    ABOVE = "above"
    BELOW = "below"


@dataclass
class PriceAlert:
    """
    Alert that fires once when a symbol crosses a target price.

    An alert starts unarmed and is armed by the first quote it sees; it can
    only fire on a later quote.
    """
    symbol: str
    target_price: float  # Major units, in the instrument's own currency
    direction: AlertDirection
    armed: bool = False
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def is_above(self) -> bool:
        return self.direction == AlertDirection.ABOVE

    @property
    def direction_label(self) -> str:
        return self.direction.value

    def is_triggered(self, current_price: float) -> bool:
        """Check the threshold; an unarmed alert never triggers."""
        if not self.armed:
            return False
        if self.is_above:
            return current_price >= self.target_price
        return current_price <= self.target_price

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'symbol': self.symbol,
            'target_price': self.target_price,
            'direction': self.direction.value,
            'armed': self.armed,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PriceAlert":
        return cls(
            id=str(data['id']),
            symbol=str(data['symbol']).upper(),
            target_price=float(data['target_price']),
            direction=AlertDirection(data['direction']),
            armed=bool(data.get('armed', False)),
        )
