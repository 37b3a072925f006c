"""
Holding model - shares owned of one symbol.
"""

from dataclasses import dataclass
from typing import Any, Dict


@dataclass(frozen=True)
class Holding:
    """Position in one instrument."""
    shares: float
    cost_basis: float  # Average price per share, major units, native currency

    def to_dict(self) -> Dict[str, Any]:
        return {'shares': self.shares, 'cost_basis': self.cost_basis}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Holding":
        return cls(shares=float(data['shares']), cost_basis=float(data['cost_basis']))
