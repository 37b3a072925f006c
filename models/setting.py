"""
Setting model - one JSON-encoded preference value per key.
"""

from datetime import datetime, timezone
from sqlmodel import SQLModel, Field


class Setting(SQLModel, table=True):
    """Key/value row backing the persisted preferences."""
    key: str = Field(primary_key=True)  # e.g., "watchlist", "priceAlerts"
    value: str  # JSON document
    updated_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
