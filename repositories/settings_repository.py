"""
Settings Repository - data access layer for the Setting key/value table,
plus the preference stores the coordinator loads from and saves to.
"""

import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict, Optional

from sqlmodel import Session, select

from db_engine import get_engine
from models import Holding, Preferences, PriceAlert, Setting

logger = logging.getLogger(__name__)


# Persisted key -> Preferences attribute
PREFERENCE_KEYS = {
    'watchlist': 'watchlist',
    'refreshInterval': 'refresh_interval',
    'rotationEnabled': 'rotation_enabled',
    'rotationSpeed': 'rotation_speed',
    'pinnedSymbol': 'pinned_symbol',
    'marketHoursOnly': 'market_hours_only',
    'showPercentChange': 'show_percent_change',
    'compactDisplay': 'compact_display',
    'baseCurrency': 'base_currency',
    'priceAlerts': 'price_alerts',
    'holdings': 'holdings',
}


class SettingsRepository:
    """Repository for Setting CRUD operations."""

    def __init__(self, engine=None):
        self._engine = engine

    @property
    def engine(self):
        return self._engine or get_engine()

    def get(self, key: str) -> Optional[str]:
        """Retrieve the raw JSON value for a key."""
        with Session(self.engine) as session:
            setting = session.get(Setting, key)
            return setting.value if setting else None

    def get_all(self) -> Dict[str, str]:
        """Retrieve every stored key and its raw JSON value."""
        with Session(self.engine) as session:
            results = session.exec(select(Setting))
            return {s.key: s.value for s in results.all()}

    def set(self, key: str, value: str) -> Setting:
        """Insert or update a key."""
        with Session(self.engine) as session:
            setting = session.get(Setting, key)
            if setting:
                setting.value = value
                setting.updated_at = datetime.now(timezone.utc)
            else:
                setting = Setting(key=key, value=value)
            session.add(setting)
            session.commit()
            session.refresh(setting)
            return setting

    def set_many(self, values: Dict[str, str]) -> None:
        """Insert or update several keys in one transaction."""
        with Session(self.engine) as session:
            for key, value in values.items():
                setting = session.get(Setting, key)
                if setting:
                    setting.value = value
                    setting.updated_at = datetime.now(timezone.utc)
                else:
                    setting = Setting(key=key, value=value)
                session.add(setting)
            session.commit()

    def delete(self, key: str) -> bool:
        """Delete a key. Returns True if it existed."""
        with Session(self.engine) as session:
            setting = session.get(Setting, key)
            if not setting:
                return False
            session.delete(setting)
            session.commit()
            return True


def _encode(attr: str, value: Any) -> str:
    if attr == 'price_alerts':
        return json.dumps([alert.to_dict() for alert in value])
    if attr == 'holdings':
        return json.dumps({symbol: h.to_dict() for symbol, h in value.items()})
    return json.dumps(value)


def _decode(attr: str, raw: str) -> Any:
    data = json.loads(raw)
    if attr == 'price_alerts':
        return [PriceAlert.from_dict(item) for item in data]
    if attr == 'holdings':
        return {symbol.upper(): Holding.from_dict(h) for symbol, h in data.items()}
    if attr == 'watchlist':
        return [str(s).upper() for s in data]
    return data


def preferences_from_values(values: Dict[str, str]) -> Preferences:
    """
    Build Preferences from raw stored values.

    Missing keys keep their defaults; unreadable values are logged and
    ignored. An empty stored watchlist also falls back to the default.
    """
    prefs = Preferences()
    for key, attr in PREFERENCE_KEYS.items():
        raw = values.get(key)
        if raw is None:
            continue
        try:
            value = _decode(attr, raw)
        except (ValueError, TypeError, KeyError) as e:
            logger.warning(f"Ignoring unreadable setting {key!r}: {e}")
            continue
        if attr == 'watchlist' and not value:
            continue
        if attr in ('refresh_interval', 'rotation_speed') and not value:
            continue
        setattr(prefs, attr, value)
    return prefs


def preferences_to_values(prefs: Preferences) -> Dict[str, str]:
    """Encode every preference as a JSON string keyed by its stored name."""
    return {key: _encode(attr, getattr(prefs, attr)) for key, attr in PREFERENCE_KEYS.items()}


class SqlPreferencesStore:
    """Preference store backed by the SQLite settings table."""

    def __init__(self, repository: Optional[SettingsRepository] = None):
        self.repository = repository or SettingsRepository()

    def load(self) -> Preferences:
        return preferences_from_values(self.repository.get_all())

    def save(self, prefs: Preferences) -> None:
        self.repository.set_many(preferences_to_values(prefs))


class MemoryPreferencesStore:
    """Preference store kept in memory (tests and one-off runs)."""

    def __init__(self, prefs: Optional[Preferences] = None):
        self._values: Dict[str, str] = preferences_to_values(prefs) if prefs else {}
        self.save_count = 0

    def load(self) -> Preferences:
        return preferences_from_values(self._values)

    def save(self, prefs: Preferences) -> None:
        self._values = preferences_to_values(prefs)
        self.save_count += 1
