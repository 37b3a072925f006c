"""
Repositories package for TickerWatch.
Provides the data access layer for persisted preferences.
"""

from repositories.settings_repository import (
    SettingsRepository,
    SqlPreferencesStore,
    MemoryPreferencesStore,
    preferences_from_values,
    preferences_to_values,
)

__all__ = [
    'SettingsRepository',
    'SqlPreferencesStore',
    'MemoryPreferencesStore',
    'preferences_from_values',
    'preferences_to_values',
]
