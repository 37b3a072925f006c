"""
Configuration management for TickerWatch.
Uses pydantic-settings for type-safe, centralized configuration.
"""

from typing import Optional
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_USER_AGENT = (
    "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/131.0.0.0 Safari/537.36"
)


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    Uses pydantic-settings for validation and type safety.
    """

    model_config = SettingsConfigDict(
        env_file='.env',
        env_file_encoding='utf-8',
        extra='ignore'  # Allow extra fields in .env for flexibility
    )

    # Database (persisted watchlist, alerts, holdings and display preferences)
    database_url: str = "sqlite:///tickerwatch.db"
    db_echo: bool = False

    # Quote provider
    api_base_url: str = "https://query2.finance.yahoo.com"
    cookie_url: str = "https://fc.yahoo.com"
    user_agent: str = DEFAULT_USER_AGENT
    http_timeout: float = 10.0
    max_fetch_workers: int = 8

    # Symbol search
    search_debounce_seconds: float = 0.3

    # Logging
    log_level: str = "INFO"

    # Email / SMTP Configuration (price alert delivery)
    smtp_server: str = "smtp.gmail.com"
    smtp_port: int = 587
    smtp_username: Optional[str] = None
    smtp_password: Optional[str] = None
    from_email: Optional[str] = None
    alert_email: Optional[str] = None

    @property
    def email_from(self) -> Optional[str]:
        """Get the from email address, defaulting to smtp_username."""
        return self.from_email or self.smtp_username

    @property
    def is_email_configured(self) -> bool:
        """Check if email alerts are properly configured."""
        return all([
            self.smtp_username,
            self.smtp_password,
            self.email_from,
            self.alert_email
        ])


# Global settings instance
_settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get or create the global settings instance."""
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def reload_settings() -> Settings:
    """Reload settings from environment (useful for testing)."""
    global _settings
    _settings = Settings()
    return _settings
