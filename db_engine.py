"""
Database engine setup for TickerWatch.
SQLModel over SQLite holds the persisted preferences (watchlist, alerts,
holdings, display settings). File databases run in WAL mode so the refresh
and rotation jobs can save while a command is reading.
"""

from sqlmodel import SQLModel, create_engine
from typing import Optional
import logging

from config import get_settings

logger = logging.getLogger(__name__)

BUSY_TIMEOUT_MS = 5000

# Global engine instance
_engine: Optional[object] = None


def _is_file_sqlite(url: str) -> bool:
    return url.startswith("sqlite") and ":memory:" not in url and url.rstrip("/") != "sqlite:"


def get_engine():
    """Get or create the shared engine for settings.database_url."""
    global _engine
    if _engine is None:
        settings = get_settings()
        connect_args = {}
        if settings.database_url.startswith("sqlite"):
            # Scheduler jobs save from worker threads
            connect_args["check_same_thread"] = False
        _engine = create_engine(settings.database_url, echo=settings.db_echo, connect_args=connect_args)
        if _is_file_sqlite(settings.database_url):
            _enable_wal_mode(_engine)
    return _engine


def _enable_wal_mode(engine) -> Optional[str]:
    """Switch a file database to WAL; returns the journal mode now in effect."""
    try:
        with engine.connect() as conn:
            mode = conn.exec_driver_sql("PRAGMA journal_mode=WAL").scalar()
            conn.exec_driver_sql(f"PRAGMA busy_timeout={BUSY_TIMEOUT_MS}")
        logger.info(f"SQLite journal mode: {mode}")
        return mode
    except Exception as e:
        logger.warning(f"Could not enable WAL mode: {e}")
        return None


def init_db(engine=None):
    """Create the settings table if it does not exist."""
    from models import Setting  # noqa: F401  (registers the table)

    engine = engine or get_engine()
    SQLModel.metadata.create_all(engine)
    logger.info("Database initialized")
    return engine
