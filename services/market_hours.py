"""
Exchange trading-hours check.

Hours are approximate regular sessions in exchange-local time; holidays and
lunch breaks are not modelled.
"""

import logging
from datetime import datetime, time, timezone
from typing import Iterable, Optional, Tuple
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

logger = logging.getLogger(__name__)


DEFAULT_EXCHANGE_TIMEZONE = "America/New_York"

# (prefix, open, close); first match wins, so London precedes the Europe/ catch-all
_SESSIONS = [
    ("Europe/London", time(8, 0), time(16, 30)),
    ("Europe/", time(9, 0), time(17, 30)),
    ("Asia/Tokyo", time(9, 0), time(15, 0)),
    ("Asia/Hong_Kong", time(9, 30), time(16, 0)),
    ("Asia/Shanghai", time(9, 30), time(16, 0)),
]
_DEFAULT_SESSION = (time(9, 30), time(16, 0))


def session_hours(timezone_name: str) -> Tuple[time, time]:
    """Local (open, close) for an exchange timezone."""
    for prefix, open_at, close_at in _SESSIONS:
        if timezone_name.startswith(prefix):
            return open_at, close_at
    return _DEFAULT_SESSION


def is_market_open(timezone_name: Optional[str], at: Optional[datetime] = None) -> bool:
    """
    Check whether the exchange in timezone_name is in its regular session.

    Args:
        timezone_name: IANA zone of the exchange, e.g. "Europe/London".
            Missing or unknown zones are treated as open.
        at: Moment to check (aware datetime); defaults to now

    Examples:
        Wednesday 12:00 in New York -> True
        Saturday 12:00 in New York -> False
    """
    if not timezone_name:
        return True
    try:
        tz = ZoneInfo(timezone_name)
    except (ZoneInfoNotFoundError, ValueError):
        logger.debug(f"Unknown exchange timezone {timezone_name!r}, treating as open")
        return True

    moment = at or datetime.now(timezone.utc)
    if moment.tzinfo is None:
        moment = moment.replace(tzinfo=timezone.utc)
    local = moment.astimezone(tz)

    if local.weekday() >= 5:  # Saturday, Sunday
        return False

    open_at, close_at = session_hours(timezone_name)
    return open_at <= local.time().replace(second=0, microsecond=0) < close_at


def any_market_open(quotes: Iterable, at: Optional[datetime] = None) -> bool:
    """True if any quote's exchange is open; New York hours when there are no quotes."""
    quotes = list(quotes)
    if not quotes:
        return is_market_open(DEFAULT_EXCHANGE_TIMEZONE, at)
    return any(is_market_open(q.exchange_timezone, at) for q in quotes)
