"""
Common utilities and shared functions.
Symbol normalization and the shared HTTP session.
"""

import logging
import math
from typing import Any, Optional

import requests

from config import Settings, get_settings

logger = logging.getLogger(__name__)


def normalize_symbol(symbol: Optional[str]) -> str:
    """
    Convert user input to the canonical watchlist form.

    Examples:
        >>> normalize_symbol(" nvda ")
        'NVDA'
        >>> normalize_symbol("vod.l")
        'VOD.L'
    """
    return (symbol or "").strip().upper()


def create_http_session(settings: Optional[Settings] = None) -> requests.Session:
    """
    Build the HTTP session shared by every provider request.

    The session's cookie jar carries the provider cookie that the crumb is
    bound to, so auth and quote requests must use the same session.
    """
    settings = settings or get_settings()
    session = requests.Session()
    session.headers.update({
        "User-Agent": settings.user_agent,
        "Accept": "application/json, text/plain, */*",
        "Accept-Language": "en-US,en;q=0.9",
    })
    return session


def to_number(value: Any) -> Optional[float]:
    """
    Coerce a JSON number to float.

    Booleans, strings, nulls, NaN/infinity and integers too large for a float
    all read as missing (None).
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None
