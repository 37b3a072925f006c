"""Pytest configuration and shared fakes for TickerWatch tests."""

from __future__ import annotations

import json
import sys
import threading
from datetime import datetime, timezone
from pathlib import Path

import pytest


# Ensure the project root is importable (config, models, services, ...).
_ROOT_DIR = Path(__file__).resolve().parents[1]
sys.path.insert(0, str(_ROOT_DIR))

from config import Settings  # noqa: E402


API = "https://api.test"
COOKIE = "https://cookie.test"

# Wednesday 2026-02-18 12:00 in New York (EST, UTC-5)
WEDNESDAY_NOON_NY = datetime(2026, 2, 18, 17, 0, tzinfo=timezone.utc)
# Saturday 2026-02-21 12:00 in New York
SATURDAY_NOON_NY = datetime(2026, 2, 21, 17, 0, tzinfo=timezone.utc)


class FakeResponse:
    def __init__(self, status_code=200, body=None, text=None):
        self.status_code = status_code
        if text is None:
            text = json.dumps(body) if body is not None else ""
        self.text = text
        self.content = text.encode("utf-8")

    def json(self):
        return json.loads(self.text)


class FakeHttp:
    """
    Stand-in for requests.Session.

    Routes are matched by substring of the URL, most recently added first.
    A route value may be a FakeResponse, an exception instance to raise, or a
    callable(url, params) returning either.
    """

    def __init__(self):
        self.routes = []
        self.calls = []
        self.cookies = {}
        self._lock = threading.Lock()

    def route(self, fragment, value):
        self.routes.insert(0, (fragment, value))
        return self

    def get(self, url, params=None, timeout=None):
        with self._lock:
            self.calls.append((url, dict(params or {})))
        for fragment, value in self.routes:
            if fragment in url:
                if callable(value) and not isinstance(value, FakeResponse):
                    value = value(url, params or {})
                if isinstance(value, Exception):
                    raise value
                return value
        return FakeResponse(404, text="not found")

    def calls_to(self, fragment):
        return [c for c in self.calls if fragment in c[0]]


class RecordingNotifier:
    def __init__(self):
        self.sent = []

    def notify(self, title, body):
        self.sent.append((title, body))


def chart_payload(symbol, price, previous_close, currency="USD",
                  timezone_name="America/New_York", long_name=None,
                  short_name=None, closes=None):
    meta = {
        "symbol": symbol,
        "regularMarketPrice": price,
        "chartPreviousClose": previous_close,
        "currency": currency,
        "exchangeTimezoneName": timezone_name,
    }
    if long_name:
        meta["longName"] = long_name
    if short_name:
        meta["shortName"] = short_name
    result = {"meta": meta}
    if closes is not None:
        result["indicators"] = {"quote": [{"close": closes}]}
    return {"chart": {"result": [result]}}


def v7_payload(rows):
    return {"quoteResponse": {"result": rows}}


@pytest.fixture
def settings():
    return Settings(
        _env_file=None,
        api_base_url=API,
        cookie_url=COOKIE,
        http_timeout=1.0,
        max_fetch_workers=4,
        search_debounce_seconds=0.01,
    )


@pytest.fixture
def http():
    fake = FakeHttp()
    fake.route(COOKIE, FakeResponse(404, text="cookie set"))
    fake.route("/v1/test/getcrumb", FakeResponse(200, text="abc123XYZ"))
    return fake


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def clock():
    return lambda: WEDNESDAY_NOON_NY
