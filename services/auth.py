"""
Session cookie + crumb authentication for the quote provider.

The provider gates its API behind a session cookie and an anti-forgery token
("crumb"):
  1. GET {cookie_url} sets the session cookie (the response itself usually
     404s and is ignored).
  2. GET {api}/v1/test/getcrumb with that cookie returns the crumb as plain text.
  3. Every API request carries &crumb={crumb}.
"""

import logging
import threading
from dataclasses import dataclass
from typing import Optional

from services.errors import AuthError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class AuthToken:
    """Crumb paired with the cookie jar of the session that obtained it."""
    crumb: str
    cookies: object = None


def looks_like_html(body: str) -> bool:
    """True for error pages served in place of a crumb."""
    return "<html" in body.lower()


class AuthSession:
    """
    Acquires and caches the provider crumb.

    The token lives until invalidate() is called or the process exits. It is
    never persisted.
    """

    def __init__(self, http, api_base_url: str, cookie_url: str, timeout: float = 10.0):
        self.http = http
        self.api_base_url = api_base_url.rstrip("/")
        self.cookie_url = cookie_url
        self.timeout = timeout
        self._token: Optional[AuthToken] = None
        self._lock = threading.Lock()

    @property
    def token(self) -> Optional[AuthToken]:
        return self._token

    def ensure(self) -> AuthToken:
        """
        Return the cached token, or run the cookie + crumb exchange.

        Raises:
            AuthError: if the crumb request fails or returns something that is
                not a plain-text token.
        """
        with self._lock:
            if self._token is not None:
                return self._token

            self._request_cookie()
            crumb = self._request_crumb()
            self._token = AuthToken(crumb=crumb, cookies=getattr(self.http, "cookies", None))
            logger.info("Obtained provider crumb")
            return self._token

    def invalidate(self) -> None:
        """Drop the cached token so the next ensure() re-authenticates."""
        with self._lock:
            if self._token is not None:
                logger.info("Invalidating provider crumb")
            self._token = None

    def _request_cookie(self) -> None:
        # Only the Set-Cookie side effect matters here.
        try:
            self.http.get(self.cookie_url, timeout=self.timeout)
        except Exception as e:
            logger.debug(f"Cookie request to {self.cookie_url} failed: {e}")

    def _request_crumb(self) -> str:
        url = f"{self.api_base_url}/v1/test/getcrumb"
        try:
            response = self.http.get(url, timeout=self.timeout)
        except Exception as e:
            raise AuthError(f"Crumb request failed: {e}") from e

        if response.status_code != 200:
            raise AuthError(f"Crumb request returned HTTP {response.status_code}",
                            detail={'status': response.status_code})

        crumb = (response.text or "").strip()
        if not crumb or looks_like_html(crumb):
            raise AuthError("Crumb response was empty or not plain text")
        return crumb
