"""In-memory cache for the Prokerala bearer token.

Holds at most one token. A token fetched at ``now`` with lifetime
``expires_in`` is served until ``now + expires_in - EXPIRY_MARGIN_S``.
"""
from __future__ import annotations
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping

from kundli_proxy.common.errors import ExternalServiceError

LOGGER = logging.getLogger("kundli_proxy.upstream.token_cache")

EXPIRY_MARGIN_S = 30

TokenFetcher = Callable[[], Mapping[str, Any]]


@dataclass(frozen=True)
class CachedToken:
    value: str
    expires_at: int

    def is_valid(self, now: int) -> bool:
        return now < self.expires_at


class TokenCache:
    """
    Single-value token cache with a single-flight refresh.

    Args:
        fetcher: Performs the token exchange and returns the decoded response
            body (must contain ``access_token`` and ``expires_in``).
        clock: Returns the current epoch time in seconds.
    """

    def __init__(self, fetcher: TokenFetcher, clock: Callable[[], float] = time.time) -> None:
        self._fetcher = fetcher
        self._clock = clock
        self._token: CachedToken | None = None
        self._refresh_lock = threading.Lock()

    @property
    def cached(self) -> CachedToken | None:
        return self._token

    def _now(self) -> int:
        return int(self._clock())

    def get_token(self) -> str:
        token = self._token
        if token is not None and token.is_valid(self._now()):
            return token.value

        with self._refresh_lock:
            # another thread may have refreshed while we waited
            now = self._now()
            token = self._token
            if token is not None and token.is_valid(now):
                return token.value
            token = self._refresh(now)
            return token.value

    def _refresh(self, now: int) -> CachedToken:
        LOGGER.info("Fetching new access token")
        data = self._fetcher()
        value = data.get("access_token")
        if not value or not isinstance(value, str):
            LOGGER.error("Token response has no access_token")
            raise ExternalServiceError("token missing in response")
        lifetime = _as_int(data.get("expires_in"))
        if lifetime is None:
            LOGGER.error("Token response has no usable expires_in: %r", data.get("expires_in"))
            raise ExternalServiceError("token lifetime missing in response")

        token = CachedToken(value=value, expires_at=now + lifetime - EXPIRY_MARGIN_S)
        self._token = token
        LOGGER.info("Cached access token until %s", token.expires_at)
        return token


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str) and value.strip().isdigit():
        return int(value)
    return None
