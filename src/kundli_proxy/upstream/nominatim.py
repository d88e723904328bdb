"""Nominatim (OpenStreetMap) place search client."""
from __future__ import annotations
import logging
from typing import Any

import httpx

from kundli_proxy.common.errors import ExternalServiceError
from kundli_proxy.common.settings import Settings

LOGGER = logging.getLogger("kundli_proxy.upstream.nominatim")


class NominatimClient:
    def __init__(self, settings: Settings) -> None:
        self.search_url = settings.geocode_url
        self.user_agent = settings.geocode_user_agent
        self.timeout = settings.http_timeout

    def search(self, place: str, limit: int = 1) -> list[dict[str, Any]]:
        """Return the raw match list for a free-text place query."""
        params = {"format": "json", "limit": str(limit), "q": place}
        headers = {"User-Agent": self.user_agent}
        try:
            with httpx.Client(timeout=self.timeout) as client:
                r = client.get(self.search_url, params=params, headers=headers)
        except httpx.HTTPError as e:
            LOGGER.error("Geocoding request failed: %s", e)
            raise ExternalServiceError("Geocoding API failed") from e

        if not r.is_success:
            LOGGER.error("Geocoding endpoint answered %s", r.status_code)
            raise ExternalServiceError("Geocoding API failed")
        try:
            data = r.json()
        except ValueError as e:
            raise ExternalServiceError("Geocoding API returned non-JSON response") from e
        if not isinstance(data, list):
            raise ExternalServiceError("Geocoding API returned an unexpected payload")
        return data
