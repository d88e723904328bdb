"""HTTP client for the Prokerala astrology API (token exchange + chart endpoint)."""
from __future__ import annotations
import logging
from dataclasses import dataclass
from typing import Any, Mapping

import httpx

from kundli_proxy.common.errors import ExternalServiceError
from kundli_proxy.common.settings import Settings

LOGGER = logging.getLogger("kundli_proxy.upstream.prokerala")


@dataclass
class ChartResponse:
    """Successful chart endpoint reply, before reshaping."""
    content_type: str
    text: str

    @property
    def is_json(self) -> bool:
        return "application/json" in self.content_type


class ProkeralaClient:
    def __init__(self, settings: Settings) -> None:
        self.client_id = settings.client_id
        self.client_secret = settings.client_secret
        self.token_url = settings.token_url
        self.chart_url = settings.chart_url
        self.timeout = settings.http_timeout

    def fetch_token(self) -> dict[str, Any]:
        """
        Perform the OAuth2 client-credentials exchange.

        Returns:
            The decoded JSON body of the token endpoint, unvalidated.
        """
        if not (self.client_id and self.client_secret):
            raise ExternalServiceError("Prokerala client credentials are not configured")
        form = {
            "grant_type": "client_credentials",
            "client_id": self.client_id,
            "client_secret": self.client_secret,
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                r = client.post(self.token_url, data=form)
        except httpx.HTTPError as e:
            LOGGER.error("Token request failed: %s", e)
            raise ExternalServiceError(f"Token request failed: {e}") from e

        try:
            data = r.json()
        except ValueError as e:
            LOGGER.error("Token endpoint returned non-JSON body (status %s)", r.status_code)
            raise ExternalServiceError(
                f"Token endpoint returned non-JSON response: {r.status_code}"
            ) from e
        if not isinstance(data, dict):
            raise ExternalServiceError("Token endpoint returned an unexpected payload")
        if not r.is_success:
            LOGGER.warning("Token endpoint answered %s", r.status_code)
        return data

    def fetch_chart(self, token: str, params: Mapping[str, str]) -> ChartResponse:
        """
        Request a chart.

        Args:
            token: Bearer access token.
            params: Query parameters for the chart endpoint.
        """
        headers = {
            "Authorization": f"Bearer {token}",
            "Accept": "text/plain,application/json",
        }
        try:
            with httpx.Client(timeout=self.timeout) as client:
                r = client.get(self.chart_url, params=dict(params), headers=headers)
        except httpx.HTTPError as e:
            LOGGER.error("Chart request failed: %s", e)
            raise ExternalServiceError(f"Prokerala API request failed: {e}") from e

        if not r.is_success:
            LOGGER.error("Chart endpoint answered %s", r.status_code)
            raise ExternalServiceError(f"Prokerala API failed: {r.status_code} - {r.text}")
        return ChartResponse(content_type=r.headers.get("content-type", ""), text=r.text)
