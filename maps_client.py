"""Shared HTTP client for the Google Maps web services."""
import logging
from typing import Any, Dict, Optional

import httpx

from errors import GeocodingFailure
from settings import GOOGLE_MAPS_BASE_URL, MAPS_TIMEOUT_SECONDS

logger = logging.getLogger(__name__)


class GoogleMapsClient:
    """Holds the API key and connection pool used by geocoding, timezone and distance lookups.

    One instance is created per application and passed to each service, so
    tests can swap in an ``httpx.MockTransport``.
    """

    def __init__(
        self,
        api_key: Optional[str],
        http_client: Optional[httpx.AsyncClient] = None,
        timeout: float = MAPS_TIMEOUT_SECONDS,
        base_url: str = GOOGLE_MAPS_BASE_URL,
    ):
        self.api_key = api_key
        self._owns_client = http_client is None
        self.http = http_client or httpx.AsyncClient(base_url=base_url, timeout=timeout)
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def get_json(self, path: str, params: Dict[str, Any], api_name: str = "Google Maps") -> Dict[str, Any]:
        """GET ``path`` with the key attached and return the decoded body.

        Transport errors and non-2xx responses raise ``GeocodingFailure``;
        interpreting the body's ``status`` field is left to the caller.
        """
        if not self.api_key:
            raise GeocodingFailure(
                "Google Maps API key is required but not configured. "
                "Please set the GOOGLE_MAPS_API_KEY environment variable.",
                status="MISSING_KEY",
            )
        try:
            response = await self.http.get(path, params={**params, "key": self.api_key}, timeout=self.timeout)
        except httpx.HTTPError as e:
            raise GeocodingFailure(f"Network error while accessing {api_name} API: {e}", status="NETWORK_ERROR") from e

        if response.status_code == 403:
            raise GeocodingFailure(
                f"{api_name} API key is invalid or has insufficient permissions. "
                "Please check your API key and billing settings.",
                status="HTTP_403",
            )
        if response.status_code >= 400:
            raise GeocodingFailure(
                f"{api_name} API returned HTTP {response.status_code}",
                status=f"HTTP_{response.status_code}",
            )
        try:
            return response.json()
        except ValueError as e:
            raise GeocodingFailure(f"{api_name} API returned a malformed response", status="MALFORMED") from e

    async def aclose(self):
        if self._owns_client:
            await self.http.aclose()
