"""Reverse geocoding for report locations.

The address is advisory: any failure degrades to a placeholder string and
never blocks report submission.
"""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from .config import get_settings

logger = logging.getLogger("app.geocoding")

ADDRESS_NOT_FOUND = "Address not found"
ADDRESS_LOOKUP_FAILED = "Failed to fetch address"


class ReverseGeocoder:
    def __init__(self, url: str, api_key: Optional[str], timeout: float = 5.0, client: Optional[httpx.AsyncClient] = None):
        self._url = url
        self._api_key = api_key
        self._timeout = httpx.Timeout(timeout, connect=min(timeout, 5.0))
        self._client = client

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout)
        return self._client

    async def reverse(self, latitude: float, longitude: float) -> str:
        """Best-effort display address for a coordinate pair."""
        params = {"lat": latitude, "lon": longitude, "format": "json"}
        if self._api_key:
            params["key"] = self._api_key
        try:
            resp = await self._get_client().get(self._url, params=params)
            resp.raise_for_status()
            data = resp.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Reverse geocoding %s,%s failed: %s", latitude, longitude, exc)
            return ADDRESS_LOOKUP_FAILED

        if isinstance(data, dict) and data.get("display_name"):
            return data["display_name"]
        return ADDRESS_NOT_FOUND

    async def aclose(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None


_geocoder: Optional[ReverseGeocoder] = None


def get_geocoder() -> ReverseGeocoder:
    global _geocoder
    if _geocoder is None:
        settings = get_settings()
        _geocoder = ReverseGeocoder(
            settings.geocoder_url,
            settings.geocoder_api_key,
            timeout=settings.geocoder_timeout_seconds,
        )
    return _geocoder


__all__ = ["ReverseGeocoder", "get_geocoder", "ADDRESS_NOT_FOUND", "ADDRESS_LOOKUP_FAILED"]
