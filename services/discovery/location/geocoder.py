"""
Reverse geocoding via the Nominatim (OpenStreetMap) API.

Best-effort only: every failure is logged and reported as None. A location
fix without city metadata is still a usable fix.

Endpoints used:
  /reverse?lat={lat}&lon={lon}&format=json   → city / country for a fix
  /search?q={name}&format=json&limit=1       → coordinates for a place name
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from services.discovery.config import Settings
from services.discovery.models import CityInfo, Coordinates

logger = logging.getLogger(__name__)

# Address fields tried in order when picking a display city
_CITY_FIELDS = ("city", "town", "village", "municipality", "county")


def _parse_city_info(payload: dict[str, Any]) -> CityInfo | None:
    """Build CityInfo from a Nominatim /reverse response body."""
    if not isinstance(payload, dict) or not payload or "error" in payload:
        return None

    address = payload.get("address") or {}
    display_name = payload.get("display_name") or ""

    city = next((address[f] for f in _CITY_FIELDS if address.get(f)), None)
    if city is None:
        city = display_name.split(",")[0].strip()

    try:
        lat = float(payload["lat"])
        lon = float(payload["lon"])
    except (KeyError, TypeError, ValueError):
        return None

    return CityInfo(
        city=city,
        country=address.get("country", ""),
        state=address.get("state"),
        full_address=display_name,
        latitude=lat,
        longitude=lon,
    )


class NominatimGeocoder:
    """
    Usage:
        async with httpx.AsyncClient() as client:
            geocoder = NominatimGeocoder(client, settings)
            city = await geocoder.lookup(Coordinates(52.52, 13.405))
    """

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self._client = client
        self._base_url = settings.nominatim_url.rstrip("/")
        self._language = settings.geocode_language
        self._headers = {"User-Agent": settings.user_agent}
        self._timeout = settings.http_timeout_s

    async def _get(self, path: str, params: dict[str, Any]) -> Any:
        resp = await self._client.get(
            f"{self._base_url}{path}",
            params={**params, "format": "json", "accept-language": self._language},
            headers=self._headers,
            timeout=self._timeout,
        )
        resp.raise_for_status()
        return resp.json()

    async def lookup(self, coords: Coordinates) -> CityInfo | None:
        """Reverse-geocode coords to city metadata, or None on any failure."""
        try:
            payload = await self._get(
                "/reverse", {"lat": coords.latitude, "lon": coords.longitude}
            )
        except (httpx.HTTPError, ValueError):
            logger.warning(
                "reverse geocode failed: lat=%.5f lon=%.5f",
                coords.latitude,
                coords.longitude,
                exc_info=True,
            )
            return None

        city = _parse_city_info(payload)
        if city is None:
            logger.debug("reverse geocode returned no address for %s", coords)
        return city

    async def search(self, name: str) -> Coordinates | None:
        """Resolve a free-text place name to coordinates (first match)."""
        if not name.strip():
            return None
        try:
            results = await self._get("/search", {"q": name, "limit": 1})
        except (httpx.HTTPError, ValueError):
            logger.warning("place search failed: q=%r", name, exc_info=True)
            return None

        if not results:
            return None
        try:
            return Coordinates(
                latitude=float(results[0]["lat"]),
                longitude=float(results[0]["lon"]),
            )
        except (KeyError, TypeError, ValueError, IndexError):
            logger.warning("place search returned malformed result: q=%r", name)
            return None
