"""
OpenStreetMap Overpass API client for nearby attraction candidates.

Queries tourism / historic / leisure features around a point, maps OSM tags
onto a coarse category, and produces Attraction rows. Distances are NOT set
here; the aggregator computes them against the triggering fix.

Nodes carry lat/lon directly; ways and relations are requested with
``out center`` so they always have a usable centroid.
"""

from __future__ import annotations

import logging
import time
from typing import Any, Protocol

import httpx

from services.discovery.config import Settings
from services.discovery.errors import NetworkError
from services.discovery.models import RATING_MAX, Attraction, Coordinates

logger = logging.getLogger(__name__)

OVERPASS_TIMEOUT_S = 25

# ---------------------------------------------------------------------------
# OSM tag → category mapping
# ---------------------------------------------------------------------------
# Checked in order; the first (key, value) present on the element wins.
# A value of None matches any value for that key.

_TAG_CATEGORY_MAP: list[tuple[str, str | None, str]] = [
    ("tourism", "museum", "museum"),
    ("tourism", "gallery", "museum"),
    ("tourism", "artwork", "art"),
    ("tourism", "viewpoint", "viewpoint"),
    ("tourism", "zoo", "zoo"),
    ("tourism", "aquarium", "zoo"),
    ("tourism", "theme_park", "entertainment"),
    ("historic", "castle", "castle"),
    ("historic", "monument", "monument"),
    ("historic", "memorial", "monument"),
    ("historic", "ruins", "historic"),
    ("historic", None, "historic"),
    ("amenity", "place_of_worship", "church"),
    ("amenity", "theatre", "entertainment"),
    ("leisure", "park", "park"),
    ("leisure", "garden", "park"),
    ("leisure", "nature_reserve", "park"),
    ("tourism", "attraction", "attraction"),
]

_DEFAULT_CATEGORY = "attraction"

# Tags that indicate a well-documented, notable place. Each one present
# adds a share of the rating.
_PROMINENCE_TAGS = ("wikipedia", "wikidata", "website", "opening_hours", "image", "heritage")


def map_osm_category(tags: dict[str, str]) -> str:
    """
    Map OSM tags to one of our coarse attraction categories.

    Resolution order follows _TAG_CATEGORY_MAP; defaults to 'attraction'.
    """
    for key, value, category in _TAG_CATEGORY_MAP:
        tag_value = tags.get(key)
        if tag_value is None:
            continue
        if value is None or tag_value == value:
            return category
    return _DEFAULT_CATEGORY


def estimate_rating(tags: dict[str, str]) -> float:
    """Rate 0-5 by how well-documented an element is in OSM."""
    hits = sum(1 for t in _PROMINENCE_TAGS if tags.get(t))
    rating = 1.0 + (RATING_MAX - 1.0) * hits / len(_PROMINENCE_TAGS)
    return round(min(RATING_MAX, rating), 1)


def build_query(coords: Coordinates, radius_m: int) -> str:
    around = f"(around:{radius_m},{coords.latitude},{coords.longitude})"
    return f"""
    [out:json][timeout:{OVERPASS_TIMEOUT_S}];
    (
      nwr["tourism"~"museum|gallery|artwork|viewpoint|attraction|zoo|aquarium|theme_park"]["name"]{around};
      nwr["historic"]["name"]{around};
      nwr["amenity"~"place_of_worship|theatre"]["name"]["tourism"]{around};
      nwr["leisure"~"park|garden|nature_reserve"]["name"]["wikidata"]{around};
    );
    out center tags;
    """


def parse_elements(data: dict[str, Any]) -> list[Attraction]:
    """Extract attractions from an Overpass response body.

    Elements without a name or without coordinates are skipped; duplicate
    ids (an element matched by several clauses) are collapsed.
    """
    attractions: list[Attraction] = []
    seen: set[str] = set()

    for element in data.get("elements", []):
        tags = element.get("tags") or {}
        name = tags.get("name")
        if not name:
            continue

        if element.get("type") == "node":
            lat, lon = element.get("lat"), element.get("lon")
        else:
            center = element.get("center") or {}
            lat, lon = center.get("lat"), center.get("lon")
        if lat is None or lon is None:
            continue

        element_id = f"{element.get('type', 'node')}/{element.get('id')}"
        if element_id in seen:
            continue
        seen.add(element_id)

        attractions.append(
            Attraction(
                id=element_id,
                name=name,
                coordinates=Coordinates(latitude=float(lat), longitude=float(lon)),
                category=map_osm_category(tags),
                rating=estimate_rating(tags),
                description=tags.get("description"),
            )
        )
    return attractions


class AttractionSource(Protocol):
    """Protocol for live attraction sources."""

    async def fetch(self, coords: Coordinates) -> list[Attraction]:
        """Return raw candidates near coords. Raises NetworkError."""
        ...


class OverpassAttractionSource:
    """
    Live attraction source backed by the Overpass API.

    Usage:
        source = OverpassAttractionSource(client, settings)
        candidates = await source.fetch(Coordinates(52.52, 13.405))
    """

    def __init__(self, client: httpx.AsyncClient, settings: Settings) -> None:
        self._client = client
        self._url = settings.overpass_url
        self._radius_m = settings.search_radius_m
        self._headers = {"User-Agent": settings.user_agent}
        # Overpass holds the request open up to its own [timeout:N]
        self._timeout = max(settings.http_timeout_s, OVERPASS_TIMEOUT_S + 5)

    async def fetch(self, coords: Coordinates) -> list[Attraction]:
        query = build_query(coords, self._radius_m)
        start = time.monotonic()
        try:
            resp = await self._client.post(
                self._url,
                data={"data": query},
                headers=self._headers,
                timeout=self._timeout,
            )
            resp.raise_for_status()
            data = resp.json()
            if not isinstance(data, dict):
                logger.warning("Overpass returned %s payload for %s", type(data).__name__, coords)
                raise NetworkError("Overpass returned unexpected payload")
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            logger.warning("Overpass HTTP %d for %s", status, coords)
            raise NetworkError(f"Overpass returned HTTP {status}", status_code=status) from exc
        except httpx.HTTPError as exc:
            logger.warning("Overpass request failed for %s: %s", coords, exc)
            raise NetworkError(f"Overpass request failed: {exc}") from exc
        except ValueError as exc:
            logger.warning("Overpass returned invalid JSON for %s", coords)
            raise NetworkError("Overpass returned invalid JSON") from exc

        attractions = parse_elements(data)
        logger.info(
            "Overpass: %d attractions within %dm of (%.4f, %.4f) in %dms",
            len(attractions),
            self._radius_m,
            coords.latitude,
            coords.longitude,
            int((time.monotonic() - start) * 1000),
        )
        return attractions
