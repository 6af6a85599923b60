"""
Wikipedia lookups for the place details view.

Three MediaWiki API calls, all best-effort:
  action=query&prop=extracts|pageimages|coordinates  → intro text + centroid
  action=opensearch                                  → title suggestions
  action=query&prop=pageimages&piprop=original       → lead image URL

Failures are logged and turned into a readable summary, an empty list or
None. Found summaries are cached per language and title.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any

import httpx

from services.discovery.cache.store import ExpiringCacheStore
from services.discovery.config import Settings
from services.discovery.models import Coordinates

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 24 * 60 * 60 * 1000
IMAGE_TIMEOUT_S = 8.0
SEARCH_LIMIT = 10

MSG_NOT_FOUND = "No detailed information is currently available for this place."
MSG_NO_EXTRACT = "No description available."
MSG_NO_SEARCH_DESCRIPTION = "No description"

# Page id MediaWiki uses for a title that does not exist
_MISSING_PAGE_ID = "-1"


@dataclass(frozen=True)
class WikiSummary:
    title: str
    extract: str
    coordinates: Coordinates | None = None
    found: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "title": self.title,
            "extract": self.extract,
            "coordinates": self.coordinates.to_dict() if self.coordinates else None,
            "found": self.found,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "WikiSummary":
        coords = data.get("coordinates")
        return cls(
            title=data["title"],
            extract=data["extract"],
            coordinates=Coordinates.from_dict(coords) if coords else None,
            found=bool(data.get("found", True)),
        )


@dataclass(frozen=True)
class WikiSearchResult:
    title: str
    description: str
    url: str


def _unavailable(title: str) -> WikiSummary:
    return WikiSummary(
        title=title,
        extract=f'Information for "{title}" could not be loaded.',
        found=False,
    )


def _first_page(payload: Any) -> tuple[str, dict[str, Any]] | None:
    """Return (page_id, page) of the first page in a query response."""
    if not isinstance(payload, dict):
        return None
    query = payload.get("query")
    if not isinstance(query, dict):
        return None
    pages = query.get("pages")
    if not isinstance(pages, dict) or not pages:
        return None
    page_id = next(iter(pages))
    page = pages[page_id]
    return (str(page_id), page) if isinstance(page, dict) else None


def _parse_summary(title: str, payload: Any) -> WikiSummary:
    first = _first_page(payload)
    if first is None:
        return _unavailable(title)

    page_id, page = first
    if page_id == _MISSING_PAGE_ID or "missing" in page:
        return WikiSummary(title=title, extract=MSG_NOT_FOUND, found=False)

    coordinates = None
    points = page.get("coordinates") or []
    if points:
        try:
            coordinates = Coordinates(
                latitude=float(points[0]["lat"]), longitude=float(points[0]["lon"])
            )
        except (KeyError, TypeError, ValueError):
            coordinates = None

    return WikiSummary(
        title=page.get("title") or title,
        extract=page.get("extract") or MSG_NO_EXTRACT,
        coordinates=coordinates,
    )


class WikipediaService:
    """
    Usage:
        wiki = WikipediaService(client, settings, cache=cache)
        summary = await wiki.fetch_summary("Potsdam")
        image_url = await wiki.city_image("Potsdam")
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        settings: Settings,
        cache: ExpiringCacheStore | None = None,
        ttl_ms: int = DEFAULT_TTL_MS,
    ) -> None:
        self._client = client
        self._url_template = settings.wikipedia_api_url
        self._language = settings.geocode_language
        self._headers = {"User-Agent": settings.user_agent}
        self._timeout = settings.http_timeout_s
        self._cache = cache
        self._ttl_ms = ttl_ms

    def _api_url(self, language: str) -> str:
        return self._url_template.format(language=language)

    async def _get(
        self, language: str, params: dict[str, Any], timeout: float | None = None
    ) -> Any:
        resp = await self._client.get(
            self._api_url(language),
            params={**params, "format": "json"},
            headers=self._headers,
            timeout=timeout or self._timeout,
        )
        resp.raise_for_status()
        return resp.json()

    async def fetch_summary(self, title: str, language: str | None = None) -> WikiSummary:
        """Intro extract and coordinates for title. Never raises."""
        title = title.strip()
        language = language or self._language
        if not title:
            return WikiSummary(title=title, extract=MSG_NOT_FOUND, found=False)

        key = f"wiki:{language}:{title}"
        if self._cache is not None:
            cached = await self._cache.get_cached(key)
            if cached is not None:
                try:
                    return WikiSummary.from_dict(cached)
                except (KeyError, TypeError, ValueError):
                    logger.warning("cached wiki summary malformed: key=%s", key)

        try:
            payload = await self._get(
                language,
                {
                    "action": "query",
                    "prop": "extracts|pageimages|coordinates",
                    "exintro": 1,
                    "explaintext": 1,
                    "redirects": 1,
                    "titles": title,
                },
            )
        except (httpx.HTTPError, ValueError):
            logger.warning("wikipedia summary failed: title=%r lang=%s", title, language, exc_info=True)
            return _unavailable(title)

        summary = _parse_summary(title, payload)
        if summary.found and self._cache is not None:
            await self._cache.set_cached(key, summary.to_dict(), self._ttl_ms)
        logger.debug("wikipedia summary: title=%r found=%s", title, summary.found)
        return summary

    async def search(
        self, term: str, language: str | None = None, limit: int = SEARCH_LIMIT
    ) -> list[WikiSearchResult]:
        """Opensearch title suggestions; [] on blank input or any failure."""
        if not term.strip():
            return []
        language = language or self._language
        try:
            payload = await self._get(
                language, {"action": "opensearch", "search": term, "limit": limit}
            )
        except (httpx.HTTPError, ValueError):
            logger.warning("wikipedia search failed: q=%r", term, exc_info=True)
            return []

        # [term, [titles], [descriptions], [urls]]
        if not isinstance(payload, list) or len(payload) < 2 or not isinstance(payload[1], list):
            return []
        titles = payload[1]
        descriptions = payload[2] if len(payload) > 2 and isinstance(payload[2], list) else []
        urls = payload[3] if len(payload) > 3 and isinstance(payload[3], list) else []

        results: list[WikiSearchResult] = []
        for i, title in enumerate(titles):
            description = descriptions[i] if i < len(descriptions) else ""
            results.append(
                WikiSearchResult(
                    title=str(title),
                    description=description or MSG_NO_SEARCH_DESCRIPTION,
                    url=urls[i] if i < len(urls) else "",
                )
            )
        return results

    async def city_image(self, name: str, language: str | None = None) -> str | None:
        """URL of the page's original lead image, or None."""
        if not name.strip():
            return None
        language = language or self._language
        try:
            payload = await self._get(
                language,
                {"action": "query", "titles": name, "prop": "pageimages", "piprop": "original"},
                timeout=IMAGE_TIMEOUT_S,
            )
        except (httpx.HTTPError, ValueError):
            logger.warning("wikipedia image lookup failed: name=%r", name, exc_info=True)
            return None

        first = _first_page(payload)
        if first is None:
            return None
        page_id, page = first
        if page_id == _MISSING_PAGE_ID:
            return None
        original = page.get("original")
        if not isinstance(original, dict):
            return None
        return original.get("source")
