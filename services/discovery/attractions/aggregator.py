"""
AttractionAggregator — cache-first resolution of nearby attraction lists.

Flow for load_attractions(coords):
  1. Bucket coords to a fixed precision → cache key
  2. Fresh cache entry → return it, no network call
  3. Miss / expired → live source, compute distances against coords,
     sort nearest first, write back with a fresh timestamp

Concurrent callers for the same bucket share a single in-flight fetch.
Source failures (NetworkError) propagate; cache failures never do.
"""

from __future__ import annotations

import asyncio
import logging

from services.discovery.attractions.source import AttractionSource
from services.discovery.cache.store import ExpiringCacheStore
from services.discovery.geo.distance import (
    DEFAULT_BUCKET_PRECISION,
    bucket_key,
    distance_meters,
)
from services.discovery.models import Attraction, Coordinates

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 30 * 60 * 1000
DEFAULT_MAX_RESULTS = 50


def _cache_key(coords: Coordinates, precision: int) -> str:
    return f"attractions:{bucket_key(coords, precision)}"


def with_distances(candidates: list[Attraction], origin: Coordinates) -> list[Attraction]:
    """Return copies of candidates with distance set (whole meters), nearest first."""
    placed = [
        Attraction(
            id=c.id,
            name=c.name,
            coordinates=c.coordinates,
            category=c.category,
            distance=float(round(distance_meters(origin, c.coordinates))),
            rating=c.rating,
            description=c.description,
        )
        for c in candidates
    ]
    placed.sort(key=lambda a: a.distance)
    return placed


class AttractionAggregator:
    """
    Usage:
        aggregator = AttractionAggregator(source, cache)
        attractions = await aggregator.load_attractions(coords)
    """

    def __init__(
        self,
        source: AttractionSource,
        cache: ExpiringCacheStore,
        ttl_ms: int = DEFAULT_TTL_MS,
        precision: int = DEFAULT_BUCKET_PRECISION,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> None:
        self._source = source
        self._cache = cache
        self._ttl_ms = ttl_ms
        self._precision = precision
        self._max_results = max_results
        self._in_flight: dict[str, asyncio.Task] = {}

    def cache_key(self, coords: Coordinates) -> str:
        return _cache_key(coords, self._precision)

    async def load_attractions(self, coords: Coordinates) -> list[Attraction]:
        """
        Return attractions near coords, from cache when fresh.

        Raises:
            NetworkError if the cache misses and the live source fails.
        """
        key = self.cache_key(coords)

        cached = await self._cache.get_cached(key)
        if cached is not None:
            try:
                attractions = [Attraction.from_dict(item) for item in cached]
            except (KeyError, TypeError, ValueError):
                logger.warning("cached attraction list malformed, refetching: key=%s", key)
            else:
                logger.debug("attractions cache hit: key=%s count=%d", key, len(attractions))
                return attractions

        task = self._in_flight.get(key)
        if task is None or task.done():
            task = asyncio.create_task(self._fetch_and_store(key, coords))
            self._in_flight[key] = task
            task.add_done_callback(lambda _t, k=key: self._in_flight.pop(k, None))
        else:
            logger.debug("joining in-flight fetch: key=%s", key)

        # Shield so one caller being cancelled does not cancel the shared fetch
        return list(await asyncio.shield(task))

    async def invalidate(self, coords: Coordinates) -> bool:
        """Drop the cached list for the bucket containing coords."""
        return await self._cache.remove(self.cache_key(coords))

    async def _fetch_and_store(self, key: str, coords: Coordinates) -> list[Attraction]:
        candidates = await self._source.fetch(coords)
        attractions = with_distances(candidates, coords)[: self._max_results]

        stored = await self._cache.set_cached(
            key, [a.to_dict() for a in attractions], self._ttl_ms
        )
        logger.info(
            "attractions fetched: key=%s count=%d cached=%s",
            key,
            len(attractions),
            stored,
        )
        return attractions
