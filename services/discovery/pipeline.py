"""
Discovery pipeline — location → candidates → relevance.

Flow:
  1. Resolve coordinates (given, or from the tracker)
  2. AttractionAggregator: cache-first candidate list with distances
  3. RelevanceService: optional, best-effort score overlay
  4. Return a DiscoveryResult the UI can render as-is

Provider and network failures are reported on DiscoveryResult.error so the
UI can offer a retry; nothing here raises for them.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field
from typing import Sequence

from services.discovery.context import DiscoveryContext
from services.discovery.errors import DiscoveryError, ProviderUnavailable
from services.discovery.models import Attraction, Coordinates

logger = logging.getLogger(__name__)


@dataclass
class DiscoveryResult:
    coordinates: Coordinates | None
    attractions: list[Attraction] = field(default_factory=list)
    ranked: bool = False
    error: DiscoveryError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class DiscoveryPipeline:
    """
    Usage:
        context = build_context(settings, provider)
        pipeline = DiscoveryPipeline(context)
        result = await pipeline.discover_here(["history", "architecture"])
    """

    def __init__(self, context: DiscoveryContext) -> None:
        self._ctx = context

    async def discover(
        self, coords: Coordinates, interests: Sequence[str] = ()
    ) -> DiscoveryResult:
        start = time.monotonic()
        try:
            attractions = await self._ctx.aggregator.load_attractions(coords)
        except DiscoveryError as exc:
            logger.warning("discovery failed at %s: %s", coords, exc)
            return DiscoveryResult(coordinates=coords, error=exc)

        ranked_list = await self._ctx.relevance.rank(attractions, interests)
        ranked = ranked_list is not attractions

        logger.info(
            "discovery complete: count=%d ranked=%s latency_ms=%d",
            len(ranked_list),
            ranked,
            int((time.monotonic() - start) * 1000),
        )
        return DiscoveryResult(coordinates=coords, attractions=ranked_list, ranked=ranked)

    async def discover_here(self, interests: Sequence[str] = ()) -> DiscoveryResult:
        """Discover around the tracker's current fix, resolving one if needed."""
        tracker = self._ctx.tracker
        coords = tracker.coordinates
        if coords is None:
            coords = await tracker.load_location()
        if coords is None:
            error = tracker.error or ProviderUnavailable("no location fix available")
            return DiscoveryResult(coordinates=None, error=error)
        return await self.discover(coords, interests)

    async def refresh(self, interests: Sequence[str] = ()) -> DiscoveryResult:
        """Pull-to-refresh: live location query, drop the cached bucket, rediscover."""
        coords = await self._ctx.tracker.refresh_location()
        if coords is None:
            coords = self._ctx.tracker.coordinates
        if coords is None:
            error = self._ctx.tracker.error or ProviderUnavailable("no location fix available")
            return DiscoveryResult(coordinates=None, error=error)
        await self._ctx.aggregator.invalidate(coords)
        return await self.discover(coords, interests)
