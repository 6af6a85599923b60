"""
DiscoveryContext — every shared service, constructed once at process start.

Consumers receive the context explicitly instead of importing module-level
singletons. build_context() wires the cache backend, the shared HTTP client,
the optional Anthropic client, and the services that depend on them.

Graceful degradation: without a valid Anthropic key the relevance service
has no classifier (lists pass through unscored) and descriptions return a
"not configured" message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

import anthropic
import httpx

from services.discovery.attractions.aggregator import AttractionAggregator
from services.discovery.attractions.source import AttractionSource, OverpassAttractionSource
from services.discovery.cache.backends import KeyValueBackend, build_backend
from services.discovery.cache.store import ExpiringCacheStore
from services.discovery.config import Settings
from services.discovery.location.geocoder import NominatimGeocoder
from services.discovery.location.provider import LocationProvider, TrackingOptions
from services.discovery.location.tracker import LocationTracker
from services.discovery.relevance.classifier import AnthropicClassifier, is_valid_api_key
from services.discovery.relevance.describer import DescriptionService
from services.discovery.relevance.service import RelevanceService
from services.discovery.relevance.wikipedia import WikipediaService

logger = logging.getLogger(__name__)

_LIMITS = httpx.Limits(max_connections=10, max_keepalive_connections=5)


@dataclass
class DiscoveryContext:
    settings: Settings
    http_client: httpx.AsyncClient
    cache: ExpiringCacheStore
    tracker: LocationTracker
    aggregator: AttractionAggregator
    relevance: RelevanceService
    describer: DescriptionService
    geocoder: NominatimGeocoder
    wikipedia: WikipediaService

    async def aclose(self) -> None:
        """Release the tracker subscription, HTTP client and cache backend."""
        await self.tracker.aclose()
        if not self.http_client.is_closed:
            await self.http_client.aclose()
        try:
            await self.cache.backend.aclose()
        except Exception:
            logger.warning("cache backend close failed", exc_info=True)


def build_context(
    settings: Settings,
    location_provider: LocationProvider,
    *,
    backend: KeyValueBackend | None = None,
    http_client: httpx.AsyncClient | None = None,
    anthropic_client: anthropic.AsyncAnthropic | None = None,
    attraction_source: AttractionSource | None = None,
) -> DiscoveryContext:
    """
    Construct the full service graph.

    Every keyword argument overrides the default built from settings, which
    is how tests inject fakes.
    """
    http_client = http_client or httpx.AsyncClient(
        timeout=httpx.Timeout(settings.http_timeout_s, connect=10.0),
        follow_redirects=True,
        limits=_LIMITS,
        headers={"User-Agent": settings.user_agent},
    )
    cache: ExpiringCacheStore = ExpiringCacheStore(backend or build_backend(settings))

    if anthropic_client is None and is_valid_api_key(settings.anthropic_api_key):
        anthropic_client = anthropic.AsyncAnthropic(api_key=settings.anthropic_api_key)
    if anthropic_client is None:
        logger.info("No valid Anthropic key configured; relevance scoring disabled")

    geocoder = NominatimGeocoder(http_client, settings)
    tracker = LocationTracker(
        location_provider,
        geocoder,
        options=TrackingOptions(
            min_distance_meters=settings.tracking_min_distance_m,
            min_interval_ms=settings.tracking_min_interval_ms,
        ),
        threshold_m=settings.movement_threshold_m,
    )
    aggregator = AttractionAggregator(
        attraction_source or OverpassAttractionSource(http_client, settings),
        cache,
        ttl_ms=settings.attractions_ttl_ms,
        precision=settings.bucket_precision,
        max_results=settings.max_attractions,
    )
    classifier = (
        AnthropicClassifier(
            anthropic_client,
            model=settings.classifier_model,
            timeout_s=settings.classifier_timeout_s,
        )
        if anthropic_client is not None
        else None
    )
    relevance = RelevanceService(classifier, cache, ttl_ms=settings.scores_ttl_ms)
    describer = DescriptionService(
        anthropic_client,
        cache,
        model=settings.describer_model,
        ttl_ms=settings.descriptions_ttl_ms,
        timeout_s=settings.describer_timeout_s,
    )

    return DiscoveryContext(
        settings=settings,
        http_client=http_client,
        cache=cache,
        tracker=tracker,
        aggregator=aggregator,
        relevance=relevance,
        describer=describer,
        geocoder=geocoder,
        wikipedia=WikipediaService(http_client, settings, cache=cache, ttl_ms=settings.wikipedia_ttl_ms),
    )
