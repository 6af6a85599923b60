"""
RelevanceService — cached, best-effort relevance ranking.

rank(attractions, interests):
  - no classifier (missing / invalid API key), no interests, or nothing to
    rank → the input list is returned unchanged and merge() is not called
  - otherwise scores are read from the cache (keyed on the sorted name set
    and sorted interests), classified on a miss, cached, and merged

Classification is best-effort: any failure is logged and the unscored list
passes through.
"""

from __future__ import annotations

import hashlib
import logging
from typing import Protocol, Sequence

from services.discovery.cache.store import ExpiringCacheStore
from services.discovery.models import Attraction, ScoreResult
from services.discovery.relevance.merger import merge

logger = logging.getLogger(__name__)

DEFAULT_TTL_MS = 60 * 60 * 1000


class Classifier(Protocol):
    async def classify(self, names: list[str], interests: list[str]) -> list[ScoreResult]:
        ...


def _scores_key(names: Sequence[str], interests: Sequence[str]) -> str:
    material = "\x1f".join(sorted(set(names))) + "\x1e" + "\x1f".join(sorted(set(interests)))
    digest = hashlib.sha256(material.encode("utf-8")).hexdigest()[:32]
    return f"scores:{digest}"


class RelevanceService:
    """
    Usage:
        relevance = RelevanceService(classifier, cache)
        ranked = await relevance.rank(attractions, ["history", "art"])
    """

    def __init__(
        self,
        classifier: Classifier | None,
        cache: ExpiringCacheStore,
        ttl_ms: int = DEFAULT_TTL_MS,
    ) -> None:
        self._classifier = classifier
        self._cache = cache
        self._ttl_ms = ttl_ms

    @property
    def enabled(self) -> bool:
        return self._classifier is not None

    async def rank(
        self, attractions: list[Attraction], interests: Sequence[str]
    ) -> list[Attraction]:
        interests = [i.strip() for i in interests if i and i.strip()]
        if self._classifier is None or not interests or not attractions:
            return attractions

        scores = await self.scores_for(attractions, interests)
        if scores is None:
            return attractions
        return merge(attractions, scores)

    async def scores_for(
        self, attractions: list[Attraction], interests: Sequence[str]
    ) -> list[ScoreResult] | None:
        """Return cached or freshly classified scores, or None on failure."""
        if self._classifier is None:
            return None

        names = [a.name for a in attractions]
        key = _scores_key(names, interests)

        cached = await self._cache.get_cached(key)
        if cached is not None:
            try:
                return [ScoreResult.from_dict(item) for item in cached]
            except (KeyError, TypeError, ValueError):
                logger.warning("cached scores malformed, reclassifying: key=%s", key)

        try:
            scores = await self._classifier.classify(list(dict.fromkeys(names)), list(interests))
        except Exception:
            logger.warning(
                "relevance classification failed; returning unscored list (%d attractions)",
                len(attractions),
                exc_info=True,
            )
            return None

        if scores:
            await self._cache.set_cached(key, [s.to_dict() for s in scores], self._ttl_ms)
        return scores
