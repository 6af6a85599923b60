"""
Relevance layer — personal scoring of attractions.

merge
    Pure overlay of (name, score, reason) tuples onto an attraction list.

AnthropicClassifier
    LLM scoring of attraction names against user interests.

RelevanceService
    Cached, best-effort wrapper: classify → cache → merge.

DescriptionService
    Cached travel-guide descriptions for a place.

WikipediaService
    Intro extracts, title search and lead images from Wikipedia.
"""

from __future__ import annotations

from services.discovery.relevance.classifier import AnthropicClassifier, is_valid_api_key
from services.discovery.relevance.describer import DescriptionService
from services.discovery.relevance.merger import NEUTRAL_SCORE, merge
from services.discovery.relevance.service import RelevanceService
from services.discovery.relevance.wikipedia import WikipediaService

__all__ = [
    "AnthropicClassifier",
    "DescriptionService",
    "NEUTRAL_SCORE",
    "RelevanceService",
    "WikipediaService",
    "is_valid_api_key",
    "merge",
]
