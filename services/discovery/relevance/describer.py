"""
Travel-guide descriptions for a place, tailored to the user's interests.

Descriptions are cached per (location, sorted interests) for a day. Only
successful LLM replies are cached; every failure path returns a readable
fallback message instead of raising.
"""

from __future__ import annotations

import asyncio
import hashlib
import logging
from typing import Sequence

import anthropic

from services.discovery.cache.store import ExpiringCacheStore

logger = logging.getLogger(__name__)

DESCRIBER_MODEL = "claude-haiku-4-5-20251001"
DEFAULT_TTL_MS = 24 * 60 * 60 * 1000
LLM_TIMEOUT_S = 15.0
MAX_TOKENS = 500

MSG_NOT_CONFIGURED = "No API key configured for AI descriptions."
MSG_RATE_LIMITED = "Too many requests right now. Please try again in a few minutes."
MSG_AUTH_FAILED = "The configured API key was rejected. Please check it in the settings."

_SYSTEM_PROMPT = (
    "You are a helpful travel guide. Give detailed, interesting and useful "
    "information about places and sights: history, highlights, cultural "
    "significance and practical tips. Keep it under 250 words."
)


def _description_key(location: str, interests: Sequence[str]) -> str:
    material = location.strip().lower() + "|" + ",".join(sorted(interests))
    return "descriptions:" + hashlib.sha256(material.encode("utf-8")).hexdigest()[:32]


class DescriptionService:
    """
    Args:
        client:  anthropic.AsyncAnthropic instance, or None when no valid
                 API key is configured.
        cache:   Shared ExpiringCacheStore.
    """

    def __init__(
        self,
        client: anthropic.AsyncAnthropic | None,
        cache: ExpiringCacheStore,
        model: str = DESCRIBER_MODEL,
        ttl_ms: int = DEFAULT_TTL_MS,
        timeout_s: float = LLM_TIMEOUT_S,
    ) -> None:
        self._client = client
        self._cache = cache
        self._model = model
        self._ttl_ms = ttl_ms
        self._timeout_s = timeout_s

    async def cached_description(self, location: str, interests: Sequence[str]) -> str | None:
        return await self._cache.get_cached(_description_key(location, interests))

    async def describe(
        self, location: str, interests: Sequence[str] = (), context: str = ""
    ) -> str:
        """Return a description for location, from cache when fresh."""
        key = _description_key(location, interests)
        cached = await self._cache.get_cached(key)
        if cached is not None:
            return cached

        if self._client is None:
            return MSG_NOT_CONFIGURED

        prompt = f"Tell me about {location}."
        if interests:
            prompt += f" I am especially interested in: {', '.join(interests)}."
        if context:
            prompt += f" {context}"

        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self._model,
                    max_tokens=MAX_TOKENS,
                    temperature=0.7,
                    system=_SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": prompt}],
                ),
                timeout=self._timeout_s,
            )
        except anthropic.RateLimitError:
            logger.warning("description rate limited: location=%s", location)
            return MSG_RATE_LIMITED
        except anthropic.AuthenticationError:
            logger.warning("description auth failed: location=%s", location)
            return MSG_AUTH_FAILED
        except asyncio.TimeoutError:
            logger.warning("description timed out after %.1fs: location=%s", self._timeout_s, location)
            return f"Could not load an AI description for {location}: request timed out."
        except anthropic.APIError as exc:
            logger.warning("description failed: location=%s", location, exc_info=True)
            return f"Could not load an AI description for {location}: {exc}"

        text = response.content[0].text.strip() if response.content else ""
        if not text:
            return f"Could not load an AI description for {location}."

        await self._cache.set_cached(key, text, self._ttl_ms)
        logger.info("description generated: location=%s chars=%d", location, len(text))
        return text
