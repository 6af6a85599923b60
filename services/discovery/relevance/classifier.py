"""
LLM relevance classification for attraction names.

Uses claude-haiku to score each attraction 0-10 against the user's
interests, returning (name, score, reason) tuples. The model is asked for a
bare JSON array; Markdown code fences are tolerated and stripped.

Every call logs: model, prompt version, latency, token usage.
"""

from __future__ import annotations

import asyncio
import json
import logging
import re
import time
from typing import Any

import anthropic

from services.discovery.errors import ClassificationError
from services.discovery.models import ScoreResult

logger = logging.getLogger(__name__)

# Prompt version: bump whenever prompt text changes meaningfully
CLASSIFIER_PROMPT_VERSION = "relevance-v1.0"
CLASSIFIER_MODEL = "claude-haiku-4-5-20251001"
LLM_TIMEOUT_S = 10.0
MAX_TOKENS = 1500

SCORE_MIN = 0.0
SCORE_MAX = 10.0

_FENCE_RE = re.compile(r"```(?:json)?\s*([\s\S]*?)```")

_SYSTEM_PROMPT = """You are a travel expert. You rate sights against a traveler's interests.

Return ONLY a JSON array, no Markdown, in this exact shape:
[{"name": "<sight name exactly as given>", "score": 8, "reason": "<short reason>"}]

Rules:
- Include every sight from the list exactly once, using its name verbatim.
- score is an integer from 0 (irrelevant) to 10 (perfect match).
- reason is one short sentence.
- Never invent sights that are not in the list."""


def is_valid_api_key(key: str | None) -> bool:
    """True when key has the shape of an API key (non-empty, "sk-" prefix)."""
    return bool(key) and key.startswith("sk-")


def _build_user_prompt(names: list[str], interests: list[str]) -> str:
    return json.dumps({"interests": interests, "sights": names}, ensure_ascii=False)


def parse_scores(content: str) -> list[ScoreResult]:
    """
    Parse the model's reply into ScoreResults.

    Unparseable content yields []; individual malformed items are dropped.
    Scores are clamped to 0-10.
    """
    text = content.strip()
    fenced = _FENCE_RE.search(text)
    if fenced:
        text = fenced.group(1).strip()

    try:
        parsed: Any = json.loads(text)
    except json.JSONDecodeError:
        logger.warning("classifier returned unparseable response: %s", content[:300])
        return []

    if isinstance(parsed, dict):
        parsed = parsed.get("scores", [])
    if not isinstance(parsed, list):
        return []

    results: list[ScoreResult] = []
    for item in parsed:
        if not isinstance(item, dict):
            continue
        try:
            score = ScoreResult.from_dict(item)
        except (KeyError, TypeError, ValueError):
            continue
        clamped = min(SCORE_MAX, max(SCORE_MIN, score.score))
        results.append(ScoreResult(name=score.name, score=clamped, reason=score.reason))
    return results


class AnthropicClassifier:
    """
    Args:
        client:    anthropic.AsyncAnthropic instance.
        model:     Model id used for scoring.
        timeout_s: Hard timeout for one classification call.
    """

    def __init__(
        self,
        client: anthropic.AsyncAnthropic,
        model: str = CLASSIFIER_MODEL,
        timeout_s: float = LLM_TIMEOUT_S,
    ) -> None:
        self._client = client
        self._model = model
        self._timeout_s = timeout_s

    async def classify(self, names: list[str], interests: list[str]) -> list[ScoreResult]:
        """
        Score names against interests.

        Raises:
            ClassificationError on timeout or Anthropic API errors.
        """
        if not names or not interests:
            return []

        start = time.monotonic()
        try:
            response = await asyncio.wait_for(
                self._client.messages.create(
                    model=self._model,
                    max_tokens=MAX_TOKENS,
                    temperature=0.3,
                    system=_SYSTEM_PROMPT,
                    messages=[{"role": "user", "content": _build_user_prompt(names, interests)}],
                ),
                timeout=self._timeout_s,
            )
        except asyncio.TimeoutError as exc:
            raise ClassificationError(
                f"classification timed out after {self._timeout_s}s"
            ) from exc
        except anthropic.APIError as exc:
            raise ClassificationError(f"classification API error: {exc}") from exc

        latency_ms = int((time.monotonic() - start) * 1000)
        raw_text = response.content[0].text if response.content else ""
        scores = parse_scores(raw_text)

        logger.info(
            "classification complete: model=%s prompt=%s names=%d scored=%d latency_ms=%d in=%d out=%d",
            self._model,
            CLASSIFIER_PROMPT_VERSION,
            len(names),
            len(scores),
            latency_ms,
            response.usage.input_tokens,
            response.usage.output_tokens,
        )
        return scores
