"""
Overlay classifier scores onto a base attraction list.

merge() is a map, not a sort: output length and order always equal the
input. Scores are joined by exact, case-sensitive name; attractions without
a matching score get the neutral default.
"""

from __future__ import annotations

from dataclasses import replace
from typing import Iterable

from services.discovery.models import Attraction, ScoreResult

NEUTRAL_SCORE = 5
NEUTRAL_REASON = ""


def merge(attractions: list[Attraction], scores: Iterable[ScoreResult]) -> list[Attraction]:
    """
    Return copies of attractions with interest_score / interest_reason set.

    Duplicate score names: the first one wins. Scores for names that match
    no attraction are ignored.
    """
    by_name: dict[str, ScoreResult] = {}
    for score in scores:
        by_name.setdefault(score.name, score)

    merged: list[Attraction] = []
    for attraction in attractions:
        match = by_name.get(attraction.name)
        if match is None:
            merged.append(
                replace(attraction, interest_score=NEUTRAL_SCORE, interest_reason=NEUTRAL_REASON)
            )
        else:
            merged.append(
                replace(attraction, interest_score=match.score, interest_reason=match.reason)
            )
    return merged
