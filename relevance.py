"""
relevance.py — rank image search results against free-text criteria.

Score (higher is better, never negative):
  +2  for every criteria keyword found in the title (repeats count again)
  +3 / +2 / +1  resolution bonus when width and height are both known
                (> 1 MP / > 0.5 MP / anything smaller)
  +1  when the image is not a product listing

analyze() sorts by score (stable, so equal scores keep the caller's order)
and labels the top three "Highly recommended", the next three
"Recommended" and everything else "Standard option".
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Any, Iterable

from search_backends.base import ImageResult

ONE_MEGAPIXEL = 1_000_000
HALF_MEGAPIXEL = 500_000


class Tier(enum.Enum):
    HIGHLY_RECOMMENDED = "Highly recommended"
    RECOMMENDED = "Recommended"
    STANDARD = "Standard option"


@dataclass(frozen=True)
class AnalyzedResult:
    result: ImageResult
    relevance_score: int
    recommendation: Tier

    def to_dict(self) -> dict[str, Any]:
        data = self.result.to_dict()
        data["relevance_score"] = self.relevance_score
        data["recommendation"] = self.recommendation.value
        return data


def score(result: ImageResult, criteria: str) -> int:
    points = 0

    title = result.title.lower()
    for keyword in criteria.lower().split():
        if keyword in title:
            points += 2

    area = result.area
    if area is not None:
        if area > ONE_MEGAPIXEL:
            points += 3
        elif area > HALF_MEGAPIXEL:
            points += 2
        else:
            points += 1

    if not result.is_product:
        points += 1

    return points


def tier_for_rank(rank: int) -> Tier:
    """0-based rank → recommendation tier."""
    if rank < 3:
        return Tier.HIGHLY_RECOMMENDED
    if rank < 6:
        return Tier.RECOMMENDED
    return Tier.STANDARD


def analyze(results: Iterable[ImageResult], criteria: str) -> list[AnalyzedResult]:
    scored = [(score(r, criteria), r) for r in results]
    # sorted() is stable, ties keep input order
    scored = sorted(scored, key=lambda pair: pair[0], reverse=True)
    return [
        AnalyzedResult(result=r, relevance_score=s, recommendation=tier_for_rank(rank))
        for rank, (s, r) in enumerate(scored)
    ]
