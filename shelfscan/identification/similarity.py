"""
Similarity Scorer

Edit-distance based title similarity with a media-title scoring policy:
raw and season-stripped variants of the query are both compared against
the candidate name, the better of the two wins, and an exact year match
earns a small bonus.
"""

from dataclasses import dataclass
from typing import Optional

import Levenshtein
from loguru import logger

from shelfscan.identification.normalizer import strip_article, strip_series_suffix
from shelfscan.identification.types import Confidence


@dataclass(frozen=True)
class MatchPolicy:
    """Acceptance thresholds shared by every matching path."""

    accept_threshold: float = 0.50
    high_threshold: float = 0.85
    year_bonus: float = 0.10
    search_window: int = 5

    def confidence_for(self, score: float) -> Confidence:
        if score >= self.high_threshold:
            return Confidence.HIGH
        if score >= self.accept_threshold:
            return Confidence.LOW
        return Confidence.UNMATCHED


DEFAULT_POLICY = MatchPolicy()


def edit_distance(a: str, b: str) -> int:
    """Unit-cost insert/delete/substitute distance."""
    return Levenshtein.distance(a, b)


def similarity(a: str, b: str) -> float:
    """Normalized similarity in [0, 1]; two empty strings are identical."""
    longest = max(len(a), len(b))
    if longest == 0:
        return 1.0
    return 1.0 - edit_distance(a, b) / longest


def title_score(
    query: str,
    candidate_name: str,
    query_year: Optional[int] = None,
    candidate_year: Optional[int] = None,
    policy: MatchPolicy = DEFAULT_POLICY,
) -> float:
    """
    Score a candidate name against a query title.

    The policy is asymmetric: only the query is season-stripped, since
    catalogs index series by their bare name.

    Args:
        query: Title guessed by the vision model
        candidate_name: Display name of the catalog record
        query_year: Year guessed for the query (0/None means unknown)
        candidate_year: Release or first-air year of the candidate
        policy: Bonus and clamp settings

    Returns:
        Score in [0, 1]
    """
    normalized_query = strip_article(query.lower().strip())
    normalized_candidate = strip_article(candidate_name.lower().strip())
    raw_score = similarity(normalized_query, normalized_candidate)

    stripped_query = strip_article(strip_series_suffix(query).lower().strip())
    stripped_score = similarity(stripped_query, normalized_candidate)

    score = max(raw_score, stripped_score)

    bonus = 0.0
    if query_year and candidate_year and query_year == candidate_year:
        bonus = policy.year_bonus
    total = min(score + bonus, 1.0)

    logger.debug(
        f"Title score '{query}' vs '{candidate_name}': "
        f"raw={raw_score:.3f} stripped={stripped_score:.3f} "
        f"year_bonus={bonus:.2f} total={total:.3f}"
    )
    return total
