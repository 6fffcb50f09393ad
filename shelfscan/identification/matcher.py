"""
Best-Match Selector

Scores every candidate returned by one catalog search and keeps the best,
subject to the shared acceptance threshold.
"""

from dataclasses import dataclass
from typing import Callable, Generic, Optional, Sequence, TypeVar

from loguru import logger

from shelfscan.identification.similarity import DEFAULT_POLICY, MatchPolicy, title_score
from shelfscan.identification.types import Confidence


T = TypeVar("T")


@dataclass
class BestMatch(Generic[T]):
    """Winning candidate with its score and tier."""

    candidate: T
    score: float
    confidence: Confidence


class BestMatchSelector:
    """
    Picks the highest-scoring candidate for a query.

    Ties go to the first candidate seen, relying on the catalog's own
    relevance order. Anything under the acceptance threshold is rejected.

    Usage:
        selector = BestMatchSelector()
        match = selector.select(
            "Alien", 1979, results,
            name=lambda c: c.display_name,
            candidate_year=lambda c: c.year,
        )
    """

    def __init__(self, policy: Optional[MatchPolicy] = None):
        self.policy = policy or DEFAULT_POLICY

    def select(
        self,
        title: str,
        year: Optional[int],
        candidates: Sequence[T],
        name: Callable[[T], str],
        candidate_year: Callable[[T], Optional[int]],
    ) -> Optional[BestMatch[T]]:
        """
        Select the best candidate.

        Args:
            title: Query title
            year: Query year, if known
            candidates: Catalog results in catalog order
            name: Extracts the display name of a candidate
            candidate_year: Extracts the year of a candidate

        Returns:
            BestMatch, or None when nothing reaches the acceptance threshold
        """
        best: Optional[T] = None
        best_score = 0.0

        for candidate in candidates:
            score = title_score(
                title,
                name(candidate) or "",
                query_year=year,
                candidate_year=candidate_year(candidate),
                policy=self.policy,
            )
            if score > best_score:
                best_score = score
                best = candidate

        if best is None:
            logger.debug(f"No scorable candidates for '{title}'")
            return None

        if best_score < self.policy.accept_threshold:
            logger.debug(
                f"Best candidate '{name(best)}' for '{title}' scored {best_score:.3f}, "
                f"below threshold {self.policy.accept_threshold}"
            )
            return None

        return BestMatch(
            candidate=best,
            score=best_score,
            confidence=self.policy.confidence_for(best_score),
        )
