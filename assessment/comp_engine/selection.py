"""
Comparable Property Selection

Ranks a candidate pool by similarity to the subject and keeps the top K.
Only same-tenant, non-deleted properties other than the subject are
eligible. Ties keep the pool's original order.
"""

from dataclasses import dataclass
from typing import Iterable, List

from ..models import Property
from .similarity import similarity


DEFAULT_COMPARABLE_COUNT = 5


@dataclass(frozen=True)
class ScoredComparable:
    """A comparable property with its similarity to the subject."""
    property: Property
    similarity: float


class ComparableSelector:
    """
    Selects the most similar properties from a candidate pool.

    Deterministic for a given pool order, so evidence built from the
    selection is reproducible.
    """

    def __init__(self, k: int = DEFAULT_COMPARABLE_COUNT):
        """
        Initialize selector.

        Args:
            k: Maximum number of comparables to return
        """
        if k < 0:
            raise ValueError("k must be non-negative")
        self._k = k

    def rank(
        self,
        subject: Property,
        candidates: Iterable[Property],
    ) -> List[ScoredComparable]:
        """
        Score every eligible candidate and return the top K, best first.

        Args:
            subject: The property being analysed
            candidates: Candidate pool, in storage order

        Returns:
            Up to K ScoredComparable, sorted by similarity descending
        """
        scored = [
            ScoredComparable(property=c, similarity=similarity(subject, c))
            for c in candidates
            if self._is_eligible(subject, c)
        ]
        # sorted() is stable, so equal scores keep pool order
        scored = sorted(scored, key=lambda item: item.similarity, reverse=True)
        return scored[:self._k]

    def select(
        self,
        subject: Property,
        candidates: Iterable[Property],
    ) -> List[Property]:
        """Top-K comparable properties, best first."""
        return [item.property for item in self.rank(subject, candidates)]

    @staticmethod
    def _is_eligible(subject: Property, candidate: Property) -> bool:
        if candidate.tenant_id != subject.tenant_id:
            return False
        if candidate.id == subject.id:
            return False
        return not candidate.is_deleted


def select_comparables(
    subject: Property,
    candidate_pool: Iterable[Property],
    k: int = DEFAULT_COMPARABLE_COUNT,
) -> List[Property]:
    """Convenience wrapper around ComparableSelector.select."""
    return ComparableSelector(k=k).select(subject, candidate_pool)
