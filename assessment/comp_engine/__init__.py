"""
Comp Engine

Similarity scoring and comparable-property selection shared by the
valuation and appeal pipelines.
"""

from .similarity import similarity
from .selection import (
    DEFAULT_COMPARABLE_COUNT,
    ComparableSelector,
    ScoredComparable,
    select_comparables,
)

__all__ = [
    "similarity",
    "DEFAULT_COMPARABLE_COUNT",
    "ComparableSelector",
    "ScoredComparable",
    "select_comparables",
]
