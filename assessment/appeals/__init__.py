"""
Appeals

Appeal success scoring, value recommendation and evidence generation.
"""

from .engine import (
    AppealRecommendationEngine,
    find_successful_appeals,
    latest_valuation,
)
from .evidence import build_evidence
from .models import AppealPrecedent, AppealRecommendation, EvidenceItem, EvidenceType

__all__ = [
    "AppealRecommendationEngine",
    "find_successful_appeals",
    "latest_valuation",
    "build_evidence",
    "AppealPrecedent",
    "AppealRecommendation",
    "EvidenceItem",
    "EvidenceType",
]
