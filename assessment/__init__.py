"""
Assessment Engine - Valuation & Appeal Intelligence

Pipeline components:
1. Comp Engine (similarity scoring, comparable selection)
2. Valuation Calculator (standard / income / sales comparison / cost)
3. Predictive Forecaster (model selection, confidence, seasonality)
4. Appeal Recommendation (probability, target value, savings, evidence)

AssessmentService is the entry point for callers; the engines
themselves are pure and never touch storage.
"""

from .errors import AssessmentError, InvalidInputError, NotFoundError
from .models import (
    AppealStatus,
    Property,
    PropertyAppeal,
    PropertyStatus,
    PropertyType,
    PropertyValuation,
    TaxRate,
    ValuationMethod,
    ValuationStatus,
)
from .repository import (
    AssessmentRepository,
    InMemoryAssessmentRepository,
    get_assessment_repository,
)

# Comp Engine
from .comp_engine import ComparableSelector, ScoredComparable, select_comparables, similarity

# Valuation
from .valuation import PredictiveValuationForecaster, ValuationCalculator

# Appeals
from .appeals import AppealRecommendation, AppealRecommendationEngine, EvidenceItem

from .service import AssessmentService, BatchResult

__all__ = [
    # Errors
    "AssessmentError",
    "InvalidInputError",
    "NotFoundError",
    # Models
    "AppealStatus",
    "Property",
    "PropertyAppeal",
    "PropertyStatus",
    "PropertyType",
    "PropertyValuation",
    "TaxRate",
    "ValuationMethod",
    "ValuationStatus",
    # Repository
    "AssessmentRepository",
    "InMemoryAssessmentRepository",
    "get_assessment_repository",
    # Comp Engine
    "ComparableSelector",
    "ScoredComparable",
    "select_comparables",
    "similarity",
    # Valuation
    "PredictiveValuationForecaster",
    "ValuationCalculator",
    # Appeals
    "AppealRecommendation",
    "AppealRecommendationEngine",
    "EvidenceItem",
    # Service
    "AssessmentService",
    "BatchResult",
]
