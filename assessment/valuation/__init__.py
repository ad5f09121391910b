"""
Valuation

Method-specific valuation and history-based forecasting.
"""

from .calculator import DEFAULT_ASSESSMENT_RATIO, ValuationCalculator
from .forecaster import ModelSelection, PredictiveValuationForecaster

__all__ = [
    "DEFAULT_ASSESSMENT_RATIO",
    "ValuationCalculator",
    "ModelSelection",
    "PredictiveValuationForecaster",
]
