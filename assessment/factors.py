"""
Typed valuation factor records.

Every valuation carries the inputs that produced it so that audits and
appeal evidence can quote them later. Each method owns one factor record;
all of them serialise to a plain document tagged with ``method`` so the
storage format stays open.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from typing import Any, ClassVar, Optional


@dataclass(frozen=True)
class AssessmentTerms:
    """Jurisdiction terms applied after market value is known."""

    market_value: float
    assessment_ratio: float
    exemption_amount: float = 0.0
    millage_rate: Optional[float] = None
    tax_rate_id: Optional[int] = None


@dataclass(frozen=True)
class ValuationFactors:
    """Base for all method-specific factor records."""

    method: ClassVar[str] = ""

    def to_dict(self) -> dict:
        """Open document form for storage and audit."""
        data = asdict(self)
        for key, value in data.items():
            if isinstance(value, tuple):
                data[key] = list(value)
        data["method"] = self.method
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "ValuationFactors":
        names = {f.name for f in fields(cls)}
        kwargs = {key: value for key, value in data.items() if key in names}
        if "terms" in kwargs and isinstance(kwargs["terms"], dict):
            kwargs["terms"] = AssessmentTerms(**kwargs["terms"])
        for key, value in kwargs.items():
            if isinstance(value, list):
                kwargs[key] = tuple(value)
        return cls(**kwargs)


# =============================================================================
# Valuation Calculator Factors
# =============================================================================


@dataclass(frozen=True)
class StandardFactors(ValuationFactors):
    method: ClassVar[str] = "standard"

    land_area: float
    land_rate: float
    building_area: float
    building_rate: float
    feature_count: int
    per_feature_value: float
    terms: AssessmentTerms
    requested_method: Optional[str] = None


@dataclass(frozen=True)
class IncomeFactors(ValuationFactors):
    method: ClassVar[str] = "income"

    annual_income: float
    income_source: str  # "reported" or "estimated"
    income_area: float
    income_per_sqft: float
    cap_rate: float
    terms: AssessmentTerms


@dataclass(frozen=True)
class SalesComparisonFactors(ValuationFactors):
    method: ClassVar[str] = "sales_comparison"

    base_area_value: float
    land_area: float
    reference_lot: float
    size_factor: float
    condition: Optional[str]
    condition_factor: float
    terms: AssessmentTerms


@dataclass(frozen=True)
class CostFactors(ValuationFactors):
    method: ClassVar[str] = "cost"

    land_area: float
    land_unit_rate: float
    building_area: float
    building_unit_rate: float
    age_years: Optional[int]
    depreciation_factor: float
    terms: AssessmentTerms


# =============================================================================
# Forecast Factors
# =============================================================================


@dataclass(frozen=True)
class RegressionFactors(ValuationFactors):
    method: ClassVar[str] = "time_series_analysis"

    slope: float  # value units per millisecond
    intercept: float
    r2: float
    mape: float
    residuals: tuple = ()
    market_value_multiplier: float = 1.05
    taxable_ratio: float = 1.0


@dataclass(frozen=True)
class TrendFactors(ValuationFactors):
    method: ClassVar[str] = "linear_trend"

    annual_rates: tuple
    average_annual_rate: float
    years_to_prediction: float


@dataclass(frozen=True)
class ExtrapolationFactors(ValuationFactors):
    method: ClassVar[str] = "simple_extrapolation"

    older_value: float
    newer_value: float
    observed_change_rate: float
    years_to_prediction: float


@dataclass(frozen=True)
class LimitedDataFactors(ValuationFactors):
    method: ClassVar[str] = "limited_data"

    last_known_value: float
    default_growth_rate: float
    property_type: str
    years_to_prediction: float


@dataclass(frozen=True)
class RecordedFactors(ValuationFactors):
    """Factors recorded by another system, kept verbatim."""

    data: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return dict(self.data)


FACTOR_TYPES: dict[str, type] = {
    cls.method: cls
    for cls in (
        StandardFactors,
        IncomeFactors,
        SalesComparisonFactors,
        CostFactors,
        RegressionFactors,
        TrendFactors,
        ExtrapolationFactors,
        LimitedDataFactors,
    )
}


def factors_from_dict(data: Optional[dict[str, Any]]) -> ValuationFactors:
    """
    Rebuild a typed factor record from its stored document.

    Documents that do not match a known shape are preserved as
    RecordedFactors rather than rejected.
    """
    if not data:
        return RecordedFactors({})

    factor_type = FACTOR_TYPES.get(data.get("method", ""))
    if factor_type is None:
        return RecordedFactors(dict(data))

    try:
        return factor_type.from_dict(data)
    except (TypeError, ValueError):
        return RecordedFactors(dict(data))
