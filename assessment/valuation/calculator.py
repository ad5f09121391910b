"""
Valuation Calculator

Computes market, assessed and taxable value for a property under one of
four methods:
- standard:          land + building + features at flat unit rates
- income:            annual income capitalised at a fixed cap rate
- sales_comparison:  type base value scaled by lot size and condition
- cost:              land plus depreciated building replacement cost

Assessed value is market value times the assessment ratio. Taxable value
is assessed value less the exemption on the matching active tax rate.
"""

from datetime import date
from math import sqrt
from typing import Optional, Tuple, Union

from utils.formatting import round_half_up

from ..factors import (
    AssessmentTerms,
    CostFactors,
    IncomeFactors,
    SalesComparisonFactors,
    StandardFactors,
    ValuationFactors,
)
from ..models import (
    Property,
    PropertyType,
    PropertyValuation,
    TaxRate,
    ValuationMethod,
    ValuationStatus,
)


# =============================================================================
# Configuration Constants
# =============================================================================

DEFAULT_ASSESSMENT_RATIO = 0.8

# Standard method (per sq ft, per feature)
STANDARD_LAND_RATE = 40.0
STANDARD_BUILDING_RATE = 150.0
PER_FEATURE_VALUE = 5000.0

# Income method
CAP_RATE = 0.06
INCOME_PER_SQFT = 12.0  # assumed gross annual income when none is reported

# Sales comparison method
REFERENCE_LOT_SQFT = 10000.0
BASE_AREA_VALUES = {
    PropertyType.RESIDENTIAL: 350000.0,
    PropertyType.COMMERCIAL: 750000.0,
    PropertyType.INDUSTRIAL: 600000.0,
    PropertyType.AGRICULTURAL: 250000.0,
    PropertyType.MIXED_USE: 500000.0,
    PropertyType.VACANT: 150000.0,
    PropertyType.OTHER: 300000.0,
}
CONDITION_FACTORS = {
    "excellent": 1.10,
    "good": 1.05,
    "average": 1.00,
    "fair": 0.90,
    "poor": 0.80,
}

# Cost method
COST_LAND_UNIT_RATE = 40.0
COST_BUILDING_UNIT_RATE = 185.0
DEPRECIATION_PER_YEAR = 0.01
MAX_DEPRECIATION = 0.5
UNKNOWN_AGE_DEPRECIATION_FACTOR = 0.8

CALCULATED_METHODS = (
    ValuationMethod.STANDARD,
    ValuationMethod.INCOME,
    ValuationMethod.SALES_COMPARISON,
    ValuationMethod.COST,
)


class ValuationCalculator:
    """
    Deterministic method-specific valuation.

    Pipeline:
    1. RESOLVE  - map the requested method, unknown -> standard
    2. MARKET   - method formula, recording every input as factors
    3. ASSESS   - apply assessment ratio and tax-rate exemption
    """

    def __init__(self, assessment_ratio: float = DEFAULT_ASSESSMENT_RATIO):
        """
        Initialize calculator.

        Args:
            assessment_ratio: Jurisdiction ratio of assessed to market value
        """
        self._assessment_ratio = assessment_ratio

    @staticmethod
    def resolve_method(
        method: Union[ValuationMethod, str, None],
    ) -> Tuple[ValuationMethod, bool]:
        """
        Resolve a requested method.

        Returns:
            Tuple of (method to use, whether the request fell back to standard)
        """
        if isinstance(method, str):
            method = ValuationMethod.from_string(method)
        if method in CALCULATED_METHODS:
            return method, False
        return ValuationMethod.STANDARD, True

    def calculate(
        self,
        prop: Property,
        method: Union[ValuationMethod, str, None],
        assessment_date: date,
        tax_rate: Optional[TaxRate] = None,
        assessor_id: int = 0,
    ) -> PropertyValuation:
        """
        Value a property under the requested method.

        Args:
            prop: The property to value
            method: Requested method; unknown methods use standard
            assessment_date: Date of the assessment
            tax_rate: Active tax rate for the property's zone and type
            assessor_id: User recording the valuation (0 = system)

        Returns:
            Unpersisted PropertyValuation with status draft
        """
        resolved, fell_back = self.resolve_method(method)

        if resolved == ValuationMethod.INCOME:
            market_value, build = self._income(prop)
        elif resolved == ValuationMethod.SALES_COMPARISON:
            market_value, build = self._sales_comparison(prop)
        elif resolved == ValuationMethod.COST:
            market_value, build = self._cost(prop, assessment_date)
        else:
            requested = None
            if fell_back and method is not None:
                requested = method.value if isinstance(method, ValuationMethod) else str(method)
            market_value, build = self._standard(prop, requested)

        market_value = max(0.0, market_value)
        assessed_value = round_half_up(market_value * self._assessment_ratio)
        exemption = tax_rate.exemption_amount if tax_rate else 0.0
        taxable_value = max(0, assessed_value - round_half_up(exemption))

        terms = AssessmentTerms(
            market_value=market_value,
            assessment_ratio=self._assessment_ratio,
            exemption_amount=exemption,
            millage_rate=tax_rate.millage_rate if tax_rate else None,
            tax_rate_id=tax_rate.id if tax_rate else None,
        )
        factors: ValuationFactors = build(terms)

        return PropertyValuation(
            property_id=prop.id,
            tenant_id=prop.tenant_id,
            assessed_value=assessed_value,
            market_value=round_half_up(market_value),
            taxable_value=taxable_value,
            assessment_date=assessment_date,
            effective_date=assessment_date,
            expiration_date=date(assessment_date.year, 12, 31),
            valuation_method=resolved,
            assessor_id=assessor_id,
            status=ValuationStatus.DRAFT,
            notes=f"Calculated using {resolved.value} method",
            valuation_factors=factors,
        )

    # =========================================================================
    # Method Formulas
    # =========================================================================

    def _standard(self, prop: Property, requested: Optional[str]):
        building_area = prop.building_area or 0.0
        feature_count = len(prop.features)
        market_value = (
            prop.land_area * STANDARD_LAND_RATE
            + building_area * STANDARD_BUILDING_RATE
            + feature_count * PER_FEATURE_VALUE
        )

        def build(terms: AssessmentTerms) -> StandardFactors:
            return StandardFactors(
                land_area=prop.land_area,
                land_rate=STANDARD_LAND_RATE,
                building_area=building_area,
                building_rate=STANDARD_BUILDING_RATE,
                feature_count=feature_count,
                per_feature_value=PER_FEATURE_VALUE,
                terms=terms,
                requested_method=requested,
            )

        return market_value, build

    def _income(self, prop: Property):
        reported = prop.details.get("annualIncome", prop.details.get("annual_income"))
        income_area = prop.building_area or prop.land_area
        try:
            reported = float(reported) if reported is not None else 0.0
        except (TypeError, ValueError):
            reported = 0.0

        if reported > 0:
            annual_income, source = reported, "reported"
        else:
            annual_income, source = income_area * INCOME_PER_SQFT, "estimated"

        market_value = annual_income / CAP_RATE

        def build(terms: AssessmentTerms) -> IncomeFactors:
            return IncomeFactors(
                annual_income=annual_income,
                income_source=source,
                income_area=income_area,
                income_per_sqft=INCOME_PER_SQFT,
                cap_rate=CAP_RATE,
                terms=terms,
            )

        return market_value, build

    def _sales_comparison(self, prop: Property):
        base_value = BASE_AREA_VALUES.get(prop.property_type, BASE_AREA_VALUES[PropertyType.OTHER])
        # Square-root scaling: lot value grows with size at a diminishing rate
        size_factor = sqrt(prop.land_area / REFERENCE_LOT_SQFT)
        condition = prop.condition
        condition_factor = CONDITION_FACTORS.get(condition, 1.0)
        market_value = base_value * size_factor * condition_factor

        def build(terms: AssessmentTerms) -> SalesComparisonFactors:
            return SalesComparisonFactors(
                base_area_value=base_value,
                land_area=prop.land_area,
                reference_lot=REFERENCE_LOT_SQFT,
                size_factor=size_factor,
                condition=condition,
                condition_factor=condition_factor,
                terms=terms,
            )

        return market_value, build

    def _cost(self, prop: Property, assessment_date: date):
        building_area = prop.building_area or 0.0
        age_years = None
        if prop.year_built is not None:
            age_years = max(0, assessment_date.year - prop.year_built)
            depreciation_factor = 1 - min(MAX_DEPRECIATION, age_years * DEPRECIATION_PER_YEAR)
        else:
            depreciation_factor = UNKNOWN_AGE_DEPRECIATION_FACTOR

        market_value = (
            prop.land_area * COST_LAND_UNIT_RATE
            + building_area * COST_BUILDING_UNIT_RATE * depreciation_factor
        )

        def build(terms: AssessmentTerms) -> CostFactors:
            return CostFactors(
                land_area=prop.land_area,
                land_unit_rate=COST_LAND_UNIT_RATE,
                building_area=building_area,
                building_unit_rate=COST_BUILDING_UNIT_RATE,
                age_years=age_years,
                depreciation_factor=depreciation_factor,
                terms=terms,
            )

        return market_value, build
