"""
Appeal Recommendation Engine

Scores how likely an appeal against a property's current valuation is to
succeed, recommends a value to request, projects the tax saving, and
assembles the evidence.

Probability starts at 50 and moves on five factors:
- Assessed value per sq ft against comparables
- Comparable assessment-to-sale ratios in the last two years
- Valuation method (cost and income are easier to contest)
- Successful appeals on similar properties
- Recorded property condition
"""

from datetime import date
from statistics import median_high
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from utils.formatting import round_half_up

from ..comp_engine import DEFAULT_COMPARABLE_COUNT, ComparableSelector, ScoredComparable, similarity
from ..errors import NotFoundError
from ..models import AppealStatus, Property, PropertyAppeal, PropertyValuation, TaxRate, ValuationMethod
from .comparison import (
    average_assessment_to_sale_ratio,
    average_comparable_value_per_area,
    recent_sales,
    relative_gap,
    value_per_area,
)
from .evidence import PRECEDENT_SIMILARITY_THRESHOLD, build_evidence
from .models import AppealPrecedent, AppealRecommendation


# =============================================================================
# Configuration Constants
# =============================================================================

BASE_PROBABILITY = 50.0
PROBABILITY_FLOOR = 0
PROBABILITY_CEILING = 100

# Value per sq ft
AREA_GAP_THRESHOLD = 0.05
AREA_OVER_SCALE = 200
AREA_OVER_CAP = 40
AREA_UNDER_SCALE = 100
AREA_UNDER_CAP = 20

# Comparable sales
SALE_RATIO_LOW = 0.9
SALE_RATIO_HIGH = 1.1
SALE_LOW_SCALE = 200
SALE_LOW_CAP = 30
SALE_HIGH_SCALE = 100
SALE_HIGH_CAP = 20

METHOD_BIAS = {
    ValuationMethod.COST: 10.0,
    ValuationMethod.INCOME: 5.0,
}

PRECEDENT_WEIGHT = 20

CONDITION_ADJUSTMENTS = {
    "poor": 15.0,
    "fair": 15.0,
    "excellent": -10.0,
}

# Recommended value
RECOMMENDATION_MIN_PROBABILITY = 30
DEFAULT_REDUCTION_FACTOR = 0.9
LAND_SHARE_OF_VALUE = 0.25
AGE_ADJUSTMENT_PER_YEAR = 0.005

# Savings
SAVINGS_MIN_PROBABILITY = 20
DEFAULT_MILLAGE_RATE = 10.0


def latest_valuation(valuations: Iterable[PropertyValuation]) -> Optional[PropertyValuation]:
    """
    Most recent observed valuation by assessment date; later records win ties.

    Predicted snapshots are skipped: they forecast a value and are never
    the assessment an appeal contests.
    """
    latest = None
    for valuation in valuations:
        if valuation.valuation_method == ValuationMethod.PREDICTIVE_MODEL:
            continue
        if latest is None or valuation.assessment_date >= latest.assessment_date:
            latest = valuation
    return latest


def find_successful_appeals(
    pairs: Iterable[Tuple[Property, PropertyAppeal]],
    contested_values: Dict[int, float],
) -> List[AppealPrecedent]:
    """
    Keep approved appeals that granted a real reduction.

    Args:
        pairs: (property, appeal) for every tenant appeal
        contested_values: Assessed value by valuation id

    Returns:
        AppealPrecedent per successful appeal, in input order
    """
    precedents = []
    for prop, appeal in pairs:
        if appeal.status != AppealStatus.APPROVED or appeal.adjusted_value is None:
            continue
        reference = contested_values.get(appeal.valuation_id, appeal.requested_value)
        if appeal.adjusted_value < reference:
            precedents.append(AppealPrecedent(property=prop, appeal=appeal, reference_value=reference))
    return precedents


class AppealRecommendationEngine:
    """
    Appeal analysis for a single property.

    Pipeline:
    1. VALUATION - current valuation (latest by assessment date)
    2. COMPS     - top-K similar same-tenant properties
    3. SCORE     - appeal success probability
    4. TARGET    - recommended value, never above current assessment
    5. SAVINGS   - probability-weighted annual tax saving
    6. EVIDENCE  - ranked supporting arguments
    """

    def __init__(
        self,
        reference_date: date = None,
        default_millage_rate: float = DEFAULT_MILLAGE_RATE,
        comparable_count: int = DEFAULT_COMPARABLE_COUNT,
    ):
        """
        Initialize engine.

        Args:
            reference_date: Date the recent-sales window ends (default: today)
            default_millage_rate: Millage used when no tax rate applies
            comparable_count: Number of comparables to select
        """
        self._reference_date = reference_date or date.today()
        self._default_millage_rate = default_millage_rate
        self._selector = ComparableSelector(k=comparable_count)

    def recommend(
        self,
        subject: Property,
        valuations: Sequence[PropertyValuation],
        candidates: Iterable[Property],
        precedents: Sequence[AppealPrecedent] = (),
        tax_rate: Optional[TaxRate] = None,
    ) -> AppealRecommendation:
        """
        Analyse a property for appeal.

        Args:
            subject: The property under appeal
            valuations: Its valuation history
            candidates: Tenant properties to draw comparables from
            precedents: Tenant's successful appeals
            tax_rate: Active tax rate for the subject's zone and type

        Returns:
            AppealRecommendation

        Raises:
            NotFoundError: If the property has no valuation
        """
        valuation = latest_valuation(valuations)
        if valuation is None:
            raise NotFoundError(
                f"No valuation found for property {subject.id}",
                {"propertyId": subject.id, "tenantId": subject.tenant_id},
            )

        scored = self._selector.rank(subject, candidates)
        comparables = [item.property for item in scored]

        probability = self.probability(subject, valuation, comparables, precedents)

        if probability > RECOMMENDATION_MIN_PROBABILITY:
            recommended = self.recommended_value(subject, valuation, scored)
        else:
            recommended = round_half_up(valuation.assessed_value)

        millage_rate = tax_rate.millage_rate if tax_rate else self._default_millage_rate
        savings = self.potential_savings(valuation.assessed_value, recommended, millage_rate, probability)

        evidence = build_evidence(subject, valuation, comparables, precedents, self._reference_date)

        return AppealRecommendation(
            property_id=subject.id,
            tenant_id=subject.tenant_id,
            valuation_id=valuation.id,
            current_assessed_value=valuation.assessed_value,
            probability=probability,
            recommended_value=recommended,
            potential_savings=savings,
            millage_rate=millage_rate,
            evidence=evidence,
            comparables=scored,
            reference_date=self._reference_date,
        )

    # =========================================================================
    # Probability
    # =========================================================================

    def probability(
        self,
        subject: Property,
        valuation: PropertyValuation,
        comparables: Sequence[Property],
        precedents: Sequence[AppealPrecedent],
    ) -> int:
        """Appeal success probability, 0-100."""
        score = BASE_PROBABILITY
        score += self._area_factor(subject, valuation, comparables)
        score += self._sales_factor(comparables)
        score += METHOD_BIAS.get(valuation.valuation_method, 0.0)
        score += self._precedent_factor(subject, precedents)
        score += CONDITION_ADJUSTMENTS.get(subject.condition, 0.0)
        score = max(PROBABILITY_FLOOR, min(PROBABILITY_CEILING, score))
        return round_half_up(score)

    @staticmethod
    def _area_factor(
        subject: Property,
        valuation: PropertyValuation,
        comparables: Sequence[Property],
    ) -> float:
        subject_rate = value_per_area(valuation.assessed_value, subject.building_area)
        if subject_rate is None or not comparables:
            return 0.0
        gap = relative_gap(subject_rate, average_comparable_value_per_area(comparables))
        if gap is None:
            return 0.0
        if gap > AREA_GAP_THRESHOLD:
            return min(gap * AREA_OVER_SCALE, AREA_OVER_CAP)
        if gap < -AREA_GAP_THRESHOLD:
            return -min(abs(gap) * AREA_UNDER_SCALE, AREA_UNDER_CAP)
        return 0.0

    def _sales_factor(self, comparables: Sequence[Property]) -> float:
        ratio = average_assessment_to_sale_ratio(recent_sales(comparables, self._reference_date))
        if ratio is None:
            return 0.0
        if ratio < SALE_RATIO_LOW:
            return min((SALE_RATIO_LOW - ratio) * SALE_LOW_SCALE, SALE_LOW_CAP)
        if ratio > SALE_RATIO_HIGH:
            return -min((ratio - SALE_RATIO_HIGH) * SALE_HIGH_SCALE, SALE_HIGH_CAP)
        return 0.0

    @staticmethod
    def _precedent_factor(subject: Property, precedents: Sequence[AppealPrecedent]) -> float:
        total = 0.0
        for precedent in precedents:
            score = similarity(subject, precedent.property)
            if score > PRECEDENT_SIMILARITY_THRESHOLD:
                total += score * precedent.reduction_fraction * PRECEDENT_WEIGHT
        return total

    # =========================================================================
    # Recommended Value and Savings
    # =========================================================================

    @staticmethod
    def recommended_value(
        subject: Property,
        valuation: PropertyValuation,
        scored: Sequence[ScoredComparable],
    ) -> int:
        """
        Value to request on appeal, capped at the current assessment.

        Tries, in order: similarity-weighted value per sq ft, median of
        size/land/age-adjusted comparable assessments, 90% of current.
        """
        assessed = valuation.assessed_value
        fallback = assessed * DEFAULT_REDUCTION_FACTOR
        candidate = None

        if scored and subject.building_area and subject.building_area > 0:
            weighted = [
                (item.property.last_assessed_value / item.property.building_area, item.similarity)
                for item in scored
                if item.property.last_assessed_value and item.property.building_area
            ]
            total_similarity = sum(weight for _, weight in weighted)
            if weighted and total_similarity > 0:
                rate = sum(r * weight for r, weight in weighted) / total_similarity
                candidate = rate * subject.building_area

        if candidate is None and scored:
            adjusted = [
                _adjusted_comparable_value(subject, item.property)
                for item in scored
                if item.property.last_assessed_value
            ]
            if adjusted:
                candidate = median_high(adjusted)

        if candidate is None:
            candidate = fallback

        return round_half_up(max(0.0, min(candidate, assessed)))

    @staticmethod
    def potential_savings(
        assessed_value: float,
        recommended_value: float,
        millage_rate: float,
        probability: int,
    ) -> int:
        """Probability-weighted annual tax saving, 0 below the probability floor."""
        if probability < SAVINGS_MIN_PROBABILITY:
            return 0
        reduction = max(0.0, assessed_value - recommended_value)
        return round_half_up(reduction * millage_rate / 1000 * probability / 100)


def _adjusted_comparable_value(subject: Property, comp: Property) -> float:
    value = float(comp.last_assessed_value)

    if subject.building_area and comp.building_area:
        value *= subject.building_area / comp.building_area

    if subject.land_area and comp.land_area:
        land_factor = subject.land_area / comp.land_area
        value += (land_factor - 1) * LAND_SHARE_OF_VALUE * value

    if subject.year_built and comp.year_built:
        value += (subject.year_built - comp.year_built) * AGE_ADJUSTMENT_PER_YEAR * value

    return value
