"""
Evidence Generation

Builds the ranked list of arguments behind an appeal recommendation.
Descriptions quote the figures that justify them, formatted with the
same rounding as the recommendation itself, so an identical input
always yields identical text.
"""

from datetime import date
from typing import List, Sequence

from utils.formatting import format_currency, format_percent, round_half_up

from ..comp_engine import similarity
from ..factors import CostFactors
from ..models import Property, PropertyValuation, ValuationMethod
from .comparison import (
    average_comparable_value,
    average_comparable_value_per_area,
    property_label,
    recent_sales,
    relative_gap,
    value_per_area,
    valued_comparables,
)
from .models import AppealPrecedent, EvidenceItem, EvidenceType


# =============================================================================
# Configuration Constants
# =============================================================================

GAP_THRESHOLD = 0.05
SALE_RATIO_THRESHOLD = 0.9
PRECEDENT_SIMILARITY_THRESHOLD = 0.6

IMPACT_COMPARABLE_VALUE = 100
IMPACT_PRICE_PER_SQFT = 90
IMPACT_RECENT_SALE = 85
IMPACT_PRECEDENT = 75
IMPACT_POOR_CONDITION = 70
IMPACT_COST_METHOD = 60


def _impact(scale: float, weight: float) -> float:
    return round_half_up(min(scale, 1.0) * weight, 1)


def build_evidence(
    subject: Property,
    valuation: PropertyValuation,
    comparables: Sequence[Property],
    precedents: Sequence[AppealPrecedent],
    reference_date: date,
) -> List[EvidenceItem]:
    """
    Collect every applicable evidence item, highest impact first.

    Args:
        subject: The property under appeal
        valuation: Its current valuation
        comparables: Selected comparables, best first
        precedents: Tenant's successful appeals
        reference_date: Date the sales window is measured from

    Returns:
        EvidenceItem list sorted by impact descending; equal impacts keep
        generation order
    """
    assessed = valuation.assessed_value
    evidence: List[EvidenceItem] = []

    if comparables:
        evidence.extend(_comparable_value(assessed, comparables))
        evidence.extend(_price_per_sqft(subject, assessed, comparables))
    evidence.extend(_recent_sale(assessed, comparables, reference_date))
    evidence.extend(_precedent(subject, precedents))
    evidence.extend(_valuation_method(valuation))
    evidence.extend(_condition(subject, valuation))

    return sorted(evidence, key=lambda item: item.impact, reverse=True)


def _comparable_value(assessed: float, comparables: Sequence[Property]) -> List[EvidenceItem]:
    average = average_comparable_value(comparables)
    gap = relative_gap(assessed, average)
    if gap is None or gap <= GAP_THRESHOLD:
        return []
    count = len(valued_comparables(comparables))
    noun = "property" if count == 1 else "properties"
    return [EvidenceItem(
        type=EvidenceType.COMPARABLE_PROPERTIES,
        description=(
            f"Subject property assessed at {format_currency(assessed)}, "
            f"{format_percent(gap * 100)} higher than the {format_currency(average)} "
            f"average of {count} similar {noun} in the area"
        ),
        impact=_impact(gap * 2, IMPACT_COMPARABLE_VALUE),
    )]


def _price_per_sqft(
    subject: Property,
    assessed: float,
    comparables: Sequence[Property],
) -> List[EvidenceItem]:
    subject_rate = value_per_area(assessed, subject.building_area)
    if subject_rate is None:
        return []
    average_rate = average_comparable_value_per_area(comparables)
    gap = relative_gap(subject_rate, average_rate)
    if gap is None or gap <= GAP_THRESHOLD:
        return []
    return [EvidenceItem(
        type=EvidenceType.PRICE_PER_SQFT,
        description=(
            f"Subject property assessed at {format_currency(subject_rate)} per sq ft vs. "
            f"{format_currency(average_rate)} per sq ft for comparable properties"
        ),
        impact=_impact(gap * 2, IMPACT_PRICE_PER_SQFT),
    )]


def _recent_sale(
    assessed: float,
    comparables: Sequence[Property],
    reference_date: date,
) -> List[EvidenceItem]:
    sales = recent_sales(comparables, reference_date)
    if not sales or assessed <= 0:
        return []
    latest = sales[0]
    ratio = latest.price / assessed
    if ratio >= SALE_RATIO_THRESHOLD:
        return []
    return [EvidenceItem(
        type=EvidenceType.RECENT_SALES,
        description=(
            f"Recent sale at {latest.label} on {latest.sale_date.isoformat()} closed at "
            f"{format_currency(latest.price)}, {format_percent(ratio * 100)} of the subject's "
            f"assessed value of {format_currency(assessed)}"
        ),
        impact=_impact((1 - ratio) * 2, IMPACT_RECENT_SALE),
    )]


def _precedent(subject: Property, precedents: Sequence[AppealPrecedent]) -> List[EvidenceItem]:
    similar = [
        p for p in precedents
        if similarity(subject, p.property) > PRECEDENT_SIMILARITY_THRESHOLD
    ]
    if not similar:
        return []
    top = sorted(similar, key=lambda p: p.reduction_fraction, reverse=True)[0]
    reduction = top.reduction_fraction
    return [EvidenceItem(
        type=EvidenceType.SUCCESSFUL_APPEALS,
        description=(
            f"Similar property at {property_label(top.property)} "
            f"successfully appealed from {format_currency(top.reference_value)} to "
            f"{format_currency(top.appeal.adjusted_value)}, a "
            f"{format_percent(top.granted_reduction * 100)} reduction in assessed value"
        ),
        impact=_impact(reduction * 3, IMPACT_PRECEDENT),
    )]


def _valuation_method(valuation: PropertyValuation) -> List[EvidenceItem]:
    if valuation.valuation_method != ValuationMethod.COST:
        return []
    description = (
        "Cost approach valuation often misstates depreciation and may not "
        "reflect actual market conditions"
    )
    factors = valuation.valuation_factors
    if isinstance(factors, CostFactors):
        description += (
            f"; this valuation applied a depreciation factor of "
            f"{round_half_up(factors.depreciation_factor, 2):.2f}"
        )
        if factors.age_years is not None:
            description += f" for a {factors.age_years}-year-old building"
    return [EvidenceItem(
        type=EvidenceType.VALUATION_METHOD,
        description=description,
        impact=float(IMPACT_COST_METHOD),
    )]


def _condition(subject: Property, valuation: PropertyValuation) -> List[EvidenceItem]:
    if subject.condition != "poor":
        return []
    return [EvidenceItem(
        type=EvidenceType.PROPERTY_CONDITION,
        description=(
            f"Property recorded in poor condition, which may not be fully accounted "
            f"for in the current assessed value of {format_currency(valuation.assessed_value)}"
        ),
        impact=float(IMPACT_POOR_CONDITION),
    )]
