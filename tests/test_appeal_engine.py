"""
Tests for the Appeal Recommendation Engine

Verifies:
- Probability ordering for over-, fairly and under-assessed properties
- Recommended value fallbacks and the cap at current assessment
- Savings are probability-weighted and floored
- Evidence is ranked, quotes concrete figures, never mentions None
- Successful-appeal precedent filtering
- Missing valuation raises NotFoundError
"""

import pytest
from datetime import date
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from assessment.appeals import (
    AppealPrecedent,
    AppealRecommendationEngine,
    EvidenceType,
    find_successful_appeals,
    latest_valuation,
)
from assessment.errors import NotFoundError
from assessment.factors import AssessmentTerms, CostFactors
from assessment.models import (
    AppealStatus,
    Property,
    PropertyAppeal,
    PropertyType,
    PropertyValuation,
    TaxRate,
    ValuationMethod,
)


REFERENCE_DATE = date(2024, 6, 1)


def make_property(id, **overrides):
    fields = dict(
        tenant_id=1,
        parcel_id=f"P-{id}",
        property_type=PropertyType.RESIDENTIAL,
        land_area=10000.0,
        address=f"{id} Elm Street",
        city="Springfield",
        state="IL",
        zip_code="62701",
        zone_code="R1",
        building_area=2000.0,
        year_built=1990,
        last_assessed_value=400000.0,
    )
    fields.update(overrides)
    return Property(id=id, **fields)


def make_valuation(property_id, assessed, on=date(2024, 1, 1), method=ValuationMethod.STANDARD,
                   id=None, factors=None):
    extra = {"valuation_factors": factors} if factors is not None else {}
    return PropertyValuation(
        id=id,
        property_id=property_id,
        tenant_id=1,
        assessed_value=assessed,
        market_value=assessed / 0.8,
        taxable_value=assessed,
        assessment_date=on,
        valuation_method=method,
        **extra,
    )


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def engine():
    return AppealRecommendationEngine(reference_date=REFERENCE_DATE, default_millage_rate=10.0)


@pytest.fixture
def comparables():
    """Three comparables at $200 per sq ft."""
    return [make_property(i) for i in (11, 12, 13)]


@pytest.fixture
def subject():
    return make_property(1)


# =============================================================================
# Probability
# =============================================================================

class TestProbability:

    def test_over_equal_under_ordering(self, engine, subject, comparables):
        results = {}
        for label, assessed in (("over", 440000), ("equal", 400000), ("under", 360000)):
            valuations = [make_valuation(subject.id, assessed)]
            results[label] = engine.recommend(subject, valuations, comparables).probability

        assert results["over"] > results["equal"] > results["under"]
        assert results == {"over": 70, "equal": 50, "under": 40}

    def test_over_assessment_boost_is_capped(self, engine, subject, comparables):
        valuations = [make_valuation(subject.id, 2000000)]
        assert engine.recommend(subject, valuations, comparables).probability == 90

    def test_method_bias(self, engine, subject, comparables):
        cost = engine.recommend(subject, [make_valuation(1, 400000, method=ValuationMethod.COST)], comparables)
        income = engine.recommend(subject, [make_valuation(1, 400000, method=ValuationMethod.INCOME)], comparables)

        assert cost.probability == 60
        assert income.probability == 55

    @pytest.mark.parametrize("condition,expected", [
        ("poor", 65),
        ("Fair", 65),
        ("average", 50),
        ("excellent", 40),
    ])
    def test_condition(self, engine, comparables, condition, expected):
        subject = make_property(1, details={"condition": condition})
        result = engine.recommend(subject, [make_valuation(1, 400000)], comparables)
        assert result.probability == expected

    def test_comparables_assessed_below_sale_price(self, engine, subject):
        comps = [
            make_property(11, details={"salePrice": 500000, "saleDate": "2024-01-15"}),
            make_property(12, details={"salePrice": 500000, "saleDate": "2023-09-01"}),
        ]
        result = engine.recommend(subject, [make_valuation(1, 400000)], comps)
        # ratio 0.8 -> +20
        assert result.probability == 70

    def test_sales_outside_window_are_ignored(self, engine, subject):
        comps = [make_property(11, details={"salePrice": 500000, "saleDate": "2020-01-15"})]
        result = engine.recommend(subject, [make_valuation(1, 400000)], comps)
        assert result.probability == 50

    def test_precedent_raises_probability(self, engine, subject, comparables):
        neighbour = comparables[0]
        appeal = PropertyAppeal(
            property_id=neighbour.id, tenant_id=1, valuation_id=99, submitted_by=5,
            requested_value=300000, status=AppealStatus.APPROVED, adjusted_value=340000,
        )
        precedent = AppealPrecedent(property=neighbour, appeal=appeal, reference_value=400000)

        without = engine.recommend(subject, [make_valuation(1, 400000)], comparables)
        with_precedent = engine.recommend(
            subject, [make_valuation(1, 400000)], comparables, precedents=[precedent],
        )
        assert with_precedent.probability > without.probability

    def test_clamped_to_bounds(self, engine, comparables):
        subject = make_property(1, details={"condition": "poor"})
        valuations = [make_valuation(1, 4000000, method=ValuationMethod.COST)]
        assert engine.recommend(subject, valuations, comparables).probability == 100


# =============================================================================
# Recommended Value and Savings
# =============================================================================

class TestRecommendedValue:

    def test_empty_comparables(self, engine, subject):
        result = engine.recommend(subject, [make_valuation(1, 500000)], [])

        assert result.recommended_value == round(500000 * 0.9)
        assert result.comparables == []

    def test_similarity_weighted_value_per_sqft(self, engine, subject, comparables):
        result = engine.recommend(subject, [make_valuation(1, 440000)], comparables)

        assert result.recommended_value == 400000
        # 40000 reduction * 10 mills * 70%
        assert result.potential_savings == 280

    def test_never_above_current_assessment(self, engine, subject, comparables):
        result = engine.recommend(subject, [make_valuation(1, 300000)], comparables)
        assert result.recommended_value <= 300000

    def test_median_fallback_without_building_area(self, engine):
        subject = make_property(1, building_area=None)
        comps = [
            make_property(11, building_area=None, last_assessed_value=300000.0),
            make_property(12, building_area=None, last_assessed_value=350000.0),
            make_property(13, building_area=None, last_assessed_value=380000.0),
        ]
        result = engine.recommend(subject, [make_valuation(1, 450000)], comps)
        assert result.recommended_value == 350000

    def test_comparables_without_assessments_use_default_reduction(self, engine, subject):
        comps = [make_property(11, last_assessed_value=None)]
        result = engine.recommend(subject, [make_valuation(1, 500000)], comps)
        assert result.recommended_value == 450000

    def test_low_probability_keeps_current_value(self, engine, comparables):
        subject = make_property(1, details={"condition": "excellent"})
        result = engine.recommend(subject, [make_valuation(1, 300000)], comparables)

        assert result.probability <= 30
        assert result.recommended_value == 300000

    def test_tax_rate_millage_is_used(self, engine, subject, comparables):
        rate = TaxRate(tenant_id=1, zone_code="R1", property_type=PropertyType.RESIDENTIAL, millage_rate=20.0)
        result = engine.recommend(subject, [make_valuation(1, 440000)], comparables, tax_rate=rate)

        assert result.millage_rate == 20.0
        assert result.potential_savings == 560


class TestSavings:

    def test_zero_below_probability_floor(self):
        assert AppealRecommendationEngine.potential_savings(500000, 400000, 10.0, 19) == 0

    def test_weighted_by_probability(self):
        assert AppealRecommendationEngine.potential_savings(500000, 400000, 10.0, 50) == 500

    def test_low_probability_scenario(self, engine):
        subject = make_property(1, details={"condition": "excellent"})
        comps = [
            make_property(11, last_assessed_value=600000.0,
                          details={"salePrice": 400000, "saleDate": "2024-02-01"}),
        ]
        result = engine.recommend(subject, [make_valuation(1, 300000)], comps)

        assert result.probability < 20
        assert result.potential_savings == 0


# =============================================================================
# Evidence
# =============================================================================

class TestEvidence:

    def test_over_assessment_evidence(self, engine, subject, comparables):
        result = engine.recommend(subject, [make_valuation(1, 440000)], comparables)
        types = [item.type for item in result.evidence]

        assert types == [EvidenceType.COMPARABLE_PROPERTIES, EvidenceType.PRICE_PER_SQFT]
        assert result.evidence[0].impact == 20.0
        assert result.evidence[1].impact == 18.0
        assert "$440,000" in result.evidence[0].description
        assert "10.0%" in result.evidence[0].description
        assert "$220 per sq ft" in result.evidence[1].description

    def test_sorted_by_impact(self, engine, comparables):
        subject = make_property(1, details={"condition": "poor"})
        factors = CostFactors(
            land_area=10000.0, land_unit_rate=40.0, building_area=2000.0,
            building_unit_rate=185.0, age_years=34, depreciation_factor=0.66,
            terms=AssessmentTerms(market_value=645000.0, assessment_ratio=0.8),
        )
        valuation = make_valuation(1, 520000, method=ValuationMethod.COST, factors=factors)
        result = engine.recommend(subject, [valuation], comparables)

        impacts = [item.impact for item in result.evidence]
        assert impacts == sorted(impacts, reverse=True)
        types = {item.type for item in result.evidence}
        assert EvidenceType.VALUATION_METHOD in types
        assert EvidenceType.PROPERTY_CONDITION in types

        method_item = next(i for i in result.evidence if i.type == EvidenceType.VALUATION_METHOD)
        assert "0.66" in method_item.description
        assert "34-year-old" in method_item.description

    def test_recent_sale_evidence(self, engine, subject):
        comps = [make_property(11, details={"salePrice": 300000, "saleDate": "2024-01-15"})]
        result = engine.recommend(subject, [make_valuation(1, 400000)], comps)

        sale = next(i for i in result.evidence if i.type == EvidenceType.RECENT_SALES)
        assert sale.impact == 42.5
        assert "11 Elm Street" in sale.description
        assert "$300,000" in sale.description
        assert "75.0%" in sale.description

    def test_precedent_evidence(self, engine, subject, comparables):
        appeal = PropertyAppeal(
            property_id=11, tenant_id=1, valuation_id=99, submitted_by=5,
            requested_value=300000, status=AppealStatus.APPROVED, adjusted_value=340000,
        )
        precedent = AppealPrecedent(property=comparables[0], appeal=appeal, reference_value=400000)
        result = engine.recommend(subject, [make_valuation(1, 400000)], comparables, precedents=[precedent])

        item = next(i for i in result.evidence if i.type == EvidenceType.SUCCESSFUL_APPEALS)
        assert "$400,000" in item.description
        assert "$340,000" in item.description
        assert "15.0%" in item.description

    def test_comparable_count_only_includes_assessed_properties(self, engine, subject):
        comps = [make_property(11, last_assessed_value=200000.0)]
        comps += [make_property(i, last_assessed_value=None) for i in (12, 13, 14, 15)]
        result = engine.recommend(subject, [make_valuation(1, 300000)], comps)

        item = next(i for i in result.evidence if i.type == EvidenceType.COMPARABLE_PROPERTIES)
        assert "50.0% higher than the $200,000 average of 1 similar property in the area" in item.description

    def test_precedent_without_address_or_parcel(self, engine, subject, comparables):
        unlabelled = make_property(11, address="", parcel_id="")
        appeal = PropertyAppeal(
            property_id=11, tenant_id=1, valuation_id=99, submitted_by=5,
            requested_value=300000, status=AppealStatus.APPROVED, adjusted_value=340000,
        )
        precedent = AppealPrecedent(property=unlabelled, appeal=appeal, reference_value=400000)
        result = engine.recommend(subject, [make_valuation(1, 400000)], comparables, precedents=[precedent])

        item = next(i for i in result.evidence if i.type == EvidenceType.SUCCESSFUL_APPEALS)
        assert item.description.startswith("Similar property at property 11 successfully appealed")

    def test_descriptions_never_mention_none(self, engine):
        subject = make_property(1, address="", building_area=None, year_built=None,
                                details={"condition": "poor"})
        comps = [make_property(11, address="", details={"salePrice": 100000, "saleDate": "2024-03-01"})]
        result = engine.recommend(subject, [make_valuation(1, 500000)], comps)

        assert result.evidence
        for item in result.evidence:
            assert "None" not in item.description

    def test_no_evidence_for_fair_assessment(self, engine, subject, comparables):
        result = engine.recommend(subject, [make_valuation(1, 400000)], comparables)
        assert result.evidence == []


# =============================================================================
# Inputs and Determinism
# =============================================================================

class TestInputs:

    def test_missing_valuation_raises(self, engine, subject, comparables):
        with pytest.raises(NotFoundError):
            engine.recommend(subject, [], comparables)

    def test_latest_valuation_is_used(self, engine, subject, comparables):
        valuations = [
            make_valuation(1, 440000, on=date(2024, 1, 1), id=2),
            make_valuation(1, 400000, on=date(2022, 1, 1), id=1),
        ]
        result = engine.recommend(subject, valuations, comparables)

        assert result.valuation_id == 2
        assert result.current_assessed_value == 440000

    def test_latest_valuation_helper(self):
        assert latest_valuation([]) is None

    def test_predictions_are_not_contested(self, engine, subject, comparables):
        valuations = [
            make_valuation(1, 440000, on=date(2024, 1, 1), id=1),
            make_valuation(1, 480000, on=date(2025, 1, 1), method=ValuationMethod.PREDICTIVE_MODEL, id=2),
        ]
        result = engine.recommend(subject, valuations, comparables)

        assert result.valuation_id == 1
        assert result.current_assessed_value == 440000

    def test_only_predictions_raises(self, engine, subject, comparables):
        prediction = make_valuation(1, 480000, method=ValuationMethod.PREDICTIVE_MODEL)
        with pytest.raises(NotFoundError):
            engine.recommend(subject, [prediction], comparables)

    def test_deterministic(self, engine, subject, comparables):
        valuations = [make_valuation(1, 440000)]
        first = engine.recommend(subject, valuations, comparables).to_dict()
        second = engine.recommend(subject, valuations, comparables).to_dict()
        assert first == second


class TestSuccessfulAppeals:

    def _appeal(self, status, requested, adjusted=None, valuation_id=None):
        return PropertyAppeal(
            property_id=11, tenant_id=1, valuation_id=valuation_id, submitted_by=5,
            requested_value=requested, status=status, adjusted_value=adjusted,
        )

    def test_only_approved_reductions(self):
        prop = make_property(11)
        pairs = [
            (prop, self._appeal(AppealStatus.PENDING, 300000)),
            (prop, self._appeal(AppealStatus.DENIED, 300000, 400000)),
            (prop, self._appeal(AppealStatus.APPROVED, 300000, 280000)),
            (prop, self._appeal(AppealStatus.APPROVED, 300000, 320000)),
        ]
        precedents = find_successful_appeals(pairs, {})

        assert len(precedents) == 1
        assert precedents[0].appeal.adjusted_value == 280000

    def test_reference_is_contested_valuation(self):
        prop = make_property(11)
        appeal = self._appeal(AppealStatus.APPROVED, 300000, 340000, valuation_id=7)
        precedents = find_successful_appeals([(prop, appeal)], {7: 400000})

        assert len(precedents) == 1
        assert precedents[0].reference_value == 400000
        assert precedents[0].reduction_fraction == pytest.approx(40000 / 340000)
        assert precedents[0].granted_reduction == pytest.approx(0.15)
