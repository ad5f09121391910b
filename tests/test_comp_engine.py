"""
Tests for the Comp Engine

Verifies:
- Similarity is bounded and a property matches itself exactly
- Missing attributes are skipped rather than penalised
- Selection excludes the subject, other tenants and deleted properties
- Ties keep pool order
"""

import pytest
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from assessment.comp_engine import ComparableSelector, select_comparables, similarity
from assessment.comp_engine.similarity import (
    WEIGHT_LAND_AREA,
    WEIGHT_PROPERTY_TYPE,
)
from assessment.models import Property, PropertyStatus, PropertyType


def make_property(id, tenant_id=1, **overrides):
    fields = dict(
        parcel_id=f"P-{id}",
        property_type=PropertyType.RESIDENTIAL,
        land_area=10000.0,
        address=f"{id} Oak Street",
        city="Springfield",
        state="IL",
        zip_code="62701",
        zone_code="R1",
        building_area=2000.0,
        year_built=1990,
        features=["garage", "pool"],
        last_assessed_value=400000.0,
    )
    fields.update(overrides)
    return Property(id=id, tenant_id=tenant_id, **fields)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def subject():
    return make_property(1)


@pytest.fixture
def varied_pool():
    return [
        make_property(2, land_area=12000.0),
        make_property(3, property_type=PropertyType.COMMERCIAL, zone_code="C2"),
        make_property(4, building_area=None, year_built=None),
        make_property(5, zip_code="62702", city="Chatham"),
        make_property(6, features=[]),
        make_property(7, land_area=500.0, building_area=8000.0, year_built=1900),
    ]


# =============================================================================
# Similarity
# =============================================================================

class TestSimilarity:
    """Weighted-factor similarity scoring."""

    def test_identical_property_scores_one(self, subject):
        assert similarity(subject, subject) == 1.0

    def test_scores_are_bounded(self, subject, varied_pool):
        for candidate in varied_pool:
            score = similarity(subject, candidate)
            assert 0.0 <= score <= 1.0

    def test_missing_building_area_is_not_penalised(self, subject):
        candidate = make_property(2, building_area=None)
        assert similarity(subject, candidate) == 1.0

    def test_missing_year_and_features_are_not_penalised(self, subject):
        candidate = make_property(2, year_built=None, features=[])
        assert similarity(subject, candidate) == 1.0

    def test_type_mismatch_with_only_land_known(self):
        a = make_property(1, zone_code="", building_area=None, year_built=None,
                          zip_code="", features=[])
        b = make_property(2, property_type=PropertyType.COMMERCIAL, zone_code="",
                          building_area=None, year_built=None, zip_code="", features=[])
        expected = WEIGHT_LAND_AREA / (WEIGHT_PROPERTY_TYPE + WEIGHT_LAND_AREA)
        assert similarity(a, b) == pytest.approx(expected)

    def test_same_zip_different_city_loses_bonus(self, subject):
        same_city = make_property(2)
        other_city = make_property(3, city="Chatham")
        assert similarity(subject, other_city) < similarity(subject, same_city)

    def test_land_closeness_decreases_with_gap(self, subject):
        close = make_property(2, land_area=11000.0)
        far = make_property(3, land_area=30000.0)
        assert similarity(subject, close) > similarity(subject, far)

    def test_year_gap_beyond_horizon_contributes_nothing(self, subject):
        old = make_property(2, year_built=1900)
        older = make_property(3, year_built=1800)
        assert similarity(subject, old) == similarity(subject, older)

    def test_feature_overlap_uses_larger_set(self, subject):
        partial = make_property(2, features=["garage"])
        full = make_property(3, features=["garage", "pool"])
        assert similarity(subject, partial) < similarity(subject, full)

    def test_deterministic(self, subject, varied_pool):
        first = [similarity(subject, c) for c in varied_pool]
        second = [similarity(subject, c) for c in varied_pool]
        assert first == second


# =============================================================================
# Selection
# =============================================================================

class TestComparableSelection:
    """Top-K selection with tenant and eligibility filters."""

    def test_excludes_subject_itself(self, subject, varied_pool):
        selected = select_comparables(subject, [subject] + varied_pool, k=10)
        assert subject not in selected

    def test_excludes_other_tenants(self, subject):
        foreign = make_property(2, tenant_id=2)
        assert select_comparables(subject, [foreign]) == []

    def test_excludes_deleted(self, subject):
        deleted = make_property(2, status=PropertyStatus.DELETED)
        assert select_comparables(subject, [deleted]) == []

    def test_returns_at_most_k(self, subject, varied_pool):
        assert len(select_comparables(subject, varied_pool, k=3)) == 3

    def test_returns_fewer_when_pool_is_small(self, subject):
        assert len(select_comparables(subject, [make_property(2)], k=5)) == 1

    def test_sorted_by_similarity_descending(self, subject, varied_pool):
        ranked = ComparableSelector(k=10).rank(subject, varied_pool)
        scores = [item.similarity for item in ranked]
        assert scores == sorted(scores, reverse=True)

    def test_commercial_property_ranks_last(self, subject, varied_pool):
        ranked = ComparableSelector(k=10).rank(subject, varied_pool)
        assert ranked[-1].property.id in (3, 7)

    def test_ties_keep_pool_order(self, subject):
        pool = [make_property(i) for i in (5, 3, 9, 2)]
        selected = select_comparables(subject, pool, k=4)
        assert [p.id for p in selected] == [5, 3, 9, 2]

    def test_negative_k_rejected(self):
        with pytest.raises(ValueError):
            ComparableSelector(k=-1)
