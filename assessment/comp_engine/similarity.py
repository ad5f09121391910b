"""
Property Similarity Scoring

Weighted-factor similarity between two parcels, in [0, 1]:
- Property type (exact match)
- Zone code (exact match)
- Land area closeness
- Building area closeness
- Year built closeness (50-year horizon)
- Location (zip code, then city and state)
- Feature overlap

A factor whose data is missing on either side is skipped entirely, so
its weight leaves the denominator and cannot drag the score down.
"""

from typing import Optional

from ..models import Property


# =============================================================================
# Configuration Constants
# =============================================================================

WEIGHT_PROPERTY_TYPE = 2.0
WEIGHT_ZONE_CODE = 1.5
WEIGHT_LAND_AREA = 1.5
WEIGHT_BUILDING_AREA = 1.5
WEIGHT_YEAR_BUILT = 1.0
WEIGHT_ZIP_CODE = 2.0
WEIGHT_CITY_STATE_BONUS = 1.0
WEIGHT_FEATURES = 0.5

YEAR_BUILT_HORIZON = 50


def similarity(subject: Property, candidate: Property) -> float:
    """
    Score how alike two properties are.

    Args:
        subject: The property being analysed
        candidate: The property being compared against it

    Returns:
        Similarity in [0, 1]; a property scores 1.0 against itself
    """
    score = 0.0
    weights = 0.0

    # Property type is always known
    if subject.property_type == candidate.property_type:
        score += WEIGHT_PROPERTY_TYPE
    weights += WEIGHT_PROPERTY_TYPE

    if subject.zone_code and candidate.zone_code:
        if subject.zone_code == candidate.zone_code:
            score += WEIGHT_ZONE_CODE
        weights += WEIGHT_ZONE_CODE

    land = _closeness(subject.land_area, candidate.land_area)
    if land is not None:
        score += land * WEIGHT_LAND_AREA
        weights += WEIGHT_LAND_AREA

    building = _closeness(subject.building_area, candidate.building_area)
    if building is not None:
        score += building * WEIGHT_BUILDING_AREA
        weights += WEIGHT_BUILDING_AREA

    if subject.year_built is not None and candidate.year_built is not None:
        year_gap = abs(subject.year_built - candidate.year_built) / YEAR_BUILT_HORIZON
        score += (1 - min(year_gap, 1)) * WEIGHT_YEAR_BUILT
        weights += WEIGHT_YEAR_BUILT

    if subject.zip_code and candidate.zip_code:
        if subject.zip_code == candidate.zip_code:
            score += WEIGHT_ZIP_CODE
            if subject.city == candidate.city and subject.state == candidate.state:
                score += WEIGHT_CITY_STATE_BONUS
        weights += WEIGHT_ZIP_CODE + WEIGHT_CITY_STATE_BONUS

    if subject.features and candidate.features:
        subject_features = set(subject.features)
        candidate_features = set(candidate.features)
        common = subject_features & candidate_features
        overlap = len(common) / max(len(subject_features), len(candidate_features))
        score += overlap * WEIGHT_FEATURES
        weights += WEIGHT_FEATURES

    if weights == 0:
        return 0.0
    return min(1.0, max(0.0, score / weights))


def _closeness(a: Optional[float], b: Optional[float]) -> Optional[float]:
    """1 - |a-b| / max(a,b), or None when either side is missing."""
    if not a or not b or a <= 0 or b <= 0:
        return None
    return 1 - abs(a - b) / max(a, b)
