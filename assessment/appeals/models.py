"""
Result types for appeal recommendations.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date
from typing import List, Optional

from utils.formatting import round_half_up

from ..comp_engine import ScoredComparable
from ..models import Property, PropertyAppeal


class EvidenceType:
    """Evidence type identifiers, as stored on filed appeals."""
    COMPARABLE_PROPERTIES = "comparable_properties"
    PRICE_PER_SQFT = "price_per_sqft"
    RECENT_SALES = "recent_sales"
    SUCCESSFUL_APPEALS = "successful_appeals"
    VALUATION_METHOD = "valuation_method"
    PROPERTY_CONDITION = "property_condition"


@dataclass(frozen=True)
class EvidenceItem:
    """One ranked argument supporting an appeal."""
    type: str
    description: str
    impact: float  # 0-100, one decimal

    def to_dict(self) -> dict:
        return {
            "type": self.type,
            "description": self.description,
            "impact": self.impact,
        }


@dataclass(frozen=True)
class AppealPrecedent:
    """
    A historically successful appeal on some tenant property.

    reference_value is the assessed value that was contested, or the
    requested value when the contested valuation is unknown.
    """
    property: Property
    appeal: PropertyAppeal
    reference_value: float

    @property
    def reduction_fraction(self) -> float:
        adjusted = self.appeal.adjusted_value
        if not adjusted or adjusted <= 0:
            return 0.0
        return abs(self.appeal.requested_value - adjusted) / adjusted

    @property
    def granted_reduction(self) -> float:
        """Fraction of the reference value removed by the decision."""
        if self.reference_value <= 0:
            return 0.0
        return (self.reference_value - self.appeal.adjusted_value) / self.reference_value


@dataclass
class AppealRecommendation:
    """Outcome of analysing one property for an appeal."""
    property_id: int
    tenant_id: int
    valuation_id: Optional[int]
    current_assessed_value: float
    probability: int
    recommended_value: int
    potential_savings: int
    millage_rate: float
    evidence: List[EvidenceItem] = field(default_factory=list)
    comparables: List[ScoredComparable] = field(default_factory=list)
    reference_date: Optional[date] = None

    @property
    def requested_reduction(self) -> float:
        return max(0.0, self.current_assessed_value - self.recommended_value)

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        return {
            "propertyId": self.property_id,
            "tenantId": self.tenant_id,
            "valuationId": self.valuation_id,
            "currentAssessedValue": self.current_assessed_value,
            "probability": self.probability,
            "recommendedValue": self.recommended_value,
            "potentialSavings": self.potential_savings,
            "millageRate": self.millage_rate,
            "evidence": [item.to_dict() for item in self.evidence],
            "comparables": [
                {
                    "id": item.property.id,
                    "parcelId": item.property.parcel_id,
                    "address": item.property.full_address,
                    "propertyType": item.property.property_type.value,
                    "buildingArea": item.property.building_area,
                    "landArea": item.property.land_area,
                    "lastAssessedValue": item.property.last_assessed_value,
                    "similarity": round_half_up(item.similarity, 4),
                }
                for item in self.comparables
            ],
            "referenceDate": self.reference_date.isoformat() if self.reference_date else None,
        }
