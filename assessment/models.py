"""
Data models for the assessment engine.

Defines taxable parcels, their valuation snapshots, appeals against those
valuations, and the tax rates used to turn assessed value into tax owed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum
from typing import Any, List, Optional

from .errors import InvalidInputError
from .factors import RecordedFactors, ValuationFactors, factors_from_dict


# =============================================================================
# Enumerations
# =============================================================================


class PropertyType(Enum):
    """Property type classification."""
    RESIDENTIAL = "residential"
    COMMERCIAL = "commercial"
    INDUSTRIAL = "industrial"
    AGRICULTURAL = "agricultural"
    MIXED_USE = "mixed-use"
    VACANT = "vacant"
    OTHER = "other"

    @classmethod
    def from_string(cls, value: str) -> Optional["PropertyType"]:
        """Convert string to PropertyType, case-insensitive."""
        normalised = value.lower().strip().replace("_", "-")
        for member in cls:
            if member.value == normalised:
                return member
        return None


class PropertyStatus(Enum):
    ACTIVE = "active"
    PENDING = "pending"
    REVIEW = "review"
    INACTIVE = "inactive"
    DELETED = "deleted"


class ValuationMethod(Enum):
    """
    Valuation method used to produce a snapshot.

    The ``*_approach`` spellings are accepted on input because older
    records were written with them.
    """
    STANDARD = "standard"
    INCOME = "income"
    SALES_COMPARISON = "sales_comparison"
    COST = "cost"
    PREDICTIVE_MODEL = "predictive_model"

    @classmethod
    def from_string(cls, value: str) -> Optional["ValuationMethod"]:
        """Convert string to ValuationMethod, accepting legacy aliases."""
        normalised = value.lower().strip().replace("-", "_").replace(" ", "_")
        normalised = _METHOD_ALIASES.get(normalised, normalised)
        for member in cls:
            if member.value == normalised:
                return member
        return None


_METHOD_ALIASES = {
    "income_approach": "income",
    "cost_approach": "cost",
    "sales_comparison_approach": "sales_comparison",
    "market": "sales_comparison",
    "predictive": "predictive_model",
}


class ValuationStatus(Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    PREDICTED = "predicted"


class AppealStatus(Enum):
    PENDING = "pending"
    APPROVED = "approved"
    DENIED = "denied"


# =============================================================================
# Parsing Helpers
# =============================================================================


def parse_date(value: Any) -> date:
    """
    Coerce a date, datetime or ISO-8601 string to a date.

    Raises:
        InvalidInputError: If the value cannot be read as a date
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text[:10])
        except ValueError:
            pass
    raise InvalidInputError(f"Invalid date: {value!r}")


def parse_optional_date(value: Any) -> Optional[date]:
    if value is None or value == "":
        return None
    return parse_date(value)


def _parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    try:
        return datetime.fromisoformat(str(value))
    except ValueError as exc:
        raise InvalidInputError(f"Invalid datetime: {value!r}") from exc


def _iso(value: Optional[date]) -> Optional[str]:
    return value.isoformat() if value else None


# =============================================================================
# Property
# =============================================================================


@dataclass
class Property:
    """
    A taxable real-estate parcel owned by one tenant.

    Identified by (tenant_id, id). Soft-deleted via status, never removed.
    """
    # Required fields
    id: int
    tenant_id: int
    parcel_id: str
    property_type: PropertyType
    land_area: float  # sq ft

    # Location
    address: str = ""
    city: str = ""
    state: str = ""
    zip_code: str = ""
    zone_code: str = ""

    # Structure
    building_area: Optional[float] = None  # sq ft
    year_built: Optional[int] = None
    bedrooms: Optional[int] = None
    bathrooms: Optional[float] = None
    features: List[str] = field(default_factory=list)

    # Assessment state
    last_assessed_value: Optional[float] = None
    last_assessed_date: Optional[date] = None
    status: PropertyStatus = PropertyStatus.ACTIVE

    # Free-form details (condition, flood zone, last sale)
    details: dict = field(default_factory=dict)

    def __post_init__(self):
        if self.land_area is None or self.land_area <= 0:
            raise InvalidInputError(
                f"Property {self.id}: land_area must be greater than 0"
            )

    @property
    def full_address(self) -> str:
        parts = [p for p in (self.address, self.city, self.state, self.zip_code) if p]
        return ", ".join(parts)

    @property
    def condition(self) -> Optional[str]:
        value = self.details.get("condition")
        return str(value).lower().strip() if value else None

    @property
    def sale_price(self) -> Optional[float]:
        value = self.details.get("salePrice", self.details.get("sale_price"))
        if value in (None, ""):
            return None
        try:
            price = float(value)
        except (TypeError, ValueError):
            return None
        return price if price > 0 else None

    @property
    def sale_date(self) -> Optional[date]:
        value = self.details.get("saleDate", self.details.get("sale_date"))
        try:
            return parse_optional_date(value)
        except InvalidInputError:
            return None

    @property
    def is_deleted(self) -> bool:
        return self.status == PropertyStatus.DELETED

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output."""
        details = dict(self.details)
        for key, value in details.items():
            if isinstance(value, date):
                details[key] = value.isoformat()
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "parcelId": self.parcel_id,
            "address": self.address,
            "city": self.city,
            "state": self.state,
            "zipCode": self.zip_code,
            "propertyType": self.property_type.value,
            "zoneCode": self.zone_code,
            "landArea": self.land_area,
            "buildingArea": self.building_area,
            "yearBuilt": self.year_built,
            "bedrooms": self.bedrooms,
            "bathrooms": self.bathrooms,
            "features": list(self.features),
            "lastAssessedValue": self.last_assessed_value,
            "lastAssessedDate": _iso(self.last_assessed_date),
            "status": self.status.value,
            "propertyDetails": details,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "Property":
        property_type = PropertyType.from_string(data.get("propertyType", "other"))
        return cls(
            id=data["id"],
            tenant_id=data["tenantId"],
            parcel_id=data.get("parcelId", ""),
            property_type=property_type or PropertyType.OTHER,
            land_area=data.get("landArea"),
            address=data.get("address", ""),
            city=data.get("city", ""),
            state=data.get("state", ""),
            zip_code=data.get("zipCode", ""),
            zone_code=data.get("zoneCode", ""),
            building_area=data.get("buildingArea"),
            year_built=data.get("yearBuilt"),
            bedrooms=data.get("bedrooms"),
            bathrooms=data.get("bathrooms"),
            features=list(data.get("features") or []),
            last_assessed_value=data.get("lastAssessedValue"),
            last_assessed_date=parse_optional_date(data.get("lastAssessedDate")),
            status=PropertyStatus(data.get("status", "active")),
            details=dict(data.get("propertyDetails") or {}),
        )


# =============================================================================
# Property Valuation
# =============================================================================


@dataclass(frozen=True)
class PropertyValuation:
    """
    One assessment snapshot for a property.

    Immutable once created: corrections produce a new record.
    """
    property_id: int
    tenant_id: int
    assessed_value: float
    market_value: float
    taxable_value: float
    assessment_date: date
    valuation_method: ValuationMethod

    id: Optional[int] = None
    effective_date: Optional[date] = None
    expiration_date: Optional[date] = None
    assessor_id: int = 0
    status: ValuationStatus = ValuationStatus.DRAFT
    notes: str = ""
    valuation_factors: ValuationFactors = field(default_factory=RecordedFactors)

    # Predictive results only
    confidence_score: Optional[int] = None
    predicted_change: Optional[float] = None  # annual change, percent
    seasonal_adjustment: Optional[float] = None
    prediction_models: Optional[dict] = None

    def __post_init__(self):
        if self.taxable_value < 0:
            raise InvalidInputError("taxable_value must be non-negative")
        if self.assessed_value < self.taxable_value:
            raise InvalidInputError("assessed_value must be >= taxable_value")

    def to_dict(self) -> dict:
        """Convert to dictionary for JSON output and storage."""
        return {
            "id": self.id,
            "propertyId": self.property_id,
            "tenantId": self.tenant_id,
            "assessedValue": self.assessed_value,
            "marketValue": self.market_value,
            "taxableValue": self.taxable_value,
            "assessmentDate": self.assessment_date.isoformat(),
            "effectiveDate": _iso(self.effective_date),
            "expirationDate": _iso(self.expiration_date),
            "valuationMethod": self.valuation_method.value,
            "assessorId": self.assessor_id,
            "status": self.status.value,
            "notes": self.notes,
            "valuationFactors": self.valuation_factors.to_dict(),
            "confidenceScore": self.confidence_score,
            "predictedChange": self.predicted_change,
            "seasonalAdjustment": self.seasonal_adjustment,
            "predictionModels": self.prediction_models,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PropertyValuation":
        method = ValuationMethod.from_string(data.get("valuationMethod", "standard"))
        return cls(
            id=data.get("id"),
            property_id=data["propertyId"],
            tenant_id=data["tenantId"],
            assessed_value=data["assessedValue"],
            market_value=data.get("marketValue", data["assessedValue"]),
            taxable_value=data.get("taxableValue", data["assessedValue"]),
            assessment_date=parse_date(data["assessmentDate"]),
            effective_date=parse_optional_date(data.get("effectiveDate")),
            expiration_date=parse_optional_date(data.get("expirationDate")),
            valuation_method=method or ValuationMethod.STANDARD,
            assessor_id=data.get("assessorId", 0),
            status=ValuationStatus(data.get("status", "draft")),
            notes=data.get("notes") or "",
            valuation_factors=factors_from_dict(data.get("valuationFactors")),
            confidence_score=data.get("confidenceScore"),
            predicted_change=data.get("predictedChange"),
            seasonal_adjustment=data.get("seasonalAdjustment"),
            prediction_models=data.get("predictionModels"),
        )


# =============================================================================
# Property Appeal
# =============================================================================


@dataclass
class PropertyAppeal:
    """
    A formal contest of an assessed value.

    adjusted_value is only set once the appeal has been resolved.
    """
    property_id: int
    tenant_id: int
    valuation_id: Optional[int]
    submitted_by: int
    requested_value: float

    id: Optional[int] = None
    reason: str = ""
    evidence_urls: List[str] = field(default_factory=list)
    status: AppealStatus = AppealStatus.PENDING
    submitted_at: Optional[datetime] = None

    # Resolution
    reviewed_by: Optional[int] = None
    reviewed_at: Optional[datetime] = None
    decision: Optional[str] = None
    decision_reason: Optional[str] = None
    adjusted_value: Optional[float] = None

    def __post_init__(self):
        if self.status == AppealStatus.PENDING and self.adjusted_value is not None:
            raise InvalidInputError("adjusted_value is only set on resolved appeals")

    @property
    def is_resolved(self) -> bool:
        return self.status != AppealStatus.PENDING

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "propertyId": self.property_id,
            "tenantId": self.tenant_id,
            "valuationId": self.valuation_id,
            "submittedBy": self.submitted_by,
            "reason": self.reason,
            "requestedValue": self.requested_value,
            "evidenceUrls": list(self.evidence_urls),
            "status": self.status.value,
            "submittedAt": self.submitted_at.isoformat() if self.submitted_at else None,
            "reviewedBy": self.reviewed_by,
            "reviewedAt": self.reviewed_at.isoformat() if self.reviewed_at else None,
            "decision": self.decision,
            "decisionReason": self.decision_reason,
            "adjustedValue": self.adjusted_value,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "PropertyAppeal":
        return cls(
            id=data.get("id"),
            property_id=data["propertyId"],
            tenant_id=data["tenantId"],
            valuation_id=data.get("valuationId"),
            submitted_by=data.get("submittedBy", 0),
            requested_value=data["requestedValue"],
            reason=data.get("reason") or "",
            evidence_urls=list(data.get("evidenceUrls") or []),
            status=AppealStatus(data.get("status", "pending")),
            submitted_at=_parse_datetime(data.get("submittedAt")),
            reviewed_by=data.get("reviewedBy"),
            reviewed_at=_parse_datetime(data.get("reviewedAt")),
            decision=data.get("decision"),
            decision_reason=data.get("decisionReason"),
            adjusted_value=data.get("adjustedValue"),
        )


# =============================================================================
# Tax Rate
# =============================================================================


@dataclass(frozen=True)
class TaxRate:
    """
    Millage rate for one (tenant, zone, property type).

    Only one rate per key is active at a time.
    """
    tenant_id: int
    zone_code: str
    property_type: PropertyType
    millage_rate: float  # per $1,000 of taxable value
    exemption_amount: float = 0.0
    is_active: bool = True
    id: Optional[int] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tenantId": self.tenant_id,
            "zoneCode": self.zone_code,
            "propertyType": self.property_type.value,
            "millageRate": self.millage_rate,
            "exemptionAmount": self.exemption_amount,
            "isActive": self.is_active,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "TaxRate":
        return cls(
            id=data.get("id"),
            tenant_id=data["tenantId"],
            zone_code=data.get("zoneCode", ""),
            property_type=PropertyType.from_string(data.get("propertyType", "other")) or PropertyType.OTHER,
            millage_rate=data["millageRate"],
            exemption_amount=data.get("exemptionAmount") or 0.0,
            is_active=data.get("isActive", True),
        )
