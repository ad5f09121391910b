"""
Assessment Service - Caller-Facing Operations

Reads inputs through the repository, runs the pure engines, and persists
new valuations and appeals. This is the only layer that performs I/O or
logs; the HTTP routes, the CLI and batch jobs all go through it.
"""

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from typing import List, Optional, Union

from utils.config import Config

from .appeals import (
    AppealRecommendation,
    AppealRecommendationEngine,
    find_successful_appeals,
    latest_valuation,
)
from .errors import AssessmentError, NotFoundError
from .models import (
    Property,
    PropertyAppeal,
    PropertyValuation,
    TaxRate,
    ValuationMethod,
    parse_date,
)
from .repository import AssessmentRepository
from .valuation import PredictiveValuationForecaster, ValuationCalculator


logger = logging.getLogger(__name__)


@dataclass
class BatchResult:
    """Outcome of a tenant-wide revaluation."""
    valuations: List[PropertyValuation] = field(default_factory=list)
    errors: List[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "success": len(self.valuations),
            "failed": len(self.errors),
            "results": [v.to_dict() for v in self.valuations],
            "errors": list(self.errors),
        }


class AssessmentService:
    """
    Valuation, prediction and appeal operations for one repository.

    Every operation takes an explicit tenant id; none is ever inferred.
    """

    def __init__(
        self,
        repository: AssessmentRepository,
        config: Optional[Config] = None,
        reference_date: date = None,
    ):
        """
        Initialize service.

        Args:
            repository: Storage collaborator
            config: Engine settings (default: loaded from environment)
            reference_date: Date "recent" is measured from (default: today)
        """
        self._repository = repository
        self._config = config or Config.load()
        self._reference_date = reference_date
        self._calculator = ValuationCalculator(assessment_ratio=self._config.assessment_ratio)
        self._forecaster = PredictiveValuationForecaster()

    @property
    def repository(self) -> AssessmentRepository:
        return self._repository

    # =========================================================================
    # Lookups
    # =========================================================================

    def get_property(self, property_id: int, tenant_id: int) -> Property:
        prop = self._repository.get_property(property_id, tenant_id)
        if prop is None:
            raise NotFoundError(
                f"Property {property_id} not found",
                {"propertyId": property_id, "tenantId": tenant_id},
            )
        return prop

    def _tax_rate_for(self, prop: Property) -> Optional[TaxRate]:
        return self._repository.get_active_tax_rate(prop.tenant_id, prop.zone_code, prop.property_type)

    def valuation_history(self, property_id: int, tenant_id: int) -> List[PropertyValuation]:
        """A property's valuations, oldest first."""
        self.get_property(property_id, tenant_id)
        valuations = self._repository.get_all_property_valuations(property_id, tenant_id)
        return sorted(valuations, key=lambda v: v.assessment_date)

    # =========================================================================
    # Valuation
    # =========================================================================

    def calculate_valuation(
        self,
        property_id: int,
        tenant_id: int,
        method: Union[ValuationMethod, str, None] = None,
        assessment_date: Union[date, str, None] = None,
        assessor_id: int = 0,
    ) -> PropertyValuation:
        """
        Value a property and persist the result.

        Raises:
            NotFoundError: If the property does not exist for the tenant
            InvalidInputError: If assessment_date cannot be parsed
        """
        prop = self.get_property(property_id, tenant_id)
        when = parse_date(assessment_date) if assessment_date else self._today()

        resolved, fell_back = ValuationCalculator.resolve_method(method)
        if fell_back and method is not None:
            logger.warning(
                "Unknown valuation method %r for property %s, using %s",
                method, property_id, resolved.value,
            )

        valuation = self._calculator.calculate(
            prop, method, when, tax_rate=self._tax_rate_for(prop), assessor_id=assessor_id,
        )
        stored = self._repository.save_valuation(valuation)
        logger.info(
            "Valued property %s (tenant %s) by %s: assessed %s",
            property_id, tenant_id, stored.valuation_method.value, stored.assessed_value,
        )
        return stored

    def predict_valuation(
        self,
        property_id: int,
        tenant_id: int,
        prediction_date: Union[date, str, None] = None,
    ) -> PropertyValuation:
        """Forecast a property's value and persist the prediction."""
        prop = self.get_property(property_id, tenant_id)
        when = parse_date(prediction_date) if prediction_date else self._today()

        history = self._repository.get_all_property_valuations(property_id, tenant_id)
        prediction = self._forecaster.predict(prop, history, when)
        stored = self._repository.save_valuation(prediction)
        logger.info(
            "Predicted property %s (tenant %s) for %s using %s: %s (confidence %s)",
            property_id, tenant_id, when.isoformat(),
            stored.prediction_models["method"], stored.assessed_value, stored.confidence_score,
        )
        return stored

    def revalue_tenant(
        self,
        tenant_id: int,
        method: Union[ValuationMethod, str, None] = None,
        assessment_date: Union[date, str, None] = None,
    ) -> BatchResult:
        """
        Value every active property of a tenant.

        A failure on one property is recorded and the run continues.
        """
        when = parse_date(assessment_date) if assessment_date else self._today()
        result = BatchResult()

        for prop in self._repository.get_all_properties(tenant_id):
            try:
                result.valuations.append(
                    self.calculate_valuation(prop.id, tenant_id, method, when)
                )
            except AssessmentError as e:
                logger.warning("Batch valuation failed for property %s: %s", prop.id, e.message)
                result.errors.append({"propertyId": prop.id, "error": e.message, "code": e.code})

        logger.info(
            "Batch revaluation for tenant %s: %d valued, %d failed",
            tenant_id, len(result.valuations), len(result.errors),
        )
        return result

    # =========================================================================
    # Appeals
    # =========================================================================

    def recommend_appeal(self, property_id: int, tenant_id: int) -> AppealRecommendation:
        """
        Analyse a property for appeal.

        Raises:
            NotFoundError: If the property or its valuation history is missing
        """
        prop = self.get_property(property_id, tenant_id)
        valuations = self._repository.get_all_property_valuations(property_id, tenant_id)
        candidates = self._repository.get_all_properties(tenant_id)

        engine = AppealRecommendationEngine(
            reference_date=self._today(),
            default_millage_rate=self._config.default_millage_rate,
            comparable_count=self._config.comparable_count,
        )
        recommendation = engine.recommend(
            prop,
            valuations,
            candidates,
            precedents=self._successful_appeals(tenant_id),
            tax_rate=self._tax_rate_for(prop),
        )
        logger.info(
            "Appeal recommendation for property %s (tenant %s): probability %s, recommended %s",
            property_id, tenant_id, recommendation.probability, recommendation.recommended_value,
        )
        return recommendation

    def _successful_appeals(self, tenant_id: int):
        pairs = self._repository.get_tenant_appeals(tenant_id)
        contested_values = {}
        for prop_id in {prop.id for prop, _ in pairs}:
            for valuation in self._repository.get_all_property_valuations(prop_id, tenant_id):
                if valuation.id is not None:
                    contested_values[valuation.id] = valuation.assessed_value
        return find_successful_appeals(pairs, contested_values)

    def file_appeal(
        self,
        property_id: int,
        tenant_id: int,
        submitted_by: int,
        reason: Optional[str] = None,
    ) -> PropertyAppeal:
        """
        File a pending appeal requesting the recommended value.

        The evidence descriptions are appended to the reason so reviewers
        see the same arguments the recommendation produced.
        """
        recommendation = self.recommend_appeal(property_id, tenant_id)
        valuation = latest_valuation(
            self._repository.get_all_property_valuations(property_id, tenant_id)
        )

        lines = [reason.strip()] if reason and reason.strip() else []
        lines.extend(f"- {item.description}" for item in recommendation.evidence)

        appeal = PropertyAppeal(
            property_id=property_id,
            tenant_id=tenant_id,
            valuation_id=valuation.id,
            submitted_by=submitted_by,
            requested_value=recommendation.recommended_value,
            reason="\n".join(lines) or "Assessment exceeds comparable properties",
            submitted_at=datetime.now(timezone.utc),
        )
        stored = self._repository.save_appeal(appeal)
        logger.info(
            "Filed appeal %s for property %s (tenant %s) requesting %s",
            stored.id, property_id, tenant_id, stored.requested_value,
        )
        return stored

    def _today(self) -> date:
        return self._reference_date or date.today()
