"""
Assessment Routes - Web API for Valuations and Appeals

All routes are tenant-scoped through a required tenantId query parameter.
Domain errors propagate as AssessmentError and are rendered by the
application's exception handler.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request
from pydantic import BaseModel, ConfigDict, Field

from assessment import AssessmentService
from reporting.appeal_report import AppealReportGenerator


logger = logging.getLogger(__name__)


# =============================================================================
# Router Setup
# =============================================================================

router = APIRouter(prefix="/api", tags=["assessment"])


def get_service(request: Request) -> AssessmentService:
    return request.app.state.service


def get_reports_dir(request: Request) -> Path:
    return Path(request.app.state.config.reports_dir)


TenantId = Query(..., alias="tenantId", description="Owning tenant")


# =============================================================================
# Request Models
# =============================================================================


class CalculateValuationRequest(BaseModel):
    """Body for valuation and batch revaluation."""
    model_config = ConfigDict(populate_by_name=True)

    method: Optional[str] = "standard"
    assessment_date: Optional[str] = Field(default=None, alias="assessmentDate")


class PredictValuationRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    prediction_date: Optional[str] = Field(default=None, alias="predictionDate")


class FileAppealRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    submitted_by: int = Field(alias="submittedBy")
    reason: Optional[str] = None


# =============================================================================
# Valuation Routes
# =============================================================================


@router.get("/properties/{property_id}/valuations")
def list_valuations(
    property_id: int,
    tenant_id: int = TenantId,
    service: AssessmentService = Depends(get_service),
):
    """Valuation history for a property, oldest first."""
    history = service.valuation_history(property_id, tenant_id)
    return {"propertyId": property_id, "valuations": [v.to_dict() for v in history]}


@router.post("/valuations/calculate/{property_id}")
def calculate_valuation(
    property_id: int,
    body: CalculateValuationRequest,
    tenant_id: int = TenantId,
    service: AssessmentService = Depends(get_service),
):
    valuation = service.calculate_valuation(
        property_id, tenant_id, body.method, body.assessment_date,
    )
    return valuation.to_dict()


@router.post("/valuations/predict/{property_id}")
def predict_valuation(
    property_id: int,
    body: PredictValuationRequest,
    tenant_id: int = TenantId,
    service: AssessmentService = Depends(get_service),
):
    prediction = service.predict_valuation(property_id, tenant_id, body.prediction_date)
    return prediction.to_dict()


@router.post("/valuations/batch")
def batch_valuation(
    body: CalculateValuationRequest,
    tenant_id: int = TenantId,
    service: AssessmentService = Depends(get_service),
):
    """Revalue every active property of the tenant."""
    result = service.revalue_tenant(tenant_id, body.method, body.assessment_date)
    return result.to_dict()


# =============================================================================
# Appeal Routes
# =============================================================================


@router.get("/appeals/recommendations/{property_id}")
def appeal_recommendation(
    property_id: int,
    tenant_id: int = TenantId,
    service: AssessmentService = Depends(get_service),
):
    return service.recommend_appeal(property_id, tenant_id).to_dict()


@router.get("/appeals/recommend/{property_id}", deprecated=True)
def appeal_recommendation_legacy(
    property_id: int,
    tenant_id: int = TenantId,
    service: AssessmentService = Depends(get_service),
):
    """Legacy path kept for older dashboard builds."""
    logger.warning(
        "Deprecated route /api/appeals/recommend/%s called; use /api/appeals/recommendations/",
        property_id,
    )
    return service.recommend_appeal(property_id, tenant_id).to_dict()


@router.post("/appeals/recommendations/{property_id}/report")
def appeal_report(
    property_id: int,
    tenant_id: int = TenantId,
    service: AssessmentService = Depends(get_service),
    reports_dir: Path = Depends(get_reports_dir),
):
    """
    Build the appeal evidence packet PDF.

    Returns:
        success, pdfUrl and filename of the packet served under /reports
    """
    prop = service.get_property(property_id, tenant_id)
    recommendation = service.recommend_appeal(property_id, tenant_id)
    result = AppealReportGenerator(reports_dir).generate(prop, recommendation)

    filename = result.path.name
    return {
        "success": True,
        "pdfUrl": f"/reports/{filename}",
        "filename": filename,
        "evidenceIncluded": result.evidence_included,
        "comparablesIncluded": result.comparables_included,
    }


@router.post("/appeals/{property_id}", status_code=201)
def file_appeal(
    property_id: int,
    body: FileAppealRequest,
    tenant_id: int = TenantId,
    service: AssessmentService = Depends(get_service),
):
    """File a pending appeal at the recommended value."""
    appeal = service.file_appeal(property_id, tenant_id, body.submitted_by, body.reason)
    return appeal.to_dict()
