"""
Reporting module for the assessment engine.

Generates appeal evidence packet PDFs from appeal recommendations.

Usage:
    from reporting import generate_appeal_report

    recommendation = service.recommend_appeal(property_id, tenant_id)
    result = generate_appeal_report(prop, recommendation, "reports")
"""

from .appeal_report import (
    AppealReportGenerator,
    AppealReportSuccess,
    generate_appeal_report,
)

__all__ = [
    "AppealReportGenerator",
    "AppealReportSuccess",
    "generate_appeal_report",
]
