"""
Tests for the Appeal Evidence Packet and CLI

Verifies:
- PDF output is valid and byte-deterministic
- Packets with no evidence or comparables still render
- CLI recommend/report commands over a JSON data file
"""

import json
import pytest
from datetime import date
from pathlib import Path
import sys

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from assessment.appeals import AppealRecommendation, EvidenceItem
from assessment.comp_engine import ScoredComparable
from assessment.models import Property, PropertyType, PropertyValuation, ValuationMethod
from reporting import AppealReportGenerator, generate_appeal_report
from reporting.cli import main


def make_property(id, **overrides):
    fields = dict(
        tenant_id=1,
        parcel_id=f"P-{id}",
        property_type=PropertyType.RESIDENTIAL,
        land_area=10000.0,
        address=f"{id} Birch Lane",
        city="Springfield",
        state="IL",
        zip_code="62701",
        zone_code="R1",
        building_area=2500.0,
        year_built=1995,
        last_assessed_value=400000.0,
    )
    fields.update(overrides)
    return Property(id=id, **fields)


# =============================================================================
# Test Fixtures
# =============================================================================

@pytest.fixture
def subject():
    return make_property(1, address="1 Birch Lane & Co <Annex>")


@pytest.fixture
def recommendation():
    return AppealRecommendation(
        property_id=1,
        tenant_id=1,
        valuation_id=3,
        current_assessed_value=652000,
        probability=90,
        recommended_value=400000,
        potential_savings=2268,
        millage_rate=10.0,
        evidence=[
            EvidenceItem("comparable_properties", "Subject property assessed at $652,000", 63.0),
            EvidenceItem("price_per_sqft", "Subject property assessed at $261 per sq ft", 57.0),
        ],
        comparables=[
            ScoredComparable(property=make_property(2), similarity=0.98),
            ScoredComparable(property=make_property(3), similarity=0.95),
        ],
        reference_date=date(2024, 6, 1),
    )


@pytest.fixture
def empty_recommendation():
    return AppealRecommendation(
        property_id=1,
        tenant_id=1,
        valuation_id=3,
        current_assessed_value=300000,
        probability=10,
        recommended_value=300000,
        potential_savings=0,
        millage_rate=10.0,
        evidence=[],
        comparables=[],
        reference_date=date(2024, 6, 1),
    )


@pytest.fixture
def data_file(tmp_path):
    properties = [make_property(i).to_dict() for i in range(1, 4)]
    valuation = PropertyValuation(
        id=1, property_id=1, tenant_id=1, assessed_value=652000, market_value=815000,
        taxable_value=652000, assessment_date=date(2024, 1, 1),
        valuation_method=ValuationMethod.STANDARD,
    )
    path = tmp_path / "assessments.json"
    path.write_text(json.dumps({"properties": properties, "valuations": [valuation.to_dict()]}))
    return path


# =============================================================================
# PDF Generation
# =============================================================================

class TestAppealReport:

    def test_valid_pdf(self, tmp_path, subject, recommendation):
        pdf = AppealReportGenerator(tmp_path).generate_to_buffer(subject, recommendation)
        assert pdf.startswith(b"%PDF")

    def test_deterministic(self, tmp_path, subject, recommendation):
        generator = AppealReportGenerator(tmp_path)
        first = generator.generate_to_buffer(subject, recommendation)
        second = generator.generate_to_buffer(subject, recommendation)
        assert first == second

    def test_empty_sections_render(self, tmp_path, subject, empty_recommendation):
        pdf = AppealReportGenerator(tmp_path).generate_to_buffer(subject, empty_recommendation)
        assert pdf.startswith(b"%PDF")

    def test_generate_writes_file(self, tmp_path, subject, recommendation):
        result = generate_appeal_report(subject, recommendation, tmp_path / "out")

        assert result.path == tmp_path / "out" / "appeal-1-1.pdf"
        assert result.path.read_bytes().startswith(b"%PDF")
        assert result.evidence_included == 2
        assert result.comparables_included == 2


# =============================================================================
# CLI
# =============================================================================

class TestCli:

    def test_recommend_prints_json(self, data_file, capsys):
        code = main(["recommend", str(data_file), "--tenant", "1", "--property", "1", "--as-of", "2024-06-01"])
        output = json.loads(capsys.readouterr().out)

        assert code == 0
        assert output["propertyId"] == 1
        assert output["recommendedValue"] == 400000
        assert output["referenceDate"] == "2024-06-01"

    def test_report_writes_pdf(self, data_file, tmp_path, capsys):
        out_dir = tmp_path / "packets"
        code = main([
            "report", str(data_file), "--tenant", "1", "--property", "1",
            "--as-of", "2024-06-01", "--output-dir", str(out_dir),
        ])

        assert code == 0
        assert "Report generated" in capsys.readouterr().out
        assert (out_dir / "appeal-1-1.pdf").exists()

    def test_missing_file(self, tmp_path, capsys):
        code = main(["recommend", str(tmp_path / "none.json"), "--tenant", "1", "--property", "1"])

        assert code == 1
        assert "File not found" in capsys.readouterr().err

    def test_unknown_property(self, data_file, capsys):
        code = main(["recommend", str(data_file), "--tenant", "1", "--property", "42"])

        assert code == 1
        assert "not found" in capsys.readouterr().err
