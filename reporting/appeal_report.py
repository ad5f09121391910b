"""
Appeal Evidence Packet

Generates a PDF packet from an appeal recommendation for filing with the
assessor or for review by the owner.
Uses ReportLab for deterministic PDF generation.

Output Structure:
1. Header (parcel, address, analysis date)
2. Recommendation Summary
3. Supporting Evidence (ranked by impact)
4. Comparable Properties
5. Notice
"""

from dataclasses import dataclass
from io import BytesIO
from pathlib import Path
from typing import Union
from xml.sax.saxutils import escape

from reportlab.lib import colors
from reportlab.lib.enums import TA_LEFT
from reportlab.lib.pagesizes import letter
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import mm
from reportlab.pdfgen import canvas
from reportlab.platypus import Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from assessment.appeals import AppealRecommendation
from assessment.models import Property
from utils.formatting import format_currency, format_percent


# =============================================================================
# Report Generation Result Types
# =============================================================================

@dataclass
class AppealReportSuccess:
    """Returned when PDF generation succeeds."""
    path: Path
    evidence_included: int
    comparables_included: int


NOTICE = (
    "This packet summarises an automated analysis of the current assessment. "
    "Probability and savings are estimates weighted by the likelihood of a "
    "successful appeal and do not guarantee any outcome."
)


class Palette:
    """Print-friendly palette."""
    CHARCOAL = colors.Color(0.2, 0.2, 0.22)
    SLATE = colors.Color(0.35, 0.38, 0.42)
    GRAY = colors.Color(0.5, 0.5, 0.5)
    LIGHT_GRAY = colors.Color(0.85, 0.85, 0.85)
    PALE_GRAY = colors.Color(0.95, 0.95, 0.95)
    WHITE = colors.white


def get_report_styles():
    """Paragraph styles for the evidence packet."""
    styles = getSampleStyleSheet()

    styles.add(ParagraphStyle(
        name='PacketTitle',
        parent=styles['Normal'],
        fontSize=18,
        leading=23,
        textColor=Palette.CHARCOAL,
        alignment=TA_LEFT,
        fontName='Helvetica-Bold',
        spaceAfter=3*mm,
    ))

    styles.add(ParagraphStyle(
        name='PacketSubtitle',
        parent=styles['Normal'],
        fontSize=10,
        leading=14,
        textColor=Palette.SLATE,
        fontName='Helvetica',
    ))

    styles.add(ParagraphStyle(
        name='SectionTitle',
        parent=styles['Normal'],
        fontSize=13,
        leading=17,
        textColor=Palette.CHARCOAL,
        fontName='Helvetica-Bold',
        spaceBefore=16,
        spaceAfter=8,
    ))

    styles.add(ParagraphStyle(
        name='TableCell',
        parent=styles['Normal'],
        fontSize=8.5,
        leading=11,
        textColor=Palette.CHARCOAL,
        fontName='Helvetica',
    ))

    styles.add(ParagraphStyle(
        name='Notice',
        parent=styles['Normal'],
        fontSize=7.5,
        leading=10,
        textColor=Palette.GRAY,
        fontName='Helvetica',
    ))

    return styles


def _table_style(header_rows: int = 1) -> TableStyle:
    return TableStyle([
        ('FONTNAME', (0, 0), (-1, header_rows - 1), 'Helvetica-Bold'),
        ('FONTNAME', (0, header_rows), (-1, -1), 'Helvetica'),
        ('FONTSIZE', (0, 0), (-1, -1), 8.5),
        ('BACKGROUND', (0, 0), (-1, header_rows - 1), Palette.CHARCOAL),
        ('TEXTCOLOR', (0, 0), (-1, header_rows - 1), Palette.WHITE),
        ('TEXTCOLOR', (0, header_rows), (-1, -1), Palette.CHARCOAL),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('GRID', (0, 0), (-1, -1), 0.5, Palette.LIGHT_GRAY),
        ('TOPPADDING', (0, 0), (-1, -1), 2.5*mm),
        ('BOTTOMPADDING', (0, 0), (-1, -1), 2.5*mm),
        ('LEFTPADDING', (0, 0), (-1, -1), 2*mm),
        ('RIGHTPADDING', (0, 0), (-1, -1), 2*mm),
        ('ROWBACKGROUNDS', (0, header_rows), (-1, -1), [Palette.WHITE, Palette.PALE_GRAY]),
    ])


class AppealReportGenerator:
    """
    Generates appeal evidence packet PDFs.

    Output is deterministic: the same property and recommendation always
    produce byte-identical PDFs.
    """

    MARGIN = 18*mm

    def __init__(self, output_dir: Union[str, Path] = "reports"):
        """
        Initialize the generator.

        Args:
            output_dir: Directory packets are written to
        """
        self.output_dir = Path(output_dir)
        self.styles = get_report_styles()

    @staticmethod
    def filename_for(prop: Property) -> str:
        return f"appeal-{prop.tenant_id}-{prop.id}.pdf"

    def generate(self, prop: Property, recommendation: AppealRecommendation) -> AppealReportSuccess:
        """Write the packet to the output directory."""
        self.output_dir.mkdir(parents=True, exist_ok=True)
        output_path = self.output_dir / self.filename_for(prop)
        output_path.write_bytes(self.generate_to_buffer(prop, recommendation))
        return AppealReportSuccess(
            path=output_path,
            evidence_included=len(recommendation.evidence),
            comparables_included=len(recommendation.comparables),
        )

    def generate_to_buffer(self, prop: Property, recommendation: AppealRecommendation) -> bytes:
        """Generate the PDF and return it as bytes (for testing or streaming)."""
        buffer = BytesIO()
        doc = SimpleDocTemplate(
            buffer,
            pagesize=letter,
            leftMargin=self.MARGIN,
            rightMargin=self.MARGIN,
            topMargin=self.MARGIN,
            bottomMargin=self.MARGIN + 4*mm,
            title=f"Appeal Evidence Packet - Parcel {prop.parcel_id}",
            subject="Property Tax Appeal",
            invariant=1,
        )

        story = []
        story.extend(self._build_header(prop, recommendation))
        story.extend(self._build_summary(recommendation))
        story.extend(self._build_evidence(recommendation))
        story.extend(self._build_comparables(recommendation))
        story.append(Spacer(1, 10))
        story.append(Paragraph(NOTICE, self.styles['Notice']))

        doc.build(story, onFirstPage=self._draw_footer, onLaterPages=self._draw_footer)
        return buffer.getvalue()

    def _draw_footer(self, canvas_obj: canvas.Canvas, doc):
        canvas_obj.saveState()
        canvas_obj.setFont('Helvetica', 7)
        canvas_obj.setFillColor(Palette.GRAY)
        canvas_obj.drawString(self.MARGIN, self.MARGIN - 2*mm, "APPEAL EVIDENCE PACKET")
        canvas_obj.drawRightString(doc.pagesize[0] - self.MARGIN, self.MARGIN - 2*mm, f"{doc.page}")
        canvas_obj.restoreState()

    # =========================================================================
    # Sections
    # =========================================================================

    def _build_header(self, prop: Property, recommendation: AppealRecommendation) -> list:
        analysed = recommendation.reference_date.isoformat() if recommendation.reference_date else ""
        lines = [f"Parcel {escape(prop.parcel_id)}"]
        if prop.full_address:
            lines.append(escape(prop.full_address))
        if analysed:
            lines.append(f"Analysis date: {analysed}")
        return [
            Paragraph("Property Tax Appeal Evidence", self.styles['PacketTitle']),
            Paragraph("<br/>".join(lines), self.styles['PacketSubtitle']),
        ]

    def _build_summary(self, recommendation: AppealRecommendation) -> list:
        rows = [
            ["Measure", "Value"],
            ["Current assessed value", format_currency(recommendation.current_assessed_value)],
            ["Recommended value", format_currency(recommendation.recommended_value)],
            ["Requested reduction", format_currency(recommendation.requested_reduction)],
            ["Appeal success probability", format_percent(recommendation.probability, 0)],
            ["Millage rate (per $1,000)", f"{recommendation.millage_rate:.2f}"],
            ["Potential annual savings", format_currency(recommendation.potential_savings)],
        ]
        table = Table(rows, colWidths=[90*mm, 60*mm])
        table.setStyle(_table_style())
        return [Paragraph("Recommendation Summary", self.styles['SectionTitle']), table]

    def _build_evidence(self, recommendation: AppealRecommendation) -> list:
        elements = [Paragraph("Supporting Evidence", self.styles['SectionTitle'])]
        if not recommendation.evidence:
            elements.append(Paragraph(
                "No individual factor met the evidence thresholds.", self.styles['TableCell'],
            ))
            return elements

        rows = [["#", "Evidence", "Impact"]]
        for rank, item in enumerate(recommendation.evidence, 1):
            rows.append([
                str(rank),
                Paragraph(escape(item.description), self.styles['TableCell']),
                f"{item.impact:.1f}",
            ])
        table = Table(rows, colWidths=[10*mm, 140*mm, 20*mm], repeatRows=1)
        table.setStyle(_table_style())
        elements.append(table)
        return elements

    def _build_comparables(self, recommendation: AppealRecommendation) -> list:
        elements = [Paragraph("Comparable Properties", self.styles['SectionTitle'])]
        if not recommendation.comparables:
            elements.append(Paragraph(
                "No comparable properties were available for this tenant.", self.styles['TableCell'],
            ))
            return elements

        rows = [["Parcel", "Address", "Building sq ft", "Assessed", "Similarity"]]
        for item in recommendation.comparables:
            comp = item.property
            rows.append([
                comp.parcel_id,
                Paragraph(escape(comp.full_address or "-"), self.styles['TableCell']),
                f"{comp.building_area:,.0f}" if comp.building_area else "-",
                format_currency(comp.last_assessed_value) if comp.last_assessed_value else "-",
                format_percent(item.similarity * 100),
            ])
        table = Table(rows, colWidths=[25*mm, 70*mm, 25*mm, 27*mm, 23*mm], repeatRows=1)
        table.setStyle(_table_style())
        elements.append(table)
        return elements


def generate_appeal_report(
    prop: Property,
    recommendation: AppealRecommendation,
    output_dir: Union[str, Path] = "reports",
) -> AppealReportSuccess:
    """Generate an appeal evidence packet PDF."""
    return AppealReportGenerator(output_dir).generate(prop, recommendation)
