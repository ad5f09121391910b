#!/usr/bin/env python3
"""
CLI for appeal recommendations and evidence packets.

Usage:
    python -m reporting.cli recommend <data_json> --tenant <id> --property <id>
    python -m reporting.cli report <data_json> --tenant <id> --property <id>

Examples:
    # Print a recommendation as JSON
    python -m reporting.cli recommend data/assessments.json --tenant 1 --property 42

    # Write the PDF evidence packet
    python -m reporting.cli report data/assessments.json --tenant 1 --property 42 --output-dir reports
"""

import argparse
import json
import sys
from datetime import date
from pathlib import Path

from assessment import AssessmentError, AssessmentService, InMemoryAssessmentRepository
from assessment.models import parse_date
from utils.config import Config, configure_logging

from .appeal_report import AppealReportGenerator


def build_service(args) -> AssessmentService:
    """Load the data file into a repository and wrap it in a service."""
    repository = InMemoryAssessmentRepository.from_json_file(args.data_file)
    reference_date = parse_date(args.as_of) if args.as_of else date.today()
    return AssessmentService(repository, Config.load(), reference_date=reference_date)


def _load(args):
    input_path = Path(args.data_file)
    if not input_path.exists():
        print(f"Error: File not found: {input_path}", file=sys.stderr)
        return None

    try:
        return build_service(args)
    except json.JSONDecodeError as e:
        print(f"Error: Invalid JSON: {e}", file=sys.stderr)
    except (KeyError, ValueError) as e:
        print(f"Error: Invalid assessment data: {e}", file=sys.stderr)
    return None


def cmd_recommend(args):
    """Print an appeal recommendation as JSON."""
    service = _load(args)
    if service is None:
        return 1

    try:
        recommendation = service.recommend_appeal(args.property, args.tenant)
    except AssessmentError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    print(json.dumps(recommendation.to_dict(), indent=2))
    return 0


def cmd_report(args):
    """Write an appeal evidence packet PDF."""
    service = _load(args)
    if service is None:
        return 1

    try:
        prop = service.get_property(args.property, args.tenant)
        recommendation = service.recommend_appeal(args.property, args.tenant)
    except AssessmentError as e:
        print(f"Error: {e.message}", file=sys.stderr)
        return 1

    output_dir = args.output_dir or Config.load().reports_dir
    result = AppealReportGenerator(output_dir).generate(prop, recommendation)

    print(f"Report generated: {result.path}")
    print(f"Evidence items: {result.evidence_included}, comparables: {result.comparables_included}")
    return 0


def _add_common_arguments(parser):
    parser.add_argument("data_file", help="Path to JSON data file")
    parser.add_argument("--tenant", type=int, required=True, help="Tenant id")
    parser.add_argument("--property", type=int, required=True, help="Property id")
    parser.add_argument("--as-of", help="Reference date for recent sales (YYYY-MM-DD, default: today)")


def main(argv=None):
    """Main CLI entry point."""
    parser = argparse.ArgumentParser(
        description="Property Tax Appeal Recommendations",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
    python -m reporting.cli recommend data/assessments.json --tenant 1 --property 42
    python -m reporting.cli report data/assessments.json --tenant 1 --property 42

Data file keys: properties, valuations, appeals, taxRates
        """,
    )
    parser.add_argument("--log-level", default="WARNING", help="Logging level (default: WARNING)")

    subparsers = parser.add_subparsers(dest="command", required=True)

    recommend_parser = subparsers.add_parser(
        "recommend",
        help="Print an appeal recommendation as JSON",
    )
    _add_common_arguments(recommend_parser)
    recommend_parser.set_defaults(func=cmd_recommend)

    report_parser = subparsers.add_parser(
        "report",
        help="Write an appeal evidence packet PDF",
    )
    _add_common_arguments(report_parser)
    report_parser.add_argument("--output-dir", help="Output directory (default: REPORTS_DIR)")
    report_parser.set_defaults(func=cmd_report)

    args = parser.parse_args(argv)
    configure_logging(args.log_level)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
