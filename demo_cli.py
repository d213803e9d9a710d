#!/usr/bin/env python3
"""
demo_cli.py — Standalone command-line front-end
=================================================
Runs the screening pipeline WITHOUT the FastAPI server.
Useful for quick checks, demos, and debugging.

Usage:
    python demo_cli.py epwv --systolic 140 --diastolic 90 --age 67
    python demo_cli.py epwv ... --height 175 --weight 82 --diseases "Diabetes, Stroke"
    python demo_cli.py validate fundus.jpg
    python demo_cli.py analyze fundus.jpg --eye left --mode macula
    python demo_cli.py capture --eye right --mode disc --analyze

⚠️  DISCLAIMER: ePWV and retinal stroke-risk values are ESTIMATES.
    This is a SCREENING AID — NOT a diagnostic device.
"""

import argparse
import mimetypes
import sys

from assessment.client import RiskAssessmentClient
from assessment.errors import AssessmentError
from assessment.schema import AssessmentMetadata, RetinalImageAssessment
from camera.capture import CaptureError, CaptureOptions, bytes_to_data_uri, capture_retinal_image
from config import CAPTURE_DEVICE_INDEX, CAPTURE_STORAGE_DIR, RISK_ASSESSMENT_URL
from imaging.validator import validate_image
from records.visit import DISEASES, parse_diseases
from utils.logger import get_logger
from vitals.epwv import VitalReading, assess_vitals
from vitals.pressure import compute_bmi

logger = get_logger("demo_cli")


def pretty_print(label: str, value, unit: str = "") -> None:
    """Colourised terminal output."""
    print(f"  \033[1;36m{label:<28}\033[0m \033[1;33m{value}\033[0m {unit}")


def _banner(title: str) -> None:
    print("\n" + "=" * 60)
    print(f"  {title}")
    print("=" * 60)


def _read_data_uri(path: str) -> str:
    mime, _ = mimetypes.guess_type(path)
    with open(path, "rb") as f:
        return bytes_to_data_uri(f.read(), mime or "application/octet-stream")


def _print_assessment(assessment: RetinalImageAssessment) -> None:
    _banner("RETINAL STROKE-RISK ASSESSMENT (AI-ASSISTED)")
    pretty_print("Risk level", assessment.risk_level.value)
    pretty_print("Stroke risk", f"{assessment.stroke_risk_percentage:.0f}", "%")
    pretty_print("Image quality", f"{assessment.image_quality_score:.0f}", "/ 100")
    pretty_print("Confidence", f"{assessment.confidence:.0f}", "/ 100")
    print("\n  ── Findings ──")
    for finding in assessment.risk_factors.findings or ["None reported"]:
        print(f"    • {finding}")
    print("\n  ── Recommendations ──")
    for rec in assessment.clinical_recommendations:
        print(f"    • {rec}")


def cmd_epwv(args) -> int:
    history = parse_diseases(args.diseases)
    unknown = [d for d in history if d not in DISEASES]
    if unknown:
        print(f"  ERROR: unknown condition(s): {', '.join(unknown)}")
        print(f"  Choose from: {', '.join(DISEASES)}")
        return 2

    reading = VitalReading(systolic=args.systolic, diastolic=args.diastolic, age=args.age)
    result = assess_vitals(reading)

    _banner("ePWV ANALYSIS")
    bmi = compute_bmi(args.height, args.weight)
    if bmi is not None:
        pretty_print("BMI", bmi, "kg/m²")
    if history:
        pretty_print("Medical history", ", ".join(history))
    if result is None:
        print("  Please complete the vital signs (age and blood pressure) to calculate ePWV.")
        return 1

    pretty_print("Mean arterial pressure", reading.mean_arterial_pressure, "mmHg")
    pretty_print("ePWV", f"{result.epwv:.2f}", "m/s")
    pretty_print("Risk category", result.risk_category.value)
    pretty_print("Confidence", result.confidence.value)
    print(f"\n    {result.interpretation}\n")
    print("  ── Recommendations ──")
    for rec in result.recommendations:
        print(f"    • {rec}")
    return 0


def cmd_validate(args) -> int:
    validation = validate_image(_read_data_uri(args.image))
    _banner("IMAGE INTAKE CHECK")
    pretty_print("Valid", validation.is_valid)
    if validation.dimensions is not None:
        pretty_print("Dimensions", validation.dimensions, "px")
    if validation.reason:
        print(f"\n    {validation.reason}")
    return 0 if validation.is_valid else 1


def _assess(image_data: str, metadata: AssessmentMetadata, endpoint: str) -> int:
    validation = validate_image(image_data)
    if not validation.is_valid:
        print(f"  ERROR: {validation.reason}")
        return 1

    client = RiskAssessmentClient(endpoint=endpoint)
    try:
        assessment = client.assess(image_data, metadata)
    except AssessmentError as e:
        print(f"  ERROR: {e.user_message}")
        return 1

    _print_assessment(assessment)
    return 0


def cmd_analyze(args) -> int:
    metadata = AssessmentMetadata(source="upload", eye=args.eye, mode=args.mode)
    return _assess(_read_data_uri(args.image), metadata, args.endpoint)


def cmd_capture(args) -> int:
    options = CaptureOptions(eye=args.eye, mode=args.mode)
    try:
        captured = capture_retinal_image(options, args.device, args.storage_dir)
    except CaptureError as e:
        print(f"  ERROR: {e}")
        return 1

    _banner("RETINAL CAPTURE")
    pretty_print("File", captured.file_name)
    pretty_print("Stored at", captured.path)

    if not args.analyze:
        return 0
    metadata = AssessmentMetadata(source="camera", eye=args.eye, mode=args.mode)
    return _assess(captured.uri, metadata, args.endpoint)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Vascular Risk Screening CLI")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("epwv", help="Compute MAP, ePWV and risk from vitals")
    p.add_argument("--systolic", type=float, required=True, help="Systolic BP (mmHg)")
    p.add_argument("--diastolic", type=float, required=True, help="Diastolic BP (mmHg)")
    p.add_argument("--age", type=float, required=True, help="Age (years)")
    p.add_argument("--height", type=float, help="Height (cm), for BMI")
    p.add_argument("--weight", type=float, help="Weight (kg), for BMI")
    p.add_argument("--diseases", help="Comma-separated medical history, e.g. \"Diabetes, Stroke\"")
    p.set_defaults(func=cmd_epwv)

    p = sub.add_parser("validate", help="Run the image intake gate on a file")
    p.add_argument("image", help="Path to a JPEG or PNG file")
    p.set_defaults(func=cmd_validate)

    for name, func, helptext in (
        ("analyze", cmd_analyze, "Validate a file and request a stroke-risk assessment"),
        ("capture", cmd_capture, "Capture a retinal image from a camera"),
    ):
        p = sub.add_parser(name, help=helptext)
        if name == "analyze":
            p.add_argument("image", help="Path to a JPEG or PNG file")
        else:
            p.add_argument("--device", type=int, default=CAPTURE_DEVICE_INDEX)
            p.add_argument("--storage-dir", default=CAPTURE_STORAGE_DIR)
            p.add_argument("--analyze", action="store_true", help="Assess the captured image")
        p.add_argument("--eye", choices=["left", "right"], default="left")
        p.add_argument("--mode", choices=["macula", "disc"], default="macula")
        p.add_argument("--endpoint", default=RISK_ASSESSMENT_URL)
        p.set_defaults(func=func)

    return parser


def main(argv: list[str] | None = None) -> int:
    args = build_parser().parse_args(argv)
    status = args.func(args)
    print("\n" + "=" * 60)
    print("  ⚠️  DISCLAIMER: All values above are ESTIMATES.")
    print("      Confirm with a qualified healthcare professional.")
    print("=" * 60 + "\n")
    return status


if __name__ == "__main__":
    sys.exit(main())
