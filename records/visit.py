"""
records/visit.py — Derived fields written onto Visit records
==============================================================
Patients and visits are owned by the external database service.  This
module only turns computed results into the plain scalar/text columns the
caller writes there; it never reads or mutates stored records.
"""

from assessment.schema import RetinalImageAssessment
from vitals.epwv import EpwvResult, VitalReading
from vitals.pressure import compute_bmi

RECOMMENDATION_SEPARATOR = "; "
DISEASE_SEPARATOR = ", "

DISEASES = [
    "Diabetes",
    "Hypertension",
    "Atrial Fibrillation",
    "Smoking History",
    "High Cholesterol",
    "Heart Disease",
    "Stroke",
    "Kidney Disease",
    "Family History",
]


def format_diseases(diseases: list[str]) -> str:
    return DISEASE_SEPARATOR.join(diseases)


def parse_diseases(diseases: str | None) -> list[str]:
    if not diseases:
        return []
    return [d.strip() for d in diseases.split(DISEASE_SEPARATOR) if d.strip()]


def patient_visit_fields(
    height_cm: float | None = None,
    weight_kg: float | None = None,
    diseases: list[str] | None = None,
) -> dict:
    """Body measurements, BMI and the medical-history checklist."""
    return {
        "height": height_cm,
        "weight": weight_kg,
        "bmi": compute_bmi(height_cm, weight_kg),
        "diseases": format_diseases(diseases) if diseases else None,
    }


def epwv_visit_fields(reading: VitalReading, result: EpwvResult | None) -> dict:
    """
    Vitals plus ePWV columns.  ePWV columns are None when the result is
    missing (insufficient vitals).
    """
    fields = {
        "age": reading.age,
        "systolic": reading.systolic,
        "diastolic": reading.diastolic,
        "mean_bp": reading.mean_arterial_pressure,
        "epwv_result": None,
        "epwv_risk_level": None,
        "epwv_recommendations": None,
    }
    if result is not None:
        fields.update(
            epwv_result=round(result.epwv, 1),   # stored as DECIMAL(4,1)
            epwv_risk_level=result.risk_category.value,
            epwv_recommendations=RECOMMENDATION_SEPARATOR.join(result.recommendations),
        )
    return fields


def assessment_visit_fields(assessment: RetinalImageAssessment) -> dict:
    factors = assessment.risk_factors
    return {
        "retinal_image_quality": assessment.image_quality_score,
        "stroke_risk_percentage": assessment.stroke_risk_percentage,
        "stroke_risk_level": assessment.risk_level.value,
        "retinal_findings": RECOMMENDATION_SEPARATOR.join(factors.findings),
        "retinal_risk_factors": factors.model_dump(
            by_alias=True, exclude={"findings"}, exclude_none=True
        ),
        "retinal_recommendations": RECOMMENDATION_SEPARATOR.join(
            assessment.clinical_recommendations
        ),
        "retinal_confidence": assessment.confidence,
    }
