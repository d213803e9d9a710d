import pytest

from vitals.epwv import (
    RISK_GUIDANCE,
    Confidence,
    RiskCategory,
    VitalReading,
    assess_epwv,
    assess_vitals,
    classify,
    classify_confidence,
    classify_risk,
    estimate_epwv,
)


def reference_epwv(age, mbp):
    value = (
        0.587
        - 0.402 * age
        + 0.00456 * age * age
        - 0.00002621 * age * age * mbp
        + 0.003176 * age * mbp
        - 0.01832 * mbp
    )
    return max(0.0, value)


@pytest.mark.parametrize("age, mbp", [(67, 106.7), (80, 110), (90, 120), (30, 150), (50, 93.3)])
def test_epwv_matches_formula(age, mbp):
    assert estimate_epwv(age, mbp) == pytest.approx(reference_epwv(age, mbp), abs=1e-12)


def test_epwv_positive_case():
    # 0.587 - 32.16 + 29.184 - 18.4518 + 27.9488 - 2.0152
    assert estimate_epwv(80, 110) == pytest.approx(5.0928, abs=1e-4)


def test_epwv_clamped_at_zero():
    # Unclamped value is about -3.55 for a young, low-pressure patient.
    assert estimate_epwv(20, 60) == 0.0
    # Age 50 / MAP 93.3 also falls below zero and resolves to 0.
    assert estimate_epwv(50, 93.3) == 0.0


@pytest.mark.parametrize(
    "epwv, expected",
    [
        (0.0, RiskCategory.LOW),
        (7.99, RiskCategory.LOW),
        (8.00, RiskCategory.MEDIUM),
        (11.99, RiskCategory.MEDIUM),
        (12.00, RiskCategory.HIGH),
        (25.0, RiskCategory.HIGH),
    ],
)
def test_risk_category_boundaries(epwv, expected):
    assert classify_risk(epwv) is expected


@pytest.mark.parametrize(
    "age, mbp, expected",
    [
        (17, 90, Confidence.LOW),
        (91, 90, Confidence.LOW),
        (30, 59.9, Confidence.LOW),
        (30, 120.1, Confidence.LOW),
        (18, 60, Confidence.MODERATE),
        (90, 120, Confidence.MODERATE),
        (24, 90, Confidence.MODERATE),
        (30, 111, Confidence.MODERATE),
        (25, 70, Confidence.HIGH),
        (30, 90, Confidence.HIGH),
        (80, 110, Confidence.HIGH),
    ],
)
def test_confidence_bands(age, mbp, expected):
    assert classify_confidence(age, mbp) is expected


def test_guidance_table_is_exhaustive():
    assert set(RISK_GUIDANCE) == set(RiskCategory)
    for guidance in RISK_GUIDANCE.values():
        assert 3 <= len(guidance.recommendations) <= 4


def test_high_guidance_in_documented_order():
    result = classify(12.0, 67, 106.7)
    assert result.risk_category is RiskCategory.HIGH
    assert result.interpretation == (
        "Significantly elevated arterial stiffness — recommend clinical evaluation."
    )
    assert list(result.recommendations) == [
        "Clinical evaluation recommended",
        "Comprehensive cardiovascular assessment",
        "Consider specialist referral",
        "Immediate lifestyle interventions",
    ]


def test_low_and_medium_guidance():
    low = classify(3.0, 40, 90)
    assert low.interpretation == "Normal arterial stiffness — continue routine monitoring."
    assert low.recommendations[0] == "Continue regular health screenings"

    medium = classify(9.0, 40, 90)
    assert medium.recommendations[-1] == "Follow-up in 6 months"


def test_classifier_is_idempotent():
    first = classify(9.5, 45, 95.0)
    second = classify(9.5, 45, 95.0)
    assert first == second
    assert first.to_dict() == second.to_dict()
    assert repr(first) == repr(second)


def test_end_to_end_vitals():
    reading = VitalReading(systolic=140, diastolic=90, age=67)
    assert reading.mean_arterial_pressure == 106.7

    result = assess_vitals(reading)
    assert result is not None
    assert result.epwv == pytest.approx(reference_epwv(67, 106.7), abs=1e-12)
    assert result.risk_category is classify_risk(result.epwv)
    assert result.confidence is Confidence.HIGH
    assert list(result.recommendations) == list(
        RISK_GUIDANCE[result.risk_category].recommendations
    )


@pytest.mark.parametrize(
    "reading",
    [
        VitalReading(systolic=None, diastolic=80, age=50),
        VitalReading(systolic=120, diastolic=0, age=50),
        VitalReading(systolic=120, diastolic=80, age=None),
        VitalReading(systolic=120, diastolic=80, age=-1),
    ],
)
def test_insufficient_vitals_yield_none(reading):
    assert assess_vitals(reading) is None


def test_assess_epwv_to_dict():
    data = assess_epwv(30, 90).to_dict()
    assert data["confidence"] == "High"
    assert isinstance(data["recommendations"], list)
