"""
vitals/epwv.py — Estimated Pulse Wave Velocity & risk classification
======================================================================

⚠️  DISCLAIMER: ePWV is a surrogate marker of arterial stiffness derived
    from age and mean arterial pressure.  It is a screening aid, not a
    measured carotid–femoral PWV.  Clinical decisions must be confirmed
    by a qualified healthcare professional.

────────────────────────────────────────────────────────────────────────
Formula
────────────────────────────────────────────────────────────────────────
    ePWV = 0.587
         − 0.402      · age
         + 0.00456    · age²
         − 0.00002621 · age² · MAP
         + 0.003176   · age · MAP
         − 0.01832    · MAP

The regression is empirical and goes negative outside its validated
input range; negative velocities are clamped to 0.  The constants are
kept exactly as deployed, their provenance is not verifiable, so do not
"correct" them.

Risk category uses the raw ePWV value (see config.py for thresholds).
Confidence reflects only how plausible the inputs are for the formula.
────────────────────────────────────────────────────────────────────────
"""

from dataclasses import dataclass, field
from enum import Enum

from config import (
    CONFIDENCE_INNER_AGE,
    CONFIDENCE_INNER_MAP,
    CONFIDENCE_OUTER_AGE,
    CONFIDENCE_OUTER_MAP,
    EPWV_HIGH_THRESHOLD,
    EPWV_MEDIUM_THRESHOLD,
)
from utils.logger import get_logger
from vitals.pressure import as_positive_number, mean_arterial_pressure

logger = get_logger("vitals.epwv")


class RiskCategory(str, Enum):
    LOW = "Low"
    MEDIUM = "Medium"
    HIGH = "High"


class Confidence(str, Enum):
    LOW = "Low"
    MODERATE = "Moderate"
    HIGH = "High"


@dataclass(frozen=True)
class RiskGuidance:
    interpretation: str
    recommendations: tuple[str, ...]


# Exhaustive lookup: every RiskCategory must have an entry.
RISK_GUIDANCE: dict[RiskCategory, RiskGuidance] = {
    RiskCategory.LOW: RiskGuidance(
        interpretation="Normal arterial stiffness — continue routine monitoring.",
        recommendations=(
            "Continue regular health screenings",
            "Maintain healthy lifestyle habits",
            "Monitor blood pressure regularly",
        ),
    ),
    RiskCategory.MEDIUM: RiskGuidance(
        interpretation=(
            "Elevated arterial stiffness — consider lifestyle modifications and follow-up."
        ),
        recommendations=(
            "Lifestyle modifications recommended",
            "Consider dietary consultation",
            "Increase physical activity",
            "Follow-up in 6 months",
        ),
    ),
    RiskCategory.HIGH: RiskGuidance(
        interpretation=(
            "Significantly elevated arterial stiffness — recommend clinical evaluation."
        ),
        recommendations=(
            "Clinical evaluation recommended",
            "Comprehensive cardiovascular assessment",
            "Consider specialist referral",
            "Immediate lifestyle interventions",
        ),
    ),
}


@dataclass(frozen=True)
class VitalReading:
    """One set of vitals as entered by the operator (mmHg, mmHg, years)."""
    systolic: float | None
    diastolic: float | None
    age: float | None

    @property
    def mean_arterial_pressure(self) -> float | None:
        return mean_arterial_pressure(self.systolic, self.diastolic)


@dataclass(frozen=True)
class EpwvResult:
    epwv: float
    risk_category: RiskCategory
    confidence: Confidence
    interpretation: str
    recommendations: tuple[str, ...] = field(default_factory=tuple)

    def to_dict(self) -> dict:
        return {
            "epwv": self.epwv,
            "risk_category": self.risk_category.value,
            "confidence": self.confidence.value,
            "interpretation": self.interpretation,
            "recommendations": list(self.recommendations),
        }


def estimate_epwv(age: float, map_mmhg: float) -> float:
    """
    Evaluate the ePWV regression, clamped at 0 m/s.

    Inputs are expected to be strictly positive; range plausibility is
    reported by `classify_confidence`, not checked here.
    """
    age_sq = age * age
    epwv = (
        0.587
        - 0.402 * age
        + 0.00456 * age_sq
        - 0.00002621 * age_sq * map_mmhg
        + 0.003176 * age * map_mmhg
        - 0.01832 * map_mmhg
    )
    return max(0.0, epwv)


def classify_risk(epwv: float) -> RiskCategory:
    if epwv < EPWV_MEDIUM_THRESHOLD:
        return RiskCategory.LOW
    if epwv < EPWV_HIGH_THRESHOLD:
        return RiskCategory.MEDIUM
    return RiskCategory.HIGH


def classify_confidence(age: float, map_mmhg: float) -> Confidence:
    """
    Confidence band from input plausibility.  Bounds are inclusive, e.g.
    age == 18 sits inside the outer envelope.
    """
    age_lo, age_hi = CONFIDENCE_OUTER_AGE
    map_lo, map_hi = CONFIDENCE_OUTER_MAP
    if age < age_lo or age > age_hi or map_mmhg < map_lo or map_mmhg > map_hi:
        return Confidence.LOW

    age_lo, age_hi = CONFIDENCE_INNER_AGE
    map_lo, map_hi = CONFIDENCE_INNER_MAP
    if age < age_lo or age > age_hi or map_mmhg < map_lo or map_mmhg > map_hi:
        return Confidence.MODERATE

    return Confidence.HIGH


def classify(epwv: float, age: float, map_mmhg: float) -> EpwvResult:
    """Pure classification of an already computed ePWV value."""
    category = classify_risk(epwv)
    guidance = RISK_GUIDANCE[category]
    return EpwvResult(
        epwv=epwv,
        risk_category=category,
        confidence=classify_confidence(age, map_mmhg),
        interpretation=guidance.interpretation,
        recommendations=guidance.recommendations,
    )


def assess_epwv(age: float, map_mmhg: float) -> EpwvResult:
    """Compute ePWV from age and MAP and classify it."""
    result = classify(estimate_epwv(age, map_mmhg), age, map_mmhg)
    logger.info(
        "ePWV estimate: %.2f m/s (risk=%s, confidence=%s) for age=%s, MAP=%s",
        result.epwv,
        result.risk_category.value,
        result.confidence.value,
        age,
        map_mmhg,
    )
    return result


def assess_vitals(reading: VitalReading) -> EpwvResult | None:
    """
    Full vitals → MAP → ePWV → risk pipeline.

    Returns None when MAP is undefined or age is missing; the caller should
    prompt for the missing fields rather than treat this as an error.
    """
    map_mmhg = reading.mean_arterial_pressure
    age = as_positive_number(reading.age)
    if map_mmhg is None or age is None:
        logger.info("Insufficient vitals for ePWV (reading=%s)", reading)
        return None
    return assess_epwv(age, map_mmhg)
