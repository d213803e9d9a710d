"""
vitals/pressure.py — Mean Arterial Pressure & body-size helpers
================================================================

    MAP = (systolic + 2 · diastolic) / 3        rounded to 1 decimal

Diastole lasts roughly twice as long as systole, hence the weighting.

Missing data is not an error here: when a reading is absent, non-numeric,
or not strictly positive the helpers return None and the caller treats it
as "insufficient data" (prompting the operator to complete the form).
"""

import math

from utils.logger import get_logger

logger = get_logger("vitals.pressure")


def as_positive_number(value) -> float | None:
    """
    Coerce a form value to a strictly positive finite float.

    Accepts ints, floats and numeric strings.  Booleans, None, blanks,
    NaN/inf and values ≤ 0 all yield None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, str):
        value = value.strip()
        if not value:
            return None
    try:
        number = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(number) or number <= 0:
        return None
    return number


def mean_arterial_pressure(systolic, diastolic) -> float | None:
    """
    Mean arterial pressure in mmHg, or None when either reading is unusable.

    >>> mean_arterial_pressure(120, 80)
    93.3
    """
    sys_mmhg = as_positive_number(systolic)
    dia_mmhg = as_positive_number(diastolic)
    if sys_mmhg is None or dia_mmhg is None:
        logger.debug("MAP undefined (systolic=%r, diastolic=%r)", systolic, diastolic)
        return None
    return round((sys_mmhg + 2.0 * dia_mmhg) / 3.0, 1)


def compute_bmi(height_cm, weight_kg) -> float | None:
    """BMI = weight (kg) / height (m)², rounded to 1 decimal."""
    height = as_positive_number(height_cm)
    weight = as_positive_number(weight_kg)
    if height is None or weight is None:
        return None
    height_m = height / 100.0
    return round(weight / (height_m ** 2), 1)
