from __future__ import annotations

import math
from typing import Any

import numpy as np

LOOP_BW_MIN = 0.0
LOOP_BW_MAX = 1.0

DAMPING_MIN = 1e-6
DAMPING_MAX = 100.0

TED_GAIN_MIN = 1e-9
TED_GAIN_MAX = 1e6

PERIOD_MIN = 1e-3
PERIOD_MAX = 1e6

INPUTS_PER_SYMBOL_MIN = 1
INPUTS_PER_SYMBOL_MAX = 64
ERROR_DEPTH_MIN = 1
ERROR_DEPTH_MAX = 64


def require(condition: bool, message: str) -> None:
    """Raise ValueError for a violated precondition."""
    if not condition:
        raise ValueError(message)


def validate_finite_array(values: np.ndarray) -> bool:
    return bool(np.isfinite(values).all())


def validate_samples(samples: np.ndarray, max_abs: float) -> tuple[bool, str]:
    if samples.size == 0:
        return True, ""
    if not validate_finite_array(samples):
        return False, "non-finite samples"
    max_val = float(np.max(np.abs(samples)))
    if max_val > max_abs:
        return False, f"sample max abs {max_val:.3f} exceeds {max_abs:.3f}"
    return True, ""


def validate_int_range(
    value: Any,
    min_value: int,
    max_value: int,
    label: str,
) -> tuple[bool, str]:
    if isinstance(value, bool):
        return False, f"{label} is not an int"
    try:
        int_value = int(value)
    except (TypeError, ValueError):
        return False, f"{label} is not an int"
    if int_value != value:
        return False, f"{label} is not an int"
    if int_value < min_value or int_value > max_value:
        return (
            False,
            f"{label} out of range {min_value}-{max_value} (got {int_value})",
        )
    return True, ""


def validate_float_range(
    value: Any,
    min_value: float,
    max_value: float,
    label: str,
) -> tuple[bool, str]:
    if isinstance(value, bool):
        return False, f"{label} is not a float"
    try:
        float_value = float(value)
    except (TypeError, ValueError):
        return False, f"{label} is not a float"
    if not math.isfinite(float_value):
        return False, f"{label} is not finite"
    if float_value < min_value or float_value > max_value:
        return (
            False,
            f"{label} out of range {min_value}-{max_value} (got {float_value})",
        )
    return True, ""


def validate_period_bounds(
    min_period: float, nominal_period: float, max_period: float
) -> tuple[bool, str]:
    for value, label in (
        (min_period, "min_period"),
        (max_period, "max_period"),
    ):
        ok, msg = validate_float_range(value, PERIOD_MIN, PERIOD_MAX, label)
        if not ok:
            return ok, msg
    if min_period > max_period:
        return False, f"min_period {min_period} exceeds max_period {max_period}"
    if nominal_period and not min_period <= nominal_period <= max_period:
        return (
            False,
            f"nominal_period {nominal_period} outside [{min_period}, {max_period}]",
        )
    return True, ""
