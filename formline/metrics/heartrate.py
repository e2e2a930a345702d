"""Heart-rate based load for sessions without a power meter."""

from __future__ import annotations

import math
from typing import Literal

Sex = Literal["male", "female"]

# Banister weighting: (multiplier, exponent)
_TRIMP_WEIGHTS: dict[str, tuple[float, float]] = {
    "male": (0.64, 1.92),
    "female": (0.86, 1.67),
}


def trimp(
    avg_hr: float,
    rest_hr: float,
    max_hr: float,
    duration_minutes: float,
    sex: Sex = "male",
) -> float:
    """Banister TRIMP.

    minutes × HRr × a·e^(b·HRr), HRr = (avg − rest) / (max − rest).
    """
    if not avg_hr or not rest_hr or not max_hr or not duration_minutes:
        return 0.0
    if max_hr <= rest_hr:
        return 0.0
    hr_ratio = (avg_hr - rest_hr) / (max_hr - rest_hr)
    multiplier, exponent = _TRIMP_WEIGHTS[sex]
    return duration_minutes * hr_ratio * multiplier * math.exp(exponent * hr_ratio)


def hr_training_stress_score(
    avg_hr: float, threshold_hr: float, duration_hours: float
) -> float:
    """hrTSS = ((avg / threshold)^1.8)² × hours × 100."""
    if not avg_hr or not threshold_hr or not duration_hours or threshold_hr <= 0:
        return 0.0
    intensity = (avg_hr / threshold_hr) ** 1.8
    return intensity * intensity * duration_hours * 100
