"""Pure training metrics.

Modules:
    power         - Normalized power, IF, TSS, VI, calories, FTP estimation
    ftp           - FTP history step-function lookup
    heartrate     - TRIMP and heart-rate TSS
    training_load - CTL/ATL/TSB recurrence, ACWR, continuous daily series
    dashboard     - Week-over-week summary for the dashboard
"""

from formline.metrics.ftp import ftp_for_date
from formline.metrics.power import (
    calories,
    intensity_factor,
    normalized_power,
    training_stress_score,
)
from formline.metrics.training_load import (
    TrainingLoad,
    TrainingLoadConstants,
    acwr,
    build_continuous_metrics,
    step,
)

__all__ = [
    "ftp_for_date",
    "calories",
    "intensity_factor",
    "normalized_power",
    "training_stress_score",
    "TrainingLoad",
    "TrainingLoadConstants",
    "acwr",
    "build_continuous_metrics",
    "step",
]
