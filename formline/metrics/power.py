"""Power-based load calculations.

All functions are pure: no I/O, plain lists and scalars in, numbers out.
Invalid or missing inputs yield 0 (or None for normalized power) instead of
raising, so one malformed activity never breaks a sync batch.
"""

from __future__ import annotations

import math
from typing import Sequence

# Seconds in the normalized power rolling window
NP_WINDOW_SECONDS = 30

# 1 kcal = 4184 J; gross cycling efficiency ~24%
JOULES_PER_KCAL = 4184
CYCLING_EFFICIENCY = 0.24


def normalized_power(
    samples: Sequence[float | None] | None, sample_rate: float = 1
) -> float | None:
    """Compute Normalized Power from a power stream.

    Rolling 30 s mean over full windows (missing samples count as 0), each
    windowed mean raised to the 4th power, averaged, then the 4th root.

    Args:
        samples:     Power samples in watts; None entries are dropouts.
        sample_rate: Seconds between samples.

    Returns:
        NP in watts, or None if the stream is shorter than 30 seconds.
    """
    if not samples or len(samples) < NP_WINDOW_SECONDS / sample_rate:
        return None

    window = max(1, round(NP_WINDOW_SECONDS / sample_rate))
    values = [float(s or 0) for s in samples]

    running = sum(values[:window])
    fourth_powers = [(running / window) ** 4]
    for i in range(window, len(values)):
        running += values[i] - values[i - window]
        fourth_powers.append((running / window) ** 4)

    mean_fourth = sum(fourth_powers) / len(fourth_powers)
    return math.sqrt(math.sqrt(mean_fourth))


def intensity_factor(np: float | None, ftp: float | None) -> float:
    """IF = NP / FTP; 0 if either is missing or FTP is not positive."""
    if not np or not ftp or ftp <= 0:
        return 0.0
    return np / ftp


def training_stress_score(
    np: float | None, duration_seconds: float | None, ftp: float | None
) -> float:
    """TSS = IF² × hours × 100.

    One hour exactly at FTP scores 100.
    """
    if not np or not duration_seconds or not ftp or ftp <= 0:
        return 0.0
    factor = intensity_factor(np, ftp)
    return factor * factor * (duration_seconds / 3600) * 100


def variability_index(np: float | None, average_power: float | None) -> float:
    """VI = NP / average power."""
    if not np or not average_power or average_power <= 0:
        return 0.0
    return np / average_power


def calories(duration_seconds: float, average_power: float | None) -> int:
    """Estimate kilocalories from mechanical work.

    kcal = floor(P × t / (4184 × 0.24))
    """
    if not average_power:
        return 0
    work_joules = average_power * duration_seconds
    return math.floor(work_joules / (JOULES_PER_KCAL * CYCLING_EFFICIENCY))


def estimate_ftp(power: float, duration_minutes: float) -> float:
    """Estimate FTP from a maximal effort of known duration.

    ~60 min efforts are 95% of FTP, ~20 min efforts 105%, ~5 min efforts
    150%; other durations use P × minutes^-0.07.
    """
    if not power or not duration_minutes:
        return 0.0
    if 55 <= duration_minutes <= 65:
        return power / 0.95
    if 18 <= duration_minutes <= 22:
        return power * 0.95
    if 4.5 <= duration_minutes <= 5.5:
        return power / 1.5
    return power * duration_minutes ** -0.07
