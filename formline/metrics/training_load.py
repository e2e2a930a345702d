"""Continuous training-load model (fitness / fatigue / form).

Two exponentially weighted moving averages of daily training load:

    decay   = e^(-1 / days)
    CTL_t   = CTL_(t-1) * decay_ctl + load_t * (1 - decay_ctl)    # fitness, 42 d
    ATL_t   = ATL_(t-1) * decay_atl + load_t * (1 - decay_atl)    # fatigue, 7 d
    TSB_t   = CTL_t - ATL_t                                       # form

The recurrence must be applied once per calendar day in ascending order;
rest days are steps with zero load.
"""

from __future__ import annotations

import math
from collections import defaultdict
from dataclasses import dataclass, replace
from datetime import date, datetime, timedelta
from typing import Iterable

from formline.dates import iter_days, utc_date

# Fitness below this is treated as "no chronic load" for ACWR
ACWR_MIN_FITNESS = 0.001


@dataclass(frozen=True)
class TrainingLoadConstants:
    """Time constants (days) and rounding for the load model."""

    ctl_days: int = 42
    atl_days: int = 7
    precision: int = 1


DEFAULT_CONSTANTS = TrainingLoadConstants()


@dataclass(frozen=True)
class TrainingLoad:
    """Model state at the end of one day.

    Attributes:
        ctl: Chronic training load (fitness).
        atl: Acute training load (fatigue).
        tsb: Training stress balance (form), ctl - atl.
        day: Calendar day (UTC) this state belongs to, if known.
    """

    ctl: float
    atl: float
    tsb: float
    day: date | None = None

    @property
    def acwr(self) -> float | None:
        return acwr(self.atl, self.ctl)


def zero_state(day: date | None = None) -> TrainingLoad:
    return TrainingLoad(ctl=0.0, atl=0.0, tsb=0.0, day=day)


def round_half_up(value: float, precision: int = 0) -> float:
    """Round halves upwards, so 42.5 becomes 43 rather than 42."""
    factor = 10 ** precision
    return math.floor(value * factor + 0.5) / factor


def step(
    load_today: float,
    previous: TrainingLoad,
    constants: TrainingLoadConstants = DEFAULT_CONSTANTS,
) -> TrainingLoad:
    """Advance the model by one day.

    Args:
        load_today: Total training load for the day (0 for rest days).
        previous:   State at the end of the previous day.
        constants:  Time constants and rounding precision.

    Returns:
        New state with ctl, atl and tsb rounded to ``constants.precision``.
    """
    ctl_decay = math.exp(-1 / constants.ctl_days)
    atl_decay = math.exp(-1 / constants.atl_days)

    new_ctl = previous.ctl * ctl_decay + load_today * (1 - ctl_decay)
    new_atl = previous.atl * atl_decay + load_today * (1 - atl_decay)
    new_tsb = new_ctl - new_atl

    p = constants.precision
    return TrainingLoad(
        ctl=round_half_up(new_ctl, p),
        atl=round_half_up(new_atl, p),
        tsb=round_half_up(new_tsb, p),
    )


def acwr(atl: float | None, ctl: float | None) -> float | None:
    """Acute-to-chronic workload ratio ATL / CTL, unrounded.

    None whenever fitness is at or below 0.001, regardless of fatigue.
    Rounding to 2 decimals happens only for display.
    """
    if ctl is None or atl is None or ctl <= ACWR_MIN_FITNESS:
        return None
    return atl / ctl


def daily_loads(loads: Iterable[tuple[datetime | date, float | None]]) -> dict[date, float]:
    """Sum training loads per UTC calendar day.  None loads count as 0."""
    totals: dict[date, float] = defaultdict(float)
    for when, load in loads:
        totals[utc_date(when)] += load or 0
    return dict(totals)


def build_continuous_metrics(
    loads: Iterable[tuple[datetime | date, float | None]],
    start: datetime | date,
    end: datetime | date,
    initial: TrainingLoad,
    constants: TrainingLoadConstants = DEFAULT_CONSTANTS,
) -> list[TrainingLoad]:
    """Compute one state per calendar day from ``start`` through ``end``.

    ``end`` covers its whole calendar day, so date-only inputs include the
    final day.  Days without activities are stepped with zero load, so the
    output has no gaps.

    Args:
        loads:     (when, training_load) pairs; same-day loads are summed.
        start:     First day of the range (inclusive).
        end:       Last day of the range (inclusive).
        initial:   State at the end of the day before ``start``.
        constants: Model constants.

    Returns:
        States in ascending day order, each with ``day`` set.
    """
    totals = daily_loads(loads)
    current = initial
    series: list[TrainingLoad] = []
    for day in iter_days(utc_date(start), utc_date(end)):
        current = replace(step(totals.get(day, 0.0), current, constants), day=day)
        series.append(current)
    return series


def seed_day(start: datetime | date) -> date:
    """Day before the range start, used to anchor an all-zero seed."""
    return utc_date(start) - timedelta(days=1)
